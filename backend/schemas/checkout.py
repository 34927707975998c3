from typing import Optional

from schemas.common import CamelModel

# Handed to the client, which exchanges the token at the carrier for payment
class CheckoutSessionOut(CamelModel):
    checkout_id: Optional[str] = None
    order_id: int
    order_number: str
    token: str
    expires_at: Optional[str] = None
