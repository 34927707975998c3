# backend/utils/carrier_client.py
import asyncio
import base64
import hashlib
import hmac
import json
import logging
import time
from datetime import datetime, timezone

import httpx

from config import settings
from utils.errors import DependencyFailure, InvalidArgument

logger = logging.getLogger(__name__)


class CarrierTokenProvider:
    """Caches the carrier bearer token for the whole process.

    A token is reused until ``ttl_seconds`` after it was obtained. When it has
    expired, the first caller starts a refresh and every concurrent caller
    awaits that same refresh, so only one login request is ever in flight.
    """

    def __init__(self, login, ttl_seconds: int, clock=time.monotonic):
        self._login = login
        self._ttl = ttl_seconds
        self._clock = clock
        self._token = None
        self._expires_at = 0.0
        self._refresh = None

    @property
    def has_valid_token(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at

    async def get_token(self) -> str:
        if self.has_valid_token:
            return self._token
        if self._refresh is None:
            self._refresh = asyncio.ensure_future(self._do_refresh())
        # A cancelled waiter must not cancel the refresh the others share
        return await asyncio.shield(self._refresh)

    async def _do_refresh(self) -> str:
        try:
            token = await self._login()
            self._token = token
            self._expires_at = self._clock() + self._ttl
            return token
        except Exception:
            self.invalidate()
            raise
        finally:
            self._refresh = None

    def invalidate(self):
        self._token = None
        self._expires_at = 0.0


def sign_payload(body: bytes, secret: str) -> str:
    # HMAC-SHA256 over the raw JSON body, base64 encoded
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def product_payload(product, variant, category_code: str) -> dict:
    # Catalog sync payload for one variant of a product
    price = variant.price if variant is not None else product.price
    sale_price = variant.sale_price if variant is not None else product.sale_price
    return {
        "name": product.name,
        "sku": (variant.sku if variant is not None else None) or product.sku,
        "type": "Single",
        "category_code": category_code,
        "brand": "Generic",
        "weight": float(variant.weight) if variant is not None and variant.weight is not None else 0.5,
        "description": product.description or "",
        "qty": (variant.stock_quantity if variant is not None else product.stock_quantity) or 0,
        "mrp": sale_price if sale_price is not None and sale_price < price else price,
        "size": (variant.size if variant is not None else None) or "",
        "color": (variant.color if variant is not None else None) or "",
    }


class CarrierClient:
    def __init__(
        self,
        *,
        api_url: str = None,
        checkout_url: str = None,
        api_key: str = None,
        api_secret: str = None,
        email: str = None,
        password: str = None,
        timeout: float = None,
        token_ttl_seconds: int = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        # Initialize configuration, falling back to application settings
        self.api_url = (api_url or settings.CARRIER_API_URL).rstrip("/")
        self.checkout_url = checkout_url or settings.CARRIER_CHECKOUT_URL
        self.api_key = api_key if api_key is not None else settings.CARRIER_API_KEY
        self.api_secret = api_secret if api_secret is not None else settings.CARRIER_API_SECRET
        self.email = email if email is not None else settings.CARRIER_EMAIL
        self.password = password if password is not None else settings.CARRIER_PASSWORD
        self.timeout = timeout or settings.CARRIER_TIMEOUT_SECONDS
        self.transport = transport
        self.tokens = CarrierTokenProvider(
            self._login, token_ttl_seconds or settings.CARRIER_TOKEN_TTL_SECONDS
        )
        self._categories = None

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _login(self) -> str:
        # Exchange account credentials for a bearer token
        auth_url = f"{self.api_url}/auth/login"
        async with self._http() as client:
            try:
                response = await client.post(auth_url, json={"email": self.email, "password": self.password})
                response.raise_for_status()
            except (httpx.RequestError, httpx.HTTPStatusError) as e:
                logger.error(f"Carrier auth error: {e}")
                raise DependencyFailure("Carrier authentication failed") from e

        token = response.json().get("token")
        if not token:
            raise DependencyFailure("Invalid carrier auth response")
        logger.info("Carrier auth token refreshed")
        return token

    async def auth_headers(self) -> dict:
        token = await self.tokens.get_token()
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    async def _authorized_request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self.api_url}{path}"
        headers = await self.auth_headers()
        async with self._http() as client:
            try:
                response = await client.request(method, url, headers=headers, **kwargs)
                if response.status_code == 401:
                    # Token revoked upstream; the next call logs in again
                    self.tokens.invalidate()
                response.raise_for_status()
                return response
            except (httpx.RequestError, httpx.HTTPStatusError) as e:
                resp_text = e.response.text if isinstance(e, httpx.HTTPStatusError) else str(e)
                logger.error(f"Carrier {method} {path} failed: {resp_text}")
                raise DependencyFailure(f"Carrier request {method} {path} failed") from e

    async def create_checkout_session(self, items: list, redirect_url: str, buyer=None) -> dict:
        """Create a payable checkout session for the given carrier variants.

        ``items`` are dicts with ``carrier_variant_id`` and ``quantity``.
        Returns ``checkout_session_id``, ``token`` and ``expires_at``.
        """
        if not items:
            raise InvalidArgument("Cart is empty")

        carrier_items = []
        for item in items:
            if not item.get("carrier_variant_id"):
                raise InvalidArgument("Variant not synced with external carrier")
            carrier_items.append({"variant_id": item["carrier_variant_id"], "quantity": int(item["quantity"])})

        payload = {
            "cart_data": {"items": carrier_items},
            "redirect_url": redirect_url,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        # Signature must cover exactly the bytes that are sent
        body = json.dumps(payload).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-Api-Key": self.api_key,
            "X-Api-HMAC-SHA256": sign_payload(body, self.api_secret),
        }

        logger.info(
            "Creating carrier checkout session: buyer=%s items=%d",
            getattr(buyer, "id", None), len(carrier_items),
        )
        async with self._http() as client:
            try:
                response = await client.post(self.checkout_url, content=body, headers=headers)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                try:
                    detail = e.response.json().get("error", {}).get("message")
                except (ValueError, AttributeError):
                    detail = None
                logger.error(f"Carrier checkout error: {e.response.status_code} {e.response.text}")
                raise DependencyFailure(detail or "Checkout session creation failed") from e
            except httpx.RequestError as e:
                logger.error(f"Carrier checkout unreachable: {e}")
                raise DependencyFailure("Checkout session creation failed") from e

        data = response.json()
        if not data.get("token"):
            raise DependencyFailure("Failed to generate checkout token")

        return {
            "checkout_session_id": data.get("checkout_id"),
            "token": data["token"],
            "expires_at": data.get("expires_at"),
        }

    async def create_product(self, payload: dict) -> dict:
        if not payload.get("category_code"):
            raise InvalidArgument("Carrier category code missing")
        response = await self._authorized_request("POST", "/products", json=payload)
        return response.json().get("data")

    async def create_category(self, name: str, code: str = None) -> dict:
        response = await self._authorized_request("POST", "/categories", json={"name": name, "code": code or name})
        # New category invalidates the cached listing
        self._categories = None
        return response.json().get("data")

    async def get_categories(self) -> list:
        if self._categories is None:
            response = await self._authorized_request("GET", "/categories")
            self._categories = response.json().get("data") or []
        return self._categories

    async def map_category(self, name: str):
        categories = await self.get_categories()
        for category in categories:
            if (category.get("name") or "").lower() == name.lower():
                return category["id"]
        raise InvalidArgument(f"No carrier category found for '{name}'")


carrier_client = CarrierClient()

def get_carrier_client() -> CarrierClient:
    return carrier_client
