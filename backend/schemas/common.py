# backend/schemas/common.py
from decimal import Decimal
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated

from utils.money import to_major

T = TypeVar("T")

# Integer minor units inside the app, decimal major units on the wire
Money = Annotated[int, PlainSerializer(to_major, return_type=Decimal, when_used="json")]


# Accepts snake_case or camelCase input, answers in camelCase
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Success envelope returned by every route
class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    status_code: int = 200
    data: Optional[T] = None
    message: str = "Success"


def ok(data=None, message: str = "Success", status_code: int = 200) -> dict:
    return {"success": True, "status_code": status_code, "data": data, "message": message}
