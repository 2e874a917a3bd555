# schemas.py
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator

CENT = Decimal("0.01")
BCRYPT_MAX_PASSWORD_BYTES = 72

# JSON clients expect a number, not pydantic's default decimal string
Amount = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]


class ExpenseIn(BaseModel):
    # "id" may be present in the body and is ignored
    model_config = ConfigDict(extra="ignore")

    description: str = Field(min_length=1)
    amount: Amount
    category: str
    date: datetime

    @field_validator("amount")
    @classmethod
    def to_cents(cls, v: Decimal) -> Decimal:
        try:
            return v.quantize(CENT, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise ValueError("amount is out of range")


class Expense(ExpenseIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


class UserCreate(BaseModel):
    username: str = Field(min_length=1)
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)

    @field_validator("password")
    @classmethod
    def fits_bcrypt(cls, v: str) -> str:
        # bcrypt only looks at the first 72 bytes and refuses anything longer
        if len(v.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValueError("password is too long")
        return v


class UserOut(BaseModel):
    """Public view of an account, without credential fields."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    created_at: Optional[datetime] = None
