from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from models import MAX_AMOUNT_CENTS, TransactionStatus, TransactionType

MAX_AMOUNT = Decimal(MAX_AMOUNT_CENTS).scaleb(-2)


class UserRegisterIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class TransactionIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(
        ..., ge=0, le=MAX_AMOUNT, decimal_places=2, allow_inf_nan=False
    )
    type: TransactionType
    category: str = Field(..., min_length=1, max_length=100)
    date: Optional[datetime] = None
    status: TransactionStatus = TransactionStatus.completed

    @field_validator("date", mode="before")
    @classmethod
    def date_only_is_midnight(cls, value):
        if isinstance(value, str) and len(value.strip()) == 10:
            return f"{value.strip()}T00:00:00"
        return value

    @field_validator("date")
    @classmethod
    def to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    @property
    def amount_cents(self) -> int:
        return int(self.amount * 100)
