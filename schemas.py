import datetime as dt
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from categories import DEFAULT_CARD_COLOR, ExpenseCategory, RewardType

HEX_COLOR = r"^#[0-9a-fA-F]{6}$"


def _require_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


class CardIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    bank: str = Field(..., min_length=1, max_length=100)
    last_four_digits: str = Field(..., pattern=r"^\d{4}$")
    credit_limit: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    current_balance: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    due_date: date
    min_payment: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    interest_rate: Decimal = Field(Decimal("0"), ge=0, le=100, decimal_places=2)
    reward_type: RewardType = RewardType.none
    color: str = Field(DEFAULT_CARD_COLOR, pattern=HEX_COLOR)

    _strip = field_validator("name", "bank")(_require_text)


class CardUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    bank: Optional[str] = Field(None, min_length=1, max_length=100)
    last_four_digits: Optional[str] = Field(None, pattern=r"^\d{4}$")
    credit_limit: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    current_balance: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    due_date: Optional[date] = None
    min_payment: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    interest_rate: Optional[Decimal] = Field(None, ge=0, le=100, decimal_places=2)
    reward_type: Optional[RewardType] = None
    color: Optional[str] = Field(None, pattern=HEX_COLOR)

    _strip = field_validator("name", "bank")(_require_text)


class ExpenseIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    card_id: int
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: str = Field(..., min_length=1, max_length=500)
    category: ExpenseCategory = ExpenseCategory.other
    date: date
    merchant: Optional[str] = Field(None, max_length=120)

    _strip = field_validator("description")(_require_text)


class ExpenseUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    card_id: Optional[int] = None
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    category: Optional[ExpenseCategory] = None
    date: Optional[dt.date] = None
    merchant: Optional[str] = Field(None, max_length=120)

    _strip = field_validator("description")(_require_text)


class OfferIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    card_id: int
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=1000)
    category: ExpenseCategory = ExpenseCategory.other
    cashback: Decimal = Field(..., ge=0, le=100, decimal_places=2)
    expiry_date: date
    is_active: bool = True
    min_spend: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)

    _strip = field_validator("title")(_require_text)


class OfferUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    card_id: Optional[int] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    category: Optional[ExpenseCategory] = None
    cashback: Optional[Decimal] = Field(None, ge=0, le=100, decimal_places=2)
    expiry_date: Optional[date] = None
    is_active: Optional[bool] = None
    min_spend: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)

    _strip = field_validator("title")(_require_text)
