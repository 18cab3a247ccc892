from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel


class Session(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None


class TokenPair(BaseModel):
    access: str
    refresh: str


class Category(BaseModel):
    id: int
    name: str
    user: int


class Transaction(BaseModel):
    id: int
    amount: Decimal
    description: str = ""
    category_name: Optional[str] = None
    category_id: Optional[int] = None
    date: str
    type: Literal["IN", "OUT"]  # income | expense
    payment_method: str = ""


class Summary(BaseModel):
    balance: Decimal
    total_income: Decimal
    total_expenses: Decimal
