# pocketplan/schemas.py
"""
Request bodies for the JSON API.

Amounts are accepted as numbers or strings and coerced later (non-numeric
values count as 0), so only the shape is validated here.
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

DateValue = Union[str, int, float, None]
AmountValue = Union[float, str, None]


class TransactionIn(BaseModel):
    category: str = ""
    type: Literal["Income", "Expense"] = "Expense"
    amount: AmountValue = 0
    date: DateValue = None
    description: Optional[str] = None


class TransactionPatch(BaseModel):
    category: Optional[str] = None
    type: Optional[Literal["Income", "Expense"]] = None
    amount: AmountValue = None
    date: DateValue = None
    description: Optional[str] = None


class GoalIn(BaseModel):
    name: str = ""
    type: Literal["Saving", "Expense"] = "Saving"
    amount: AmountValue = 0
    target: AmountValue = 0


class GoalPatch(BaseModel):
    name: Optional[str] = None
    type: Optional[Literal["Saving", "Expense"]] = None
    amount: AmountValue = None
    target: AmountValue = None


class BalanceIn(BaseModel):
    base_balance: float = Field(..., alias="baseBalance")

    model_config = {"populate_by_name": True}


# ---- Auth ----

class RegisterIn(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""
    confirm: Optional[str] = None


class LoginIn(BaseModel):
    email: str
    password: str


class GoogleLoginIn(BaseModel):
    email: str
    name: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")

    model_config = {"populate_by_name": True}


class EmailIn(BaseModel):
    email: str = ""


class ResendVerificationIn(BaseModel):
    email: str = ""
    password: str = ""


class VerifyEmailIn(BaseModel):
    token: str


class ProfilePatch(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")
    password: Optional[str] = None
    confirm: Optional[str] = None

    model_config = {"populate_by_name": True}
