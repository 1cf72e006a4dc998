from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    category_name: str = Field(default="", max_length=100, alias="categoryName")


class TransactionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., min_length=1, alias="userId")
    items: list[ItemIn] = Field(..., min_length=1)


class GoalExpenseIn(BaseModel):
    """Body of ``POST /goal-expenses/add``; ``id`` is the owning user's id."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., min_length=1, alias="id")
    desired_amount: Decimal = Field(
        ..., ge=0, max_digits=12, decimal_places=2, alias="desiredAmount"
    )
    start_date: Optional[date] = Field(default=None, alias="startDate")


class GoalExpenseUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    desired_amount: Decimal = Field(
        ..., ge=0, max_digits=12, decimal_places=2, alias="desiredAmount"
    )


class SignUpIn(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=120)
    password: str = Field(..., min_length=1, max_length=128)


class SignInIn(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class PasswordUpdateIn(BaseModel):
    id: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1, max_length=128)
