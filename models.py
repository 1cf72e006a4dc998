from datetime import date, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from auth import hash_password
from database import Base


class UserRole(str, Enum):
    regular = "REGULAR"
    admin = "ADMIN"


USER_ROLE_ENUM = SAEnum(
    UserRole,
    name="userrole",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


def _new_id() -> str:
    return str(uuid4())


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        USER_ROLE_ENUM, nullable=False, default=UserRole.regular
    )
    budget_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    goal_expenses: Mapped[list["GoalExpense"]] = relationship(
        "GoalExpense",
        back_populates="user",
        cascade="all, delete-orphan",
    )


@event.listens_for(User.password, "set", retval=True)
def _hash_password_on_set(target, value, oldvalue, initiator):
    # Every ORM write of User.password goes through here.
    if value is None:
        return value
    return hash_password(value)


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user: Mapped["User"] = relationship("User", back_populates="transactions")
    items: Mapped[list["Item"]] = relationship(
        "Item",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="Item.position",
    )

    __table_args__ = (
        Index("ix_transactions_user_created", "user_id", "created_at"),
    )


class Item(Base, TimestampMixin):
    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    transaction_id: Mapped[str] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False
    )

    transaction: Mapped["Transaction"] = relationship(
        "Transaction", back_populates="items"
    )

    __table_args__ = (
        Index("ix_items_price", "price_cents"),
        CheckConstraint("price_cents >= 0", name="ck_items_price_positive"),
    )


class GoalExpense(Base, TimestampMixin):
    __tablename__ = "goal_expenses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    desired_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="goal_expenses")

    __table_args__ = (
        CheckConstraint(
            "desired_amount_cents >= 0", name="ck_goal_expenses_amount_positive"
        ),
    )
