from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from amounts import min_price_cents, to_cents
from auth import check_password, issue_token
from config import get_settings
from database import atomic
from models import GoalExpense, Item, Transaction, User, UserRole
from schemas import GoalExpenseIn, SignUpIn, TransactionIn

GOAL_WINDOW = timedelta(days=30)


class NotFoundError(ValueError):
    pass


class InsufficientBudgetError(ValueError):
    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(
            message
            or "Insufficient budget. You can't add this transaction with the "
            "current budget you have!"
        )


class DuplicateEmailError(ValueError):
    pass


class InvalidCredentialsError(ValueError):
    pass


def _require_user(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, data: SignUpIn) -> User:
        email = data.email.strip().lower()
        existing = self.session.scalar(
            select(User).where(func.lower(User.email) == email)
        )
        if existing:
            raise DuplicateEmailError("Email already registered")
        role = (
            UserRole.admin
            if email in get_settings().admin_emails
            else UserRole.regular
        )
        user = User(
            email=email,
            name=data.name.strip(),
            password=data.password,
            role=role,
            budget_cents=0,
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateEmailError("Email already registered") from exc
        self.session.refresh(user)
        return user

    def authenticate(self, email: str, password: str) -> str:
        """Return a signed access token for valid credentials."""
        user = self.session.scalar(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        if not user:
            raise NotFoundError("The user doesn't exist. You should signup!")
        if not check_password(user.password, password):
            raise InvalidCredentialsError("Incorrect password. Please try again!")
        return issue_token(user)

    def get(self, user_id: str) -> User:
        return _require_user(self.session, user_id)

    def get_by_email(self, email: str) -> User:
        user = self.session.scalar(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        if not user:
            raise NotFoundError("User not found")
        return user

    def list_all(self) -> list[User]:
        stmt = select(User).order_by(User.created_at, User.email)
        return self.session.scalars(stmt).all()

    def delete(self, user_id: str) -> User:
        user = _require_user(self.session, user_id)
        self.session.delete(user)
        self.session.commit()
        return user

    def update_password(self, user_id: str, password: str) -> User:
        user = _require_user(self.session, user_id)
        user.password = password
        self.session.commit()
        self.session.refresh(user)
        return user

    def set_budget(self, user_id: str, budget: Decimal) -> User:
        user = _require_user(self.session, user_id)
        user.budget_cents = to_cents(budget, allow_negative=True)
        self.session.commit()
        self.session.refresh(user)
        return user


class TransactionService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, data: TransactionIn) -> Transaction:
        """Charge the user's budget and record the purchase as one unit.

        The affordability check is repeated by the conditional budget update,
        so a concurrent purchase that already drained the budget makes this
        one fail instead of overspending.
        """
        prices = [to_cents(item.price) for item in data.items]
        amount_spent = sum(prices)

        with atomic(self.session):
            user = _require_user(self.session, data.user_id)
            if user.budget_cents < amount_spent:
                raise InsufficientBudgetError()

            result = self.session.execute(
                update(User)
                .where(User.id == user.id, User.budget_cents >= amount_spent)
                .values(budget_cents=User.budget_cents - amount_spent)
            )
            if result.rowcount != 1:
                raise InsufficientBudgetError()

            txn = Transaction(user_id=user.id, amount_cents=amount_spent)
            txn.items = [
                Item(
                    name=item.name,
                    price_cents=price,
                    category_name=item.category_name,
                    position=position,
                )
                for position, (item, price) in enumerate(zip(data.items, prices))
            ]
            self.session.add(txn)
            self.session.flush()

        self.session.refresh(txn)
        return txn

    def get(self, transaction_id: str) -> Transaction:
        stmt = (
            select(Transaction)
            .options(selectinload(Transaction.items))
            .where(Transaction.id == transaction_id)
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def list_for_user(self, user_id: str) -> list[Transaction]:
        _require_user(self.session, user_id)
        stmt = (
            select(Transaction)
            .options(selectinload(Transaction.items))
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        )
        return self.session.scalars(stmt).all()

    def delete(self, transaction_id: str) -> None:
        txn = self.session.get(Transaction, transaction_id)
        if not txn:
            raise NotFoundError("Transaction not found")
        self.session.delete(txn)
        self.session.commit()

    def delete_all(self) -> int:
        with atomic(self.session):
            self.session.execute(delete(Item))
            result = self.session.execute(delete(Transaction))
        return result.rowcount or 0


class ItemService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[Item]:
        stmt = select(Item).order_by(Item.created_at, Item.position, Item.id)
        return self.session.scalars(stmt).all()

    def get(self, item_id: str) -> Item:
        item = self.session.get(Item, item_id)
        if not item:
            raise NotFoundError("Item not found")
        return item

    def filter_by_min_price(self, price: Decimal) -> list[Item]:
        min_cents = min_price_cents(price)
        stmt = (
            select(Item)
            .where(Item.price_cents >= min_cents)
            .order_by(Item.price_cents.asc(), Item.id)
        )
        return self.session.scalars(stmt).all()

    def delete_all(self) -> int:
        with atomic(self.session):
            result = self.session.execute(delete(Item))
        return result.rowcount or 0

    def update_price(self, item_id: str, new_price: Decimal) -> int:
        """Reprice an item and carry the difference to its transaction and owner.

        Returns the price difference in cents.
        """
        new_cents = to_cents(new_price)

        with atomic(self.session):
            item = self.session.get(Item, item_id)
            if not item:
                raise NotFoundError("Item not found")
            price_difference = new_cents - item.price_cents
            item.price_cents = new_cents

            txn = self.session.get(Transaction, item.transaction_id)
            if not txn:
                raise NotFoundError("Transaction not found")
            self.session.execute(
                update(Transaction)
                .where(Transaction.id == txn.id)
                .values(amount_cents=Transaction.amount_cents + price_difference)
            )

            user = self.session.scalar(
                select(User).where(User.id == txn.user_id).with_for_update()
            )
            if not user:
                raise NotFoundError("User not found")
            self.session.execute(
                update(User)
                .where(User.id == user.id)
                .values(budget_cents=User.budget_cents - price_difference)
            )

        return price_difference


class GoalExpenseService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(
        self, data: GoalExpenseIn, *, today: Optional[date] = None
    ) -> GoalExpense:
        _require_user(self.session, data.user_id)
        start = data.start_date or today or date.today()
        goal = GoalExpense(
            user_id=data.user_id,
            desired_amount_cents=to_cents(data.desired_amount),
            start_date=start,
            end_date=start + GOAL_WINDOW,
        )
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def list_all(self) -> list[GoalExpense]:
        stmt = select(GoalExpense).order_by(GoalExpense.created_at, GoalExpense.id)
        return self.session.scalars(stmt).all()

    def get(self, goal_id: str) -> GoalExpense:
        goal = self.session.get(GoalExpense, goal_id)
        if not goal:
            raise NotFoundError("Goal expense not found")
        return goal

    def update(self, goal_id: str, desired_amount: Decimal) -> GoalExpense:
        goal = self.get(goal_id)
        goal.desired_amount_cents = to_cents(desired_amount)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def delete(self, goal_id: str) -> None:
        goal = self.get(goal_id)
        self.session.delete(goal)
        self.session.commit()
