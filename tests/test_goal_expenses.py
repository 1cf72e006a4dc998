from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from schemas import GoalExpenseIn, SignUpIn
from services import GoalExpenseService, NotFoundError, UserService


def test_goal_expense_spans_thirty_days() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = UserService(session).create(
            SignUpIn(email="saver@mail.com", name="Saver", password="pw")
        )
        goal = GoalExpenseService(session).create(
            GoalExpenseIn(user_id=user.id, desired_amount=Decimal("500")),
            today=date(2025, 1, 15),
        )

        assert goal.start_date == date(2025, 1, 15)
        assert goal.end_date == date(2025, 2, 14)
        assert goal.desired_amount_cents == 50_000


def test_goal_expense_uses_explicit_start_date() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = UserService(session).create(
            SignUpIn(email="saver@mail.com", name="Saver", password="pw")
        )
        goal = GoalExpenseService(session).create(
            GoalExpenseIn(
                user_id=user.id,
                desired_amount=Decimal("1000"),
                start_date=date(2024, 2, 10),
            )
        )

        assert goal.end_date == date(2024, 3, 11)


def test_goal_expense_requires_existing_user() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        with pytest.raises(NotFoundError, match="User not found"):
            GoalExpenseService(session).create(
                GoalExpenseIn(user_id="nobody", desired_amount=Decimal("10"))
            )
        assert GoalExpenseService(session).list_all() == []


def test_goal_expense_update_and_delete() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = UserService(session).create(
            SignUpIn(email="saver@mail.com", name="Saver", password="pw")
        )
        service = GoalExpenseService(session)
        first = service.create(
            GoalExpenseIn(user_id=user.id, desired_amount=Decimal("500"))
        )
        service.create(GoalExpenseIn(user_id=user.id, desired_amount=Decimal("1000")))

        updated = service.update(first.id, Decimal("750.25"))
        assert updated.desired_amount_cents == 75_025
        assert len(service.list_all()) == 2

        service.delete(first.id)
        assert len(service.list_all()) == 1

        with pytest.raises(NotFoundError, match="Goal expense not found"):
            service.delete(first.id)
        with pytest.raises(NotFoundError):
            service.update(first.id, Decimal("1"))
