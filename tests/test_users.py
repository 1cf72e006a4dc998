from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from auth import check_password, decode_token
from database import Base
from models import GoalExpense, Item, Transaction, User, UserRole
from schemas import GoalExpenseIn, ItemIn, SignUpIn, TransactionIn
from services import (
    DuplicateEmailError,
    GoalExpenseService,
    InvalidCredentialsError,
    NotFoundError,
    TransactionService,
    UserService,
)


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def test_password_is_hashed_on_signup() -> None:
    session = make_session()

    user = UserService(session).create(
        SignUpIn(email="Alice@Mail.com", name=" Alice ", password="hunter2")
    )

    stored = session.scalar(select(User.password).where(User.id == user.id))
    assert stored != "hunter2"
    assert check_password(stored, "hunter2")
    assert user.email == "alice@mail.com"
    assert user.name == "Alice"
    assert user.role == UserRole.regular
    assert user.budget_cents == 0


def test_password_is_hashed_on_every_write() -> None:
    session = make_session()
    users = UserService(session)
    user = users.create(SignUpIn(email="bob@mail.com", name="Bob", password="old"))

    users.update_password(user.id, "new-secret")
    stored = session.scalar(select(User.password).where(User.id == user.id))
    assert check_password(stored, "new-secret")
    assert not check_password(stored, "old")

    user.password = "direct"
    session.commit()
    stored = session.scalar(select(User.password).where(User.id == user.id))
    assert stored != "direct"
    assert check_password(stored, "direct")


def test_signup_rejects_duplicate_email() -> None:
    session = make_session()
    users = UserService(session)
    users.create(SignUpIn(email="bob@mail.com", name="Bob", password="pw"))

    with pytest.raises(DuplicateEmailError, match="Email already registered"):
        users.create(SignUpIn(email="BOB@mail.com", name="Bobby", password="pw"))


def test_configured_admin_email_gets_admin_role() -> None:
    session = make_session()

    user = UserService(session).create(
        SignUpIn(email="admin@mail.com", name="Root", password="pw")
    )

    assert user.role == UserRole.admin


def test_authenticate_issues_token_with_identity_claims() -> None:
    session = make_session()
    users = UserService(session)
    user = users.create(SignUpIn(email="carol@mail.com", name="Carol", password="pw"))

    claims = decode_token(users.authenticate("carol@mail.com", "pw"))

    assert claims["userId"] == user.id
    assert claims["email"] == "carol@mail.com"
    assert claims["role"] == "REGULAR"


def test_authenticate_failures() -> None:
    session = make_session()
    users = UserService(session)
    users.create(SignUpIn(email="carol@mail.com", name="Carol", password="pw"))

    with pytest.raises(NotFoundError, match="You should signup"):
        users.authenticate("nobody@mail.com", "pw")
    with pytest.raises(InvalidCredentialsError, match="Incorrect password"):
        users.authenticate("carol@mail.com", "wrong")


def test_set_budget_replaces_balance() -> None:
    session = make_session()
    users = UserService(session)
    user = users.create(SignUpIn(email="dan@mail.com", name="Dan", password="pw"))

    users.set_budget(user.id, Decimal("100"))
    updated = users.set_budget(user.id, Decimal("-12.345"))

    assert updated.budget_cents == -1_235
    with pytest.raises(NotFoundError):
        users.set_budget("missing", Decimal("1"))


def test_delete_user_removes_owned_records() -> None:
    session = make_session()
    users = UserService(session)
    user = users.create(SignUpIn(email="erin@mail.com", name="Erin", password="pw"))
    users.set_budget(user.id, Decimal("50"))
    TransactionService(session).create(
        TransactionIn(user_id=user.id, items=[ItemIn(name="Tea", price=Decimal("3"))])
    )
    GoalExpenseService(session).create(
        GoalExpenseIn(user_id=user.id, desired_amount=Decimal("40"))
    )

    users.delete(user.id)

    for model in (User, Transaction, Item, GoalExpense):
        assert session.scalar(select(func.count()).select_from(model)) == 0
    with pytest.raises(NotFoundError):
        users.delete(user.id)
