import logging
from decimal import Decimal

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from amounts import from_cents
from auth import require_admin
from config import get_settings
from database import get_db, init_db
from models import GoalExpense, Item, Transaction, User
from schemas import (
    GoalExpenseIn,
    GoalExpenseUpdate,
    PasswordUpdateIn,
    SignInIn,
    SignUpIn,
    TransactionIn,
)
from services import (
    DuplicateEmailError,
    GoalExpenseService,
    InsufficientBudgetError,
    InvalidCredentialsError,
    ItemService,
    NotFoundError,
    TransactionService,
    UserService,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()

app = FastAPI(
    title="Finance Management API",
    description="Budgets, purchase transactions and spending goals.",
    version=APP_VERSION,
    docs_url="/api-docs",
)


@app.on_event("startup")
def startup_event():
    init_db()
    logger.info("Finance API %s started", APP_VERSION)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) if get_settings().debug else "Internal server error"
    return JSONResponse(status_code=500, content={"error": message})


def user_json(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "budget": from_cents(user.budget_cents),
        "createdAt": user.created_at.isoformat(),
    }


def item_json(item: Item) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "price": from_cents(item.price_cents),
        "categoryName": item.category_name,
        "transactionId": item.transaction_id,
    }


def transaction_json(txn: Transaction) -> dict:
    return {
        "id": txn.id,
        "userId": txn.user_id,
        "amount": from_cents(txn.amount_cents),
        "createdAt": txn.created_at.isoformat(),
        "items": [item_json(item) for item in txn.items],
    }


def goal_expense_json(goal: GoalExpense) -> dict:
    return {
        "id": goal.id,
        "userId": goal.user_id,
        "desiredAmount": from_cents(goal.desired_amount_cents),
        "startDate": goal.start_date.isoformat(),
        "endDate": goal.end_date.isoformat(),
    }


@app.get("/health")
def health():
    return {"status": "ok"}


# Goal expenses


@app.post("/goal-expenses/add", tags=["goal-expenses"])
def add_goal_expense(data: GoalExpenseIn, db: Session = Depends(get_db)):
    try:
        goal = GoalExpenseService(db).create(data)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return goal_expense_json(goal)


@app.get("/goal-expenses", tags=["goal-expenses"])
def list_goal_expenses(
    db: Session = Depends(get_db), _claims: dict = Depends(require_admin)
):
    return [goal_expense_json(goal) for goal in GoalExpenseService(db).list_all()]


@app.delete("/goal-expenses/delete", tags=["goal-expenses"])
def delete_goal_expense(id: str = Query(...), db: Session = Depends(get_db)):
    try:
        GoalExpenseService(db).delete(id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"message": "Goal expense deleted successfully"}


@app.put("/goal-expenses/update", tags=["goal-expenses"])
def update_goal_expense(data: GoalExpenseUpdate, db: Session = Depends(get_db)):
    try:
        goal = GoalExpenseService(db).update(data.id, data.desired_amount)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return goal_expense_json(goal)


# Transactions


@app.post("/transaction/create-transaction", tags=["transactions"])
def create_transaction(data: TransactionIn, db: Session = Depends(get_db)):
    try:
        txn = TransactionService(db).create(data)
    except InsufficientBudgetError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    logger.info(
        "transaction_created: user=%s amount_cents=%s items=%s",
        txn.user_id,
        txn.amount_cents,
        len(data.items),
    )
    return {"message": "Transaction created successfully", "transactionId": txn.id}


@app.get("/transaction", tags=["transactions"])
def get_transaction(id: str = Query(...), db: Session = Depends(get_db)):
    try:
        txn = TransactionService(db).get(id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return transaction_json(txn)


@app.get("/transaction/user-transactions", tags=["transactions"])
def list_user_transactions(
    user_id: str = Query(..., alias="userId"), db: Session = Depends(get_db)
):
    try:
        transactions = TransactionService(db).list_for_user(user_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [transaction_json(txn) for txn in transactions]


@app.delete("/transaction/delete-transaction", tags=["transactions"])
def delete_transaction(id: str = Query(...), db: Session = Depends(get_db)):
    try:
        TransactionService(db).delete(id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"message": "Transaction deleted successfully!"}


@app.delete("/transaction/delete-transactions", tags=["transactions"])
def delete_transactions(db: Session = Depends(get_db)):
    count = TransactionService(db).delete_all()
    logger.info("transactions_deleted: count=%s", count)
    return {"message": "Transactions deleted successfully!"}


# Items


@app.get("/items", tags=["items"])
def list_items(db: Session = Depends(get_db)):
    return [item_json(item) for item in ItemService(db).list_all()]


@app.get("/items/filter-items", tags=["items"])
def filter_items(
    price: Decimal = Query(..., max_digits=12), db: Session = Depends(get_db)
):
    return [item_json(item) for item in ItemService(db).filter_by_min_price(price)]


@app.get("/items/item", tags=["items"])
def get_item(id: str = Query(...), db: Session = Depends(get_db)):
    try:
        item = ItemService(db).get(id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return item_json(item)


@app.delete("/items/delete-items", tags=["items"])
def delete_items(db: Session = Depends(get_db)):
    count = ItemService(db).delete_all()
    logger.info("items_deleted: count=%s", count)
    return {"message": "Items deleted successfully!"}


@app.put("/items/update-item-price", tags=["items"])
def update_item_price(
    item_id: str = Query(..., alias="itemId"),
    new_price: Decimal = Query(
        ..., alias="newPrice", ge=0, max_digits=12, decimal_places=2
    ),
    db: Session = Depends(get_db),
):
    try:
        difference = ItemService(db).update_price(item_id, new_price)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    logger.info("item_repriced: item=%s difference_cents=%s", item_id, difference)
    return {"message": "Item price updated successfully"}


# Users


@app.get("/users", tags=["users"])
def get_user_by_email(
    email: str = Query(...),
    db: Session = Depends(get_db),
    _claims: dict = Depends(require_admin),
):
    try:
        user = UserService(db).get_by_email(email)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return user_json(user)


@app.get("/users/all-users", tags=["users"])
def list_users(db: Session = Depends(get_db), _claims: dict = Depends(require_admin)):
    return [user_json(user) for user in UserService(db).list_all()]


@app.post("/users/signup", tags=["users"])
def signup(data: SignUpIn, db: Session = Depends(get_db)):
    try:
        user = UserService(db).create(data)
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return user_json(user)


@app.post("/users/signin", tags=["users"])
def signin(data: SignInIn, db: Session = Depends(get_db)):
    try:
        token = UserService(db).authenticate(data.email, data.password)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidCredentialsError as exc:
        logger.info("signin_failed: email=%s", data.email)
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return {"token": token}


@app.delete("/users/delete-user", tags=["users"])
def delete_user(
    id: str = Query(...),
    db: Session = Depends(get_db),
    _claims: dict = Depends(require_admin),
):
    service = UserService(db)
    try:
        payload = user_json(service.get(id))
        service.delete(id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"message": "User deleted successfully", "user": payload}


@app.put("/users/update-password", tags=["users"])
def update_password(data: PasswordUpdateIn, db: Session = Depends(get_db)):
    try:
        user = UserService(db).update_password(data.id, data.password)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return user_json(user)


@app.put("/users/add-budget", tags=["users"])
def add_budget(
    id: str = Query(...),
    budget: Decimal = Query(..., max_digits=12, decimal_places=2),
    db: Session = Depends(get_db),
):
    try:
        user = UserService(db).set_budget(id, budget)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return user_json(user)
