"""Main FastAPI application for the Money Flow finance tracker."""
import os
import time
import logging
import logging.config
import datetime as dt
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Depends, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import SQLModel, create_engine, Session, select

from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from aggregation import (
    AggregationService,
    category_lookup,
    goal_row,
    TREND_MONTHS,
    transaction_row,
    transactions_query,
)
from models import Category, Goal, Transaction
from schemas import (
    CategoryCreate,
    CategoryRead,
    Dashboard,
    GoalCreate,
    GoalRead,
    GoalUpdate,
    TransactionCreate,
    TransactionRead,
    TransactionType,
)
from utils import month_end, normalize_month, shift_month

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(name)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "default": {
            "class": "rich.logging.RichHandler",
            "formatter": "default",
            "level": "DEBUG",
            "rich_tracebacks": True,
            "show_time": True,
            "show_path": False,
            "log_time_format": "%Y-%m-%d %H:%M:%S",
        },
    },
    "loggers": {
        "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "uvicorn.error": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "uvicorn.access": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "": {"handlers": ["default"], "level": LOG_LEVEL, "propagate": False},
    },
}

logging.config.dictConfig(LOGGING_CONFIG)
logger = logging.getLogger(__name__)

# FastAPI is the main framework that handles HTTP requests.
app = FastAPI(title="Money Flow", version="0.1.0")
instrumentator = Instrumentator().instrument(app)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# API endpoint for quick health checks
@app.get("/")
def root():
    return {"message": "Money Flow API is running. See /health for status."}

@app.get("/health")
def health():
    return {
        "status": "ok",
        "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
        "app": "money-flow",
        "version": "0.1.0",
    }

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./money_flow.db")
if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}
else:
    connect_args = {}

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    echo=False,
)

DEFAULT_CATEGORIES = [
    # Income categories
    ("Salary", "income", "💼", "#10b981"),
    ("Freelance", "income", "💻", "#6366f1"),
    ("Investments", "income", "📈", "#f59e0b"),
    ("Gifts", "income", "🎁", "#ec4899"),
    ("Other Income", "income", "💰", "#8b5cf6"),
    # Expense categories
    ("Food & Dining", "expense", "🍔", "#ef4444"),
    ("Transportation", "expense", "🚗", "#f97316"),
    ("Shopping", "expense", "🛒", "#a855f7"),
    ("Bills & Utilities", "expense", "📄", "#64748b"),
    ("Entertainment", "expense", "🎮", "#06b6d4"),
    ("Health", "expense", "🏥", "#22c55e"),
    ("Education", "expense", "📚", "#3b82f6"),
    ("Other Expense", "expense", "📦", "#78716c"),
]


# Turn FastAPI's 422 into a 400 with a readable message listing the bad fields.
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{field}: {err.get('msg')}" if field else err.get("msg"))
    detail = "Invalid request: " + "; ".join(problems)
    logger.info("Rejected %s %s: %s", request.method, request.url.path, detail)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Storage error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )


# This function gives me a session (temporary connection) to the database.
# It opens before each request and closes automatically after.
def get_session():
    """Provide a database session per request."""
    with Session(engine) as session:
        yield session


def get_aggregation_service(session: Session = Depends(get_session)) -> AggregationService:
    """Aggregation queries bound to the request's session."""
    return AggregationService(session)


def get_or_404(session: Session, model, row_id: int, label: str):
    """Fetch a row by primary key or raise a 404."""
    row = session.get(model, row_id)
    if not row:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return row


def parse_month_or_400(month: Optional[str], window_months: int = 1) -> Optional[dt.date]:
    """Parse YYYY-MM; the `window_months` months ending there must be valid dates."""
    if month is None:
        return None
    try:
        first = normalize_month(month)
        shift_month(first, -(window_months - 1))
        return first
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def save_and_refresh(session: Session, instance):
    """Persist and refresh an instance in the current session."""
    session.add(instance)
    session.commit()
    session.refresh(instance)
    return instance


def delete_and_commit(session: Session, instance) -> None:
    session.delete(instance)
    session.commit()


def seed_default_categories(session: Session) -> None:
    """Seed default categories if none exist."""
    existing_category = session.exec(select(Category)).first()
    if existing_category:
        logger.info("Categories already exist, skipping seed")
        return

    session.add_all(
        [
            Category(name=name, type=type_, icon=icon, color=color)
            for name, type_, icon, color in DEFAULT_CATEGORIES
        ]
    )
    session.commit()
    logger.info("Added %d default categories", len(DEFAULT_CATEGORIES))

@app.on_event("startup")
def on_startup() -> None:
    """
    Run once when the app starts:
    - Wait for the database to be ready
    - Create tables
    - Seed default categories
    - Expose Prometheus /metrics
    """
    retries = 10
    delay = 2  # seconds
    last_exc: Exception | None = None

    for attempt in range(1, retries + 1):
        try:
            SQLModel.metadata.create_all(engine)

            with Session(engine) as session:
                seed_default_categories(session)

            instrumentator.expose(app)

            logger.info("Database ready, tables created, categories seeded.")
            return
        except OperationalError as exc:
            last_exc = exc
            logger.warning(
                "DB not ready yet (attempt %d/%d); waiting %ds...",
                attempt,
                retries,
                delay,
            )
            time.sleep(delay)

    logger.error("Giving up connecting to the database.")
    if last_exc:
        raise last_exc
    raise RuntimeError("Database not reachable on startup.")


# DASHBOARD
@app.get("/api/dashboard", response_model=Dashboard)
def get_dashboard(
    month: Optional[str] = Query(default=None, description="YYYY-MM, defaults to the current month"),
    service: AggregationService = Depends(get_aggregation_service),
):
    """Monthly totals, balances, trend, category breakdown, recent rows and goals."""
    return service.dashboard(parse_month_or_400(month, TREND_MONTHS))


# TRANSACTION ENDPOINTS
# Newest first, joined with category icon/color for display.
@app.get("/api/transactions", response_model=list[TransactionRead])
def list_transactions(
    tx_type: Optional[TransactionType] = Query(default=None, alias="type"),
    month: Optional[str] = Query(default=None, description="YYYY-MM"),
    limit: int = Query(default=50, ge=1, le=1000),
    session: Session = Depends(get_session),
):
    """List transactions, optionally filtered by type and month."""
    first = parse_month_or_400(month)
    stmt = transactions_query(
        date_from=first,
        date_to=month_end(first) if first else None,
        tx_type=tx_type,
    ).limit(limit)
    rows = session.exec(stmt).all()
    lookup = category_lookup(session.exec(select(Category)).all())
    return [transaction_row(t, lookup) for t in rows]

# Create a transaction. The category is referenced by name and is not required to exist.
@app.post("/api/transactions", response_model=TransactionRead, status_code=201)
def create_transaction(payload: TransactionCreate, session: Session = Depends(get_session)):
    """Create an income or expense transaction."""
    row = save_and_refresh(session, Transaction(**payload.model_dump()))
    logger.info("Added %s #%s (%s, %s)", row.type, row.id, row.category, row.amount)
    category = session.exec(select(Category).where(Category.name == row.category)).first()
    return transaction_row(row, category_lookup([category] if category else []))

@app.delete("/api/transactions/{transaction_id}", status_code=204)
def delete_transaction(transaction_id: int, session: Session = Depends(get_session)):
    """Delete a transaction."""
    transaction = get_or_404(session, Transaction, transaction_id, "Transaction")
    delete_and_commit(session, transaction)
    logger.info("Deleted transaction #%s", transaction_id)
    return None


# CATEGORY ENDPOINTS
@app.get("/api/categories", response_model=list[CategoryRead])
def list_categories(
    tx_type: Optional[TransactionType] = Query(default=None, alias="type"),
    session: Session = Depends(get_session),
):
    """List categories ordered by type and name."""
    stmt = select(Category).order_by(Category.type, Category.name)
    if tx_type:
        stmt = stmt.where(Category.type == tx_type)
    return session.exec(stmt).all()

# I prevent duplicates by checking the name first.
@app.post("/api/categories", response_model=CategoryRead, status_code=201)
def create_category(payload: CategoryCreate, session: Session = Depends(get_session)):
    """Create a new category."""
    existing = session.exec(select(Category).where(Category.name == payload.name)).first()
    if existing:
        raise HTTPException(status_code=400, detail="Category already exists")
    return save_and_refresh(session, Category(**payload.model_dump()))

# Transactions keep the deleted name; the dashboard shows them with default icon/color.
@app.delete("/api/categories/{category_id}", status_code=204)
def delete_category(category_id: int, session: Session = Depends(get_session)):
    """Delete a category without touching the transactions that use its name."""
    category = get_or_404(session, Category, category_id, "Category")
    name = category.name
    delete_and_commit(session, category)
    logger.info("Deleted category %r", name)
    return None


# GOAL ENDPOINTS
@app.get("/api/goals", response_model=list[GoalRead])
def list_goals(service: AggregationService = Depends(get_aggregation_service)):
    """List goals, newest first, with progress."""
    return service.goals()

@app.get("/api/goals/{goal_id}", response_model=GoalRead)
def get_goal(goal_id: int, session: Session = Depends(get_session)):
    return goal_row(get_or_404(session, Goal, goal_id, "Goal"))

@app.post("/api/goals", response_model=GoalRead, status_code=201)
def create_goal(payload: GoalCreate, session: Session = Depends(get_session)):
    """Create a savings goal."""
    goal = save_and_refresh(session, Goal(**payload.model_dump()))
    logger.info("Added goal #%s %r", goal.id, goal.name)
    return goal_row(goal)

# Only the fields provided (and not null) in the request are changed.
@app.put("/api/goals/{goal_id}", response_model=GoalRead)
def update_goal(
    goal_id: int,
    payload: GoalUpdate,
    session: Session = Depends(get_session),
):
    """Update a goal, typically its current_amount."""
    goal = get_or_404(session, Goal, goal_id, "Goal")

    data = payload.model_dump(exclude_unset=True)
    for field, value in data.items():
        if value is not None:
            setattr(goal, field, value)

    return goal_row(save_and_refresh(session, goal))

@app.delete("/api/goals/{goal_id}", status_code=204)
def delete_goal(goal_id: int, session: Session = Depends(get_session)):
    """Delete a goal."""
    goal = get_or_404(session, Goal, goal_id, "Goal")
    delete_and_commit(session, goal)
    logger.info("Deleted goal #%s", goal_id)
    return None


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
