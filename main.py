import logging
from datetime import datetime
from typing import Iterator, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from csv_utils import iter_csv, parse_columns
from database import SessionLocal
from errors import AppError, AuthError, NotFoundError, UpstreamError, ValidationError
from filters import filters_from_params
from models import Transaction, User
from pagination import clamp_limit, clamp_page
from periods import resolve_date_range
from schemas import LoginIn, TransactionIn, UserRegisterIn
from security import NOT_AUTHORIZED, issue_token, verify_token
from services import (
    AuthService,
    MetricsService,
    TransactionService,
    cents_to_amount,
)
from sorting import resolve_sort

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Dashboard")


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


def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_db(factory: sessionmaker = Depends(get_session_factory)):
    db = factory()
    try:
        yield db
    finally:
        db.close()


bearer_scheme = HTTPBearer(auto_error=False)


def current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> int:
    if credentials is None or not credentials.credentials:
        raise AuthError(NOT_AUTHORIZED)
    return verify_token(credentials.credentials)


def _error_body(message: str, errors: Optional[list] = None) -> dict[str, object]:
    return {"success": False, "message": message, "errors": errors}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"request_failed: path={request.url.path} message={exc.message}")
    return JSONResponse(
        status_code=exc.status_code, content=_error_body(exc.message, exc.errors)
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = []
    for item in exc.errors():
        field = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
        errors.append({"field": field, "message": f"{field}: {item.get('msg')}"})
    error = ValidationError.from_fields(errors)
    return JSONResponse(
        status_code=error.status_code, content=_error_body(error.message, error.errors)
    )


@app.exception_handler(DBAPIError)
async def store_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    logger.exception(f"store_unavailable: path={request.url.path}")
    error = UpstreamError("Service temporarily unavailable")
    return JSONResponse(status_code=error.status_code, content=_error_body(error.message))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"unhandled_error: path={request.url.path}")
    return JSONResponse(status_code=500, content=_error_body("Server Error"))


def serialize_user(user: User) -> dict[str, object]:
    return {"id": user.id, "username": user.username, "email": user.email}


def serialize_transaction(txn: Transaction) -> dict[str, object]:
    return {
        "id": txn.id,
        "description": txn.description,
        "amount": cents_to_amount(txn.amount_cents),
        "type": txn.type.value,
        "category": txn.category,
        "date": txn.date.isoformat(),
        "status": txn.status.value,
        "createdAt": txn.created_at.isoformat(),
        "updatedAt": txn.updated_at.isoformat(),
    }


def _parse_id(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value <= 0:
        raise NotFoundError(f"Resource not found with id of {raw}")
    return value


def _parse_threshold(raw: Optional[str]) -> float:
    if raw is None or not raw.strip():
        return settings.chart_threshold
    try:
        value = float(raw)
    except ValueError:
        value = -1.0
    if not 0 <= value <= 1:
        message = f"Invalid threshold '{raw}'"
        raise ValidationError(message, errors=[{"field": "threshold", "message": message}])
    return value


@app.get("/api/health")
def health():
    return {"success": True, "version": APP_VERSION}


@app.post("/api/auth/register", status_code=201)
def register(data: UserRegisterIn, db: Session = Depends(get_db)):
    user = AuthService(db).register(data)
    return {"success": True, "token": issue_token(user.id), "user": serialize_user(user)}


@app.post("/api/auth/login")
def login(data: LoginIn, db: Session = Depends(get_db)):
    user = AuthService(db).authenticate(data.email, data.password)
    return {"success": True, "token": issue_token(user.id), "user": serialize_user(user)}


@app.get("/api/auth/me")
def me(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    user = AuthService(db).get_user(user_id)
    return {"success": True, "data": serialize_user(user)}


@app.get("/api/transactions")
def list_transactions(
    request: Request,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    params = request.query_params
    filters = filters_from_params(params)
    sort = resolve_sort(params.get("sortBy"), params.get("order"))
    page = clamp_page(params.get("page"))
    limit = clamp_limit(
        params.get("limit"),
        default=settings.default_page_limit,
        maximum=settings.max_page_limit,
    )
    result = TransactionService(db, user_id).list_page(filters, sort, page, limit)
    window = result.window
    return {
        "success": True,
        "count": len(result.items),
        "totalResults": window.total_results,
        "totalPages": window.total_pages,
        "currentPage": window.page,
        "pagination": window.descriptors(),
        "data": [serialize_transaction(txn) for txn in result.items],
    }


@app.post("/api/transactions", status_code=201)
def create_transaction(
    data: TransactionIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    txn = TransactionService(db, user_id).create(data)
    return {"success": True, "data": serialize_transaction(txn)}


@app.get("/api/transactions/summary")
def transaction_summary(
    request: Request,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    date_range = resolve_date_range(
        request.query_params.get("startDate"), request.query_params.get("endDate")
    )
    summary = MetricsService(db, user_id).summarize(date_range)
    return {
        "success": True,
        "data": {
            "monthlySummary": [
                {
                    "year": row.year,
                    "month": row.month,
                    "label": row.label,
                    "totalIncome": cents_to_amount(row.total_income),
                    "totalExpense": cents_to_amount(row.total_expense),
                }
                for row in summary.monthly
            ],
            "categoryBreakdown": [
                {
                    "category": row.category,
                    "totalAmount": cents_to_amount(row.total_amount),
                    "totalIncome": cents_to_amount(row.total_income),
                    "totalExpense": cents_to_amount(row.total_expense),
                }
                for row in summary.categories
            ],
            "summaryMetrics": {
                "totalIncome": cents_to_amount(summary.totals.total_income),
                "totalExpense": cents_to_amount(summary.totals.total_expense),
                "netProfit": cents_to_amount(summary.totals.net_profit),
            },
        },
    }


@app.get("/api/transactions/summary/chart")
def transaction_chart(
    request: Request,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    params = request.query_params
    date_range = resolve_date_range(params.get("startDate"), params.get("endDate"))
    threshold = _parse_threshold(params.get("threshold"))
    slices = MetricsService(db, user_id).chart_slices(date_range, threshold)
    return {
        "success": True,
        "data": [
            {
                "name": item.name,
                "value": cents_to_amount(item.value),
                "percent": item.percent,
            }
            for item in slices
        ],
    }


@app.get("/api/transactions/export-csv")
def export_transactions_csv(
    request: Request,
    user_id: int = Depends(current_user_id),
    factory: sessionmaker = Depends(get_session_factory),
):
    params = request.query_params
    filters = filters_from_params(params)
    columns = parse_columns(params.get("columns"))

    # The session outlives this handler and is closed once the body is sent.
    session = factory()
    try:
        rows = TransactionService(session, user_id).for_export(filters)
    except Exception:
        session.close()
        raise

    def stream() -> Iterator[str]:
        # Headers are already sent; a failure here truncates the body under a 200.
        try:
            yield from iter_csv(rows, columns)
        except Exception:
            logger.exception(f"csv_export_interrupted: user_id={user_id}")
            raise
        finally:
            session.close()

    logger.info(f"csv_export: user_id={user_id} columns={','.join(columns)}")

    filename = f"transactions_export_{datetime.utcnow().date().isoformat()}.csv"
    return StreamingResponse(
        stream(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/transactions/{transaction_id}")
def get_transaction(
    transaction_id: str,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    txn = TransactionService(db, user_id).get(_parse_id(transaction_id))
    return {"success": True, "data": serialize_transaction(txn)}


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
