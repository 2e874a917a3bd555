# errors.py
from contextlib import contextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from logger import logger


class ExpenseTrackerError(Exception):
    """Base class for every failure that reaches the HTTP boundary."""

    reason = "Internal server error"


class ValidationError(ExpenseTrackerError):
    reason = "Invalid request body"


class NotFound(ExpenseTrackerError):
    reason = "Expense not found"


class Conflict(ExpenseTrackerError):
    reason = "Username or email already exists"


class ConnectivityError(ExpenseTrackerError):
    pass


class SchemaError(ExpenseTrackerError):
    pass


class StoreError(ExpenseTrackerError):
    pass


STATUS_BY_KIND = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    ConnectivityError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    SchemaError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    StoreError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: ExpenseTrackerError) -> int:
    for kind, code in STATUS_BY_KIND.items():
        if isinstance(exc, kind):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def detail_for(exc: ExpenseTrackerError) -> str:
    # 500-class failures carry the underlying message, the rest a stable reason
    if status_for(exc) >= 500:
        return str(exc) or exc.reason
    return exc.reason


@contextmanager
def store_errors():
    """Re-raise any SQLAlchemy failure inside the block as a StoreError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Store operation failed: {e}")
        raise StoreError(str(e)) from e


async def expense_tracker_error_handler(request: Request, exc: ExpenseTrackerError):
    return JSONResponse(status_code=status_for(exc), content={"detail": detail_for(exc)})


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    # Only field locations: the rejected input may hold a password
    fields = [".".join(str(p) for p in e["loc"]) for e in exc.errors()]
    logger.debug(f"Rejected body for {request.method} {request.url.path}: {fields}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": ValidationError.reason},
    )


def install_error_handlers(app: FastAPI):
    app.add_exception_handler(ExpenseTrackerError, expense_tracker_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
