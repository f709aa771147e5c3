"""Map SQLAlchemy failures onto the gitops_db error taxonomy."""

from typing import Optional

from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    NoResultFound,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)

from gitops_db.core.context import QueryContext
from gitops_db.core.errors import (
    Canceled,
    ConstraintViolation,
    GitOpsDBError,
    NotFound,
    StoreUnavailable,
    Unexpected,
)


_CONNECTION_ERRORS = (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)


def classify_store_error(
    exc: BaseException,
    ctx: Optional[QueryContext] = None,
    action: str = "query",
) -> GitOpsDBError:
    """
    Return the taxonomy error for a store-level exception.

    The caller raises the result `from exc`. Errors that are already
    classified pass through untouched.
    """
    if isinstance(exc, GitOpsDBError):
        return exc

    if isinstance(exc, NoResultFound):
        return NotFound(f"{action}: no rows in result set")

    if isinstance(exc, IntegrityError):
        return ConstraintViolation(f"{action}: {_root_message(exc)}")

    if isinstance(exc, _CONNECTION_ERRORS):
        # An interrupted statement surfaces as an OperationalError
        if ctx is not None and ctx.done:
            return Canceled(f"{action} aborted: {ctx.reason}")
        return StoreUnavailable(f"{action}: {_root_message(exc)}")

    if isinstance(exc, SQLAlchemyError):
        return Unexpected(f"{action}: {_root_message(exc)}")

    return Unexpected(f"{action}: {exc!r}")


def _root_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc).strip()
