"""Test the error taxonomy and the store error classifier."""

import pytest
from sqlalchemy.exc import (
    ArgumentError,
    IntegrityError,
    NoResultFound,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)

from gitops_db.core.context import QueryContext
from gitops_db.core.errors import (
    Canceled,
    ConstraintViolation,
    Forbidden,
    GitOpsDBError,
    InvalidArgument,
    NotFound,
    PermissionDenied,
    StoreUnavailable,
    Unexpected,
    is_forbidden_error,
    is_invalid_argument_error,
    is_result_not_found_error,
    is_retryable_error,
)
from gitops_db.infrastructure.postgres.errors import classify_store_error


def _operational_error():
    return OperationalError("SELECT 1", {}, Exception("server closed the connection unexpectedly"))


class TestPredicates:
    """Test the predicates callers branch on."""

    def test_not_found(self):
        assert is_result_not_found_error(NotFound("x"))
        assert not is_result_not_found_error(Forbidden("x"))
        assert not is_result_not_found_error(StoreUnavailable("x"))
        assert not is_result_not_found_error(ValueError("not found"))

    def test_forbidden_includes_permission_denied(self):
        assert is_forbidden_error(Forbidden("x"))
        assert is_forbidden_error(PermissionDenied("x"))
        assert not is_forbidden_error(NotFound("x"))

    def test_invalid_argument(self):
        assert is_invalid_argument_error(InvalidArgument("x"))
        assert not is_invalid_argument_error(NotFound("x"))

    def test_only_store_unavailable_is_retryable(self):
        assert is_retryable_error(StoreUnavailable("x"))
        assert is_retryable_error(Canceled("x"))

        for error in (InvalidArgument("x"), Forbidden("x"), NotFound("x"),
                      ConstraintViolation("x"), Unexpected("x")):
            assert not is_retryable_error(error)


class TestClassifier:
    """Test mapping of SQLAlchemy exceptions."""

    def test_no_result(self):
        assert isinstance(classify_store_error(NoResultFound()), NotFound)

    def test_integrity_error(self):
        exc = IntegrityError("INSERT", {}, Exception("duplicate key value"))
        error = classify_store_error(exc)

        assert isinstance(error, ConstraintViolation)
        assert "duplicate key value" in str(error)

    def test_operational_error(self):
        assert isinstance(classify_store_error(_operational_error()), StoreUnavailable)

    def test_pool_timeout(self):
        assert isinstance(classify_store_error(PoolTimeoutError("pool exhausted")), StoreUnavailable)

    def test_unclassified_sqlalchemy_error(self):
        assert isinstance(classify_store_error(ArgumentError("bad")), Unexpected)

    def test_foreign_exception(self):
        assert isinstance(classify_store_error(RuntimeError("boom")), Unexpected)

    def test_already_classified_passes_through(self):
        error = NotFound("x")
        assert classify_store_error(error) is error

    def test_cancelled_context_turns_connection_error_into_canceled(self):
        ctx = QueryContext()
        ctx.cancel()

        error = classify_store_error(_operational_error(), ctx, "get Application app1")

        assert isinstance(error, Canceled)
        assert isinstance(error, StoreUnavailable)
        assert "get Application app1" in str(error)

    def test_cancelled_context_does_not_hide_constraint_violation(self):
        ctx = QueryContext()
        ctx.cancel()
        exc = IntegrityError("INSERT", {}, Exception("duplicate"))

        assert isinstance(classify_store_error(exc, ctx), ConstraintViolation)

    def test_live_context_leaves_store_unavailable(self):
        error = classify_store_error(_operational_error(), QueryContext.background())

        assert type(error) is StoreUnavailable


@pytest.mark.parametrize("error_type", [InvalidArgument, Forbidden, NotFound, StoreUnavailable, Unexpected])
def test_taxonomy_shares_a_base(error_type):
    assert issubclass(error_type, GitOpsDBError)
