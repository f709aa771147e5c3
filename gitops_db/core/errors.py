# gitops_db/core/errors.py

# -----------------------------
# Base Errors
# -----------------------------

class GitOpsDBError(Exception):
    """Base class for all gitops database errors."""
    retryable = False


# -----------------------------
# Caller Errors
# -----------------------------

class InvalidArgument(GitOpsDBError):
    """Empty or malformed key or record supplied by the caller."""
    pass


class Forbidden(GitOpsDBError):
    """Owner mismatch detected before the store was reached."""
    pass


class PermissionDenied(Forbidden):
    """Privileged operation invoked on an engine built without allow_unsafe."""
    pass


# -----------------------------
# Store Errors
# -----------------------------

class NotFound(GitOpsDBError):
    """
    No row matched a keyed lookup.

    Also raised when the row exists but the caller is not authorized to see it.
    """
    pass


class ConstraintViolation(GitOpsDBError):
    """Duplicate key or broken foreign key reference."""
    pass


class StoreUnavailable(GitOpsDBError):
    """Pool unset, connection failure, timeout."""
    retryable = True


class Canceled(StoreUnavailable):
    """The caller's context was cancelled or its deadline passed."""
    pass


class Unexpected(GitOpsDBError):
    """Store error that does not classify cleanly."""
    pass


# -----------------------------
# Predicates
# -----------------------------

def is_result_not_found_error(err: BaseException) -> bool:
    return isinstance(err, NotFound)


def is_forbidden_error(err: BaseException) -> bool:
    return isinstance(err, Forbidden)


def is_invalid_argument_error(err: BaseException) -> bool:
    return isinstance(err, InvalidArgument)


def is_retryable_error(err: BaseException) -> bool:
    return isinstance(err, GitOpsDBError) and err.retryable
