"""Statement runner shared by the scoped and privileged query engines."""

import logging
from typing import Any, Callable, List, Optional, Type, TypeVar

from sqlalchemy import delete, insert, literal, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from gitops_db.core.context import QueryContext
from gitops_db.core.errors import GitOpsDBError, NotFound, StoreUnavailable
from gitops_db.core.models import Application
from gitops_db.core.validation import normalize_key, record_key, record_values, validate_record
from gitops_db.infrastructure.postgres.database import ConnectionPool
from gitops_db.infrastructure.postgres.errors import classify_store_error
from gitops_db.infrastructure.postgres.models import (
    ApplicationORM,
    ApplicationStateORM,
    DeploymentToApplicationMappingORM,
)
from gitops_db.infrastructure.postgres.ownership import binding_for, owns_application


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _interrupt_callback(session: Session) -> Callable[[], None]:
    """Build a callback that aborts the statement running on the session's connection."""
    dbapi_conn = session.connection().connection.dbapi_connection
    # psycopg2/psycopg expose cancel(), sqlite3 exposes interrupt()
    interrupt = getattr(dbapi_conn, "cancel", None) or getattr(dbapi_conn, "interrupt", None)

    def fire() -> None:
        if interrupt is None:
            logger.warning("Context canceled but the DBAPI connection cannot be interrupted")
            return
        try:
            interrupt()
        except Exception as e:
            logger.warning(f"Failed to interrupt in-flight statement: {e}")

    return fire


def _format_key(key) -> str:
    return "/".join(key)


class QueryRunner:
    """
    One session, one commit per call.

    Every call: resolve the pool, check the context, open a session, arm the
    interrupt, run the work, commit. Failures roll back and are classified.
    """

    def __init__(self, pool: Optional[ConnectionPool], label: str):
        self._pool = pool
        self._label = label

    def run(self, ctx: Optional[QueryContext], action: str, work: Callable[[Session], T]) -> T:
        ctx = ctx or QueryContext.background()

        if self._pool is None:
            raise StoreUnavailable("database connection is nil")
        session_factory = self._pool.session_factory

        ctx.check()

        session = session_factory()
        handle = None
        try:
            handle = ctx.on_cancel(_interrupt_callback(session))
            ctx.check()
            result = work(session)
            session.commit()
            return result
        except GitOpsDBError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            error = classify_store_error(e, ctx, action)
            logger.debug(f"[{self._label}] {action} -> {type(error).__name__}: {error}")
            raise error from e
        finally:
            if handle is not None:
                ctx.remove_callback(handle)
            session.close()

    # -------------------------
    # READ
    # -------------------------

    def get(
        self,
        ctx: Optional[QueryContext],
        entity_type: Type[Any],
        key: Any,
        predicate: Optional[ColumnElement] = None,
    ) -> Any:
        binding = binding_for(entity_type)
        parts = normalize_key(entity_type, key)
        action = f"get {binding.label} {_format_key(parts)}"

        def work(session: Session) -> Any:
            query = session.query(binding.orm).filter(binding.key_clause(parts))
            if predicate is not None:
                query = query.filter(predicate)

            orm = query.one_or_none()
            if orm is None:
                logger.debug(f"[{self._label}] {action} -> not found")
                raise NotFound(f"{binding.label} {_format_key(parts)} not found")

            logger.debug(f"[{self._label}] {action} -> found")
            return binding.to_domain(orm)

        return self.run(ctx, action, work)

    def list_all(
        self,
        ctx: Optional[QueryContext],
        entity_type: Type[Any],
        *criteria: ColumnElement,
    ) -> List[Any]:
        binding = binding_for(entity_type)
        action = f"list {binding.label}"

        def work(session: Session) -> List[Any]:
            results = session.query(binding.orm).filter(*criteria).all()
            logger.debug(f"[{self._label}] {action} -> {len(results)} rows")
            return [binding.to_domain(orm) for orm in results]

        return self.run(ctx, action, work)

    # -------------------------
    # CREATE
    # -------------------------

    def create(self, ctx: Optional[QueryContext], record: Any) -> None:
        """Plain insert; duplicate keys surface as ConstraintViolation."""
        validate_record(record)
        binding = binding_for(type(record))
        action = f"create {binding.label} {_format_key(record_key(record))}"

        def work(session: Session) -> None:
            session.add(binding.to_orm(record))
            session.flush()
            logger.debug(f"[{self._label}] {action} -> done")

        self.run(ctx, action, work)

    def create_where(self, ctx: Optional[QueryContext], record: Any, predicate: ColumnElement) -> None:
        """
        INSERT ... SELECT <values> WHERE <predicate>.

        Inserts nothing (and raises NotFound) when the predicate does not hold.
        """
        validate_record(record)
        binding = binding_for(type(record))
        action = f"create {binding.label} {_format_key(record_key(record))}"

        table = binding.orm.__table__
        values = record_values(record)
        source = select(*[
            literal(value, type_=table.c[name].type) for name, value in values.items()
        ]).where(predicate)
        stmt = insert(table).from_select(list(values), source)

        def work(session: Session) -> None:
            result = session.execute(stmt)
            if result.rowcount == 0:
                logger.debug(f"[{self._label}] {action} -> no matching grant")
                raise NotFound(f"{binding.label} {_format_key(record_key(record))}: owning resource not found")
            logger.debug(f"[{self._label}] {action} -> done")

        self.run(ctx, action, work)

    # -------------------------
    # UPDATE
    # -------------------------

    def replace(self, ctx: Optional[QueryContext], record: Any, *predicates: ColumnElement) -> None:
        """Whole-row replace of every non-key field."""
        validate_record(record)
        binding = binding_for(type(record))
        key = record_key(record)
        action = f"update {binding.label} {_format_key(key)}"

        values = {
            name: value for name, value in record_values(record).items()
            if name not in binding.key_names
        }
        stmt = (
            update(binding.orm)
            .where(binding.key_clause(key), *predicates)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        def work(session: Session) -> None:
            result = session.execute(stmt)
            if result.rowcount == 0:
                logger.debug(f"[{self._label}] {action} -> not found")
                raise NotFound(f"{binding.label} {_format_key(key)} not found")
            logger.debug(f"[{self._label}] {action} -> done")

        self.run(ctx, action, work)

    # -------------------------
    # DELETE
    # -------------------------

    def delete(
        self,
        ctx: Optional[QueryContext],
        entity_type: Type[Any],
        key: Any,
        predicate: Optional[ColumnElement] = None,
    ) -> int:
        binding = binding_for(entity_type)
        parts = normalize_key(entity_type, key)
        action = f"delete {binding.label} {_format_key(parts)}"

        stmt = delete(binding.orm).where(binding.key_clause(parts))
        if predicate is not None:
            stmt = stmt.where(predicate)
        stmt = stmt.execution_options(synchronize_session=False)

        def work(session: Session) -> int:
            rows = session.execute(stmt).rowcount
            logger.debug(f"[{self._label}] {action} -> {rows} rows")
            return rows

        return self.run(ctx, action, work)

    def delete_application(
        self,
        ctx: Optional[QueryContext],
        application_id: str,
        user_id: Optional[str] = None,
        predicate: Optional[ColumnElement] = None,
    ) -> int:
        """
        Delete an Application with its mappings and state in one transaction.

        With user_id set, dependants are only removed when that user owns the
        Application; predicate constrains the Application row itself.
        """
        (application_id,) = normalize_key(Application, application_id)
        action = f"delete Application {application_id}"

        mappings = delete(DeploymentToApplicationMappingORM).where(
            DeploymentToApplicationMappingORM.application_id == application_id
        )
        if user_id is not None:
            mappings = mappings.where(owns_application(user_id, application_id))

        application = delete(ApplicationORM).where(ApplicationORM.application_id == application_id)
        if predicate is not None:
            application = application.where(predicate)

        state = delete(ApplicationStateORM).where(ApplicationStateORM.application_id == application_id)

        def work(session: Session) -> int:
            session.execute(mappings.execution_options(synchronize_session=False))
            rows = session.execute(application.execution_options(synchronize_session=False)).rowcount
            if rows:
                session.execute(state.execution_options(synchronize_session=False))
            logger.debug(f"[{self._label}] {action} -> {rows} rows")
            return rows

        return self.run(ctx, action, work)
