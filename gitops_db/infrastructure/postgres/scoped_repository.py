#gitops_db\infrastructure\postgres\scoped_repository.py

"""
Ownership-scoped queries.

Every method acts on behalf of one caller user id. Reads and deletes carry
the entity's ownership predicate in their WHERE clause, so "not yours" and
"does not exist" are the same outcome: NotFound for reads, 0 rows for deletes.
"""

import logging
from typing import Any, Optional

from gitops_db.core.context import QueryContext
from gitops_db.core.errors import Forbidden, InvalidArgument
from gitops_db.core.models import (
    Application,
    ApplicationState,
    ClusterAccess,
    ClusterCredentials,
    ClusterUser,
    DeploymentToApplicationMapping,
    GitopsEngineCluster,
    GitopsEngineInstance,
    ManagedEnvironment,
    Operation,
)
from gitops_db.core.validation import is_empty, validate_record
from gitops_db.infrastructure.postgres.base import QueryRunner
from gitops_db.infrastructure.postgres.database import ConnectionPool
from gitops_db.infrastructure.postgres.ownership import rule_for


logger = logging.getLogger(__name__)


class ScopedQueries:
    """Ownership-checked CRUD for request-handling code."""

    def __init__(self, pool: Optional[ConnectionPool]):
        self._runner = QueryRunner(pool, "scoped")

    # -------------------------
    # GENERIC HELPERS
    # -------------------------

    @staticmethod
    def _require_user(user_id: str) -> None:
        if is_empty(user_id):
            raise InvalidArgument("caller user id is empty")

    def _get(self, ctx, entity_type, key, user_id: str) -> Any:
        self._require_user(user_id)
        return self._runner.get(ctx, entity_type, key, rule_for(entity_type).row(user_id))

    def _delete(self, ctx, entity_type, key, user_id: str) -> int:
        self._require_user(user_id)
        return self._runner.delete(ctx, entity_type, key, rule_for(entity_type).row(user_id))

    def _check_owner(self, record: Any, user_id: str) -> None:
        """Owner-column entities: a caller can only write rows it owns."""
        self._require_user(user_id)
        validate_record(record)

        rule = rule_for(type(record))
        owner = getattr(record, rule.owner_field)
        if owner != user_id:
            logger.warning(
                f"[scoped] {type(record).__name__} owner {owner!r} does not match caller {user_id!r}"
            )
            raise Forbidden(f"{type(record).__name__} owner does not match caller")

    def _create_granted(self, ctx, record: Any, user_id: str) -> None:
        """ClusterAccess-chain entities: insert only if the caller's grant already exists."""
        self._require_user(user_id)
        predicate = rule_for(type(record)).create(record, user_id)
        self._runner.create_where(ctx, record, predicate)

    # -------------------------
    # CLUSTER USER
    # -------------------------

    def get_cluster_user_by_id(
        self, cluster_user_id: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> ClusterUser:
        """A user can only read its own row."""
        return self._get(ctx, ClusterUser, cluster_user_id, user_id)

    # -------------------------
    # CLUSTER CREDENTIALS
    # -------------------------

    def get_cluster_credentials_by_id(
        self, credentials_id: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> ClusterCredentials:
        """Reachable through a granted environment, or a granted instance's engine cluster."""
        return self._get(ctx, ClusterCredentials, credentials_id, user_id)

    # -------------------------
    # GITOPS ENGINE CLUSTER
    # -------------------------

    def get_gitops_engine_cluster_by_id(
        self, engine_cluster_id: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> GitopsEngineCluster:
        return self._get(ctx, GitopsEngineCluster, engine_cluster_id, user_id)

    # -------------------------
    # GITOPS ENGINE INSTANCE
    # -------------------------

    def get_gitops_engine_instance_by_id(
        self, engine_instance_id: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> GitopsEngineInstance:
        return self._get(ctx, GitopsEngineInstance, engine_instance_id, user_id)

    def delete_gitops_engine_instance_by_id(
        self, engine_instance_id: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        return self._delete(ctx, GitopsEngineInstance, engine_instance_id, user_id)

    # -------------------------
    # MANAGED ENVIRONMENT
    # -------------------------

    def get_managed_environment_by_id(
        self, managed_environment_id: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> ManagedEnvironment:
        return self._get(ctx, ManagedEnvironment, managed_environment_id, user_id)

    def delete_managed_environment_by_id(
        self, managed_environment_id: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        return self._delete(ctx, ManagedEnvironment, managed_environment_id, user_id)

    # -------------------------
    # CLUSTER ACCESS
    # -------------------------

    def create_cluster_access(
        self, cluster_access: ClusterAccess, user_id: str, ctx: Optional[QueryContext] = None
    ) -> None:
        """
        Record a grant for the caller.

        The caller must already hold a grant on the environment and one on
        the instance; otherwise nothing is inserted and NotFound is raised.
        A first grant only comes from PrivilegedQueries.

        Fails with Forbidden when the grant names another user; a duplicate
        grant is rejected with ConstraintViolation.
        """
        self._check_owner(cluster_access, user_id)
        self._create_granted(ctx, cluster_access, user_id)

    def get_cluster_access_by_id(
        self,
        user_id: str,
        managed_environment_id: str,
        engine_instance_id: str,
        caller_user_id: str,
        ctx: Optional[QueryContext] = None,
    ) -> ClusterAccess:
        key = (user_id, managed_environment_id, engine_instance_id)
        return self._get(ctx, ClusterAccess, key, caller_user_id)

    def delete_cluster_access_by_id(
        self,
        user_id: str,
        managed_environment_id: str,
        engine_instance_id: str,
        caller_user_id: str,
        ctx: Optional[QueryContext] = None,
    ) -> int:
        key = (user_id, managed_environment_id, engine_instance_id)
        return self._delete(ctx, ClusterAccess, key, caller_user_id)

    # -------------------------
    # APPLICATION
    # -------------------------

    def create_application(
        self, application: Application, user_id: str, ctx: Optional[QueryContext] = None
    ) -> None:
        """NotFound unless the caller holds ClusterAccess to the (environment, instance) pair."""
        self._create_granted(ctx, application, user_id)

    def get_application_by_id(
        self, application_id: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> Application:
        return self._get(ctx, Application, application_id, user_id)

    def update_application(
        self, application: Application, user_id: str, ctx: Optional[QueryContext] = None
    ) -> None:
        """Replace the row; the caller must be granted both the old and the new target."""
        self._require_user(user_id)
        rule = rule_for(Application)
        self._runner.replace(ctx, application, rule.row(user_id), rule.create(application, user_id))

    def delete_application_by_id(
        self, application_id: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        """Also removes the Application's state and deployment mappings, atomically."""
        self._require_user(user_id)
        return self._runner.delete_application(
            ctx, application_id, user_id=user_id, predicate=rule_for(Application).row(user_id)
        )

    # -------------------------
    # APPLICATION STATE
    # -------------------------

    def create_application_state(
        self, application_state: ApplicationState, user_id: str, ctx: Optional[QueryContext] = None
    ) -> None:
        self._create_granted(ctx, application_state, user_id)

    def get_application_state_by_id(
        self, application_id: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> ApplicationState:
        return self._get(ctx, ApplicationState, application_id, user_id)

    def update_application_state(
        self, application_state: ApplicationState, user_id: str, ctx: Optional[QueryContext] = None
    ) -> None:
        self._require_user(user_id)
        self._runner.replace(ctx, application_state, rule_for(ApplicationState).row(user_id))

    def delete_application_state_by_id(
        self, application_id: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        return self._delete(ctx, ApplicationState, application_id, user_id)

    # -------------------------
    # OPERATION
    # -------------------------

    def create_operation(
        self, operation: Operation, user_id: str, ctx: Optional[QueryContext] = None
    ) -> None:
        """Forbidden when operation.owner_user_id is not the caller."""
        self._check_owner(operation, user_id)
        self._runner.create(ctx, operation)

    def get_operation_by_id(
        self, operation_id: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> Operation:
        return self._get(ctx, Operation, operation_id, user_id)

    def update_operation(
        self, operation: Operation, user_id: str, ctx: Optional[QueryContext] = None
    ) -> None:
        self._check_owner(operation, user_id)
        self._runner.replace(ctx, operation, rule_for(Operation).row(user_id))

    def delete_operation_by_id(
        self, operation_id: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        return self._delete(ctx, Operation, operation_id, user_id)

    # -------------------------
    # DEPLOYMENT TO APPLICATION MAPPING
    # -------------------------

    def create_deployment_to_application_mapping(
        self,
        mapping: DeploymentToApplicationMapping,
        user_id: str,
        ctx: Optional[QueryContext] = None,
    ) -> None:
        self._create_granted(ctx, mapping, user_id)

    def get_deployment_to_application_mapping_by_id(
        self, deployment_uid: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> DeploymentToApplicationMapping:
        return self._get(ctx, DeploymentToApplicationMapping, deployment_uid, user_id)

    def delete_deployment_to_application_mapping_by_id(
        self, deployment_uid: str, user_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        return self._delete(ctx, DeploymentToApplicationMapping, deployment_uid, user_id)
