#gitops_db\infrastructure\postgres\privileged_repository.py

"""
Unchecked queries for reconcilers, test fixtures and migration tooling.

Nothing here takes a caller identity. Every method is gated twice: the
engine must be constructed with allow_unsafe=True, and each call re-checks
that flag and fails with PermissionDenied otherwise.
"""

import logging
from typing import List, Optional

from gitops_db.core.context import QueryContext
from gitops_db.core.errors import InvalidArgument, NotFound, PermissionDenied, StoreUnavailable
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
from gitops_db.core.validation import is_empty
from gitops_db.infrastructure.postgres.base import QueryRunner
from gitops_db.infrastructure.postgres.database import ConnectionPool
from gitops_db.infrastructure.postgres.models import (
    ApplicationORM,
    ClusterUserORM,
    OperationORM,
)


logger = logging.getLogger(__name__)


class PrivilegedQueries:
    """Unscoped CRUD; only usable when constructed with allow_unsafe=True."""

    def __init__(self, pool: Optional[ConnectionPool], allow_unsafe: bool = False):
        self._pool = pool
        self._allow_unsafe = bool(allow_unsafe)
        self._runner = QueryRunner(pool, "privileged")

    @property
    def allow_unsafe(self) -> bool:
        return self._allow_unsafe

    def _gate(self, action: str) -> QueryRunner:
        if self._pool is None:
            raise StoreUnavailable("database connection is nil")
        if not self._allow_unsafe:
            logger.warning(f"[privileged] refused {action}: engine built without allow_unsafe")
            raise PermissionDenied(f"unsafe call to {action} is not allowed")
        return self._runner

    # -------------------------
    # CLUSTER USER
    # -------------------------

    def unsafe_list_all_cluster_users(self, ctx: Optional[QueryContext] = None) -> List[ClusterUser]:
        return self._gate("list_all_cluster_users").list_all(ctx, ClusterUser)

    def unsafe_get_cluster_user_by_id(
        self, cluster_user_id: str, ctx: Optional[QueryContext] = None
    ) -> ClusterUser:
        return self._gate("get_cluster_user_by_id").get(ctx, ClusterUser, cluster_user_id)

    def unsafe_get_cluster_user_by_username(
        self, user_name: str, ctx: Optional[QueryContext] = None
    ) -> ClusterUser:
        runner = self._gate("get_cluster_user_by_username")
        if is_empty(user_name):
            raise InvalidArgument("user name is empty")

        users = runner.list_all(ctx, ClusterUser, ClusterUserORM.user_name == user_name)
        if not users:
            raise NotFound(f"ClusterUser with user name {user_name!r} not found")
        return users[0]

    def unsafe_create_cluster_user(
        self, cluster_user: ClusterUser, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("create_cluster_user").create(ctx, cluster_user)

    def unsafe_update_cluster_user(
        self, cluster_user: ClusterUser, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("update_cluster_user").replace(ctx, cluster_user)

    def unsafe_delete_cluster_user_by_id(
        self, cluster_user_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        return self._gate("delete_cluster_user_by_id").delete(ctx, ClusterUser, cluster_user_id)

    # -------------------------
    # CLUSTER CREDENTIALS
    # -------------------------

    def unsafe_list_all_cluster_credentials(
        self, ctx: Optional[QueryContext] = None
    ) -> List[ClusterCredentials]:
        return self._gate("list_all_cluster_credentials").list_all(ctx, ClusterCredentials)

    def unsafe_get_cluster_credentials_by_id(
        self, credentials_id: str, ctx: Optional[QueryContext] = None
    ) -> ClusterCredentials:
        return self._gate("get_cluster_credentials_by_id").get(ctx, ClusterCredentials, credentials_id)

    def unsafe_create_cluster_credentials(
        self, credentials: ClusterCredentials, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("create_cluster_credentials").create(ctx, credentials)

    def unsafe_update_cluster_credentials(
        self, credentials: ClusterCredentials, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("update_cluster_credentials").replace(ctx, credentials)

    def unsafe_delete_cluster_credentials_by_id(
        self, credentials_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        return self._gate("delete_cluster_credentials_by_id").delete(
            ctx, ClusterCredentials, credentials_id
        )

    # -------------------------
    # GITOPS ENGINE CLUSTER
    # -------------------------

    def unsafe_list_all_gitops_engine_clusters(
        self, ctx: Optional[QueryContext] = None
    ) -> List[GitopsEngineCluster]:
        return self._gate("list_all_gitops_engine_clusters").list_all(ctx, GitopsEngineCluster)

    def unsafe_get_gitops_engine_cluster_by_id(
        self, engine_cluster_id: str, ctx: Optional[QueryContext] = None
    ) -> GitopsEngineCluster:
        return self._gate("get_gitops_engine_cluster_by_id").get(
            ctx, GitopsEngineCluster, engine_cluster_id
        )

    def unsafe_create_gitops_engine_cluster(
        self, engine_cluster: GitopsEngineCluster, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("create_gitops_engine_cluster").create(ctx, engine_cluster)

    def unsafe_update_gitops_engine_cluster(
        self, engine_cluster: GitopsEngineCluster, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("update_gitops_engine_cluster").replace(ctx, engine_cluster)

    def unsafe_delete_gitops_engine_cluster_by_id(
        self, engine_cluster_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        return self._gate("delete_gitops_engine_cluster_by_id").delete(
            ctx, GitopsEngineCluster, engine_cluster_id
        )

    # -------------------------
    # GITOPS ENGINE INSTANCE
    # -------------------------

    def unsafe_list_all_gitops_engine_instances(
        self, ctx: Optional[QueryContext] = None
    ) -> List[GitopsEngineInstance]:
        return self._gate("list_all_gitops_engine_instances").list_all(ctx, GitopsEngineInstance)

    def unsafe_get_gitops_engine_instance_by_id(
        self, engine_instance_id: str, ctx: Optional[QueryContext] = None
    ) -> GitopsEngineInstance:
        return self._gate("get_gitops_engine_instance_by_id").get(
            ctx, GitopsEngineInstance, engine_instance_id
        )

    def unsafe_create_gitops_engine_instance(
        self, engine_instance: GitopsEngineInstance, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("create_gitops_engine_instance").create(ctx, engine_instance)

    def unsafe_update_gitops_engine_instance(
        self, engine_instance: GitopsEngineInstance, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("update_gitops_engine_instance").replace(ctx, engine_instance)

    def unsafe_delete_gitops_engine_instance_by_id(
        self, engine_instance_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        return self._gate("delete_gitops_engine_instance_by_id").delete(
            ctx, GitopsEngineInstance, engine_instance_id
        )

    # -------------------------
    # MANAGED ENVIRONMENT
    # -------------------------

    def unsafe_list_all_managed_environments(
        self, ctx: Optional[QueryContext] = None
    ) -> List[ManagedEnvironment]:
        return self._gate("list_all_managed_environments").list_all(ctx, ManagedEnvironment)

    def unsafe_get_managed_environment_by_id(
        self, managed_environment_id: str, ctx: Optional[QueryContext] = None
    ) -> ManagedEnvironment:
        return self._gate("get_managed_environment_by_id").get(
            ctx, ManagedEnvironment, managed_environment_id
        )

    def unsafe_create_managed_environment(
        self, managed_environment: ManagedEnvironment, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("create_managed_environment").create(ctx, managed_environment)

    def unsafe_update_managed_environment(
        self, managed_environment: ManagedEnvironment, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("update_managed_environment").replace(ctx, managed_environment)

    def unsafe_delete_managed_environment_by_id(
        self, managed_environment_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        return self._gate("delete_managed_environment_by_id").delete(
            ctx, ManagedEnvironment, managed_environment_id
        )

    # -------------------------
    # CLUSTER ACCESS (create/delete only)
    # -------------------------

    def unsafe_list_all_cluster_access(self, ctx: Optional[QueryContext] = None) -> List[ClusterAccess]:
        return self._gate("list_all_cluster_access").list_all(ctx, ClusterAccess)

    def unsafe_get_cluster_access_by_id(
        self,
        user_id: str,
        managed_environment_id: str,
        engine_instance_id: str,
        ctx: Optional[QueryContext] = None,
    ) -> ClusterAccess:
        key = (user_id, managed_environment_id, engine_instance_id)
        return self._gate("get_cluster_access_by_id").get(ctx, ClusterAccess, key)

    def unsafe_create_cluster_access(
        self, cluster_access: ClusterAccess, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("create_cluster_access").create(ctx, cluster_access)

    def unsafe_delete_cluster_access_by_id(
        self,
        user_id: str,
        managed_environment_id: str,
        engine_instance_id: str,
        ctx: Optional[QueryContext] = None,
    ) -> int:
        key = (user_id, managed_environment_id, engine_instance_id)
        return self._gate("delete_cluster_access_by_id").delete(ctx, ClusterAccess, key)

    # -------------------------
    # APPLICATION
    # -------------------------

    def unsafe_list_all_applications(self, ctx: Optional[QueryContext] = None) -> List[Application]:
        return self._gate("list_all_applications").list_all(ctx, Application)

    def unsafe_list_applications_for_environment(
        self, managed_environment_id: str, ctx: Optional[QueryContext] = None
    ) -> List[Application]:
        runner = self._gate("list_applications_for_environment")
        if is_empty(managed_environment_id):
            raise InvalidArgument("managed environment id is empty")
        return runner.list_all(
            ctx, Application, ApplicationORM.managed_environment_id == managed_environment_id
        )

    def unsafe_get_application_by_id(
        self, application_id: str, ctx: Optional[QueryContext] = None
    ) -> Application:
        return self._gate("get_application_by_id").get(ctx, Application, application_id)

    def unsafe_create_application(
        self, application: Application, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("create_application").create(ctx, application)

    def unsafe_update_application(
        self, application: Application, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("update_application").replace(ctx, application)

    def unsafe_delete_application_by_id(
        self, application_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        """Also removes the Application's state and deployment mappings, atomically."""
        return self._gate("delete_application_by_id").delete_application(ctx, application_id)

    # -------------------------
    # APPLICATION STATE
    # -------------------------

    def unsafe_list_all_application_states(
        self, ctx: Optional[QueryContext] = None
    ) -> List[ApplicationState]:
        return self._gate("list_all_application_states").list_all(ctx, ApplicationState)

    def unsafe_get_application_state_by_id(
        self, application_id: str, ctx: Optional[QueryContext] = None
    ) -> ApplicationState:
        return self._gate("get_application_state_by_id").get(ctx, ApplicationState, application_id)

    def unsafe_create_application_state(
        self, application_state: ApplicationState, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("create_application_state").create(ctx, application_state)

    def unsafe_update_application_state(
        self, application_state: ApplicationState, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("update_application_state").replace(ctx, application_state)

    def unsafe_delete_application_state_by_id(
        self, application_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        return self._gate("delete_application_state_by_id").delete(
            ctx, ApplicationState, application_id
        )

    # -------------------------
    # OPERATION
    # -------------------------

    def unsafe_list_all_operations(self, ctx: Optional[QueryContext] = None) -> List[Operation]:
        return self._gate("list_all_operations").list_all(ctx, Operation)

    def unsafe_list_operations_for_resource(
        self, resource_id: str, resource_type: str, ctx: Optional[QueryContext] = None
    ) -> List[Operation]:
        runner = self._gate("list_operations_for_resource")
        if is_empty(resource_id) or is_empty(resource_type):
            raise InvalidArgument("resource id and resource type are required")
        return runner.list_all(
            ctx,
            Operation,
            OperationORM.resource_id == resource_id,
            OperationORM.resource_type == resource_type,
        )

    def unsafe_get_operation_by_id(
        self, operation_id: str, ctx: Optional[QueryContext] = None
    ) -> Operation:
        return self._gate("get_operation_by_id").get(ctx, Operation, operation_id)

    def unsafe_create_operation(self, operation: Operation, ctx: Optional[QueryContext] = None) -> None:
        self._gate("create_operation").create(ctx, operation)

    def unsafe_update_operation(self, operation: Operation, ctx: Optional[QueryContext] = None) -> None:
        self._gate("update_operation").replace(ctx, operation)

    def unsafe_delete_operation_by_id(
        self, operation_id: str, ctx: Optional[QueryContext] = None
    ) -> int:
        return self._gate("delete_operation_by_id").delete(ctx, Operation, operation_id)

    # -------------------------
    # DEPLOYMENT TO APPLICATION MAPPING
    # -------------------------

    def unsafe_list_all_deployment_to_application_mappings(
        self, ctx: Optional[QueryContext] = None
    ) -> List[DeploymentToApplicationMapping]:
        return self._gate("list_all_deployment_to_application_mappings").list_all(
            ctx, DeploymentToApplicationMapping
        )

    def unsafe_get_deployment_to_application_mapping_by_id(
        self, deployment_uid: str, ctx: Optional[QueryContext] = None
    ) -> DeploymentToApplicationMapping:
        return self._gate("get_deployment_to_application_mapping_by_id").get(
            ctx, DeploymentToApplicationMapping, deployment_uid
        )

    def unsafe_create_deployment_to_application_mapping(
        self, mapping: DeploymentToApplicationMapping, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("create_deployment_to_application_mapping").create(ctx, mapping)

    def unsafe_update_deployment_to_application_mapping(
        self, mapping: DeploymentToApplicationMapping, ctx: Optional[QueryContext] = None
    ) -> None:
        self._gate("update_deployment_to_application_mapping").replace(ctx, mapping)

    def unsafe_delete_deployment_to_application_mapping_by_id(
        self, deployment_uid: str, ctx: Optional[QueryContext] = None
    ) -> int:
        return self._gate("delete_deployment_to_application_mapping_by_id").delete(
            ctx, DeploymentToApplicationMapping, deployment_uid
        )
