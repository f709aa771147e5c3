#tests\test_privileged_queries.py

"""Test the privileged (unsafe) query engine."""

import pytest

from gitops_db.core.context import QueryContext
from gitops_db.core.errors import (
    Canceled,
    ConstraintViolation,
    InvalidArgument,
    NotFound,
    PermissionDenied,
    StoreUnavailable,
    is_forbidden_error,
)
from gitops_db.core.models import (
    Application,
    ApplicationState,
    ClusterCredentials,
    ClusterUser,
    DeploymentToApplicationMapping,
    GitopsEngineCluster,
    ManagedEnvironment,
    Operation,
    OperationState,
)
from gitops_db.infrastructure.postgres.database import ConnectionPool
from gitops_db.infrastructure.postgres.privileged_repository import PrivilegedQueries

from tests.conftest import TEST_USER_ID


class TestUnsafeGate:
    """Test that every call is refused without allow_unsafe."""

    def test_flag_is_read_only(self, pool):
        engine = PrivilegedQueries(pool)

        assert engine.allow_unsafe is False
        with pytest.raises(AttributeError):
            engine.allow_unsafe = True

    @pytest.mark.parametrize("call", [
        lambda engine: engine.unsafe_list_all_cluster_users(),
        lambda engine: engine.unsafe_get_cluster_user_by_id(TEST_USER_ID),
        lambda engine: engine.unsafe_create_cluster_user(ClusterUser("test-x", "test-x")),
        lambda engine: engine.unsafe_delete_managed_environment_by_id("test-env"),
        lambda engine: engine.unsafe_list_operations_for_resource("r", "Application"),
    ])
    def test_refused_without_flag(self, pool, call):
        engine = PrivilegedQueries(pool, allow_unsafe=False)

        with pytest.raises(PermissionDenied) as exc_info:
            call(engine)

        assert is_forbidden_error(exc_info.value)

    def test_refused_call_writes_nothing(self, pool, admin):
        with pytest.raises(PermissionDenied):
            PrivilegedQueries(pool).unsafe_create_cluster_user(ClusterUser("test-x", "test-x"))
        assert admin.unsafe_list_all_cluster_users() == []

    def test_missing_pool_is_checked_first(self):
        with pytest.raises(StoreUnavailable):
            PrivilegedQueries(None, allow_unsafe=False).unsafe_list_all_cluster_users()


class TestClusterUsers:

    def test_crud(self, admin):
        user = ClusterUser(cluster_user_id="test-u1", user_name="alice")

        admin.unsafe_create_cluster_user(user)
        assert admin.unsafe_get_cluster_user_by_id("test-u1") == user
        assert admin.unsafe_get_cluster_user_by_username("alice") == user

        user.user_name = "alice2"
        admin.unsafe_update_cluster_user(user)
        assert admin.unsafe_get_cluster_user_by_id("test-u1").user_name == "alice2"

        assert admin.unsafe_delete_cluster_user_by_id("test-u1") == 1
        assert admin.unsafe_delete_cluster_user_by_id("test-u1") == 0
        with pytest.raises(NotFound):
            admin.unsafe_get_cluster_user_by_id("test-u1")

    def test_unknown_username(self, admin):
        with pytest.raises(NotFound):
            admin.unsafe_get_cluster_user_by_username("nobody")

    def test_empty_username(self, admin):
        with pytest.raises(InvalidArgument):
            admin.unsafe_get_cluster_user_by_username("")

    def test_duplicate_username(self, admin):
        admin.unsafe_create_cluster_user(ClusterUser("test-u1", "alice"))

        with pytest.raises(ConstraintViolation):
            admin.unsafe_create_cluster_user(ClusterUser("test-u2", "alice"))

    def test_update_missing(self, admin):
        with pytest.raises(NotFound):
            admin.unsafe_update_cluster_user(ClusterUser("test-missing", "ghost"))


class TestInfrastructure:

    def test_list_all(self, admin, sample_data):
        assert admin.unsafe_list_all_cluster_credentials() == [sample_data.credentials]
        assert admin.unsafe_list_all_gitops_engine_clusters() == [sample_data.engine_cluster]
        assert admin.unsafe_list_all_gitops_engine_instances() == [sample_data.engine_instance]
        assert admin.unsafe_list_all_managed_environments() == [sample_data.managed_environment]
        assert admin.unsafe_list_all_cluster_access() == [sample_data.cluster_access]

    def test_update_credentials(self, admin, sample_data):
        credentials = sample_data.credentials
        credentials.host = "https://api.example.com:6443"

        admin.unsafe_update_cluster_credentials(credentials)

        assert admin.unsafe_get_cluster_credentials_by_id(credentials.credentials_id).host == credentials.host

    def test_engine_cluster_with_credentials(self, admin, sample_data):
        cluster = GitopsEngineCluster(
            engine_cluster_id="test-second-cluster",
            credentials_id=sample_data.credentials.credentials_id,
        )

        admin.unsafe_create_gitops_engine_cluster(cluster)

        assert admin.unsafe_get_gitops_engine_cluster_by_id("test-second-cluster") == cluster

    def test_dangling_foreign_key(self, admin):
        env = ManagedEnvironment(
            managed_environment_id="test-env", name="env", credentials_id="test-no-such-creds"
        )

        with pytest.raises(ConstraintViolation):
            admin.unsafe_create_managed_environment(env)

    def test_referenced_row_cannot_be_deleted(self, admin, sample_data):
        with pytest.raises(ConstraintViolation):
            admin.unsafe_delete_gitops_engine_cluster_by_id(sample_data.engine_cluster.engine_cluster_id)

    def test_duplicate_cluster_access(self, admin, sample_data):
        with pytest.raises(ConstraintViolation):
            admin.unsafe_create_cluster_access(sample_data.cluster_access)

    def test_get_cluster_access(self, admin, sample_data):
        access = sample_data.cluster_access

        found = admin.unsafe_get_cluster_access_by_id(
            access.user_id, access.managed_environment_id, access.engine_instance_id
        )

        assert found == access


class TestApplications:

    @pytest.fixture
    def application(self, admin, sample_data) -> Application:
        application = Application(
            application_id="test-app",
            name="app",
            spec_field="kind: Application",
            engine_instance_id=sample_data.engine_instance.engine_instance_id,
            managed_environment_id=sample_data.managed_environment.managed_environment_id,
        )
        admin.unsafe_create_application(application)
        return application

    def test_list_for_environment(self, admin, application):
        assert admin.unsafe_list_applications_for_environment(application.managed_environment_id) == [application]
        assert admin.unsafe_list_applications_for_environment("test-other-env") == []

    def test_list_for_empty_environment_id(self, admin):
        with pytest.raises(InvalidArgument):
            admin.unsafe_list_applications_for_environment("")

    def test_update(self, admin, application):
        application.spec_field = "kind: Application\nspec: {}"

        admin.unsafe_update_application(application)

        assert admin.unsafe_get_application_by_id(application.application_id) == application

    def test_delete_cascades(self, admin, application):
        admin.unsafe_create_application_state(ApplicationState(application.application_id, "Healthy"))
        admin.unsafe_create_deployment_to_application_mapping(
            DeploymentToApplicationMapping("test-uid", application.application_id)
        )

        assert admin.unsafe_delete_application_by_id(application.application_id) == 1

        with pytest.raises(NotFound):
            admin.unsafe_get_application_state_by_id(application.application_id)
        with pytest.raises(NotFound):
            admin.unsafe_get_deployment_to_application_mapping_by_id("test-uid")

    def test_application_state_crud(self, admin, application):
        state = ApplicationState(application.application_id, "Progressing")
        admin.unsafe_create_application_state(state)

        state.state = "Degraded"
        admin.unsafe_update_application_state(state)

        assert admin.unsafe_get_application_state_by_id(application.application_id) == state
        assert admin.unsafe_delete_application_state_by_id(application.application_id) == 1

    def test_mapping_update(self, admin, application, sample_data):
        second = Application(
            application_id="test-app-2",
            name="app-2",
            spec_field="",
            engine_instance_id=application.engine_instance_id,
            managed_environment_id=application.managed_environment_id,
        )
        admin.unsafe_create_application(second)
        mapping = DeploymentToApplicationMapping("test-uid", application.application_id)
        admin.unsafe_create_deployment_to_application_mapping(mapping)

        mapping.application_id = second.application_id
        admin.unsafe_update_deployment_to_application_mapping(mapping)

        assert admin.unsafe_list_all_deployment_to_application_mappings() == [mapping]


class TestOperations:

    def _operation(self, sample_data, operation_id, resource_id="test-resource") -> Operation:
        return Operation(
            operation_id=operation_id,
            instance_id=sample_data.engine_instance.engine_instance_id,
            resource_id=resource_id,
            resource_type="Application",
            owner_user_id=TEST_USER_ID,
        )

    def test_list_for_resource(self, admin, sample_data):
        first = self._operation(sample_data, "test-op-1")
        second = self._operation(sample_data, "test-op-2")
        unrelated = self._operation(sample_data, "test-op-3", resource_id="test-other")
        for operation in (first, second, unrelated):
            admin.unsafe_create_operation(operation)

        found = admin.unsafe_list_operations_for_resource("test-resource", "Application")

        assert sorted(o.operation_id for o in found) == ["test-op-1", "test-op-2"]
        assert admin.unsafe_list_operations_for_resource("test-resource", "ManagedEnvironment") == []

    def test_list_for_resource_requires_both_fields(self, admin):
        with pytest.raises(InvalidArgument):
            admin.unsafe_list_operations_for_resource("test-resource", "")

    def test_state_transitions(self, admin, sample_data):
        operation = self._operation(sample_data, "test-op")
        admin.unsafe_create_operation(operation)

        for state in (OperationState.IN_PROGRESS, OperationState.FAILED):
            operation.state = state
            admin.unsafe_update_operation(operation)
            assert admin.unsafe_get_operation_by_id("test-op").state is state

        assert admin.unsafe_delete_operation_by_id("test-op") == 1

    def test_unknown_owner(self, admin, sample_data):
        operation = self._operation(sample_data, "test-op")
        operation.owner_user_id = "test-nobody"

        with pytest.raises(ConstraintViolation):
            admin.unsafe_create_operation(operation)


class TestStoreFailures:

    def test_closed_pool(self, test_engine):
        pool = ConnectionPool(engine=test_engine).open()
        admin = PrivilegedQueries(pool, allow_unsafe=True)
        pool.close()

        with pytest.raises(StoreUnavailable):
            admin.unsafe_list_all_cluster_users()

    def test_never_opened_pool(self, test_engine):
        admin = PrivilegedQueries(ConnectionPool(engine=test_engine), allow_unsafe=True)

        with pytest.raises(StoreUnavailable):
            admin.unsafe_get_cluster_user_by_id(TEST_USER_ID)

    def test_cancelled_context(self, admin):
        ctx = QueryContext()
        ctx.cancel("request aborted")

        with pytest.raises(Canceled) as exc_info:
            admin.unsafe_create_cluster_credentials(ClusterCredentials("test-creds"), ctx)

        assert exc_info.value.retryable
        assert admin.unsafe_list_all_cluster_credentials() == []

    def test_expired_deadline(self, admin):
        with pytest.raises(Canceled):
            admin.unsafe_list_all_managed_environments(QueryContext.with_timeout(0))
