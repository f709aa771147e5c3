#tests\conftest.py

"""Pytest configuration and fixtures.

Runs against an in-memory SQLite database by default. Point
GITOPS_DB_TEST_URL at a PostgreSQL database to run the same suite there.
"""

import os
from dataclasses import dataclass

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool

from gitops_db.core.models import (
    ClusterAccess,
    ClusterCredentials,
    ClusterUser,
    GitopsEngineCluster,
    GitopsEngineInstance,
    ManagedEnvironment,
)
from gitops_db.infrastructure.postgres.database import (
    Base,
    ConnectionPool,
    create_db_engine,
    drop_db,
    init_db,
    install_connect_hooks,
)
from gitops_db.infrastructure.postgres.privileged_repository import PrivilegedQueries
from gitops_db.infrastructure.postgres.scoped_repository import ScopedQueries


TEST_DATABASE_URL = os.environ.get("GITOPS_DB_TEST_URL", "sqlite+pysqlite:///:memory:")

TEST_USER_ID = "test-user"
OTHER_USER_ID = "another-user"


@pytest.fixture(scope="session")
def test_engine():
    """Create test database engine with a fresh schema."""
    if make_url(TEST_DATABASE_URL).get_backend_name() == "sqlite":
        # One shared connection so every session sees the same in-memory database
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        install_connect_hooks(engine)
    else:
        engine = create_db_engine(TEST_DATABASE_URL)

    drop_db(engine)
    init_db(engine)

    yield engine

    # Cleanup
    drop_db(engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def clean_database(test_engine):
    """Empty every table after each test."""
    yield
    with test_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def pool(test_engine):
    """Open connection pool over the test engine."""
    pool = ConnectionPool(engine=test_engine).open()
    yield pool
    pool.close()


@pytest.fixture
def scoped(pool):
    return ScopedQueries(pool)


@pytest.fixture
def admin(pool):
    return PrivilegedQueries(pool, allow_unsafe=True)


@dataclass
class SampleData:
    user: ClusterUser
    credentials: ClusterCredentials
    managed_environment: ManagedEnvironment
    engine_cluster: GitopsEngineCluster
    engine_instance: GitopsEngineInstance
    cluster_access: ClusterAccess


@pytest.fixture
def sample_data(admin) -> SampleData:
    """User, credentials, environment, engine cluster/instance and the grant tying them."""
    user = ClusterUser(cluster_user_id=TEST_USER_ID, user_name=TEST_USER_ID)
    credentials = ClusterCredentials(
        credentials_id="test-cluster-creds",
        host="host",
        kube_config="kube-config",
        kube_config_context="kube-config-context",
        serviceaccount_bearer_token="serviceaccount_bearer_token",
        serviceaccount_ns="serviceaccount_ns",
    )
    managed_environment = ManagedEnvironment(
        managed_environment_id="test-managed-environment",
        name="my managed environment",
        credentials_id=credentials.credentials_id,
    )
    engine_cluster = GitopsEngineCluster(engine_cluster_id="test-engine-cluster-id")
    engine_instance = GitopsEngineInstance(
        engine_instance_id="test-fake-engine-instance",
        namespace_name="my-namespace",
        namespace_uid="my-namespace-uid",
        engine_cluster_id=engine_cluster.engine_cluster_id,
    )
    cluster_access = ClusterAccess(
        user_id=user.cluster_user_id,
        managed_environment_id=managed_environment.managed_environment_id,
        engine_instance_id=engine_instance.engine_instance_id,
    )

    admin.unsafe_create_cluster_user(user)
    admin.unsafe_create_cluster_credentials(credentials)
    admin.unsafe_create_managed_environment(managed_environment)
    admin.unsafe_create_gitops_engine_cluster(engine_cluster)
    admin.unsafe_create_gitops_engine_instance(engine_instance)
    admin.unsafe_create_cluster_access(cluster_access)

    return SampleData(
        user=user,
        credentials=credentials,
        managed_environment=managed_environment,
        engine_cluster=engine_cluster,
        engine_instance=engine_instance,
        cluster_access=cluster_access,
    )
