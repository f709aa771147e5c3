#gitops_db\infrastructure\postgres\models.py
"""SQLAlchemy ORM models for database tables.

Attribute names match the dataclass field names in gitops_db.core.models,
so rows map to records field-for-field.
"""

from sqlalchemy import (
    Column, String, Text, Enum as SQLEnum, ForeignKey, Index
)

from gitops_db.core.models import OperationState
from gitops_db.infrastructure.postgres.database import Base


ID_LENGTH = 48
NAME_LENGTH = 256


# ============================================
# USERS & CREDENTIALS
# ============================================

class ClusterUserORM(Base):
    """Cluster user table."""

    __tablename__ = "cluster_users"

    cluster_user_id = Column(String(ID_LENGTH), primary_key=True)
    user_name = Column(String(NAME_LENGTH), nullable=False, unique=True)


class ClusterCredentialsORM(Base):
    """Cluster credentials table."""

    __tablename__ = "cluster_credentials"

    credentials_id = Column(String(ID_LENGTH), primary_key=True)
    host = Column(String(512), nullable=True)
    kube_config = Column(Text, nullable=True)
    kube_config_context = Column(String(64), nullable=True)
    serviceaccount_bearer_token = Column(String(128), nullable=True)
    serviceaccount_ns = Column(String(128), nullable=True)


# ============================================
# GITOPS ENGINE
# ============================================

class GitopsEngineClusterORM(Base):
    """GitOps engine cluster table."""

    __tablename__ = "gitops_engine_clusters"

    engine_cluster_id = Column(String(ID_LENGTH), primary_key=True)
    credentials_id = Column(
        String(ID_LENGTH),
        ForeignKey("cluster_credentials.credentials_id"),
        nullable=True
    )


class GitopsEngineInstanceORM(Base):
    """GitOps engine instance table."""

    __tablename__ = "gitops_engine_instances"

    engine_instance_id = Column(String(ID_LENGTH), primary_key=True)
    namespace_name = Column(String(NAME_LENGTH), nullable=False)
    namespace_uid = Column(String(ID_LENGTH), nullable=False)
    engine_cluster_id = Column(
        String(ID_LENGTH),
        ForeignKey("gitops_engine_clusters.engine_cluster_id"),
        nullable=False,
        index=True
    )


class ManagedEnvironmentORM(Base):
    """Managed environment table."""

    __tablename__ = "managed_environments"

    managed_environment_id = Column(String(ID_LENGTH), primary_key=True)
    name = Column(String(NAME_LENGTH), nullable=False)
    credentials_id = Column(
        String(ID_LENGTH),
        ForeignKey("cluster_credentials.credentials_id"),
        nullable=True
    )


# ============================================
# CLUSTER ACCESS
# ============================================

class ClusterAccessORM(Base):
    """
    Cluster access table - the authorization join.

    A row means the user may use the engine instance against the managed
    environment. Grants go away with the user, environment or instance.
    """

    __tablename__ = "cluster_access"

    user_id = Column(
        String(ID_LENGTH),
        ForeignKey("cluster_users.cluster_user_id", ondelete="CASCADE"),
        primary_key=True
    )
    managed_environment_id = Column(
        String(ID_LENGTH),
        ForeignKey("managed_environments.managed_environment_id", ondelete="CASCADE"),
        primary_key=True
    )
    engine_instance_id = Column(
        String(ID_LENGTH),
        ForeignKey("gitops_engine_instances.engine_instance_id", ondelete="CASCADE"),
        primary_key=True
    )

    __table_args__ = (
        Index("ix_cluster_access_env", "managed_environment_id"),
        Index("ix_cluster_access_instance", "engine_instance_id"),
    )


# ============================================
# APPLICATIONS
# ============================================

class ApplicationORM(Base):
    """Application table."""

    __tablename__ = "applications"

    application_id = Column(String(ID_LENGTH), primary_key=True)
    name = Column(String(NAME_LENGTH), nullable=False)
    spec_field = Column(Text, nullable=False)
    engine_instance_id = Column(
        String(ID_LENGTH),
        ForeignKey("gitops_engine_instances.engine_instance_id"),
        nullable=False
    )
    managed_environment_id = Column(
        String(ID_LENGTH),
        ForeignKey("managed_environments.managed_environment_id"),
        nullable=False
    )

    __table_args__ = (
        Index("ix_applications_env_instance", "managed_environment_id", "engine_instance_id"),
    )


class ApplicationStateORM(Base):
    """
    Application state table.

    No foreign key to applications: the row is removed alongside its
    Application by the query layer, not by the store.
    """

    __tablename__ = "application_states"

    application_id = Column(String(ID_LENGTH), primary_key=True)
    state = Column(Text, nullable=True)


class DeploymentToApplicationMappingORM(Base):
    """Deployment to application mapping table."""

    __tablename__ = "deployment_to_application_mappings"

    deployment_uid = Column(String(ID_LENGTH), primary_key=True)
    application_id = Column(
        String(ID_LENGTH),
        ForeignKey("applications.application_id"),
        nullable=False,
        index=True
    )


# ============================================
# OPERATIONS
# ============================================

class OperationORM(Base):
    """Operation table."""

    __tablename__ = "operations"

    operation_id = Column(String(ID_LENGTH), primary_key=True)
    instance_id = Column(
        String(ID_LENGTH),
        ForeignKey("gitops_engine_instances.engine_instance_id"),
        nullable=False
    )
    resource_id = Column(String(ID_LENGTH), nullable=False)
    resource_type = Column(String(32), nullable=False)
    state = Column(
        SQLEnum(OperationState, name="operation_state"),
        nullable=False,
        default=OperationState.WAITING
    )
    owner_user_id = Column(
        String(ID_LENGTH),
        ForeignKey("cluster_users.cluster_user_id"),
        nullable=False,
        index=True
    )

    __table_args__ = (
        Index("ix_operations_resource", "resource_type", "resource_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<OperationORM(operation_id={self.operation_id}, "
            f"state={self.state.value if self.state else None}, "
            f"owner_user_id={self.owner_user_id})>"
        )
