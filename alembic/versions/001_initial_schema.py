"""Initial schema: users, credentials, engine clusters/instances, environments,
cluster access, applications, application states, operations, deployment mappings.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "cluster_users",
        sa.Column("cluster_user_id", sa.String(48), primary_key=True),
        sa.Column("user_name", sa.String(256), nullable=False, unique=True),
    )

    op.create_table(
        "cluster_credentials",
        sa.Column("credentials_id", sa.String(48), primary_key=True),
        sa.Column("host", sa.String(512), nullable=True),
        sa.Column("kube_config", sa.Text(), nullable=True),
        sa.Column("kube_config_context", sa.String(64), nullable=True),
        sa.Column("serviceaccount_bearer_token", sa.String(128), nullable=True),
        sa.Column("serviceaccount_ns", sa.String(128), nullable=True),
    )

    op.create_table(
        "gitops_engine_clusters",
        sa.Column("engine_cluster_id", sa.String(48), primary_key=True),
        sa.Column(
            "credentials_id",
            sa.String(48),
            sa.ForeignKey("cluster_credentials.credentials_id"),
            nullable=True,
        ),
    )

    op.create_table(
        "gitops_engine_instances",
        sa.Column("engine_instance_id", sa.String(48), primary_key=True),
        sa.Column("namespace_name", sa.String(256), nullable=False),
        sa.Column("namespace_uid", sa.String(48), nullable=False),
        sa.Column(
            "engine_cluster_id",
            sa.String(48),
            sa.ForeignKey("gitops_engine_clusters.engine_cluster_id"),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_gitops_engine_instances_engine_cluster_id",
        "gitops_engine_instances",
        ["engine_cluster_id"],
    )

    op.create_table(
        "managed_environments",
        sa.Column("managed_environment_id", sa.String(48), primary_key=True),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column(
            "credentials_id",
            sa.String(48),
            sa.ForeignKey("cluster_credentials.credentials_id"),
            nullable=True,
        ),
    )

    op.create_table(
        "cluster_access",
        sa.Column(
            "user_id",
            sa.String(48),
            sa.ForeignKey("cluster_users.cluster_user_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "managed_environment_id",
            sa.String(48),
            sa.ForeignKey("managed_environments.managed_environment_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "engine_instance_id",
            sa.String(48),
            sa.ForeignKey("gitops_engine_instances.engine_instance_id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_index("ix_cluster_access_env", "cluster_access", ["managed_environment_id"])
    op.create_index("ix_cluster_access_instance", "cluster_access", ["engine_instance_id"])

    op.create_table(
        "applications",
        sa.Column("application_id", sa.String(48), primary_key=True),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("spec_field", sa.Text(), nullable=False),
        sa.Column(
            "engine_instance_id",
            sa.String(48),
            sa.ForeignKey("gitops_engine_instances.engine_instance_id"),
            nullable=False,
        ),
        sa.Column(
            "managed_environment_id",
            sa.String(48),
            sa.ForeignKey("managed_environments.managed_environment_id"),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_applications_env_instance",
        "applications",
        ["managed_environment_id", "engine_instance_id"],
    )

    op.create_table(
        "application_states",
        sa.Column("application_id", sa.String(48), primary_key=True),
        sa.Column("state", sa.Text(), nullable=True),
    )

    op.create_table(
        "deployment_to_application_mappings",
        sa.Column("deployment_uid", sa.String(48), primary_key=True),
        sa.Column(
            "application_id",
            sa.String(48),
            sa.ForeignKey("applications.application_id"),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_deployment_to_application_mappings_application_id",
        "deployment_to_application_mappings",
        ["application_id"],
    )

    op.create_table(
        "operations",
        sa.Column("operation_id", sa.String(48), primary_key=True),
        sa.Column(
            "instance_id",
            sa.String(48),
            sa.ForeignKey("gitops_engine_instances.engine_instance_id"),
            nullable=False,
        ),
        sa.Column("resource_id", sa.String(48), nullable=False),
        sa.Column("resource_type", sa.String(32), nullable=False),
        sa.Column(
            "state",
            sa.Enum("WAITING", "IN_PROGRESS", "COMPLETED", "FAILED", name="operation_state"),
            nullable=False,
        ),
        sa.Column(
            "owner_user_id",
            sa.String(48),
            sa.ForeignKey("cluster_users.cluster_user_id"),
            nullable=False,
        ),
    )
    op.create_index("ix_operations_owner_user_id", "operations", ["owner_user_id"])
    op.create_index("ix_operations_resource", "operations", ["resource_type", "resource_id"])


def downgrade() -> None:
    op.drop_table("operations")
    sa.Enum(name="operation_state").drop(op.get_bind(), checkfirst=True)
    op.drop_table("deployment_to_application_mappings")
    op.drop_table("application_states")
    op.drop_table("applications")
    op.drop_table("cluster_access")
    op.drop_table("managed_environments")
    op.drop_table("gitops_engine_instances")
    op.drop_table("gitops_engine_clusters")
    op.drop_table("cluster_credentials")
    op.drop_table("cluster_users")
