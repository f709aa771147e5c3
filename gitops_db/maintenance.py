"""Bulk cleanup of rows created by test runs."""

import logging
from typing import Dict, Optional

from gitops_db.core.context import QueryContext
from gitops_db.infrastructure.postgres.privileged_repository import PrivilegedQueries


logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "test-"


def delete_rows_with_prefix(
    admin: PrivilegedQueries,
    prefix: str = DEFAULT_PREFIX,
    ctx: Optional[QueryContext] = None,
) -> Dict[str, int]:
    """
    Delete every row whose primary key starts with `prefix`.

    Tables are visited children first so foreign keys never block a delete.
    ClusterAccess rows are matched on their managed environment id.
    Returns rows deleted per table.
    """
    counts: Dict[str, int] = {}

    def _record(table: str, rows: int, key: str) -> None:
        counts[table] = counts.get(table, 0) + rows
        if rows != 1:
            logger.warning(f"Deleting {table} {key} affected {rows} rows (expected 1)")

    for mapping in admin.unsafe_list_all_deployment_to_application_mappings(ctx):
        if mapping.deployment_uid.startswith(prefix):
            _record(
                "deployment_to_application_mappings",
                admin.unsafe_delete_deployment_to_application_mapping_by_id(mapping.deployment_uid, ctx),
                mapping.deployment_uid,
            )

    for state in admin.unsafe_list_all_application_states(ctx):
        if state.application_id.startswith(prefix):
            _record(
                "application_states",
                admin.unsafe_delete_application_state_by_id(state.application_id, ctx),
                state.application_id,
            )

    for operation in admin.unsafe_list_all_operations(ctx):
        if operation.operation_id.startswith(prefix):
            _record(
                "operations",
                admin.unsafe_delete_operation_by_id(operation.operation_id, ctx),
                operation.operation_id,
            )

    for application in admin.unsafe_list_all_applications(ctx):
        if application.application_id.startswith(prefix):
            _record(
                "applications",
                admin.unsafe_delete_application_by_id(application.application_id, ctx),
                application.application_id,
            )

    for access in admin.unsafe_list_all_cluster_access(ctx):
        if access.managed_environment_id.startswith(prefix):
            _record(
                "cluster_access",
                admin.unsafe_delete_cluster_access_by_id(
                    access.user_id, access.managed_environment_id, access.engine_instance_id, ctx
                ),
                f"{access.user_id}/{access.managed_environment_id}/{access.engine_instance_id}",
            )

    for instance in admin.unsafe_list_all_gitops_engine_instances(ctx):
        if instance.engine_instance_id.startswith(prefix):
            _record(
                "gitops_engine_instances",
                admin.unsafe_delete_gitops_engine_instance_by_id(instance.engine_instance_id, ctx),
                instance.engine_instance_id,
            )

    for environment in admin.unsafe_list_all_managed_environments(ctx):
        if environment.managed_environment_id.startswith(prefix):
            _record(
                "managed_environments",
                admin.unsafe_delete_managed_environment_by_id(environment.managed_environment_id, ctx),
                environment.managed_environment_id,
            )

    for cluster in admin.unsafe_list_all_gitops_engine_clusters(ctx):
        if cluster.engine_cluster_id.startswith(prefix):
            _record(
                "gitops_engine_clusters",
                admin.unsafe_delete_gitops_engine_cluster_by_id(cluster.engine_cluster_id, ctx),
                cluster.engine_cluster_id,
            )

    for credentials in admin.unsafe_list_all_cluster_credentials(ctx):
        if credentials.credentials_id.startswith(prefix):
            _record(
                "cluster_credentials",
                admin.unsafe_delete_cluster_credentials_by_id(credentials.credentials_id, ctx),
                credentials.credentials_id,
            )

    for user in admin.unsafe_list_all_cluster_users(ctx):
        if user.cluster_user_id.startswith(prefix):
            _record(
                "cluster_users",
                admin.unsafe_delete_cluster_user_by_id(user.cluster_user_id, ctx),
                user.cluster_user_id,
            )

    logger.info(f"Removed rows with prefix {prefix!r}: {counts}")
    return counts
