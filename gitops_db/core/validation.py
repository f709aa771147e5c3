#gitops_db\core\validation.py
from dataclasses import fields
from typing import Any, Dict, Tuple, Type

from gitops_db.core.errors import InvalidArgument
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
    OperationState,
)


# Primary key fields, in composite-key order
KEY_FIELDS: Dict[Type[Any], Tuple[str, ...]] = {
    ClusterUser: ("cluster_user_id",),
    ClusterCredentials: ("credentials_id",),
    GitopsEngineCluster: ("engine_cluster_id",),
    GitopsEngineInstance: ("engine_instance_id",),
    ManagedEnvironment: ("managed_environment_id",),
    ClusterAccess: ("user_id", "managed_environment_id", "engine_instance_id"),
    Application: ("application_id",),
    ApplicationState: ("application_id",),
    Operation: ("operation_id",),
    DeploymentToApplicationMapping: ("deployment_uid",),
}

# Non-key columns that are NOT NULL references or names
REQUIRED_FIELDS: Dict[Type[Any], Tuple[str, ...]] = {
    ClusterUser: ("user_name",),
    GitopsEngineInstance: ("engine_cluster_id",),
    Application: ("engine_instance_id", "managed_environment_id"),
    Operation: ("instance_id", "owner_user_id"),
    DeploymentToApplicationMapping: ("application_id",),
}


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def normalize_key(entity_type: Type[Any], key: Any) -> Tuple[str, ...]:
    """
    Turn a caller-supplied key into a tuple of key components.

    Single-key entities accept a plain string; ClusterAccess needs a
    (user_id, managed_environment_id, engine_instance_id) tuple.
    """
    if entity_type not in KEY_FIELDS:
        raise InvalidArgument(f"unknown entity type: {entity_type!r}")

    names = KEY_FIELDS[entity_type]
    parts = tuple(key) if isinstance(key, (tuple, list)) else (key,)

    if len(parts) != len(names):
        raise InvalidArgument(
            f"{entity_type.__name__} key needs {len(names)} component(s), got {len(parts)}"
        )

    for name, value in zip(names, parts):
        if is_empty(value):
            raise InvalidArgument(f"{entity_type.__name__}.{name} is empty")

    return parts


def record_key(record: Any) -> Tuple[str, ...]:
    return tuple(getattr(record, name) for name in KEY_FIELDS[type(record)])


def validate_record(record: Any) -> None:
    """Check a record before it is written to the store."""
    entity_type = type(record)
    if entity_type not in KEY_FIELDS:
        raise InvalidArgument(f"unknown entity type: {entity_type!r}")

    normalize_key(entity_type, record_key(record))

    for name in REQUIRED_FIELDS.get(entity_type, ()):
        if is_empty(getattr(record, name)):
            raise InvalidArgument(f"{entity_type.__name__}.{name} is required")

    if isinstance(record, Operation) and not isinstance(record.state, OperationState):
        raise InvalidArgument(f"Operation.state must be an OperationState, got {record.state!r}")


def record_values(record: Any) -> Dict[str, Any]:
    """Field name -> value for every field of the record."""
    return {f.name: getattr(record, f.name) for f in fields(record)}
