"""
Entity bindings and ownership predicates.

Every scoped statement is `<keyed statement> AND <ownership predicate>`; the
predicate is part of the SQL, so a row the caller may not see and a row that
does not exist produce the same zero-row result.

Two predicate shapes per entity:
- row predicate: correlated against the entity's own table (get/update/delete)
- create predicate: built from the record's values (insert ... select ... where)
"""

from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, Optional, Sequence, Type

from sqlalchemy import and_, exists, or_, select
from sqlalchemy.sql.elements import ColumnElement

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
)
from gitops_db.core.validation import KEY_FIELDS, record_values
from gitops_db.infrastructure.postgres.models import (
    ApplicationORM,
    ApplicationStateORM,
    ClusterAccessORM,
    ClusterCredentialsORM,
    ClusterUserORM,
    DeploymentToApplicationMappingORM,
    GitopsEngineClusterORM,
    GitopsEngineInstanceORM,
    ManagedEnvironmentORM,
    OperationORM,
)


# ============================================
# Entity <-> table bindings
# ============================================

@dataclass(frozen=True)
class EntityBinding:
    """Pairs a record type with its table."""

    domain: Type[Any]
    orm: Type[Any]

    @property
    def label(self) -> str:
        return self.domain.__name__

    @property
    def key_names(self) -> Sequence[str]:
        return KEY_FIELDS[self.domain]

    def key_clause(self, key: Sequence[str]) -> ColumnElement:
        return and_(*[
            getattr(self.orm, name) == value
            for name, value in zip(self.key_names, key)
        ])

    def to_orm(self, record: Any) -> Any:
        return self.orm(**record_values(record))

    def to_domain(self, orm: Any) -> Any:
        return self.domain(**{f.name: getattr(orm, f.name) for f in fields(self.domain)})


BINDINGS: Dict[Type[Any], EntityBinding] = {
    binding.domain: binding
    for binding in (
        EntityBinding(ClusterUser, ClusterUserORM),
        EntityBinding(ClusterCredentials, ClusterCredentialsORM),
        EntityBinding(GitopsEngineCluster, GitopsEngineClusterORM),
        EntityBinding(GitopsEngineInstance, GitopsEngineInstanceORM),
        EntityBinding(ManagedEnvironment, ManagedEnvironmentORM),
        EntityBinding(ClusterAccess, ClusterAccessORM),
        EntityBinding(Application, ApplicationORM),
        EntityBinding(ApplicationState, ApplicationStateORM),
        EntityBinding(Operation, OperationORM),
        EntityBinding(DeploymentToApplicationMapping, DeploymentToApplicationMappingORM),
    )
}


def binding_for(entity_type: Type[Any]) -> EntityBinding:
    try:
        return BINDINGS[entity_type]
    except KeyError:
        raise InvalidArgument(f"unknown entity type: {entity_type!r}") from None


# ============================================
# Ownership chain building blocks
# ============================================

def has_grant(user_id: str, managed_environment_id: Any = None, engine_instance_id: Any = None) -> ColumnElement:
    """EXISTS a ClusterAccess row for the user, optionally pinned to env and/or instance."""
    conditions = [ClusterAccessORM.user_id == user_id]
    if managed_environment_id is not None:
        conditions.append(ClusterAccessORM.managed_environment_id == managed_environment_id)
    if engine_instance_id is not None:
        conditions.append(ClusterAccessORM.engine_instance_id == engine_instance_id)
    return exists().where(and_(*conditions))


def owns_application(user_id: str, application_id: Any) -> ColumnElement:
    """EXISTS an Application with this id whose (env, instance) pair the user is granted."""
    return (
        select(ApplicationORM.application_id)
        .join(
            ClusterAccessORM,
            and_(
                ClusterAccessORM.managed_environment_id == ApplicationORM.managed_environment_id,
                ClusterAccessORM.engine_instance_id == ApplicationORM.engine_instance_id,
            ),
        )
        .where(
            ApplicationORM.application_id == application_id,
            ClusterAccessORM.user_id == user_id,
        )
        .exists()
    )


def _engine_cluster_reachable(user_id: str, engine_cluster_id: Any) -> ColumnElement:
    return (
        select(GitopsEngineInstanceORM.engine_instance_id)
        .join(
            ClusterAccessORM,
            ClusterAccessORM.engine_instance_id == GitopsEngineInstanceORM.engine_instance_id,
        )
        .where(
            GitopsEngineInstanceORM.engine_cluster_id == engine_cluster_id,
            ClusterAccessORM.user_id == user_id,
        )
        .exists()
    )


def _credentials_reachable(user_id: str, credentials_id: Any) -> ColumnElement:
    via_environment = (
        select(ManagedEnvironmentORM.managed_environment_id)
        .join(
            ClusterAccessORM,
            ClusterAccessORM.managed_environment_id == ManagedEnvironmentORM.managed_environment_id,
        )
        .where(
            ManagedEnvironmentORM.credentials_id == credentials_id,
            ClusterAccessORM.user_id == user_id,
        )
        .exists()
    )
    via_engine_cluster = (
        select(GitopsEngineClusterORM.engine_cluster_id)
        .join(
            GitopsEngineInstanceORM,
            GitopsEngineInstanceORM.engine_cluster_id == GitopsEngineClusterORM.engine_cluster_id,
        )
        .join(
            ClusterAccessORM,
            ClusterAccessORM.engine_instance_id == GitopsEngineInstanceORM.engine_instance_id,
        )
        .where(
            GitopsEngineClusterORM.credentials_id == credentials_id,
            ClusterAccessORM.user_id == user_id,
        )
        .exists()
    )
    return or_(via_environment, via_engine_cluster)


# ============================================
# Per-entity rules
# ============================================

@dataclass(frozen=True)
class OwnershipRule:
    """
    How a user is tied to rows of one entity type.

    owner_field: record field that must equal the caller, checked before the store.
    row: predicate over the entity's table for get/update/delete.
    create: predicate over a record's values, required to hold for an insert.
    """

    row: Callable[[str], ColumnElement]
    create: Optional[Callable[[Any, str], ColumnElement]] = None
    owner_field: Optional[str] = None


RULES: Dict[Type[Any], OwnershipRule] = {
    ClusterUser: OwnershipRule(
        row=lambda user_id: ClusterUserORM.cluster_user_id == user_id,
    ),
    ClusterCredentials: OwnershipRule(
        row=lambda user_id: _credentials_reachable(user_id, ClusterCredentialsORM.credentials_id),
    ),
    GitopsEngineCluster: OwnershipRule(
        row=lambda user_id: _engine_cluster_reachable(user_id, GitopsEngineClusterORM.engine_cluster_id),
    ),
    GitopsEngineInstance: OwnershipRule(
        row=lambda user_id: has_grant(
            user_id, engine_instance_id=GitopsEngineInstanceORM.engine_instance_id
        ),
    ),
    ManagedEnvironment: OwnershipRule(
        row=lambda user_id: has_grant(
            user_id, managed_environment_id=ManagedEnvironmentORM.managed_environment_id
        ),
    ),
    ClusterAccess: OwnershipRule(
        row=lambda user_id: ClusterAccessORM.user_id == user_id,
        # A caller may only recombine an environment and an instance it already holds
        create=lambda record, user_id: and_(
            has_grant(user_id, managed_environment_id=record.managed_environment_id),
            has_grant(user_id, engine_instance_id=record.engine_instance_id),
        ),
        owner_field="user_id",
    ),
    Application: OwnershipRule(
        row=lambda user_id: has_grant(
            user_id,
            managed_environment_id=ApplicationORM.managed_environment_id,
            engine_instance_id=ApplicationORM.engine_instance_id,
        ),
        create=lambda record, user_id: has_grant(
            user_id,
            managed_environment_id=record.managed_environment_id,
            engine_instance_id=record.engine_instance_id,
        ),
    ),
    ApplicationState: OwnershipRule(
        row=lambda user_id: owns_application(user_id, ApplicationStateORM.application_id),
        create=lambda record, user_id: owns_application(user_id, record.application_id),
    ),
    Operation: OwnershipRule(
        row=lambda user_id: OperationORM.owner_user_id == user_id,
        owner_field="owner_user_id",
    ),
    DeploymentToApplicationMapping: OwnershipRule(
        row=lambda user_id: owns_application(
            user_id, DeploymentToApplicationMappingORM.application_id
        ),
        create=lambda record, user_id: owns_application(user_id, record.application_id),
    ),
}


def rule_for(entity_type: Type[Any]) -> OwnershipRule:
    try:
        return RULES[entity_type]
    except KeyError:
        raise InvalidArgument(f"no ownership rule for {entity_type!r}") from None
