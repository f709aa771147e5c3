"""Core entity models (plain records, no store behavior)."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from uuid import uuid4


class OperationState(Enum):
    """Operation lifecycle state."""

    WAITING = "Waiting"
    IN_PROGRESS = "In_Progress"
    COMPLETED = "Completed"
    FAILED = "Failed"


# ============================================
# USERS & CREDENTIALS
# ============================================

@dataclass
class ClusterUser:
    """A tenant user of the control plane."""

    cluster_user_id: str
    user_name: str


@dataclass
class ClusterCredentials:
    """Everything needed to reach a Kubernetes API server."""

    credentials_id: str
    host: str = ""
    kube_config: str = ""
    kube_config_context: str = ""
    serviceaccount_bearer_token: str = ""
    serviceaccount_ns: str = ""


# ============================================
# GITOPS ENGINE
# ============================================

@dataclass
class GitopsEngineCluster:
    """A cluster hosting one or more GitOps engine instances."""

    engine_cluster_id: str
    credentials_id: Optional[str] = None


@dataclass
class GitopsEngineInstance:
    """A namespace on an engine cluster running a GitOps engine."""

    engine_instance_id: str
    namespace_name: str
    namespace_uid: str
    engine_cluster_id: str


@dataclass
class ManagedEnvironment:
    """A target cluster/namespace the GitOps engine deploys into."""

    managed_environment_id: str
    name: str
    credentials_id: Optional[str] = None


@dataclass
class ClusterAccess:
    """
    Grant: user may use engine instance against managed environment.

    The three ids together form the primary key.
    """

    user_id: str
    managed_environment_id: str
    engine_instance_id: str


# ============================================
# WORK ITEMS
# ============================================

@dataclass
class Application:
    """A declarative application targeted at an environment via an engine instance."""

    application_id: str
    name: str
    spec_field: str
    engine_instance_id: str
    managed_environment_id: str


@dataclass
class ApplicationState:
    """Last observed state of an Application, stored verbatim."""

    application_id: str
    state: str = ""


@dataclass
class Operation:
    """A unit of work for the engine, owned by exactly one user."""

    instance_id: str
    resource_id: str
    resource_type: str
    owner_user_id: str
    state: OperationState = OperationState.WAITING
    operation_id: str = field(default_factory=lambda: str(uuid4()))


@dataclass
class DeploymentToApplicationMapping:
    """Links an external deployment resource uid to an Application."""

    deployment_uid: str
    application_id: str
