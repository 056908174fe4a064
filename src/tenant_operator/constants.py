"""Constants for the Tenant Cluster Operator."""

# API Group
API_GROUP = "infrastructure.tenantcluster.dev"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_CLUSTER = "Cluster"
KIND_MACHINE_DEPLOYMENT = "MachineDeployment"

PLURAL_CLUSTERS = "clusters"
PLURAL_MACHINE_DEPLOYMENTS = "machinedeployments"

# Labels
LABEL_CLUSTER = f"{API_GROUP}/cluster"
LABEL_ORGANIZATION = f"{API_GROUP}/organization"
LABEL_OPERATOR_VERSION = f"{API_GROUP}/operator-version"

# Annotations
ANNOTATION_SUBNET = f"{API_GROUP}/subnet"

# Field Manager
FIELD_MANAGER = "tenant-cluster-operator"
CONTROLLER_NAME = "tenant-cluster-operator"

# Control plane endpoints
MASTER_ENDPOINTS_NAME = "master"
HTTPS_PORT = 443

# Condition Types
COND_READY = "Ready"
COND_RECONCILE_FAILED = "ReconcileFailed"

# Event Reasons
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_RECONCILE_CANCELLED = "ReconcileCancelled"
EVENT_REASON_SUBNET_ALLOCATED = "SubnetAllocated"
EVENT_REASON_STACK_CREATED = "StackCreated"
EVENT_REASON_STACK_UPDATED = "StackUpdated"
EVENT_REASON_STACK_DELETED = "StackDeleted"
EVENT_REASON_ENDPOINTS_UPDATED = "EndpointsUpdated"
