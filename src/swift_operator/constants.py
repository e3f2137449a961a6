"""Constants for the Swift Operator."""

# API Group
API_GROUP = "swift.openstack.org"
API_VERSION = "v1beta1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_SWIFT_STORAGE = "SwiftStorage"
PLURAL_SWIFT_STORAGE = "swiftstorages"
KIND_STATEFUL_SET = "StatefulSet"
APPS_GROUP_VERSION = "apps/v1"

# Labels
LABEL_NAME = "app.kubernetes.io/name"
LABEL_INSTANCE = "app.kubernetes.io/instance"
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_NAME_STORAGE = "swift-storage"

# Annotations
ANNOTATION_RECONCILE_TRIGGER = f"{API_GROUP}/reconcile-trigger"

# Field Manager
FIELD_MANAGER = "swift-operator"

# Swift service ports
ACCOUNT_SERVER_PORT = 6202
CONTAINER_SERVER_PORT = 6201
OBJECT_SERVER_PORT = 6200
RSYNC_PORT = 873
MEMCACHED_PORT = 11211

# Numeric identity of the swift user inside the images
RUN_AS_USER = 42445

# Storage
STORAGE_CLAIM_NAME = "srv"
STORAGE_MIN_CAPACITY = "1Gi"

# Condition Types
COND_READY = "Ready"
COND_APPLY_FAILED = "ApplyFailed"
COND_SPEC_INVALID = "SpecInvalid"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_VALIDATE_FAILED = "ValidateFailed"
EVENT_REASON_STATEFUL_SET_CREATED = "StatefulSetCreated"
EVENT_REASON_STATEFUL_SET_PATCHED = "StatefulSetPatched"
