"""Domain Types: identity types and closed enums shared by every core module.

Invariants:
    - PrincipalId is always a lower-cased e-mail address
    - Every string-valued policy field is parsed into one of these enums,
      never matched as a raw string downstream
    - Role and TargetAudience carry explicit fallback variants (UNKNOWN,
      LEGACY_UNSET) so unrecognized input never maps to a real value

Design Decisions:
    - NewType over wrapper classes: zero runtime cost, type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

PrincipalId = NewType("PrincipalId", str)
StoreId = NewType("StoreId", str)


# ─── Enums ───────────────────────────────────────────────────────

class Role(str, Enum):
    """Principal roles. UNKNOWN covers missing or unrecognized raw roles."""
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    STAFF = "STAFF"
    OFFICE = "OFFICE"
    UNKNOWN = "UNKNOWN"


class TargetAudience(str, Enum):
    """Targeting policy of an assignable resource."""
    ALL_STAFF = "all_staff"
    ALL_MANAGERS = "all_managers"
    LOCATION = "location"
    INDIVIDUAL = "individual"
    LEGACY_UNSET = "legacy_unset"


class ResourceKind(str, Enum):
    """Closed set of assignable resource kinds."""
    TASK = "task"
    TRAINING = "training"
    TEST = "test"


class CollectionSchema(str, Enum):
    """Validation schema applied to a snapshot collection during audits."""
    TASK = "task"
    TRAINING = "training"
    TEST = "test"
    PRINCIPAL = "principal"
    STORE = "store"
    GENERIC = "generic"

    @property
    def resource_kind(self) -> ResourceKind | None:
        try:
            return ResourceKind(self.value)
        except ValueError:
            return None


class ErrorKind(str, Enum):
    """Reported-value taxonomy. Never raised, always returned."""
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_FIELD_TYPE = "invalid_field_type"
    MISSING_ASSIGNMENT_INFO = "missing_assignment_info"
    EMPTY_STEPS_ON_STEP_TASK = "empty_steps_on_step_task"
    MISSING_TRAINING_CONTENT = "missing_training_content"
    EMPTY_TEST_QUESTIONS = "empty_test_questions"
    ORPHANED_REFERENCE = "orphaned_reference"
    DUPLICATE_IDENTIFIER = "duplicate_identifier"


class InconsistencyType(str, Enum):
    """Cross-collection inconsistency classes emitted by the scanner."""
    ORPHANED_REFERENCE = "orphaned_reference"
    DUPLICATE_EMAIL = "duplicate_email"
    DUPLICATE_ID = "duplicate_id"

    @property
    def error_kind(self) -> ErrorKind:
        if self is InconsistencyType.ORPHANED_REFERENCE:
            return ErrorKind.ORPHANED_REFERENCE
        return ErrorKind.DUPLICATE_IDENTIFIER


class DecisionReason(str, Enum):
    """Why an entitlement decision came out the way it did."""
    UNIVERSAL_ROLE = "universal_role"
    ALL_STAFF_ROLE = "all_staff_role"
    ALL_MANAGERS_ROLE = "all_managers_role"
    STORE_MATCH = "store_match"
    NAMED_ASSIGNEE = "named_assignee"
    LEGACY_ASSIGNEE = "legacy_assignee"
    LEGACY_CREATOR = "legacy_creator"
    ROLE_NOT_TARGETED = "role_not_targeted"
    NO_STORE_MATCH = "no_store_match"
    NOT_ASSIGNEE = "not_assignee"
    NO_LEGACY_MATCH = "no_legacy_match"


# ─── Constants ───────────────────────────────────────────────────

UNIVERSAL_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN})
ALL_STAFF_ROLES = frozenset({Role.STAFF, Role.MANAGER})

# Legacy documents stored the policy under this key before targetAudience existed
LEGACY_AUDIENCE_FIELD = "assignTo"

MEDIA_REFERENCE_FIELDS = ("mediaUrl", "videoUrl", "mediaRef")

DEFAULT_COLLECTION_SCHEMAS: dict[str, CollectionSchema] = {
    "tasks": CollectionSchema.TASK,
    "task": CollectionSchema.TASK,
    "trainings": CollectionSchema.TRAINING,
    "training": CollectionSchema.TRAINING,
    "tests": CollectionSchema.TEST,
    "test": CollectionSchema.TEST,
    "users": CollectionSchema.PRINCIPAL,
    "user": CollectionSchema.PRINCIPAL,
    "principals": CollectionSchema.PRINCIPAL,
    "stores": CollectionSchema.STORE,
    "store": CollectionSchema.STORE,
}


def parse_role(value: object) -> Role:
    """Case-insensitive role parse. Anything unrecognized is UNKNOWN."""
    if isinstance(value, Role):
        return value
    if isinstance(value, str):
        try:
            return Role(value.strip().upper())
        except ValueError:
            return Role.UNKNOWN
    return Role.UNKNOWN


def parse_audience(value: object) -> TargetAudience:
    """Case-insensitive audience parse. Anything unrecognized is LEGACY_UNSET."""
    if isinstance(value, TargetAudience):
        return value
    if isinstance(value, str):
        try:
            return TargetAudience(value.strip().lower())
        except ValueError:
            return TargetAudience.LEGACY_UNSET
    return TargetAudience.LEGACY_UNSET


def infer_collection_schema(
    name: str, overrides: dict[str, CollectionSchema] | None = None,
) -> CollectionSchema:
    """Map a collection's logical name to the schema used to validate it."""
    key = name.strip().lower()
    if overrides and key in overrides:
        return overrides[key]
    return DEFAULT_COLLECTION_SCHEMAS.get(key, CollectionSchema.GENERIC)
