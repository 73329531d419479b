"""Structural Validator: required-field and kind-specific checks on single records.

Invariants:
    - All functions are PURE and never raise: every failure is a ValidationIssue
    - Every check runs (no short-circuit), so callers get the full diagnostic
    - "Missing" (MISSING_* kinds) and "wrong type" (INVALID_FIELD_TYPE) are
      never reported for the same field at once
    - Accepts raw documents and canonical records alike; canonical records
      are checked through their to_record() shape

Design Decisions:
    - One small check_* function per rule, composed by validate(), mirroring
      how issues are grouped in the audit report
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import assert_never

from retailops.core.domain_types import (
    LEGACY_AUDIENCE_FIELD,
    MEDIA_REFERENCE_FIELDS,
    CollectionSchema,
    ErrorKind,
    ResourceKind,
    Role,
    TargetAudience,
    parse_audience,
    parse_role,
)
from retailops.core.records import Principal, Resource, Store
from retailops.core.timestamps import coerce_timestamp

_SEQUENCE_SHAPES = (list, tuple)
_SET_SHAPES = (list, tuple, set, frozenset)
SET_FIELDS = ("assignees", "assignedStores", "completedBy")


@dataclass(frozen=True)
class ValidationIssue:
    """One structural problem found on one record."""
    kind: ErrorKind
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "field": self.field, "message": self.message}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one record: valid iff there are no issues."""
    errors: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def kinds(self) -> list[ErrorKind]:
        return [issue.kind for issue in self.errors]

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": [issue.to_dict() for issue in self.errors],
        }


def _missing(name: str) -> ValidationIssue:
    return ValidationIssue(
        ErrorKind.MISSING_REQUIRED_FIELD, name, f"Missing required field: {name}",
    )


def _wrong_type(name: str, expected: str) -> ValidationIssue:
    return ValidationIssue(
        ErrorKind.INVALID_FIELD_TYPE, name, f"{name} must be {expected}",
    )


def _absent(value: object) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def _not_a_record() -> ValidationResult:
    return ValidationResult((_wrong_type("<record>", "a mapping"),))


def _as_record(record: object) -> Mapping | None:
    if isinstance(record, (Resource, Principal, Store)):
        return record.to_record()
    if isinstance(record, Mapping):
        return record
    return None


# ─── Shared checks ───────────────────────────────────────────────

def _check_text(record: Mapping, name: str) -> list[ValidationIssue]:
    value = record.get(name)
    if _absent(value):
        return [_missing(name)]
    if not isinstance(value, str):
        return [_wrong_type(name, "a string")]
    return []


def _check_string_members(record: Mapping, name: str, shapes: tuple) -> list[ValidationIssue]:
    value = record.get(name)
    if value is None:
        return []
    if not isinstance(value, shapes) or isinstance(value, str):
        return [_wrong_type(name, "a list")]
    if not all(isinstance(member, str) for member in value):
        return [_wrong_type(name, "a list of strings")]
    return []


def _check_optional_text(record: Mapping, name: str) -> list[ValidationIssue]:
    value = record.get(name)
    if value is None or isinstance(value, str):
        return []
    return [_wrong_type(name, "a string")]


# ─── Resource checks ─────────────────────────────────────────────

def check_required_fields(record: Mapping) -> list[ValidationIssue]:
    """title, createdBy and createdAt must be present and well-typed."""
    issues = _check_text(record, "title") + _check_text(record, "createdBy")
    created_at = record.get("createdAt")
    if _absent(created_at):
        issues.append(_missing("createdAt"))
    elif coerce_timestamp(created_at) is None:
        issues.append(_wrong_type("createdAt", "a timestamp"))
    return issues


def check_targeting(record: Mapping) -> list[ValidationIssue]:
    """A recognized targeting policy must be set, canonically or via the legacy alias."""
    for name in ("targetAudience", LEGACY_AUDIENCE_FIELD):
        value = record.get(name)
        if _absent(value):
            continue
        if not isinstance(value, str):
            return [_wrong_type(name, "a string")]
        if parse_audience(value) is TargetAudience.LEGACY_UNSET:
            break
        return []
    return [ValidationIssue(
        ErrorKind.MISSING_ASSIGNMENT_INFO, "targetAudience",
        f"Missing assignment information (targetAudience or {LEGACY_AUDIENCE_FIELD})",
    )]


def check_set_fields(record: Mapping) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for name in SET_FIELDS:
        issues.extend(_check_string_members(record, name, _SET_SHAPES))
    return issues


def _check_non_empty_sequence(
    record: Mapping, name: str, empty_kind: ErrorKind, message: str,
) -> list[ValidationIssue]:
    value = record.get(name)
    if value is None:
        return [ValidationIssue(empty_kind, name, message)]
    if not isinstance(value, _SEQUENCE_SHAPES):
        return [_wrong_type(name, "a list")]
    if not value:
        return [ValidationIssue(empty_kind, name, message)]
    return []


def check_task(record: Mapping) -> list[ValidationIssue]:
    if not record.get("hasSteps"):
        return []
    return _check_non_empty_sequence(
        record, "steps", ErrorKind.EMPTY_STEPS_ON_STEP_TASK,
        "Task with steps must have a non-empty steps list",
    )


def check_training(record: Mapping) -> list[ValidationIssue]:
    sources = ("content",) + MEDIA_REFERENCE_FIELDS
    if any(not _absent(record.get(name)) for name in sources):
        return []
    return [ValidationIssue(
        ErrorKind.MISSING_TRAINING_CONTENT, "content",
        "Training must have content or a media reference",
    )]


def check_test(record: Mapping) -> list[ValidationIssue]:
    return _check_non_empty_sequence(
        record, "questions", ErrorKind.EMPTY_TEST_QUESTIONS,
        "Test must have a non-empty questions list",
    )


def _kind_checks(record: Mapping, kind: ResourceKind | None) -> list[ValidationIssue]:
    if kind is None:
        return []
    match kind:
        case ResourceKind.TASK:
            return check_task(record)
        case ResourceKind.TRAINING:
            return check_training(record)
        case ResourceKind.TEST:
            return check_test(record)
        case _:
            assert_never(kind)


def _coerce_kind(kind: ResourceKind | str | None) -> ResourceKind | None:
    if kind is None or isinstance(kind, ResourceKind):
        return kind
    try:
        return ResourceKind(str(kind).strip().lower())
    except ValueError:
        return None


def validate(resource: object, kind: ResourceKind | str | None = None) -> ValidationResult:
    """Run every resource check plus the rules of `kind`. Never raises."""
    record = _as_record(resource)
    if record is None:
        return _not_a_record()
    issues = (
        check_required_fields(record)
        + check_targeting(record)
        + check_set_fields(record)
        + _kind_checks(record, _coerce_kind(kind))
    )
    return ValidationResult(tuple(issues))


# ─── Principal / store / generic ─────────────────────────────────

def validate_principal(principal: object) -> ValidationResult:
    """A user record needs an e-mail identity and a recognized role."""
    record = _as_record(principal)
    if record is None:
        return _not_a_record()

    issues: list[ValidationIssue] = []
    email, legacy_id = record.get("email"), record.get("id")
    if _absent(email) and _absent(legacy_id):
        issues.append(_missing("email"))
    elif not _absent(email) and not isinstance(email, str):
        issues.append(_wrong_type("email", "a string"))

    role = record.get("role")
    if _absent(role):
        issues.append(_missing("role"))
    elif not isinstance(role, str) or parse_role(role) is Role.UNKNOWN:
        issues.append(_wrong_type("role", "a recognized role"))

    issues += _check_optional_text(record, "homeStore")
    issues += _check_optional_text(record, "assignedStore")
    issues += _check_string_members(record, "managedStores", _SET_SHAPES)
    stores = record.get("stores")
    if stores is not None and not isinstance(stores, Mapping):
        issues += _check_string_members(record, "stores", _SET_SHAPES)
    return ValidationResult(tuple(issues))


def validate_store(store: object) -> ValidationResult:
    """A store record needs an id; its manager reference must be a string."""
    record = _as_record(store)
    if record is None:
        return _not_a_record()
    issues: list[ValidationIssue] = []
    if _absent(record.get("id")):
        issues.append(_missing("id"))
    issues += _check_optional_text(record, "managerId")
    issues += _check_optional_text(record, "manager")
    return ValidationResult(tuple(issues))


def validate_generic(record: object) -> ValidationResult:
    """Collections without a schema only need to hold documents."""
    if _as_record(record) is None:
        return _not_a_record()
    return ValidationResult()


def validate_for_schema(record: object, schema: CollectionSchema) -> ValidationResult:
    """Dispatch to the validator matching a collection's schema."""
    match schema:
        case CollectionSchema.TASK | CollectionSchema.TRAINING | CollectionSchema.TEST:
            return validate(record, schema.resource_kind)
        case CollectionSchema.PRINCIPAL:
            return validate_principal(record)
        case CollectionSchema.STORE:
            return validate_store(record)
        case CollectionSchema.GENERIC:
            return validate_generic(record)
        case _:
            assert_never(schema)
