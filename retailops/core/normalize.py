"""Policy Normalizer: maps raw snapshot documents onto the canonical records.

Invariants:
    - All functions are PURE and TOTAL: any input produces a record, nothing raises
    - Idempotent: normalize(normalize(x)) == normalize(x), and
      normalize(r.to_record()) == r for every normalized r
    - Raw absence of a targeting policy becomes LEGACY_UNSET, never ALL_STAFF
    - Set-valued fields that are not sequences become empty sets
    - Only canonical keys are consumed; legacy aliases (assignTo, videoUrl,
      assignedStore, stores, manager, ...) stay in `extras` untouched

Design Decisions:
    - Alias precedence is "first usable value wins" and is applied identically
      to raw documents and to to_record() output
"""

from collections.abc import Iterable, Mapping
from typing import Any

from retailops.core.domain_types import (
    LEGACY_AUDIENCE_FIELD,
    MEDIA_REFERENCE_FIELDS,
    PrincipalId,
    parse_audience,
    parse_role,
)
from retailops.core.records import Principal, Resource, Store


_RESOURCE_KEYS = frozenset({
    "id", "title", "createdBy", "createdAt", "updatedAt", "targetAudience",
    "assignedStores", "assignees", "completedBy",
    "hasSteps", "steps", "content", "mediaUrl", "questions",
})
_PRINCIPAL_KEYS = frozenset({"email", "role", "homeStore", "managedStores"})
_STORE_KEYS = frozenset({"id", "managerId", "name"})

_SET_SHAPES = (list, tuple, set, frozenset)


# ─── Field helpers ───────────────────────────────────────────────

def _present(value: object) -> bool:
    if isinstance(value, str):
        return bool(value.strip())
    return value is not None


def _first_present(record: Mapping, keys: Iterable[str]) -> Any:
    for key in keys:
        value = record.get(key)
        if _present(value):
            return value
    return None


def _member(value: object, lower: bool) -> str | None:
    if isinstance(value, str):
        text = value.strip()
        if lower:
            text = text.lower()
        return text or None
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


def coerce_id_set(value: object, lower: bool = False) -> frozenset[str]:
    """Sequence-or-anything → frozenset of string ids. Non-sequences give an empty set."""
    if not isinstance(value, _SET_SHAPES):
        return frozenset()
    members = (_member(v, lower) for v in value)
    return frozenset(m for m in members if m is not None)


def normalize_principal_id(value: object) -> PrincipalId:
    """E-mail identity compared case-insensitively: stripped and lower-cased."""
    if isinstance(value, str):
        return PrincipalId(value.strip().lower())
    return PrincipalId("")


def _first_member(record: Mapping, keys: Iterable[str], lower: bool = False) -> str | None:
    """First alias whose value is a usable id; junk values fall through to the next alias."""
    for key in keys:
        member = _member(record.get(key), lower)
        if member is not None:
            return member
    return None


def _sequence(value: object) -> Any:
    if isinstance(value, list):
        return tuple(value)
    return value


def _extras(record: Mapping, consumed: frozenset[str]) -> dict[str, Any]:
    return {k: v for k, v in record.items() if k not in consumed}


# ─── Resources ───────────────────────────────────────────────────

def normalize(raw: object) -> Resource:
    """Canonicalize a raw task/training/test document (or an existing Resource)."""
    if isinstance(raw, Resource):
        raw = raw.to_record()
    if not isinstance(raw, Mapping):
        return Resource()

    created_by = raw.get("createdBy")
    if isinstance(created_by, str):
        created_by = normalize_principal_id(created_by)

    return Resource(
        id=raw.get("id"),
        title=raw.get("title"),
        created_by=created_by,
        created_at=raw.get("createdAt"),
        updated_at=raw.get("updatedAt"),
        target_audience=parse_audience(
            _first_present(raw, ("targetAudience", LEGACY_AUDIENCE_FIELD)),
        ),
        assigned_stores=coerce_id_set(raw.get("assignedStores")),
        assignees=coerce_id_set(raw.get("assignees"), lower=True),
        completed_by=coerce_id_set(raw.get("completedBy"), lower=True),
        has_steps=raw.get("hasSteps"),
        steps=_sequence(raw.get("steps")),
        content=raw.get("content"),
        media_url=_first_present(raw, MEDIA_REFERENCE_FIELDS),
        questions=_sequence(raw.get("questions")),
        extras=_extras(raw, _RESOURCE_KEYS),
    )


# ─── Principals ──────────────────────────────────────────────────

def _managed_stores(raw: Mapping) -> frozenset[str]:
    managed = raw.get("managedStores")
    if managed is not None:
        return coerce_id_set(managed)
    stores = raw.get("stores")
    if isinstance(stores, Mapping):
        # legacy shape: {storeId: true, otherId: false}
        return coerce_id_set([k for k, enabled in stores.items() if enabled is True])
    return coerce_id_set(stores)


def normalize_principal(raw: object) -> Principal:
    """Canonicalize a raw user document (or an existing Principal)."""
    if isinstance(raw, Principal):
        raw = raw.to_record()
    if not isinstance(raw, Mapping):
        return Principal()

    return Principal(
        id=_first_member(raw, ("email", "id"), lower=True) or "",
        role=parse_role(raw.get("role")),
        home_store=_first_member(raw, ("homeStore", "assignedStore")),
        managed_stores=_managed_stores(raw),
        extras=_extras(raw, _PRINCIPAL_KEYS),
    )


# ─── Stores ──────────────────────────────────────────────────────

def normalize_store(raw: object) -> Store:
    """Canonicalize a raw store document (or an existing Store)."""
    if isinstance(raw, Store):
        raw = raw.to_record()
    if not isinstance(raw, Mapping):
        return Store()

    return Store(
        id=raw.get("id"),
        manager_id=_first_member(raw, ("managerId", "manager"), lower=True),
        name=raw.get("name"),
        extras=_extras(raw, _STORE_KEYS),
    )
