"""Deduplicator / Merger: collapses records that share an identity key.

Invariants:
    - Output never has two records with the same identity key
    - len(output) <= len(input); output order follows first appearance of each key
    - Fully deterministic for identical input
    - merge_duplicates default: latest updatedAt wins, absent/unparseable
      updatedAt counts as the earliest instant, exact ties keep the
      earlier-indexed record
    - Records are returned as given, never copied or mutated

Records may be mappings (raw documents) or canonical records read by attribute.
A record without the key has the key value None, which is itself a key.
"""

from collections.abc import Callable, Hashable, Mapping, Sequence
from typing import Any, TypeVar

from retailops.core.errors import require_sequence
from retailops.core.records import Principal, Resource, Store
from retailops.core.timestamps import sort_key

T = TypeVar("T")
MergeStrategy = Callable[[list[T]], T]

# Canonical-record attribute behind each camelCase document name
_ATTRIBUTES: dict[type, dict[str, str]] = {
    Resource: {
        "createdBy": "created_by", "createdAt": "created_at", "updatedAt": "updated_at",
        "targetAudience": "target_audience", "assignedStores": "assigned_stores",
        "completedBy": "completed_by", "hasSteps": "has_steps", "mediaUrl": "media_url",
    },
    Principal: {"email": "id", "homeStore": "home_store", "managedStores": "managed_stores"},
    Store: {"managerId": "manager_id"},
}


def read_field(record: Any, name: str) -> Any:
    """Field access that works for mappings and for canonical records.

    Canonical records answer to their document field names (a Principal's
    "email" is its id); names they do not model are looked up in `extras`.
    """
    if isinstance(record, Mapping):
        return record.get(name)
    attribute = _ATTRIBUTES.get(type(record), {}).get(name, name)
    value = getattr(record, attribute, None)
    extras = getattr(record, "extras", None)
    if value is None and isinstance(extras, Mapping):
        return extras.get(name)
    return value


def identity_key(record: Any, id_field: str = "id") -> Hashable:
    """The record's identity value, made hashable."""
    value = read_field(record, id_field)
    try:
        hash(value)
    except TypeError:
        return ("<unhashable>", repr(value))
    return value


def dedupe(records: Sequence[T], id_field: str = "id") -> list[T]:
    """Keep the first record for each identity key, in input order."""
    require_sequence(records, "dedupe", "records")
    seen: set[Hashable] = set()
    kept: list[T] = []
    for record in records:
        key = identity_key(record, id_field)
        if key in seen:
            continue
        seen.add(key)
        kept.append(record)
    return kept


def group_by_identity(records: Sequence[T], id_field: str = "id") -> dict[Hashable, list[T]]:
    """Group records by identity key; groups and members keep input order."""
    groups: dict[Hashable, list[T]] = {}
    for record in records:
        groups.setdefault(identity_key(record, id_field), []).append(record)
    return groups


def latest_updated(group: list[T]) -> T:
    """Most recently updated member; the earlier-indexed one wins a tie."""
    best = group[0]
    best_at = sort_key(read_field(best, "updatedAt"))
    for candidate in group[1:]:
        candidate_at = sort_key(read_field(candidate, "updatedAt"))
        if candidate_at > best_at:
            best, best_at = candidate, candidate_at
    return best


def merge_duplicates(
    records: Sequence[T],
    id_field: str = "id",
    strategy: MergeStrategy | None = None,
) -> list[T]:
    """Collapse each group of same-key records into one.

    Groups of one pass through untouched. Larger groups go to `strategy`
    (receiving the members in input order) or to latest_updated.
    """
    require_sequence(records, "merge_duplicates", "records")
    pick = strategy or latest_updated
    return [
        group[0] if len(group) == 1 else pick(group)
        for group in group_by_identity(records, id_field).values()
    ]
