"""Referential Integrity Scanner: cross-collection orphans and duplicate identities.

Invariants:
    - Inputs are never mutated
    - The index is built once per scan; every check is linear in its collection
    - A reference check runs only when its target collection is loaded
      (key present and not None); an empty loaded collection is authoritative
    - Non-document entries are skipped here (the validator reports them)
    - Every finding has the same Inconsistency shape, whatever the check

Design Decisions:
    - Checks are plain functions over a CollectionIndex, listed in DEFAULT_CHECKS;
      callers add classes of inconsistency by passing a longer list
"""

from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from retailops.core.dedupe import identity_key
from retailops.core.domain_types import (
    CollectionSchema,
    ErrorKind,
    InconsistencyType,
    infer_collection_schema,
)
from retailops.core.errors import ContractViolationError, ErrorContext, require_mapping
from retailops.core.normalize import normalize, normalize_principal, normalize_store
from retailops.core.records import Principal, Resource, Store
from retailops.core.trace_protocols import TraceSink, emit


@dataclass(frozen=True)
class Inconsistency:
    """One cross-collection finding."""
    type: InconsistencyType
    description: str
    collection: str | None = None
    field: str | None = None
    value: Any = None
    item_id: Any = None
    count: int | None = None

    @property
    def error_kind(self) -> ErrorKind:
        return self.type.error_kind

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type.value}
        optional = {
            "collection": self.collection,
            "field": self.field,
            "itemId": self.item_id,
            "count": self.count,
        }
        out.update({k: v for k, v in optional.items() if v is not None})
        out["value"] = self.value
        out["description"] = self.description
        return out


@dataclass
class CollectionIndex:
    """Normalized views and id sets over one snapshot, built once per scan."""
    collections: Mapping[str, Sequence] = field(default_factory=dict)
    schemas: dict[str, CollectionSchema] = field(default_factory=dict)
    principals: list[tuple[str, Principal]] = field(default_factory=list)
    stores: list[tuple[str, Store]] = field(default_factory=list)
    resources: list[tuple[str, Resource]] = field(default_factory=list)
    principal_ids: set[str] = field(default_factory=set)
    store_ids: set[str] = field(default_factory=set)
    users_loaded: bool = False
    stores_loaded: bool = False


Check = Callable[[CollectionIndex], Iterable[Inconsistency]]


def _store_key(value: object) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


def loaded_collections(
    collections: Mapping, operation: str,
) -> dict[str, Sequence]:
    """Loaded collections of a snapshot; None values mean "not loaded"."""
    require_mapping(collections, operation, "collections")
    loaded: dict[str, Sequence] = {}
    for name, items in collections.items():
        if items is None:
            continue
        if not isinstance(items, (list, tuple)):
            raise ContractViolationError(
                operation, f"collections[{name!r}]", "a list or tuple", items,
                ErrorContext(collection=str(name)),
            )
        loaded[name] = items
    return loaded


def build_index(
    collections: Mapping, overrides: dict[str, CollectionSchema] | None = None,
) -> CollectionIndex:
    """Normalize every document once and collect the id sets the checks need."""
    loaded = loaded_collections(collections, "scan")
    index = CollectionIndex(collections=loaded)
    for name, items in loaded.items():
        schema = infer_collection_schema(name, overrides)
        index.schemas[name] = schema
        docs = [item for item in items if isinstance(item, Mapping)]
        if schema is CollectionSchema.PRINCIPAL:
            index.users_loaded = True
            for doc in docs:
                principal = normalize_principal(doc)
                index.principals.append((name, principal))
                if principal.id:
                    index.principal_ids.add(principal.id)
        elif schema is CollectionSchema.STORE:
            index.stores_loaded = True
            for doc in docs:
                store = normalize_store(doc)
                index.stores.append((name, store))
                key = _store_key(store.id)
                if key is not None:
                    index.store_ids.add(key)
        elif schema.resource_kind is not None:
            index.resources.extend((name, normalize(doc)) for doc in docs)
    return index


def _orphan(
    collection: str, field_name: str, value: Any, item_id: Any, description: str,
) -> Inconsistency:
    return Inconsistency(
        InconsistencyType.ORPHANED_REFERENCE, description,
        collection=collection, field=field_name, value=value, item_id=item_id,
    )


# ─── Checks ──────────────────────────────────────────────────────

def check_principal_store_refs(index: CollectionIndex) -> Iterable[Inconsistency]:
    """Users whose home store or managed stores do not exist."""
    if not index.stores_loaded:
        return
    for name, user in index.principals:
        if user.home_store and user.home_store not in index.store_ids:
            yield _orphan(
                name, "homeStore", user.home_store, user.id,
                f"User {user.id} references non-existent store {user.home_store}",
            )
        for store_id in sorted(user.managed_stores - index.store_ids):
            yield _orphan(
                name, "managedStores", store_id, user.id,
                f"User {user.id} manages non-existent store {store_id}",
            )


def check_store_manager_refs(index: CollectionIndex) -> Iterable[Inconsistency]:
    """Stores whose manager is not a known user."""
    if not index.users_loaded:
        return
    for name, store in index.stores:
        if store.manager_id and store.manager_id not in index.principal_ids:
            label = store.name or store.id
            yield _orphan(
                name, "managerId", store.manager_id, store.id,
                f"Store {label} references non-existent manager {store.manager_id}",
            )


def check_resource_refs(index: CollectionIndex) -> Iterable[Inconsistency]:
    """Resources targeting stores or assignees that do not exist."""
    for name, resource in index.resources:
        if index.stores_loaded:
            for store_id in sorted(resource.assigned_stores - index.store_ids):
                yield _orphan(
                    name, "assignedStores", store_id, resource.id,
                    f"{name} item {resource.id} is assigned to non-existent store {store_id}",
                )
        if index.users_loaded:
            for assignee in sorted(resource.assignees - index.principal_ids):
                yield _orphan(
                    name, "assignees", assignee, resource.id,
                    f"{name} item {resource.id} is assigned to non-existent user {assignee}",
                )


def check_duplicate_emails(index: CollectionIndex) -> Iterable[Inconsistency]:
    """More than one user sharing a case-normalized e-mail, across every user collection.

    `collection` names each collection holding the e-mail, in order of appearance.
    """
    counts: Counter[str] = Counter()
    holders: dict[str, list[str]] = {}
    for name, user in index.principals:
        if not user.id:
            continue
        counts[user.id] += 1
        names = holders.setdefault(user.id, [])
        if name not in names:
            names.append(name)
    for email, count in counts.items():
        if count > 1:
            yield Inconsistency(
                InconsistencyType.DUPLICATE_EMAIL,
                f"Duplicate email {email} found {count} times",
                collection=", ".join(holders[email]), value=email, count=count,
            )


def check_duplicate_ids(index: CollectionIndex) -> Iterable[Inconsistency]:
    """More than one document with the same id inside a non-user collection."""
    for name, items in index.collections.items():
        if index.schemas[name] is CollectionSchema.PRINCIPAL:
            continue
        counts: Counter = Counter(
            identity_key(item) for item in items
            if isinstance(item, Mapping) and item.get("id") not in (None, "")
        )
        for key, count in counts.items():
            if count > 1:
                yield Inconsistency(
                    InconsistencyType.DUPLICATE_ID,
                    f"Duplicate id {key} found {count} times in {name}",
                    collection=name, field="id", value=key, count=count,
                )


DEFAULT_CHECKS: tuple[Check, ...] = (
    check_principal_store_refs,
    check_store_manager_refs,
    check_resource_refs,
    check_duplicate_emails,
    check_duplicate_ids,
)


def scan(
    collections: Mapping,
    checks: Sequence[Check] = DEFAULT_CHECKS,
    trace: TraceSink | None = None,
    schemas: dict[str, CollectionSchema] | None = None,
) -> list[Inconsistency]:
    """Run every check over one snapshot and return all findings in check order."""
    index = build_index(collections, schemas)
    findings: list[Inconsistency] = []
    for check in checks:
        for finding in check(index):
            emit(
                trace, "integrity.finding",
                type=finding.type.value, collection=finding.collection,
                field=finding.field, value=finding.value,
            )
            findings.append(finding)
    emit(trace, "integrity.scan", collections=len(index.collections), findings=len(findings))
    return findings
