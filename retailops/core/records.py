"""Canonical Records: the normalized shapes every downstream component reads.

Invariants:
    - Set-valued fields are frozensets, never None
    - target_audience and role are always closed enum members
    - Fields the engine does not interpret are kept in `extras` unchanged,
      so to_record() never drops data the snapshot carried
    - Kind-specific fields keep their raw value (or None when absent):
      "missing" and "wrong type" stay distinguishable for the validator

Design Decisions:
    - Frozen dataclasses: records are read-only during evaluation
    - to_record() emits the camelCase document shape the persistence layer stores
"""

from dataclasses import dataclass, field
from typing import Any

from retailops.core.domain_types import PrincipalId, Role, StoreId, TargetAudience


def _sorted(values: frozenset[str]) -> list[str]:
    return sorted(values)


def _plain(value: Any) -> Any:
    """Tuples produced by normalization go back to lists for storage."""
    if isinstance(value, tuple):
        return list(value)
    return value


@dataclass(frozen=True)
class Resource:
    """An assignable task, training or test with its targeting policy."""

    id: Any = None
    title: Any = None
    created_by: Any = None
    created_at: Any = field(default=None, hash=False)
    updated_at: Any = field(default=None, hash=False)
    target_audience: TargetAudience = TargetAudience.LEGACY_UNSET
    assigned_stores: frozenset[StoreId] = frozenset()
    assignees: frozenset[PrincipalId] = frozenset()
    completed_by: frozenset[PrincipalId] = frozenset()

    # Task
    has_steps: Any = None
    steps: Any = field(default=None, hash=False)
    # Training
    content: Any = None
    media_url: Any = None
    # Test
    questions: Any = field(default=None, hash=False)

    extras: dict[str, Any] = field(default_factory=dict, hash=False)

    def to_record(self) -> dict[str, Any]:
        """Document shape for persistence; normalize(r.to_record()) == r."""
        record: dict[str, Any] = dict(self.extras)
        optional = {
            "id": self.id,
            "title": self.title,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "hasSteps": self.has_steps,
            "steps": _plain(self.steps),
            "content": self.content,
            "mediaUrl": self.media_url,
            "questions": _plain(self.questions),
        }
        record.update({k: v for k, v in optional.items() if v is not None})
        record["targetAudience"] = self.target_audience.value
        record["assignedStores"] = _sorted(self.assigned_stores)
        record["assignees"] = _sorted(self.assignees)
        record["completedBy"] = _sorted(self.completed_by)
        return record


@dataclass(frozen=True)
class Principal:
    """An already-authenticated actor: e-mail identity, role and store scope."""

    id: PrincipalId = PrincipalId("")
    role: Role = Role.UNKNOWN
    home_store: StoreId | None = None
    managed_stores: frozenset[StoreId] = frozenset()
    extras: dict[str, Any] = field(default_factory=dict, hash=False)

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = dict(self.extras)
        record["email"] = self.id
        record["role"] = self.role.value
        if self.home_store is not None:
            record["homeStore"] = self.home_store
        record["managedStores"] = _sorted(self.managed_stores)
        return record


@dataclass(frozen=True)
class Store:
    """A store location and the principal id of its manager, if any."""

    id: Any = None
    manager_id: PrincipalId | None = None
    name: Any = None
    extras: dict[str, Any] = field(default_factory=dict, hash=False)

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = dict(self.extras)
        if self.id is not None:
            record["id"] = self.id
        if self.name is not None:
            record["name"] = self.name
        if self.manager_id is not None:
            record["managerId"] = self.manager_id
        return record
