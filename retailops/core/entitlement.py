"""Entitlement Resolver: decides whether a principal is entitled to a resource.

Invariants:
    - is_entitled is PURE, TOTAL and referentially transparent: it never raises
    - SUPER_ADMIN and ADMIN are entitled to everything, before any targeting rule
    - Every decision carries a DecisionReason; nothing is granted or denied silently
    - Missing sets are empty sets (raw input goes through the normalizer first)
    - An unrecognized targetAudience is LEGACY_UNSET by the time it reaches here,
      so it takes the legacy fallback rather than failing
    - Creator visibility applies ONLY to LEGACY_UNSET resources
    - filter_assigned preserves input order

Design Decisions:
    - Audience dispatch is a match statement closed by assert_never: adding a
      TargetAudience member without a rule fails type checking
    - resolve_assignments validates before deciding; structurally invalid
      resources are excluded and returned with their ValidationResult
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, assert_never

from retailops.core.domain_types import (
    ALL_STAFF_ROLES,
    UNIVERSAL_ROLES,
    DecisionReason,
    ResourceKind,
    Role,
    TargetAudience,
)
from retailops.core.errors import require_sequence
from retailops.core.normalize import normalize, normalize_principal
from retailops.core.records import Principal, Resource
from retailops.core.trace_protocols import TraceSink, emit
from retailops.core.validate import ValidationResult, validate


@dataclass(frozen=True)
class EntitlementDecision:
    """A yes/no entitlement with the rule that produced it."""
    entitled: bool
    reason: DecisionReason

    def __bool__(self) -> bool:
        return self.entitled


@dataclass
class AssignmentResolution:
    """Resources a principal may see, plus resources excluded as invalid."""
    entitled: list[Resource] = field(default_factory=list)
    excluded: list[tuple[Resource, ValidationResult]] = field(default_factory=list)


def _grant(reason: DecisionReason) -> EntitlementDecision:
    return EntitlementDecision(True, reason)


def _deny(reason: DecisionReason) -> EntitlementDecision:
    return EntitlementDecision(False, reason)


def _as_resource(resource: object) -> Resource:
    return resource if isinstance(resource, Resource) else normalize(resource)


def _as_principal(principal: object) -> Principal:
    return principal if isinstance(principal, Principal) else normalize_principal(principal)


# ─── Store scope ─────────────────────────────────────────────────

def effective_stores(principal: Principal) -> frozenset[str]:
    """Store scope used for LOCATION targeting.

    Managers use their managed stores, falling back to their home store when
    they manage none. Staff use their home store. Every other role has no
    store scope.
    """
    home = frozenset({principal.home_store}) if principal.home_store else frozenset()
    if principal.role is Role.MANAGER:
        return principal.managed_stores or home
    if principal.role is Role.STAFF:
        return home
    return frozenset()


# ─── Audience rules ──────────────────────────────────────────────

def _by_role(allowed: bool, granted: DecisionReason) -> EntitlementDecision:
    return _grant(granted) if allowed else _deny(DecisionReason.ROLE_NOT_TARGETED)


def _by_location(resource: Resource, principal: Principal) -> EntitlementDecision:
    if resource.assigned_stores & effective_stores(principal):
        return _grant(DecisionReason.STORE_MATCH)
    return _deny(DecisionReason.NO_STORE_MATCH)


def _by_assignee(resource: Resource, principal: Principal) -> EntitlementDecision:
    if principal.id and principal.id in resource.assignees:
        return _grant(DecisionReason.NAMED_ASSIGNEE)
    return _deny(DecisionReason.NOT_ASSIGNEE)


def _by_legacy(resource: Resource, principal: Principal) -> EntitlementDecision:
    if not principal.id:
        return _deny(DecisionReason.NO_LEGACY_MATCH)
    if principal.id in resource.assignees:
        return _grant(DecisionReason.LEGACY_ASSIGNEE)
    if resource.created_by == principal.id:
        return _grant(DecisionReason.LEGACY_CREATOR)
    return _deny(DecisionReason.NO_LEGACY_MATCH)


def _decide(resource: Resource, principal: Principal) -> EntitlementDecision:
    if principal.role in UNIVERSAL_ROLES:
        return _grant(DecisionReason.UNIVERSAL_ROLE)

    audience = resource.target_audience
    match audience:
        case TargetAudience.ALL_STAFF:
            return _by_role(principal.role in ALL_STAFF_ROLES, DecisionReason.ALL_STAFF_ROLE)
        case TargetAudience.ALL_MANAGERS:
            return _by_role(principal.role is Role.MANAGER, DecisionReason.ALL_MANAGERS_ROLE)
        case TargetAudience.LOCATION:
            return _by_location(resource, principal)
        case TargetAudience.INDIVIDUAL:
            return _by_assignee(resource, principal)
        case TargetAudience.LEGACY_UNSET:
            return _by_legacy(resource, principal)
        case _:
            assert_never(audience)


# ─── Public API ──────────────────────────────────────────────────

def explain_entitlement(
    resource: object, principal: object, trace: TraceSink | None = None,
) -> EntitlementDecision:
    """Decide entitlement and say which rule decided it."""
    res = _as_resource(resource)
    who = _as_principal(principal)
    decision = _decide(res, who)
    emit(
        trace, "entitlement.decision",
        resource_id=res.id,
        principal_id=who.id,
        role=who.role.value,
        target_audience=res.target_audience.value,
        entitled=decision.entitled,
        reason=decision.reason.value,
    )
    return decision


def is_entitled(
    resource: object, principal: object, trace: TraceSink | None = None,
) -> bool:
    """True iff `principal` may see and act on `resource`."""
    return explain_entitlement(resource, principal, trace).entitled


def filter_assigned(
    resources: Sequence, principal: object, trace: TraceSink | None = None,
) -> list:
    """Stable filter of `resources` down to those the principal is entitled to.

    Items are returned as given (raw documents stay raw).
    """
    require_sequence(resources, "filter_assigned", "resources")
    who = _as_principal(principal)
    return [r for r in resources if is_entitled(r, who, trace)]


def resolve_assignments(
    resources: Sequence,
    principal: object,
    kind: ResourceKind | str | None = None,
    trace: TraceSink | None = None,
) -> AssignmentResolution:
    """Validate each resource, exclude the invalid ones, filter the rest.

    Excluded resources come back with the ValidationResult explaining why,
    so the caller can flag them.
    """
    require_sequence(resources, "resolve_assignments", "resources")
    who = _as_principal(principal)
    resolution = AssignmentResolution()
    for raw in resources:
        resource = _as_resource(raw)
        result = validate(raw, kind)
        if not result.valid:
            emit(
                trace, "entitlement.excluded",
                resource_id=resource.id,
                errors=[issue.kind.value for issue in result.errors],
            )
            resolution.excluded.append((resource, result))
            continue
        if is_entitled(resource, who, trace):
            resolution.entitled.append(resource)
    return resolution


def assignment_summary(resource: object, principal: object) -> dict[str, Any]:
    """Flat view of the inputs and outcome of one decision, for debugging screens."""
    res = _as_resource(resource)
    who = _as_principal(principal)
    decision = _decide(res, who)
    return {
        "itemId": res.id,
        "itemTitle": res.title,
        "targetAudience": res.target_audience.value,
        "assignedStores": sorted(res.assigned_stores),
        "assignees": sorted(res.assignees),
        "userRole": who.role.value,
        "userEmail": who.id,
        "userStores": sorted(effective_stores(who)),
        "isAssigned": decision.entitled,
        "reason": decision.reason.value,
    }
