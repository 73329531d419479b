"""Assignment Service: list filtering and single-resource access guards for pages.

Invariants:
    - The principal payload is validated by PrincipalContext before any decision
    - Invalid resources never reach the caller's list; they are logged and counted
    - Decisions themselves come only from core.entitlement
"""

import logging
from collections.abc import Mapping, Sequence

from retailops.config import Settings, get_settings
from retailops.core.domain_types import ResourceKind
from retailops.core.entitlement import explain_entitlement, resolve_assignments
from retailops.core.records import Principal, Resource
from retailops.infrastructure.observability import LoggingTraceSink
from retailops.schemas.principal import PrincipalContext

logger = logging.getLogger(__name__)


def _principal(payload: Mapping | PrincipalContext | Principal) -> Principal:
    if isinstance(payload, Principal):
        return payload
    if isinstance(payload, PrincipalContext):
        return payload.to_principal()
    return PrincipalContext.model_validate(payload).to_principal()


def visible_resources(
    resources: Sequence,
    principal: Mapping | PrincipalContext | Principal,
    kind: ResourceKind | str | None = None,
    settings: Settings | None = None,
) -> list[Resource]:
    """Resources of one kind the principal may see, in input order."""
    settings = settings or get_settings()
    who = _principal(principal)
    trace = LoggingTraceSink() if settings.trace_decisions else None
    resolution = resolve_assignments(resources, who, kind, trace)
    for resource, result in resolution.excluded:
        logger.warning(
            f"Excluded invalid resource {resource.id}: "
            f"{', '.join(k.value for k in result.kinds)}",
            extra={"resource_id": resource.id, "principal_id": who.id},
        )
    return resolution.entitled


def can_access(
    resource: object,
    principal: Mapping | PrincipalContext | Principal,
) -> bool:
    """Guard for a single resource page (task execution, training, test)."""
    who = _principal(principal)
    decision = explain_entitlement(resource, who)
    if not decision.entitled:
        logger.info(
            "Access denied",
            extra={"principal_id": who.id, "reason": decision.reason.value},
        )
    return decision.entitled
