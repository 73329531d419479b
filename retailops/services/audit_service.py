"""Audit Service: entry points used by the administrative data-audit screen.

Invariants:
    - Reads settings, calls core, returns camelCase JSON-ready dicts
    - Never persists anything; run_repair returns the corrected snapshot for
      the caller to write back
    - Contract violations are logged with their error code, then re-raised
"""

import logging
from collections.abc import Mapping

from retailops.config import Settings, get_settings
from retailops.core.audit_report import build_report, repair_collections
from retailops.core.errors import RetailOpsError
from retailops.infrastructure.observability import LoggingTraceSink
from retailops.schemas.audit import AuditReportResponse, RepairResponse

logger = logging.getLogger(__name__)


def _trace(settings: Settings) -> LoggingTraceSink | None:
    return LoggingTraceSink() if settings.trace_decisions else None


def run_audit(collections: Mapping, settings: Settings | None = None) -> dict:
    """Audit one snapshot and return the serialized report."""
    settings = settings or get_settings()
    try:
        report = build_report(
            collections,
            schemas=settings.collection_schemas or None,
            trace=_trace(settings),
        )
    except RetailOpsError as exc:
        logger.error(
            f"Audit rejected its input: {exc.message}",
            extra={"error_code": exc.code},
        )
        raise
    logger.info(
        "Audit complete",
        extra={
            "total_items": report.summary.total_items,
            "invalid_items": report.invalid_items,
            "findings": report.summary.inconsistencies,
        },
    )
    return AuditReportResponse.from_report(report).to_json_dict()


def run_repair(collections: Mapping, settings: Settings | None = None) -> dict:
    """Repair one snapshot in memory and return it with before/after reports."""
    settings = settings or get_settings()
    try:
        result = repair_collections(
            collections,
            id_field=settings.identity_field,
            prefer_latest=settings.prefer_latest_on_repair,
            schemas=settings.collection_schemas or None,
        )
    except RetailOpsError as exc:
        logger.error(
            f"Repair rejected its input: {exc.message}",
            extra={"error_code": exc.code},
        )
        raise

    for name, records in result.rejected.items():
        if records:
            logger.warning(
                f"Repair dropped {len(records)} invalid record(s) from {name}",
                extra={"collection": name},
            )
    logger.info(
        f"Repair finished: {result.before.summary.inconsistencies} → "
        f"{result.after.summary.inconsistencies} inconsistencies",
        extra={"findings": result.after.summary.inconsistencies},
    )
    return RepairResponse.from_result(result).to_json_dict()
