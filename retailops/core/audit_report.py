"""Audit Report Builder: validator and scanner output aggregated per snapshot.

Invariants:
    - build_report is pure apart from one clock read (injectable via `now`)
    - No state survives between calls; repeated calls on the same snapshot agree
      on everything except the timestamp
    - None or empty collections contribute zero items and never an error
    - The validation schema of a collection is inferred from its logical name
    - repair_collections works only in memory; writing the result back is the
      caller's job

Repair flow: normalize every record → collapse duplicates by identity key →
re-validate (invalid records move to `rejected`) → rebuild the report.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from retailops.core.dedupe import dedupe, merge_duplicates, read_field
from retailops.core.domain_types import CollectionSchema, infer_collection_schema
from retailops.core.integrity import DEFAULT_CHECKS, Check, Inconsistency, loaded_collections, scan
from retailops.core.normalize import normalize, normalize_principal, normalize_store
from retailops.core.records import Principal, Resource, Store
from retailops.core.trace_protocols import TraceSink
from retailops.core.validate import ValidationIssue, validate_for_schema

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ItemErrors:
    """Validation issues of one invalid item, located by position and id."""
    index: int
    item_id: Any
    errors: tuple[ValidationIssue, ...]

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "itemId": self.item_id,
            "errors": [issue.to_dict() for issue in self.errors],
        }


@dataclass
class CollectionReport:
    count: int = 0
    valid_items: int = 0
    invalid_items: int = 0
    errors: list[ItemErrors] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "validItems": self.valid_items,
            "invalidItems": self.invalid_items,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class ReportSummary:
    total_collections: int = 0
    total_items: int = 0
    inconsistencies: int = 0


@dataclass
class AuditReport:
    """Everything the administrative audit screen shows for one snapshot."""
    timestamp: str
    summary: ReportSummary
    collections: dict[str, CollectionReport] = field(default_factory=dict)
    inconsistencies: list[Inconsistency] = field(default_factory=list)

    @property
    def has_inconsistencies(self) -> bool:
        return bool(self.inconsistencies)

    @property
    def invalid_items(self) -> int:
        return sum(c.invalid_items for c in self.collections.values())

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "summary": {
                "totalCollections": self.summary.total_collections,
                "totalItems": self.summary.total_items,
                "inconsistencies": self.summary.inconsistencies,
            },
            "collections": {name: c.to_dict() for name, c in self.collections.items()},
            "inconsistencies": {
                "hasInconsistencies": self.has_inconsistencies,
                "items": [i.to_dict() for i in self.inconsistencies],
                "count": len(self.inconsistencies),
            },
        }


def item_identifier(item: object, position: int) -> Any:
    """id, then e-mail, then the item's position in its collection."""
    for name in ("id", "email"):
        value = read_field(item, name)
        if value not in (None, ""):
            return value
    return position


def _collection_report(items: Sequence, schema: CollectionSchema) -> CollectionReport:
    report = CollectionReport(count=len(items))
    for position, item in enumerate(items):
        result = validate_for_schema(item, schema)
        if result.valid:
            report.valid_items += 1
            continue
        report.invalid_items += 1
        report.errors.append(
            ItemErrors(position, item_identifier(item, position), result.errors),
        )
    return report


def build_report(
    collections: Mapping,
    schemas: dict[str, CollectionSchema] | None = None,
    now: Clock | None = None,
    checks: Sequence[Check] = DEFAULT_CHECKS,
    trace: TraceSink | None = None,
) -> AuditReport:
    """Validate every collection member and merge in the scanner's findings."""
    loaded = loaded_collections(collections, "build_report")
    per_collection: dict[str, CollectionReport] = {}
    for name in collections:
        items = loaded.get(name, ())
        per_collection[name] = _collection_report(
            items, infer_collection_schema(name, schemas),
        )

    findings = scan(loaded, checks, trace, schemas)
    clock = now or _utc_now
    return AuditReport(
        timestamp=clock().isoformat(),
        summary=ReportSummary(
            total_collections=len(collections),
            total_items=sum(c.count for c in per_collection.values()),
            inconsistencies=len(findings),
        ),
        collections=per_collection,
        inconsistencies=findings,
    )


# ─── Repair ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class RejectedRecord:
    """A record dropped by repair because it is still invalid after normalization."""
    item_id: Any
    record: Any
    errors: tuple[ValidationIssue, ...]

    def to_dict(self) -> dict:
        return {
            "itemId": self.item_id,
            "record": self.record,
            "errors": [issue.to_dict() for issue in self.errors],
        }


@dataclass
class RepairResult:
    """Corrected in-memory snapshot plus the reports before and after."""
    collections: dict[str, list | None]
    rejected: dict[str, list[RejectedRecord]]
    removed_duplicates: dict[str, int]
    before: AuditReport
    after: AuditReport

    @property
    def improved(self) -> bool:
        return self.after.summary.inconsistencies <= self.before.summary.inconsistencies


def canonicalize(item: object, schema: CollectionSchema) -> object:
    """Normalizer matching the collection schema; generic documents are copied."""
    if schema is CollectionSchema.PRINCIPAL:
        return normalize_principal(item)
    if schema is CollectionSchema.STORE:
        return normalize_store(item)
    if schema.resource_kind is not None:
        return normalize(item)
    return dict(item) if isinstance(item, Mapping) else item


def _collapse(records: list, id_field: str, prefer_latest: bool) -> list:
    """Collapse duplicates among records that have an identity value.

    Records without one are never collapsed. Survivors keep their input order.
    """
    keyed = [r for r in records if read_field(r, id_field) not in (None, "")]
    survivors = merge_duplicates(keyed, id_field) if prefer_latest else dedupe(keyed, id_field)
    keep = {id(r) for r in survivors}
    return [
        r for r in records
        if id(r) in keep or read_field(r, id_field) in (None, "")
    ]


def _to_document(record: object) -> object:
    if isinstance(record, (Resource, Principal, Store)):
        return record.to_record()
    return record


def repair_collections(
    collections: Mapping,
    id_field: str = "id",
    prefer_latest: bool = False,
    schemas: dict[str, CollectionSchema] | None = None,
    now: Clock | None = None,
) -> RepairResult:
    """Normalize, collapse duplicates, drop what is still invalid, re-audit."""
    before = build_report(collections, schemas, now)
    loaded = loaded_collections(collections, "repair_collections")

    repaired: dict[str, list | None] = {}
    rejected: dict[str, list[RejectedRecord]] = {}
    removed: dict[str, int] = {}
    for name in collections:
        if name not in loaded:
            repaired[name] = None
            continue
        schema = infer_collection_schema(name, schemas)
        canonical = [canonicalize(item, schema) for item in loaded[name] if item is not None]
        collapsed = _collapse(canonical, id_field, prefer_latest)
        removed[name] = len(canonical) - len(collapsed)

        kept: list = []
        dropped: list[RejectedRecord] = []
        for position, record in enumerate(collapsed):
            result = validate_for_schema(record, schema)
            if result.valid:
                kept.append(_to_document(record))
            else:
                dropped.append(RejectedRecord(
                    item_identifier(record, position), _to_document(record), result.errors,
                ))
        repaired[name] = kept
        rejected[name] = dropped

    after = build_report(repaired, schemas, now)
    return RepairResult(repaired, rejected, removed, before, after)
