"""Audit Schemas: Pydantic models for reports handed to the administrative audit surface.

Invariants:
    - Serialized field names are camelCase (the surface's JSON convention)
    - CollectionReportOut: validItems + invalidItems == count
    - InconsistenciesOut: count == len(items)
    - Models are built from core dataclasses via from_report / from_result, never by hand

Design Decisions:
    - model_validator for cross-field checks, field types for everything else
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from retailops.core.audit_report import AuditReport, RepairResult
from retailops.core.domain_types import ErrorKind, InconsistencyType


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ValidationIssueOut(_CamelModel):
    kind: ErrorKind
    field: str
    message: str


class ItemErrorsOut(_CamelModel):
    index: int
    item_id: Any = None
    errors: list[ValidationIssueOut]


class CollectionReportOut(_CamelModel):
    count: int
    valid_items: int
    invalid_items: int
    errors: list[ItemErrorsOut] = []

    @model_validator(mode="after")
    def tallies_add_up(self) -> "CollectionReportOut":
        if self.valid_items + self.invalid_items != self.count:
            raise ValueError("validItems + invalidItems must equal count")
        return self


class SummaryOut(_CamelModel):
    total_collections: int
    total_items: int
    inconsistencies: int


class InconsistencyOut(_CamelModel):
    type: InconsistencyType
    collection: str | None = None
    field: str | None = None
    item_id: Any = None
    count: int | None = None
    value: Any = None
    description: str


class InconsistenciesOut(_CamelModel):
    has_inconsistencies: bool
    items: list[InconsistencyOut]
    count: int

    @model_validator(mode="after")
    def count_matches_items(self) -> "InconsistenciesOut":
        if self.count != len(self.items):
            raise ValueError("count must equal the number of items")
        return self


class AuditReportResponse(_CamelModel):
    """Complete audit report for one snapshot."""
    timestamp: datetime
    summary: SummaryOut
    collections: dict[str, CollectionReportOut]
    inconsistencies: InconsistenciesOut

    @classmethod
    def from_report(cls, report: AuditReport) -> "AuditReportResponse":
        return cls.model_validate(report.to_dict())


class RejectedRecordOut(_CamelModel):
    item_id: Any = None
    record: Any = None
    errors: list[ValidationIssueOut]


class RepairResponse(_CamelModel):
    """Repaired snapshot for the persistence layer plus before/after reports."""
    collections: dict[str, list[Any] | None]
    rejected: dict[str, list[RejectedRecordOut]]
    removed_duplicates: dict[str, int]
    before: AuditReportResponse
    after: AuditReportResponse
    improved: bool

    @classmethod
    def from_result(cls, result: RepairResult) -> "RepairResponse":
        return cls(
            collections=result.collections,
            rejected={
                name: [RejectedRecordOut.model_validate(r.to_dict()) for r in records]
                for name, records in result.rejected.items()
            },
            removed_duplicates=result.removed_duplicates,
            before=AuditReportResponse.from_report(result.before),
            after=AuditReportResponse.from_report(result.after),
            improved=result.improved,
        )
