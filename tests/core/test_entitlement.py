"""Entitlement Resolver: decision order, audience rules, legacy fallback.

Tests cover:
    - SUPER_ADMIN / ADMIN are entitled to every resource shape
    - ALL_STAFF, ALL_MANAGERS, LOCATION, INDIVIDUAL, LEGACY_UNSET rules
    - manager store scope falls back to the home store
    - creator visibility only applies to legacy resources
    - filter_assigned keeps order; resolve_assignments excludes invalid resources
    - decisions are traced with their reason
"""

import pytest

from retailops.core.domain_types import DecisionReason, Role, TargetAudience
from retailops.core.entitlement import (
    assignment_summary,
    effective_stores,
    explain_entitlement,
    filter_assigned,
    is_entitled,
    resolve_assignments,
)
from retailops.core.errors import ContractViolationError
from retailops.core.normalize import normalize_principal
from retailops.core.records import Principal
from retailops.core.trace_protocols import RecordingTraceSink


def _user(email: str, role: str, home: str | None = None, managed=None) -> dict:
    return {"email": email, "role": role, "homeStore": home, "managedStores": managed or []}


RESOURCES = [
    {},
    {"targetAudience": "all_staff"},
    {"targetAudience": "all_managers"},
    {"targetAudience": "location", "assignedStores": ["S1"]},
    {"targetAudience": "location"},
    {"targetAudience": "individual", "assignees": ["someone@x.com"]},
    {"targetAudience": "nonsense", "assignees": 12},
    {"assignTo": "individual"},
]


# ─── Universal roles ─────────────────────────────────────────────

def test_admin_roles_are_entitled_to_everything():
    for role in ("SUPER_ADMIN", "ADMIN"):
        admin = _user("boss@x.com", role)
        for resource in RESOURCES:
            assert is_entitled(resource, admin) is True, (role, resource)


def test_admin_decision_reason():
    decision = explain_entitlement({"targetAudience": "individual"}, _user("a@x.com", "ADMIN"))
    assert decision.reason is DecisionReason.UNIVERSAL_ROLE


# ─── ALL_STAFF / ALL_MANAGERS ────────────────────────────────────

def test_all_staff_covers_staff_and_managers_only():
    resource = {"targetAudience": "all_staff"}
    assert is_entitled(resource, _user("s@x.com", "STAFF"))
    assert is_entitled(resource, _user("m@x.com", "MANAGER"))
    assert not is_entitled(resource, _user("o@x.com", "OWNER"))
    assert not is_entitled(resource, _user("f@x.com", "OFFICE"))
    assert not is_entitled(resource, _user("u@x.com", "janitor"))


def test_all_managers_covers_managers_only():
    resource = {"targetAudience": "all_managers"}
    assert is_entitled(resource, _user("m@x.com", "MANAGER"))
    assert not is_entitled(resource, _user("s@x.com", "STAFF"))


def test_recognized_audience_has_no_creator_fallback():
    resource = {"targetAudience": "all_staff", "createdBy": "o@x.com"}
    decision = explain_entitlement(resource, _user("o@x.com", "OWNER"))
    assert not decision.entitled
    assert decision.reason is DecisionReason.ROLE_NOT_TARGETED


# ─── LOCATION ────────────────────────────────────────────────────

def test_manager_location_scenario():
    resource = {"targetAudience": "LOCATION", "assignedStores": ["S1"]}
    assert is_entitled(resource, _user("m@x.com", "MANAGER", managed=["S1", "S2"]))
    assert not is_entitled(resource, _user("m@x.com", "MANAGER", managed=["S3"]))


def test_manager_without_managed_stores_uses_home_store():
    resource = {"targetAudience": "location", "assignedStores": ["S1"]}
    assert is_entitled(resource, _user("m@x.com", "MANAGER", home="S1"))


def test_manager_with_managed_stores_ignores_home_store():
    resource = {"targetAudience": "location", "assignedStores": ["S1"]}
    assert not is_entitled(resource, _user("m@x.com", "MANAGER", home="S1", managed=["S2"]))


def test_staff_location_matches_home_store_exactly():
    stores = [[], ["S1"], ["S2"], ["S1", "S2"], "S1"]
    for home in ("S1", "S2", None):
        staff = _user("s@x.com", "STAFF", home=home)
        for assigned in stores:
            resource = {"targetAudience": "location", "assignedStores": assigned}
            expected = isinstance(assigned, list) and home in assigned
            assert is_entitled(resource, staff) is expected, (home, assigned)


def test_other_roles_have_no_store_scope():
    resource = {"targetAudience": "location", "assignedStores": ["S1"]}
    assert not is_entitled(resource, _user("o@x.com", "OWNER", home="S1", managed=["S1"]))


def test_effective_stores():
    manager = normalize_principal(_user("m@x.com", "MANAGER", home="H", managed=["A"]))
    fallback = normalize_principal(_user("m@x.com", "MANAGER", home="H"))
    staff = normalize_principal(_user("s@x.com", "STAFF", home="H", managed=["A"]))
    office = normalize_principal(_user("f@x.com", "OFFICE", home="H"))
    assert effective_stores(manager) == frozenset({"A"})
    assert effective_stores(fallback) == frozenset({"H"})
    assert effective_stores(staff) == frozenset({"H"})
    assert effective_stores(office) == frozenset()


# ─── INDIVIDUAL ──────────────────────────────────────────────────

def test_individual_depends_only_on_assignees():
    for assigned_stores in ([], ["S1"], ["S1", "S2"]):
        resource = {
            "targetAudience": "individual",
            "assignees": ["a@x.com"],
            "assignedStores": assigned_stores,
        }
        for role in ("STAFF", "MANAGER", "OWNER", "OFFICE"):
            assert is_entitled(resource, _user("a@x.com", role, home="S1"))
            assert not is_entitled(resource, _user("b@x.com", role, home="S1", managed=["S1"]))


def test_individual_matches_case_insensitively():
    resource = {"targetAudience": "individual", "assignees": ["A@X.com"]}
    assert is_entitled(resource, _user("a@x.COM", "STAFF"))


# ─── LEGACY_UNSET ────────────────────────────────────────────────

def test_legacy_scenario():
    resource = {"assignees": ["a@x.com"], "createdBy": "b@x.com"}
    a = explain_entitlement(resource, _user("a@x.com", "STAFF"))
    b = explain_entitlement(resource, _user("b@x.com", "MANAGER"))
    c = explain_entitlement(resource, _user("c@x.com", "STAFF"))
    assert (a.entitled, a.reason) == (True, DecisionReason.LEGACY_ASSIGNEE)
    assert (b.entitled, b.reason) == (True, DecisionReason.LEGACY_CREATOR)
    assert (c.entitled, c.reason) == (False, DecisionReason.NO_LEGACY_MATCH)


def test_unrecognized_audience_takes_legacy_path():
    resource = {"targetAudience": "vip", "createdBy": "b@x.com"}
    assert is_entitled(resource, _user("b@x.com", "STAFF"))
    assert not is_entitled(resource, _user("a@x.com", "STAFF"))


def test_legacy_with_malformed_assignees_still_checks_creator():
    resource = {"assignees": "a@x.com", "createdBy": "a@x.com"}
    assert explain_entitlement(resource, _user("a@x.com", "STAFF")).reason is DecisionReason.LEGACY_CREATOR


def test_principal_without_identity_is_never_a_creator():
    resource = {"createdBy": ""}
    assert not is_entitled(resource, {"role": "STAFF"})


# ─── Totality ────────────────────────────────────────────────────

def test_is_entitled_is_total_over_junk():
    for resource in (None, 3, "x", [], {"assignedStores": {"a": 1}}):
        for principal in (None, {}, Principal(), {"email": 9, "role": []}):
            assert is_entitled(resource, principal) in (True, False)


def test_canonical_records_are_accepted_directly():
    who = Principal(id="a@x.com", role=Role.STAFF, home_store="S1")
    assert is_entitled({"targetAudience": "location", "assignedStores": ["S1"]}, who)


# ─── filter_assigned / resolve_assignments ───────────────────────

def test_filter_assigned_is_stable():
    items = [
        {"id": 1, "targetAudience": "all_staff"},
        {"id": 2, "targetAudience": "all_managers"},
        {"id": 3, "targetAudience": "individual", "assignees": ["s@x.com"]},
        {"id": 4, "targetAudience": "all_staff"},
    ]
    visible = filter_assigned(items, _user("s@x.com", "STAFF"))
    assert [item["id"] for item in visible] == [1, 3, 4]
    assert visible[0] is items[0]


def test_filter_assigned_rejects_non_sequence():
    with pytest.raises(ContractViolationError):
        filter_assigned({"id": 1}, _user("s@x.com", "STAFF"))


def test_resolve_assignments_excludes_invalid_resources():
    good = {
        "id": "ok", "title": "T", "createdBy": "b@x.com", "createdAt": "2024-01-01",
        "targetAudience": "all_staff", "questions": ["q"],
    }
    bad = {"id": "bad", "targetAudience": "all_staff"}
    resolution = resolve_assignments([bad, good], _user("s@x.com", "STAFF"), "test")
    assert [r.id for r in resolution.entitled] == ["ok"]
    assert len(resolution.excluded) == 1
    excluded, result = resolution.excluded[0]
    assert excluded.id == "bad"
    assert not result.valid


# ─── Tracing / summary ───────────────────────────────────────────

def test_trace_receives_one_event_per_decision():
    sink = RecordingTraceSink()
    filter_assigned(
        [{"id": 1, "targetAudience": "all_staff"}, {"id": 2}],
        _user("s@x.com", "STAFF"), trace=sink,
    )
    events = sink.named("entitlement.decision")
    assert [e["resource_id"] for e in events] == [1, 2]
    assert events[1]["reason"] == DecisionReason.NO_LEGACY_MATCH.value


def test_trace_does_not_change_decisions():
    resource = {"targetAudience": "location", "assignedStores": ["S1"]}
    who = _user("s@x.com", "STAFF", home="S1")
    assert is_entitled(resource, who) == is_entitled(resource, who, RecordingTraceSink())


def test_assignment_summary():
    summary = assignment_summary(
        {"id": "t1", "title": "Count cash", "targetAudience": "location", "assignedStores": ["S1"]},
        _user("S@x.com", "STAFF", home="S1"),
    )
    assert summary["isAssigned"] is True
    assert summary["userEmail"] == "s@x.com"
    assert summary["userStores"] == ["S1"]
    assert summary["targetAudience"] == TargetAudience.LOCATION.value


def test_blank_target_audience_uses_legacy_alias():
    resource = {
        "id": "t1", "title": "Open", "createdBy": "b@x.com", "createdAt": "2024-01-01",
        "targetAudience": " ", "assignTo": "location", "assignedStores": ["S1"],
    }
    staff = _user("s@x.com", "STAFF", home="S1")
    assert explain_entitlement(resource, staff).reason is DecisionReason.STORE_MATCH
    resolution = resolve_assignments([resource], staff, "task")
    assert [r.id for r in resolution.entitled] == ["t1"]
    assert resolution.excluded == []
