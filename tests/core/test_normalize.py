"""Policy Normalizer: alias mapping, set coercion and idempotence.

Tests cover:
    - assignTo alias fills targetAudience only when the canonical field is absent
    - absent policy is LEGACY_UNSET, never ALL_STAFF
    - non-sequence set fields become empty sets
    - normalize(normalize(x)) == normalize(x) over a spread of odd inputs
    - normalize(r.to_record()) == r
    - principal and store aliases
"""

from datetime import datetime, timezone

from retailops.core.domain_types import Role, TargetAudience
from retailops.core.normalize import (
    coerce_id_set,
    normalize,
    normalize_principal,
    normalize_store,
)
from retailops.core.records import Resource


ODD_RESOURCES = [
    None,
    42,
    "not a record",
    [],
    {},
    {"targetAudience": None, "assignTo": "individual", "assignees": ["A@X.com", " b@x.com "]},
    {"targetAudience": "", "assignTo": "LOCATION", "assignedStores": ("S1", 7, None, True)},
    {"targetAudience": "vip", "assignTo": "all_staff"},
    {"targetAudience": 5, "assignees": "a@x.com", "completedBy": {"a@x.com": True}},
    {"title": "T", "createdBy": " Boss@X.com", "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc)},
    {"hasSteps": True, "steps": [{"n": 1}, ("tuple", "step")], "questions": ("q1",)},
    {"steps": "abc", "questions": 3, "videoUrl": "v.mp4", "mediaRef": "ref"},
    {"mediaUrl": "", "videoUrl": "v.mp4", "brand": "Acme", "nested": {"x": [1, 2]}},
    {"id": "t1", "assignees": [["nested"], {"a": 1}, "ok@x.com"], "updatedAt": "2024-02-01"},
]


# ─── normalize ───────────────────────────────────────────────────

def test_alias_used_when_canonical_absent():
    assert normalize({"assignTo": "all_managers"}).target_audience is TargetAudience.ALL_MANAGERS


def test_canonical_field_wins_over_alias():
    r = normalize({"targetAudience": "individual", "assignTo": "all_staff"})
    assert r.target_audience is TargetAudience.INDIVIDUAL


def test_absent_policy_is_legacy_unset():
    assert normalize({"title": "Old"}).target_audience is TargetAudience.LEGACY_UNSET


def test_unrecognized_policy_is_legacy_unset():
    assert normalize({"targetAudience": "everyone"}).target_audience is TargetAudience.LEGACY_UNSET


def test_non_sequence_sets_become_empty():
    r = normalize({"assignees": "a@x.com", "assignedStores": 5, "completedBy": {"a": 1}})
    assert r.assignees == frozenset()
    assert r.assigned_stores == frozenset()
    assert r.completed_by == frozenset()


def test_sets_drop_duplicates_and_lowercase_principal_ids():
    r = normalize({"assignees": ["A@x.com", "a@x.com", " a@X.com "], "assignedStores": ["S1", "S1"]})
    assert r.assignees == frozenset({"a@x.com"})
    assert r.assigned_stores == frozenset({"S1"})


def test_created_by_is_lowercased():
    assert normalize({"createdBy": " Boss@X.com "}).created_by == "boss@x.com"


def test_unknown_fields_are_preserved():
    r = normalize({"brand": "Acme", "assignTo": "all_staff"})
    assert r.extras == {"brand": "Acme", "assignTo": "all_staff"}


def test_media_reference_aliases():
    assert normalize({"videoUrl": "v.mp4"}).media_url == "v.mp4"
    assert normalize({"mediaUrl": "", "mediaRef": "r"}).media_url == "r"


def test_non_mapping_normalizes_to_empty_resource():
    assert normalize(None) == Resource()
    assert normalize(["x"]) == Resource()


def test_normalize_is_idempotent():
    for raw in ODD_RESOURCES:
        once = normalize(raw)
        assert normalize(once) == once, raw


def test_to_record_round_trips():
    for raw in ODD_RESOURCES:
        once = normalize(raw)
        assert normalize(once.to_record()) == once, raw


def test_to_record_uses_sorted_lists():
    record = normalize({"assignees": ["b@x.com", "a@x.com"]}).to_record()
    assert record["assignees"] == ["a@x.com", "b@x.com"]
    assert record["targetAudience"] == "legacy_unset"


def test_normalize_does_not_mutate_input():
    raw = {"assignees": ["A@x.com"], "assignTo": "individual"}
    normalize(raw)
    assert raw == {"assignees": ["A@x.com"], "assignTo": "individual"}


def test_coerce_id_set_keeps_ints_as_strings():
    assert coerce_id_set([1, "2", True, None, 3.5]) == frozenset({"1", "2"})


# ─── normalize_principal ─────────────────────────────────────────

def test_principal_prefers_email_and_lowercases():
    p = normalize_principal({"id": "uid-1", "email": " A@X.com ", "role": "staff"})
    assert p.id == "a@x.com"
    assert p.role is Role.STAFF
    assert p.extras == {"id": "uid-1"}


def test_principal_falls_back_to_id():
    assert normalize_principal({"id": "B@X.com"}).id == "b@x.com"


def test_principal_legacy_store_fields():
    p = normalize_principal({
        "email": "m@x.com", "role": "MANAGER",
        "assignedStore": "S9", "stores": {"S1": True, "S2": False},
    })
    assert p.home_store == "S9"
    assert p.managed_stores == frozenset({"S1"})


def test_principal_unknown_role():
    assert normalize_principal({"email": "x@x.com"}).role is Role.UNKNOWN


def test_principal_normalize_is_idempotent():
    raws = [
        None,
        {},
        {"email": 5, "id": "X@Y.com"},
        {"email": "a@x.com", "homeStore": {}, "assignedStore": "S1"},
        {"email": "a@x.com", "managedStores": None, "stores": ["S1", "S2"]},
        {"email": "a@x.com", "role": "owner", "stores": {"S1": True}, "phone": "1"},
    ]
    for raw in raws:
        once = normalize_principal(raw)
        assert normalize_principal(once) == once, raw


# ─── normalize_store ─────────────────────────────────────────────

def test_store_manager_alias_and_case():
    s = normalize_store({"id": "S1", "name": "Main", "manager": "Boss@X.com"})
    assert s.manager_id == "boss@x.com"
    assert s.extras == {"manager": "Boss@X.com"}


def test_store_normalize_is_idempotent():
    raws = [None, {}, {"id": "S1", "managerId": 5, "manager": "m@x.com"}, {"id": 3, "city": "X"}]
    for raw in raws:
        once = normalize_store(raw)
        assert normalize_store(once) == once, raw


def test_blank_target_audience_falls_back_to_legacy_alias():
    resource = normalize({"targetAudience": "  ", "assignTo": "location"})
    assert resource.target_audience is TargetAudience.LOCATION
    assert normalize(resource) == resource
