"""Tests for the PIA risk register and PIA record helpers."""

from __future__ import annotations

import json

import pytest

from ropa_guardian.errors import NotFound, ValidationError
from ropa_guardian.pia import (
    RiskRegisterEntry,
    add_risk,
    compute_overall_risk,
    create_pia,
    parse_risk_register,
    remove_risk,
    risk_register_summary,
    serialize_risk_register,
    update_pia,
    update_risk,
)
from ropa_guardian.store import RecordStore


@pytest.mark.unit
class TestOverallRisk:

    @pytest.mark.parametrize(
        "likelihood, impact, overall",
        [
            ("Low", "Low", "Low"),
            ("Low", "Medium", "Medium"),
            ("Medium", "Medium", "Medium"),
            ("Low", "High", "Medium"),
            ("Medium", "High", "High"),
            ("High", "High", "High"),
            ("Unknown", "Low", "Low"),
        ],
    )
    def test_matrix(self, likelihood: str, impact: str, overall: str) -> None:
        assert compute_overall_risk(likelihood, impact) == overall

    def test_stored_overall_is_ignored(self) -> None:
        raw = json.dumps([{"id": "r1", "title": "Leak", "likelihood": "High", "impact": "High", "overall": "Low"}])
        (entry,) = parse_risk_register(raw)
        assert entry.overall == "High"
        assert json.loads(serialize_risk_register([entry]))[0]["overall"] == "High"


@pytest.mark.unit
class TestRiskRegister:

    @pytest.mark.parametrize("raw", [None, "", "not json", "{\"a\": 1}", "[1, 2]"])
    def test_malformed_register_reads_empty(self, raw) -> None:
        assert parse_risk_register(raw) == []

    def test_add_risk_defaults_and_duplicates(self) -> None:
        register = add_risk([], "Data breach / leakage")
        register = add_risk(register, "Data breach / leakage")
        assert len(register) == 1
        assert register[0].likelihood == "Medium"
        assert register[0].impact == "Medium"

    def test_update_risk_returns_new_list(self) -> None:
        original = [RiskRegisterEntry(id="r1", title="Leak")]
        updated = update_risk(original, "r1", likelihood="High", overall="Low")
        assert original[0].likelihood == "Medium"
        assert updated[0].likelihood == "High"
        assert updated[0].overall == "High"

    def test_remove_and_summary(self) -> None:
        register = [
            RiskRegisterEntry(id="r1", title="A", likelihood="High", impact="High"),
            RiskRegisterEntry(id="r2", title="B", likelihood="Low", impact="Low"),
        ]
        assert risk_register_summary(register) == {"High": 1, "Medium": 0, "Low": 1}
        assert [entry.id for entry in remove_risk(register, "r1")] == ["r2"]

    def test_round_trip_keeps_fields(self) -> None:
        entry = RiskRegisterEntry(id="r1", title="Leak", context="HR drive", target_date="2024-06-30")
        (restored,) = parse_risk_register(serialize_risk_register([entry]))
        assert restored == entry


@pytest.mark.unit
class TestPiaRecords:

    def test_create_pia(self, store: RecordStore) -> None:
        pia = create_pia(store, {"orgId": "default-org", "title": "Payroll System"})
        assert store.get_pia(pia.id) is pia
        assert pia.status == "DRAFT"
        assert pia.answers == {}

    def test_create_pia_requires_existing_org(self, store: RecordStore) -> None:
        with pytest.raises(NotFound):
            create_pia(store, {"orgId": "missing", "title": "Payroll System"})

    def test_create_pia_validates(self, store: RecordStore) -> None:
        with pytest.raises(ValidationError) as excinfo:
            create_pia(store, {"orgId": "default-org", "title": "PS"})
        assert "title" in excinfo.value.errors

    def test_update_pia_merges_answers_and_normalises_register(self, store: RecordStore) -> None:
        pia = create_pia(store, {"orgId": "default-org", "title": "Payroll", "answers": {"purpose": ["Payroll and benefits"]}})
        register = [{"id": "r1", "title": "Leak", "likelihood": "Low", "impact": "Low", "overall": "High"}]

        update_pia(store, pia.id, {"status": "review", "answers": {"risk_register": register}})

        assert pia.status == "REVIEW"
        assert pia.answers["purpose"] == ["Payroll and benefits"]
        assert json.loads(pia.answers["risk_register"])[0]["overall"] == "Low"

    def test_rating_case_is_normalised(self, store: RecordStore) -> None:
        pia = create_pia(store, {"orgId": "default-org", "title": "Payroll"})
        register = [{"id": "r1", "title": "Leak", "likelihood": "high", "impact": "HIGH"}]

        update_pia(store, pia.id, {"answers": {"risk_register": register}})

        (entry,) = parse_risk_register(pia.answers["risk_register"])
        assert (entry.likelihood, entry.impact, entry.overall) == ("High", "High", "High")

    def test_unknown_rating_is_rejected(self, store: RecordStore) -> None:
        pia = create_pia(store, {"orgId": "default-org", "title": "Payroll"})
        register = [{"id": "r1", "title": "Leak", "likelihood": "Severe", "impact": "High"}]

        with pytest.raises(ValidationError) as excinfo:
            update_pia(store, pia.id, {"title": "Renamed", "answers": {"risk_register": register}})

        assert "Leak" in excinfo.value.errors["risk_register"]
        assert pia.title == "Payroll"
        assert "risk_register" not in pia.answers

    def test_update_pia_rejects_null_title(self, store: RecordStore) -> None:
        pia = create_pia(store, {"orgId": "default-org", "title": "Payroll"})
        with pytest.raises(ValidationError) as excinfo:
            update_pia(store, pia.id, {"title": None})
        assert excinfo.value.errors == {"title": "Title must be at least 3 characters"}


@pytest.mark.unit
def test_update_risk_normalises_rating() -> None:
    (entry,) = update_risk([RiskRegisterEntry(id="r1", title="Leak")], "r1", impact="low")
    assert entry.impact == "Low"
