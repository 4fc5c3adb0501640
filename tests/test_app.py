"""Tests for the Flask JSON API."""

from __future__ import annotations

import base64
from unittest.mock import MagicMock

import pytest
import requests

from frontend.app import create_app
from ropa_guardian.config import Settings
from ropa_guardian.store import Organization, RecordStore


@pytest.fixture
def app(store: RecordStore, settings: Settings, mock_session: MagicMock):
    application = create_app(store=store, settings=settings, session=mock_session)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def http(app):
    return app.test_client()


@pytest.mark.unit
class TestAdvisoryRoutes:

    def test_status(self, http) -> None:
        data = http.get("/api/ai/status").get_json()
        assert data["enabled"] is True
        assert data["available"] is True
        assert data["url"] == "https://advisory.test/api"

    def test_consult(self, http, mock_session: MagicMock, response) -> None:
        mock_session.post.return_value = response(200, {"answer": "Appoint a DPO."})
        data = http.post("/api/ai/consult", json={"query": "Who must we appoint?"}).get_json()
        assert data == {"answer": "Appoint a DPO.", "source": "SILIP"}

    def test_consult_fallback(self, http, mock_session: MagicMock) -> None:
        mock_session.post.side_effect = requests.ConnectionError("refused")
        data = http.post("/api/ai/consult", json={"query": "Who must we appoint?"}).get_json()
        assert data["source"] == "RuleBased"
        assert http.get("/api/ai/status").get_json()["available"] is True

    def test_consult_requires_query(self, http) -> None:
        result = http.post("/api/ai/consult", json={"query": "  "})
        assert result.status_code == 400
        assert result.get_json()["errors"] == {"query": "Query is required"}

    def test_consult_disabled(self, store: RecordStore, mock_session: MagicMock) -> None:
        app = create_app(store=store, settings=Settings(ai_enabled=False), session=mock_session)
        result = app.test_client().post("/api/ai/consult", json={"query": "q"})
        assert result.status_code == 503
        mock_session.post.assert_not_called()

    def test_reset(self, http, mock_session: MagicMock, process_payload) -> None:
        mock_session.post.side_effect = requests.ConnectionError("refused")
        http.post("/api/organizations/default-org/processes", json=process_payload())
        assert http.get("/api/ai/status").get_json()["available"] is False

        assert http.post("/api/ai/reset").get_json()["available"] is True


@pytest.mark.unit
class TestProcessRoutes:

    def test_list(self, http) -> None:
        data = http.get("/api/organizations/default-org/processes").get_json()
        assert {p["id"] for p in data} == {"process-1", "process-2", "process-3"}

    def test_create_with_advisory_down(self, http, mock_session: MagicMock, process_payload) -> None:
        mock_session.post.side_effect = requests.ConnectionError("refused")
        result = http.post("/api/organizations/default-org/processes", json=process_payload())
        assert result.status_code == 201
        data = result.get_json()
        assert data["process"]["riskLevel"] == "LOW"
        assert data["assessment"]["isAI"] is False

    def test_create_validation_error(self, http, mock_session: MagicMock, process_payload) -> None:
        result = http.post("/api/organizations/default-org/processes", json=process_payload(title="x"))
        assert result.status_code == 400
        assert "title" in result.get_json()["errors"]
        mock_session.post.assert_not_called()

    def test_create_rejects_non_json_body(self, http) -> None:
        result = http.post("/api/organizations/default-org/processes", data="nope", content_type="text/plain")
        assert result.status_code == 400

    def test_create_in_other_org_department(self, http, process_payload) -> None:
        result = http.post("/api/organizations/other-org/processes", json=process_payload())
        assert result.status_code == 404

    def test_create_with_malformed_department(self, http, mock_session: MagicMock, process_payload) -> None:
        result = http.post("/api/organizations/default-org/processes", json=process_payload(deptId=["dept-hr"]))
        assert result.status_code == 400
        assert result.get_json()["errors"] == {"dept_id": "Department is required"}
        mock_session.post.assert_not_called()

    def test_create_with_department_of_another_org(self, http, store: RecordStore, process_payload) -> None:
        store.add_organization(Organization(id="other-org", name="Other", slug="other"))
        result = http.post("/api/organizations/other-org/processes", json=process_payload())
        assert result.status_code == 404
        assert result.get_json()["error"] == "Department not found"

    def test_get_update_delete(self, http, mock_session: MagicMock, answer) -> None:
        assert http.get("/api/processes/process-2").get_json()["title"] == "Customer Email Marketing"

        mock_session.post.return_value = answer({"riskLevel": "HIGH", "reasoning": "Profiling"})
        data = http.put("/api/processes/process-2", json={"recipients": ["Marketing Agency"]}).get_json()
        assert data["riskLevel"] == "HIGH"
        assert data["assessment"]["score"] == 8

        assert http.delete("/api/processes/process-2").get_json() == {"success": True}
        missing = http.get("/api/processes/process-2")
        assert missing.status_code == 404
        assert missing.get_json() == {"success": False, "error": "Process not found"}

    def test_summary_and_chart(self, http) -> None:
        assert http.get("/api/organizations/default-org/summary").get_json()["total"] == 3
        chart = http.get("/api/organizations/default-org/risk-chart.png")
        assert chart.mimetype == "image/png"
        assert chart.data.startswith(b"\x89PNG")

    def test_exports(self, http) -> None:
        csv = http.get("/api/organizations/default-org/ropa-export.csv")
        assert csv.mimetype == "text/csv"
        assert b"Employee Payroll Processing" in csv.data
        xlsx = http.get("/api/organizations/default-org/ropa-export.xlsx")
        assert "attachment; filename=ropa_register_" in xlsx.headers["Content-Disposition"]


@pytest.mark.unit
class TestReportRoutes:

    def test_ropa_report(self, http) -> None:
        data = http.get("/api/organizations/default-org/ropa-report").get_json()
        assert data["success"] is True
        assert data["fileName"].startswith("ropa-report-sample-corporation-")
        assert base64.b64decode(data["base64"]).startswith(b"%PDF")

    def test_approval_form(self, http) -> None:
        data = http.get("/api/processes/process-3/approval-form").get_json()
        assert data["fileName"].startswith("ropa-review-approval-ROPA-PROCESS3-")

    def test_missing_report_subject(self, http) -> None:
        result = http.get("/api/pia/missing/report")
        assert result.status_code == 404
        assert result.get_json() == {"success": False, "error": "PIA not found"}

    def test_pia_flow(self, http) -> None:
        created = http.post("/api/organizations/default-org/pia", json={"title": "Payroll System"})
        assert created.status_code == 201
        pia_id = created.get_json()["id"]

        register = [{"id": "r1", "title": "Leak", "likelihood": "High", "impact": "Medium"}]
        updated = http.put(f"/api/pia/{pia_id}", json={"answers": {"risk_register": register}}).get_json()
        assert updated["riskRegister"][0]["overall"] == "High"
        assert updated["riskSummary"]["High"] == 1

        assert len(http.get("/api/organizations/default-org/pia").get_json()) == 1
        report = http.get(f"/api/pia/{pia_id}/report").get_json()
        assert report["fileName"] == f"pia-report-{pia_id[:8]}.pdf"


@pytest.mark.unit
class TestIncidentRoutes:

    def test_incident_flow(self, http) -> None:
        created = http.post("/api/organizations/default-org/incidents", json={
            "title": "Lost laptop",
            "occurrenceDate": "2024-02-10",
            "severity": "HIGH",
        })
        assert created.status_code == 201
        incident = created.get_json()
        assert incident["status"] == "REPORTED"

        updated = http.put(f"/api/incidents/{incident['id']}", json={"status": "RESOLVED", "npcNotified": True})
        data = updated.get_json()
        assert data["status"] == "RESOLVED"
        assert data["resolvedAt"] is not None
        assert data["notificationOverdue"] is False

        listing = http.get("/api/organizations/default-org/incidents").get_json()
        assert [i["id"] for i in listing] == [incident["id"]]

        pdf = http.get("/api/organizations/default-org/incidents/export.pdf")
        assert pdf.data.startswith(b"%PDF")

    def test_incident_validation(self, http) -> None:
        result = http.post("/api/organizations/default-org/incidents", json={"title": "x", "severity": "NONE"})
        assert result.status_code == 400
        assert result.get_json()["errors"]["severity"] == "Select a severity level."

    def test_incident_flag_must_be_boolean(self, http) -> None:
        created = http.post("/api/organizations/default-org/incidents", json={
            "title": "Lost laptop",
            "occurrenceDate": "2024-02-10",
            "severity": "HIGH",
        }).get_json()

        result = http.put(f"/api/incidents/{created['id']}", json={"npcNotified": "false"})

        assert result.status_code == 400
        assert result.get_json()["errors"] == {"npc_notified": "NPC notified must be true or false"}
        listing = http.get("/api/organizations/default-org/incidents").get_json()
        assert listing[0]["npcNotified"] is False

    def test_delete_incident(self, http) -> None:
        created = http.post("/api/organizations/default-org/incidents", json={
            "title": "Lost laptop",
            "occurrenceDate": "2024-02-10",
            "severity": "HIGH",
        }).get_json()

        assert http.delete(f"/api/incidents/{created['id']}").get_json() == {"success": True}
        assert http.get("/api/organizations/default-org/incidents").get_json() == []
        assert http.delete(f"/api/incidents/{created['id']}").status_code == 404


@pytest.mark.unit
def test_pia_questionnaire(http) -> None:
    data = http.get("/api/pia/questionnaire").get_json()
    assert [section["id"] for section in data["sections"]] == ["context", "lifecycle", "risk", "governance"]
    assert "Data breach / leakage" in data["riskLibrary"]
    assert data["likelihood"] == ["Low", "Medium", "High"]
