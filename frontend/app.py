"""
Flask-based JSON API for ROPA Guardian.

This web application exposes the risk assessment engine, the processing
inventory, Privacy Impact Assessments, the breach record book and the PDF
report generators to the privacy office's user interface.

To run the app locally, install the dependencies and execute:

    python frontend/app.py

The server will start on http://0.0.0.0:8000 by default.
"""

import io
import logging
import os
import sys
from datetime import date
from typing import Any, Dict, Optional

import matplotlib

matplotlib.use("Agg")  # Use non-interactive backend for server
import matplotlib.pyplot as plt
import requests
from flask import Flask, Response, jsonify, request

# Make sure the parent directory (repository root) is in sys.path so that
# ``import ropa_guardian`` works even when running this script from within
# the ``frontend`` directory.
PARENT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from ropa_guardian.advisory_client import AdvisoryClient, AdvisoryServiceState  # noqa: E402
from ropa_guardian.breach_record import BreachRecordBook  # noqa: E402
from ropa_guardian.config import Settings, load_settings  # noqa: E402
from ropa_guardian.errors import NotFound, ReportGenerationFailed, RopaGuardianError, ValidationError  # noqa: E402
from ropa_guardian.export_reports import ReportGenerator  # noqa: E402
from ropa_guardian.pia import (  # noqa: E402
    PIA_SECTIONS,
    RISK_IMPACT,
    RISK_LIBRARY,
    RISK_LIKELIHOOD,
    create_pia,
    parse_risk_register,
    risk_register_summary,
    update_pia,
)
from ropa_guardian.processing_inventory import ProcessingInventory  # noqa: E402
from ropa_guardian.risk_assessment import RiskAssessor  # noqa: E402
from ropa_guardian.store import Incident, RecordStore, seed_sample_data  # noqa: E402

logger = logging.getLogger(__name__)

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError({"body": "Request body must be a JSON object"})
    return data


def _attachment(content: Any, mimetype: str, filename: str) -> Response:
    return Response(
        content,
        mimetype=mimetype,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


def create_app(
    store: Optional[RecordStore] = None,
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> Flask:
    """Build the Flask application.

    Args:
        store: Record storage; a fresh store loaded with the sample
            organization is used when omitted.
        settings: Runtime settings; read from the environment when omitted.
        session: HTTP session handed to the advisory client.
    """
    settings = settings or load_settings()
    if store is None:
        store = RecordStore()
        seed_sample_data(store)

    app = Flask(__name__)
    app.secret_key = settings.secret_key

    client = AdvisoryClient(settings, session=session)
    assessor = RiskAssessor(client=client, state=AdvisoryServiceState(), enabled=settings.ai_enabled)
    inventory = ProcessingInventory(store, assessor)
    breaches = BreachRecordBook(store, settings)
    reports = ReportGenerator(store)

    app.extensions["ropa_guardian"] = {
        "store": store,
        "settings": settings,
        "assessor": assessor,
        "inventory": inventory,
        "breaches": breaches,
        "reports": reports,
    }

    # ---------------------------------------------------------------------
    # Error handling
    # ---------------------------------------------------------------------
    @app.errorhandler(NotFound)
    def handle_not_found(exc: NotFound):
        return jsonify({"success": False, "error": str(exc)}), 404

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return jsonify({"success": False, "error": str(exc), "errors": exc.errors}), 400

    @app.errorhandler(ReportGenerationFailed)
    def handle_report_failure(exc: ReportGenerationFailed):
        return jsonify({"success": False, "error": str(exc)}), 500

    @app.errorhandler(RopaGuardianError)
    def handle_domain_error(exc: RopaGuardianError):
        logger.error("Request failed: %s", exc)
        return jsonify({"success": False, "error": str(exc)}), 500

    # ---------------------------------------------------------------------
    # Advisory service
    # ---------------------------------------------------------------------
    @app.route("/api/ai/consult", methods=["POST"])
    def ai_consult():
        """Ask the advisory service a question; falls back to fixed guidance."""
        query = str(_json_body().get("query") or "").strip()
        if not query:
            raise ValidationError({"query": "Query is required"})
        if not settings.ai_enabled:
            return jsonify({"error": "AI features are disabled"}), 503
        return jsonify(client.consult_with_fallback(query))

    @app.route("/api/ai/status")
    def ai_status():
        return jsonify(assessor.status())

    @app.route("/api/ai/reset", methods=["POST"])
    def ai_reset():
        assessor.reset_advisory()
        return jsonify(assessor.status())

    # ---------------------------------------------------------------------
    # Processing activities (ROPA)
    # ---------------------------------------------------------------------
    @app.route("/api/organizations/<org_id>/processes", methods=["GET", "POST"])
    def org_processes(org_id: str):
        if request.method == "GET":
            return jsonify([p.to_dict() for p in inventory.list_processes(org_id)])
        record, assessment = inventory.create_process(_json_body(), org_id=org_id)
        return jsonify({"process": record.to_dict(), "assessment": assessment.to_dict()}), 201

    @app.route("/api/processes/<process_id>", methods=["GET", "PUT", "DELETE"])
    def process_detail(process_id: str):
        if request.method == "DELETE":
            inventory.delete_process(process_id)
            return jsonify({"success": True})
        if request.method == "PUT":
            record = inventory.update_process(process_id, _json_body())
        else:
            record = inventory.get_process(process_id)
        payload = record.to_dict()
        if record.risk_assessment is not None:
            payload["assessment"] = record.risk_assessment.to_dict()
        return jsonify(payload)

    @app.route("/api/processes/<process_id>/approval-form")
    def process_approval_form(process_id: str):
        return jsonify(reports.approval_form(process_id).to_payload())

    @app.route("/api/organizations/<org_id>/ropa-report")
    def org_ropa_report(org_id: str):
        return jsonify(reports.ropa_report(org_id).to_payload())

    @app.route("/api/organizations/<org_id>/ropa-export.csv")
    def org_ropa_export_csv(org_id: str):
        filename = f"ropa_register_{date.today().isoformat()}.csv"
        return _attachment(inventory.to_csv(org_id), "text/csv", filename)

    @app.route("/api/organizations/<org_id>/ropa-export.xlsx")
    def org_ropa_export_excel(org_id: str):
        filename = f"ropa_register_{date.today().isoformat()}.xlsx"
        return _attachment(inventory.to_excel(org_id), XLSX_MIME_TYPE, filename)

    @app.route("/api/organizations/<org_id>/summary")
    def org_summary(org_id: str):
        return jsonify(inventory.summary(org_id))

    @app.route("/api/organizations/<org_id>/risk-chart.png")
    def org_risk_chart(org_id: str):
        """Bar chart of the organization's processes per risk tier."""
        summary = inventory.summary(org_id)["byRisk"]
        fig, ax = plt.subplots()
        categories = list(summary.keys())
        counts = [summary[k] for k in categories]
        ax.bar(categories, counts)
        ax.set_title("Risk Summary")
        ax.set_xlabel("Risk Level")
        ax.set_ylabel("Processes")
        buf = io.BytesIO()
        fig.savefig(buf, format="png", bbox_inches="tight")
        plt.close(fig)
        buf.seek(0)
        return Response(buf.getvalue(), mimetype="image/png")

    # ---------------------------------------------------------------------
    # Privacy Impact Assessments
    # ---------------------------------------------------------------------
    def _pia_payload(pia) -> Dict[str, Any]:
        payload = pia.to_dict()
        register = parse_risk_register(pia.answers.get("risk_register"))
        payload["riskRegister"] = [entry.to_dict() for entry in register]
        payload["riskSummary"] = risk_register_summary(register)
        return payload

    @app.route("/api/pia/questionnaire")
    def pia_questionnaire():
        """Question catalogue and risk library for the PIA form."""
        return jsonify({
            "sections": PIA_SECTIONS,
            "riskLibrary": RISK_LIBRARY,
            "likelihood": RISK_LIKELIHOOD,
            "impact": RISK_IMPACT,
        })

    @app.route("/api/organizations/<org_id>/pia", methods=["GET", "POST"])
    def org_pias(org_id: str):
        store.get_organization(org_id)
        if request.method == "GET":
            return jsonify([_pia_payload(p) for p in store.pias_for_org(org_id)])
        data = dict(_json_body())
        data["org_id"] = org_id
        data.pop("orgId", None)
        return jsonify(_pia_payload(create_pia(store, data))), 201

    @app.route("/api/pia/<pia_id>", methods=["GET", "PUT"])
    def pia_detail(pia_id: str):
        if request.method == "PUT":
            pia = update_pia(store, pia_id, _json_body())
        else:
            pia = store.get_pia(pia_id)
        return jsonify(_pia_payload(pia))

    @app.route("/api/pia/<pia_id>/report")
    def pia_report(pia_id: str):
        return jsonify(reports.pia_report(pia_id).to_payload())

    # ---------------------------------------------------------------------
    # Breach incidents
    # ---------------------------------------------------------------------
    def _incident_payload(incident: Incident) -> Dict[str, Any]:
        return {
            "id": incident.id,
            "orgId": incident.org_id,
            "title": incident.title,
            "occurrenceDate": incident.occurrence_date.isoformat(),
            "severity": incident.severity,
            "status": incident.status,
            "impactedIndividuals": incident.impacted_individuals,
            "systemsAffected": incident.systems_affected,
            "summary": incident.summary,
            "assignedTo": incident.assigned_to,
            "npcNotified": incident.npc_notified,
            "resolvedAt": incident.resolved_at.isoformat() if incident.resolved_at else None,
            "notificationDeadline": breaches.notification_deadline(incident).isoformat(),
            "notificationOverdue": breaches.is_notification_overdue(incident),
        }

    @app.route("/api/organizations/<org_id>/incidents", methods=["GET", "POST"])
    def org_incidents(org_id: str):
        if request.method == "GET":
            store.get_organization(org_id)
            return jsonify([_incident_payload(i) for i in breaches.list_incidents(org_id)])
        incident = breaches.report_incident(org_id, _json_body())
        return jsonify(_incident_payload(incident)), 201

    @app.route("/api/incidents/<incident_id>", methods=["PUT", "DELETE"])
    def incident_detail(incident_id: str):
        if request.method == "DELETE":
            breaches.delete_incident(incident_id)
            return jsonify({"success": True})
        return jsonify(_incident_payload(breaches.update_incident(incident_id, _json_body())))

    @app.route("/api/organizations/<org_id>/incidents/export.xlsx")
    def org_incidents_excel(org_id: str):
        store.get_organization(org_id)
        filename = f"breach_record_{date.today().isoformat()}.xlsx"
        return _attachment(breaches.to_excel(org_id), XLSX_MIME_TYPE, filename)

    @app.route("/api/organizations/<org_id>/incidents/export.pdf")
    def org_incidents_pdf(org_id: str):
        filename = f"breach_record_{date.today().isoformat()}.pdf"
        return _attachment(breaches.to_pdf(org_id), "application/pdf", filename)

    return app


if __name__ == "__main__":
    runtime_settings = load_settings()
    logging.basicConfig(
        level=runtime_settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Run on port 8000 for backend interface, bind to all interfaces
    create_app(settings=runtime_settings).run(host="0.0.0.0", port=8000, debug=False)
