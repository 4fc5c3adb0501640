"""
Export Reports
==============

Generates the compliance documents kept for regulatory records:

- the Privacy Impact Assessment (PIA) report,
- the ROPA compliance report listing every approved processing activity,
- the ROPA review & approval form for a single processing activity.

All three are content plans fed into the shared ``ReportBuilder``.  A
missing record raises ``NotFound``; any other failure while building a
document is logged and re-raised as ``ReportGenerationFailed`` so a
partial document is never returned.
"""
from __future__ import annotations

import base64
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ropa_guardian.errors import NotFound, ReportGenerationFailed
from ropa_guardian.pia import parse_risk_register
from ropa_guardian.report_builder import TITLE_SIZE, ReportBuilder
from ropa_guardian.store import Department, Organization, PiaAssessment, ProcessRecord, RecordStore

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"

BLANK_FIELD = "______________________________"

CERTIFICATION_TEXT = (
    "I hereby certify that the processing activities listed in this report are accurately recorded "
    "in the organization's Record of Processing Activities and are maintained in accordance with the "
    "Data Privacy Act of 2012 (Republic Act No. 10173), its Implementing Rules and Regulations, and "
    "the issuances of the National Privacy Commission."
)

NON_ALPHANUMERIC_RE = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def format_tracking_code(process_id: str, created_at: Union[date, datetime]) -> str:
    """Build the approval form tracking code ``ROPA-{ID8}-{YYYYMMDD}``.

    The id segment is the record id stripped of non-alphanumeric
    characters, upper-cased, then truncated or right-padded with ``X`` to
    exactly eight characters.
    """
    normalized = NON_ALPHANUMERIC_RE.sub("", process_id).upper()
    id_segment = normalized[:8].ljust(8, "X")
    return f"ROPA-{id_segment}-{created_at:%Y%m%d}"


def display_date(value: Union[date, datetime]) -> str:
    return f"{value:%b} {value.day}, {value.year}"


@dataclass(frozen=True)
class GeneratedDocument:
    """A finished document ready to hand to the caller."""
    file_name: str
    content: bytes
    mime_type: str = PDF_MIME_TYPE

    def to_payload(self) -> Dict[str, Any]:
        return {
            "success": True,
            "fileName": self.file_name,
            "mimeType": self.mime_type,
            "base64": base64.b64encode(self.content).decode("ascii"),
        }


# ---------------------------------------------------------------------------
# Content plans
# ---------------------------------------------------------------------------

def assemble_pia_report(builder: ReportBuilder, pia: PiaAssessment, org: Organization, generated_on: date) -> None:
    answers = pia.answers or {}
    risk_register = parse_risk_register(answers.get("risk_register"))

    builder.write("Privacy Impact Assessment (PIA) Report", size=TITLE_SIZE, bold=True)
    builder.write(f"Generated: {display_date(generated_on)}")

    builder.section("Section 1: System / Process Overview")
    builder.label_value("Name of DPS:", pia.title)
    builder.label_value("Date of Assessment:", display_date(pia.created_at))
    builder.label_value("Assessed By (DPO):", org.dpo_name)
    builder.label_value("System Owner:", pia.owner)
    builder.label_value("Brief Description:", pia.description)

    builder.section("Section 2: Data Processing Details")
    builder.label_value("Personal data collected:", answers.get("personal_data"))
    builder.label_value("Sensitive data collected:", answers.get("sensitive_data"))
    builder.label_value("Purpose of processing:", answers.get("purpose"))
    builder.label_value("Lawful basis:", answers.get("lawful_basis"))
    builder.label_value("Data subjects:", answers.get("data_subjects"))

    builder.section("Section 3: Data Lifecycle and Sharing")
    builder.label_value("Data collection method:", answers.get("collection_method"))
    builder.label_value("Storage and security:", answers.get("storage_security"))
    builder.label_value("Internal access:", answers.get("internal_access"))
    builder.label_value("External sharing:", answers.get("recipients"))
    builder.label_value("International transfers:", answers.get("cross_border"))
    builder.label_value("Retention period:", answers.get("retention"))
    builder.label_value("Retention justification:", answers.get("retention_reason"))
    builder.label_value("Disposal method:", answers.get("disposal_method"))

    builder.section("Section 4: Privacy Risk Assessment")
    if not risk_register:
        builder.write("No risks recorded.")
    for index, risk in enumerate(risk_register, 1):
        builder.write(f"{index}. {risk.title}", bold=True)
        builder.label_value("Context:", risk.context)
        builder.label_value("Likelihood:", risk.likelihood)
        builder.label_value("Impact:", risk.impact)
        builder.label_value("Overall risk:", risk.overall)
        builder.spacer()

    builder.section("Section 5: Risk Mitigation and Control Measures")
    if not risk_register:
        builder.write("No mitigation measures recorded.")
    for index, risk in enumerate(risk_register, 1):
        builder.write(f"{index}. {risk.title}", bold=True)
        builder.label_value("Existing controls:", risk.existing_controls)
        builder.label_value("Recommended measures:", risk.recommended_controls)
        builder.label_value("Responsibility:", risk.responsibility)
        builder.label_value("Target date:", risk.target_date)
        builder.spacer()

    builder.section("Section 6: Conclusion and Sign-off")
    builder.label_value("Summary of findings:", answers.get("summary_findings"))
    builder.label_value("Recommendation:", answers.get("recommendation"))
    builder.label_value("DPO Signature:", answers.get("dpo_signature"))


def compliance_summary_text(org: Organization, approved_count: int) -> str:
    noun = "activity" if approved_count == 1 else "activities"
    return (
        f"This report documents {approved_count} approved processing {noun} recorded by {org.name} "
        "in its Record of Processing Activities, as required by the Data Privacy Act of 2012 "
        "(RA 10173) and National Privacy Commission Circular 2022-04 on registration and records "
        "of processing systems."
    )


def assemble_ropa_report(
    builder: ReportBuilder,
    org: Organization,
    activities: List[Tuple[ProcessRecord, Optional[Department]]],
    generated_on: date,
) -> None:
    builder.write("Record of Processing Activities (ROPA)", size=TITLE_SIZE, bold=True)
    builder.write("Compliance Report", size=TITLE_SIZE - 4, bold=True)
    builder.spacer()
    builder.label_value("Organization:", org.name)
    builder.label_value("Address:", ", ".join(part for part in (org.address, org.city, org.country) if part))
    builder.label_value("Industry:", org.industry)
    builder.label_value("DPO:", org.dpo_name)
    builder.label_value("DPO Email:", org.dpo_email)
    builder.label_value("Report Date:", display_date(generated_on))

    builder.section("Compliance Summary")
    builder.paragraph(compliance_summary_text(org, len(activities)))

    builder.section("Approved Processing Activities")
    if not activities:
        builder.write("No approved processing activities recorded.")
    for index, (process, dept) in enumerate(activities, 1):
        builder.write(f"{index}. {process.title}", bold=True)
        builder.label_value("Department:", dept.name if dept else "Unassigned")
        builder.label_value("Description:", process.description)
        builder.label_value("Lawful basis:", process.lawful_basis)
        builder.label_value("Data subjects:", process.data_subjects)
        builder.label_value("Data categories:", process.data_categories)
        builder.label_value("Recipients:", process.recipients)
        builder.label_value("Retention period:", process.retention_period)
        builder.label_value("Risk level:", process.risk_level)
        builder.label_value("Status:", process.status)
        builder.spacer()

    builder.section("Certification")
    builder.paragraph(CERTIFICATION_TEXT)
    builder.spacer()
    builder.label_value("Data Protection Officer:", org.dpo_name)
    builder.label_value("Signature:", BLANK_FIELD)
    builder.label_value("Date:", BLANK_FIELD)


def _signature_block(builder: ReportBuilder, heading: str) -> None:
    builder.section(heading)
    for label in ("Name:", "Position:", "Signature:", "Date:"):
        builder.label_value(label, BLANK_FIELD)


def assemble_approval_form(
    builder: ReportBuilder,
    process: ProcessRecord,
    dept: Optional[Department],
    org: Optional[Organization],
    generated_on: date,
) -> None:
    builder.write("ROPA Review & Approval Form", size=TITLE_SIZE, bold=True)
    builder.label_value("Tracking Code:", format_tracking_code(process.id, process.created_at))
    builder.label_value("Date Generated:", display_date(generated_on))

    builder.section("Processing Activity Details")
    builder.label_value("Organization:", org.name if org else None)
    builder.label_value("Department:", dept.name if dept else "Unassigned")
    builder.label_value("Process title:", process.title)
    builder.label_value("Description:", process.description)
    builder.label_value("Lawful basis:", process.lawful_basis)
    builder.label_value("Data subjects:", process.data_subjects)
    builder.label_value("Data categories:", process.data_categories)
    builder.label_value("Recipients:", process.recipients)
    builder.label_value("Retention period:", process.retention_period)
    builder.label_value("Risk level:", process.risk_level)
    builder.label_value("Current status:", process.status)
    builder.label_value("Date recorded:", display_date(process.created_at))

    _signature_block(builder, "Reviewed by (Data Protection Officer)")
    _signature_block(builder, "Approved by (Head of Office / Process Owner)")


# ---------------------------------------------------------------------------
# Report generation
# ---------------------------------------------------------------------------

class ReportGenerator:
    """Looks up records in the store and renders the compliance documents."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    @staticmethod
    def _render(title: str, file_name: str, plan: Callable[[ReportBuilder], None]) -> GeneratedDocument:
        try:
            builder = ReportBuilder(title=title)
            plan(builder)
            content = builder.render()
        except Exception as exc:
            logger.exception("Error generating %s", file_name)
            raise ReportGenerationFailed(str(exc) or exc.__class__.__name__) from exc
        return GeneratedDocument(file_name=file_name, content=content)

    def pia_report(self, pia_id: str, today: Optional[date] = None) -> GeneratedDocument:
        pia = self.store.get_pia(pia_id)
        org = self.store.get_organization(pia.org_id)
        today = today or date.today()
        return self._render(
            "Privacy Impact Assessment (PIA) Report",
            f"pia-report-{pia.id[:8]}.pdf",
            lambda builder: assemble_pia_report(builder, pia, org, today),
        )

    def ropa_report(self, org_id: str, today: Optional[date] = None) -> GeneratedDocument:
        org = self.store.get_organization(org_id)
        today = today or date.today()
        approved = [p for p in self.store.processes_for_org(org_id) if p.status == "APPROVED"]
        activities = [(p, self.store.departments.get(p.dept_id)) for p in approved]
        activities.sort(key=lambda item: ((item[1].name if item[1] else ""), item[0].title))
        return self._render(
            "ROPA Compliance Report",
            f"ropa-report-{org.slug}-{today.isoformat()}.pdf",
            lambda builder: assemble_ropa_report(builder, org, activities, today),
        )

    def approval_form(self, process_id: str, today: Optional[date] = None) -> GeneratedDocument:
        process = self.store.get_process(process_id)
        dept = self.store.departments.get(process.dept_id)
        org = self.store.organizations.get(dept.org_id) if dept else None
        today = today or date.today()
        tracking_code = format_tracking_code(process.id, process.created_at)
        return self._render(
            "ROPA Review & Approval Form",
            f"ropa-review-approval-{tracking_code}.pdf",
            lambda builder: assemble_approval_form(builder, process, dept, org, today),
        )


def document_payload(produce: Callable[[], GeneratedDocument]) -> Dict[str, Any]:
    """Run a generator call and shape the outcome as the document response envelope."""
    try:
        return produce().to_payload()
    except (NotFound, ReportGenerationFailed) as exc:
        return {"success": False, "error": str(exc)}


# Convenience functions for easy integration
def export_pia_report(store: RecordStore, pia_id: str) -> Dict[str, Any]:
    """Export a PIA as a base64 PDF payload."""
    return document_payload(lambda: ReportGenerator(store).pia_report(pia_id))


def export_ropa_report(store: RecordStore, org_id: str) -> Dict[str, Any]:
    """Export the organization's ROPA compliance report as a base64 PDF payload."""
    return document_payload(lambda: ReportGenerator(store).ropa_report(org_id))


def export_approval_form(store: RecordStore, process_id: str) -> Dict[str, Any]:
    """Export the review & approval form of one process as a base64 PDF payload."""
    return document_payload(lambda: ReportGenerator(store).approval_form(process_id))
