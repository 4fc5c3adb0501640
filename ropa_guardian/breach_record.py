"""
Breach Record Book
==================

This module keeps the personal data breach incidents of an organization.
Under the Data Privacy Act the National Privacy Commission must be
notified within 72 hours of knowledge of a breach, so every incident
carries a notification deadline measured from the time it was reported.
Organizations may shorten or extend the window through their own
``breach_notification_hours`` setting.

The ``BreachRecordBook`` class allows you to report incidents, move them
through their lifecycle (REPORTED, ASSESSING, NOTIFYING, RESOLVED), filter
them by age and export the log to Excel or PDF.
"""

from __future__ import annotations

import io
import logging
from datetime import datetime, timedelta
from typing import Any, List, Mapping, Optional

import pandas as pd
from dateutil.relativedelta import relativedelta
from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils.dataframe import dataframe_to_rows

from ropa_guardian.config import Settings
from ropa_guardian.report_builder import TITLE_SIZE, ReportBuilder
from ropa_guardian.schemas import validate_incident_data, validate_incident_update
from ropa_guardian.store import Incident, RecordStore, new_id

logger = logging.getLogger(__name__)


class BreachRecordBook:
    """Incident log backed by a ``RecordStore``."""

    def __init__(self, store: RecordStore, settings: Optional[Settings] = None) -> None:
        self.store = store
        self.settings = settings or Settings()

    def report_incident(self, org_id: str, data: Mapping[str, Any]) -> Incident:
        """Record a new incident with status REPORTED.

        Raises:
            NotFound: the organization does not exist.
            ValidationError: the report is incomplete or malformed.
        """
        self.store.get_organization(org_id)
        cleaned = validate_incident_data(data)
        incident = Incident(
            id=new_id(),
            org_id=org_id,
            title=cleaned["title"],
            occurrence_date=cleaned["occurrence_date"],
            severity=cleaned["severity"],
            impacted_individuals=cleaned["impacted_individuals"],
            systems_affected=cleaned["systems_affected"],
            summary=cleaned["summary"],
        )
        self.store.add_incident(incident)
        logger.warning("Breach incident %s reported (%s): %s", incident.id, incident.severity, incident.title)
        return incident

    def update_incident(
        self,
        incident_id: str,
        changes: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
        **fields: Any,
    ) -> Incident:
        """Update the lifecycle fields of an incident.

        ``changes`` (camelCase or snake_case keys) and keyword ``fields`` are
        merged and validated together.  Resolving an incident stamps
        ``resolved_at``; flagging the NPC as notified stamps
        ``npc_notification_date``.

        Raises:
            NotFound: the incident does not exist.
            ValidationError: a field is unknown, null where a value is
                required, or of the wrong type.
        """
        incident = self.store.get_incident(incident_id)
        cleaned = validate_incident_update({**(changes or {}), **fields})
        now = now or datetime.now()
        if "status" in cleaned:
            if cleaned["status"] == "RESOLVED" and incident.status != "RESOLVED":
                incident.resolved_at = now
            elif cleaned["status"] != "RESOLVED":
                incident.resolved_at = None
        if cleaned.get("npc_notified") and not incident.npc_notified:
            incident.npc_notification_date = now
        elif cleaned.get("npc_notified") is False:
            incident.npc_notification_date = None
        for name, value in cleaned.items():
            setattr(incident, name, value)
        logger.info("Breach incident %s updated: %s", incident.id, ", ".join(sorted(cleaned)))
        return incident

    def delete_incident(self, incident_id: str) -> None:
        self.store.delete_incident(incident_id)
        logger.info("Breach incident %s deleted", incident_id)

    def list_incidents(self, org_id: str) -> List[Incident]:
        """Return the organization's incidents, newest first."""
        return self.store.incidents_for_org(org_id)

    def get_recent_records(self, org_id: str, months: int = 24, today: Optional[datetime] = None) -> List[Incident]:
        """Return incidents that occurred in the last ``months`` months (default 24)."""
        cutoff = (today or datetime.now()).date() - relativedelta(months=months)
        return [i for i in self.list_incidents(org_id) if i.occurrence_date >= cutoff]

    def notification_hours(self, incident: Incident) -> int:
        org = self.store.organizations.get(incident.org_id)
        if org is not None and org.breach_notification_hours:
            return org.breach_notification_hours
        return self.settings.breach_notification_hours

    def notification_deadline(self, incident: Incident) -> datetime:
        return incident.created_at + timedelta(hours=self.notification_hours(incident))

    def is_notification_overdue(self, incident: Incident, now: Optional[datetime] = None) -> bool:
        """True when the NPC has not been notified and the window has passed."""
        if incident.npc_notified or incident.status == "RESOLVED":
            return False
        return (now or datetime.now()) > self.notification_deadline(incident)

    def to_dataframe(self, org_id: str, include_all: bool = True) -> pd.DataFrame:
        """Convert the log to a pandas DataFrame.

        Args:
            org_id: Organization whose incidents are exported.
            include_all: If ``True``, include all records.  If ``False``,
                include only records from the last 24 months.
        """
        records = self.list_incidents(org_id) if include_all else self.get_recent_records(org_id)
        data = [
            {
                "Occurred": r.occurrence_date.isoformat(),
                "Title": r.title,
                "Severity": r.severity,
                "Status": r.status,
                "Impacted": r.impacted_individuals if r.impacted_individuals is not None else "",
                "NPC Notified": "Yes" if r.npc_notified else "No",
                "Notify By": self.notification_deadline(r).strftime("%Y-%m-%d %H:%M"),
            }
            for r in records
        ]
        return pd.DataFrame(
            data,
            columns=["Occurred", "Title", "Severity", "Status", "Impacted", "NPC Notified", "Notify By"],
        )

    def to_excel(self, org_id: str, include_all: bool = True) -> bytes:
        """Export the log to an Excel file.

        Returns a bytes object containing the XLSX content.
        """
        df = self.to_dataframe(org_id, include_all=include_all)
        wb = Workbook()
        ws = wb.active
        ws.title = "Breach Record"
        for row in dataframe_to_rows(df, index=False, header=True):
            ws.append(row)
        header_font = Font(bold=True)
        for cell in ws[1]:
            cell.font = header_font
        buf = io.BytesIO()
        wb.save(buf)
        buf.seek(0)
        return buf.getvalue()

    def to_pdf(self, org_id: str, include_all: bool = True) -> bytes:
        """Export the log to a PDF document, one block per incident."""
        org = self.store.get_organization(org_id)
        records = self.list_incidents(org_id) if include_all else self.get_recent_records(org_id)
        builder = ReportBuilder(title="Breach Record Book")
        builder.write("Breach Record Book", size=TITLE_SIZE, bold=True)
        builder.write(f"{org.name} - generated {datetime.now():%Y-%m-%d %H:%M}")
        if not records:
            builder.section("Incidents")
            builder.write("No incidents recorded.")
        for incident in records:
            builder.section(incident.title)
            builder.label_value("Occurred:", incident.occurrence_date.isoformat())
            builder.label_value("Severity:", incident.severity)
            builder.label_value("Status:", incident.status)
            builder.label_value("Impacted:", incident.impacted_individuals)
            builder.label_value("Systems affected:", incident.systems_affected)
            builder.label_value("Summary:", incident.summary)
            builder.label_value("NPC notified:", "Yes" if incident.npc_notified else "No")
            builder.label_value("Notify by:", f"{self.notification_deadline(incident):%Y-%m-%d %H:%M}")
        return builder.render()
