"""
ROPA Processing Inventory
=========================

This module maintains the Record of Processing Activities (ROPA) for an
organization.  Each entry captures the processing activity's title,
department, lawful basis, data subjects, data categories, recipients and
retention period, together with the risk tier computed by the
``RiskAssessor``.  Callers never supply a risk tier: it is computed when a
record is created and recomputed whenever a risk-relevant field changes.

The inventory can be exported to a pandas DataFrame, a CSV file or an
Excel workbook.
"""

from __future__ import annotations

import io
import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils.dataframe import dataframe_to_rows

from ropa_guardian.errors import NotFound
from ropa_guardian.risk_assessment import RiskAssessmentResult, RiskAssessor, summarize_risk_levels
from ropa_guardian.schemas import PROCESS_STATUSES, RISK_RELEVANT_FIELDS, validate_process_data
from ropa_guardian.store import ProcessRecord, RecordStore, new_id

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "Title",
    "Department",
    "Status",
    "Risk",
    "Lawful Basis",
    "Retention Period",
    "Data Subjects",
    "Data Categories",
    "Recipients",
    "Updated At",
]


class ProcessingInventory:
    """Processing activity records backed by a ``RecordStore``."""

    def __init__(self, store: RecordStore, assessor: RiskAssessor) -> None:
        self.store = store
        self.assessor = assessor

    def _apply_assessment(self, record: ProcessRecord) -> RiskAssessmentResult:
        assessment = self.assessor.assess(record.to_activity())
        record.risk_level = assessment.risk_level
        record.risk_assessment = assessment
        logger.info(
            "Assessed process %s as %s (score=%s, advisory=%s)",
            record.id, assessment.risk_level, assessment.score, assessment.is_ai,
        )
        return assessment

    def create_process(
        self, data: Mapping[str, Any], org_id: Optional[str] = None
    ) -> Tuple[ProcessRecord, RiskAssessmentResult]:
        """Validate, assess and store a new processing activity.

        Args:
            data: Process payload (snake_case or camelCase keys).
            org_id: When given, the department must belong to this organization.

        Returns:
            The stored record and the assessment that produced its tier.

        Raises:
            ValidationError: the payload is incomplete or malformed.
            NotFound: the organization or the referenced department does not
                exist, or the department belongs to another organization.
        """
        if org_id is not None:
            self.store.get_organization(org_id)
        cleaned = validate_process_data(data)
        dept = self.store.get_department(cleaned["dept_id"])
        if org_id is not None and dept.org_id != org_id:
            raise NotFound("Department", dept.id)
        record = ProcessRecord(
            id=new_id(),
            dept_id=cleaned["dept_id"],
            title=cleaned["title"],
            description=cleaned.get("description"),
            data_subjects=cleaned["data_subjects"],
            data_categories=cleaned["data_categories"],
            lawful_basis=cleaned["lawful_basis"],
            recipients=cleaned["recipients"],
            retention_period=cleaned["retention_period"],
            status=cleaned["status"],
        )
        assessment = self._apply_assessment(record)
        self.store.add_process(record)
        return record, assessment

    def update_process(self, process_id: str, data: Mapping[str, Any]) -> ProcessRecord:
        """Apply a partial update.

        When any risk-relevant field is supplied the merged record is
        reassessed and the new result replaces the previous one entirely.
        """
        record = self.store.get_process(process_id)
        cleaned = validate_process_data(data, partial=True)
        if "dept_id" in cleaned:
            self.store.get_department(cleaned["dept_id"])
        for name, value in cleaned.items():
            if hasattr(record, name) and name not in ("id", "risk_assessment", "created_at", "updated_at"):
                setattr(record, name, value)
        if any(name in cleaned for name in RISK_RELEVANT_FIELDS):
            self._apply_assessment(record)
        record.updated_at = datetime.now()
        return record

    def delete_process(self, process_id: str) -> None:
        self.store.delete_process(process_id)

    def get_process(self, process_id: str) -> ProcessRecord:
        return self.store.get_process(process_id)

    def list_processes(self, org_id: str) -> List[ProcessRecord]:
        """Return the organization's records, most recently updated first."""
        self.store.get_organization(org_id)
        return sorted(self.store.processes_for_org(org_id), key=lambda p: p.updated_at, reverse=True)

    def approved_processes(self, org_id: str) -> List[ProcessRecord]:
        return [p for p in self.list_processes(org_id) if p.status == "APPROVED"]

    def _department_name(self, dept_id: str) -> str:
        dept = self.store.departments.get(dept_id)
        return dept.name if dept else "Unassigned"

    def to_dataframe(self, org_id: str) -> pd.DataFrame:
        """Return the organization's ROPA register as a pandas DataFrame."""
        data = [
            {
                "Title": p.title,
                "Department": self._department_name(p.dept_id),
                "Status": p.status,
                "Risk": p.risk_level or "UNASSESSED",
                "Lawful Basis": p.lawful_basis,
                "Retention Period": p.retention_period,
                "Data Subjects": "; ".join(p.data_subjects),
                "Data Categories": "; ".join(p.data_categories),
                "Recipients": "; ".join(p.recipients),
                "Updated At": p.updated_at.strftime("%Y-%m-%d %H:%M"),
            }
            for p in self.list_processes(org_id)
        ]
        return pd.DataFrame(data, columns=EXPORT_COLUMNS)

    def to_csv(self, org_id: str) -> str:
        return self.to_dataframe(org_id).to_csv(index=False)

    def to_excel(self, org_id: str) -> bytes:
        """Export the register to an Excel file and return its bytes."""
        df = self.to_dataframe(org_id)
        wb = Workbook()
        ws = wb.active
        ws.title = "ROPA Register"
        for row in dataframe_to_rows(df, index=False, header=True):
            ws.append(row)
        # Bold header
        for cell in ws[1]:
            cell.font = Font(bold=True)
        buf = io.BytesIO()
        wb.save(buf)
        buf.seek(0)
        return buf.getvalue()

    def summary(self, org_id: str) -> Dict[str, Any]:
        """Dashboard figures: totals by status, by risk tier and by department."""
        records = self.list_processes(org_id)
        statuses = Counter(p.status for p in records)
        departments = Counter(self._department_name(p.dept_id) for p in records)
        return {
            "total": len(records),
            "byStatus": {status: statuses.get(status, 0) for status in PROCESS_STATUSES},
            "byRisk": summarize_risk_levels(p.risk_level for p in records),
            "byDepartment": dict(sorted(departments.items())),
        }
