"""
Record Store
============

In-memory storage for organizations, departments, processing activities,
Privacy Impact Assessments and breach incidents.  It stands in for the
application database: records are plain dataclasses held in dictionaries
keyed by id, and lookups of missing ids raise ``NotFound``.  Records are
kept in memory only; callers that need persistence must serialise them.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from ropa_guardian.errors import NotFound
from ropa_guardian.risk_assessment import ProcessingActivity, RiskAssessmentResult


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Organization:
    id: str
    name: str
    slug: str
    dpo_name: Optional[str] = None
    dpo_email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    industry: Optional[str] = None
    breach_notification_hours: Optional[int] = None


@dataclass
class Department:
    id: str
    org_id: str
    name: str
    description: Optional[str] = None


@dataclass
class ProcessRecord:
    """A processing activity as stored in the ROPA."""
    id: str
    dept_id: str
    title: str
    data_subjects: List[str]
    data_categories: List[str]
    lawful_basis: str
    recipients: List[str]
    retention_period: str
    description: Optional[str] = None
    status: str = "DRAFT"
    risk_level: Optional[str] = None
    risk_assessment: Optional[RiskAssessmentResult] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_activity(self) -> ProcessingActivity:
        return ProcessingActivity(
            title=self.title,
            description=self.description,
            data_categories=list(self.data_categories),
            data_subjects=list(self.data_subjects),
            retention_period=self.retention_period,
            recipients=list(self.recipients),
            lawful_basis=self.lawful_basis,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "deptId": self.dept_id,
            "title": self.title,
            "description": self.description,
            "dataSubjects": list(self.data_subjects),
            "dataCategories": list(self.data_categories),
            "lawfulBasis": self.lawful_basis,
            "recipients": list(self.recipients),
            "retentionPeriod": self.retention_period,
            "status": self.status,
            "riskLevel": self.risk_level,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class PiaAssessment:
    id: str
    org_id: str
    title: str
    description: Optional[str] = None
    owner: Optional[str] = None
    status: str = "DRAFT"
    answers: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "orgId": self.org_id,
            "title": self.title,
            "description": self.description,
            "owner": self.owner,
            "status": self.status,
            "answers": dict(self.answers),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class Incident:
    """A reported personal data breach."""
    id: str
    org_id: str
    title: str
    occurrence_date: date
    severity: str
    status: str = "REPORTED"
    impacted_individuals: Optional[int] = None
    systems_affected: Optional[str] = None
    summary: Optional[str] = None
    assigned_to: Optional[str] = None
    npc_notified: bool = False
    npc_notification_date: Optional[datetime] = None
    resolution_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)


class RecordStore:
    """Dictionary-backed record storage."""

    def __init__(self) -> None:
        self.organizations: Dict[str, Organization] = {}
        self.departments: Dict[str, Department] = {}
        self.processes: Dict[str, ProcessRecord] = {}
        self.pias: Dict[str, PiaAssessment] = {}
        self.incidents: Dict[str, Incident] = {}

    @staticmethod
    def _get(table: Dict[str, Any], kind: str, record_id: str) -> Any:
        try:
            return table[record_id]
        except KeyError:
            raise NotFound(kind, record_id) from None

    # Organizations and departments
    def add_organization(self, org: Organization) -> Organization:
        self.organizations[org.id] = org
        return org

    def get_organization(self, org_id: str) -> Organization:
        return self._get(self.organizations, "Organization", org_id)

    def add_department(self, dept: Department) -> Department:
        self.get_organization(dept.org_id)
        self.departments[dept.id] = dept
        return dept

    def get_department(self, dept_id: str) -> Department:
        return self._get(self.departments, "Department", dept_id)

    def departments_for_org(self, org_id: str) -> List[Department]:
        return sorted(
            (d for d in self.departments.values() if d.org_id == org_id),
            key=lambda d: d.name,
        )

    # Processing activities
    def add_process(self, record: ProcessRecord) -> ProcessRecord:
        self.processes[record.id] = record
        return record

    def get_process(self, process_id: str) -> ProcessRecord:
        return self._get(self.processes, "Process", process_id)

    def delete_process(self, process_id: str) -> None:
        self.get_process(process_id)
        del self.processes[process_id]

    def processes_for_org(self, org_id: str) -> List[ProcessRecord]:
        dept_ids = {d.id for d in self.departments_for_org(org_id)}
        return [p for p in self.processes.values() if p.dept_id in dept_ids]

    # Privacy Impact Assessments
    def add_pia(self, pia: PiaAssessment) -> PiaAssessment:
        self.pias[pia.id] = pia
        return pia

    def get_pia(self, pia_id: str) -> PiaAssessment:
        return self._get(self.pias, "PIA", pia_id)

    def pias_for_org(self, org_id: str) -> List[PiaAssessment]:
        items = [p for p in self.pias.values() if p.org_id == org_id]
        return sorted(items, key=lambda p: p.updated_at, reverse=True)

    # Incidents
    def add_incident(self, incident: Incident) -> Incident:
        self.incidents[incident.id] = incident
        return incident

    def get_incident(self, incident_id: str) -> Incident:
        return self._get(self.incidents, "Incident", incident_id)

    def delete_incident(self, incident_id: str) -> None:
        self.get_incident(incident_id)
        del self.incidents[incident_id]

    def incidents_for_org(self, org_id: str) -> List[Incident]:
        items = [i for i in self.incidents.values() if i.org_id == org_id]
        return sorted(items, key=lambda i: i.created_at, reverse=True)


def seed_sample_data(store: RecordStore) -> Organization:
    """Load a sample organization with three departments and three processes.

    Risk tiers are stored as recorded; they are not reassessed here.
    """
    org = store.add_organization(Organization(
        id="default-org",
        name="Sample Corporation",
        slug="sample-corporation",
        dpo_name="Juan Dela Cruz",
        dpo_email="dpo@samplecorp.com",
        address="123 Tech Street",
        city="Manila",
        country="Philippines",
        email="contact@samplecorp.com",
        phone="+63 2 1234 5678",
        industry="Technology",
    ))
    hr = store.add_department(Department(
        "dept-hr", org.id, "Human Resources",
        "Responsible for recruitment, payroll, benefits, and employee relations",
    ))
    marketing = store.add_department(Department(
        "dept-marketing", org.id, "Marketing",
        "Handles marketing campaigns, customer engagement, and brand management",
    ))
    it = store.add_department(Department(
        "dept-it", org.id, "IT Department",
        "Manages IT infrastructure, security, and technical systems",
    ))
    store.add_process(ProcessRecord(
        id="process-1",
        dept_id=hr.id,
        title="Employee Payroll Processing",
        description="Monthly processing of employee salaries and benefits",
        data_subjects=["Employees", "Dependents"],
        data_categories=["Financial Information", "Personal Information", "Employment Details"],
        lawful_basis="Legal Obligation",
        recipients=["BIR", "SSS", "PhilHealth", "Pag-IBIG", "Bank"],
        retention_period="5 years after separation",
        status="APPROVED",
        risk_level="MEDIUM",
    ))
    store.add_process(ProcessRecord(
        id="process-2",
        dept_id=marketing.id,
        title="Customer Email Marketing",
        description="Sending promotional emails to customers and leads",
        data_subjects=["Customers", "Leads", "Prospects"],
        data_categories=["Contact Information", "Purchase History", "Browsing Behavior"],
        lawful_basis="Consent",
        recipients=["Email Service Provider", "Analytics Platform"],
        retention_period="2 years or until consent withdrawal",
        status="REVIEW",
        risk_level="LOW",
    ))
    store.add_process(ProcessRecord(
        id="process-3",
        dept_id=it.id,
        title="CCTV Surveillance",
        description="Security monitoring of office premises",
        data_subjects=["Employees", "Visitors", "Contractors"],
        data_categories=["Biometric Data", "Location Data", "Video Footage"],
        lawful_basis="Legitimate Interest",
        recipients=["Security Agency", "Law Enforcement (if required)"],
        retention_period="30 days",
        status="DRAFT",
        risk_level="HIGH",
    ))
    return org
