"""
Input Schemas
=============

Option catalogues and pydantic request models for the records that enter
the system through the web layer: processing activities, Privacy Impact
Assessments and breach incidents.

The models accept either snake_case field names or the camelCase aliases
used by the JSON API.  The ``validate_*`` helpers return a plain dictionary
with snake_case keys and raise ``ValidationError`` with one message per
failing field.  Nothing is dropped silently: an invalid field is always
reported.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Mapping, Optional, Type, get_args

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from ropa_guardian.errors import ValidationError

DATA_SUBJECTS = [
    "Employees",
    "Customers",
    "Consultants",
    "Contractors",
    "Visitors",
    "Leads",
    "Prospects",
    "Dependents",
    "Minors",
    "Patients",
    "Students",
]

DATA_CATEGORIES = [
    "Personal Information",
    "Financial Information",
    "Employment Details",
    "Contact Information",
    "Biometric Data",
    "Location Data",
    "Health Information",
    "Purchase History",
    "Browsing Behavior",
    "Government IDs",
    "Academic Records",
    "Video Footage",
]

LAWFUL_BASIS = [
    "Consent",
    "Legal Obligation",
    "Legitimate Interest",
    "Contract",
    "Vital Interest",
    "Public Task",
]

RECIPIENTS = [
    "Internal Staff",
    "Bank",
    "BIR",
    "SSS",
    "PhilHealth",
    "Pag-IBIG",
    "Email Service Provider",
    "Analytics Platform",
    "Security Agency",
    "Law Enforcement",
    "Third-Party Processor",
    "Cloud Provider",
    "Marketing Agency",
]

ProcessStatus = Literal["DRAFT", "REVIEW", "APPROVED"]
IncidentSeverity = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
IncidentStatus = Literal["REPORTED", "ASSESSING", "NOTIFYING", "RESOLVED"]

PROCESS_STATUSES = list(get_args(ProcessStatus))
INCIDENT_SEVERITIES = list(get_args(IncidentSeverity))
INCIDENT_STATUSES = list(get_args(IncidentStatus))

# Fields whose change requires a fresh risk assessment.
RISK_RELEVANT_FIELDS = (
    "title",
    "description",
    "data_categories",
    "data_subjects",
    "retention_period",
    "recipients",
)

LIST_FIELDS = ("data_subjects", "data_categories", "recipients")

RequiredText = Annotated[str, Field(min_length=1)]
Title = Annotated[str, Field(min_length=3)]
TextList = Annotated[List[RequiredText], Field(min_length=1)]


def _status_message(allowed: List[str]) -> str:
    return f"Status must be one of: {', '.join(allowed)}"


def _not_null(model: Type[_Payload], value: Any, info: ValidationInfo) -> Any:
    if value is None:
        raise ValueError(model.field_messages[info.field_name])
    return value


class _Payload(BaseModel):
    """Shared behaviour: aliases or field names, trimmed text, unknown keys ignored."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")

    # Message reported for a field when pydantic rejects it.
    field_messages: ClassVar[Dict[str, str]] = {}

    @field_validator("status", "severity", mode="before", check_fields=False)
    @classmethod
    def upper_case_choice(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator(
        "description", "owner", "summary", "systems_affected", "assigned_to", "resolution_notes",
        check_fields=False,
    )
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class ProcessInput(_Payload):
    """A new processing activity.  Risk tiers are computed, never accepted."""

    field_messages: ClassVar[Dict[str, str]] = {
        "dept_id": "Department is required",
        "title": "Title must be at least 3 characters",
        "description": "Description must be text",
        "data_subjects": "At least one data subject is required",
        "data_categories": "At least one data category is required",
        "lawful_basis": "Lawful basis is required",
        "recipients": "At least one recipient is required",
        "retention_period": "Retention period is required",
        "status": _status_message(PROCESS_STATUSES),
    }

    dept_id: RequiredText = Field(alias="deptId")
    title: Title
    description: Optional[str] = None
    data_subjects: TextList = Field(alias="dataSubjects")
    data_categories: TextList = Field(alias="dataCategories")
    lawful_basis: RequiredText = Field(alias="lawfulBasis")
    recipients: TextList
    retention_period: RequiredText = Field(alias="retentionPeriod")
    status: ProcessStatus = "DRAFT"


class ProcessUpdate(ProcessInput):
    """A partial update: only supplied fields are checked, and none may be null."""

    dept_id: Optional[RequiredText] = Field(default=None, alias="deptId")
    title: Optional[Title] = None
    data_subjects: Optional[TextList] = Field(default=None, alias="dataSubjects")
    data_categories: Optional[TextList] = Field(default=None, alias="dataCategories")
    lawful_basis: Optional[RequiredText] = Field(default=None, alias="lawfulBasis")
    recipients: Optional[TextList] = None
    retention_period: Optional[RequiredText] = Field(default=None, alias="retentionPeriod")
    status: Optional[ProcessStatus] = None

    @field_validator(
        "dept_id", "title", "data_subjects", "data_categories", "lawful_basis", "recipients",
        "retention_period", "status",
    )
    @classmethod
    def reject_null(cls, value: Any, info: ValidationInfo) -> Any:
        return _not_null(cls, value, info)


class PiaInput(_Payload):
    field_messages: ClassVar[Dict[str, str]] = {
        "org_id": "Organization is required",
        "title": "Title must be at least 3 characters",
        "description": "Description must be text",
        "owner": "Owner must be text",
        "status": _status_message(PROCESS_STATUSES),
        "answers": "Answers must be an object keyed by question id",
    }

    org_id: RequiredText = Field(alias="orgId")
    title: Title
    description: Optional[str] = None
    owner: Optional[str] = None
    status: ProcessStatus = "DRAFT"
    answers: Dict[str, Any] = Field(default_factory=dict)


class PiaUpdate(PiaInput):
    org_id: Optional[str] = Field(default=None, alias="orgId")
    title: Optional[Title] = None
    status: Optional[ProcessStatus] = None
    answers: Optional[Dict[str, Any]] = None

    @field_validator("title", "status", "answers")
    @classmethod
    def reject_null(cls, value: Any, info: ValidationInfo) -> Any:
        return _not_null(cls, value, info)


class IncidentInput(_Payload):
    """A newly reported breach incident."""

    field_messages: ClassVar[Dict[str, str]] = {
        "title": "Title is required",
        "occurrence_date": "Occurrence date must be an ISO date (YYYY-MM-DD)",
        "severity": "Select a severity level.",
        "impacted_individuals": "Impacted individuals must be a non-negative whole number",
        "systems_affected": "Systems affected must be text",
        "summary": "Summary must be text",
    }

    title: RequiredText
    occurrence_date: date = Field(alias="occurrenceDate")
    severity: IncidentSeverity
    impacted_individuals: Optional[int] = Field(default=None, ge=0, alias="impactedIndividuals")
    systems_affected: Optional[str] = Field(default=None, alias="systemsAffected")
    summary: Optional[str] = None

    @field_validator("impacted_individuals", mode="before")
    @classmethod
    def blank_count(cls, value: Any) -> Any:
        return None if value == "" else value


class IncidentUpdate(_Payload):
    """Lifecycle changes to an incident; any other field is refused."""

    model_config = ConfigDict(extra="forbid")

    field_messages: ClassVar[Dict[str, str]] = {
        "status": _status_message(INCIDENT_STATUSES),
        "npc_notified": "NPC notified must be true or false",
        "assigned_to": "Assigned to must be text",
        "resolution_notes": "Resolution notes must be text",
        "summary": "Summary must be text",
        "systems_affected": "Systems affected must be text",
    }

    status: Optional[IncidentStatus] = None
    assigned_to: Optional[str] = Field(default=None, alias="assignedTo")
    npc_notified: Optional[StrictBool] = Field(default=None, alias="npcNotified")
    resolution_notes: Optional[str] = Field(default=None, alias="resolutionNotes")
    summary: Optional[str] = None
    systems_affected: Optional[str] = Field(default=None, alias="systemsAffected")

    @field_validator("status", "npc_notified")
    @classmethod
    def reject_null(cls, value: Any, info: ValidationInfo) -> Any:
        return _not_null(cls, value, info)


def field_errors(model: Type[_Payload], exc: PydanticValidationError) -> Dict[str, str]:
    """Turn pydantic's error list into one message per snake_case field."""
    names = {info.alias or name: name for name, info in model.model_fields.items()}
    errors: Dict[str, str] = {}
    for error in exc.errors():
        loc = error["loc"]
        field = names.get(str(loc[0]), str(loc[0])) if loc else "body"
        if field in errors:
            continue
        if error["type"] == "extra_forbidden":
            errors[field] = "Field cannot be updated"
        elif error["type"] == "value_error":
            errors[field] = str(error["ctx"]["error"])
        elif field in LIST_FIELDS and (len(loc) > 1 or error["type"] == "list_type"):
            errors[field] = f"{field.replace('_', ' ').capitalize()} must be a list of text values"
        else:
            errors[field] = model.field_messages.get(field, error["msg"])
    return errors


def _clean(model: Type[_Payload], data: Mapping[str, Any], exclude_unset: bool = False) -> Dict[str, Any]:
    try:
        payload = model.model_validate(dict(data))
    except PydanticValidationError as exc:
        raise ValidationError(field_errors(model, exc)) from exc
    return payload.model_dump(exclude_unset=exclude_unset)


def validate_process_data(data: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Validate a processing activity payload.

    Args:
        data: Raw payload (snake_case or camelCase keys).
        partial: When ``True`` only the supplied fields are checked, as for
            an update.

    Returns:
        The cleaned payload with snake_case keys.

    Raises:
        ValidationError: one message per failing field.
    """
    if partial:
        return _clean(ProcessUpdate, data, exclude_unset=True)
    return _clean(ProcessInput, data)


def validate_pia_data(data: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Validate a Privacy Impact Assessment payload."""
    if partial:
        return _clean(PiaUpdate, data, exclude_unset=True)
    return _clean(PiaInput, data)


def validate_incident_data(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate a breach incident report."""
    return _clean(IncidentInput, data)


def validate_incident_update(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate incident lifecycle changes; only the supplied fields are returned."""
    return _clean(IncidentUpdate, data, exclude_unset=True)
