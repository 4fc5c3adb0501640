"""
Privacy Impact Assessment
=========================

Questionnaire catalogue and risk register helpers for Privacy Impact
Assessments (PIAs).  A PIA stores its answers as a free-form mapping keyed
by question id; the risk register travels inside that mapping as JSON
text under ``risk_register``.

Each register entry carries a likelihood and an impact rating.  Its
overall rating is derived from those two on every read, so a stale or
hand-edited ``overall`` value in stored JSON is never trusted.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, List, Mapping, Union

from ropa_guardian.errors import ValidationError
from ropa_guardian.schemas import DATA_CATEGORIES, DATA_SUBJECTS, LAWFUL_BASIS, RECIPIENTS, validate_pia_data
from ropa_guardian.store import PiaAssessment, RecordStore, new_id

PROCESSING_PURPOSES = [
    "Employee management",
    "Payroll and benefits",
    "Customer onboarding",
    "Marketing and promotions",
    "Service delivery",
    "Contract management",
    "Legal compliance",
    "Security and fraud prevention",
    "Research and analytics",
]

RISK_LIBRARY = [
    "Unauthorized access to personal data",
    "Data breach / leakage",
    "Excessive data collection",
    "Inaccurate or outdated data",
    "Unclear consent or legal basis",
    "Improper data sharing with third parties",
    "Cross-border transfer without safeguards",
    "Insufficient retention controls",
    "Lack of transparency to data subjects",
    "Weak access control and authentication",
    "Insufficient incident response readiness",
    "Inadequate vendor oversight",
]

RISK_LIKELIHOOD = ["Low", "Medium", "High"]
RISK_IMPACT = ["Low", "Medium", "High"]

RATING_POINTS = {"Low": 1, "Medium": 2, "High": 3}


def normalize_rating(value: Any, default: str = "Medium") -> str:
    """Map a rating onto its canonical spelling ("high" and "HIGH" become "High").

    Blank values give ``default``; unrecognised text is returned trimmed but
    otherwise unchanged.
    """
    text = "" if value is None else str(value).strip()
    if not text:
        return default
    return text.capitalize() if text.capitalize() in RATING_POINTS else text

PIA_SECTIONS: List[Dict[str, Any]] = [
    {
        "id": "context",
        "title": "Processing Context",
        "description": "Describe the processing activity and its legal basis under the Philippine Data Privacy Act.",
        "questions": [
            {"id": "personal_data", "label": "Personal data collected", "options": DATA_CATEGORIES, "multi": True},
            {"id": "sensitive_data", "label": "Sensitive personal information collected", "multiline": True},
            {"id": "purpose", "label": "Purpose of processing", "options": PROCESSING_PURPOSES, "multi": True},
            {"id": "lawful_basis", "label": "Lawful basis", "options": LAWFUL_BASIS, "multi": True},
            {"id": "data_subjects", "label": "Data subjects", "options": DATA_SUBJECTS, "multi": True},
            {"id": "recipients", "label": "Recipients and data sharing", "options": RECIPIENTS, "multi": True},
            {"id": "retention", "label": "Retention period", "multiline": True},
            {"id": "retention_reason", "label": "Retention justification", "multiline": True},
            {"id": "cross_border", "label": "Cross-border transfers", "options": ["Yes", "No"]},
        ],
    },
    {
        "id": "lifecycle",
        "title": "Data Lifecycle and Sharing",
        "description": "Describe how data is collected, stored, accessed, shared, and disposed.",
        "questions": [
            {"id": "collection_method", "label": "How is the data collected?", "multiline": True},
            {"id": "storage_security", "label": "How is the data stored and secured?", "multiline": True},
            {"id": "internal_access", "label": "Who has access internally?", "multiline": True},
            {"id": "disposal_method", "label": "How is the data disposed of?", "multiline": True},
        ],
    },
    {
        "id": "risk",
        "title": "Risk & Impact Assessment",
        "description": "Identify privacy risks, impact on data subjects, and mitigation measures.",
        "questions": [
            {"id": "high_risk", "label": "High-risk processing indicators", "multiline": True},
            {"id": "impact_summary", "label": "Impact summary", "multiline": True},
            {"id": "risk_notes", "label": "Additional risk notes", "multiline": True},
            {"id": "mitigations", "label": "Mitigation measures", "multiline": True},
        ],
    },
    {
        "id": "governance",
        "title": "Governance & Accountability",
        "description": "Document accountability actions required by the DPA and NPC guidance.",
        "questions": [
            {"id": "security_controls", "label": "Security controls", "multiline": True},
            {"id": "vendor_controls", "label": "Processor/vendor controls", "multiline": True},
            {"id": "training", "label": "Training & awareness", "multiline": True},
            {"id": "dpo_opinion", "label": "DPO opinion", "multiline": True},
            {"id": "summary_findings", "label": "Summary of findings", "multiline": True},
            {"id": "recommendation", "label": "Recommendation", "multiline": True},
            {"id": "dpo_signature", "label": "DPO signature (name)"},
        ],
    },
]


def compute_overall_risk(likelihood: str, impact: str) -> str:
    """Combine likelihood and impact (Low=1, Medium=2, High=3) into an overall rating.

    Unknown ratings count as Low.
    """
    total = RATING_POINTS.get(likelihood, 1) + RATING_POINTS.get(impact, 1)
    if total >= 5:
        return "High"
    if total >= 3:
        return "Medium"
    return "Low"


@dataclass(frozen=True)
class RiskRegisterEntry:
    id: str
    title: str
    context: str = ""
    likelihood: str = "Medium"
    impact: str = "Medium"
    existing_controls: str = ""
    recommended_controls: str = ""
    responsibility: str = ""
    target_date: str = ""

    @property
    def overall(self) -> str:
        return compute_overall_risk(self.likelihood, self.impact)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskRegisterEntry":
        def text(key: str, default: str = "") -> str:
            value = data.get(key)
            return default if value is None else str(value)

        return cls(
            id=text("id") or uuid.uuid4().hex,
            title=text("title"),
            context=text("context"),
            likelihood=normalize_rating(data.get("likelihood")),
            impact=normalize_rating(data.get("impact")),
            existing_controls=text("existingControls"),
            recommended_controls=text("recommendedControls"),
            responsibility=text("responsibility"),
            target_date=text("targetDate"),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "context": self.context,
            "likelihood": self.likelihood,
            "impact": self.impact,
            "overall": self.overall,
            "existingControls": self.existing_controls,
            "recommendedControls": self.recommended_controls,
            "responsibility": self.responsibility,
            "targetDate": self.target_date,
        }


def parse_risk_register(raw: Union[str, List[Any], None]) -> List[RiskRegisterEntry]:
    """Read a stored risk register.

    Accepts the JSON text stored in a PIA's answers or an already decoded
    list.  Malformed JSON and non-object items are ignored rather than
    raised, so a damaged register reads as empty or partial.
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []
    return [RiskRegisterEntry.from_dict(item) for item in raw if isinstance(item, dict)]


def serialize_risk_register(entries: List[RiskRegisterEntry]) -> str:
    return json.dumps([entry.to_dict() for entry in entries])


def validate_risk_register(raw: Union[str, List[Any], None]) -> List[RiskRegisterEntry]:
    """Parse a submitted register, rejecting ratings outside Low/Medium/High.

    Raises:
        ValidationError: an entry carries an unknown likelihood or impact.
    """
    entries = parse_risk_register(raw)
    invalid = [
        entry.title or entry.id
        for entry in entries
        if entry.likelihood not in RISK_LIKELIHOOD or entry.impact not in RISK_IMPACT
    ]
    if invalid:
        raise ValidationError({
            "risk_register": f"Likelihood and impact must be Low, Medium or High: {', '.join(invalid)}"
        })
    return entries


def _normalize_answers(answers: Mapping[str, Any]) -> Dict[str, Any]:
    answers = dict(answers)
    if "risk_register" in answers:
        answers["risk_register"] = serialize_risk_register(validate_risk_register(answers["risk_register"]))
    return answers


def add_risk(entries: List[RiskRegisterEntry], title: str) -> List[RiskRegisterEntry]:
    """Return a new register with ``title`` appended; duplicate titles are ignored."""
    if any(entry.title == title for entry in entries):
        return list(entries)
    return list(entries) + [RiskRegisterEntry(id=uuid.uuid4().hex, title=title)]


def update_risk(entries: List[RiskRegisterEntry], entry_id: str, **changes: str) -> List[RiskRegisterEntry]:
    """Return a new register with the given entry's fields replaced."""
    changes.pop("overall", None)
    for rating in ("likelihood", "impact"):
        if rating in changes:
            changes[rating] = normalize_rating(changes[rating])
    return [replace(entry, **changes) if entry.id == entry_id else entry for entry in entries]


def remove_risk(entries: List[RiskRegisterEntry], entry_id: str) -> List[RiskRegisterEntry]:
    return [entry for entry in entries if entry.id != entry_id]


def risk_register_summary(entries: List[RiskRegisterEntry]) -> Dict[str, int]:
    summary = {"High": 0, "Medium": 0, "Low": 0}
    for entry in entries:
        summary[entry.overall] += 1
    return summary


def create_pia(store: RecordStore, data: Mapping[str, Any]) -> PiaAssessment:
    """Validate and store a new PIA for an existing organization."""
    cleaned = validate_pia_data(data)
    store.get_organization(cleaned["org_id"])
    pia = PiaAssessment(
        id=new_id(),
        org_id=cleaned["org_id"],
        title=cleaned["title"],
        description=cleaned.get("description"),
        owner=cleaned.get("owner"),
        status=cleaned["status"],
        answers=_normalize_answers(cleaned["answers"]),
    )
    return store.add_pia(pia)


def update_pia(store: RecordStore, pia_id: str, data: Mapping[str, Any]) -> PiaAssessment:
    """Apply a partial update; supplied answers are merged into the stored ones.

    A ``risk_register`` answer is normalised so every stored entry carries
    the overall rating derived from its likelihood and impact.
    """
    pia = store.get_pia(pia_id)
    cleaned = validate_pia_data(data, partial=True)
    cleaned.pop("org_id", None)
    answers = cleaned.pop("answers", None)
    if answers is not None:
        answers = _normalize_answers(answers)
    for name, value in cleaned.items():
        if name in ("title", "description", "owner", "status"):
            setattr(pia, name, value)
    if answers is not None:
        merged = dict(pia.answers)
        merged.update(answers)
        pia.answers = merged
    pia.updated_at = datetime.now()
    return pia
