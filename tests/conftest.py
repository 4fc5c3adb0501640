"""Shared fixtures for the ROPA Guardian test suite."""

from __future__ import annotations

import json
from typing import Any, Callable, Optional
from unittest.mock import MagicMock

import pytest
import requests

from ropa_guardian.advisory_client import AdvisoryClient, AdvisoryServiceState
from ropa_guardian.config import Settings
from ropa_guardian.risk_assessment import ProcessingActivity, RiskAssessor
from ropa_guardian.store import RecordStore, seed_sample_data


class MockResponse:
    """Stand-in for ``requests.Response`` returned by the mocked session."""

    def __init__(self, status_code: int = 200, json_data: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self.json_data = json_data
        self.text = text if text is not None else json.dumps(json_data)

    def json(self) -> Any:
        if self.json_data is None:
            raise ValueError("No JSON object could be decoded")
        return self.json_data

    def raise_for_status(self) -> None:
        if 400 <= self.status_code < 600:
            raise requests.HTTPError(f"HTTP Error {self.status_code}")


def advisory_answer(payload: Any, prefix: str = "Here is my analysis:\n", suffix: str = "\nHope this helps.") -> MockResponse:
    """A 2xx advisory response whose answer text embeds ``payload`` as JSON."""
    return MockResponse(200, {"answer": f"{prefix}{json.dumps(payload)}{suffix}"})


@pytest.fixture
def settings() -> Settings:
    return Settings(advisory_url="https://advisory.test/api")


@pytest.fixture
def mock_session() -> MagicMock:
    session = MagicMock()
    session.headers = {}
    return session


@pytest.fixture
def client(settings: Settings, mock_session: MagicMock) -> AdvisoryClient:
    return AdvisoryClient(settings, session=mock_session)


@pytest.fixture
def state() -> AdvisoryServiceState:
    return AdvisoryServiceState()


@pytest.fixture
def assessor(client: AdvisoryClient, state: AdvisoryServiceState) -> RiskAssessor:
    return RiskAssessor(client=client, state=state)


@pytest.fixture
def rule_based_assessor() -> RiskAssessor:
    return RiskAssessor(enabled=False)


@pytest.fixture
def store() -> RecordStore:
    records = RecordStore()
    seed_sample_data(records)
    return records


@pytest.fixture
def cctv_activity() -> ProcessingActivity:
    return ProcessingActivity(
        title="CCTV Surveillance",
        description="Security monitoring of office premises",
        data_categories=["Biometric Data", "Location Data", "Video Footage"],
        data_subjects=["Employees", "Visitors", "Contractors"],
        retention_period="30 days",
        recipients=["Security Agency", "Law Enforcement (if required)"],
        lawful_basis="Legitimate Interest",
    )


@pytest.fixture
def process_payload() -> Callable[..., dict]:
    def build(**overrides: Any) -> dict:
        payload = {
            "deptId": "dept-hr",
            "title": "Recruitment Screening",
            "description": "Screening of job applicants",
            "dataSubjects": ["Employees"],
            "dataCategories": ["Personal Information"],
            "lawfulBasis": "Contract",
            "recipients": ["Internal Staff"],
            "retentionPeriod": "1 year",
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def response() -> Callable[..., MockResponse]:
    return MockResponse


@pytest.fixture
def answer() -> Callable[..., MockResponse]:
    return advisory_answer
