"""
Advisory Consultation Client
============================

Boundary adapter for the external legal-advisory service.  The service
exposes a single ``POST {base_url}/consult`` endpoint that takes a JSON
body ``{"query": "..."}`` and answers with free text in an ``answer``
(preferred) or ``response`` field.

Two flavours of call are offered:

* ``consult`` – a direct question from a Data Protection Officer, bounded
  by the consult timeout (12 seconds by default).
* ``analyze_process`` – a structured risk analysis of a processing
  activity, bounded by the analysis timeout (10 seconds by default).  The
  answer is expected to embed a JSON object somewhere in its text; when it
  does not, the call returns ``None`` instead of raising so the caller can
  fall back to rule-based scoring.

Transport problems (network errors, timeouts, non-2xx statuses) raise
``AdvisoryUnavailable``.  Availability of the service across requests is
tracked by ``AdvisoryServiceState``, which is owned by the caller and
threaded into whoever needs it.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import requests

from ropa_guardian.config import Settings
from ropa_guardian.errors import AdvisoryMalformedResponse, AdvisoryUnavailable

logger = logging.getLogger(__name__)

PROVIDER_NAME = "SILIP (Philippine Legal AI)"

# Concurrent advisory calls per client; a call past its deadline keeps its
# worker until the socket gives up.
ADVISORY_WORKERS = 4

FALLBACK_CONSULT_ANSWER = (
    "Start with a lawful basis (consent, contract, legal obligation, vital interests, or "
    "legitimate interests). Ensure purpose limitation, data minimization, and a clear "
    "retention period under the Philippine Data Privacy Act."
)

RISK_ANALYSIS_PROMPT = """As a Philippine Data Protection Officer expert, analyze this data processing activity under RA 10173 and provide risk assessment.

Process Title: {title}
Description: {description}
Data Categories: {categories}
Data Subjects: {subjects}

Provide:
1. Risk Level (LOW/MEDIUM/HIGH)
2. Key compliance requirements
3. Data protection recommendations
4. Retention period guidance

Format as JSON:
{{
  "riskLevel": "LOW|MEDIUM|HIGH",
  "reasoning": "brief explanation",
  "requirements": ["req 1", "req 2"],
  "recommendations": ["rec 1", "rec 2"]
}}"""


class AdvisoryServiceState:
    """Process-wide availability flag for the advisory service.

    Starts out available.  Once marked unavailable it stays that way until
    ``reset`` is called; there is no automatic retry.
    """

    def __init__(self, available: bool = True) -> None:
        self._available = available

    def is_available(self) -> bool:
        return self._available

    def mark_unavailable(self) -> None:
        if self._available:
            logger.warning("Advisory service marked unavailable, switching to rule-based analysis")
        self._available = False

    def reset(self) -> None:
        self._available = True
        logger.info("Advisory service status reset, next assessment will try the service again")


@dataclass(frozen=True)
class AdvisoryAnalysis:
    """Structured risk analysis extracted from an advisory answer."""
    risk_level: str
    reasoning: str
    requirements: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


def parse_embedded_json(text: str) -> Optional[Dict[str, Any]]:
    """Return the first JSON object embedded in ``text``, or ``None``.

    Parsing starts at the first ``{`` and stops at its balancing ``}``;
    anything after the object is ignored.  Text without an object, an
    object that does not parse, or a top-level value that is not an
    object all yield ``None``.
    """
    if not text:
        return None
    start = text.find("{")
    if start == -1:
        return None
    try:
        value, _ = json.JSONDecoder().raw_decode(text, start)
    except ValueError:
        return None
    if not isinstance(value, dict):
        return None
    return value


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if str(item).strip()]
    return []


def analysis_from_payload(payload: Optional[Dict[str, Any]]) -> Optional[AdvisoryAnalysis]:
    """Validate a parsed advisory object; ``None`` if it is not usable."""
    if payload is None:
        return None
    risk_level = str(payload.get("riskLevel", "")).strip().upper()
    if risk_level not in {"LOW", "MEDIUM", "HIGH"}:
        return None
    reasoning = str(payload.get("reasoning") or "").strip() or f"Advisory service rated this activity {risk_level}"
    return AdvisoryAnalysis(
        risk_level=risk_level,
        reasoning=reasoning,
        requirements=_string_list(payload.get("requirements")),
        recommendations=_string_list(payload.get("recommendations")),
    )


class AdvisoryClient:
    """HTTP client for the advisory ``/consult`` endpoint."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.base_url = settings.advisory_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self._executor = ThreadPoolExecutor(max_workers=ADVISORY_WORKERS, thread_name_prefix="advisory")

    def _send(self, url: str, query: str, timeout: float) -> str:
        try:
            response = self.session.post(url, json={"query": query}, timeout=timeout)
        except requests.RequestException as exc:
            raise AdvisoryUnavailable(str(exc)) from exc
        if not 200 <= response.status_code < 300:
            raise AdvisoryUnavailable(f"Advisory API error: {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise AdvisoryMalformedResponse("Advisory response body is not JSON") from exc
        if not isinstance(data, dict):
            raise AdvisoryMalformedResponse("Advisory response body is not a JSON object")
        return str(data.get("answer") or data.get("response") or "")

    def _post_query(self, query: str, timeout: float) -> str:
        """Send one query and return the answer text.

        ``timeout`` bounds the whole call, including a body that trickles
        in slowly; the request runs on a worker thread so the caller is
        released when the deadline passes even if the socket is still open.

        Raises:
            AdvisoryUnavailable: network error, timeout or non-2xx status.
            AdvisoryMalformedResponse: a 2xx response whose body is not JSON.
        """
        url = f"{self.base_url}/consult"
        future = self._executor.submit(self._send, url, query, timeout)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            future.cancel()
            raise AdvisoryUnavailable(f"Advisory request exceeded {timeout:g}s") from exc

    def consult(self, query: str) -> str:
        """Ask the advisory service a direct question."""
        return self._post_query(query, self.settings.consult_timeout)

    def consult_with_fallback(self, query: str) -> Dict[str, Any]:
        """Direct consult that never fails.

        Returns a dictionary with ``answer`` and ``source`` (``"SILIP"`` or
        ``"RuleBased"``) and, on fallback, the ``error`` that caused it.
        """
        try:
            answer = self.consult(query)
        except (AdvisoryUnavailable, AdvisoryMalformedResponse) as exc:
            logger.error("Advisory consult failed: %s", exc)
            return {"answer": FALLBACK_CONSULT_ANSWER, "source": "RuleBased", "error": str(exc)}
        return {"answer": answer or "No response from SILIP", "source": "SILIP"}

    def analyze_process(
        self,
        title: str,
        description: Optional[str],
        data_categories: Sequence[str],
        data_subjects: Sequence[str],
    ) -> Optional[AdvisoryAnalysis]:
        """Request a structured risk analysis of a processing activity.

        Returns:
            The parsed analysis, or ``None`` when the service answered but
            the answer held no usable JSON object.

        Raises:
            AdvisoryUnavailable: the service could not be reached in time.
        """
        prompt = RISK_ANALYSIS_PROMPT.format(
            title=title,
            description=description or "No description provided",
            categories=", ".join(data_categories),
            subjects=", ".join(data_subjects),
        )
        try:
            answer = self._post_query(prompt, self.settings.analysis_timeout)
        except AdvisoryMalformedResponse as exc:
            logger.info("Advisory analysis unusable: %s", exc)
            return None
        analysis = analysis_from_payload(parse_embedded_json(answer))
        if analysis is None:
            logger.info("Advisory analysis held no usable risk object")
        return analysis
