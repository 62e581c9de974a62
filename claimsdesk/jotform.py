"""
Claims Desk - JotForm Integration

API client for the form provider (form schemas, submissions, signed PDFs)
and validation of the completion webhook it sends us.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

import httpx

from claimsdesk.config import settings
from claimsdesk.exceptions import InvalidWebhookPayload, JotFormError

logger = logging.getLogger(__name__)

SIGNATURE_TOKEN_FIELD = "signature_token"


# =============================================================================
# WEBHOOK PAYLOADS
# =============================================================================

@dataclass
class WebhookPayload:
    """A validated JotForm submission callback."""
    submission_id: str
    form_id: str
    signature_token: Optional[str] = None
    raw: dict = field(default_factory=dict)


def _first_present(data: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _find_signature_token(answers: Mapping[str, Any]) -> Optional[str]:
    """Find the hidden signature_token field in a flat answers mapping."""
    for key, value in answers.items():
        if key == SIGNATURE_TOKEN_FIELD or str(key).endswith(f"_{SIGNATURE_TOKEN_FIELD}"):
            if value is not None and str(value).strip():
                return str(value).strip()
    return None


def validate_webhook_payload(payload) -> WebhookPayload:
    """
    Validate a JotForm webhook payload.

    Accepts an already-parsed mapping, or a JSON document as str/bytes.
    JotForm posts ``submissionID``/``formID``; the snake_case spellings are
    accepted too. The answers JotForm forwards in ``rawRequest`` are
    searched for the hidden ``signature_token`` field.

    Raises:
        InvalidWebhookPayload: If the payload is not a JSON object or is
            missing the submission or form ID
    """
    data = payload
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidWebhookPayload("Invalid JSON payload") from None
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            raise InvalidWebhookPayload("Invalid JSON payload") from None
    if not isinstance(data, Mapping):
        raise InvalidWebhookPayload("Invalid JSON payload")

    submission_id = _first_present(data, "submission_id", "submissionID")
    if submission_id is None:
        raise InvalidWebhookPayload("Missing submission ID", missing_field="submission_id")

    form_id = _first_present(data, "form_id", "formID")
    if form_id is None:
        raise InvalidWebhookPayload("Missing form ID", missing_field="form_id")

    signature_token = _find_signature_token(data)
    raw_request = data.get("rawRequest")
    if signature_token is None and isinstance(raw_request, str) and raw_request.strip():
        try:
            answers = json.loads(raw_request)
        except json.JSONDecodeError:
            answers = None
        if isinstance(answers, Mapping):
            signature_token = _find_signature_token(answers)

    return WebhookPayload(
        submission_id=submission_id,
        form_id=form_id,
        signature_token=signature_token,
        raw=dict(data),
    )


def extract_signature_token(submission: Optional[Mapping[str, Any]]) -> Optional[str]:
    """
    Find the signature token in a submission returned by the JotForm API.

    The token is either at the top level or in the ``answers`` block under
    a question named ``signature_token``.
    """
    if not submission:
        return None

    token = _find_signature_token(submission)
    if token:
        return token

    answers = submission.get("answers") or {}
    if isinstance(answers, Mapping):
        for answer in answers.values():
            if not isinstance(answer, Mapping):
                continue
            if answer.get("name") == SIGNATURE_TOKEN_FIELD:
                value = answer.get("answer")
                if value is not None and str(value).strip():
                    return str(value).strip()
    return None


# =============================================================================
# API CLIENT
# =============================================================================

class JotFormClient:
    """
    Async client for the JotForm REST API.

    ``transport`` lets tests substitute an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.JOTFORM_API_KEY
        self.api_url = (api_url or settings.JOTFORM_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.JOTFORM_TIMEOUT_SECONDS
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get(self, path: str, params: Optional[dict] = None) -> httpx.Response:
        if not self.api_key:
            raise JotFormError("JotForm API key is not configured")

        query = {"apikey": self.api_key}
        if params:
            query.update(params)

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.get(f"{self.api_url}{path}", params=query)
        except httpx.TimeoutException:
            raise JotFormError(f"JotForm API timeout: {path}") from None
        except httpx.HTTPError as e:
            raise JotFormError(f"JotForm API request failed: {e}") from e

        if response.status_code != 200:
            raise JotFormError(
                f"JotForm API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response

    async def _get_content(self, path: str) -> Any:
        response = await self._get(path)
        try:
            return response.json().get("content")
        except (ValueError, AttributeError):
            raise JotFormError(f"JotForm API returned a non-JSON response for {path}") from None

    async def fetch_form_questions(self, form_id: str) -> dict:
        """Fetch the question definitions for a form, keyed by question ID."""
        content = await self._get_content(f"/form/{form_id}/questions")
        if not isinstance(content, dict):
            raise JotFormError(f"Unexpected questions payload for form {form_id}")
        logger.info(f"Fetched {len(content)} questions for form {form_id}")
        return content

    async def get_submission_details(self, submission_id: str) -> dict:
        """Get a single submission, including its answers."""
        content = await self._get_content(f"/submission/{submission_id}")
        if not isinstance(content, dict):
            raise JotFormError(f"Unexpected submission payload for {submission_id}")
        return content

    async def get_signed_pdf(self, form_id: str, submission_id: str) -> Tuple[bytes, str]:
        """
        Download the filled-in PDF for a submission.

        Returns:
            Tuple of (pdf_bytes, filename)
        """
        response = await self._get(
            f"/pdf-converter/{form_id}/fill-pdf",
            params={"download": "1", "submissionID": submission_id},
        )
        return response.content, f"{form_id}_{submission_id}.pdf"


def get_jotform_client() -> JotFormClient:
    """Dependency that provides a JotForm client from settings."""
    return JotFormClient()
