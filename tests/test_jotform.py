"""
Tests for JotForm webhook payload validation and the JotForm API client.
"""

import json

import httpx
import pytest

from claimsdesk.exceptions import InvalidWebhookPayload, JotFormError
from claimsdesk.jotform import JotFormClient, validate_webhook_payload, extract_signature_token


class TestValidateWebhookPayload:
    """Webhook payloads must identify the submission and the form."""

    def test_valid_payload(self):
        payload = validate_webhook_payload({"form_id": "233241680987464", "submission_id": "999"})
        assert payload.form_id == "233241680987464"
        assert payload.submission_id == "999"
        assert payload.signature_token is None

    def test_jotform_field_spellings(self):
        payload = validate_webhook_payload({"formID": "233241680987464", "submissionID": "999"})
        assert payload.submission_id == "999"

    def test_json_string_payload(self):
        payload = validate_webhook_payload('{"form_id": "1", "submission_id": "2", "signature_token": "abc"}')
        assert payload.signature_token == "abc"

    def test_missing_submission_id(self):
        with pytest.raises(InvalidWebhookPayload, match="submission ID") as exc_info:
            validate_webhook_payload({"form_id": "233241680987464"})
        assert exc_info.value.missing_field == "submission_id"

    def test_missing_form_id(self):
        with pytest.raises(InvalidWebhookPayload, match="form ID") as exc_info:
            validate_webhook_payload({"submission_id": "999"})
        assert exc_info.value.missing_field == "form_id"

    def test_invalid_json(self):
        with pytest.raises(InvalidWebhookPayload, match="Invalid JSON"):
            validate_webhook_payload(b"not json")

    def test_non_object_json(self):
        with pytest.raises(InvalidWebhookPayload):
            validate_webhook_payload("[1, 2, 3]")

    def test_token_from_raw_request(self):
        raw_request = json.dumps({"q3_name": "John", "q12_signature_token": "tok-123"})
        payload = validate_webhook_payload({
            "formID": "1",
            "submissionID": "2",
            "rawRequest": raw_request,
        })
        assert payload.signature_token == "tok-123"


class TestExtractSignatureToken:
    """Finding the hidden token field in API submissions."""

    def test_token_in_answers(self):
        submission = {
            "id": "2",
            "answers": {
                "3": {"name": "driver", "answer": {"first": "John"}},
                "12": {"name": "signature_token", "answer": "tok-123"},
            },
        }
        assert extract_signature_token(submission) == "tok-123"

    def test_no_token(self):
        assert extract_signature_token({"answers": {"3": {"name": "email", "answer": "a@b.com"}}}) is None
        assert extract_signature_token(None) is None


def _client(handler) -> JotFormClient:
    return JotFormClient(
        api_key="test-key",
        api_url="https://api.jotform.test",
        transport=httpx.MockTransport(handler),
    )


class TestJotFormClient:
    """JotForm REST API calls."""

    async def test_fetch_form_questions(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/form/232543267390861/questions"
            assert request.url.params["apikey"] == "test-key"
            return httpx.Response(200, json={
                "responseCode": 200,
                "content": {"4": {"qid": "4", "name": "email"}},
            })

        questions = await _client(handler).fetch_form_questions("232543267390861")
        assert questions["4"]["name"] == "email"

    async def test_get_signed_pdf(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/pdf-converter/233241680987464/fill-pdf"
            assert request.url.params["submissionID"] == "999"
            assert request.url.params["download"] == "1"
            return httpx.Response(200, content=b"%PDF-1.4 signed")

        content, filename = await _client(handler).get_signed_pdf("233241680987464", "999")
        assert content.startswith(b"%PDF")
        assert filename == "233241680987464_999.pdf"

    async def test_http_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"message": "Unauthorized"})

        with pytest.raises(JotFormError) as exc_info:
            await _client(handler).get_submission_details("999")
        assert exc_info.value.status_code == 401

    async def test_timeout_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(JotFormError, match="timeout"):
            await _client(handler).fetch_form_questions("1")

    async def test_unconfigured_client(self):
        client = JotFormClient(api_key="")
        assert not client.is_configured
        with pytest.raises(JotFormError):
            await client.fetch_form_questions("1")
