"""
Claims Desk - Webhook Routes

Handles JotForm submission webhooks that complete signature requests.
"""

import hmac
import json
import logging
from urllib.parse import parse_qsl

from fastapi import APIRouter, Request, HTTPException, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from claimsdesk.config import settings
from claimsdesk.database import get_db
from claimsdesk.audit import log_event, log_token_event
from claimsdesk.cases import get_case_by_id
from claimsdesk.document_types import get_document_type_from_form_id, get_document_config
from claimsdesk.exceptions import InvalidWebhookPayload, JotFormError, TokenNotFound, TokenAlreadyFinalized
from claimsdesk.jotform import JotFormClient, get_jotform_client, validate_webhook_payload, extract_signature_token
from claimsdesk.models.audit import AuditEventType
from claimsdesk.models.signature_token import SignatureToken, TokenStatus
from claimsdesk.notifications import send_email, get_completion_email
from claimsdesk.storage import save_signed_document
from claimsdesk.token_lifecycle import complete_signature_token
from claimsdesk.token_store import get_signature_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def verify_webhook_secret(request: Request) -> bool:
    """Check the shared secret JotForm appends to the webhook URL."""
    if not settings.JOTFORM_WEBHOOK_SECRET:
        return True
    provided = request.query_params.get("secret", "")
    return hmac.compare_digest(provided.encode(), settings.JOTFORM_WEBHOOK_SECRET.encode())


def _parse_form_body(body: bytes) -> dict:
    return dict(parse_qsl(body.decode("utf-8", errors="replace"), keep_blank_values=True))


async def _read_payload(request: Request):
    """
    JotForm posts form-encoded (or multipart) bodies; JSON is accepted too.

    A body that is not JSON is read as form-encoded whatever its content
    type says. Anything else is handed on raw and rejected by validation.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    body = await request.body()
    if content_type.startswith("application/x-www-form-urlencoded"):
        return _parse_form_body(body)
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        pass
    if b"=" in body:
        return _parse_form_body(body)
    return body


async def _reject(db: AsyncSession, request: Request, status_code: int, error: str, **metadata) -> HTTPException:
    """Audit a rejected webhook and build the matching HTTP error."""
    logger.warning(f"JotForm webhook rejected ({status_code}): {error}")
    await log_event(
        db=db,
        event_type=AuditEventType.WEBHOOK_REJECTED,
        description=f"JotForm webhook rejected: {error}",
        metadata={"status_code": status_code, **metadata},
        ip_address=request.client.host if request.client else None,
    )
    return HTTPException(status_code=status_code, detail=error)


def _completed_response(signature_token: SignatureToken, signed_document=None, duplicate: bool = False) -> JSONResponse:
    return JSONResponse(
        content={
            "success": True,
            "data": {
                "caseId": signature_token.case_id,
                "documentType": signature_token.document_type,
                "status": signature_token.status,
                "submissionId": signature_token.external_submission_id,
                "signedDocument": signed_document,
                "duplicate": duplicate,
            },
        },
        status_code=200,
    )


@router.post("/jotform")
async def jotform_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    jotform: JotFormClient = Depends(get_jotform_client),
):
    """
    Handle a JotForm submission webhook.

    The hidden ``signature_token`` field ties the submission back to the
    token issued when the form was sent; the submitted form must be the one
    that token was issued for. A repeat delivery of the same submission is
    acknowledged without changing anything.
    """
    if not verify_webhook_secret(request):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

    try:
        payload = validate_webhook_payload(await _read_payload(request))
    except InvalidWebhookPayload as e:
        raise await _reject(db, request, 400, e.error, missing_field=e.missing_field)

    document_type = get_document_type_from_form_id(payload.form_id)
    if document_type is None:
        raise await _reject(db, request, 400, "Unknown form ID", form_id=payload.form_id)

    token = payload.signature_token
    if not token and jotform.is_configured:
        try:
            submission = await jotform.get_submission_details(payload.submission_id)
            token = extract_signature_token(submission)
        except JotFormError as e:
            logger.error(f"Could not fetch submission {payload.submission_id}: {e}")

    if not token:
        raise await _reject(db, request, 400, "Missing signature token", submission_id=payload.submission_id)

    existing = await get_signature_token(db, token)
    if existing is not None and existing.document_type != document_type.value:
        raise await _reject(
            db, request, 400, "Form does not match signature token",
            submission_id=payload.submission_id,
            form_id=payload.form_id,
            token_document_type=existing.document_type,
        )
    was_completed = existing is not None and existing.status == TokenStatus.COMPLETED

    try:
        signature_token = await complete_signature_token(db, token, payload.submission_id)
    except TokenNotFound:
        raise await _reject(db, request, 400, "Unknown signature token", submission_id=payload.submission_id)
    except TokenAlreadyFinalized as e:
        raise await _reject(db, request, 409, str(e), submission_id=payload.submission_id)

    if signature_token is None:
        raise await _reject(db, request, 410, "Signature token has expired", submission_id=payload.submission_id)

    if was_completed:
        logger.info(f"Repeat delivery of submission {payload.submission_id} acknowledged")
        return _completed_response(signature_token, duplicate=True)

    await log_token_event(
        db,
        AuditEventType.WEBHOOK_RECEIVED,
        signature_token,
        description=f"JotForm submission {payload.submission_id} received",
        metadata={"submission_id": payload.submission_id, "form_id": payload.form_id},
    )

    config = get_document_config(document_type)
    stored_path = None
    if jotform.is_configured:
        try:
            content, filename = await jotform.get_signed_pdf(payload.form_id, payload.submission_id)
            stored_path = save_signed_document(signature_token.case_id, filename, content)
        except (JotFormError, OSError) as e:
            logger.error(f"Could not store signed PDF for submission {payload.submission_id}: {e}")
        else:
            await log_token_event(
                db,
                AuditEventType.SIGNED_PDF_STORED,
                signature_token,
                description=f"Signed {config.name} stored",
                metadata={"path": str(stored_path), "size": len(content)},
            )

    if signature_token.client_email:
        case = await get_case_by_id(db, signature_token.case_id)
        case_reference = case.case_number if case else (signature_token.form_data.get("caseNumber") or signature_token.case_id)
        subject, html_content, text_content = get_completion_email(
            signature_token.client_name or "Client", config.name, case_reference
        )
        success, _ = await send_email(signature_token.client_email, subject, html_content, text_content)
        if not success:
            logger.warning(f"Completion email for token {signature_token.id} was not sent")

    return _completed_response(signature_token, signed_document=stored_path.name if stored_path else None)
