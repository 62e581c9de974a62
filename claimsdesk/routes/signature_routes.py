"""
Claims Desk - Signature Request Routes

Sending documents out for signature, the signature portal entry point and
the per-case token history.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request, Depends, HTTPException
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from claimsdesk.config import settings
from claimsdesk.database import get_db
from claimsdesk.audit import log_token_event
from claimsdesk.cases import get_case_by_case_number
from claimsdesk.document_types import parse_document_type, get_document_config
from claimsdesk.exceptions import TokenNotFound, TokenAlreadyFinalized, UnsupportedDocumentType, JotFormError
from claimsdesk.field_mapping import clean_value
from claimsdesk.jotform import JotFormClient, get_jotform_client
from claimsdesk.models.audit import AuditEventType
from claimsdesk.models.signature_token import SignatureToken
from claimsdesk.notifications import (
    send_email,
    send_sms,
    get_signature_request_email,
    get_signature_request_sms,
)
from claimsdesk.prefill import build_form_url, validate_form_url
from claimsdesk.schemas import SendForSignatureRequest, TokenRequest
from claimsdesk.timestamps import isoformat_utc
from claimsdesk.token_lifecycle import (
    check_signature_token,
    expire_signature_token,
    has_pending_signature_token,
    mark_token_accessed,
    mark_token_signed,
)
from claimsdesk.token_store import (
    create_signature_token,
    get_signature_tokens_for_case,
    update_signature_token_form_link,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["signatures"])


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def get_portal_link(token: str) -> str:
    """Public link the client follows to reach their prefilled form."""
    return f"{settings.BASE_URL.rstrip('/')}/sign/{token}"


def serialize_signature_token(signature_token: SignatureToken) -> dict:
    return {
        "id": signature_token.id,
        "caseId": signature_token.case_id,
        "documentType": signature_token.document_type,
        "clientEmail": signature_token.client_email,
        "status": signature_token.status,
        "formLink": signature_token.form_link,
        "expiresAt": isoformat_utc(signature_token.expires_at),
        "signedAt": isoformat_utc(signature_token.signed_at) if signature_token.signed_at else None,
        "completedAt": isoformat_utc(signature_token.completed_at) if signature_token.completed_at else None,
        "submissionId": signature_token.external_submission_id,
        "createdAt": isoformat_utc(signature_token.created_at),
    }


# =============================================================================
# SEND FOR SIGNATURE
# =============================================================================

@router.post("/api/signatures/send")
async def send_for_signature(
    body: SendForSignatureRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    jotform: JotFormClient = Depends(get_jotform_client),
):
    """
    Issue a signature token for a case and send the client their portal link.
    """
    try:
        doc_type = parse_document_type(body.document_type)
    except UnsupportedDocumentType as e:
        raise HTTPException(status_code=422, detail=str(e))

    case = await get_case_by_case_number(db, body.case_number)
    if not case:
        raise HTTPException(status_code=404, detail="Case not found")

    # Stored case details fill whatever the caller left out
    case_fields = body.case_fields()
    case_fields.setdefault("clientName", case.client_name)
    if case.client_email:
        case_fields.setdefault("clientEmail", case.client_email)
    if case.client_phone:
        case_fields.setdefault("clientPhone", case.client_phone)

    client_name = clean_value(case_fields.get("clientName")) or "Client"
    client_email = clean_value(case_fields.get("clientEmail")) or ""
    client_phone = clean_value(case_fields.get("clientPhone")) or ""

    if body.method == "email" and not client_email:
        raise HTTPException(status_code=400, detail="Client email is required to send by email")
    if body.method == "sms" and not client_phone:
        raise HTTPException(status_code=400, detail="Client phone is required to send by SMS")

    if await has_pending_signature_token(db, case.id, doc_type):
        raise HTTPException(
            status_code=409,
            detail="A signature request for this document is already pending",
        )

    token = await create_signature_token(
        db,
        case_id=case.id,
        client_email=client_email,
        document_type=doc_type,
        form_data=case_fields,
    )

    config = get_document_config(doc_type)
    schema = None
    if jotform.is_configured:
        try:
            schema = await jotform.fetch_form_questions(config.form_id)
        except JotFormError as e:
            logger.warning(f"Using static field mapping for form {config.form_id}: {e}")

    form_link = build_form_url(doc_type, case_fields, token, schema=schema)
    report = validate_form_url(form_link, expected_token=token)
    if not report.is_valid:
        logger.warning(f"Form link for case {case.case_number} has issues: {'; '.join(report.issues)}")
    signature_token = await update_signature_token_form_link(db, token, form_link)

    await log_token_event(
        db,
        AuditEventType.TOKEN_ISSUED,
        signature_token,
        description=f"{config.name} signature token issued for case {case.case_number}",
        metadata={"method": body.method, "live_schema": schema is not None},
        ip_address=_client_ip(request),
    )

    portal_link = get_portal_link(token)
    if body.method == "sms":
        message = get_signature_request_sms(client_name, config.name, portal_link, case.case_number)
        success, message_id = await send_sms(client_phone, message)
        recipient = client_phone
    else:
        subject, html_content, text_content = get_signature_request_email(
            client_name, config.name, portal_link, case.case_number, signature_token.expires_at
        )
        success, message_id = await send_email(client_email, subject, html_content, text_content)
        recipient = client_email

    if not success:
        # Withdraw the token so the failed request does not block a retry
        signature_token = await expire_signature_token(db, token)
        await log_token_event(
            db,
            AuditEventType.SIGNATURE_REQUEST_FAILED,
            signature_token,
            description=f"Could not send {config.name} to {recipient} by {body.method}",
            metadata={"method": body.method},
        )
        raise HTTPException(status_code=502, detail=f"Failed to send signature request by {body.method}")

    await log_token_event(
        db,
        AuditEventType.SIGNATURE_REQUEST_SENT,
        signature_token,
        description=f"{config.name} sent to {recipient} by {body.method}",
        metadata={"method": body.method, "message_id": message_id},
    )

    return JSONResponse(
        content={
            "success": True,
            "token": token,
            "formLink": form_link,
            "portalLink": portal_link,
            "expiresAt": isoformat_utc(signature_token.expires_at),
        },
        status_code=200,
    )


# =============================================================================
# SIGNATURE PORTAL
# =============================================================================

@router.get("/sign/{token}")
async def signature_portal(
    token: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Mark the token accessed and send the client on to their prefilled form."""
    try:
        signature_token = await mark_token_accessed(db, token, ip_address=_client_ip(request))
    except TokenNotFound:
        raise HTTPException(status_code=404, detail="Invalid signature link")
    except TokenAlreadyFinalized:
        raise HTTPException(status_code=409, detail="This document has already been signed")

    if signature_token is None:
        raise HTTPException(status_code=410, detail="This signature link has expired")

    if not signature_token.form_link:
        raise HTTPException(status_code=404, detail="Signature form is not available")

    return RedirectResponse(url=signature_token.form_link, status_code=303)


@router.post("/api/signature-portal/validate-token")
async def validate_token(
    body: TokenRequest,
    db: AsyncSession = Depends(get_db),
):
    """Report whether a portal token can still be used."""
    if not body.token.strip():
        raise HTTPException(status_code=400, detail="Token is required")

    try:
        check = await check_signature_token(db, body.token.strip())
    except TokenNotFound:
        return JSONResponse(
            content={
                "isValid": False,
                "isExpired": False,
                "isCompleted": False,
                "error": "Invalid signature link. This link may have been tampered with or does not exist.",
            },
            status_code=200,
        )

    signature_token = check.signature_token
    content = {
        "isValid": check.is_valid,
        "isExpired": check.is_expired,
        "isCompleted": check.is_completed,
        "caseId": signature_token.case_id,
        "clientName": signature_token.client_name,
        "documentType": signature_token.document_type,
    }
    if check.is_valid:
        content["formLink"] = signature_token.form_link
        content["expiresAt"] = isoformat_utc(signature_token.expires_at)

    return JSONResponse(content=content, status_code=200)


@router.post("/api/signature-portal/mark-accessed")
async def mark_accessed(
    body: TokenRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Record that the client is proceeding from the portal to the form."""
    if not body.token.strip():
        raise HTTPException(status_code=400, detail="Token is required")

    try:
        signature_token = await mark_token_accessed(
            db, body.token.strip(), ip_address=_client_ip(request)
        )
    except TokenNotFound:
        signature_token = None
    except TokenAlreadyFinalized:
        raise HTTPException(status_code=409, detail="This document has already been signed")

    if signature_token is None:
        raise HTTPException(status_code=400, detail="Invalid or expired signature token")

    return JSONResponse(
        content={
            "success": True,
            "data": {
                "caseId": signature_token.case_id,
                "documentType": signature_token.document_type,
                "status": signature_token.status,
            },
        },
        status_code=200,
    )


@router.post("/api/signature-portal/mark-signed")
async def mark_signed(
    body: TokenRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Record that the client submitted their signature from the portal.

    The token stays open until JotForm's webhook completes it.
    """
    if not body.token.strip():
        raise HTTPException(status_code=400, detail="Token is required")

    try:
        signature_token = await mark_token_signed(
            db, body.token.strip(), ip_address=_client_ip(request)
        )
    except TokenNotFound:
        signature_token = None
    except TokenAlreadyFinalized:
        raise HTTPException(status_code=409, detail="This document has already been signed")

    if signature_token is None:
        raise HTTPException(status_code=400, detail="Invalid or expired signature token")

    return JSONResponse(
        content={
            "success": True,
            "data": {
                "caseId": signature_token.case_id,
                "documentType": signature_token.document_type,
                "status": signature_token.status,
                "signedAt": isoformat_utc(signature_token.signed_at),
            },
        },
        status_code=200,
    )


# =============================================================================
# HISTORY
# =============================================================================

@router.get("/api/signatures/case/{case_id}")
async def case_signature_history(
    case_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Every signature token issued for a case, most recent first."""
    tokens = await get_signature_tokens_for_case(db, case_id)
    return {
        "caseId": case_id,
        "tokens": [serialize_signature_token(t) for t in tokens],
    }
