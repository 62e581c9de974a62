"""
Claims Desk - Signature Token Store

Persistence for signature tokens. This layer stores and fetches records and
does not enforce the token state machine; see token_lifecycle for that.
Concurrent updates to the same record are last-writer-wins.
"""

import json
import logging
import secrets
from datetime import timedelta
from typing import Any, List, Mapping, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from claimsdesk.config import settings
from claimsdesk.document_types import parse_document_type
from claimsdesk.exceptions import TokenNotFound
from claimsdesk.models.signature_token import SignatureToken, TokenStatus
from claimsdesk.timestamps import now_utc

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32  # 64 hex characters

IMMUTABLE_FIELDS = frozenset({"id", "token", "case_id", "expires_at", "created_at", "updated_at"})
UPDATABLE_FIELDS = frozenset({
    "client_email",
    "document_type",
    "form_data",
    "form_link",
    "status",
    "signed_at",
    "completed_at",
    "external_submission_id",
})


def generate_signature_token() -> str:
    """Generate a secure random signature token (64 hex characters)."""
    return secrets.token_hex(TOKEN_BYTES)


def snapshot_form_data(form_data: Optional[Mapping[str, Any]]) -> dict:
    """
    Take a detached, JSON-safe copy of case data.

    Values that JSON cannot represent (dates, decimals) are stored as strings.
    """
    return json.loads(json.dumps(dict(form_data or {}), default=str))


async def create_signature_token(
    db: AsyncSession,
    case_id: str,
    client_email: str,
    document_type,
    form_data: Optional[Mapping[str, Any]] = None,
    form_link: Optional[str] = None,
) -> str:
    """
    Issue a new signature token in the pending state.

    Args:
        db: Database session
        case_id: Owning case ID
        client_email: Where the signature request is delivered
        document_type: DocumentType (or its string value)
        form_data: Case fields at issuance, stored as a snapshot
        form_link: Prefilled form URL, if already built

    Returns:
        The token string

    Raises:
        UnsupportedDocumentType: If the document type is unknown
    """
    doc_type = parse_document_type(document_type)
    token = generate_signature_token()
    now = now_utc()

    signature_token = SignatureToken(
        token=token,
        case_id=str(case_id),
        client_email=(client_email or "").strip(),
        document_type=doc_type.value,
        form_data=snapshot_form_data(form_data),
        form_link=form_link,
        status=TokenStatus.PENDING.value,
        expires_at=now + timedelta(hours=settings.SIGNATURE_TOKEN_EXPIRE_HOURS),
        created_at=now,
        updated_at=now,
    )

    db.add(signature_token)
    await db.commit()
    await db.refresh(signature_token)

    logger.info(f"Signature token {signature_token.short_token} issued for case {case_id} ({doc_type.value})")
    return token


async def get_signature_token(db: AsyncSession, token: str) -> Optional[SignatureToken]:
    """Get a signature token record by its token string."""
    if not token:
        return None
    result = await db.execute(
        select(SignatureToken).where(SignatureToken.token == token)
    )
    return result.scalar_one_or_none()


async def get_signature_token_by_id(db: AsyncSession, token_id: int) -> Optional[SignatureToken]:
    """Get a signature token record by its record ID."""
    result = await db.execute(
        select(SignatureToken).where(SignatureToken.id == token_id)
    )
    return result.scalar_one_or_none()


async def get_signature_tokens_for_case(db: AsyncSession, case_id: str) -> List[SignatureToken]:
    """Get every token issued for a case, most recent first."""
    result = await db.execute(
        select(SignatureToken)
        .where(SignatureToken.case_id == str(case_id))
        .order_by(SignatureToken.created_at.desc(), SignatureToken.id.desc())
    )
    return list(result.scalars().all())


async def update_signature_token(
    db: AsyncSession,
    token_id: int,
    **fields: Any,
) -> SignatureToken:
    """
    Merge fields into a stored token and refresh updated_at.

    Raises:
        TokenNotFound: If no token has this ID
        ValueError: If a field is immutable or unknown
    """
    immutable = IMMUTABLE_FIELDS.intersection(fields)
    if immutable:
        raise ValueError(f"Cannot update immutable token fields: {', '.join(sorted(immutable))}")
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown token fields: {', '.join(sorted(unknown))}")

    signature_token = await get_signature_token_by_id(db, token_id)
    if signature_token is None:
        raise TokenNotFound(token_id=token_id)

    for name, value in fields.items():
        if name == "status":
            value = TokenStatus(value).value
        elif name == "document_type":
            value = parse_document_type(value).value
        elif name == "form_data":
            value = snapshot_form_data(value)
        setattr(signature_token, name, value)
    signature_token.updated_at = now_utc()

    await db.commit()
    await db.refresh(signature_token)
    return signature_token


async def update_signature_token_form_link(
    db: AsyncSession,
    token: str,
    form_link: str,
) -> SignatureToken:
    """Attach the built form URL to a token after it has been issued."""
    signature_token = await get_signature_token(db, token)
    if signature_token is None:
        raise TokenNotFound(token=token)
    return await update_signature_token(db, signature_token.id, form_link=form_link)
