"""
Claims Desk - Signature Token Lifecycle

State machine for signature tokens:

    pending -> accessed -> signed -> completed
    pending | accessed | signed -> expired

``completed`` and ``expired`` are terminal. A token stops being usable the
moment ``now >= expires_at``, whatever its stored status says;
``is_token_valid`` is the authority and the stored status is an audit
record. Operations that notice an expired token write ``expired`` back
(lazy expiry), but nothing depends on that write having happened.

Every transition is idempotent with respect to repeats of itself, so two
racing requests for the same token cannot leave it inconsistent.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional, FrozenSet
from sqlalchemy.ext.asyncio import AsyncSession

from claimsdesk.audit import log_token_event
from claimsdesk.document_types import parse_document_type
from claimsdesk.exceptions import TokenNotFound, TokenAlreadyFinalized
from claimsdesk.models.audit import AuditEventType
from claimsdesk.models.signature_token import SignatureToken, TokenStatus
from claimsdesk.timestamps import now_utc
from claimsdesk.token_store import (
    get_signature_token,
    get_signature_tokens_for_case,
    update_signature_token,
)

logger = logging.getLogger(__name__)

TERMINAL_STATUSES: FrozenSet[TokenStatus] = frozenset({TokenStatus.COMPLETED, TokenStatus.EXPIRED})

# Completion without a recorded access is allowed: clients can reach the
# form without going through the portal link.
ALLOWED_TRANSITIONS: Mapping[TokenStatus, FrozenSet[TokenStatus]] = {
    TokenStatus.PENDING: frozenset({
        TokenStatus.ACCESSED, TokenStatus.SIGNED, TokenStatus.COMPLETED, TokenStatus.EXPIRED,
    }),
    TokenStatus.ACCESSED: frozenset({
        TokenStatus.SIGNED, TokenStatus.COMPLETED, TokenStatus.EXPIRED,
    }),
    TokenStatus.SIGNED: frozenset({TokenStatus.COMPLETED, TokenStatus.EXPIRED}),
    TokenStatus.COMPLETED: frozenset(),
    TokenStatus.EXPIRED: frozenset(),
}


def can_transition(current, target) -> bool:
    """Check whether the state machine allows current -> target."""
    return TokenStatus(target) in ALLOWED_TRANSITIONS[TokenStatus(current)]


def is_token_valid(signature_token: SignatureToken, now: Optional[datetime] = None) -> bool:
    """Check if a token can still be used to accept a signature."""
    now = now or now_utc()
    return (
        signature_token.token_status not in TERMINAL_STATUSES
        and now < signature_token.expires_at
    )


def is_token_expired(signature_token: SignatureToken, now: Optional[datetime] = None) -> bool:
    """Check if a token has expired (stored or past its deadline), ignoring completed tokens."""
    if signature_token.status == TokenStatus.COMPLETED:
        return False
    if signature_token.status == TokenStatus.EXPIRED:
        return True
    now = now or now_utc()
    return now >= signature_token.expires_at


@dataclass
class TokenCheck:
    """Outcome of checking a token for the signature portal."""
    signature_token: SignatureToken
    is_valid: bool
    is_expired: bool
    is_completed: bool


async def _require_token(db: AsyncSession, token: str) -> SignatureToken:
    signature_token = await get_signature_token(db, token)
    if signature_token is None:
        raise TokenNotFound(token=token)
    return signature_token


async def _transition(
    db: AsyncSession,
    signature_token: SignatureToken,
    target: TokenStatus,
    **fields,
) -> SignatureToken:
    """Move a token to a new status, refusing moves the state machine does not allow."""
    if not can_transition(signature_token.token_status, target):
        raise TokenAlreadyFinalized(
            signature_token.id,
            f"Cannot move signature token from {signature_token.status} to {target.value}",
        )
    return await update_signature_token(db, signature_token.id, status=target, **fields)


async def _persist_expiry(db: AsyncSession, signature_token: SignatureToken) -> SignatureToken:
    """Write the expired status back if it has not been stored yet."""
    if signature_token.status == TokenStatus.EXPIRED:
        return signature_token

    previous_status = signature_token.status
    signature_token = await _transition(db, signature_token, TokenStatus.EXPIRED)
    logger.info(f"Signature token {signature_token.short_token} expired (was {previous_status})")
    await log_token_event(
        db,
        AuditEventType.TOKEN_EXPIRED,
        signature_token,
        description=f"Signature token for case {signature_token.case_id} expired",
        metadata={"previous_status": previous_status},
    )
    return signature_token


async def mark_token_accessed(
    db: AsyncSession,
    token: str,
    ip_address: Optional[str] = None,
) -> Optional[SignatureToken]:
    """
    Record that the client opened the signature portal.

    Returns:
        The token record, or None if the token has expired (the expiry is
        written back as a side effect)

    Raises:
        TokenNotFound: If the token does not exist
        TokenAlreadyFinalized: If the token has already been completed
    """
    signature_token = await _require_token(db, token)

    if signature_token.status == TokenStatus.COMPLETED:
        raise TokenAlreadyFinalized(signature_token.id)

    if is_token_expired(signature_token):
        await _persist_expiry(db, signature_token)
        return None

    if signature_token.status != TokenStatus.PENDING:
        # Already accessed or signed
        return signature_token

    signature_token = await _transition(db, signature_token, TokenStatus.ACCESSED)
    await log_token_event(
        db,
        AuditEventType.TOKEN_ACCESSED,
        signature_token,
        description=f"Signature portal opened for case {signature_token.case_id}",
        ip_address=ip_address,
    )
    return signature_token


async def mark_token_signed(
    db: AsyncSession,
    token: str,
    ip_address: Optional[str] = None,
) -> Optional[SignatureToken]:
    """
    Record that the client submitted their signature through the portal.

    Returns:
        The token record, or None if the token has expired

    Raises:
        TokenNotFound: If the token does not exist
        TokenAlreadyFinalized: If the token has already been completed
    """
    signature_token = await _require_token(db, token)

    if signature_token.status == TokenStatus.COMPLETED:
        raise TokenAlreadyFinalized(signature_token.id)

    if is_token_expired(signature_token):
        await _persist_expiry(db, signature_token)
        return None

    if signature_token.status == TokenStatus.SIGNED:
        return signature_token

    signature_token = await _transition(db, signature_token, TokenStatus.SIGNED, signed_at=now_utc())
    await log_token_event(
        db,
        AuditEventType.TOKEN_SIGNED,
        signature_token,
        description=f"Document signed for case {signature_token.case_id}",
        ip_address=ip_address,
    )
    return signature_token


async def complete_signature_token(
    db: AsyncSession,
    token: str,
    submission_id: str,
) -> Optional[SignatureToken]:
    """
    Complete a token when the form provider confirms the submission.

    A repeat callback with the same submission ID returns the stored record
    untouched, so completed_at keeps its first value.

    Returns:
        The completed token record, or None if the token had expired

    Raises:
        ValueError: If submission_id is blank
        TokenNotFound: If the token does not exist
        TokenAlreadyFinalized: If the token was completed by a different submission
    """
    submission_id = str(submission_id or "").strip()
    if not submission_id:
        raise ValueError("submission_id is required to complete a signature token")

    signature_token = await _require_token(db, token)

    if signature_token.status == TokenStatus.COMPLETED:
        if signature_token.external_submission_id == submission_id:
            logger.info(f"Duplicate completion for token {signature_token.short_token} ignored")
            return signature_token
        raise TokenAlreadyFinalized(
            signature_token.id,
            f"Signature token already completed by submission {signature_token.external_submission_id}",
        )

    if is_token_expired(signature_token):
        await _persist_expiry(db, signature_token)
        return None

    previous_status = signature_token.status
    signature_token = await _transition(
        db,
        signature_token,
        TokenStatus.COMPLETED,
        completed_at=now_utc(),
        external_submission_id=submission_id,
    )
    await log_token_event(
        db,
        AuditEventType.TOKEN_COMPLETED,
        signature_token,
        description=f"Signature completed for case {signature_token.case_id}",
        metadata={"submission_id": submission_id, "previous_status": previous_status},
    )
    return signature_token


async def expire_signature_token(db: AsyncSession, token: str) -> SignatureToken:
    """
    Expire a token now, e.g. when a case worker cancels a request.

    Raises:
        TokenNotFound: If the token does not exist
        TokenAlreadyFinalized: If the token has already been completed
    """
    signature_token = await _require_token(db, token)
    if signature_token.status == TokenStatus.COMPLETED:
        raise TokenAlreadyFinalized(signature_token.id)
    return await _persist_expiry(db, signature_token)


async def check_signature_token(db: AsyncSession, token: str) -> TokenCheck:
    """
    Report whether a token can still be signed with.

    Raises:
        TokenNotFound: If the token does not exist
    """
    signature_token = await _require_token(db, token)

    is_completed = signature_token.status == TokenStatus.COMPLETED
    is_expired = is_token_expired(signature_token)
    if is_expired:
        signature_token = await _persist_expiry(db, signature_token)

    return TokenCheck(
        signature_token=signature_token,
        is_valid=is_token_valid(signature_token),
        is_expired=is_expired,
        is_completed=is_completed,
    )


async def has_pending_signature_token(db: AsyncSession, case_id: str, document_type) -> bool:
    """
    Check if a case already has a live signature request for a document type.

    Only pending/accessed tokens that are still valid count, so an expired
    request never blocks sending a new one.
    """
    doc_type = parse_document_type(document_type)
    now = now_utc()
    for signature_token in await get_signature_tokens_for_case(db, case_id):
        if (
            signature_token.document_type == doc_type.value
            and signature_token.status in (TokenStatus.PENDING, TokenStatus.ACCESSED)
            and is_token_valid(signature_token, now)
        ):
            return True
    return False
