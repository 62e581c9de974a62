"""
Claims Desk - Audit Service

Append-only audit logging for signature requests, with hash-chain
integrity verification.
"""

import json
from typing import Optional, List
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from claimsdesk.models.audit import AuditLog
from claimsdesk.models.signature_token import SignatureToken
from claimsdesk.timestamps import now_utc


async def log_event(
    db: AsyncSession,
    event_type: str,
    description: str,
    case_id: Optional[str] = None,
    token_id: Optional[int] = None,
    metadata: Optional[dict] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """
    Create an immutable audit log entry with hash chain.

    Args:
        db: Database session
        event_type: Type of event (use AuditEventType constants)
        description: Human-readable description of the event
        case_id: Optional ID of the related case
        token_id: Optional ID of the related signature token record
        metadata: Optional additional data as dictionary
        ip_address: Optional client IP address

    Returns:
        The created AuditLog entry
    """
    # Get the previous entry's hash for chain integrity
    previous_entry = await get_last_audit_entry(db)
    previous_hash = previous_entry.entry_hash if previous_entry else None

    metadata_json = json.dumps(metadata, sort_keys=True, default=str) if metadata else None
    created_at = now_utc()

    entry_hash = AuditLog.compute_hash(
        event_type=event_type,
        description=description,
        case_id=case_id,
        token_id=token_id,
        metadata_json=metadata_json,
        ip_address=ip_address,
        previous_hash=previous_hash,
        created_at=created_at,
    )

    audit_entry = AuditLog(
        event_type=event_type,
        description=description,
        case_id=case_id,
        token_id=token_id,
        metadata_json=metadata_json,
        ip_address=ip_address,
        previous_hash=previous_hash,
        entry_hash=entry_hash,
        created_at=created_at,
    )

    db.add(audit_entry)
    await db.commit()
    await db.refresh(audit_entry)

    return audit_entry


async def log_token_event(
    db: AsyncSession,
    event_type: str,
    signature_token: SignatureToken,
    description: str,
    metadata: Optional[dict] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """Convenience function to log an event against a signature token."""
    event_metadata = {
        "document_type": signature_token.document_type,
        "status": signature_token.status,
    }
    if metadata:
        event_metadata.update(metadata)

    return await log_event(
        db=db,
        event_type=event_type,
        description=description,
        case_id=signature_token.case_id,
        token_id=signature_token.id,
        metadata=event_metadata,
        ip_address=ip_address,
    )


async def get_last_audit_entry(db: AsyncSession) -> Optional[AuditLog]:
    """Get the most recent audit log entry."""
    result = await db.execute(
        select(AuditLog).order_by(desc(AuditLog.id)).limit(1)
    )
    return result.scalar_one_or_none()


async def get_case_audit_trail(
    db: AsyncSession,
    case_id: str,
    limit: int = 100,
) -> List[AuditLog]:
    """Get audit entries for a case in chronological order."""
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.case_id == case_id)
        .order_by(AuditLog.id.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def verify_audit_chain_integrity(db: AsyncSession) -> dict:
    """
    Verify the integrity of the audit log hash chain.

    Returns:
        Dictionary with verification results:
        {
            "valid": bool,
            "entries_checked": int,
            "first_invalid_id": int or None,
            "error": str or None
        }
    """
    result = await db.execute(select(AuditLog).order_by(AuditLog.id.asc()))
    entries = list(result.scalars().all())

    entries_checked = 0
    previous_hash = None

    for entry in entries:
        entries_checked += 1

        if not entry.verify_hash():
            return {
                "valid": False,
                "entries_checked": entries_checked,
                "first_invalid_id": entry.id,
                "error": f"Entry {entry.id} hash mismatch - data may have been tampered",
            }

        # Verify chain linkage (except for first entry)
        if previous_hash is not None and entry.previous_hash != previous_hash:
            return {
                "valid": False,
                "entries_checked": entries_checked,
                "first_invalid_id": entry.id,
                "error": f"Entry {entry.id} chain broken - previous_hash mismatch",
            }

        previous_hash = entry.entry_hash

    return {
        "valid": True,
        "entries_checked": entries_checked,
        "first_invalid_id": None,
        "error": None,
    }
