"""
Claims Desk - Case Lookups
"""

from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from claimsdesk.models.case import Case


async def get_case_by_case_number(db: AsyncSession, case_number: str) -> Optional[Case]:
    """Get a case by its human-facing case number."""
    result = await db.execute(
        select(Case).where(Case.case_number == case_number.strip())
    )
    return result.scalar_one_or_none()


async def get_case_by_id(db: AsyncSession, case_id: str) -> Optional[Case]:
    """Get a case by its ID."""
    result = await db.execute(
        select(Case).where(Case.id == case_id)
    )
    return result.scalar_one_or_none()
