"""
Claims Desk - Case Model

Read-only view of the claim cases table. Cases are created and edited by the
case management screens; the signature workflow only looks them up.
"""

import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from claimsdesk.database import Base
from claimsdesk.timestamps import now_utc


class Case(Base):
    """A motorbike rental claim case."""

    __tablename__ = "cases"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    case_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)

    # Client (not-at-fault party)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    client_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    status: Mapped[str] = mapped_column(String(50), default="New Matter")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_utc)

    def __repr__(self) -> str:
        return f"<Case {self.case_number}: {self.client_name}>"
