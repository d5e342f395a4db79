from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType, utcnow


class Customer(Base):
    """A customer record; the profile itself is a free-form JSON document.

    Ids are human friendly (the customer's lowercase first name in the demo
    data set) or, for placeholder customers seeded from a ticket, the email.
    """

    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=sa.func.now(),
    )

    @property
    def email(self) -> str | None:
        return (self.data or {}).get("email")

    def __repr__(self) -> str:
        return f"<Customer(id={self.id})>"
