from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from burnbin.db import Base


def generate_paste_id() -> str:
    return str(uuid.uuid4())


class Paste(Base):
    """Paste entity persisted via SQLAlchemy."""

    __tablename__ = "pastes"
    __table_args__ = (
        CheckConstraint(
            "max_views IS NULL OR max_views >= 1",
            name="ck_pastes_max_views_min_1",
        ),
        CheckConstraint("views >= 0", name="ck_pastes_views_non_negative"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_paste_id,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # Absolute expiry instant in milliseconds since the Unix epoch.
    expires_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    max_views: Mapped[int | None] = mapped_column(Integer, nullable=True)
    views: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    @validates("content", "expires_at", "max_views")
    def _validate_immutable(self, key: str, value):
        """
        Enforce that the creation-time fields never change afterwards.

        The value can be set on new instances, but any subsequent attempt to
        change it will raise an error.
        """

        current = getattr(self, key, None)
        if current is not None and current != value:
            raise ValueError(f"Paste {key} is immutable and cannot be modified.")
        return value

    @validates("views")
    def _validate_views_monotonic(self, key: str, value: int) -> int:
        current = getattr(self, key, None)
        if current is not None and value < current:
            raise ValueError("Paste views cannot decrease.")
        return value
