from sqlalchemy import String, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from lockbox.core.db.tables.base import Base
from datetime import datetime, timezone


class Credential(Base):
    """
    Per-user login credentials for the stateful session strategy.

    Security design:
    - password_hash: Bcrypt hash (salted, one-way); plaintext is never stored
    - updated_at: Timestamp of the last password change
    """
    __tablename__ = "credential"

    username: Mapped[str] = mapped_column(String(64), primary_key=True)
    password_hash: Mapped[str] = mapped_column(String(256))
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
