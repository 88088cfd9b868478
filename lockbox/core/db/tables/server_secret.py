from sqlalchemy import String, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column
from lockbox.core.db.tables.base import Base
from datetime import datetime, timezone


class ServerSecret(Base):
    """
    The deployment-wide signing secret.

    A single row (id=1) holding the hex-encoded secret. Replacing the value
    invalidates every outstanding stateless session token.
    """
    __tablename__ = "server_secret"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    secret_hex: Mapped[str] = mapped_column(String(256))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
