from typing import Optional

from sqlalchemy import BigInteger, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from aviator_signals.db.base import Base


class PredictionModel(Base):
    """Model version registry entry."""

    __tablename__ = "models"

    model_version: Mapped[str] = mapped_column(String, primary_key=True)
    model_type: Mapped[str] = mapped_column(String, nullable=False)
    trained_on_until: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    # JSON string
    metrics: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class ApiKey(Base):
    """Hashed API credential with role and declared per-minute limit."""

    __tablename__ = "api_keys"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    # ingest|viewer|admin
    role: Mapped[str] = mapped_column(String, nullable=False)
    key_hash: Mapped[str] = mapped_column(String, nullable=False)
    # JSON array string
    allowed_ips: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rate_limit_per_min: Mapped[int] = mapped_column(
        Integer, nullable=False, default=60, server_default="60"
    )
    last_used_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)


Index("ix_api_keys_role", ApiKey.role)
