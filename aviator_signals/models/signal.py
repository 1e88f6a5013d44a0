from typing import Any, Dict, List, Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from aviator_signals.db.base import Base


class Signal(Base):
    """Prediction record for one platform round."""

    __tablename__ = "signals"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    platform: Mapped[str] = mapped_column(String, nullable=False)
    round_id: Mapped[str] = mapped_column(String, nullable=False)
    # epoch ms
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    predicted_class: Mapped[str] = mapped_column(String, nullable=False)
    predicted_multiplier: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    model_version: Mapped[str] = mapped_column(String, nullable=False)
    recommended_action: Mapped[str] = mapped_column(String, nullable=False)
    suggested_bet_pct: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # JSON string
    cashout_targets: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "confidence >= 0 AND confidence <= 1",
            name="ck_signals_confidence_range",
        ),
    )

    alerts: Mapped[List["Alert"]] = relationship(
        "Alert",
        back_populates="signal",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_dict(self) -> Dict[str, Any]:
        """Flat column mapping, cashout_targets left serialized."""
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}


Index("ux_signals_platform_round", Signal.platform, Signal.round_id, unique=True)
Index("ix_signals_platform_time", Signal.platform, Signal.timestamp.desc())


class Alert(Base):
    """One delivery attempt of a signal notification on one channel."""

    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    signal_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("signals.id", ondelete="CASCADE"),
        nullable=False,
    )
    channel: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False)
    sent_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    retries: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    signal: Mapped["Signal"] = relationship("Signal", back_populates="alerts")


Index("ix_alerts_signal", Alert.signal_id)
