"""
Signal-related Pydantic schemas for the Aviator Signals API.

Handles validation of ingestion payloads and serialization of
aggregate statistics.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from aviator_signals.config.constants import PredictedClass, RecommendedAction


class SignalCreate(BaseModel):
    """
    Schema for an ingested prediction signal.

    Field presence is checked before this model runs so that a missing
    field is reported by name; this model then validates types and
    enumerations.

    Attributes:
        id: Unique signal identifier
        platform: Platform name (e.g. 'spribe')
        round_id: Platform round identifier, unique per platform
        timestamp: Prediction time in epoch milliseconds
        predicted_class: One of low, medium, high, extreme
        predicted_multiplier: Optional predicted crash multiplier
        confidence: Model confidence in [0, 1]
        model_version: Version tag of the producing model
        recommended_action: One of BET, HOLD, WAIT
        suggested_bet_pct: Optional bankroll percentage to stake
        cashout_targets: Optional list of cashout multipliers
        source: Optional producer tag, defaults to 'inference' on insert
        created_at: Record creation time in epoch milliseconds
    """

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str
    platform: str
    round_id: str
    timestamp: int
    predicted_class: PredictedClass
    predicted_multiplier: Optional[float] = Field(default=None, allow_inf_nan=False)
    confidence: float = Field(allow_inf_nan=False)
    model_version: str
    recommended_action: RecommendedAction
    suggested_bet_pct: Optional[float] = Field(default=None, allow_inf_nan=False)
    cashout_targets: Optional[List[Any]] = None
    source: Optional[str] = None
    created_at: int

    @field_validator("confidence")
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        """Validate that confidence lies in [0, 1]."""
        if v < 0 or v > 1:
            raise ValueError("confidence must be between 0 and 1")
        return v


def first_invalid_field(exc: ValidationError) -> str:
    """Name of the first field reported by a SignalCreate validation error."""
    errors = exc.errors()
    if not errors or not errors[0].get("loc"):
        return "body"
    return str(errors[0]["loc"][0])


class ClassCount(BaseModel):
    """Number of signals for one predicted class."""

    model_config = ConfigDict(populate_by_name=True)

    predicted_class: str = Field(serialization_alias="class")
    n: int


class SignalStats(BaseModel):
    """
    Aggregate statistics over signals.

    Attributes:
        total: Number of matching signals
        by_class: Counts grouped by predicted class
        last_ts: Most recent signal timestamp, None when empty
    """

    model_config = ConfigDict(populate_by_name=True)

    total: int = 0
    by_class: List[ClassCount] = Field(default_factory=list, serialization_alias="byClass")
    last_ts: Optional[int] = Field(default=None, serialization_alias="lastTs")
