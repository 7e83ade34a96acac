"""Data models for directory locking."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat


class LockState(str, Enum):
    """Whether a guard currently owns an OS lock."""

    UNLOCKED = "unlocked"
    LOCKED = "locked"


class BackoffPolicy(BaseModel):
    """Sleep intervals used while waiting on a directory lock."""

    model_config = ConfigDict(frozen=True)

    contended_interval: PositiveFloat = Field(
        10.0, description="Seconds to wait after another holder refused the lock."
    )
    error_interval: PositiveFloat = Field(
        60.0,
        description="Seconds to wait after an unexpected locking error before retrying.",
    )
