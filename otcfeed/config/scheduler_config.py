#!filepath: otcfeed/config/scheduler_config.py
from pydantic import BaseModel, Field


class SchedulerConfig(BaseModel):
    """
    Cadences of the scheduler loops, in seconds.

    tick_interval_seconds is the fixed per-symbol tick timer; exposure and
    diagnostics run on slower shared timers.
    """

    tick_interval_seconds: float = Field(1.0, gt=0.0)
    exposure_refresh_seconds: float = Field(5.0, gt=0.0)
    diagnostics_interval_seconds: float = Field(30.0, gt=0.0)
    subscriber_buffer: int = Field(256, ge=1)

    # anchor fetch retry policy
    anchor_fetch_attempts: int = Field(3, ge=1)
    anchor_fetch_delay_seconds: float = Field(0.5, ge=0.0)
    anchor_fetch_timeout_seconds: float = Field(5.0, gt=0.0)
