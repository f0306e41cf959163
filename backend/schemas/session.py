"""Schemas for session security settings exposed to the browser."""

from pydantic import BaseModel


class SessionConfigResponse(BaseModel):
    """Session monitor timings, in seconds."""

    max_inactivity: float
    max_session: float
    warning: float
    duplicate_check_interval: float
    activity_throttle: float
    reload_delay: float
    max_extensions: int
    activity_events: list[str]
