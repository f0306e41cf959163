"""Session security settings for the browser-side monitor."""

from fastapi import APIRouter

from schemas import SessionConfigResponse
from services.session_security import ACTIVITY_EVENTS, SessionSecurityConfig

router = APIRouter(prefix="/api/session", tags=["session"])


@router.get("/config", response_model=SessionConfigResponse)
def get_session_config():
    """Timings the client-side session monitor should enforce."""
    config = SessionSecurityConfig.from_settings()
    return SessionConfigResponse(
        max_inactivity=config.max_inactivity,
        max_session=config.max_session,
        warning=config.warning,
        duplicate_check_interval=config.duplicate_check_interval,
        activity_throttle=config.activity_throttle,
        reload_delay=config.reload_delay,
        max_extensions=config.max_extensions,
        activity_events=sorted(ACTIVITY_EVENTS),
    )
