"""Session security monitor.

Enforces two independent timeout ceilings for a signed-in user:

- inactivity: a warning is shown ``warning`` seconds before
  ``max_inactivity`` elapses without activity, then the session expires
- absolute duration: the session expires ``max_session`` seconds after
  it started, regardless of activity

It also detects a newer session written to the shared storage slot (a
second tab, window or device sharing storage) and expires this one.

Expiry is terminal and always ends in the same clean state: every timer
cancelled, remote sign-out attempted, local and session storage cleared
(even if sign-out failed), and a page reload scheduled.

The monitor is single-threaded and callback driven. All timers go
through a ``loop`` object providing ``time()`` and
``call_later(delay, callback, *args)`` returning a handle with
``cancel()``; an ``asyncio`` event loop satisfies this directly. The
monitor owns every handle it schedules and cancels them on each
transition and on :meth:`SessionSecurityMonitor.dispose`. On a real
asyncio loop the remote sign-out runs in the default executor.
"""

import asyncio
import logging
import secrets
from collections.abc import Callable, MutableMapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from config import settings
from integrations.auth_client import SupabaseAuthClient

logger = logging.getLogger(__name__)

SESSION_ID_KEY = "currentSessionId"
AUTH_TOKEN_KEY = "authToken"

ACTIVITY_EVENTS = frozenset({
    "mousedown",
    "mousemove",
    "keypress",
    "scroll",
    "touchstart",
    "click",
})

REASON_INACTIVITY = "Session timeout due to inactivity"
REASON_MAX_DURATION = "Maximum session time exceeded"
REASON_DUPLICATE = "Multiple browser sessions detected"
REASON_SIGNED_OUT = "User signed out"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class EventLoop(Protocol):
    def time(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class AuthProvider(Protocol):
    def sign_out(self, access_token: str | None = None) -> None: ...


class SessionState(str, Enum):
    ACTIVE = "active"
    WARNING_SHOWN = "warning_shown"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SessionSecurityConfig:
    """Timings in seconds."""

    max_inactivity: float = 300
    max_session: float = 1800
    warning: float = 60
    duplicate_check_interval: float = 10
    activity_throttle: float = 1
    reload_delay: float = 1
    # Extensions that may restart the absolute clock; later ones only
    # reset inactivity, so lifetime is capped at (max_extensions + 1) * max_session
    max_extensions: int = 2

    def __post_init__(self):
        if not 0 < self.warning < self.max_inactivity:
            raise ValueError("warning must be positive and shorter than max_inactivity")
        if self.max_session <= 0 or self.duplicate_check_interval <= 0:
            raise ValueError("max_session and duplicate_check_interval must be positive")
        if self.max_extensions < 0:
            raise ValueError("max_extensions must not be negative")

    @classmethod
    def from_settings(cls) -> "SessionSecurityConfig":
        return cls(
            max_inactivity=settings.SESSION_MAX_INACTIVITY_SECONDS,
            max_session=settings.SESSION_MAX_DURATION_SECONDS,
            warning=settings.SESSION_WARNING_SECONDS,
            duplicate_check_interval=settings.SESSION_CHECK_INTERVAL_SECONDS,
            max_extensions=settings.SESSION_MAX_EXTENSIONS,
        )


class SessionSecurityMonitor:
    """Inactivity, absolute-duration and duplicate-session guard for one session.

    Args:
        user_id: The signed-in user.
        loop: Timer source (``time`` + ``call_later``). Defaults to the
            running asyncio loop.
        auth: Authentication provider; only ``sign_out`` is used.
            Defaults to Supabase.
        local_storage: Persistent storage shared between instances. Holds
            the bearer token and the authoritative session id.
        session_storage: Per-instance storage, cleared alongside.
        config: Timings; defaults come from settings.
        reload: Called ``reload_delay`` seconds after expiry.
        on_change: Called with the monitor after every state or
            countdown change.
    """

    def __init__(
        self,
        user_id: str,
        *,
        loop: EventLoop | None = None,
        auth: AuthProvider | None = None,
        local_storage: MutableMapping[str, str],
        session_storage: MutableMapping[str, str] | None = None,
        config: SessionSecurityConfig | None = None,
        reload: Callable[[], None] | None = None,
        on_change: Callable[["SessionSecurityMonitor"], None] | None = None,
    ):
        self.user_id = user_id
        self.config = config or SessionSecurityConfig.from_settings()
        self._loop = loop or asyncio.get_running_loop()
        self._owns_auth = auth is None
        self._auth = auth or SupabaseAuthClient()
        self._local = local_storage
        self._session = session_storage if session_storage is not None else {}
        self._reload = reload
        self._on_change = on_change

        self.state = SessionState.ACTIVE
        self.session_id: str | None = None
        self.time_remaining: float = 0
        self.expiry_reason: str | None = None
        self.extensions_used = 0
        self.last_activity_at: float | None = None
        self.session_started_at: float | None = None

        self._started = False
        self._warning_handle: TimerHandle | None = None
        self._logout_handle: TimerHandle | None = None
        self._countdown_handle: TimerHandle | None = None
        self._absolute_handle: TimerHandle | None = None
        self._duplicate_handle: TimerHandle | None = None
        self._throttle_handle: TimerHandle | None = None
        self._reload_handle: TimerHandle | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> str:
        """Begin monitoring and claim the shared session slot.

        Returns:
            The new session id.
        """
        if self._started:
            raise RuntimeError("Session monitor already started")
        self._started = True

        now = self._loop.time()
        self.session_started_at = now
        self.session_id = f"session_{self.user_id}_{secrets.token_hex(8)}"
        self._local[SESSION_ID_KEY] = self.session_id

        self._arm_absolute_deadline()
        self._duplicate_handle = self._loop.call_later(
            self.config.duplicate_check_interval, self._check_duplicate_session
        )
        logger.info("Session started for user %s", self.user_id)
        self.reset_activity()
        return self.session_id

    def dispose(self) -> None:
        """Cancel every pending timer without expiring the session."""
        self._cancel_all()
        self._started = False
        if self._owns_auth and not self.is_expired:
            self._auth.close()

    def sign_out(self) -> None:
        """Explicit sign-out by the user."""
        self.expire(REASON_SIGNED_OUT)

    @property
    def is_expired(self) -> bool:
        return self.state is SessionState.EXPIRED

    @property
    def show_warning(self) -> bool:
        return self.state is SessionState.WARNING_SHOWN

    # ------------------------------------------------------------------
    # Activity
    # ------------------------------------------------------------------

    def handle_event(self, event_type: str) -> bool:
        """Record a UI event.

        Only qualifying events count, and at most one activity reset runs
        per ``activity_throttle`` seconds: the first event resets the
        timers at once and opens the throttle window, events arriving
        inside the window are dropped.

        Returns:
            True if the event reset the inactivity timers.
        """
        if not self._started or self.is_expired:
            return False
        if event_type not in ACTIVITY_EVENTS:
            return False
        if self._throttle_handle is not None:
            return False
        self.reset_activity()
        if not self.is_expired:
            self._throttle_handle = self._loop.call_later(
                self.config.activity_throttle, self._end_throttle
            )
        return True

    def _end_throttle(self) -> None:
        self._throttle_handle = None

    def reset_activity(self) -> None:
        """Restart the inactivity timers from now.

        Expires immediately instead if the absolute ceiling has passed.
        """
        if not self._started or self.is_expired:
            return

        now = self._loop.time()
        self.last_activity_at = now
        self._cancel_inactivity_timers()

        if now - self.session_started_at >= self.config.max_session:
            self.expire(REASON_MAX_DURATION)
            return

        was_warning = self.state is SessionState.WARNING_SHOWN
        self.state = SessionState.ACTIVE
        self.time_remaining = 0

        self._warning_handle = self._loop.call_later(
            self.config.max_inactivity - self.config.warning, self._show_warning
        )
        self._logout_handle = self._loop.call_later(
            self.config.max_inactivity, self.expire, REASON_INACTIVITY
        )
        if was_warning:
            self._notify()

    def extend_session(self) -> None:
        """Dismiss the warning and restart the clocks ("Stay signed in").

        The absolute clock restarts only ``max_extensions`` times per
        session; after that extending behaves like plain activity.
        """
        if not self._started or self.is_expired:
            return

        if self.extensions_used < self.config.max_extensions:
            self.extensions_used += 1
            self.session_started_at = self._loop.time()
            self._arm_absolute_deadline()
            logger.info(
                "Session extended for user %s (%d/%d)",
                self.user_id, self.extensions_used, self.config.max_extensions,
            )
        else:
            logger.info(
                "Extension limit reached for user %s, absolute deadline kept",
                self.user_id,
            )
        self.reset_activity()

    def on_visibility_change(self, hidden: bool) -> None:
        """Hidden: inactivity keeps accruing. Visible again: counts as activity."""
        if hidden:
            logger.debug("User switched away from app")
            return
        self.reset_activity()

    def on_unload(self) -> None:
        """Window is closing: wipe local state regardless of session state."""
        self._clear_storage()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _show_warning(self) -> None:
        self._warning_handle = None
        if self.is_expired:
            return
        self.state = SessionState.WARNING_SHOWN
        self.time_remaining = self.config.warning
        self._countdown_handle = self._loop.call_later(1, self._tick)
        self._notify()

    def _tick(self) -> None:
        self._countdown_handle = None
        if self.state is not SessionState.WARNING_SHOWN:
            return
        if self.time_remaining <= 1:
            self.time_remaining = 0
            self.expire(REASON_INACTIVITY)
            return
        self.time_remaining -= 1
        self._countdown_handle = self._loop.call_later(1, self._tick)
        self._notify()

    def _arm_absolute_deadline(self) -> None:
        if self._absolute_handle is not None:
            self._absolute_handle.cancel()
        remaining = self.session_started_at + self.config.max_session - self._loop.time()
        self._absolute_handle = self._loop.call_later(
            max(remaining, 0), self.expire, REASON_MAX_DURATION
        )

    def _check_duplicate_session(self) -> None:
        self._duplicate_handle = None
        if self.is_expired:
            return
        if self._local.get(SESSION_ID_KEY) != self.session_id:
            self.expire(REASON_DUPLICATE)
            return
        self._duplicate_handle = self._loop.call_later(
            self.config.duplicate_check_interval, self._check_duplicate_session
        )

    def _cancel_inactivity_timers(self) -> None:
        for name in ("_warning_handle", "_logout_handle", "_countdown_handle"):
            handle = getattr(self, name)
            if handle is not None:
                handle.cancel()
                setattr(self, name, None)

    def _cancel_all(self) -> None:
        self._cancel_inactivity_timers()
        for name in ("_absolute_handle", "_duplicate_handle", "_throttle_handle", "_reload_handle"):
            handle = getattr(self, name)
            if handle is not None:
                handle.cancel()
                setattr(self, name, None)

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def expire(self, reason: str) -> None:
        """Terminate the session. Idempotent.

        Sign-out failures are logged and never stop the local cleanup.
        """
        if self.is_expired:
            return
        logger.warning("Session expired for user %s: %s", self.user_id, reason)

        self._cancel_all()
        self.state = SessionState.EXPIRED
        self.expiry_reason = reason
        self.time_remaining = 0

        access_token = self._local.get(AUTH_TOKEN_KEY)
        if isinstance(self._loop, asyncio.AbstractEventLoop):
            # Sign-out is a blocking HTTP call; keep it off the event loop
            self._loop.run_in_executor(None, self._remote_sign_out, access_token)
        else:
            self._remote_sign_out(access_token)

        self._clear_storage()
        self._reload_handle = self._loop.call_later(self.config.reload_delay, self._do_reload)
        self._notify()

    def _remote_sign_out(self, access_token: str | None) -> None:
        try:
            self._auth.sign_out(access_token)
        except Exception:
            logger.error("Error during forced logout", exc_info=True)
        finally:
            if self._owns_auth:
                self._auth.close()

    def _do_reload(self) -> None:
        self._reload_handle = None
        if self._reload is not None:
            self._reload()

    def _clear_storage(self) -> None:
        self._local.clear()
        self._session.clear()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)
