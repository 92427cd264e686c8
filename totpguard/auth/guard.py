"""
Per-identity attempt guard for TOTP verification.

Tracks enablement, verification status and failed attempts for a single
identity and blocks verification after repeated failures until a
cool-down has elapsed.

Two clocks are used: a monotonic clock measures elapsed cool-down time,
and wall-clock Unix time feeds the TOTP counter.

Usage:
    from totpguard.auth.guard import AttemptGuard, IdentityAuthState

    guard = AttemptGuard()
    state = IdentityAuthState()

    guard.enable(state, "JBSWY3DPEHPK3PXP")
    guard.attempt_verify(state, "123456")
"""
import logging
import math
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from .base32 import is_valid_secret
from .errors import InvalidSecretFormat
from .totp import DEFAULT_TIME_STEP, DEFAULT_WINDOW, is_valid_code, verify_totp

logger = logging.getLogger(__name__)

# Rate limiting constants
MAX_FAILED_ATTEMPTS = 3
RATE_LIMIT_SECONDS = 60


@dataclass
class IdentityAuthState:
    """
    Authentication state for one identity.

    last_attempt is a reading of the guard's monotonic clock, not Unix time.
    """
    enabled: bool = False
    verified: bool = False
    secret: Optional[str] = None
    failed_attempts: int = 0
    last_attempt: Optional[float] = None

    @property
    def has_secret(self) -> bool:
        return bool(self.secret)

    def reset(self) -> None:
        """Soft reset: clear verification and attempts, keep enablement and secret."""
        self.verified = False
        self.failed_attempts = 0
        self.last_attempt = None

    def clear(self) -> None:
        """Hard reset: back to the defaults of a newly seen identity."""
        self.enabled = False
        self.verified = False
        self.secret = None
        self.failed_attempts = 0
        self.last_attempt = None

    def copy(self) -> "IdentityAuthState":
        return replace(self)


class AttemptGuard:
    """
    Applies the enable/disable/verify state machine to an IdentityAuthState.

    The guard holds configuration only; all mutable state lives in the
    IdentityAuthState passed to each call. Callers serving identities from
    several threads must serialise access to each state object.
    """

    def __init__(
        self,
        max_failed_attempts: int = MAX_FAILED_ATTEMPTS,
        rate_limit_seconds: int = RATE_LIMIT_SECONDS,
        time_step: int = DEFAULT_TIME_STEP,
        window: int = DEFAULT_WINDOW,
        monotonic: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        verifier: Callable[..., bool] = verify_totp,
    ):
        self.max_failed_attempts = max_failed_attempts
        self.rate_limit_seconds = rate_limit_seconds
        self.time_step = time_step
        self.window = window
        self._monotonic = monotonic
        self._wall_clock = wall_clock
        self._verifier = verifier

    def now(self) -> float:
        """Current reading of the cool-down clock."""
        return self._monotonic()

    def enable(self, state: IdentityAuthState, secret: str) -> None:
        """
        Store a secret and enable TOTP, replacing any previous secret.

        Raises:
            InvalidSecretFormat: If the secret is not 10-16 base32 characters.
        """
        if not is_valid_secret(secret):
            raise InvalidSecretFormat(
                "Secret must be 10-16 characters from the base32 alphabet (A-Z, 2-7)"
            )

        state.secret = secret
        state.enabled = True
        state.verified = False
        state.failed_attempts = 0

    def disable(self, state: IdentityAuthState) -> None:
        """Disable TOTP and drop the secret. Idempotent."""
        state.enabled = False
        state.verified = False
        state.secret = None

    def reset(self, state: IdentityAuthState) -> None:
        """Soft reset used on session or mode transitions."""
        state.reset()

    def _elapsed(self, state: IdentityAuthState, now: float) -> Optional[float]:
        if state.last_attempt is None:
            return None
        return now - state.last_attempt

    def is_locked_out(self, state: IdentityAuthState, now: Optional[float] = None) -> bool:
        """Return True if verification attempts are currently blocked."""
        return self.retry_after(state, now) > 0

    def retry_after(self, state: IdentityAuthState, now: Optional[float] = None) -> int:
        """
        Seconds until the lockout clears.

        Returns:
            0 when not locked out, otherwise the remaining cool-down rounded up.
        """
        if state.failed_attempts < self.max_failed_attempts:
            return 0
        if now is None:
            now = self._monotonic()

        elapsed = self._elapsed(state, now)
        if elapsed is None or elapsed >= self.rate_limit_seconds:
            return 0

        remaining = self.rate_limit_seconds - elapsed
        return max(1, math.ceil(remaining))

    def attempt_verify(
        self,
        state: IdentityAuthState,
        code: str,
        now: Optional[float] = None,
        timestamp: Optional[int] = None,
    ) -> bool:
        """
        Verify a code for an identity, applying the lockout rules.

        Args:
            state: The identity's authentication state (mutated).
            code: Submitted 6-digit code.
            now: Monotonic clock reading; read from the guard's clock if omitted.
            timestamp: Unix time for the TOTP counter; read from the wall
                clock if omitted.

        Returns:
            True if the code is valid and the identity is now verified.
        """
        if not state.enabled or not state.has_secret:
            return False
        if not is_valid_code(code):
            return False

        if now is None:
            now = self._monotonic()

        if state.failed_attempts >= self.max_failed_attempts:
            elapsed = self._elapsed(state, now)
            if elapsed is not None and elapsed < self.rate_limit_seconds:
                return False
            # Cool-down elapsed, lockout clears
            logger.debug("Lockout cool-down elapsed, clearing failed attempts")
            state.failed_attempts = 0

        state.last_attempt = now

        if timestamp is None:
            timestamp = int(self._wall_clock())

        success = self._verifier(
            state.secret,
            code,
            timestamp,
            time_step=self.time_step,
            window=self.window,
        )

        if success:
            state.verified = True
            state.failed_attempts = 0
        else:
            state.failed_attempts += 1

        return success
