"""
Identity registry for TOTPGuard.

Owns the mapping from identity key to IdentityAuthState and applies the
AttemptGuard to it. Each identity has its own lock, so identities can be
served from different threads without sharing mutable state; the engine
itself is stateless.

Usage:
    from totpguard.auth.manager import TOTPManager

    manager = TOTPManager()
    manager.connect("player-42")

    secret = manager.generate_secret("player-42")
    manager.enable("player-42", secret)

    result = manager.verify("player-42", "123456")
    if not result:
        print(result.status, result.retry_after_seconds)
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple

from ..config import TOTPSettings
from ..utils.secrets import mask_code, mask_secret
from .errors import CapacityExceeded, MalformedCode, RateLimited, UnknownIdentity
from .guard import AttemptGuard, IdentityAuthState
from .mfa import generate_secret
from .totp import is_valid_code

logger = logging.getLogger(__name__)


class VerifyStatus(str, Enum):
    SUCCESS = "success"
    INVALID_CODE = "invalid_code"
    MALFORMED_CODE = "malformed_code"
    NOT_ENABLED = "not_enabled"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class VerifyResult:
    """
    Outcome of a verification request.

    Truthy only on success. retry_after_seconds is set when the identity is
    locked out, either before this attempt or as a result of it.
    """
    status: VerifyStatus
    failed_attempts: int = 0
    retry_after_seconds: int = 0

    @property
    def success(self) -> bool:
        return self.status is VerifyStatus.SUCCESS

    def __bool__(self) -> bool:
        return self.success

    def raise_for_status(self) -> None:
        """Raise RateLimited or MalformedCode for the matching outcomes."""
        if self.status is VerifyStatus.RATE_LIMITED:
            raise RateLimited(self.retry_after_seconds)
        if self.status is VerifyStatus.MALFORMED_CODE:
            raise MalformedCode("Code must be exactly 6 digits")


class _Entry:
    __slots__ = ("state", "lock")

    def __init__(self):
        self.state = IdentityAuthState()
        self.lock = threading.Lock()


class TOTPManager:
    """
    Per-identity TOTP state, bounded by a maximum number of identities.

    Identities are created on first appearance (connect or any mutating
    operation) and destroyed by remove(). Read-only queries never create
    state.
    """

    def __init__(
        self,
        settings: Optional[TOTPSettings] = None,
        guard: Optional[AttemptGuard] = None,
    ):
        self.settings = settings or TOTPSettings()
        self.guard = guard or AttemptGuard(
            max_failed_attempts=self.settings.max_failed_attempts,
            rate_limit_seconds=self.settings.rate_limit_seconds,
            time_step=self.settings.time_step,
            window=self.settings.window,
        )
        self._entries: Dict[str, _Entry] = {}
        self._registry_lock = threading.Lock()

    # ============================================
    # Registry
    # ============================================

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identity: str) -> bool:
        return identity in self._entries

    def _get_entry(self, identity: str) -> Optional[_Entry]:
        return self._entries.get(identity)

    def _get_or_create_entry(self, identity: str) -> _Entry:
        entry = self._entries.get(identity)
        if entry is not None:
            return entry

        with self._registry_lock:
            entry = self._entries.get(identity)
            if entry is None:
                if len(self._entries) >= self.settings.max_identities:
                    raise CapacityExceeded(self.settings.max_identities)
                entry = _Entry()
                self._entries[identity] = entry
                logger.debug(f"Identity registered: {identity}")
            return entry

    @contextmanager
    def _locked(self, identity: str, create: bool = False) -> Iterator[Optional[_Entry]]:
        """
        Hold the lock of an identity's entry.

        Yields None for unknown identities when create is False. An entry
        removed between look-up and locking is looked up again, so callers
        never mutate state that is no longer registered.
        """
        while True:
            if create:
                entry = self._get_or_create_entry(identity)
            else:
                entry = self._get_entry(identity)
                if entry is None:
                    yield None
                    return

            with entry.lock:
                if self._entries.get(identity) is entry:
                    yield entry
                    return
            logger.debug(f"Identity {identity} removed while waiting for its lock, retrying")

    @contextmanager
    def _locked_required(self, identity: str) -> Iterator[_Entry]:
        with self._locked(identity) as entry:
            if entry is None:
                raise UnknownIdentity(identity)
            yield entry

    def connect(self, identity: str) -> IdentityAuthState:
        """
        Register an identity with default state (idempotent).

        Returns:
            Snapshot of the identity's state.

        Raises:
            CapacityExceeded: If the registry is full.
        """
        with self._locked(identity, create=True) as entry:
            return entry.state.copy()

    def remove(self, identity: str) -> bool:
        """
        Destroy an identity's state.

        Returns:
            True if the identity existed.
        """
        with self._registry_lock:
            entry = self._entries.pop(identity, None)
        if entry is None:
            return False
        logger.info(f"Identity removed: {identity}")
        return True

    def reset_all(self) -> None:
        """Hard-reset every registered identity."""
        with self._registry_lock:
            entries = list(self._entries.values())
        for entry in entries:
            with entry.lock:
                entry.state.clear()
        logger.info(f"Reset TOTP state for {len(entries)} identities")

    # ============================================
    # TOTP operations
    # ============================================

    def generate_secret(self, identity: Optional[str] = None) -> str:
        """
        Generate a fresh secret. Nothing is stored or enabled.

        Raises:
            RngUnavailable: If the secure random source fails.
        """
        secret = generate_secret()
        if identity is not None:
            logger.debug(f"Secret generated for {identity}")
        return secret

    def enable(self, identity: str, secret: str) -> None:
        """
        Enable TOTP for an identity with the given secret.

        Raises:
            InvalidSecretFormat: If the secret is not 10-16 base32 characters.
            CapacityExceeded: If the identity is new and the registry is full.
        """
        with self._locked(identity, create=True) as entry:
            self.guard.enable(entry.state, secret)
        logger.info(f"TOTP enabled for {identity} (secret {mask_secret(secret)})")

    def disable(self, identity: str) -> None:
        """Disable TOTP for an identity. Idempotent; unknown identities are a no-op."""
        with self._locked(identity) as entry:
            if entry is None:
                return
            was_enabled = entry.state.enabled
            self.guard.disable(entry.state)
        if was_enabled:
            logger.info(f"TOTP disabled for {identity}")

    def reset_verification(self, identity: str) -> None:
        """
        Soft reset: clear verification and attempts, keep secret and enablement.

        Raises:
            UnknownIdentity: If the identity is not registered.
        """
        with self._locked_required(identity) as entry:
            self.guard.reset(entry.state)

    def verify(
        self,
        identity: str,
        code: str,
        now: Optional[float] = None,
        timestamp: Optional[int] = None,
    ) -> VerifyResult:
        """
        Verify a submitted code for an identity.

        Never raises for bad input: unknown identities, disabled TOTP,
        malformed codes and lockouts all resolve to a failed VerifyResult.

        Args:
            identity: Identity key.
            code: Submitted 6-digit code.
            now: Monotonic clock reading (defaults to the guard's clock).
            timestamp: Unix time for the TOTP counter (defaults to wall clock).
        """
        with self._locked(identity) as entry:
            if entry is None:
                return VerifyResult(status=VerifyStatus.NOT_ENABLED)

            state = entry.state
            if not state.enabled or not state.has_secret:
                return VerifyResult(status=VerifyStatus.NOT_ENABLED)

            if not is_valid_code(code):
                return VerifyResult(
                    status=VerifyStatus.MALFORMED_CODE,
                    failed_attempts=state.failed_attempts,
                )

            if now is None:
                now = self.guard.now()

            retry_after = self.guard.retry_after(state, now)
            if retry_after > 0:
                logger.warning(
                    f"Verification rejected for {identity}: locked out for {retry_after}s"
                )
                return VerifyResult(
                    status=VerifyStatus.RATE_LIMITED,
                    failed_attempts=state.failed_attempts,
                    retry_after_seconds=retry_after,
                )

            success = self.guard.attempt_verify(state, code, now=now, timestamp=timestamp)
            failed_attempts = state.failed_attempts
            retry_after = self.guard.retry_after(state, now)

        if success:
            logger.info(f"TOTP verified for {identity}")
            return VerifyResult(status=VerifyStatus.SUCCESS)

        logger.warning(
            f"Invalid TOTP code {mask_code(code)} for {identity} "
            f"({failed_attempts}/{self.guard.max_failed_attempts} failed attempts)"
        )
        if retry_after > 0:
            logger.info(f"Identity {identity} locked out for {retry_after}s")

        return VerifyResult(
            status=VerifyStatus.INVALID_CODE,
            failed_attempts=failed_attempts,
            retry_after_seconds=retry_after,
        )

    # ============================================
    # Queries
    # ============================================

    def snapshot(self, identity: str) -> IdentityAuthState:
        """
        Copy of an identity's state.

        Raises:
            UnknownIdentity: If the identity is not registered.
        """
        with self._locked_required(identity) as entry:
            return entry.state.copy()

    def status(self, identity: str, now: Optional[float] = None) -> Tuple[IdentityAuthState, int]:
        """
        Snapshot plus remaining lockout seconds, read under one lock.

        Raises:
            UnknownIdentity: If the identity is not registered.
        """
        with self._locked_required(identity) as entry:
            return entry.state.copy(), self.guard.retry_after(entry.state, now)

    def is_enabled(self, identity: str) -> bool:
        with self._locked(identity) as entry:
            return entry is not None and entry.state.enabled

    def is_verified(self, identity: str) -> bool:
        with self._locked(identity) as entry:
            return entry is not None and entry.state.verified

    def get_secret(self, identity: str) -> Optional[str]:
        """Stored secret for display or external storage, or None."""
        with self._locked(identity) as entry:
            if entry is None or not entry.state.has_secret:
                return None
            return entry.state.secret

    def get_failed_attempts(self, identity: str) -> int:
        with self._locked(identity) as entry:
            return entry.state.failed_attempts if entry is not None else 0
