"""
Lifecycle Transition Controller: disable / enable with verification

Each call is a complete transaction:

    resolve ──> already in target state? ──yes──> return (no write)
                        │ no
                        v
                select call shape ──> set_enabled ──> re-aggregate ──> verify

Failures:
    IdentityNotFoundError   : nothing to mutate
    MutationFailedError     : the write failed, account state is ambiguous
    VerificationFailedError : the write reported success but the directory
                              does not show the target state (no retry)
"""

from __future__ import annotations
import logging
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from .aggregator import AccountAggregator
from .directory import DirectoryClient, DirectoryError, DirectoryObject
from .identity import normalize_identity
from .options import DirectoryOptions
from .records import AccountRecord

logger = logging.getLogger(__name__)

AccountTarget = Union[str, AccountRecord, DirectoryObject]
TransitionResult = Union[AccountRecord, DirectoryObject, None]


class Transition(str, Enum):
    """Requested account state change."""
    DISABLE = "disable"
    ENABLE = "enable"

    @property
    def target_enabled(self) -> bool:
        return self is Transition.ENABLE

    @property
    def terminal_state(self) -> str:
        return "Enabled" if self.target_enabled else "Disabled"


# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions
# ─────────────────────────────────────────────────────────────────────────────

class TransitionError(Exception):
    """A lifecycle transition could not be completed."""

    status = 500

    def __init__(self, identity: str, target: Transition, message: str):
        self.identity = identity
        self.target = target
        self.message = message
        super().__init__(f"{target.value} '{identity}': {message}")

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "identity": self.identity,
            "transition": self.target.value,
            "message": self.message,
        }


class IdentityNotFoundError(TransitionError):
    """The identity did not resolve to a directory account."""
    status = 404


class MutationFailedError(TransitionError):
    """The directory rejected the state change."""
    status = 502

    def __init__(self, identity: str, target: Transition, cause: DirectoryError):
        self.cause = cause
        super().__init__(identity, target, f"directory update failed: {cause}")


class VerificationFailedError(TransitionError):
    """The directory does not show the requested state after the update."""
    status = 409

    def __init__(self, identity: str, target: Transition, observed_enabled: Optional[bool], detail: str = ""):
        self.observed_enabled = observed_enabled
        if observed_enabled is None:
            message = detail or "account could not be re-read after the update"
        else:
            message = f"expected enabled={target.target_enabled}, directory reports enabled={observed_enabled}"
        super().__init__(identity, target, message)


# ─────────────────────────────────────────────────────────────────────────────
# Controller
# ─────────────────────────────────────────────────────────────────────────────

class LifecycleController:
    """Applies disable/enable transitions through a directory client."""

    def __init__(self, client: DirectoryClient, options: Optional[DirectoryOptions] = None):
        """Initialize controller.

        Args:
            client: Any object implementing the DirectoryClient protocol
            options: Default server/credential, normally built once from configuration
        """
        self.client = client
        self.options = options or DirectoryOptions()
        self.aggregator = AccountAggregator(client)

    def _resolve(
        self,
        target: Transition,
        account: AccountTarget,
        options: DirectoryOptions,
        now: Optional[datetime],
    ) -> tuple[str, bool, DirectoryObject, Union[AccountRecord, DirectoryObject]]:
        """Return (identity, current enabled state, handle, pass-through value)."""
        if isinstance(account, str):
            identity = normalize_identity(account)
            record = self.aggregator.aggregate(identity, options, now=now)
            if not record.exists or record.directory_object is None:
                detail = str(record.failures[0]) if record.failures else "account not found"
                raise IdentityNotFoundError(identity, target, detail)
            return identity, record.enabled, record.directory_object, record

        if isinstance(account, AccountRecord):
            identity = account.account_name or account.distinguished_name
            if not account.exists or account.directory_object is None:
                raise IdentityNotFoundError(identity, target, "record does not reference a directory account")
            return identity, account.enabled, account.directory_object, account

        if isinstance(account, DirectoryObject):
            identity = account.account_name or account.distinguished_name
            return identity, account.enabled, account, account

        raise TypeError(f"Unsupported account type: {type(account).__name__}")

    def transition(
        self,
        target: Union[Transition, str],
        account: AccountTarget,
        options: Optional[DirectoryOptions] = None,
        *,
        pass_thru: bool = False,
        now: Optional[datetime] = None,
    ) -> TransitionResult:
        """Move ``account`` to the target state and verify it.

        Args:
            target: Transition.DISABLE / Transition.ENABLE (or "disable"/"enable")
            account: Identity string, AccountRecord or DirectoryObject handle
            options: Per-call server/credential (defaults to the controller's options)
            pass_thru: Return the affected record/handle instead of None
            now: Clock reading for password age on the aggregated records

        Returns:
            The verified AccountRecord (or the untouched account on a no-op)
            when ``pass_thru`` is set, else None

        Raises:
            IdentityNotFoundError: identity did not resolve
            MutationFailedError: directory update failed
            VerificationFailedError: post-update state differs from the target
        """
        target = Transition(target)
        options = options or self.options

        identity, current_enabled, handle, resolved = self._resolve(target, account, options, now)

        if current_enabled == target.target_enabled:
            logger.info(f"'{identity}' already {target.terminal_state}; no change made")
            return resolved if pass_thru else None

        kwargs = options.call_kwargs()
        logger.info(f"{target.value} '{identity}' ({handle.distinguished_name}) shape={options.call_shape.value}")
        try:
            self.client.set_enabled(handle, target.target_enabled, **kwargs)
        except DirectoryError as e:
            logger.error(f"{target.value} '{identity}' failed: {e}")
            raise MutationFailedError(identity, target, e) from e

        # Handles are re-read by DN, identity strings by the normalized identity
        verify_key = identity if isinstance(account, str) else handle.distinguished_name
        verified = self.aggregator.aggregate(verify_key, options, now=now)
        if not verified.exists:
            detail = str(verified.failures[0]) if verified.failures else ""
            raise VerificationFailedError(identity, target, None, detail)
        if verified.enabled != target.target_enabled:
            logger.error(f"{target.value} '{identity}' not reflected by directory (enabled={verified.enabled})")
            raise VerificationFailedError(identity, target, verified.enabled)

        logger.info(f"'{identity}' is now {target.terminal_state}")
        return verified if pass_thru else None

    def disable(self, account: AccountTarget, options: Optional[DirectoryOptions] = None, *, pass_thru: bool = False) -> TransitionResult:
        return self.transition(Transition.DISABLE, account, options, pass_thru=pass_thru)

    def enable(self, account: AccountTarget, options: Optional[DirectoryOptions] = None, *, pass_thru: bool = False) -> TransitionResult:
        return self.transition(Transition.ENABLE, account, options, pass_thru=pass_thru)


# ─────────────────────────────────────────────────────────────────────────────
# Standalone functions
# ─────────────────────────────────────────────────────────────────────────────

def transition(
    client: DirectoryClient,
    target: Union[Transition, str],
    account: AccountTarget,
    options: Optional[DirectoryOptions] = None,
    *,
    pass_thru: bool = False,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Apply a lifecycle transition (see LifecycleController.transition)."""
    return LifecycleController(client, options).transition(target, account, pass_thru=pass_thru, now=now)


def disable_account(
    client: DirectoryClient,
    account: AccountTarget,
    options: Optional[DirectoryOptions] = None,
    *,
    pass_thru: bool = False,
) -> TransitionResult:
    """Disable (leaver) an account and verify the directory shows it disabled."""
    return transition(client, Transition.DISABLE, account, options, pass_thru=pass_thru)


def enable_account(
    client: DirectoryClient,
    account: AccountTarget,
    options: Optional[DirectoryOptions] = None,
    *,
    pass_thru: bool = False,
) -> TransitionResult:
    """Re-enable an account and verify the directory shows it enabled."""
    return transition(client, Transition.ENABLE, account, options, pass_thru=pass_thru)
