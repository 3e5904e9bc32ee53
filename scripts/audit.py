"""Signed audit trail for account disable/enable transitions.

Each line of ``lifecycle-events.jsonl`` is one LifecycleEvent rendered as
JSON plus an HMAC-SHA256 ``signature`` over its canonical form. Events
record the outcome of the transition itself: whether the directory was
changed, the enabled state observed afterwards, and on failure the error
class the lifecycle controller raised.
"""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import os
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from directory_accounts.core.lifecycle import Transition, TransitionError, VerificationFailedError

AUDIT_LOG_DIR = Path(os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"))
AUDIT_LOG_FILE = AUDIT_LOG_DIR / "lifecycle-events.jsonl"
_default_secret_paths: list[Path] = [
    Path(".runtime/secrets/audit_log_signing_key"),
    Path(".runtime/audit/audit_log_signing_key"),
]


def _get_signing_key() -> bytes:
    """Get the audit signing key from environment, then local secret files."""
    if "AUDIT_LOG_SIGNING_KEY" in os.environ:
        return os.environ.get("AUDIT_LOG_SIGNING_KEY", "").strip().encode("utf-8")
    for path in _default_secret_paths:
        if path.exists():
            try:
                return path.read_text(encoding="utf-8").strip().encode("utf-8")
            except OSError:
                continue
    return b""


def _utc_now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@dataclass
class LifecycleEvent:
    """One disable/enable attempt as written to the audit trail."""
    transition: str
    identity: str
    operator: str = "system"
    server: Optional[str] = None
    changed: bool = False
    success: bool = True
    distinguished_name: str = ""
    observed_enabled: Optional[bool] = None
    error_type: Optional[str] = None
    error: Optional[str] = None
    timestamp: str = field(default_factory=_utc_now)

    @property
    def event_type(self) -> str:
        """``disable``/``enable``, or ``*_noop`` when a success changed nothing."""
        if self.success and not self.changed:
            return f"{self.transition}_noop"
        return self.transition

    @classmethod
    def from_result(
        cls,
        target: Transition,
        result,
        *,
        changed: bool,
        operator: str = "system",
        server: Optional[str] = None,
    ) -> "LifecycleEvent":
        """Event for a completed transition; ``result`` is the record or handle returned."""
        return cls(
            transition=target.value,
            identity=result.account_name or result.distinguished_name,
            operator=operator,
            server=server,
            changed=changed,
            success=True,
            distinguished_name=result.distinguished_name,
            observed_enabled=result.enabled,
        )

    @classmethod
    def from_error(
        cls,
        error: TransitionError,
        *,
        operator: str = "system",
        server: Optional[str] = None,
    ) -> "LifecycleEvent":
        """Event for a failed transition.

        A verification failure means the write went through, so the event
        is marked changed and carries the state the directory reported.
        """
        verification = isinstance(error, VerificationFailedError)
        return cls(
            transition=error.target.value,
            identity=error.identity,
            operator=operator,
            server=server,
            changed=verification,
            success=False,
            observed_enabled=error.observed_enabled if verification else None,
            error_type=type(error).__name__,
            error=error.message,
        )

    def to_dict(self) -> dict[str, Any]:
        body = asdict(self)
        body["event_type"] = self.event_type
        return body


def _canonical(body: dict[str, Any]) -> bytes:
    return json.dumps(body, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _signature(body: dict[str, Any], key: bytes) -> str:
    return hmac.new(key, _canonical(body), hashlib.sha256).hexdigest()


def log_lifecycle_event(event: LifecycleEvent) -> dict[str, Any]:
    """Append ``event`` to the audit trail and return the line as written.

    The directory is created 0700 and the file kept at 0600. Without a
    signing key the event is written unsigned.
    """
    AUDIT_LOG_DIR.mkdir(parents=True, exist_ok=True)
    AUDIT_LOG_DIR.chmod(0o700)

    body = event.to_dict()
    key = _get_signing_key()
    if key:
        body["signature"] = _signature(body, key)

    with AUDIT_LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(body, ensure_ascii=False) + "\n")
    AUDIT_LOG_FILE.chmod(0o600)
    return body


def safe_log_lifecycle_event(event: LifecycleEvent) -> bool:
    """Log ``event``, reporting failures on stderr instead of raising.

    Returns:
        True if event was logged successfully, False if logging failed
    """
    try:
        log_lifecycle_event(event)
        return True
    except (OSError, TypeError, ValueError) as e:
        print(
            f"[audit] Warning: Failed to log {event.event_type} event for {event.identity}: {e}",
            file=sys.stderr,
        )
        return False


def iter_audit_log() -> Iterator[tuple[Optional[dict[str, Any]], bool]]:
    """Yield ``(event, signature_valid)`` per line; unparseable lines yield ``(None, False)``."""
    if not AUDIT_LOG_FILE.exists():
        return

    key = _get_signing_key()
    with AUDIT_LOG_FILE.open("r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            try:
                body = json.loads(line)
            except json.JSONDecodeError:
                yield None, False
                continue
            stored = body.pop("signature", "")
            valid = bool(key and stored) and hmac.compare_digest(stored, _signature(body, key))
            yield body, valid


def verify_audit_log() -> tuple[int, int]:
    """Verify all signatures in the audit log.

    Returns:
        Tuple of (total_events, valid_signatures)
    """
    results = [valid for _, valid in iter_audit_log()]
    return len(results), sum(results)


if __name__ == "__main__":
    total, valid = verify_audit_log()
    print(f"Audit log: {valid}/{total} events with valid signatures")
    sys.exit(0 if total == valid else 1)
