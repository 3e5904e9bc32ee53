"""Per-call directory options and call-shape selection.

Every directory operation can be pointed at a specific server and run
under an alternate credential. Both are optional; the process boundary
(CLI entry point, Flask factory) builds one ``DirectoryOptions`` from
configuration and passes it down explicitly.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class DirectoryCredential:
    """Alternate bind identity for a directory call."""
    user: str
    password: str = ""

    def __repr__(self) -> str:
        # Never leak the password through logs or tracebacks
        return f"DirectoryCredential(user={self.user!r}, password='***')"


@dataclass(frozen=True)
class DirectoryOptions:
    """Server endpoint override and alternate credential for a call."""
    server: Optional[str] = None
    credential: Optional[DirectoryCredential] = None

    @classmethod
    def from_config(cls, cfg) -> "DirectoryOptions":
        """Build the process-wide default options from a DirectoryConfig."""
        credential = None
        if cfg.has_bind_credential:
            credential = DirectoryCredential(cfg.bind_user, cfg.bind_password)
        return cls(server=cfg.ldap_server or None, credential=credential)

    def merged_with(self, server: Optional[str] = None, credential: Optional[DirectoryCredential] = None) -> "DirectoryOptions":
        """Return options where explicit values win over these defaults."""
        return DirectoryOptions(
            server=server or self.server,
            credential=credential or self.credential,
        )

    @property
    def call_shape(self) -> "CallShape":
        return select_call_shape(self.server, self.credential)

    def call_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for a directory client call."""
        return self.call_shape.kwargs(self)


class CallShape(Enum):
    """The four supported (server, credential) combinations."""
    BOTH = "both"
    SERVER_ONLY = "server_only"
    CREDENTIAL_ONLY = "credential_only"
    NEITHER = "neither"

    def kwargs(self, options: DirectoryOptions) -> Dict[str, Any]:
        """Render exactly the keyword arguments this shape passes."""
        if self is CallShape.BOTH:
            return {"server": options.server, "credential": options.credential}
        if self is CallShape.SERVER_ONLY:
            return {"server": options.server}
        if self is CallShape.CREDENTIAL_ONLY:
            return {"credential": options.credential}
        return {}


def select_call_shape(server: Optional[str], credential: Optional[DirectoryCredential]) -> CallShape:
    """Pick the call shape from which of server/credential are present."""
    has_server = bool(server)
    has_credential = credential is not None
    if has_server and has_credential:
        return CallShape.BOTH
    if has_server:
        return CallShape.SERVER_ONLY
    if has_credential:
        return CallShape.CREDENTIAL_ONLY
    return CallShape.NEITHER
