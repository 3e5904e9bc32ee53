"""Directory client protocol and its LDAP (Active Directory) implementation.

Handles connection, bind, identity resolution and account-state writes.
"""
from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Protocol, Sequence

from ldap3 import ANONYMOUS, BASE, MODIFY_REPLACE, NONE, NTLM, SIMPLE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from ..options import DirectoryCredential
from .entries import (
    GROUP_ATTRIBUTES,
    UAC_ACCOUNTDISABLE,
    USER_ATTRIBUTES,
    DirectoryGroup,
    DirectoryObject,
    group_from_attributes,
    object_from_attributes,
)
from .exceptions import (
    AccountNotFoundError,
    DirectoryConnectionError,
    DirectoryLookupError,
    DirectoryMutationError,
)

logger = logging.getLogger(__name__)

USER_FILTER = "(&(objectCategory=person)(objectClass=user)({attribute}={value}))"


class DirectoryClient(Protocol):
    """Operations the aggregator and the lifecycle controller rely on.

    Every operation accepts optional ``server`` and ``credential`` keyword
    arguments; omitting them means "use the client's own defaults".
    """

    def lookup_by_identity(
        self,
        identity: str,
        *,
        server: Optional[str] = None,
        credential: Optional[DirectoryCredential] = None,
    ) -> DirectoryObject: ...

    def lookup_by_reference(
        self,
        reference: str,
        *,
        server: Optional[str] = None,
        credential: Optional[DirectoryCredential] = None,
    ) -> DirectoryObject: ...

    def lookup_groups_by_references(
        self,
        references: Sequence[str],
        *,
        server: Optional[str] = None,
        credential: Optional[DirectoryCredential] = None,
    ) -> List[DirectoryGroup]: ...

    def set_enabled(
        self,
        handle: DirectoryObject,
        enabled: bool,
        *,
        server: Optional[str] = None,
        credential: Optional[DirectoryCredential] = None,
    ) -> None: ...


def looks_like_dn(identity: str) -> bool:
    """True when the identity is a distinguished name rather than an account name."""
    head = identity.split(",", 1)[0]
    return "," in identity and "=" in head


class LdapDirectoryClient:
    """Active Directory client over LDAP (ldap3).

    A connection is opened and bound for each operation and always unbound
    afterwards; nothing is cached between calls.

    Usage:
        client = LdapDirectoryClient("dc01.example.com", "DC=example,DC=com",
                                     credential=DirectoryCredential("EXAMPLE\\svc", "secret"))
        obj = client.lookup_by_identity("alice")
    """

    def __init__(
        self,
        server: str,
        search_base: str,
        *,
        port: Optional[int] = None,
        use_ssl: bool = False,
        credential: Optional[DirectoryCredential] = None,
        connect_timeout: int = 5,
        receive_timeout: int = 15,
    ):
        """Initialize LDAP client.

        Args:
            server: Default directory host (domain controller)
            search_base: Base DN for identity searches
            port: LDAP port (defaults to 636 with SSL, 389 otherwise)
            use_ssl: Use LDAPS
            credential: Default bind identity (anonymous bind when None)
            connect_timeout: Socket connect timeout in seconds
            receive_timeout: Response timeout in seconds
        """
        self.server = server
        self.search_base = search_base
        self.port = port or (636 if use_ssl else 389)
        self.use_ssl = use_ssl
        self.credential = credential
        self.connect_timeout = connect_timeout
        self.receive_timeout = receive_timeout

    @classmethod
    def from_config(cls, cfg) -> "LdapDirectoryClient":
        """Create a client from a DirectoryConfig."""
        credential = None
        if cfg.has_bind_credential:
            credential = DirectoryCredential(cfg.bind_user, cfg.bind_password)
        return cls(
            cfg.ldap_server,
            cfg.ldap_search_base,
            port=cfg.ldap_port,
            use_ssl=cfg.ldap_use_ssl,
            credential=credential,
            connect_timeout=cfg.connect_timeout,
            receive_timeout=cfg.receive_timeout,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Connection handling
    # ─────────────────────────────────────────────────────────────────────

    @contextmanager
    def _connect(
        self,
        server: Optional[str] = None,
        credential: Optional[DirectoryCredential] = None,
    ) -> Iterator[Connection]:
        """Open and bind a connection, unbinding it on exit."""
        host = server or self.server
        credential = credential or self.credential

        if credential is None:
            auth_kwargs = {"authentication": ANONYMOUS}
        else:
            # DOMAIN\user binds need NTLM; DNs and UPNs use a simple bind
            authentication = NTLM if "\\" in credential.user else SIMPLE
            auth_kwargs = {
                "user": credential.user,
                "password": credential.password,
                "authentication": authentication,
            }

        try:
            ldap_server = Server(
                host,
                port=self.port,
                use_ssl=self.use_ssl,
                get_info=NONE,
                connect_timeout=self.connect_timeout,
            )
            conn = Connection(
                ldap_server,
                auto_bind=True,
                receive_timeout=self.receive_timeout,
                **auth_kwargs,
            )
        except LDAPException as e:
            raise DirectoryConnectionError(f"Failed to bind to {host}:{self.port}: {e}") from e

        try:
            yield conn
        finally:
            conn.unbind()

    @staticmethod
    def _result_message(conn: Connection) -> str:
        result = conn.result or {}
        description = result.get("description") or "error"
        message = result.get("message") or ""
        return f"{description} {message}".strip()

    @staticmethod
    def _entry_attributes(entry) -> dict:
        attributes = dict(entry.entry_attributes_as_dict)
        if not attributes.get("distinguishedName"):
            attributes["distinguishedName"] = [entry.entry_dn]
        return attributes

    def _read_base(self, conn: Connection, dn: str, attributes: List[str]) -> Optional[dict]:
        """Read a single object by DN; None when the DN does not resolve."""
        found = conn.search(dn, "(objectClass=*)", search_scope=BASE, attributes=attributes)
        if not found or not conn.entries:
            return None
        return self._entry_attributes(conn.entries[0])

    # ─────────────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────────────

    def lookup_by_identity(
        self,
        identity: str,
        *,
        server: Optional[str] = None,
        credential: Optional[DirectoryCredential] = None,
    ) -> DirectoryObject:
        """Resolve a sAMAccountName, UPN or DN to a user object.

        Raises:
            AccountNotFoundError: No matching user
            DirectoryLookupError: Ambiguous match or LDAP failure
            DirectoryConnectionError: Bind failed
        """
        if looks_like_dn(identity):
            return self.lookup_by_reference(identity, server=server, credential=credential)

        attribute = "userPrincipalName" if "@" in identity else "sAMAccountName"
        search_filter = USER_FILTER.format(attribute=attribute, value=escape_filter_chars(identity))

        with self._connect(server, credential) as conn:
            try:
                conn.search(self.search_base, search_filter, search_scope=SUBTREE, attributes=USER_ATTRIBUTES)
            except LDAPException as e:
                raise DirectoryLookupError(identity, str(e)) from e
            entries = list(conn.entries)

        if not entries:
            raise AccountNotFoundError(identity, f"no user found under '{self.search_base}'")
        if len(entries) > 1:
            raise DirectoryLookupError(identity, f"{len(entries)} users matched, expected one")

        logger.debug(f"Resolved '{identity}' to {entries[0].entry_dn}")
        return object_from_attributes(self._entry_attributes(entries[0]))

    def lookup_by_reference(
        self,
        reference: str,
        *,
        server: Optional[str] = None,
        credential: Optional[DirectoryCredential] = None,
    ) -> DirectoryObject:
        """Resolve a distinguished name (e.g. a manager reference) to a user object."""
        with self._connect(server, credential) as conn:
            try:
                attributes = self._read_base(conn, reference, USER_ATTRIBUTES)
            except LDAPException as e:
                raise DirectoryLookupError(reference, str(e)) from e
            if attributes is None:
                raise AccountNotFoundError(reference, self._result_message(conn))
        return object_from_attributes(attributes)

    def lookup_groups_by_references(
        self,
        references: Sequence[str],
        *,
        server: Optional[str] = None,
        credential: Optional[DirectoryCredential] = None,
    ) -> List[DirectoryGroup]:
        """Resolve group DNs, in the given order. Any unresolvable DN fails the whole call."""
        if not references:
            return []

        groups: List[DirectoryGroup] = []
        with self._connect(server, credential) as conn:
            for reference in references:
                try:
                    attributes = self._read_base(conn, reference, GROUP_ATTRIBUTES)
                except LDAPException as e:
                    raise DirectoryLookupError(reference, str(e)) from e
                if attributes is None:
                    raise DirectoryLookupError(reference, self._result_message(conn))
                groups.append(group_from_attributes(attributes))
        return groups

    # ─────────────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────────────

    def set_enabled(
        self,
        handle: DirectoryObject,
        enabled: bool,
        *,
        server: Optional[str] = None,
        credential: Optional[DirectoryCredential] = None,
    ) -> None:
        """Set or clear ACCOUNTDISABLE on the object's userAccountControl.

        The current value is re-read inside the same connection so other
        flag bits are preserved even when the handle is stale.

        Raises:
            DirectoryMutationError: Read-back or modify failed
            DirectoryConnectionError: Bind failed
        """
        dn = handle.distinguished_name
        with self._connect(server, credential) as conn:
            try:
                attributes = self._read_base(conn, dn, ["userAccountControl"])
                if attributes is None:
                    raise DirectoryMutationError(dn, self._result_message(conn))
                current = object_from_attributes(attributes).user_account_control
                if enabled:
                    desired = current & ~UAC_ACCOUNTDISABLE
                else:
                    desired = current | UAC_ACCOUNTDISABLE
                if desired == current:
                    logger.info(f"userAccountControl already {current} for {dn}")
                    return
                ok = conn.modify(dn, {"userAccountControl": [(MODIFY_REPLACE, [str(desired)])]})
            except LDAPException as e:
                raise DirectoryMutationError(dn, str(e)) from e

            if not ok:
                raise DirectoryMutationError(dn, self._result_message(conn))

        logger.info(f"userAccountControl {current} -> {desired} for {dn}")
