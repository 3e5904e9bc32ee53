"""
Account Aggregator: composite identity records

Builds one AccountRecord per identity by querying the directory client in
sequence:

    identity ──> normalize ──> primary lookup ──> manager lookup ──> group lookup ──> OU parse

Only the primary lookup is load-bearing: when it fails the record comes
back with ``exists=False``. Manager and group lookups degrade gracefully;
their failures are logged and accumulated in ``record.failures``.
Directory errors never propagate out of ``aggregate``.
"""

from __future__ import annotations
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Tuple

from ldap3.core.exceptions import LDAPInvalidDnError
from ldap3.utils.dn import parse_dn

from .directory import DirectoryClient, DirectoryError, DirectoryObject
from .identity import normalize_identity
from .options import DirectoryOptions
from .records import AccountRecord, GroupRecord, LookupFailure, LookupPhase

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


# ─────────────────────────────────────────────────────────────────────────────
# Pure helpers
# ─────────────────────────────────────────────────────────────────────────────

_RDN_ESCAPE = re.compile(r"\\([0-9A-Fa-f]{2}|.)")


def _unescape_rdn_value(value: str) -> str:
    """Undo RFC 4514 escapes (``\\,`` and ``\\2C`` both become ``,``)."""
    return _RDN_ESCAPE.sub(
        lambda m: chr(int(m.group(1), 16)) if len(m.group(1)) == 2 else m.group(1),
        value,
    )


def parse_org_units(distinguished_name: str) -> Tuple[str, ...]:
    """Extract OU names from a DN, nearest parent first.

    >>> parse_org_units("CN=Bob,OU=Sales,OU=Corp,DC=example,DC=com")
    ('Sales', 'Corp')
    """
    if not distinguished_name:
        return ()
    try:
        components = parse_dn(distinguished_name, strip=True)
    except LDAPInvalidDnError:
        logger.warning(f"Cannot parse OUs from malformed DN '{distinguished_name}'")
        return ()
    return tuple(
        _unescape_rdn_value(value)
        for attribute, value, _ in components
        if attribute.strip().upper() == "OU"
    )


def compute_password_age(password_last_set: Any, now: datetime) -> Any:
    """Whole days since the password was last set.

    Only a datetime is converted; anything else (None when the directory has
    no timestamp on record) is passed through unchanged so "unknown" is never
    reported as zero days. Naive datetimes are taken as UTC.
    """
    if not isinstance(password_last_set, datetime):
        return password_last_set
    if password_last_set.tzinfo is None:
        password_last_set = password_last_set.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - password_last_set) // ONE_DAY


def _basic_fields(obj: DirectoryObject, now: datetime) -> dict:
    return {
        "name": obj.name,
        "account_name": obj.account_name,
        "title": obj.title,
        "email": obj.email,
        "exists": True,
        "enabled": obj.enabled,
        "locked_out": obj.locked_out,
        "password_expired": obj.password_expired,
        "password_age_days": compute_password_age(obj.password_last_set, now),
        "org_units": parse_org_units(obj.distinguished_name),
        "directory_object": obj,
    }


# ─────────────────────────────────────────────────────────────────────────────
# Aggregator
# ─────────────────────────────────────────────────────────────────────────────

class AccountAggregator:
    """Builds AccountRecords through a directory client."""

    def __init__(self, client: DirectoryClient):
        """Initialize aggregator.

        Args:
            client: Any object implementing the DirectoryClient protocol
        """
        self.client = client

    def aggregate(
        self,
        identity: str,
        options: Optional[DirectoryOptions] = None,
        *,
        now: Optional[datetime] = None,
    ) -> AccountRecord:
        """Resolve ``identity`` into a composite AccountRecord.

        Args:
            identity: sAMAccountName, DOMAIN\\name, UPN or DN
            options: Server/credential for every lookup of this call
            now: Clock reading used for the password age (defaults to UTC now)

        Returns:
            AccountRecord; check ``exists`` and ``failures`` for partial results
        """
        options = options or DirectoryOptions()
        kwargs = options.call_kwargs()
        now = now or datetime.now(timezone.utc)
        account = normalize_identity(identity)
        failures: List[LookupFailure] = []

        # Primary lookup (fatal for this call)
        try:
            obj = self.client.lookup_by_identity(account, **kwargs)
        except DirectoryError as e:
            logger.warning(f"Account lookup failed for '{account}': {e}")
            failures.append(LookupFailure(LookupPhase.PRIMARY, account, e))
            return AccountRecord(failures=tuple(failures))

        fields = _basic_fields(obj, now)

        # Manager (best effort, falls back to the raw reference)
        manager: Any = None
        if obj.manager_reference:
            try:
                manager_obj = self.client.lookup_by_reference(obj.manager_reference, **kwargs)
                manager = AccountRecord(**_basic_fields(manager_obj, now))
            except DirectoryError as e:
                logger.warning(f"Manager lookup failed for '{account}' ({obj.manager_reference}): {e}")
                failures.append(LookupFailure(LookupPhase.MANAGER, obj.manager_reference, e))
                manager = obj.manager_reference

        # Groups (best effort, stays None on failure)
        groups: Optional[Tuple[GroupRecord, ...]] = None
        try:
            resolved = self.client.lookup_groups_by_references(list(obj.membership_references), **kwargs)
            groups = tuple(GroupRecord.from_directory(group) for group in resolved)
        except DirectoryError as e:
            logger.warning(f"Group membership lookup failed for '{account}': {e}")
            failures.append(LookupFailure(LookupPhase.GROUPS, account, e))

        return AccountRecord(
            manager=manager,
            groups=groups,
            failures=tuple(failures),
            **fields,
        )


def aggregate_account(
    client: DirectoryClient,
    identity: str,
    options: Optional[DirectoryOptions] = None,
    *,
    now: Optional[datetime] = None,
) -> AccountRecord:
    """Resolve ``identity`` into a composite AccountRecord (see AccountAggregator.aggregate)."""
    return AccountAggregator(client).aggregate(identity, options, now=now)
