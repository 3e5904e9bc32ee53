"""Directory object representations and Active Directory attribute decoding."""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

# userAccountControl / msDS-User-Account-Control-Computed flags
UAC_ACCOUNTDISABLE = 0x2
UAC_LOCKOUT = 0x10
UAC_PASSWORD_EXPIRED = 0x800000

# groupType flags
GROUP_TYPE_GLOBAL = 0x2
GROUP_TYPE_DOMAIN_LOCAL = 0x4
GROUP_TYPE_UNIVERSAL = 0x8
GROUP_TYPE_SECURITY = 0x80000000

FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)
FILETIME_NEVER = 0x7FFFFFFFFFFFFFFF

USER_ATTRIBUTES = [
    "name",
    "sAMAccountName",
    "title",
    "mail",
    "userAccountControl",
    "msDS-User-Account-Control-Computed",
    "pwdLastSet",
    "manager",
    "memberOf",
    "distinguishedName",
]

GROUP_ATTRIBUTES = ["name", "sAMAccountName", "distinguishedName", "groupType"]


@dataclass(frozen=True)
class DirectoryObject:
    """A resolved user object, as read from the directory."""
    distinguished_name: str
    name: str = ""
    account_name: str = ""
    title: str = ""
    email: str = ""
    enabled: bool = False
    locked_out: bool = False
    password_expired: bool = False
    password_last_set: Any = None
    manager_reference: Optional[str] = None
    membership_references: List[str] = field(default_factory=list)
    user_account_control: int = 0


@dataclass(frozen=True)
class DirectoryGroup:
    """A resolved group object."""
    distinguished_name: str
    name: str = ""
    account_name: str = ""
    group_type: int = 0

    @property
    def category(self) -> str:
        return "Security" if self.group_type & GROUP_TYPE_SECURITY else "Distribution"

    @property
    def scope(self) -> str:
        if self.group_type & GROUP_TYPE_UNIVERSAL:
            return "Universal"
        if self.group_type & GROUP_TYPE_DOMAIN_LOCAL:
            return "DomainLocal"
        if self.group_type & GROUP_TYPE_GLOBAL:
            return "Global"
        return ""


def _lower_keys(attributes: Dict[str, Any]) -> Dict[str, Any]:
    return {key.lower(): value for key, value in attributes.items()}


def _first(attributes: Dict[str, Any], key: str, default: Any = None) -> Any:
    """Return the first value of a (possibly multi-valued) attribute."""
    value = attributes.get(key.lower(), default)
    if isinstance(value, (list, tuple)):
        return value[0] if value else default
    return value if value is not None else default


def _all(attributes: Dict[str, Any], key: str) -> List[Any]:
    value = attributes.get(key.lower())
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _as_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def decode_group_type(value: Any) -> int:
    """Return groupType as an unsigned 32-bit value (AD stores it signed)."""
    return _as_int(value) & 0xFFFFFFFF


def filetime_to_datetime(value: Any) -> Any:
    """Convert a pwdLastSet value to an aware UTC datetime.

    Accepts the raw FILETIME integer (100ns ticks since 1601-01-01) or a
    datetime already formatted by ldap3. Zero and the 1601 epoch mean
    "no timestamp on record" and become None. Values that are neither,
    or tick counts past year 9999, are returned unchanged.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        if value <= FILETIME_EPOCH:
            return None
        return value
    if isinstance(value, (int, str, bytes)):
        ticks = _as_int(value, default=-1)
        if ticks < 0:
            return value
        if ticks in (0, FILETIME_NEVER):
            return None
        try:
            return FILETIME_EPOCH + timedelta(microseconds=ticks // 10)
        except OverflowError:
            return value
    return value


def object_from_attributes(attributes: Dict[str, Any]) -> DirectoryObject:
    """Build a DirectoryObject from an LDAP attribute mapping."""
    attrs = _lower_keys(attributes)
    uac = _as_int(_first(attrs, "userAccountControl"))
    computed = _as_int(_first(attrs, "msDS-User-Account-Control-Computed"))
    manager = _first(attrs, "manager")
    return DirectoryObject(
        distinguished_name=str(_first(attrs, "distinguishedName", "")),
        name=str(_first(attrs, "name", "")),
        account_name=str(_first(attrs, "sAMAccountName", "")),
        title=str(_first(attrs, "title", "")),
        email=str(_first(attrs, "mail", "")),
        enabled=not (uac & UAC_ACCOUNTDISABLE),
        locked_out=bool(computed & UAC_LOCKOUT),
        password_expired=bool(computed & UAC_PASSWORD_EXPIRED),
        password_last_set=filetime_to_datetime(_first(attrs, "pwdLastSet")),
        manager_reference=str(manager) if manager else None,
        membership_references=[str(ref) for ref in _all(attrs, "memberOf")],
        user_account_control=uac,
    )


def group_from_attributes(attributes: Dict[str, Any]) -> DirectoryGroup:
    """Build a DirectoryGroup from an LDAP attribute mapping."""
    attrs = _lower_keys(attributes)
    return DirectoryGroup(
        distinguished_name=str(_first(attrs, "distinguishedName", "")),
        name=str(_first(attrs, "name", "")),
        account_name=str(_first(attrs, "sAMAccountName", "")),
        group_type=decode_group_type(_first(attrs, "groupType")),
    )
