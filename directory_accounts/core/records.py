"""Composite account records returned by the aggregator."""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Tuple, Union

from .directory.entries import DirectoryGroup, DirectoryObject
from .directory.exceptions import DirectoryError


class LookupPhase(str, Enum):
    """Aggregation phase a lookup failure belongs to."""
    PRIMARY = "primary"
    MANAGER = "manager"
    GROUPS = "groups"


@dataclass(frozen=True)
class LookupFailure:
    """A directory lookup that failed while building a record."""
    phase: LookupPhase
    target: str
    cause: DirectoryError

    def __str__(self) -> str:
        return f"{self.phase.value} lookup failed for '{self.target}': {self.cause}"

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "target": self.target,
            "error": type(self.cause).__name__,
            "message": str(self.cause),
        }


@dataclass(frozen=True)
class GroupRecord:
    """A group the account is a direct member of."""
    name: str
    account_name: str
    distinguished_name: str
    category: str
    scope: str

    @classmethod
    def from_directory(cls, group: DirectoryGroup) -> "GroupRecord":
        return cls(
            name=group.name,
            account_name=group.account_name,
            distinguished_name=group.distinguished_name,
            category=group.category,
            scope=group.scope,
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "accountName": self.account_name,
            "distinguishedName": self.distinguished_name,
            "category": self.category,
            "scope": self.scope,
        }


@dataclass(frozen=True)
class AccountRecord:
    """Composite identity record for one account.

    ``exists`` is False until the primary lookup succeeds; in that case
    every other field keeps its default and ``failures`` holds the one
    primary-lookup failure.

    ``password_age_days`` is an int when the directory reported a
    last-set timestamp, otherwise the raw reported value (normally None).

    ``manager`` is an AccountRecord when the manager resolved, the raw
    manager DN when it did not, and None when the account has no manager.
    """
    name: str = ""
    account_name: str = ""
    title: str = ""
    email: str = ""
    exists: bool = False
    enabled: bool = False
    locked_out: bool = False
    password_expired: bool = False
    password_age_days: Any = None
    manager: Union["AccountRecord", str, None] = None
    org_units: Tuple[str, ...] = ()
    directory_object: Optional[DirectoryObject] = None
    groups: Optional[Tuple[GroupRecord, ...]] = None
    failures: Tuple[LookupFailure, ...] = ()

    @property
    def manager_resolved(self) -> bool:
        return isinstance(self.manager, AccountRecord)

    @property
    def manager_name(self) -> Optional[str]:
        """Manager display name when resolved, raw reference otherwise."""
        if isinstance(self.manager, AccountRecord):
            return self.manager.name
        return self.manager

    @property
    def distinguished_name(self) -> str:
        return self.directory_object.distinguished_name if self.directory_object else ""

    def to_dict(self) -> dict:
        """JSON-safe rendering used by the HTTP API and the CLI."""
        if isinstance(self.manager, AccountRecord):
            manager: Any = {
                "name": self.manager.name,
                "accountName": self.manager.account_name,
                "email": self.manager.email,
                "resolved": True,
            }
        elif self.manager is not None:
            manager = {"reference": self.manager, "resolved": False}
        else:
            manager = None

        password_age = self.password_age_days
        if isinstance(password_age, datetime):
            password_age = password_age.isoformat()
        elif password_age is not None and not isinstance(password_age, int):
            password_age = str(password_age)

        return {
            "name": self.name,
            "accountName": self.account_name,
            "title": self.title,
            "email": self.email,
            "exists": self.exists,
            "enabled": self.enabled,
            "lockedOut": self.locked_out,
            "passwordExpired": self.password_expired,
            "passwordAgeDays": password_age,
            "manager": manager,
            "orgUnits": list(self.org_units),
            "distinguishedName": self.distinguished_name,
            "groups": [group.to_dict() for group in self.groups] if self.groups is not None else None,
            "failures": [failure.to_dict() for failure in self.failures],
        }
