"""Directory client library.

This package provides the narrow directory interface the core depends on,
and an ldap3-backed Active Directory implementation of it.

Architecture:
- client.py: DirectoryClient protocol and LdapDirectoryClient
- entries.py: DirectoryObject / DirectoryGroup and AD attribute decoding
- exceptions.py: Typed exceptions for error handling

Usage:
    from directory_accounts.core.directory import LdapDirectoryClient

    client = LdapDirectoryClient("dc01.example.com", "DC=example,DC=com")
    obj = client.lookup_by_identity("alice")
"""
from .client import (
    DirectoryClient,
    LdapDirectoryClient,
    looks_like_dn,
)
from .entries import (
    DirectoryGroup,
    DirectoryObject,
    filetime_to_datetime,
    group_from_attributes,
    object_from_attributes,
)
from .exceptions import (
    AccountNotFoundError,
    DirectoryConnectionError,
    DirectoryError,
    DirectoryLookupError,
    DirectoryMutationError,
)

__all__ = [
    # Client
    "DirectoryClient",
    "LdapDirectoryClient",
    "looks_like_dn",

    # Entries
    "DirectoryObject",
    "DirectoryGroup",
    "filetime_to_datetime",
    "object_from_attributes",
    "group_from_attributes",

    # Exceptions
    "DirectoryError",
    "DirectoryConnectionError",
    "DirectoryLookupError",
    "AccountNotFoundError",
    "DirectoryMutationError",
]
