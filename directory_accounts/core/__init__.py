"""Core Business Logic Module

This module provides the account aggregation and lifecycle logic,
independent of HTTP frameworks and of the LDAP transport.

Architecture:
    - Pure Python (no Flask dependencies in core logic)
    - Testable with fake directory clients, no LDAP server needed
    - Reusable across different interfaces (HTTP API, CLI)

Module Structure:
    - directory/     : Directory client protocol, LDAP implementation, exceptions
    - identity.py    : Identity token normalization (DOMAIN\\user -> user)
    - options.py     : Per-call server/credential options and call-shape selection
    - records.py     : AccountRecord, GroupRecord, LookupFailure
    - aggregator.py  : Composite account record construction
    - lifecycle.py   : Disable/enable transitions with verification

Usage Pattern:
    These modules are NOT auto-imported to keep the LDAP dependency out of
    code that only needs the records or the normalizer.

    Import explicitly when needed:
        from directory_accounts.core.aggregator import aggregate_account
        from directory_accounts.core.lifecycle import transition, Transition
        from directory_accounts.core.options import DirectoryOptions
"""
