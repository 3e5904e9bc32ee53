"""Directory account aggregation and lifecycle package.

To use the Flask app:
    from directory_accounts.flask_app import create_app

To use the core without Flask:
    from directory_accounts.core.aggregator import aggregate_account
    from directory_accounts.core.lifecycle import transition, Transition
    from directory_accounts.core.directory import LdapDirectoryClient
"""
# Note: flask_app is not imported here so CLI scripts that only need the
# core and the LDAP client do not pull in Flask.
