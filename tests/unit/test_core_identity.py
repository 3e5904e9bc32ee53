import pytest

from directory_accounts.core.identity import normalize_identity


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("CORP\\alice", "alice"),
        ("example.com\\bob.smith", "bob.smith"),
        ("\\carol", "carol"),
        ("CORP\\", ""),
    ],
)
def test_domain_qualifier_is_stripped(raw, expected):
    assert normalize_identity(raw) == expected


def test_only_first_delimiter_is_significant():
    assert normalize_identity("CORP\\odd\\name") == "odd\\name"


@pytest.mark.parametrize("raw", ["alice", "alice@example.com", "CN=Bob,OU=Sales,DC=example,DC=com", ""])
def test_unqualified_identity_is_unchanged(raw):
    assert normalize_identity(raw) == raw


@pytest.mark.parametrize(
    "raw",
    [
        "CN=Smith\\, Bob,OU=Sales,OU=Corp,DC=example,DC=com",
        "CN=Bob,OU=R\\+D,DC=example,DC=com",
        "cn=O\\'Brien,dc=example,dc=com",
    ],
)
def test_escaped_distinguished_name_is_unchanged(raw):
    assert normalize_identity(raw) == raw
