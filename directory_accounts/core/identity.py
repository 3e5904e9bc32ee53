"""Identity token normalization."""
from __future__ import annotations

DOMAIN_DELIMITER = "\\"


def normalize_identity(raw: str) -> str:
    """Strip a ``DOMAIN\\`` qualifier from an identity token.

    ``CORP\\alice`` becomes ``alice``. Tokens without a qualifier are
    returned unchanged. Only the first delimiter is significant.

    A backslash after an ``=`` or ``,`` is a DN escape
    (``CN=Smith\\, Bob,OU=Sales,...``), not a qualifier, and the token is
    left alone.
    """
    qualifier, sep, rest = raw.partition(DOMAIN_DELIMITER)
    if not sep or "=" in qualifier or "," in qualifier:
        return raw
    return rest
