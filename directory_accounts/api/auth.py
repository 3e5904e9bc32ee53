"""
Bearer token authentication for the accounts API.

The token is a static secret (ACCOUNTS_API_TOKEN or
/run/secrets/accounts_api_token). Without a configured token the API is
open in demo mode and closed otherwise.

Security:
- hmac.compare_digest for timing-attack resistance
- Only a truncated SHA-256 of the presented token is ever logged
"""

import hashlib
import hmac
import logging
from functools import wraps

from flask import current_app, g, jsonify, request

logger = logging.getLogger(__name__)


def _validate_token(provided_token: str) -> bool:
    """Constant-time comparison against the configured token."""
    cfg = current_app.config.get("APP_CONFIG")
    if not cfg or not cfg.api_token:
        return False
    return hmac.compare_digest(provided_token, cfg.api_token)


def _log_auth_attempt(token: str, success: bool) -> None:
    """Log authentication attempt without leaking the token."""
    token_hash = hashlib.sha256(token.encode()).hexdigest()[:12]
    correlation_id = request.headers.get("X-Correlation-Id", "none")
    client_ip = request.headers.get("X-Forwarded-For", request.remote_addr)

    status = "SUCCESS" if success else "FAILED"
    logger.info(
        f"{status} API auth | token_hash={token_hash} | path={request.path} | "
        f"correlation_id={correlation_id} | client_ip={client_ip}"
    )


def _unauthorized(message: str):
    response = jsonify({"error": "Unauthorized", "message": message})
    response.status_code = 401
    response.headers["WWW-Authenticate"] = 'Bearer realm="accounts"'
    return response


def require_api_token(fn):
    """Decorator enforcing ``Authorization: Bearer <token>`` on a route.

    Usage:
        @bp.route("/accounts/<identity>")
        @require_api_token
        def get_account(identity):
            ...
    """

    @wraps(fn)
    def wrapper(*args, **kwargs):
        cfg = current_app.config.get("APP_CONFIG")
        if cfg is not None and not cfg.api_token and cfg.demo_mode:
            g.api_operator = "demo"
            return fn(*args, **kwargs)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header:
            logger.warning("API request missing Authorization header")
            return _unauthorized("Missing Authorization header")

        if not auth_header.startswith("Bearer "):
            logger.warning("API request with invalid Authorization format")
            return _unauthorized("Authorization header must use Bearer scheme")

        token = auth_header[len("Bearer "):].strip()
        if not token:
            return _unauthorized("Empty Bearer token")

        ok = _validate_token(token)
        _log_auth_attempt(token, ok)
        if not ok:
            return _unauthorized("Invalid token")

        g.api_operator = request.headers.get("X-Operator", "api")
        return fn(*args, **kwargs)

    return wrapper
