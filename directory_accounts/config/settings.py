"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            print(f"[settings] ✓ Loaded {env_var} from environment (fallback)")
            return secret_value

    return None


@dataclass
class DirectoryConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool

    # LDAP endpoint
    ldap_server: str = ""
    ldap_port: int = 389
    ldap_use_ssl: bool = False
    ldap_search_base: str = ""

    # Bind identity (empty bind_user means anonymous bind)
    bind_user: str = ""
    bind_password: str = ""

    # Timeouts (seconds), enforced by the LDAP client
    connect_timeout: int = 5
    receive_timeout: int = 15

    # HTTP API bearer token
    api_token: str = ""

    # Audit
    audit_log_signing_key: str = ""

    @property
    def has_bind_credential(self) -> bool:
        """True when a bind user is configured."""
        return bool(self.bind_user)


def _get_or_default(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        print(f"[demo-mode] Using default for {var_name}")
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def _get_int(var_name: str, default: int) -> int:
    """Read an integer environment variable, rejecting garbage early."""
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {var_name} must be an integer, got {raw!r}")


def load_settings() -> DirectoryConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"

    # ─────────────────────────────────────────────────────────────────────────
    # Secrets: /run/secrets > environment variables
    # ─────────────────────────────────────────────────────────────────────────
    bind_password = _load_secret_from_file("ldap_bind_password", "LDAP_BIND_PASSWORD") or ""
    api_token = _load_secret_from_file("accounts_api_token", "ACCOUNTS_API_TOKEN") or ""
    audit_log_signing_key = _load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY") or ""
    if audit_log_signing_key:
        os.environ["AUDIT_LOG_SIGNING_KEY"] = audit_log_signing_key

    # LDAP endpoint
    ldap_use_ssl = os.environ.get("LDAP_USE_SSL", "false").lower() == "true"
    ldap_server = _get_or_default("LDAP_SERVER", demo_default="localhost", demo_mode=demo_mode)
    ldap_port = _get_int("LDAP_PORT", 636 if ldap_use_ssl else 389)
    ldap_search_base = _get_or_default(
        "LDAP_SEARCH_BASE",
        demo_default="DC=example,DC=com",
        demo_mode=demo_mode,
    )

    bind_user = os.environ.get("LDAP_BIND_USER", "").strip()
    if bind_user and not bind_password and not demo_mode:
        raise RuntimeError("LDAP_BIND_USER is set but no bind password found in /run/secrets or environment")

    connect_timeout = _get_int("LDAP_CONNECT_TIMEOUT", 5)
    receive_timeout = _get_int("LDAP_RECEIVE_TIMEOUT", 15)

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; server={ldap_server}:{ldap_port}; base={ldap_search_base}")

    if demo_mode:
        print("[settings] WARNING: Demo defaults in use. Do not deploy with these defaults.")

    return DirectoryConfig(
        demo_mode=demo_mode,
        ldap_server=ldap_server,
        ldap_port=ldap_port,
        ldap_use_ssl=ldap_use_ssl,
        ldap_search_base=ldap_search_base,
        bind_user=bind_user,
        bind_password=bind_password,
        connect_timeout=connect_timeout,
        receive_timeout=receive_timeout,
        api_token=api_token,
        audit_log_signing_key=audit_log_signing_key,
    )
