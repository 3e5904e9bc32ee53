"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the Flask application with its blueprints, error handlers, the directory
client and the process-wide directory options.
"""
from __future__ import annotations
import logging
import os
from typing import Optional

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from directory_accounts.config import DirectoryConfig, load_settings
from directory_accounts.core.directory import DirectoryClient, LdapDirectoryClient
from directory_accounts.core.options import DirectoryOptions


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(cfg: Optional[DirectoryConfig] = None, client: Optional[DirectoryClient] = None) -> Flask:
    """Create and configure Flask application.

    Args:
        cfg: Configuration (loaded from the environment when omitted)
        client: Directory client (an LdapDirectoryClient built from cfg when omitted)
    """
    cfg = cfg or load_settings()

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["DEMO_MODE"] = cfg.demo_mode

    # Directory wiring: defaults are resolved once here, never read globally by the core
    app.config["DIRECTORY_CLIENT"] = client or LdapDirectoryClient.from_config(cfg)
    app.config["DIRECTORY_OPTIONS"] = DirectoryOptions.from_config(cfg)

    # Trust X-Forwarded-* headers from proxy (nginx)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    # No-op when the root logger is already configured (gunicorn, pytest)
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register blueprints
    from directory_accounts.api import accounts, errors, health

    app.register_blueprint(health.bp)
    app.register_blueprint(accounts.bp, url_prefix="/api")

    # Register error handlers
    errors.register_error_handlers(app)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    print(f"[flask_app] Mode={mode_label}")
    print("[flask_app] Accounts API registered at /api/accounts")

    if cfg.demo_mode and not cfg.api_token:
        print("[flask_app] WARNING: No ACCOUNTS_API_TOKEN set - API is unauthenticated in demo mode")

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
