"""Accounts API: composite account lookup and disable/enable transitions.

Architecture:
    /api/accounts/* -> core.aggregator / core.lifecycle -> DirectoryClient -> Active Directory

Every route requires a Bearer token (see api/auth.py). Transitions are
written to the audit trail whether they succeed or fail.
"""

from __future__ import annotations
import logging

from flask import Blueprint, current_app, g, jsonify, request

from directory_accounts.api.auth import require_api_token
from directory_accounts.core.aggregator import aggregate_account
from directory_accounts.core.lifecycle import LifecycleController, Transition, TransitionError
from directory_accounts.core.options import DirectoryOptions
from scripts import audit

bp = Blueprint("accounts", __name__)

logger = logging.getLogger(__name__)


def _client():
    client = current_app.config.get("DIRECTORY_CLIENT")
    if client is None:
        raise RuntimeError("DIRECTORY_CLIENT is not configured on the app")
    return client


def _options() -> DirectoryOptions:
    """Process-wide options, with an optional ?server= override."""
    defaults = current_app.config.get("DIRECTORY_OPTIONS") or DirectoryOptions()
    server = request.args.get("server", "").strip() or None
    return defaults.merged_with(server=server)


@bp.route("/accounts/<path:identity>", methods=["GET"])
@require_api_token
def get_account(identity: str):
    """Return the composite record for an identity."""
    record = aggregate_account(_client(), identity, _options())
    body = record.to_dict()
    if not record.exists:
        body["error"] = "Not Found"
        return jsonify(body), 404
    return jsonify(body), 200


def _run_transition(target: Transition, identity: str):
    options = _options()
    operator = g.get("api_operator", "api")
    client = _client()

    record = aggregate_account(client, identity, options)
    controller = LifecycleController(client, options)
    try:
        result = controller.transition(target, record if record.exists else identity, options, pass_thru=True)
    except TransitionError as e:
        audit.safe_log_lifecycle_event(audit.LifecycleEvent.from_error(e, operator=operator, server=options.server))
        raise

    changed = result is not record
    audit.safe_log_lifecycle_event(
        audit.LifecycleEvent.from_result(target, result, changed=changed, operator=operator, server=options.server)
    )
    return jsonify({"changed": changed, "state": target.terminal_state, "account": result.to_dict()}), 200


@bp.route("/accounts/<path:identity>/disable", methods=["POST"])
@require_api_token
def disable_account(identity: str):
    """Disable an account (idempotent)."""
    return _run_transition(Transition.DISABLE, identity)


@bp.route("/accounts/<path:identity>/enable", methods=["POST"])
@require_api_token
def enable_account(identity: str):
    """Enable an account (idempotent)."""
    return _run_transition(Transition.ENABLE, identity)
