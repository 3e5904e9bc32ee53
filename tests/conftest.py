"""Pytest shared fixtures."""
import os
import pathlib
import sys

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")

import pytest

from tests.fakes import populated_client


@pytest.fixture
def fake_client():
    """Fake directory populated with bob, his manager alice, and two groups."""
    return populated_client()


@pytest.fixture
def temp_audit_dir(monkeypatch, tmp_path):
    """Isolated, signed audit trail for each test."""
    from scripts import audit

    audit_dir = tmp_path / "audit"
    audit_file = audit_dir / "lifecycle-events.jsonl"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_file)
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")
    return audit_dir, audit_file
