"""Tests for health check endpoints."""
import pytest
from flask import Flask

from directory_accounts.api.health import bp as health_bp


@pytest.fixture()
def app():
    app = Flask(__name__)
    app.register_blueprint(health_bp)
    return app


def test_health_check(app):
    """Liveness does not depend on the directory."""
    response = app.test_client().get("/health")
    assert response.status_code == 200
    assert response.data == b"ok"
    assert response.content_type.startswith("text/plain")


def test_readiness_without_directory_client(app):
    response = app.test_client().get("/ready")
    assert response.status_code == 503
    assert response.content_type.startswith("text/plain")


def test_readiness_with_directory_client(app, fake_client):
    app.config["DIRECTORY_CLIENT"] = fake_client
    response = app.test_client().get("/ready")
    assert response.status_code == 200
    assert response.data == b"ready"
