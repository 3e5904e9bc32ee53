"""HTTP API blueprints (health, accounts) and error handlers."""
