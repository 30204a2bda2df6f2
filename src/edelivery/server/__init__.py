"""WSGI serving: gunicorn runner and module-level ``app``."""
