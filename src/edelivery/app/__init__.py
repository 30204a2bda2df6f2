"""Flask application package for edelivery.

Public API::

    from edelivery.app import create_app
"""

from edelivery.app.factory import create_app

__all__ = ["create_app"]
