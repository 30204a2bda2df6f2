"""Logging subsystem for edelivery.

Public API::

    from edelivery.logging import configure_logging

    configure_logging(settings.logging)
"""

from edelivery.logging.setup import configure_logging

__all__ = ["configure_logging"]
