"""Database subsystem for edelivery.

Public API::

    from edelivery.db import init_database, UnitOfWork
"""

from edelivery.db.init import init_database
from edelivery.db.unit_of_work import UnitOfWork

__all__ = [
    "UnitOfWork",
    "init_database",
]
