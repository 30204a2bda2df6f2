"""Repository classes for the edelivery persistence layer.

Each repository extends :class:`pypgkit.BaseRepository` with custom
query methods for the edelivery domain.
"""

from edelivery.repositories.download_history import DownloadHistoryRepository
from edelivery.repositories.order import OrderRepository
from edelivery.repositories.product import ProductRepository

__all__ = [
    "DownloadHistoryRepository",
    "OrderRepository",
    "ProductRepository",
]
