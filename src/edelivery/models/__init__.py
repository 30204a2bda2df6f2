"""Entity models for the edelivery persistence layer.

All models are frozen dataclasses.  Use :func:`dataclasses.replace`
for modifications (copy-on-write).
"""

from edelivery.models.download import DownloadHistory
from edelivery.models.order import Order, OrderItem
from edelivery.models.principal import Principal
from edelivery.models.product import FileDescriptor, Product

__all__ = [
    "DownloadHistory",
    "FileDescriptor",
    "Order",
    "OrderItem",
    "Principal",
    "Product",
]
