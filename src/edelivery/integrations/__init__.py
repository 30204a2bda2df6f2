"""Clients for the external services edelivery depends on.

Public API::

    from edelivery.integrations import (
        IdentityProvider, PaymentGateway, ObjectStore, Catalog,
        IntegrationError, InvalidCredential, PaymentRecord,
    )
"""

from edelivery.integrations.base import (
    Catalog,
    IdentityProvider,
    IntegrationError,
    InvalidCredential,
    ObjectStore,
    PaymentGateway,
    PaymentRecord,
)

__all__ = [
    "Catalog",
    "IdentityProvider",
    "IntegrationError",
    "InvalidCredential",
    "ObjectStore",
    "PaymentGateway",
    "PaymentRecord",
]
