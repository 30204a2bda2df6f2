"""Abstract interfaces for the external services edelivery consumes.

Each collaborator is injected through the dependency container so that
tests (and deployments) can substitute their own implementation:

* :class:`IdentityProvider`: bearer token → :class:`Principal`
* :class:`PaymentGateway`: payment reference → :class:`PaymentRecord`
* :class:`ObjectStore`: storage path + TTL → signed URL
* :class:`Catalog`: product id → file manifest

Implementations raise :class:`IntegrationError` for transport or
upstream failures and :class:`InvalidCredential` when a token is
rejected.  Services translate these to the HTTP error taxonomy.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

    from edelivery.models.principal import Principal
    from edelivery.models.product import FileDescriptor, Product

log = logging.getLogger(__name__)


class IntegrationError(Exception):
    """Raised by integration clients on upstream failure.

    Parameters
    ----------
    detail:
        Operator-facing description.  May include upstream status codes
        and response excerpts but never credentials.
    retryable:
        Whether the failure looks transient.  Nothing in edelivery
        retries automatically; startup checks tolerate retryable
        failures and abort on the others.

    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


class InvalidCredential(Exception):  # noqa: N818
    """The identity provider rejected the presented bearer token."""


@dataclass(frozen=True)
class PaymentRecord:
    """Authoritative payment state as reported by the gateway."""

    id: str
    status: str
    amount: int
    method: str | None = None
    paid_at: str | None = None
    fail_reason: str | None = None
    customer: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------


class IdentityProvider(abc.ABC):
    """Verifies bearer tokens."""

    def __init__(self, settings: Any) -> None:  # noqa: ANN401
        self.settings = settings

    @abc.abstractmethod
    def verify_token(self, token: str) -> Principal:
        """Return the principal for *token*.

        Raises
        ------
        InvalidCredential
            The token is malformed, expired or unknown.
        IntegrationError
            The provider could not be reached.

        """

    def startup_check(self) -> None:  # noqa: B027
        """Optional readiness check; default does nothing."""


class PaymentGateway(abc.ABC):
    """Fetches authoritative payment records."""

    def __init__(self, settings: Any) -> None:  # noqa: ANN401
        self.settings = settings

    @abc.abstractmethod
    def fetch_payment(self, payment_reference: str) -> PaymentRecord:
        """Return the gateway's record for *payment_reference*.

        Raises
        ------
        IntegrationError
            Token exchange or payment lookup failed.

        """


class ObjectStore(abc.ABC):
    """Issues time-limited signed URLs for stored objects."""

    def __init__(self, settings: Any) -> None:  # noqa: ANN401
        self.settings = settings

    @abc.abstractmethod
    def sign_url(self, storage_path: str, expires_in: int) -> str:
        """Return a signed GET URL for *storage_path* valid *expires_in* seconds.

        Raises
        ------
        IntegrationError
            The store rejected the request.

        """


class Catalog(abc.ABC):
    """Read-only access to product file manifests."""

    @abc.abstractmethod
    def get_product(self, product_id: str) -> Product | None:
        """Return the product, or ``None`` if the catalog has no such id."""

    @abc.abstractmethod
    def iter_products(self) -> Iterator[Product]:
        """Yield every product that carries at least one file."""

    def get_manifest(self, product_id: str) -> tuple[FileDescriptor, ...]:
        """Return *product_id*'s file manifest (empty when unknown)."""
        product = self.get_product(product_id)
        return product.files if product is not None else ()
