"""Dependency injection container for edelivery.

Created once during application startup and stored on the Flask app
via ``app.extensions["container"]``.  Accessible from any request
context with :func:`get_container`.

Usage::

    from edelivery.app.context import get_container

    c = get_container()
    order = c.ledger.get(order_id, principal.id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from flask import current_app

from edelivery.integrations.base import IntegrationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pypgkit import Database

    from edelivery.config.settings import EdeliverySettings
    from edelivery.core.policy import AuthorizationPolicy
    from edelivery.integrations.base import (
        Catalog,
        IdentityProvider,
        ObjectStore,
        PaymentGateway,
    )
    from edelivery.repositories import OrderRepository
    from edelivery.services.download import DownloadHistoryRecorder, DownloadIssuer
    from edelivery.services.entitlement import EntitlementGuard
    from edelivery.services.order import OrderLedger
    from edelivery.services.payment import PaymentReconciler
    from edelivery.services.sales import SalesStatisticsService

log = logging.getLogger(__name__)


class Container:
    """Application-wide dependency container.

    Holds a reference to the :class:`Database` singleton, the
    repositories, the external-service clients selected by config, and
    the services built on top of them.  Every collaborator can be
    replaced by passing it explicitly (tests pass fakes).
    """

    def __init__(  # noqa: PLR0913
        self,
        db: Database,
        settings: EdeliverySettings,
        *,
        identity: IdentityProvider | None = None,
        gateway: PaymentGateway | None = None,
        store: ObjectStore | None = None,
        catalog: Catalog | None = None,
    ) -> None:
        from edelivery.core.policy import AuthorizationPolicy as _AP  # noqa: N814, PLC0415
        from edelivery.integrations import registry  # noqa: PLC0415
        from edelivery.repositories import (  # noqa: PLC0415
            OrderRepository as _OR,  # noqa: N814
        )

        self.db: Database = db
        self.settings: EdeliverySettings = settings

        # Repositories
        self.orders: OrderRepository = _OR(db)

        # External collaborators
        self.identity: IdentityProvider = identity or registry.load_identity_provider(
            settings.identity,
        )
        self.gateway: PaymentGateway = gateway or registry.load_payment_gateway(
            settings.gateway,
        )
        self.store: ObjectStore = store or registry.load_object_store(settings.storage)
        self.catalog: Catalog = catalog or registry.load_catalog(settings.catalog, db)

        # Policy
        self.policy: AuthorizationPolicy = _AP(
            admin_roles=settings.authorization.admin_roles,
            admin_identities=settings.authorization.admin_identities,
        )

        # Services
        from edelivery.services.download import (  # noqa: PLC0415
            DownloadHistoryRecorder as _DHRec,  # noqa: N814
        )
        from edelivery.services.download import (  # noqa: PLC0415
            DownloadIssuer as _DI,  # noqa: N814
        )
        from edelivery.services.entitlement import (  # noqa: PLC0415
            EntitlementGuard as _EG,  # noqa: N814
        )
        from edelivery.services.order import OrderLedger as _OL  # noqa: N814, PLC0415
        from edelivery.services.payment import (  # noqa: PLC0415
            PaymentReconciler as _PR,  # noqa: N814
        )
        from edelivery.services.sales import (  # noqa: PLC0415
            SalesStatisticsService as _SSS,  # noqa: N814
        )

        self.ledger: OrderLedger = _OL(self.orders)
        self.reconciler: PaymentReconciler = _PR(
            self.gateway,
            self.ledger,
            settings.payments,
            paid_statuses=settings.gateway.paid_statuses,
        )
        self.entitlements: EntitlementGuard = _EG(
            self.ledger,
            self.catalog,
            self.policy,
            window_days=settings.entitlement.window_days,
        )
        self.history_recorder: DownloadHistoryRecorder = _DHRec(
            db,
            enabled=settings.downloads.history_enabled,
            max_workers=settings.downloads.history_workers,
            timeout_ms=settings.downloads.history_timeout_ms,
        )
        self.downloads: DownloadIssuer = _DI(
            self.store,
            self.history_recorder,
            settings.downloads,
        )
        self.sales: SalesStatisticsService = _SSS(self.orders)

    def startup_checks(self) -> None:
        """Probe the external collaborators once before serving traffic."""
        run_startup_checks((self.identity, self.gateway, self.store, self.catalog))


def run_startup_checks(components: Iterable[object]) -> None:
    """Call ``startup_check()`` on every component that defines one.

    A transient failure (:attr:`IntegrationError.retryable`) is logged and
    the service starts anyway; a permanent one aborts startup.
    """
    for component in components:
        check = getattr(component, "startup_check", None)
        if check is None:
            continue
        try:
            check()
        except IntegrationError as exc:
            if not exc.retryable:
                raise
            log.warning(
                "Startup check for %s failed, continuing: %s",
                type(component).__name__,
                exc.detail,
            )


def get_container() -> Container:
    """Return the :class:`Container` from the current Flask app.

    Raises :class:`RuntimeError` if the database was not
    initialised (i.e. ``create_app`` was called without a
    ``database`` argument).
    """
    container = current_app.extensions.get("container")
    if container is None:
        msg = (
            "Dependency container not available -- "
            "was the database initialised before "
            "create_app()?"
        )
        raise RuntimeError(msg)
    return container
