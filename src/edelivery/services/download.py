"""Download issuer and fire-and-forget download history.

:class:`DownloadIssuer` exchanges a permitted file for a signed URL.
:class:`DownloadHistoryRecorder` appends the audit row on a background
thread pool with its own statement timeout, so a slow or failing
database never delays or fails the download response.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

from edelivery.app.errors import UpstreamError
from edelivery.db.unit_of_work import UnitOfWork
from edelivery.integrations.base import IntegrationError
from edelivery.logging import security_events
from edelivery.models.download import DownloadHistory
from edelivery.repositories.download_history import DownloadHistoryRepository

if TYPE_CHECKING:
    from pypgkit import Database

    from edelivery.config.settings import DownloadSettings
    from edelivery.integrations.base import ObjectStore
    from edelivery.models.principal import Principal
    from edelivery.models.product import FileDescriptor, Product
    from edelivery.services.entitlement import Entitlement

log = logging.getLogger(__name__)

STORE_SERVICE = "object store"


@dataclass(frozen=True)
class IssuedDownload:
    """A signed URL plus the metadata returned to the client."""

    download_url: str
    filename: str
    size: int | None
    expires_in_seconds: int
    remaining_entitlement_days: int | None = None
    product_title: str | None = None


# ---------------------------------------------------------------------------
# History recorder
# ---------------------------------------------------------------------------


class DownloadHistoryRecorder:
    """Append download history rows without blocking the caller.

    Parameters
    ----------
    db:
        Database whose pool the background writes use.
    enabled:
        When false, :meth:`record` does nothing.
    max_workers:
        Size of the background thread pool.
    timeout_ms:
        ``statement_timeout`` applied to each history insert.

    """

    def __init__(
        self,
        db: Database,
        *,
        enabled: bool = True,
        max_workers: int = 2,
        timeout_ms: int = 2000,
    ) -> None:
        self._db = db
        self._enabled = enabled
        self._timeout_ms = timeout_ms
        self._rows = DownloadHistoryRepository(db)
        self._shutdown_event = threading.Event()
        self._executor: ThreadPoolExecutor | None = None
        if enabled:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="edelivery-history",
            )

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown_event.is_set()

    def record(self, entry: DownloadHistory) -> Future | None:
        """Schedule *entry* for insertion and return immediately.

        Returns the :class:`~concurrent.futures.Future` of the write, or
        ``None`` when recording is disabled or the pool is shut down.
        """
        if self._executor is None or self._shutdown_event.is_set():
            return None
        try:
            return self._executor.submit(self._write, entry)
        except RuntimeError:
            log.warning(
                "History executor shut down, dropping download record for order %s",
                entry.order_id,
            )
            return None

    def _write(self, entry: DownloadHistory) -> bool:
        start = time.monotonic()
        try:
            with UnitOfWork(self._db) as uow:
                uow.set_statement_timeout(self._timeout_ms)
                uow.insert(
                    DownloadHistoryRepository.table_name,
                    self._rows._entity_to_row(entry),  # noqa: SLF001
                )
        except Exception:  # noqa: BLE001
            log.warning(
                "Failed to record download history for order %s file %s",
                entry.order_id,
                entry.file_id,
                exc_info=True,
            )
            return False
        log.debug(
            "Recorded download of %s for order %s in %.1f ms",
            entry.file_id,
            entry.order_id,
            (time.monotonic() - start) * 1000,
        )
        return True

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting records and drain the pool.

        Safe to call multiple times; only the first call has effect.
        """
        if self._shutdown_event.is_set():
            return
        self._shutdown_event.set()
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            log.info("Download history executor shut down")


# ---------------------------------------------------------------------------
# Issuer
# ---------------------------------------------------------------------------


class DownloadIssuer:
    """Mint signed URLs for permitted files."""

    def __init__(
        self,
        store: ObjectStore,
        recorder: DownloadHistoryRecorder | None,
        settings: DownloadSettings,
    ) -> None:
        self._store = store
        self._recorder = recorder
        self._settings = settings

    @property
    def legal_notice(self) -> str:
        return self._settings.legal_notice

    def issue(self, entitlement: Entitlement, principal: Principal) -> IssuedDownload:
        """Sign a URL for an entitled purchaser and record the download.

        Raises
        ------
        UpstreamError
            The object store refused to sign the URL.

        """
        descriptor = entitlement.file
        url = self._sign(descriptor)

        if self._recorder is not None:
            self._recorder.record(
                DownloadHistory(
                    user_id=principal.id,
                    order_id=entitlement.order.id,
                    file_id=descriptor.id,
                    filename=descriptor.filename,
                ),
            )
        security_events.download_issued(principal.id, entitlement.order.id, descriptor.id)

        return IssuedDownload(
            download_url=url,
            filename=descriptor.filename,
            size=descriptor.size,
            expires_in_seconds=self._settings.url_expiry_seconds,
            remaining_entitlement_days=entitlement.remaining_days,
        )

    def issue_admin(
        self,
        product: Product,
        descriptor: FileDescriptor,
        principal: Principal,
    ) -> IssuedDownload:
        """Sign a URL for an administrator; no history row is written."""
        url = self._sign(descriptor)
        security_events.admin_download_issued(principal.id, product.id, descriptor.id)
        return IssuedDownload(
            download_url=url,
            filename=descriptor.filename,
            size=descriptor.size,
            expires_in_seconds=self._settings.url_expiry_seconds,
            product_title=product.title,
        )

    def _sign(self, descriptor: FileDescriptor) -> str:
        try:
            return self._store.sign_url(
                descriptor.storage_path,
                self._settings.url_expiry_seconds,
            )
        except IntegrationError as exc:
            raise UpstreamError(STORE_SERVICE, exc.detail) from exc
