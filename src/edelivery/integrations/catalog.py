"""Catalog backed by the ``products`` table of the relational store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import psycopg
from pypgkit import PyPgKitError

from edelivery.integrations.base import Catalog, IntegrationError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from pypgkit import Database

    from edelivery.config.settings import CatalogSettings
    from edelivery.models.product import Product

log = logging.getLogger(__name__)


class DatabaseCatalog(Catalog):
    """Read product manifests through :class:`ProductRepository`.

    Database failures are reported as :class:`IntegrationError` so that
    callers treat the catalog like any other external collaborator.
    """

    def __init__(self, settings: CatalogSettings, db: Database) -> None:
        from edelivery.repositories.product import ProductRepository  # noqa: PLC0415

        self.settings = settings
        self._products = ProductRepository(db)

    def get_product(self, product_id: str) -> Product | None:
        try:
            return self._products.find_by_id(str(product_id))
        except (psycopg.Error, PyPgKitError) as exc:
            msg = f"catalog lookup for product {product_id} failed: {exc}"
            raise IntegrationError(msg, retryable=True) from exc

    def iter_products(self) -> Iterator[Product]:
        try:
            products = self._products.find_with_files()
        except (psycopg.Error, PyPgKitError) as exc:
            msg = f"catalog scan failed: {exc}"
            raise IntegrationError(msg, retryable=True) from exc
        yield from products
