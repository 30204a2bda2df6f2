"""Integration backend registry.

Loads the configured identity provider, payment gateway, object store
and catalog by name and returns initialised instances.  Supports
built-in backends and custom ones via the ``ext:`` prefix.

Usage::

    from edelivery.integrations.registry import load_object_store

    store = load_object_store(settings.storage)
    url = store.sign_url("ebooks/intro.pdf", 3600)
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING, Any, TypeVar

from edelivery.integrations.base import (
    Catalog,
    IdentityProvider,
    IntegrationError,
    ObjectStore,
    PaymentGateway,
)

if TYPE_CHECKING:
    from pypgkit import Database

    from edelivery.config.settings import (
        CatalogSettings,
        GatewaySettings,
        IdentitySettings,
        StorageSettings,
    )

log = logging.getLogger(__name__)

T = TypeVar("T")

# Maps config string → (module_path, class_name), per integration kind
_BUILTIN_IDENTITY: dict[str, tuple[str, str]] = {
    "supabase": ("edelivery.integrations.identity", "SupabaseIdentityProvider"),
    "signed": ("edelivery.integrations.identity", "SignedTokenIdentityProvider"),
}
_BUILTIN_GATEWAYS: dict[str, tuple[str, str]] = {
    "portone": ("edelivery.integrations.portone", "PortOneGateway"),
}
_BUILTIN_STORES: dict[str, tuple[str, str]] = {
    "s3": ("edelivery.integrations.storage", "S3ObjectStore"),
}
_BUILTIN_CATALOGS: dict[str, tuple[str, str]] = {
    "database": ("edelivery.integrations.catalog", "DatabaseCatalog"),
}


def load_identity_provider(settings: IdentitySettings) -> IdentityProvider:
    """Load the configured :class:`IdentityProvider`."""
    return _load("identity", settings.backend, _BUILTIN_IDENTITY, IdentityProvider, settings)


def load_payment_gateway(settings: GatewaySettings) -> PaymentGateway:
    """Load the configured :class:`PaymentGateway`."""
    return _load("gateway", settings.backend, _BUILTIN_GATEWAYS, PaymentGateway, settings)


def load_object_store(settings: StorageSettings) -> ObjectStore:
    """Load the configured :class:`ObjectStore`."""
    return _load("storage", settings.backend, _BUILTIN_STORES, ObjectStore, settings)


def load_catalog(settings: CatalogSettings, db: Database | None) -> Catalog:
    """Load the configured :class:`Catalog`.

    The built-in ``database`` catalog reads the ``products`` table and
    therefore needs *db*; custom catalogs receive only *settings*.
    """
    if settings.backend == "database":
        return _load("catalog", "database", _BUILTIN_CATALOGS, Catalog, settings, db=db)
    return _load("catalog", settings.backend, _BUILTIN_CATALOGS, Catalog, settings)


def _load(
    kind: str,
    backend_name: str,
    builtins: dict[str, tuple[str, str]],
    base: type[T],
    settings: Any,  # noqa: ANN401
    **kwargs: Any,  # noqa: ANN401
) -> T:
    """Resolve *backend_name* to a class and instantiate it.

    Raises
    ------
    IntegrationError
        If the backend cannot be loaded.

    """
    if backend_name in builtins:
        mod_path, cls_name = builtins[backend_name]
        label = backend_name
    elif backend_name.startswith("ext:"):
        fqn = backend_name[4:]
        mod_path, _, cls_name = fqn.rpartition(".")
        label = backend_name
        if not mod_path:
            msg = (
                f"Invalid external {kind} backend '{fqn}': must be fully "
                "qualified (e.g. 'mypackage.module.ClassName')"
            )
            raise IntegrationError(msg)
    else:
        msg = (
            f"Unknown {kind} backend '{backend_name}'; "
            f"built-in options: {sorted(builtins)}. "
            f"Use 'ext:mypackage.module.ClassName' for custom backends."
        )
        raise IntegrationError(msg)

    try:
        module = importlib.import_module(mod_path)
        cls = getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load {kind} backend '{label}': {exc}"
        raise IntegrationError(msg) from exc

    if not (isinstance(cls, type) and issubclass(cls, base)):
        msg = f"{kind} backend '{label}' must be a subclass of {base.__name__}"
        raise IntegrationError(msg)

    instance = cls(settings, **kwargs)
    log.info("Loaded %s backend: %s", kind, label)
    return instance
