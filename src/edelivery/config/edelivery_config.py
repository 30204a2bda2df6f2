"""edelivery configuration loader built on ConfigKit.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    EdeliveryConfig(config_file="/etc/edelivery/config.yaml", schema_file="bundled")

    # 2. Any module retrieves it afterwards
    from edelivery.config import get_config
    cfg = get_config()
    cfg.settings.entitlement.window_days  # typed access

    # 3. Extension / dynamic access
    cfg.get("storage.bucket", default="course-files")
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

from configkit import ConfigKit, ConfigKitMeta

from edelivery.config.settings import EdeliverySettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_MIN_TOKEN_SECRET_LENGTH = 16
_MIN_URL_EXPIRY_SECONDS = 60
_MAX_URL_EXPIRY_SECONDS = 604800

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: EdeliveryConfig | None = None


def get_config() -> EdeliveryConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`EdeliveryConfig` has not been
    created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "EdeliveryConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Errors and ${VAR} substitution
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """One or more semantic problems found after schema validation.

    Every problem found is kept on :attr:`errors`.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        lines = "".join(f"\n  - {problem}" for problem in self.errors)
        super().__init__(f"Configuration validation failed:{lines}")


def _substitute(value: str, where: str) -> str:
    # only whole-value references are substituted
    match = _ENV_RE.match(value)
    if match is None:
        return value
    name, default = match.groups()
    if name in os.environ:
        return os.environ[name]
    if default is not None:
        return default
    msg = f"Environment variable '${{{name}}}' referenced at '{where}' is not set and has no default"
    raise ConfigValidationError([msg])


def _resolve_env_vars(
    node: Any,  # noqa: ANN401
    where: str = "",
) -> None:
    """Resolve ``${VAR}`` and ``${VAR:-default}`` strings inside *node* in place."""
    if isinstance(node, dict):
        slots = [(key, f"{where}.{key}" if where else str(key)) for key in node]
    elif isinstance(node, list):
        slots = [(idx, f"{where}[{idx}]") for idx in range(len(node))]
    else:
        return
    for slot, child in slots:
        value = node[slot]
        if isinstance(value, str):
            node[slot] = _substitute(value, child)
        else:
            _resolve_env_vars(value, child)


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class EdeliveryConfig(ConfigKit):
    """Central configuration for the edelivery server.

    Subclasses :class:`configkit.ConfigKit`.  The JSON schema is
    bundled at ``config/schema.json``; users supply only ``config_file``.

    After construction the typed settings tree is available at
    :pyattr:`settings` and the raw dict via :pyattr:`data` /
    :pymeth:`get`.
    """

    def __init__(
        self,
        *,
        config_file: str | Path,
        schema_file: str | Path | None = None,  # noqa: ARG002
    ) -> None:
        """Initialise the configuration singleton.

        Parameters
        ----------
        config_file:
            Path to the YAML/JSON configuration file.
        schema_file:
            Ignored.  Exists only to satisfy the
            :class:`ConfigKitMeta` singleton guard.

        """
        global _instance  # noqa: PLW0603

        super().__init__(
            config_file=config_file,
            schema_file=_SCHEMA_PATH,
        )

        self._settings: EdeliverySettings = build_settings(self.data)
        _instance = self

    # -- lifecycle overrides ------------------------------------------------

    def _load(self) -> None:
        """Load config file then resolve ``${VAR}`` env-var references.

        Runs env-var resolution **before** schema validation so that
        substituted values (e.g. ``${LOG_LEVEL:-INFO}``) are checked
        against enum constraints in the schema.
        """
        super()._load()
        _resolve_env_vars(self._data)

    # -- typed access -------------------------------------------------------

    @property
    def settings(self) -> EdeliverySettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    # -- cross-field validation ---------------------------------------------

    def additional_checks(self) -> None:  # noqa: C901, PLR0912
        """Semantic & cross-field validation.

        Called automatically by ConfigKit **after** schema validation
        passes.  Collects every problem before raising so operators see
        the whole list at once.
        """
        errors: list[str] = []
        warnings: list[str] = []

        # -- Identity provider --
        identity = self.data.get("identity") or {}
        identity_backend = identity.get("backend", "supabase")
        if identity_backend == "supabase":
            if not identity.get("url"):
                errors.append("identity.url is required for the supabase backend")
            if not identity.get("api_key"):
                errors.append("identity.api_key is required for the supabase backend")
        elif identity_backend == "signed":
            secret = identity.get("token_secret", "")
            if len(secret) < _MIN_TOKEN_SECRET_LENGTH:
                errors.append(
                    "identity.token_secret is required for the signed backend "
                    f"(min {_MIN_TOKEN_SECRET_LENGTH} characters)",
                )

        # -- Payment gateway --
        gateway = self.data.get("gateway") or {}
        if gateway.get("backend", "portone") == "portone" and not gateway.get("api_secret"):
            errors.append("gateway.api_secret is required for the portone backend")

        # -- Object store --
        storage = self.data.get("storage") or {}
        if storage.get("backend", "s3") == "s3" and not storage.get("bucket"):
            errors.append("storage.bucket is required for the s3 backend")

        # -- API prefix --
        base_path = (self.data.get("api") or {}).get("base_path", "")
        if base_path and not base_path.startswith("/"):
            errors.append(f"api.base_path ({base_path!r}) must start with '/'")

        # -- Downloads --
        downloads = self.data.get("downloads") or {}
        expiry = downloads.get("url_expiry_seconds", 3600)
        if not _MIN_URL_EXPIRY_SECONDS <= expiry <= _MAX_URL_EXPIRY_SECONDS:
            errors.append(
                f"downloads.url_expiry_seconds ({expiry}) must be between "
                f"{_MIN_URL_EXPIRY_SECONDS} and {_MAX_URL_EXPIRY_SECONDS}",
            )
        if expiry > 86400:  # noqa: PLR2004
            warnings.append(
                f"downloads.url_expiry_seconds ({expiry}) exceeds one day; "
                "signed URLs may be shared long after issue",
            )

        # -- Entitlement --
        window = (self.data.get("entitlement") or {}).get("window_days", 365)
        if window <= 0:
            errors.append(f"entitlement.window_days ({window}) must be positive")

        # -- Database pool --
        database = self.data.get("database") or {}
        max_conn = database.get("max_connections", 10)
        min_conn = database.get("min_connections", 2)
        if min_conn > max_conn:
            errors.append(
                f"database.min_connections ({min_conn}) must be <= "
                f"database.max_connections ({max_conn})",
            )

        # -- Proxy --
        proxy = self.data.get("proxy") or {}
        if proxy.get("enabled") and not proxy.get("trusted_proxies"):
            warnings.append(
                "proxy.enabled is true but proxy.trusted_proxies is empty; "
                "forwarded headers will be ignored",
            )

        # -- Authorization --
        authz = self.data.get("authorization") or {}
        if not authz.get("admin_roles", ["admin"]) and not authz.get("admin_identities"):
            warnings.append(
                "authorization has no admin_roles and no admin_identities; "
                "admin endpoints will be unreachable",
            )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    # -- helpers ------------------------------------------------------------

    def reload_settings(self) -> EdeliverySettings:
        """Re-read the config file and rebuild settings.

        Does not reset the singleton.  Re-reads the file, resolves env
        vars, and returns a fresh :class:`EdeliverySettings` tree.
        """
        new_data = self._parse_config(self._config_path)
        _resolve_env_vars(new_data)
        return build_settings(new_data)

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None
        ConfigKitMeta.reset()

    def __repr__(self) -> str:
        return f"<EdeliveryConfig config_file={self._config_path}>"
