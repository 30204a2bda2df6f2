"""Configuration subsystem for edelivery.

Public API::

    from edelivery.config import get_config, EdeliveryConfig

    # At startup (CLI only):
    EdeliveryConfig(config_file="config.yaml", schema_file="bundled")

    # Everywhere else:
    cfg    = get_config()
    window = cfg.settings.entitlement.window_days   # typed access
    bucket = cfg.get("storage.bucket")              # dynamic dot-path
"""

from edelivery.config.edelivery_config import (
    ConfigValidationError,
    EdeliveryConfig,
    get_config,
)
from edelivery.config.settings import (
    ApiSettings,
    AuditLogSettings,
    AuthorizationSettings,
    CatalogSettings,
    DatabaseSettings,
    DownloadSettings,
    EdeliverySettings,
    EntitlementSettings,
    GatewaySettings,
    IdentitySettings,
    LoggingSettings,
    PaymentSettings,
    ProxySettings,
    SecuritySettings,
    ServerSettings,
    StorageSettings,
)

__all__ = [
    "ApiSettings",
    "AuditLogSettings",
    "AuthorizationSettings",
    "CatalogSettings",
    "ConfigValidationError",
    "DatabaseSettings",
    "DownloadSettings",
    # Core
    "EdeliveryConfig",
    # Root
    "EdeliverySettings",
    "EntitlementSettings",
    "GatewaySettings",
    "IdentitySettings",
    "LoggingSettings",
    "PaymentSettings",
    "ProxySettings",
    "SecuritySettings",
    # Sections
    "ServerSettings",
    "StorageSettings",
    "get_config",
]
