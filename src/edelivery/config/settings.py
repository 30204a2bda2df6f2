"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from edelivery.config import get_config

    db = get_config().settings.database
    print(db.host, db.port)        # typed, IDE-autocompleted
"""

from __future__ import annotations

from dataclasses import dataclass

from edelivery.core.types import Role

DEFAULT_LEGAL_NOTICE = (
    "This file is licensed for the purchaser's personal use only. "
    "Redistribution, resale or public sharing is prohibited."
)

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerSettings:
    """HTTP server configuration (bind address, workers, timeouts)."""

    external_url: str
    bind: str
    port: int
    workers: int
    worker_class: str
    timeout: int
    graceful_timeout: int
    keepalive: int
    max_requests: int
    max_requests_jitter: int


def _build_server(data: dict | None) -> ServerSettings:
    d = data or {}
    return ServerSettings(
        external_url=d.get("external_url", ""),
        bind=d.get("bind", "0.0.0.0"),  # noqa: S104
        port=d.get("port", 8080),
        workers=d.get("workers", 4),
        worker_class=d.get("worker_class", "sync"),
        timeout=d.get("timeout", 30),
        graceful_timeout=d.get("graceful_timeout", 30),
        keepalive=d.get("keepalive", 2),
        max_requests=d.get("max_requests", 0),
        max_requests_jitter=d.get("max_requests_jitter", 0),
    )


# ---------------------------------------------------------------------------
# Proxy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProxySettings:
    """Reverse proxy configuration (trusted headers, forwarded-for)."""

    enabled: bool
    trusted_proxies: tuple[str, ...]
    forwarded_for_header: str
    forwarded_proto_header: str


def _build_proxy(data: dict | None) -> ProxySettings:
    d = data or {}
    return ProxySettings(
        enabled=d.get("enabled", False),
        trusted_proxies=tuple(d.get("trusted_proxies", [])),
        forwarded_for_header=d.get("forwarded_for_header", "X-Forwarded-For"),
        forwarded_proto_header=d.get("forwarded_proto_header", "X-Forwarded-Proto"),
    )


# ---------------------------------------------------------------------------
# Security / API
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SecuritySettings:
    """Request hardening."""

    max_request_body_bytes: int
    hsts_max_age_seconds: int


def _build_security(data: dict | None) -> SecuritySettings:
    d = data or {}
    return SecuritySettings(
        max_request_body_bytes=d.get("max_request_body_bytes", 65536),
        hsts_max_age_seconds=d.get("hsts_max_age_seconds", 63072000),
    )


@dataclass(frozen=True)
class ApiSettings:
    base_path: str


def _build_api(data: dict | None) -> ApiSettings:
    d = data or {}
    return ApiSettings(base_path=d.get("base_path", "").rstrip("/"))


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditLogSettings:
    """Security-event audit file."""

    enabled: bool
    file: str | None
    max_file_size_bytes: int
    backup_count: int


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: str
    audit: AuditLogSettings


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    a = d.get("audit") or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
        audit=AuditLogSettings(
            enabled=a.get("enabled", False),
            file=a.get("file"),
            max_file_size_bytes=a.get("max_file_size_bytes", 104857600),
            backup_count=a.get("backup_count", 10),
        ),
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection and pool settings."""

    host: str
    port: int
    database: str
    user: str
    password: str
    sslmode: str
    min_connections: int
    max_connections: int
    connection_timeout: float
    statement_timeout_ms: int
    auto_setup: bool


def _build_database(data: dict | None) -> DatabaseSettings:
    d = data or {}
    return DatabaseSettings(
        host=d.get("host", "localhost"),
        port=d.get("port", 5432),
        database=d["database"],
        user=d["user"],
        password=d.get("password", ""),
        sslmode=d.get("sslmode", "prefer"),
        min_connections=d.get("min_connections", 2),
        max_connections=d.get("max_connections", 10),
        connection_timeout=d.get("connection_timeout", 10.0),
        statement_timeout_ms=d.get("statement_timeout_ms", 10000),
        auto_setup=d.get("auto_setup", False),
    )


# ---------------------------------------------------------------------------
# External services
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IdentitySettings:
    """Bearer-token identity provider."""

    backend: str
    url: str
    api_key: str
    token_secret: str
    token_max_age_seconds: int
    timeout_seconds: float


def _build_identity(data: dict | None) -> IdentitySettings:
    d = data or {}
    return IdentitySettings(
        backend=d.get("backend", "supabase"),
        url=d.get("url", ""),
        api_key=d.get("api_key", ""),
        token_secret=d.get("token_secret", ""),
        token_max_age_seconds=d.get("token_max_age_seconds", 3600),
        timeout_seconds=d.get("timeout_seconds", 5.0),
    )


@dataclass(frozen=True)
class GatewaySettings:
    """Payment gateway client."""

    backend: str
    base_url: str
    api_secret: str
    timeout_seconds: float
    paid_statuses: tuple[str, ...]


def _build_gateway(data: dict | None) -> GatewaySettings:
    d = data or {}
    return GatewaySettings(
        backend=d.get("backend", "portone"),
        base_url=d.get("base_url", "https://api.portone.io"),
        api_secret=d.get("api_secret", ""),
        timeout_seconds=d.get("timeout_seconds", 10.0),
        paid_statuses=tuple(s.upper() for s in d.get("paid_statuses", ["PAID"])),
    )


@dataclass(frozen=True)
class StorageSettings:
    """Object store issuing signed download URLs."""

    backend: str
    bucket: str
    endpoint_url: str
    region: str
    access_key_id: str
    secret_access_key: str
    addressing_style: str
    timeout_seconds: float


def _build_storage(data: dict | None) -> StorageSettings:
    d = data or {}
    return StorageSettings(
        backend=d.get("backend", "s3"),
        bucket=d.get("bucket", ""),
        endpoint_url=d.get("endpoint_url", ""),
        region=d.get("region", ""),
        access_key_id=d.get("access_key_id", ""),
        secret_access_key=d.get("secret_access_key", ""),
        addressing_style=d.get("addressing_style", "virtual"),
        timeout_seconds=d.get("timeout_seconds", 5.0),
    )


@dataclass(frozen=True)
class CatalogSettings:
    backend: str


def _build_catalog(data: dict | None) -> CatalogSettings:
    d = data or {}
    return CatalogSettings(backend=d.get("backend", "database"))


# ---------------------------------------------------------------------------
# Domain policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EntitlementSettings:
    window_days: int


def _build_entitlement(data: dict | None) -> EntitlementSettings:
    d = data or {}
    return EntitlementSettings(window_days=d.get("window_days", 365))


@dataclass(frozen=True)
class DownloadSettings:
    """Signed URL lifetime, legal notice and download history."""

    url_expiry_seconds: int
    legal_notice: str
    history_enabled: bool
    history_workers: int
    history_timeout_ms: int


def _build_downloads(data: dict | None) -> DownloadSettings:
    d = data or {}
    return DownloadSettings(
        url_expiry_seconds=d.get("url_expiry_seconds", 3600),
        legal_notice=d.get("legal_notice", DEFAULT_LEGAL_NOTICE),
        history_enabled=d.get("history_enabled", True),
        history_workers=d.get("history_workers", 2),
        history_timeout_ms=d.get("history_timeout_ms", 2000),
    )


@dataclass(frozen=True)
class PaymentSettings:
    """Payment verification policy."""

    require_principal: bool
    amount_mismatch: str


def _build_payments(data: dict | None) -> PaymentSettings:
    d = data or {}
    return PaymentSettings(
        require_principal=d.get("require_principal", False),
        amount_mismatch=d.get("amount_mismatch", "accept"),
    )


@dataclass(frozen=True)
class AuthorizationSettings:
    """Who counts as an administrator."""

    admin_roles: tuple[str, ...]
    admin_identities: tuple[str, ...]


def _build_authorization(data: dict | None) -> AuthorizationSettings:
    d = data or {}
    return AuthorizationSettings(
        admin_roles=tuple(d.get("admin_roles", [Role.ADMIN.value])),
        admin_identities=tuple(d.get("admin_identities", [])),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EdeliverySettings:
    server: ServerSettings
    proxy: ProxySettings
    security: SecuritySettings
    api: ApiSettings
    logging: LoggingSettings
    database: DatabaseSettings
    identity: IdentitySettings
    gateway: GatewaySettings
    storage: StorageSettings
    catalog: CatalogSettings
    entitlement: EntitlementSettings
    downloads: DownloadSettings
    payments: PaymentSettings
    authorization: AuthorizationSettings


def build_settings(data: dict) -> EdeliverySettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`EdeliveryConfig` initialization after
    schema validation and environment-variable resolution.
    """
    return EdeliverySettings(
        server=_build_server(data.get("server")),
        proxy=_build_proxy(data.get("proxy")),
        security=_build_security(data.get("security")),
        api=_build_api(data.get("api")),
        logging=_build_logging(data.get("logging")),
        database=_build_database(data.get("database")),
        identity=_build_identity(data.get("identity")),
        gateway=_build_gateway(data.get("gateway")),
        storage=_build_storage(data.get("storage")),
        catalog=_build_catalog(data.get("catalog")),
        entitlement=_build_entitlement(data.get("entitlement")),
        downloads=_build_downloads(data.get("downloads")),
        payments=_build_payments(data.get("payments")),
        authorization=_build_authorization(data.get("authorization")),
    )
