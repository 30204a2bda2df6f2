"""PortOne (v2 REST API) payment gateway client.

API contract
------------
**Token**: ``POST {base_url}/login/api-secret``

Request body (JSON)::

    {"apiSecret": "..."}

Response body (JSON, HTTP 200)::

    {"accessToken": "...", "refreshToken": "..."}

**Payment**: ``GET {base_url}/payments/{paymentId}`` with
``Authorization: Bearer {accessToken}``.

Response body (JSON, HTTP 200), trimmed::

    {
        "id": "p1",
        "status": "PAID",
        "amount": {"total": 45000, ...},
        "method": {"type": "PaymentMethodEasyPay", ...},
        "paidAt": "2025-01-01T00:00:00Z",
        "customer": {...}
    }

Every call uses ``gateway.timeout_seconds`` and is attempted once.
"""

from __future__ import annotations

import contextlib
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import TYPE_CHECKING, Any

from edelivery.integrations.base import IntegrationError, PaymentGateway, PaymentRecord

if TYPE_CHECKING:
    from edelivery.config.settings import GatewaySettings

log = logging.getLogger(__name__)


class PortOneGateway(PaymentGateway):
    """Fetch payment records from the PortOne REST API."""

    def __init__(self, settings: GatewaySettings) -> None:
        super().__init__(settings)
        self._base_url = settings.base_url.rstrip("/")

    # -- public API ---------------------------------------------------------

    def get_access_token(self) -> str:
        """Exchange the configured API secret for a short-lived access token."""
        payload = self._request(
            "POST",
            f"{self._base_url}/login/api-secret",
            body={"apiSecret": self.settings.api_secret},
            what="token exchange",
        )
        token = payload.get("accessToken")
        if not token:
            msg = "gateway token exchange returned no accessToken"
            raise IntegrationError(msg)
        return token

    def fetch_payment(self, payment_reference: str) -> PaymentRecord:
        token = self.get_access_token()
        ref = urllib.parse.quote(payment_reference, safe="")
        payload = self._request(
            "GET",
            f"{self._base_url}/payments/{ref}",
            token=token,
            what="payment lookup",
        )
        return _record_from_payload(payload, payment_reference)

    # -- internal helpers ---------------------------------------------------

    def _request(
        self,
        method: str,
        url: str,
        *,
        body: dict | None = None,
        token: str | None = None,
        what: str,
    ) -> dict[str, Any]:
        """Send a single JSON request and return the parsed JSON response."""
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urllib.request.Request(
            url,
            data=data,
            method=method,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )
        if token is not None:
            req.add_header("Authorization", f"Bearer {token}")

        try:
            with urllib.request.urlopen(  # noqa: S310
                req,
                timeout=self.settings.timeout_seconds,
            ) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            detail = ""
            with contextlib.suppress(Exception):
                detail = exc.read().decode("utf-8", errors="replace")[:500]
            msg = f"gateway {what} returned HTTP {exc.code}: {detail}"
            raise IntegrationError(msg, retryable=exc.code >= 500) from exc
        except (urllib.error.URLError, OSError) as exc:
            msg = f"gateway {what} failed to reach {self._base_url}: {exc}"
            raise IntegrationError(msg, retryable=True) from exc

        try:
            parsed = json.loads(raw.decode("utf-8"))
        except ValueError as exc:
            msg = f"gateway {what} returned malformed JSON"
            raise IntegrationError(msg) from exc
        if not isinstance(parsed, dict):
            msg = f"gateway {what} returned a non-object JSON body"
            raise IntegrationError(msg)
        return parsed


def extract_amount(raw: Any) -> int:  # noqa: ANN401
    """Return the paid amount from ``amount.total`` or a scalar ``amount``."""
    if isinstance(raw, dict):
        raw = raw.get("total")
    if raw is None:
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        msg = f"gateway returned a non-numeric amount: {raw!r}"
        raise IntegrationError(msg) from exc


def _record_from_payload(payload: dict[str, Any], reference: str) -> PaymentRecord:
    method = payload.get("method")
    if isinstance(method, dict):
        method = method.get("type")
    return PaymentRecord(
        id=str(payload.get("id") or reference),
        status=str(payload.get("status") or "UNKNOWN"),
        amount=extract_amount(payload.get("amount")),
        method=method,
        paid_at=payload.get("paidAt"),
        fail_reason=payload.get("failReason"),
        customer=payload.get("customer") or {},
    )
