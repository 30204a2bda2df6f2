"""Tests for edelivery.integrations.portone: the PortOne v2 gateway client."""

from __future__ import annotations

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from edelivery.config.settings import GatewaySettings
from edelivery.integrations.base import IntegrationError
from edelivery.integrations.portone import PortOneGateway, _record_from_payload, extract_amount

URLOPEN = "edelivery.integrations.portone.urllib.request.urlopen"


def _settings() -> GatewaySettings:
    return GatewaySettings(
        backend="portone",
        base_url="https://api.portone.io/",
        api_secret="portone-test-secret",
        timeout_seconds=10.0,
        paid_statuses=("PAID",),
    )


def _response(payload) -> MagicMock:
    cm = MagicMock()
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    cm.__enter__.return_value.read.return_value = body
    return cm


PAYMENT = {
    "id": "pay-1",
    "status": "PAID",
    "amount": {"total": 45000, "paid": 45000},
    "method": {"type": "PaymentMethodEasyPay", "provider": "KAKAOPAY"},
    "paidAt": "2025-06-01T00:00:00Z",
    "customer": {"name": "Alice"},
}


class TestExtractAmount:
    def test_total_field(self):
        assert extract_amount({"total": 45000}) == 45000

    def test_scalar(self):
        assert extract_amount("1200") == 1200

    def test_missing(self):
        assert extract_amount(None) == 0
        assert extract_amount({}) == 0

    def test_non_numeric(self):
        with pytest.raises(IntegrationError):
            extract_amount({"total": "lots"})


class TestRecordFromPayload:
    def test_full_payload(self):
        record = _record_from_payload(PAYMENT, "pay-1")
        assert record.amount == 45000
        assert record.method == "PaymentMethodEasyPay"
        assert record.paid_at == "2025-06-01T00:00:00Z"
        assert record.customer == {"name": "Alice"}

    def test_sparse_payload(self):
        record = _record_from_payload({}, "pay-9")
        assert record.id == "pay-9"
        assert record.status == "UNKNOWN"
        assert record.method is None
        assert record.customer == {}


class TestFetchPayment:
    def test_token_exchange_then_lookup(self):
        gw = PortOneGateway(_settings())
        with patch(
            URLOPEN,
            side_effect=[_response({"accessToken": "at-1"}), _response(PAYMENT)],
        ) as urlopen:
            record = gw.fetch_payment("pay/1")

        assert record.id == "pay-1"
        login_req, lookup_req = (c[0][0] for c in urlopen.call_args_list)
        assert login_req.full_url == "https://api.portone.io/login/api-secret"
        assert login_req.get_method() == "POST"
        assert json.loads(login_req.data) == {"apiSecret": "portone-test-secret"}
        assert lookup_req.full_url == "https://api.portone.io/payments/pay%2F1"
        assert lookup_req.get_header("Authorization") == "Bearer at-1"
        assert urlopen.call_args.kwargs["timeout"] == 10.0

    def test_missing_access_token(self):
        gw = PortOneGateway(_settings())
        with patch(URLOPEN, return_value=_response({})), pytest.raises(IntegrationError):
            gw.fetch_payment("pay-1")

    def test_http_error_has_status_and_excerpt(self):
        gw = PortOneGateway(_settings())
        err = urllib.error.HTTPError("u", 404, "nf", {}, io.BytesIO(b'{"type":"PAYMENT_NOT_FOUND"}'))
        with (
            patch(URLOPEN, side_effect=[_response({"accessToken": "at"}), err]),
            pytest.raises(IntegrationError) as exc_info,
        ):
            gw.fetch_payment("pay-1")
        assert "HTTP 404" in exc_info.value.detail
        assert "PAYMENT_NOT_FOUND" in exc_info.value.detail
        assert exc_info.value.retryable is False

    def test_unreachable_is_retryable(self):
        gw = PortOneGateway(_settings())
        with (
            patch(URLOPEN, side_effect=urllib.error.URLError("timed out")),
            pytest.raises(IntegrationError) as exc_info,
        ):
            gw.fetch_payment("pay-1")
        assert exc_info.value.retryable is True

    def test_secret_not_in_error(self):
        gw = PortOneGateway(_settings())
        with (
            patch(URLOPEN, side_effect=urllib.error.URLError("refused")),
            pytest.raises(IntegrationError) as exc_info,
        ):
            gw.get_access_token()
        assert "portone-test-secret" not in exc_info.value.detail

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2]"])
    def test_bad_body(self, body):
        gw = PortOneGateway(_settings())
        with patch(URLOPEN, return_value=_response(body)), pytest.raises(IntegrationError):
            gw.get_access_token()
