"""Tests for the edelivery command-line interface and gunicorn runner."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import yaml

from edelivery.cli.commands.db import run_db
from edelivery.cli.commands.inspect import run_inspect
from edelivery.cli.commands.serve import run_serve
from edelivery.cli.main import main
from edelivery.core.types import OrderStatus
from edelivery.integrations.identity import decode_token
from edelivery.models.download import DownloadHistory
from edelivery.models.order import Order, OrderItem

SECRET = "test-secret-0123456789abcdef"
TS = datetime(2025, 6, 1, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _no_logging_setup():
    with patch("edelivery.logging.configure_logging"):
        yield


def _exit_code(argv) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------


class TestMain:
    def test_missing_config_file(self, tmp_path, capsys):
        missing = tmp_path / "nope.yaml"
        assert _exit_code(["-c", str(missing)]) == 1
        assert "configuration file not found" in capsys.readouterr().err

    def test_validate_only_prints_summary(self, tmp_config_file, capsys):
        assert _exit_code(["-c", str(tmp_config_file), "--validate-only"]) == 0
        out = capsys.readouterr().out
        assert "identity:    signed" in out
        assert "storage:     s3 (course-files)" in out
        assert "entitlement: 365 days" in out
        assert "url expiry:  3600s" in out

    def test_invalid_config(self, tmp_path, minimal_config_data, capsys):
        minimal_config_data["entitlement"] = {"window_days": 0}
        cfg = tmp_path / "bad.yaml"
        cfg.write_text(yaml.safe_dump(minimal_config_data), encoding="utf-8")
        assert _exit_code(["-c", str(cfg), "--validate-only"]) == 1
        assert "edelivery: error:" in capsys.readouterr().err

    def test_token_issue(self, tmp_config_file, capsys):
        main(["-c", str(tmp_config_file), "token", "issue", "--user-id", "u1", "--role", "admin"])
        token = capsys.readouterr().out.strip()
        assert decode_token(token, SECRET, 60) == {"sub": "u1", "email": None, "role": "admin"}

    def test_token_requires_signed_backend(self, tmp_path, minimal_config_data, capsys):
        minimal_config_data["identity"] = {
            "backend": "supabase",
            "url": "https://project.supabase.co",
            "api_key": "anon-key",
        }
        cfg = tmp_path / "supabase.yaml"
        cfg.write_text(yaml.safe_dump(minimal_config_data), encoding="utf-8")
        assert _exit_code(["-c", str(cfg), "token", "issue", "--user-id", "u1"]) == 1
        assert "identity.backend 'signed'" in capsys.readouterr().err

    def test_token_without_subcommand(self, tmp_config_file):
        assert _exit_code(["-c", str(tmp_config_file), "token"]) == 1

    def test_no_subcommand_serves(self, tmp_config_file):
        with patch("edelivery.cli.commands.serve.run_serve") as serve:
            main(["-c", str(tmp_config_file), "--dev"])
        config, args = serve.call_args[0]
        assert args.dev is True
        assert config.settings.storage.bucket == "course-files"

    def test_serve_runtime_error(self, tmp_config_file, capsys):
        with patch(
            "edelivery.cli.commands.serve.run_serve",
            side_effect=RuntimeError("pool exhausted"),
        ):
            assert _exit_code(["-c", str(tmp_config_file)]) == 1
        assert "pool exhausted" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _config():
    return SimpleNamespace(settings=SimpleNamespace(database=MagicMock(), server=MagicMock()))


class TestDbStatus:
    def test_all_tables_present(self, capsys):
        db = MagicMock()
        db.fetch_all.return_value = [
            {"table_name": "orders"},
            {"table_name": "products"},
            {"table_name": "download_history"},
        ]
        with patch("edelivery.db.init_database", return_value=db):
            run_db(_config(), SimpleNamespace(db_command="status"))
        out = capsys.readouterr().out
        assert "database: reachable" in out
        assert "missing" not in out

    def test_missing_table(self, capsys):
        db = MagicMock()
        db.fetch_all.return_value = [{"table_name": "orders"}]
        with (
            patch("edelivery.db.init_database", return_value=db),
            pytest.raises(SystemExit) as exc_info,
        ):
            run_db(_config(), SimpleNamespace(db_command="status"))
        assert exc_info.value.code == 2
        assert "missing" in capsys.readouterr().out

    def test_unreachable(self):
        with (
            patch("edelivery.db.init_database", side_effect=OSError("refused")),
            pytest.raises(SystemExit) as exc_info,
        ):
            run_db(_config(), SimpleNamespace(db_command="status"))
        assert exc_info.value.code == 1

    def test_unknown_subcommand(self):
        with pytest.raises(SystemExit):
            run_db(_config(), SimpleNamespace(db_command=None))


class TestInspectOrder:
    ORDER = Order(
        id="o1",
        owner_id="u1",
        status=OrderStatus.DELIVERED,
        items=(OrderItem(product_id="p1", unit_price=100, quantity=1),),
        total_amount=100,
        created_at=TS,
        updated_at=TS,
    )

    def test_prints_order_with_downloads(self, capsys):
        entry = DownloadHistory(
            user_id="u1",
            order_id="o1",
            file_id="f1",
            filename="a.pdf",
            downloaded_at=TS,
        )
        with (
            patch("edelivery.db.init_database"),
            patch("edelivery.repositories.order.OrderRepository") as orders,
            patch("edelivery.repositories.download_history.DownloadHistoryRepository") as history,
        ):
            orders.return_value.find_by_id.return_value = self.ORDER
            history.return_value.find_by.return_value = [entry]
            run_inspect(_config(), SimpleNamespace(inspect_command="order", resource_id="o1"))

        result = json.loads(capsys.readouterr().out)
        assert result["id"] == "o1"
        assert result["downloads"][0]["file_id"] == "f1"

    def test_not_found(self, capsys):
        with (
            patch("edelivery.db.init_database"),
            patch("edelivery.repositories.order.OrderRepository") as orders,
            pytest.raises(SystemExit) as exc_info,
        ):
            orders.return_value.find_by_id.return_value = None
            run_inspect(_config(), SimpleNamespace(inspect_command="order", resource_id="zz"))
        assert exc_info.value.code == 1
        assert "order not found: zz" in capsys.readouterr().err

    def test_missing_subcommand(self):
        with pytest.raises(SystemExit):
            run_inspect(_config(), SimpleNamespace(inspect_command=None))


class TestServe:
    def test_gunicorn_by_default(self):
        config = _config()
        with (
            patch("edelivery.db.init_database") as init_db,
            patch("edelivery.app.create_app") as create_app,
            patch("edelivery.server.gunicorn_app.run_gunicorn") as run_gunicorn,
        ):
            run_serve(config, SimpleNamespace(dev=False))
        create_app.assert_called_once_with(config=config, database=init_db.return_value)
        run_gunicorn.assert_called_once_with(create_app.return_value, config.settings.server)

    def test_dev_server(self):
        config = _config()
        config.settings.server = SimpleNamespace(bind="127.0.0.1", port=5000)
        with patch("edelivery.db.init_database"), patch("edelivery.app.create_app") as create_app:
            run_serve(config, SimpleNamespace(dev=True))
        create_app.return_value.run.assert_called_once_with(
            host="127.0.0.1",
            port=5000,
            debug=True,
            use_reloader=False,
        )


# ---------------------------------------------------------------------------
# Gunicorn runner
# ---------------------------------------------------------------------------


class TestGunicornApplication:
    def _server(self, **overrides):
        values = {
            "bind": "0.0.0.0",
            "port": 8080,
            "workers": 3,
            "worker_class": "sync",
            "timeout": 30,
            "graceful_timeout": 20,
            "keepalive": 2,
            "max_requests": 0,
            "max_requests_jitter": 0,
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_settings_applied(self):
        from edelivery.server.gunicorn_app import EdeliveryApplication

        flask_app = MagicMock()
        application = EdeliveryApplication(flask_app, self._server(max_requests=500))
        assert application.cfg.bind == ["0.0.0.0:8080"]
        assert application.cfg.workers == 3
        assert application.cfg.timeout == 30
        assert application.cfg.max_requests == 500
        assert application.load() is flask_app
