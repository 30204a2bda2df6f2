"""WSGI entry point for external servers (gunicorn, uWSGI, etc.).

The config file path is read from the ``EDELIVERY_CONFIG`` environment
variable.

Example::

    export EDELIVERY_CONFIG=/etc/edelivery/config.yaml
    gunicorn "edelivery.server.wsgi:app"
"""

from __future__ import annotations

import os
import sys

_config_path = os.environ.get("EDELIVERY_CONFIG")
if _config_path is None:
    sys.stderr.write("EDELIVERY_CONFIG is not set\n")
    sys.exit(1)

# Bootstrap the singleton before anything else imports it.
from edelivery.config import EdeliveryConfig  # noqa: E402

_config = EdeliveryConfig(config_file=_config_path, schema_file="bundled")

from edelivery.logging import configure_logging  # noqa: E402

configure_logging(_config.settings.logging)

from edelivery.db import init_database  # noqa: E402

_db = init_database(_config.settings.database)

from edelivery.app import create_app  # noqa: E402

app = create_app(config=_config, database=_db)
