"""DownloadHistory entity (append-only audit record)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class DownloadHistory:
    user_id: str
    order_id: str
    file_id: str
    filename: str
    id: int | None = None
    downloaded_at: datetime = _EPOCH
