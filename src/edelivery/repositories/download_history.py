"""Download history repository (append-only)."""

from __future__ import annotations

from pypgkit import BaseRepository

from edelivery.models.download import DownloadHistory


class DownloadHistoryRepository(BaseRepository[DownloadHistory]):
    table_name = "download_history"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> DownloadHistory:
        return DownloadHistory(
            id=row["id"],
            user_id=row["user_id"],
            order_id=row["order_id"],
            file_id=row["file_id"],
            filename=row["filename"],
            downloaded_at=row["downloaded_at"],
        )

    def _entity_to_row(self, entity: DownloadHistory) -> dict:
        # ``id`` and ``downloaded_at`` are generated by the database.
        return {
            "user_id": entity.user_id,
            "order_id": entity.order_id,
            "file_id": entity.file_id,
            "filename": entity.filename,
        }
