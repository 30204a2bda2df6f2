"""Product catalog repository (read-only from edelivery's point of view)."""

from __future__ import annotations

import json
from typing import Any

from pypgkit import BaseRepository, Database

from edelivery.models.product import FileDescriptor, Product


def descriptor_from_dict(raw: dict[str, Any]) -> FileDescriptor | None:
    """Build a :class:`FileDescriptor` from a manifest entry.

    Manifest entries written by the storefront admin use ``filePath`` or
    ``path`` for the storage location and ``name`` for the display name.
    Entries without an id or a storage path are unusable and skipped.
    """
    file_id = raw.get("id")
    storage_path = raw.get("storage_path") or raw.get("filePath") or raw.get("path")
    if file_id is None or not storage_path:
        return None
    size = raw.get("size")
    return FileDescriptor(
        id=str(file_id),
        filename=str(raw.get("filename") or raw.get("name") or storage_path.rsplit("/", 1)[-1]),
        storage_path=str(storage_path),
        size=int(size) if isinstance(size, (int, float)) else None,
        type=raw.get("type"),
    )


class ProductRepository(BaseRepository[Product]):
    table_name = "products"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> Product:
        raw_files = row.get("files") or []
        if isinstance(raw_files, str):
            raw_files = json.loads(raw_files)
        files = tuple(
            d for d in (descriptor_from_dict(f) for f in raw_files if isinstance(f, dict)) if d
        )
        return Product(
            id=str(row["id"]),
            title=row.get("title") or "",
            category=row.get("category"),
            files=files,
        )

    def _entity_to_row(self, entity: Product) -> dict:
        from psycopg.types.json import Jsonb  # noqa: PLC0415

        return {
            "id": entity.id,
            "title": entity.title,
            "category": entity.category,
            "files": Jsonb(
                [
                    {
                        "id": f.id,
                        "filename": f.filename,
                        "storage_path": f.storage_path,
                        "size": f.size,
                        "type": f.type,
                    }
                    for f in entity.files
                ]
            ),
        }

    def find_with_files(self) -> list[Product]:
        """Every product whose manifest is non-empty, ordered by id."""
        db = Database.get_instance()
        rows = db.fetch_all(
            "SELECT * FROM products "
            "WHERE jsonb_typeof(files) = 'array' AND jsonb_array_length(files) > 0 "
            "ORDER BY id",
            as_dict=True,
        )
        return [self._row_to_entity(r) for r in rows]
