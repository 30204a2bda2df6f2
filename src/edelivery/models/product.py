"""Catalog entities consumed read-only: products and their file manifests."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FileDescriptor:
    """A downloadable file in a product's manifest.

    File ids are only unique within one product's manifest.
    """

    id: str
    filename: str
    storage_path: str
    size: int | None = None
    type: str | None = None


@dataclass(frozen=True)
class Product:
    id: str
    title: str
    category: str | None = None
    files: tuple[FileDescriptor, ...] = ()

    def find_file(self, file_id: str) -> FileDescriptor | None:
        """Return the first manifest entry whose id equals *file_id*."""
        for descriptor in self.files:
            if descriptor.id == file_id:
                return descriptor
        return None
