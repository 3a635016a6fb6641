"""Catalog entity mapping and sinks."""

from __future__ import annotations

from collection_sync.catalog.entity_mapper import (
    Entity,
    collection_to_entity,
    repository_to_entity,
    sanitize_entity_name,
)
from collection_sync.catalog.sink import CatalogSink, FileCatalogSink, InMemoryCatalogSink

__all__ = [
    "CatalogSink",
    "Entity",
    "FileCatalogSink",
    "InMemoryCatalogSink",
    "collection_to_entity",
    "repository_to_entity",
    "sanitize_entity_name",
]
