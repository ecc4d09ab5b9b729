from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml

from catalog.types import CatalogConfig, DataSource
from errors import NotFoundError
from layers.types import LayerDescriptor

logger = logging.getLogger(__name__)


def _repo_root() -> Path:
    # .../backend/catalog/registry.py -> repo root is 2 levels up
    return Path(__file__).resolve().parents[2]


def catalog_path() -> Path:
    raw = (os.getenv("HEATGRID_CATALOG_PATH") or "").strip()
    if raw:
        return Path(raw)
    return _repo_root() / "data" / "catalog.yaml"


def resolve_repo_path(repo_relative: str) -> Path:
    # Allow both "data/..." and "/data/..." inputs (normalize to repo-relative).
    rel = (repo_relative or "").lstrip("/")
    return _repo_root() / rel


def _load_yaml(path: Path) -> dict:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid catalog yaml root: {path}")
    return data


@dataclass(frozen=True)
class Catalog:
    """
    Data sources and layer descriptors known to the service.

    Implements the schema/metadata lookups the geohash-grid source needs.
    """

    config: CatalogConfig
    # Where the catalog was loaded from (useful for debugging).
    path: Path | None = None

    @classmethod
    def from_yaml(cls, path: Path) -> "Catalog":
        cfg = CatalogConfig.model_validate(_load_yaml(path))
        ids = [ds.id for ds in cfg.dataSources]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate data source ids in {path}")
        logger.info(
            "loaded catalog %s: %d data sources, %d layers",
            path,
            len(cfg.dataSources),
            len(cfg.layers),
        )
        return cls(config=cfg, path=path)

    def get_data_source(self, data_source_id: str) -> DataSource:
        sid = (data_source_id or "").strip()
        for ds in self.config.dataSources:
            if ds.id == sid:
                return ds
        raise NotFoundError(f"Data source {sid!r} not found")

    def list_layers(self) -> list[LayerDescriptor]:
        return list(self.config.layers)

    def get_layer(self, layer_id: str) -> LayerDescriptor:
        lid = (layer_id or "").strip()
        for layer in self.config.layers:
            if layer.id == lid:
                return layer
        raise NotFoundError(f"Layer {lid!r} not found")


@lru_cache(maxsize=1)
def get_catalog() -> Catalog:
    path = catalog_path()
    if not path.exists():
        raise RuntimeError(f"No catalog found at {path}")
    return Catalog.from_yaml(path)


def clear_catalog_cache() -> None:
    """
    Drop the cached catalog so YAML edits are picked up without a restart.
    """
    get_catalog.cache_clear()
