from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from layers.types import LayerDescriptor

FieldType = Literal["geo_point", "geo_shape", "date", "number", "string", "boolean"]

GEO_FIELD_TYPES = ("geo_point", "geo_shape")


class FieldSpec(BaseModel):
    type: FieldType
    displayName: str | None = None


class DataSource(BaseModel):
    """
    A queryable collection of documents (an index pattern in search-backend terms).

    Storage:
    - `table`: a table in the executor's DuckDB database, or
    - `path`: a repo-relative CSV/Parquet file read on query.

    geo_point fields are stored as `<name>_lon` / `<name>_lat` columns.
    """

    id: str
    title: str
    table: str | None = None
    path: str | None = None
    timeFieldName: str | None = None
    fields: dict[str, FieldSpec] = Field(default_factory=dict)

    def field(self, name: str) -> FieldSpec | None:
        return self.fields.get((name or "").strip())

    def geo_fields(self) -> list[str]:
        return [n for n, f in self.fields.items() if f.type in GEO_FIELD_TYPES]


class CatalogConfig(BaseModel):
    dataSources: list[DataSource] = Field(default_factory=list)
    layers: list[LayerDescriptor] = Field(default_factory=list)
