import asyncio
import sys
from pathlib import Path

import pytest


# Ensure `backend/` is on sys.path so tests can import local modules
# like `agg.*`, `geo.*`, and `main`.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))

from catalog.registry import Catalog  # noqa: E402
from catalog.types import CatalogConfig, DataSource, FieldSpec  # noqa: E402
from layers.heatmap import HeatmapLayer  # noqa: E402
from layers.types import LayerDescriptor, SourceDescriptor  # noqa: E402
from render.plotly_map import PlotlyMapRenderer  # noqa: E402
from sources.geohash_grid import GeohashGridSource  # noqa: E402
from sync.lifecycle import RequestLifecycle  # noqa: E402
from telemetry.inspector import RequestInspector  # noqa: E402


def grid_response(buckets):
    """
    Search response with one geohash bucket per (key, doc_count, lon, lat) tuple.
    """
    return {
        "took": 1,
        "hits": {"total": sum(b[1] for b in buckets), "hits": []},
        "aggregations": {
            "2": {
                "buckets": [
                    {
                        "key": key,
                        "doc_count": count,
                        "3": {"location": {"lon": lon, "lat": lat}, "count": count},
                    }
                    for key, count, lon, lat in buckets
                ]
            }
        },
    }


class FakeExecutor:
    """
    Returns queued responses (or raises queued errors) and records every query.

    A response may be an `asyncio.Event`-gated tuple `(event, resp)`: the call waits for
    the event before answering, which lets tests finish fetches out of order.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.queries = []

    async def execute(self, data_source, query):
        self.queries.append(query)
        resp = self.responses.pop(0) if self.responses else grid_response([])
        if isinstance(resp, tuple):
            event, resp = resp
            await event.wait()
        if isinstance(resp, Exception):
            raise resp
        return resp


@pytest.fixture
def data_source():
    return DataSource(
        id="logs",
        title="Logs",
        table="logs",
        timeFieldName="timestamp",
        fields={
            "location": FieldSpec(type="geo_point"),
            "timestamp": FieldSpec(type="date"),
            "bytes": FieldSpec(type="number"),
            "host": FieldSpec(type="string"),
        },
    )


@pytest.fixture
def catalog(data_source):
    layer = LayerDescriptor(
        id="heat",
        label="Heat",
        source=SourceDescriptor(dataSourceId="logs", geoField="location"),
    )
    return Catalog(config=CatalogConfig(dataSources=[data_source], layers=[layer]))


@pytest.fixture
def make_layer(catalog):
    """
    Build a heatmap layer wired to real collaborators and the given executor.
    """

    def _make(executor, **descriptor_overrides):
        descriptor = catalog.get_layer("heat").model_copy(update=descriptor_overrides)
        inspector = RequestInspector()
        renderer = PlotlyMapRenderer()
        lifecycle = RequestLifecycle(inspector)
        source = GeohashGridSource(descriptor.source, catalog=catalog, executor=executor)
        layer = HeatmapLayer(descriptor, source=source, lifecycle=lifecycle, renderer=renderer)
        return layer, lifecycle, renderer, inspector

    return _make


def run(coro):
    return asyncio.run(coro)


