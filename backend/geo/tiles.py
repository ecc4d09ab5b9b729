from __future__ import annotations

import math

from geo.aoi import BBox


_MAX_MERCATOR_LAT = 85.05112878
_MAX_TILE_ZOOM = 24


def tile_zoom_for_view_zoom(view_zoom: float) -> int:
    """
    Slippy-tile zoom used when buffering the viewport.

    Map clients report fractional zoom; tiles exist on integer levels only.
    """
    z = int(math.floor(float(view_zoom)))
    return max(0, min(_MAX_TILE_ZOOM, z))


def lonlat_to_tile(zoom: int, lon: float, lat: float) -> tuple[int, int]:
    """
    Convert lon/lat in EPSG:4326 to slippy tile (x, y) at zoom.
    """
    z = int(zoom)
    n = 2**z

    # Clamp to WebMercator-supported latitudes.
    lat = max(-_MAX_MERCATOR_LAT, min(_MAX_MERCATOR_LAT, float(lat)))

    lon = float(lon)
    lat_rad = math.radians(lat)

    x = int(math.floor((lon + 180.0) / 360.0 * n))
    y = int(
        math.floor(
            (1.0 - math.log(math.tan(lat_rad) + (1.0 / math.cos(lat_rad))) / math.pi)
            / 2.0
            * n
        )
    )
    # Clamp indices to valid tile range.
    x = max(0, min(n - 1, x))
    y = max(0, min(n - 1, y))
    return x, y


def tile_bbox_4326(zoom: int, x: int, y: int) -> BBox:
    """
    Slippy tile (z/x/y) bounds as a WGS84 lon/lat bbox.
    """
    z = int(zoom)
    n = 2**z
    x = int(x)
    y = int(y)

    lon_left = x / n * 360.0 - 180.0
    lon_right = (x + 1) / n * 360.0 - 180.0

    def lat_from_tile_y(tile_y: int) -> float:
        # https://wiki.openstreetmap.org/wiki/Slippy_map_tilenames
        t = math.pi * (1.0 - 2.0 * tile_y / n)
        return math.degrees(math.atan(math.sinh(t)))

    lat_top = lat_from_tile_y(y)
    lat_bottom = lat_from_tile_y(y + 1)

    return BBox(
        min_lon=lon_left, min_lat=lat_bottom, max_lon=lon_right, max_lat=lat_top
    ).normalized()


def expand_to_tile_boundaries(extent: BBox, view_zoom: float) -> BBox:
    """
    Grow the visible extent to the edges of the slippy tiles it touches.

    The result is the fetch "buffer": panning inside it does not require new data.
    """
    z = tile_zoom_for_view_zoom(view_zoom)
    b = extent.normalized()

    x0, y0 = lonlat_to_tile(z, b.min_lon, b.max_lat)  # top-left
    x1, y1 = lonlat_to_tile(z, b.max_lon, b.min_lat)  # bottom-right

    top_left = tile_bbox_4326(z, min(x0, x1), min(y0, y1))
    bottom_right = tile_bbox_4326(z, max(x0, x1), max(y0, y1))
    return BBox(
        min_lon=top_left.min_lon,
        min_lat=bottom_right.min_lat,
        max_lon=bottom_right.max_lon,
        max_lat=top_left.max_lat,
    )
