from __future__ import annotations

from dataclasses import dataclass

from shapely.geometry import Polygon
from shapely.geometry import box as shapely_box


_MAX_LAT = 90.0
_MAX_LON = 180.0


@dataclass(frozen=True)
class BBox:
    """
    WGS84 bounding box in lon/lat degrees.

    Convention used throughout this repo:
    - minLon, minLat, maxLon, maxLat
    """

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    @classmethod
    def from_corners(cls, corners: list[list[float]] | tuple) -> "BBox":
        """
        Build from [[lon, lat], [lon, lat]] (any two opposite corners).
        """
        (lon0, lat0), (lon1, lat1) = corners
        return cls(
            min_lon=float(lon0), min_lat=float(lat0), max_lon=float(lon1), max_lat=float(lat1)
        ).normalized()

    def normalized(self) -> "BBox":
        min_lon = min(self.min_lon, self.max_lon)
        max_lon = max(self.min_lon, self.max_lon)
        min_lat = min(self.min_lat, self.max_lat)
        max_lat = max(self.min_lat, self.max_lat)
        return BBox(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat)

    def clamped(self) -> "BBox":
        """
        Clamp to valid WGS84 ranges (the search backend rejects out-of-range corners).
        """
        b = self.normalized()
        return BBox(
            min_lon=max(-_MAX_LON, min(_MAX_LON, b.min_lon)),
            min_lat=max(-_MAX_LAT, min(_MAX_LAT, b.min_lat)),
            max_lon=max(-_MAX_LON, min(_MAX_LON, b.max_lon)),
            max_lat=max(-_MAX_LAT, min(_MAX_LAT, b.max_lat)),
        )

    def as_polygon(self) -> Polygon:
        b = self.normalized()
        return shapely_box(b.min_lon, b.min_lat, b.max_lon, b.max_lat)

    def contains(self, other: "BBox") -> bool:
        """
        True when `other` lies entirely inside this bbox (shared edges count as inside).
        """
        return bool(self.as_polygon().covers(other.as_polygon()))

    def as_dict(self) -> dict[str, float]:
        return {
            "minLon": self.min_lon,
            "minLat": self.min_lat,
            "maxLon": self.max_lon,
            "maxLat": self.max_lat,
        }
