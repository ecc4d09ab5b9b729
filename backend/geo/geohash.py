from __future__ import annotations

from geo.aoi import BBox


_BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
_DECODE = {c: i for i, c in enumerate(_BASE32)}


def encode(lat: float, lon: float, precision: int) -> str:
    """
    Geohash of a lat/lon point with `precision` characters (5 bits per char).

    Bits alternate lon/lat starting with longitude; points on a cell edge fall
    into the upper/right cell.
    """
    lat_lo, lat_hi = -90.0, 90.0
    lon_lo, lon_hi = -180.0, 180.0
    lat = float(lat)
    lon = float(lon)

    out: list[str] = []
    even = True
    bit = 0
    ch = 0
    while len(out) < int(precision):
        if even:
            mid = (lon_lo + lon_hi) / 2.0
            if lon >= mid:
                ch = (ch << 1) | 1
                lon_lo = mid
            else:
                ch = ch << 1
                lon_hi = mid
        else:
            mid = (lat_lo + lat_hi) / 2.0
            if lat >= mid:
                ch = (ch << 1) | 1
                lat_lo = mid
            else:
                ch = ch << 1
                lat_hi = mid
        even = not even
        bit += 1
        if bit == 5:
            out.append(_BASE32[ch])
            bit = 0
            ch = 0
    return "".join(out)


def decode_bbox(geohash: str) -> BBox:
    lat_lo, lat_hi = -90.0, 90.0
    lon_lo, lon_hi = -180.0, 180.0
    even = True
    for c in (geohash or "").strip().lower():
        if c not in _DECODE:
            raise ValueError(f"Invalid geohash character {c!r} in {geohash!r}")
        v = _DECODE[c]
        for shift in (4, 3, 2, 1, 0):
            hi = (v >> shift) & 1
            if even:
                mid = (lon_lo + lon_hi) / 2.0
                if hi:
                    lon_lo = mid
                else:
                    lon_hi = mid
            else:
                mid = (lat_lo + lat_hi) / 2.0
                if hi:
                    lat_lo = mid
                else:
                    lat_hi = mid
            even = not even
    return BBox(min_lon=lon_lo, min_lat=lat_lo, max_lon=lon_hi, max_lat=lat_hi)


def decode_center(geohash: str) -> tuple[float, float]:
    """
    Cell centre as (lon, lat).
    """
    b = decode_bbox(geohash)
    return (b.min_lon + b.max_lon) / 2.0, (b.min_lat + b.max_lat) / 2.0
