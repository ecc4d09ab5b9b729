"""
Geohash-grid aggregation: precision lookup, query building, response -> GeoJSON, weights.
"""
