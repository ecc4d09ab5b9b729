"""
Query execution backends.

An engine executes a geohash-grid `AggregationQuery` against a data source and returns a
search-backend shaped response (`aggregations.<id>.buckets`).
"""
