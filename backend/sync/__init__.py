"""
Per-layer data sync: refetch decisions and request supersession.
"""
