"""
Data access for the daily insolation pipeline.

This module contains the GeoTIFF adapter, the store of imported GOES
brightness snapshots and the cache of derived per-slot artifacts.
"""
