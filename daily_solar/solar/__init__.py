"""
Daily insolation calculation.

This module contains the clear-sky oracle that runs the external
calculator executable, the cloud index and the integration of the
day's slots up to the daily total (stored as GeoTIFF and summarized to
Parquet).
"""
