"""
Daily solar insolation from GOES visible imagery.

This package contains the daily Heliosat-style integration organized
into logical modules:
- ``data``: raster I/O, the snapshot store and the artifact cache
- ``solar``: clear-sky oracle, cloud index, integration and finalization
- ``utils``: inspection helpers for the daily ledger

The day is processed as a resumable run: every intermediate grid is
cached by (day, slot, kind) so a rerun picks up where the last one
stopped and finalizes at the first image after sunset.
"""

__version__ = "0.1.0"
