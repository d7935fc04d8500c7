"""
Configuration for the daily insolation pipeline
"""
from pathlib import Path

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# Input data paths
DATA_DIR = PROJECT_ROOT / "data"
SNAPSHOT_DIR = DATA_DIR / "goes18"
ELEVATION_FILE = DATA_DIR / "raw" / "dem" / "Z_500m.tif"
LINKE_DIR = DATA_DIR / "raw" / "linke"

# Output directories
WORK_DIR = DATA_DIR / "processed"
LEDGER_DIR = DATA_DIR / "parquet"

# External clear-sky calculator
BUILD_DIR = PROJECT_ROOT / "build"
CLEAR_SKY_BIN = BUILD_DIR / "clear_sky_calculator"

# Snapshot naming
TIMEZONE = -8  # PST, hours from UTC
SNAPSHOT_SUFFIX = "PST-B2"
DEFAULT_PATTERN = "[012][0-9][0-5][0-9]PST-B2"

# Slot parameters
DEFAULT_INTERVAL = 20  # GOES 18 image interval in minutes
SLOT_OFFSET_MINUTES = 1  # GOES 18 scans start at the 1 minute mark

# Cloud index parameters
LOOKBACK_DAYS = 14  # prior days in the albedo floor window, today is added
SMOOTHING_SIZE = 5  # ceiling smoother window
K_MAX = 1.09
K_LOW_THRESHOLD = 0.2

# Wh/m^2 -> MJ/m^2
MJ_PER_WH_M2 = 0.0036

# Output GeoTIFF options
COMPRESSION = "LZW"
PREDICTOR = 3  # Floating point predictor
TILED = True
BLOCKSIZE = 512

# Linke turbidity climatology days available for each month
LINKE_DAYS = (1, 7, 15, 21, 28)
