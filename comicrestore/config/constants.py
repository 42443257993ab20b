"""Constants for ComicRestore."""

from comicrestore import __version__

# Application constants
APP_NAME = "comicrestore"
APP_VERSION = __version__
PRODUCER = "comicrestore"

# Default paths
DEFAULT_OUTPUT_DIR = "output"
DEFAULT_KEEP_PAGES_HOURS = 24.0
DEFAULT_LOG_DIR = ".logs"
DEFAULT_CONFIG_FILE = "config.json"
DEFAULT_REPORT_FILE = "batch_report.json"
DEFAULT_COMBINED_PDF = "combined_restored.pdf"

# Input discovery
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".tif", ".tiff")
MASK_PATTERNS = (
    "{stem}_mask.png",
    "{stem}_mask.jpg",
    "{stem}-mask.png",
    "{stem}.mask.png",
    "mask_{stem}.png",
)
MASK_SUBDIR = "masks"

# Restoration
SUPPORTED_SCALES = (1, 2, 4)
DEFAULT_SCALE = 2
DEFAULT_MATTE_COMPENSATION = 5.0
MAX_MATTE_COMPENSATION = 10.0
DEFAULT_STRENGTH = 1.0
DEFAULT_MAX_PIXELS = 4096 * 4096

# Print geometry (standard US comic trim with 1/8" bleed)
DEFAULT_PAGE_WIDTH_IN = 6.625
DEFAULT_PAGE_HEIGHT_IN = 10.25
DEFAULT_BLEED_IN = 0.125
DEFAULT_DPI = 300
POINTS_PER_INCH = 72

# QA thresholds
DEFAULT_MIN_SHARPNESS_RATIO = 0.6
DEFAULT_MAX_COLOR_DEVIATION = 0.35
DEFAULT_MAX_DAMAGE_RESIDUAL = 0.5
DEFAULT_NEUTRAL_LOW = 5
DEFAULT_NEUTRAL_HIGH = 250
DEFAULT_DAMAGE_TOLERANCE = 32

# Retry settings
DEFAULT_MAX_RESTORE_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 2.0
DEFAULT_RETRY_MAX_DELAY = 60.0
DEFAULT_RETRY_JITTER = 0.25

# Concurrency defaults (the hosted service rate-limits per account)
DEFAULT_CONCURRENCY = 1
RECOMMENDED_MAX_CONCURRENCY = 2

# Hosted inference service
REPLICATE_API_URL = "https://api.replicate.com/v1"
REPLICATE_TOKEN_ENV = "REPLICATE_API_TOKEN"
# nightmareai/real-esrgan
DEFAULT_MODEL_VERSION = "42fed1c4974146d4d2414e2be2c5277c7fcf05fcc3a73abf41610695738c1d7b"
DEFAULT_SERVICE_TIMEOUT = 120
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_MAX_POLLS = 600
