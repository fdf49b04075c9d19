"""Constants for mdassets."""

from pathlib import Path

from mdassets import __version__

# Application constants
APP_NAME = "mdassets"
APP_VERSION = __version__

# Default paths
DEFAULT_IMAGES_DIR = "source/images"
DEFAULT_POSTS_DIR = "source/_posts"
DEFAULT_LINK_PREFIX = "/images"
DEFAULT_OUTPUT_DIR = "output"
DEFAULT_LOG_DIR = ".logs"
DEFAULT_CONFIG_FILE = "mdassets.yaml"
INDEX_FILENAME = ".mdassets-index.json"  # file ownership, kept at the images root

# Config file locations (in order of priority)
CONFIG_LOCATIONS = [
    Path.cwd() / DEFAULT_CONFIG_FILE,
    Path.home() / ".config" / APP_NAME / "config.yaml",
]

# Front matter fields that may carry a cover image, in priority order
COVER_FIELDS = ("cover", "banner", "image", "thumbnail", "featured_image")

# Alt text markers for references that carry no alt text of their own
COVER_ALT_TEXT = "cover"
HTML_IMAGE_ALT_TEXT = "html-image"

# Extensions recognized as images when deriving local filenames
IMAGE_EXTENSIONS = {
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".webp",
    ".bmp",
    ".svg",
    ".avif",
    ".tif",
    ".tiff",
    ".ico",
}
DEFAULT_IMAGE_EXTENSION = "jpg"
MAX_FILENAME_LENGTH = 50

# Pillow format names that are palette-style (lossless candidates)
PALETTE_FORMATS = {"PNG", "GIF"}

# Target formats: Pillow format name and file extension
TARGET_FORMATS = {
    "webp": ("WEBP", ".webp"),
    "png": ("PNG", ".png"),
    "jpeg": ("JPEG", ".jpg"),
}

# Download settings
DEFAULT_CONCURRENCY = 3
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_RETRY_BASE_DELAY = 1.0  # seconds, multiplied by attempt index
DEFAULT_MIN_PAYLOAD_BYTES = 100  # smaller bodies are treated as error pages

# Compression settings
DEFAULT_MAX_WIDTH = 2400
DEFAULT_MAX_HEIGHT = 2400
DEFAULT_TARGET_FORMAT = "webp"
DEFAULT_TARGET_QUALITY = 90
DEFAULT_LOSSLESS_THRESHOLD = 500 * 1024
DEFAULT_MIN_SAVINGS_RATIO = 0.05
DEFAULT_IMAGE_WORKERS = 4

# Request headers sent with every image download
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9,zh-CN;q=0.8",
    "Sec-Fetch-Mode": "no-cors",
    "Sec-Fetch-Site": "cross-site",
}

# Log categories bound on component loggers
CATEGORY_EXTRACT = "EXTRACT"
CATEGORY_PATH = "PATH"
CATEGORY_NETWORK = "NETWORK"
CATEGORY_TRANSCODE = "TRANSCODE"
CATEGORY_REWRITE = "REWRITE"
CATEGORY_PIPELINE = "PIPELINE"
CATEGORY_FILE = "FILE"
CATEGORY_GIT = "GIT"
CATEGORY_DEPLOY = "DEPLOY"

# Documents accepted by the CLI
MARKDOWN_EXTENSIONS = {".md", ".markdown", ".mdx"}
