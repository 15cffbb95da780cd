"""
Configuration settings for the screening backend.

Values come from the environment (a local .env file is loaded first).
"""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


# Database
# Postgres in production (Supabase pooler), SQLite for local runs
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./screening.db")
DATABASE_SSLMODE = os.getenv("DATABASE_SSLMODE", "require")

# Object storage
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")
SUPABASE_BUCKET = os.getenv("SUPABASE_BUCKET", "screenings")
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", "uploads"))

# HTTP
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]
FETCH_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", "15"))

# Uploads
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

# Rendering
JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "80"))
ARROWHEAD_LENGTH = float(os.getenv("ARROWHEAD_LENGTH", "10"))
ARROWHEAD_SPREAD_DEGREES = float(os.getenv("ARROWHEAD_SPREAD_DEGREES", "30"))
FILL_ALPHA = float(os.getenv("FILL_ALPHA", "0.3"))
# TrueType font for text annotations; unset picks the first system font found
TEXT_FONT_PATH = os.getenv("TEXT_FONT_PATH")

# Authoring
# Click-without-drag gestures are dropped unless this is set
KEEP_DEGENERATE_SHAPES = _env_bool("KEEP_DEGENERATE_SHAPES", False)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE")


def is_supabase_configured() -> bool:
    """True when both Supabase credentials are present"""
    return bool(SUPABASE_URL and SUPABASE_SERVICE_KEY)
