"""
config.py — environment variables and application constants.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# ── Secrets ──────────────────────────────────────────────────────────────────
SUPABASE_URL: str = os.getenv("SUPABASE_URL", "http://localhost:54321").rstrip("/")
SUPABASE_ANON_KEY: str = os.getenv("SUPABASE_ANON_KEY", "")
SUPABASE_SERVICE_ROLE_KEY: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
PUBLIC_SITE_URL: str = os.getenv("PUBLIC_SITE_URL", "http://localhost:5173").rstrip("/")

# ── Versioning ────────────────────────────────────────────────────────────────
APP_VERSION: str = "1.4.0"

# ── Hosted backend ────────────────────────────────────────────────────────────
SUPABASE_TIMEOUT: float = 30.0

BUCKET_INPUT_PHOTOS = "input-photos"
BUCKET_AVATARS = "avatars"
BUCKET_AVATAR_THUMBNAILS = "avatar-thumbnails"
BUCKET_PHOTO_THUMBNAILS = "photo-thumbnails"

TABLE_PROFILES = "profiles"
TABLE_ALLOWLIST = "allowlist"
TABLE_PHOTOS = "photos"
TABLE_GENERATIONS = "generations"
TABLE_INVITE_CODES = "invite_codes"
TABLE_STYLES = "styles"
TABLE_STYLE_CATEGORIES = "style_categories"

SIGNED_URL_TTL: int = 3600          # seconds

# ── Image model ───────────────────────────────────────────────────────────────
IMAGE_MODEL_DEFAULT: str = os.getenv("IMAGE_MODEL", "gpt-image-1")
IMAGE_QUALITY: str = os.getenv("IMAGE_QUALITY", "high")
IMAGE_CONNECT_TIMEOUT: float = 10.0
IMAGE_READ_TIMEOUT: float = 180.0
IMAGE_MAX_CONCURRENCY: int = 3      # semaphore cap per process

# Cost per token (USD)
INPUT_TOKEN_COST: float = 2.00 / 1_000_000
OUTPUT_TOKEN_COST: float = 12.00 / 1_000_000

# ── Retry policy (shared for image API + hosted backend) ─────────────────────
RETRY_ATTEMPTS: int = 4
RETRY_BASE_DELAY: float = 1.0       # seconds
RETRY_MAX_DELAY: float = 30.0

# ── Request limits ────────────────────────────────────────────────────────────
MAX_IMAGE_BYTES: int = 10 * 1024 * 1024
CUSTOM_STYLE_MAX_CHARS: int = 500
CUSTOM_PLACEMENT_MAX_CHARS: int = 100
CUSTOMISATION_TEXT_MAX_CHARS: int = 150
NAME_MAX_CHARS: int = 30
EDIT_PROMPT_MAX_CHARS: int = 1000
EXTEND_PROMPT_MAX_CHARS: int = 3000

# ── Thumbnails ────────────────────────────────────────────────────────────────
THUMBNAIL_MAX_SIZE: int = 300
THUMBNAIL_QUALITY: int = 85
PHOTO_THUMBNAIL_QUALITY: int = 98
WALLPAPER_THUMBNAIL_QUALITY: int = 98

# ── Invites ───────────────────────────────────────────────────────────────────
INVITE_CODE_ALPHABET: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_CODE_LENGTH: int = 8
INVITE_CODE_ATTEMPTS: int = 5
INVITE_TTL_DAYS: int = 7
DEFAULT_INVITE_TIER: str = "standard"
ADMIN_INVITE_TIERS = ("premium", "standard")

# ── Public avatars ────────────────────────────────────────────────────────────
PUBLIC_AVATARS_DEFAULT: int = 3
PUBLIC_AVATARS_MIN: int = 1
PUBLIC_AVATARS_MAX: int = 10

# ── Quota fallback (display only) ─────────────────────────────────────────────
DEFAULT_DAILY_LIMIT: int = 20

# ── Styles cache ──────────────────────────────────────────────────────────────
STYLES_CACHE_TTL: float = float(os.getenv("STYLES_CACHE_TTL", "300"))   # seconds
STYLES_CACHE_MAX_ITEMS: int = 64
