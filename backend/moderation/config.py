from __future__ import annotations

import os


def _load_dotenv_if_present() -> None:
    """
    Load environment variables from a local `.env` file (dev convenience).

    Production deployments should set real environment variables instead.
    Existing environment variables always win over `.env` entries.
    """
    try:
        from dotenv import load_dotenv

        load_dotenv(override=False)
    except OSError:
        return


# Load .env as early as possible (dev only).
_load_dotenv_if_present()


def _env_float(name: str, default: float, *, lo: float = 0.0, hi: float = 1.0) -> float:
    raw = (os.environ.get(name) or "").strip()
    try:
        v = float(raw or default)
    except ValueError:
        v = default
    # Out-of-range values are clamped, not rejected.
    return min(hi, max(lo, v))


def _env_int(name: str, default: int, *, lo: int = 0) -> int:
    raw = (os.environ.get(name) or "").strip()
    try:
        v = int(raw or default)
    except ValueError:
        v = default
    return max(lo, v)


def database_url() -> str:
    # Fallback for local dev:
    url = os.environ.get("DATABASE_URL") or "sqlite:///./local.db"
    # Some managed providers still supply `postgres://...` which SQLAlchemy treats as invalid.
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def is_local_dev() -> bool:
    """
    Heuristic for local/dev runs.

    We treat the app as "local dev" when DATABASE_URL is not set, because
    `database_url()` falls back to sqlite in that case.
    """
    return not (os.environ.get("DATABASE_URL") or "").strip()


def app_env() -> str:
    """
    Application environment marker:
    - local (default when running with sqlite fallback)
    - staging
    - prod
    """
    raw = (os.environ.get("APP_ENV") or "").strip().lower()
    if raw:
        return raw
    return "local" if is_local_dev() else "prod"


def allowed_hosts() -> list[str]:
    """
    Comma-separated list for TrustedHost middleware.
    Example: ALLOWED_HOSTS=api.example.com,example.com
    """
    raw = (os.environ.get("ALLOWED_HOSTS") or "").strip()
    if not raw:
        return ["*"]
    hosts = [h.strip() for h in raw.split(",") if h.strip()]
    return hosts or ["*"]


def admin_api_token() -> str:
    """
    Shared secret for the review queue endpoints (sent as `X-Admin-Token`).
    Left empty, the endpoints are open in local dev and disabled elsewhere.
    """
    return (os.environ.get("ADMIN_API_TOKEN") or "").strip()


def cors_origins() -> list[str]:
    """
    CORS is required when the admin UI is served from a different origin (e.g. Vite dev server).
    Configure with env `CORS_ORIGINS` as a comma-separated list.
    """
    raw = (os.environ.get("CORS_ORIGINS") or "").strip()
    if raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    return [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]


# -----------------------
# Upload storage
# -----------------------
def uploads_dir() -> str:
    return os.environ.get("UPLOADS_DIR") or os.path.join(os.path.dirname(__file__), "..", "uploads")


def upload_temp_dir() -> str:
    return os.environ.get("UPLOAD_TEMP_DIR") or os.path.join(uploads_dir(), "temp")


def upload_properties_dir() -> str:
    return os.environ.get("UPLOAD_PROPERTIES_DIR") or os.path.join(uploads_dir(), "properties")


def upload_review_dir() -> str:
    return os.environ.get("UPLOAD_REVIEW_DIR") or os.path.join(uploads_dir(), "review")


def public_base_url() -> str:
    """
    Prefix for public image URLs. Empty means URLs are returned relative to the API host.
    """
    return (os.environ.get("PUBLIC_BASE_URL") or "").strip().rstrip("/")


def max_upload_image_bytes() -> int:
    # Default: 5 MB (raw upload bytes).
    return _env_int("MAX_UPLOAD_IMAGE_BYTES", 5 * 1024 * 1024, lo=1)


# -----------------------
# Vision inference (Google Cloud Vision REST)
# -----------------------
def vision_api_key() -> str:
    return (os.environ.get("GOOGLE_VISION_API_KEY") or "").strip()


def vision_endpoint() -> str:
    return (os.environ.get("GOOGLE_VISION_ENDPOINT") or "https://vision.googleapis.com/v1/images:annotate").strip()


def vision_timeout_seconds() -> float:
    return _env_float("VISION_TIMEOUT_SECONDS", 30.0, lo=1.0, hi=120.0)


def vision_max_labels() -> int:
    return _env_int("VISION_MAX_LABELS", 20, lo=1)


# -----------------------
# Moderation thresholds
# -----------------------
def blur_threshold() -> float:
    """
    Blur score above which an image counts as blurry (0 = sharp, 1 = very blurry).
    """
    return _env_float("MODERATION_BLUR_THRESHOLD", 0.3)


def property_context_threshold() -> float:
    return _env_float("MODERATION_PROPERTY_CONTEXT_THRESHOLD", 0.3)


def property_label_min_score() -> float:
    return _env_float("MODERATION_PROPERTY_LABEL_MIN_SCORE", 0.3)


def safesearch_min_likelihood() -> str:
    """
    Lowest safe-search likelihood that flags a category (VERY_UNLIKELY..VERY_LIKELY).
    """
    return (os.environ.get("MODERATION_SAFESEARCH_MIN_LIKELIHOOD") or "LIKELY").strip().upper()


def face_threshold() -> float:
    return _env_float("MODERATION_FACE_THRESHOLD", 0.5)


def human_object_threshold() -> float:
    return _env_float("MODERATION_HUMAN_OBJECT_THRESHOLD", 0.6)


def human_label_threshold() -> float:
    return _env_float("MODERATION_HUMAN_LABEL_THRESHOLD", 0.6)


def animal_object_threshold() -> float:
    return _env_float("MODERATION_ANIMAL_OBJECT_THRESHOLD", 0.6)


def animal_label_threshold() -> float:
    return _env_float("MODERATION_ANIMAL_LABEL_THRESHOLD", 0.7)


def min_image_width() -> int:
    return _env_int("MIN_IMAGE_WIDTH", 400, lo=1)


def min_image_height() -> int:
    return _env_int("MIN_IMAGE_HEIGHT", 300, lo=1)


def blur_workers() -> int:
    # Threads used for the banded Laplacian scan; 1 keeps it on the request thread.
    return _env_int("MODERATION_BLUR_WORKERS", 1, lo=1)
