# guincho/core/config.py
import os
from pathlib import Path
from typing import List, Optional
from dotenv import load_dotenv

# ================== ENV ==================

ROOT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(ROOT_DIR / ".env")

def env(*names: str, default: Optional[str] = None) -> str:
    for n in names:
        v = os.environ.get(n)
        if v is not None and str(v).strip() != "":
            return v
    if default is not None:
        return default
    raise KeyError(f"Missing required env var. Tried: {', '.join(names)}")

def _csv(raw: str) -> List[str]:
    return [token.strip().lower() for token in raw.split(",") if token.strip()]

# ================== LOGGING ==================

LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ================== ADMIN ==================

# Shared secret for the admin panel. The fallback matches the value the
# dashboard shipped with; set ADMIN_PASSWORD in production.
ADMIN_PASSWORD = env("ADMIN_PASSWORD", default="guincho2024admin")

# ================== METERING ==================

TRIAL_DEFAULT_RIDES = int(os.getenv("TRIAL_DEFAULT_RIDES", "10"))
ONLINE_WINDOW_SECONDS = int(os.getenv("ONLINE_WINDOW_SECONDS", "60"))
BILLING_CYCLE_DAYS = 30

# ================== TENANT ==================

# Hostnames that serve the marketplace itself, never a white-label tenant.
MAIN_DOMAINS = _csv(
    os.getenv("MAIN_DOMAINS", "localhost,127.0.0.1,lovable.app,lovableproject.com")
)

DEFAULT_PRIMARY_COLOR = "#6366f1"
DEFAULT_SECONDARY_COLOR = "#8b5cf6"

# ================== STRIPE ==================

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "").strip()
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "").strip()
FRONTEND_URL = os.getenv("FRONTEND_URL", "https://showtime-guincho.lovable.app").rstrip("/")

STRIPE_PRICES = {
    "basico": {
        "adesao": os.getenv("STRIPE_PRICE_BASICO_ADESAO", "price_1SceWMBNYdvcVByojdMC6cQ0"),
        "mensalidade": os.getenv("STRIPE_PRICE_BASICO_MENSALIDADE", "price_1SceWaBNYdvcVByoGDDOX1uP"),
    },
    "profissional": {
        "adesao": os.getenv("STRIPE_PRICE_PROFISSIONAL_ADESAO", "price_1SceWoBNYdvcVByohVLpAzdO"),
        "dominio": os.getenv("STRIPE_PRICE_PROFISSIONAL_DOMINIO", "price_1SceXIBNYdvcVByoCtx0qiMs"),
        "mensalidade": os.getenv("STRIPE_PRICE_PROFISSIONAL_MENSALIDADE", "price_1SceXTBNYdvcVByoPrryMK14"),
    },
    "pro": {
        "adesao": os.getenv("STRIPE_PRICE_PRO_ADESAO", "price_1SceXeBNYdvcVByoSsbks6c4"),
        "mensalidade": os.getenv("STRIPE_PRICE_PRO_MENSALIDADE", "price_1SceXqBNYdvcVByoDagHr7Sr"),
    },
}

# ================== DATABASE ==================
# Using SQLite for local development/preview environment

DATABASE_URL = os.environ.get("DATABASE_URL", "")

def get_database_url() -> str:
    """Get database URL - supports SQLite or MySQL."""
    if DATABASE_URL:
        return DATABASE_URL

    mysql_host = os.environ.get("MYSQL_HOST")
    if mysql_host:
        mysql_port = int(os.environ.get("MYSQL_PORT", "3306"))
        mysql_user = os.environ.get("MYSQL_USER", "root")
        mysql_password = os.environ.get("MYSQL_PASSWORD", "")
        mysql_db = os.environ.get("MYSQL_DB", "guincho")
        return f"mysql+aiomysql://{mysql_user}:{mysql_password}@{mysql_host}:{mysql_port}/{mysql_db}?charset=utf8mb4"

    db_path = ROOT_DIR / "guincho.db"
    return f"sqlite+aiosqlite:///{db_path}"
