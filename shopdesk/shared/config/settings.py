import os

from dotenv import load_dotenv

load_dotenv()


def _bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _list(name: str, default: str) -> list[str]:
    return [item.strip().lower() for item in os.getenv(name, default).split(",") if item.strip()]


SERVICE_NAME = os.getenv("SERVICE_NAME", "shopdesk")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Database ---
DB_USER = os.getenv("POSTGRES_USER", "postgres")
DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
DB_HOST = os.getenv("POSTGRES_HOST", "localhost")  # In Docker, this will be 'postgres'
DB_PORT = os.getenv("POSTGRES_PORT", "5432")
DB_NAME = os.getenv("POSTGRES_DB", "shopdesk")
DB_ECHO = _bool("DB_ECHO", "false")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# --- Auth ---
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# --- Rate limiting ---
RATE_LIMIT_ENABLED = _bool("RATE_LIMIT_ENABLED", "true")
LOGIN_RATE_LIMIT = os.getenv("LOGIN_RATE_LIMIT", "10/minute")
DOWNLOAD_RATE_LIMIT = os.getenv("DOWNLOAD_RATE_LIMIT", "30/minute")

# --- Payment gateway (Mercado Pago) ---
MERCADO_PAGO_ACCESS_TOKEN = os.getenv("MERCADO_PAGO_ACCESS_TOKEN", "")
MERCADO_PAGO_WEBHOOK_SECRET = os.getenv("MERCADO_PAGO_WEBHOOK_SECRET", "")
MERCADO_PAGO_BASE_URL = os.getenv("MERCADO_PAGO_BASE_URL", "https://api.mercadopago.com")
MERCADO_PAGO_TIMEOUT = float(os.getenv("MERCADO_PAGO_TIMEOUT", "30"))
STATEMENT_DESCRIPTOR = os.getenv("STATEMENT_DESCRIPTOR", "SHOPDESK")
MAX_INSTALLMENTS = int(os.getenv("MAX_INSTALLMENTS", "12"))
CURRENCY_ID = os.getenv("CURRENCY_ID", "BRL")

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/")
BACKEND_PUBLIC_URL = os.getenv(
    "BACKEND_PUBLIC_URL", os.getenv("BACKEND_URL", "http://localhost:8000")
).rstrip("/")

# --- Email ---
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "465"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASS = os.getenv("SMTP_PASS", "")
SMTP_SECURE = _bool("SMTP_SECURE", "true" if SMTP_PORT == 465 else "false")
MAIL_FROM = os.getenv("MAIL_FROM", SMTP_USER or "no-reply@shopdesk.local")
STORE_NAME = os.getenv("STORE_NAME", "Shopdesk")

# --- Digital delivery ---
ALLOWED_DIGITAL_FILE_TYPES = _list(
    "ALLOWED_DIGITAL_FILE_TYPES",
    "application/pdf,application/zip,application/x-zip-compressed,application/epub+zip,"
    "image/png,image/jpeg,image/svg+xml",
)
ALLOWED_DIGITAL_FILE_EXTENSIONS = _list(
    "ALLOWED_DIGITAL_FILE_EXTENSIONS", ".pdf,.zip,.epub,.png,.jpg,.jpeg,.svg"
)

# --- Observability ---
OTEL_ENABLED = _bool("OTEL_ENABLED", "true")
OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT", "http://localhost:4317")
