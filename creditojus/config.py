import os


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    BASE_DIR = os.path.dirname(os.path.dirname(__file__))
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_DIR = None if DATABASE_URL else os.path.join(BASE_DIR, "database")
    DB_PATH = DATABASE_URL or os.path.join(DATABASE_DIR, "creditojus.db")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", True)

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-creditojus")
    AUTH_ENABLED = _bool_env("AUTH_ENABLED", True)
    JWT_SECRET = os.environ.get("JWT_SECRET", "creditojus-secret-key-development")
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

    UPLOAD_DIR = os.environ.get("UPLOAD_DIR") or os.path.join(BASE_DIR, "uploads")
    MAX_CONTRACT_FILES = _int_env("MAX_CONTRACT_FILES", 5)
    MAX_FILE_SIZE = _int_env("MAX_UPLOAD_MB", 10) * 1024 * 1024
    # Request cap; the per-file limit is enforced by the document storage.
    MAX_CONTENT_LENGTH = MAX_FILE_SIZE * MAX_CONTRACT_FILES + 64 * 1024

    COMMISSION_RATE = os.environ.get("COMMISSION_RATE", "0.05")
    OFFER_VALIDITY_DAYS = _int_env("OFFER_VALIDITY_DAYS", 7)

    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    SECURITY_HEADERS_ENABLED = _bool_env("SECURITY_HEADERS_ENABLED", True)
    NOTIFICATIONS_ENABLED = _bool_env("NOTIFICATIONS_ENABLED", True)

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL nao definida para ambiente de producao.")
        if env == "production" and self.SECRET_KEY == "dev-secret-creditojus":
            raise RuntimeError("SECRET_KEY insegura para producao.")
        if env == "production" and self.JWT_SECRET == "creditojus-secret-key-development":
            raise RuntimeError("JWT_SECRET insegura para producao.")
