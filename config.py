import logging
import os
import secrets
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)


class Settings:
    def __init__(
        self,
        database_url: str,
        token_secret: str,
        token_ttl_hours: int,
        password_method: str,
        admin_emails: frozenset[str],
        debug: bool,
    ) -> None:
        self.database_url = database_url
        self.token_secret = token_secret
        self.token_ttl_hours = token_ttl_hours
        self.password_method = password_method
        self.admin_emails = admin_emails
        self.debug = debug


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("FINANCE_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "finance.db"
        database_url = f"sqlite:///{default_db}"
    token_secret = os.getenv("FINANCE_TOKEN_SECRET", "")
    if not token_secret:
        logger.warning(
            "FINANCE_TOKEN_SECRET is not set; using a per-process secret, "
            "issued tokens will not survive a restart"
        )
        token_secret = secrets.token_hex(32)
    token_ttl_hours = int(os.getenv("FINANCE_TOKEN_TTL_HOURS", "2"))
    password_method = os.getenv("FINANCE_PASSWORD_METHOD", "pbkdf2:sha256:600000")
    admin_emails = frozenset(
        email.strip().lower()
        for email in os.getenv("FINANCE_ADMIN_EMAILS", "").split(",")
        if email.strip()
    )
    return Settings(
        database_url=database_url,
        token_secret=token_secret,
        token_ttl_hours=token_ttl_hours,
        password_method=password_method,
        admin_emails=admin_emails,
        debug=_env_flag("FINANCE_DEBUG"),
    )
