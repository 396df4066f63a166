import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        secret_key: str,
        token_max_age_secs: int,
        default_page_limit: int,
        max_page_limit: int,
        chart_threshold: float,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.secret_key = secret_key
        self.token_max_age_secs = token_max_age_secs
        self.default_page_limit = default_page_limit
        self.max_page_limit = max_page_limit
        self.chart_threshold = chart_threshold
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    database_url = os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}")
    secret_key = os.getenv(
        "FINANCE_SECRET_KEY",
        "5c0f9e61d2a84b7e93a1f4c8d07b62e9a3f58c1d4e7b90a26f13c85d9e0a4b71",
    )
    token_max_age_secs = int(os.getenv("FINANCE_TOKEN_MAX_AGE_SECS", "86400"))
    default_page_limit = int(os.getenv("FINANCE_DEFAULT_PAGE_LIMIT", "10"))
    max_page_limit = int(os.getenv("FINANCE_MAX_PAGE_LIMIT", "100"))
    chart_threshold = float(os.getenv("FINANCE_CHART_THRESHOLD", "0.02"))
    log_level = os.getenv("FINANCE_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        secret_key=secret_key,
        token_max_age_secs=token_max_age_secs,
        default_page_limit=default_page_limit,
        max_page_limit=max_page_limit,
        chart_threshold=chart_threshold,
        log_level=log_level,
    )
