"""Server configuration, read from environment variables at startup.

All settings have development defaults; production deployments override
them through ``SERVER_*`` variables (and ``PG_*`` / ``DATABASE_URL`` for the
database, see ``neuro_intake_db.config``).
"""

import os
from dataclasses import dataclass, field

# Query() defaults must be static at decoration time, so these are module-level
DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", "20"))
MAX_PAGE_LIMIT = int(os.getenv("MAX_PAGE_LIMIT", "100"))
DEFAULT_CLEANUP_DAYS = int(os.getenv("DEFAULT_CLEANUP_DAYS", "90"))

ANALYZER_BACKENDS = ("keyword", "http")


@dataclass(frozen=True)
class ServerSettings:
    """Immutable server configuration."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS: comma-separated origins, or "*" for development
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # None means the RulesetStore default (v1/ under the repo root)
    ruleset_dir: str | None = None

    log_level: str = "INFO"

    # "keyword" runs the offline marker rules; "http" posts to analyzer_url
    analyzer_backend: str = "keyword"
    analyzer_url: str | None = None

    # Skip the remaining pathway questions after a critical answer
    short_circuit_on_critical: bool = False

    # Age threshold (days) used by neuro-intake-cleanup; 0 disables it
    session_ttl_days: int = 0

    # When set, X-User-ID is only trusted alongside a matching X-Proxy-Secret
    trusted_proxy_secret: str | None = None

    def __post_init__(self) -> None:
        if self.analyzer_backend not in ANALYZER_BACKENDS:
            raise ValueError(
                f"Unknown analyzer backend {self.analyzer_backend!r}; "
                f"expected one of {', '.join(ANALYZER_BACKENDS)}"
            )
        if self.analyzer_backend == "http" and not self.analyzer_url:
            raise ValueError("SERVER_ANALYZER_URL is required for the http analyzer backend")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def load_settings() -> ServerSettings:
    """Build settings from ``SERVER_*`` environment variables."""
    raw_origins = os.getenv("SERVER_CORS_ORIGINS", "*")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

    return ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8080")),
        cors_origins=origins,
        ruleset_dir=os.getenv("SERVER_RULESET_DIR") or None,
        log_level=os.getenv("SERVER_LOG_LEVEL", "INFO").upper(),
        analyzer_backend=os.getenv("SERVER_ANALYZER_BACKEND", "keyword").lower(),
        analyzer_url=os.getenv("SERVER_ANALYZER_URL") or None,
        short_circuit_on_critical=_env_flag("SERVER_SHORT_CIRCUIT_ON_CRITICAL"),
        session_ttl_days=int(os.getenv("SESSION_TTL_DAYS", "0")),
        trusted_proxy_secret=os.getenv("TRUSTED_PROXY_SECRET") or None,
    )
