from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Runtime configuration. ``data_file=None`` keeps everything in memory."""

    data_file: Optional[Path] = Path("data") / "trivia.json"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 5000
    # Built browser client to serve at "/"; API-only when unset
    static_dir: Optional[Path] = None

    # Upstream trivia API (OpenTDB compatible)
    trivia_api_url: str = "https://opentdb.com"
    trivia_retries: int = 4
    trivia_backoff_base: float = 0.6
    trivia_backoff_max: float = 5.0
    trivia_cache_ttl: float = 60.0

    # Per-client request limits: (requests, window seconds)
    auth_rate_limit: int = 50
    auth_rate_window: float = 600.0
    write_rate_limit: int = 120
    write_rate_window: float = 60.0
    api_rate_limit: int = 300
    api_rate_window: float = 900.0

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.environ
        origins = env.get("CORS_ORIGINS", "*")
        return cls(
            data_file=Path(env.get("TRIVIA_DATA_FILE", str(Path("data") / "trivia.json"))),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=env.get("LOG_LEVEL", "INFO"),
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", "5000")),
            static_dir=Path(env["STATIC_DIR"]) if env.get("STATIC_DIR") else None,
            trivia_api_url=env.get("TRIVIA_API_URL", "https://opentdb.com"),
            trivia_retries=int(env.get("TRIVIA_RETRIES", "4")),
            trivia_backoff_base=float(env.get("TRIVIA_BACKOFF_BASE", "0.6")),
            trivia_backoff_max=float(env.get("TRIVIA_BACKOFF_MAX", "5.0")),
            trivia_cache_ttl=float(env.get("TRIVIA_CACHE_TTL", "60")),
            auth_rate_limit=int(env.get("AUTH_RATE_LIMIT", "50")),
            auth_rate_window=float(env.get("AUTH_RATE_WINDOW", "600")),
            write_rate_limit=int(env.get("WRITE_RATE_LIMIT", "120")),
            write_rate_window=float(env.get("WRITE_RATE_WINDOW", "60")),
            api_rate_limit=int(env.get("API_RATE_LIMIT", "300")),
            api_rate_window=float(env.get("API_RATE_WINDOW", "900")),
        )


__all__ = ["Settings"]
