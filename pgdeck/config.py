"""
Runtime settings read from the environment.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field


class DeckSettings(BaseModel):
    database_url: Optional[str] = None
    pool_min_size: int = Field(default=1, ge=0)
    pool_max_size: int = Field(default=10, ge=1)
    command_timeout: Optional[float] = Field(default=None, gt=0)
    page_size: int = Field(default=100, ge=1)
    error_display_limit: int = Field(default=5, ge=1)
    host: str = "127.0.0.1"
    port: int = 8000


def load_settings() -> DeckSettings:
    """Read PGDECK_* variables into a validated settings object."""
    values = {
        "database_url": os.getenv("PGDECK_DATABASE_URL"),
        "pool_min_size": os.getenv("PGDECK_POOL_MIN_SIZE"),
        "pool_max_size": os.getenv("PGDECK_POOL_MAX_SIZE"),
        "command_timeout": os.getenv("PGDECK_COMMAND_TIMEOUT"),
        "page_size": os.getenv("PGDECK_PAGE_SIZE"),
        "error_display_limit": os.getenv("PGDECK_ERROR_DISPLAY_LIMIT"),
        "host": os.getenv("PGDECK_HOST"),
        "port": os.getenv("PGDECK_PORT"),
    }
    return DeckSettings.model_validate({k: v for k, v in values.items() if v not in (None, "")})
