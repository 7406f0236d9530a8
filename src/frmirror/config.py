"""Runtime settings, read from the environment when not given explicitly."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from .queries import MEETING_DATE_KEY


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """
    Site-level settings shared by the resolver, query filters and mirror.

    default_query_filter: sort applied to article Query blocks that carry no
        variation attribute; callers pass it as ``default_filter`` to
        `frmirror.queries.filter_query_vars` and `filter_rest_query`.
        Empty string leaves such queries unsorted.
    refresh_delay: seconds between a finished save and the mirror re-fetch.
    """

    home_url: str = ""
    default_query_filter: str = MEETING_DATE_KEY
    refresh_delay: float = 0.5
    debug: bool = False

    def __post_init__(self) -> None:
        self.home_url = self.home_url.rstrip("/")
        if self.refresh_delay < 0:
            raise ValueError("refresh_delay must be >= 0")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            home_url=os.getenv("FRM_HOME_URL", ""),
            default_query_filter=os.getenv("FRM_DEFAULT_QUERY_FILTER", MEETING_DATE_KEY),
            refresh_delay=float(os.getenv("FRM_REFRESH_DELAY", "0.5")),
            debug=_env_flag("FRM_DEBUG"),
        )


def configure_logging(settings: Settings) -> None:
    """Root logging setup for scripts and notebooks; libraries only log."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
