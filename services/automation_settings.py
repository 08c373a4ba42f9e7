"""
Automation tunables read from the environment.

Environment variables (all optional):
- LEAD_AUTOMATION_PAGE_SIZE: leads fetched per page (default 50)
- LEAD_AUTOMATION_MAX_WORKERS: worker threads per page (default 4)
- LEAD_AUTOMATION_LEASE_TTL_SECONDS: job lease lifetime (default 3600)
- LEAD_EVENT_WORKERS: threads for post-commit lead events (default 4)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise RuntimeError(f"Environment variable {name} must be positive, got {value}")
    return value


@dataclass(frozen=True, slots=True)
class AutomationSettings:
    page_size: int = 50
    max_workers: int = 4
    lease_ttl_seconds: int = 3600
    event_workers: int = 4

    @classmethod
    def from_env(cls) -> "AutomationSettings":
        return cls(
            page_size=_positive_int("LEAD_AUTOMATION_PAGE_SIZE", 50),
            max_workers=_positive_int("LEAD_AUTOMATION_MAX_WORKERS", 4),
            lease_ttl_seconds=_positive_int("LEAD_AUTOMATION_LEASE_TTL_SECONDS", 3600),
            event_workers=_positive_int("LEAD_EVENT_WORKERS", 4),
        )


__all__ = ["AutomationSettings"]
