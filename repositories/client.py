"""
Supabase client initialization.

This module contains *only* the database connection setup and exposes a single
`supabase` client object for the lead repositories to import and use.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend;
  the automation job writes leads of every organization)

Optional:
- SUPABASE_SCHEMA: Postgres schema holding the lead tables (default "public")
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, ClientOptions, create_client  # type: ignore[import-not-found]

# Load environment variables from the .env file in the project root.
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _require_env(name: str, hint: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing environment variable: {name}. {hint}")
    return value


SUPABASE_URL: str = _require_env("SUPABASE_URL", "Set SUPABASE_URL to your Supabase project URL.")
SUPABASE_KEY: str = _require_env("SUPABASE_KEY", "Set SUPABASE_KEY to your Supabase API key.")
SUPABASE_SCHEMA: str = os.getenv("SUPABASE_SCHEMA") or "public"

# Shared Supabase client used by every repository module.
supabase: Client = create_client(
    SUPABASE_URL,
    SUPABASE_KEY,
    options=ClientOptions(schema=SUPABASE_SCHEMA),
)

__all__ = ["supabase"]
