"""
pair-quiz configuration

Backend credentials, polling cadence, and edition assignments live here.
Environment variables override defaults for deployment flexibility.
"""

import os
from dataclasses import dataclass, field
from typing import Literal

from .editions import Edition, parse_edition_map


@dataclass
class SupabaseConfig:
    """Where the hosted backend lives"""
    url: str = os.getenv("SUPABASE_URL", "")
    anon_key: str = os.getenv("SUPABASE_ANON_KEY", "")
    timeout_seconds: float = float(os.getenv("SUPABASE_TIMEOUT", "10.0"))


@dataclass
class PollingConfig:
    """How often the results view re-reads the store"""
    interval_seconds: float = float(os.getenv("RESULTS_POLL_INTERVAL", "5.0"))


@dataclass
class EditionConfig:
    """Which participant answers which question set"""
    assignments: dict[str, Edition] = field(
        default_factory=lambda: parse_edition_map(os.getenv("EDITION_MAP", ""))
    )


@dataclass
class BackendConfig:
    """Backend selection"""
    name: Literal["supabase", "memory"] = os.getenv("PAIR_QUIZ_BACKEND", "supabase")


@dataclass
class Config:
    """Master config, import this"""
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    editions: EditionConfig = field(default_factory=EditionConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)

    @classmethod
    def fast_mode(cls) -> "Config":
        """For development and tests: near-instant polling"""
        cfg = cls()
        cfg.polling.interval_seconds = 0.05
        cfg.supabase.timeout_seconds = 2.0
        return cfg


# Singleton
config = Config()
