"""
Identity and data backends for pair-quiz

Backends: Supabase (hosted), in-memory (tests and demos)
"""

from .base import (
    Backend, IdentityProvider, DataStore, BackendError,
    AuthenticationError, StoreError,
)
from .supabase import SupabaseBackend
from .memory import InMemoryBackend, create_demo_backend

__all__ = [
    # Base classes and errors
    "Backend",
    "IdentityProvider",
    "DataStore",
    "BackendError",
    "AuthenticationError",
    "StoreError",
    # Backends
    "SupabaseBackend",
    "InMemoryBackend",
    "create_demo_backend",
]


def get_backend(name: str, **kwargs) -> Backend:
    """
    Factory function to get a backend by name.

    Args:
        name: Backend name ('supabase', 'memory', 'demo')
        **kwargs: Backend-specific options

    Returns:
        Configured Backend instance

    Raises:
        ValueError: If backend name is unknown
    """
    backends = {
        "supabase": SupabaseBackend,
        "memory": InMemoryBackend,
        "demo": create_demo_backend,
    }

    if name not in backends:
        raise ValueError(f"Unknown backend: {name}. Valid options: {list(backends.keys())}")

    return backends[name](**kwargs)
