"""Desktop-side client: REST wrapper and local replica."""

from .api_client import ApiClient
from .replica import LocalReplica

__all__ = ["ApiClient", "LocalReplica"]
