"""Client modules for external service integrations."""

from synian_skill.clients.synian_core_client import (
    SynianCoreClient,
    build_request_context,
    close_core_client,
    get_core_client
)

__all__ = [
    "SynianCoreClient",
    "build_request_context",
    "close_core_client",
    "get_core_client"
]
