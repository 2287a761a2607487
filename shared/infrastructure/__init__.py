"""
Infrastructure module: runtime support shared across components.
"""

from shared.infrastructure.correlation import (
    ConnectionIdFilter,
    client_id_var,
    get_client_id,
)

__all__ = [
    "ConnectionIdFilter",
    "client_id_var",
    "get_client_id",
]
