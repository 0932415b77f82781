"""Content module: gateway to the application's content layer."""

from trust_safety.modules.content.gateway import (
    ContentGateway,
    InMemoryContentGateway,
)

__all__ = [
    "ContentGateway",
    "InMemoryContentGateway",
]
