"""Content-layer gateway.

The moderation core does not own content storage; it looks up authors and
asks the content layer to soft-hide items through this interface.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Optional


class ContentGateway(ABC):
    """Interface to the application's content layer."""

    @abstractmethod
    def register_content(self, content_id: uuid.UUID, author_id: uuid.UUID) -> None:
        """Record the author of newly submitted content."""
        pass

    @abstractmethod
    def get_author_id(self, content_id: uuid.UUID) -> Optional[uuid.UUID]:
        """Get the author of a content item, or None if unknown."""
        pass

    @abstractmethod
    async def hide_content(self, content_id: uuid.UUID, reason: str) -> None:
        """Soft-hide a content item pending review."""
        pass


class InMemoryContentGateway(ContentGateway):
    """Content gateway backed by dictionaries."""

    def __init__(self, authors: Optional[dict[uuid.UUID, uuid.UUID]] = None):
        self.authors: dict[uuid.UUID, uuid.UUID] = dict(authors or {})
        self.hidden: dict[uuid.UUID, str] = {}

    def register_content(self, content_id: uuid.UUID, author_id: uuid.UUID) -> None:
        self.authors[content_id] = author_id

    def get_author_id(self, content_id: uuid.UUID) -> Optional[uuid.UUID]:
        return self.authors.get(content_id)

    async def hide_content(self, content_id: uuid.UUID, reason: str) -> None:
        self.hidden[content_id] = reason

    def is_hidden(self, content_id: uuid.UUID) -> bool:
        return content_id in self.hidden
