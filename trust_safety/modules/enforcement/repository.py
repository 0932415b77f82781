"""In-memory repositories for penalties, appeals and moderators.

The embedding application keeps these in sync with its durable store; all
reads here are synchronous so that validation never waits on I/O.
"""

import uuid
from typing import Optional

from trust_safety.modules.enforcement.models import (
    Appeal,
    AppealStatus,
    Moderator,
    UserPenalty,
)


class PenaltyRepository:
    """Repository for UserPenalty records."""

    def __init__(self):
        self._penalties: dict[uuid.UUID, UserPenalty] = {}

    def add(self, penalty: UserPenalty) -> UserPenalty:
        self._penalties[penalty.id] = penalty
        return penalty

    def get_by_id(self, penalty_id: uuid.UUID) -> Optional[UserPenalty]:
        return self._penalties.get(penalty_id)

    def get_by_user(self, user_id: uuid.UUID) -> list[UserPenalty]:
        """Get all penalties for a user, oldest first."""
        penalties = [p for p in self._penalties.values() if p.user_id == user_id]
        return sorted(penalties, key=lambda p: p.created_at)

    def get_active_for_user_content(
        self,
        user_id: uuid.UUID,
        content_id: uuid.UUID,
    ) -> list[UserPenalty]:
        return [
            p for p in self._penalties.values()
            if p.user_id == user_id and p.content_id == content_id and p.is_active
        ]

    def all(self) -> list[UserPenalty]:
        return list(self._penalties.values())


class AppealRepository:
    """Repository for Appeal records."""

    def __init__(self):
        self._appeals: dict[uuid.UUID, Appeal] = {}

    def add(self, appeal: Appeal) -> Appeal:
        self._appeals[appeal.id] = appeal
        return appeal

    def get_by_id(self, appeal_id: uuid.UUID) -> Optional[Appeal]:
        return self._appeals.get(appeal_id)

    def get_pending(self) -> list[Appeal]:
        """Get pending appeals, oldest first."""
        pending = [a for a in self._appeals.values() if a.status == AppealStatus.PENDING]
        return sorted(pending, key=lambda a: a.submitted_at)

    def get_pending_for(self, user_id: uuid.UUID, content_id: uuid.UUID) -> Optional[Appeal]:
        for appeal in self._appeals.values():
            if (
                appeal.user_id == user_id
                and appeal.content_id == content_id
                and appeal.status == AppealStatus.PENDING
            ):
                return appeal
        return None

    def all(self) -> list[Appeal]:
        return list(self._appeals.values())


class ModeratorRepository:
    """Repository for Moderator records."""

    def __init__(self):
        self._moderators: dict[uuid.UUID, Moderator] = {}

    def add(self, moderator: Moderator) -> Moderator:
        self._moderators[moderator.id] = moderator
        return moderator

    def get_by_id(self, moderator_id: uuid.UUID) -> Optional[Moderator]:
        return self._moderators.get(moderator_id)

    def get_active(self) -> list[Moderator]:
        return [m for m in self._moderators.values() if m.is_active]
