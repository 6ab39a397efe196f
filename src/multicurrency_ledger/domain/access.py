"""Access contexts for the two credential tiers.

Every request made on behalf of an end user runs with a USER context bound
to that owner. The rate refresh job and manual rate overrides run with a
SERVICE context, which is the only tier allowed to write exchange rates.
Contexts are passed explicitly; nothing reads them from ambient state.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class AccessScope(str, Enum):
    USER = "user"
    SERVICE = "service"


@dataclass(frozen=True, slots=True)
class AccessContext:
    scope: AccessScope
    owner_id: UUID | None = None
    actor: str = ""

    def __post_init__(self) -> None:
        if self.scope == AccessScope.USER and self.owner_id is None:
            raise ValueError("A user access context requires an owner_id")

    @classmethod
    def for_user(cls, owner_id: UUID) -> "AccessContext":
        return cls(scope=AccessScope.USER, owner_id=owner_id, actor=str(owner_id))

    @classmethod
    def for_service(cls, actor: str = "rate-refresh") -> "AccessContext":
        return cls(scope=AccessScope.SERVICE, actor=actor)

    @property
    def is_service(self) -> bool:
        return self.scope == AccessScope.SERVICE
