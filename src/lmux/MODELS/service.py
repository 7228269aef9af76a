"""
Models for services, log options, and the service selection of one invocation.
"""
from typing import List, Literal, Optional, Sequence, Union
from pydantic import BaseModel, ConfigDict, PositiveInt, field_validator
from enum import Enum

class RetrievalStrategy(str, Enum):
    """
    How the logs of a service are fetched.
    """
    ORCHESTRATED = "orchestrated"
    IN_CONTAINER = "in_container"

class ServiceName(str, Enum):
    """
    The closed set of services known to the deployment.
    """
    CHAT = "chat"
    CLSI = "clsi"
    CONTACTS = "contacts"
    DOCSTORE = "docstore"
    DOCUMENT_UPDATER = "document-updater"
    FILESTORE = "filestore"
    GIT_BRIDGE = "git-bridge"
    MONGO = "mongo"
    NOTIFICATIONS = "notifications"
    REAL_TIME = "real-time"
    REDIS = "redis"
    SPELLING = "spelling"
    TAGS = "tags"
    TRACK_CHANGES = "track-changes"
    WEB = "web"
    HISTORY_V1 = "history-v1"
    PROJECT_HISTORY = "project-history"

    @property
    def retrieval_strategy(self) -> RetrievalStrategy:
        """
        Orchestrator-managed services run in their own containers; every
        other service logs to a file inside the consolidated container.
        """
        if self in ORCHESTRATED_SERVICES:
            return RetrievalStrategy.ORCHESTRATED
        return RetrievalStrategy.IN_CONTAINER

ORCHESTRATED_SERVICES = frozenset({
    ServiceName.GIT_BRIDGE,
    ServiceName.MONGO,
    ServiceName.REDIS,
})

ALL_SERVICES: List[ServiceName] = list(ServiceName)

TailLines = Union[PositiveInt, Literal["all"]]

class LogOptions(BaseModel):
    """
    User options shared read-only by every reader.
    """
    model_config = ConfigDict(frozen=True)

    follow: bool = False
    tail_lines: TailLines = 20

    @property
    def tail_all(self) -> bool:
        return self.tail_lines == "all"

class ServiceSelection(BaseModel):
    """
    Ordered services requested by the user. Duplicates are kept; the order
    only decides dispatch order.
    """
    model_config = ConfigDict(frozen=True)

    services: List[ServiceName]

    @field_validator("services")
    @classmethod
    def _not_empty(cls, value: List[ServiceName]) -> List[ServiceName]:
        if not value:
            raise ValueError("a selection needs at least one service")
        return value

    @classmethod
    def from_names(cls, names: Optional[Sequence[str]] = None) -> "ServiceSelection":
        """
        Builds a selection from raw names, defaulting to every known service.

        :param names: Service names as typed by the user.
        :return: The selection.
        :raises ValueError: If a name is not a known service.
        """
        if not names:
            return cls(services=list(ALL_SERVICES))
        return cls(services=[ServiceName(name) for name in names])

    @property
    def is_single(self) -> bool:
        """
        True when exactly one service was requested, which disables line prefixes.
        """
        return len(self.services) == 1
