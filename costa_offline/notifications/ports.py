import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class PushMessage:
    """What the push service delivers."""

    title: str
    description: str = ""
    url: str = ""

    @classmethod
    def from_payload(cls, payload: bytes | str) -> "PushMessage":
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError(f"push payload must be a JSON object, got {type(data).__name__}")
        return cls(
            title=data.get("title", ""),
            description=data.get("description", ""),
            url=data.get("url", ""),
        )


@dataclass
class NotificationAction:
    action: str   # "view"
    title: str    # "Ver detalhes"


@dataclass
class Notification:
    """What we show to the user."""

    title: str
    body: str
    icon: str
    badge: str
    data: str          # URL to open on "view"
    actions: list[NotificationAction] = field(default_factory=list)
    closed: bool = False

    def close(self) -> None:
        self.closed = True


class NotificationDisplay(ABC):
    """
    Port: how notifications reach the user.

    The cache manager depends ONLY on this interface.
    It doesn't know or care whether it is an OS toast,
    a browser notification, or a line on the console.
    """

    @abstractmethod
    async def show(self, notification: Notification) -> None:
        ...
