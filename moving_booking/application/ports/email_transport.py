from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str  # e.g. "text/calendar; method=REQUEST"


@dataclass(frozen=True)
class OutboundEmail:
    to: str
    subject: str
    text: str
    sender: str
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)
    attachments: list[EmailAttachment] = field(default_factory=list)


class EmailTransportPort(ABC):
    @abstractmethod
    def send(self, message: OutboundEmail) -> None:
        raise NotImplementedError
