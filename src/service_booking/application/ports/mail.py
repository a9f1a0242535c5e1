"""Port interface for the external mail transport."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class MailMessage:
    """Rendered email ready for delivery."""

    to: str
    subject: str
    text: str
    html: str

    def __post_init__(self) -> None:
        """Validate message."""
        if not self.to or "@" not in self.to:
            raise ValueError("Invalid recipient address")
        if not self.subject.strip():
            raise ValueError("Subject cannot be empty")


class MailTransport(ABC):
    """Single best-effort delivery of a rendered message."""

    @abstractmethod
    async def send(self, message: MailMessage) -> bool:
        """Attempt delivery once and report whether it succeeded."""
        raise NotImplementedError
