from __future__ import annotations

import logging

from moving_booking.application.ports.email_transport import EmailTransportPort, OutboundEmail


class MockEmailTransport(EmailTransportPort):
    def __init__(self) -> None:
        self.sent: list[OutboundEmail] = []
        self._logger = logging.getLogger(__name__)

    def send(self, message: OutboundEmail) -> None:
        self.sent.append(message)
        self._logger.info(
            "Mock email send", extra={"reason": message.subject, "status": f"to={message.to}"}
        )
