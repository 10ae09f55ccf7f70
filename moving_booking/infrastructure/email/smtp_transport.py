from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from moving_booking.application.ports.email_transport import EmailTransportPort, OutboundEmail


class SmtpEmailTransport(EmailTransportPort):
    def __init__(
        self,
        host: str,
        port: int,
        username: str | None,
        password: str | None,
        use_tls: bool = True,
        timeout: float = 15.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout
        self._logger = logging.getLogger(__name__)

    def send(self, message: OutboundEmail) -> None:
        msg = build_mime_message(message)
        recipients = [message.to, *message.cc, *message.bcc]

        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls()
            if self._username and self._password:
                server.login(self._username, self._password)
            server.send_message(msg, to_addrs=recipients)

        self._logger.info("SMTP message sent", extra={"reason": message.subject})


def build_mime_message(message: OutboundEmail) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = message.subject
    msg["From"] = message.sender
    msg["To"] = message.to
    if message.cc:
        msg["Cc"] = ", ".join(message.cc)
    msg.set_content(message.text)

    for attachment in message.attachments:
        maintype, _, rest = attachment.content_type.partition("/")
        subtype, _, params = rest.partition(";")
        msg.add_attachment(
            attachment.content,
            maintype=maintype,
            subtype=subtype.strip(),
            filename=attachment.filename,
            params=_parse_params(params),
        )
    return msg


def _parse_params(raw: str) -> dict[str, str]:
    params: dict[str, str] = {}
    for part in raw.split(";"):
        key, sep, value = part.strip().partition("=")
        if sep:
            params[key.strip()] = value.strip()
    return params
