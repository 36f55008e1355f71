"""
Outbound mail.

Every mailer implements `send(message)`, returning None on success and raising
MailFailed when the message could not be handed off. BreakerMailer wraps
another mailer in a CircuitBreaker; while the circuit is open the wrapped
mailer is not called and BreakerOpen is raised instead.
"""

import logging
import smtplib
import threading
from dataclasses import dataclass
from email.message import EmailMessage
from typing import List, Optional

from breaker import CircuitBreaker
from errors import MailFailed, ServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Message:
    to: str
    subject: str
    body: str


class Mailer:
    """Mail transport contract."""

    def send(self, message: Message) -> None:
        raise NotImplementedError


class SMTPMailer(Mailer):
    """Sends plain-text mail through an SMTP relay, with STARTTLS when offered."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        from_addr: str = "noreply@team-tasks.local",
        timeout: float = 10.0,
    ):
        if not host:
            raise ValueError("SMTP host is required")
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_addr = from_addr
        self.timeout = timeout

    def send(self, message: Message) -> None:
        email = EmailMessage()
        email["Subject"] = message.subject
        email["From"] = self.from_addr
        email["To"] = message.to
        email.set_content(message.body)

        try:
            with smtplib.SMTP(host=self.host, port=self.port, timeout=self.timeout) as smtp:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(email)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP delivery to {message.to} failed: {str(e)}")
            raise MailFailed() from e

        logger.info(f"Mail sent to {message.to}: {message.subject}")


class LogMailer(Mailer):
    """Development mailer: writes messages to the log instead of sending them."""

    def send(self, message: Message) -> None:
        logger.info(f"[MAIL] to={message.to} subject={message.subject!r} body={message.body!r}")


class BreakerMailer(Mailer):
    """Routes every send through a circuit breaker."""

    def __init__(self, inner: Mailer, breaker: CircuitBreaker):
        self.inner = inner
        self.breaker = breaker

    def send(self, message: Message) -> None:
        try:
            self.breaker.call(lambda: self.inner.send(message))
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"Mailer raised unexpected error: {str(e)}")
            raise MailFailed() from e


class MockMailer(Mailer):
    """
    In-memory mailer for tests.

    Messages are recorded under a lock; `messages` returns a copy. After
    `set_error(exc)` every send records the message and then raises `exc`.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._messages: List[Message] = []
        self._error: Optional[Exception] = None

    def send(self, message: Message) -> None:
        with self._lock:
            self._messages.append(message)
            error = self._error
        if error is not None:
            raise error

    @property
    def messages(self) -> List[Message]:
        with self._lock:
            return list(self._messages)

    def set_error(self, error: Optional[Exception]) -> None:
        with self._lock:
            self._error = error

    def reset(self) -> None:
        with self._lock:
            self._messages = []
            self._error = None


def welcome_message(email: str) -> Message:
    return Message(to=email, subject="Welcome", body="Your registration was successful")


def invite_message(email: str, code: str) -> Message:
    return Message(to=email, subject="Team invitation", body=f"Your invite code: {code}")
