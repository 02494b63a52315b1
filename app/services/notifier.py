"""Nudge notifications - channel selection, message formatting, transports.

The email transport is picked once at startup: SMTP via aiosmtplib when a
host is configured, otherwise a recorder that logs messages and keeps only
the most recent ones in memory. The dispatcher never raises for a delivery
problem; every attempt comes back as a NudgeOutcome.
"""
import html
from collections import deque
from datetime import datetime
from email.message import EmailMessage
from typing import Optional, Protocol

import aiosmtplib
import structlog
from pydantic import BaseModel

from app.config import Settings
from app.models.goal import Partner
from app.models.nudge import NudgeOutcome, NudgeStatus

log = structlog.get_logger(__name__)

NUDGE_SUBJECT = "\U0001F514 Your accountability buddy needs encouragement!"
SMS_NOT_IMPLEMENTED = "sms-not-implemented"
NO_CONTACT_METHOD = "no-contact-method"
RECORDED_EMAIL_LIMIT = 100


class EmailTransport(Protocol):
    """Something that can deliver one email or raise trying."""

    delivers: bool

    async def send_email(self, to: str, subject: str, body: str, html: Optional[str] = None) -> None:
        ...


class SmtpEmailTransport:
    """Delivers mail through an SMTP server."""

    delivers = True

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = "noreply@2026goals.app",
        use_tls: bool = False,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_tls = use_tls

    async def send_email(self, to: str, subject: str, body: str, html: Optional[str] = None) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        if html:
            message.add_alternative(html, subtype="html")

        await aiosmtplib.send(
            message,
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            use_tls=self.use_tls,
            start_tls=None if self.use_tls else True,
        )


class RecordedEmail(BaseModel):
    to: str
    subject: str
    body: str
    html: Optional[str] = None


class RecordingEmailTransport:
    """Stand-in used when no mail server is configured.

    Only the most recent ``limit`` messages are kept.
    """

    delivers = False

    def __init__(self, limit: int = RECORDED_EMAIL_LIMIT):
        self.sent: deque[RecordedEmail] = deque(maxlen=limit)

    async def send_email(self, to: str, subject: str, body: str, html: Optional[str] = None) -> None:
        self.sent.append(RecordedEmail(to=to, subject=subject, body=body, html=html))
        log.info("nudge.email.recorded", to=to, subject=subject)


def build_email_transport(settings: Settings) -> EmailTransport:
    """Pick the email transport for this process."""
    if settings.email_configured:
        log.info("nudge.transport.smtp", host=settings.smtp_host, port=settings.smtp_port)
        return SmtpEmailTransport(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.email_from,
            use_tls=settings.smtp_use_tls,
        )

    log.warning("nudge.transport.recording", reason="smtp_host not configured")
    return RecordingEmailTransport()


class NudgeContext(BaseModel):
    """What a nudge message talks about."""

    goal_description: str
    last_check_in_label: str


def last_check_in_label(last_check_in_at: Optional[datetime]) -> str:
    """
    Human-readable last check-in date.

    Example:
        >>> last_check_in_label(None)
        'never'
        >>> last_check_in_label(datetime(2026, 1, 1, 10, 0))
        'Thursday, January 1'
    """
    if last_check_in_at is None:
        return "never"
    return f"{last_check_in_at:%A}, {last_check_in_at:%B} {last_check_in_at.day}"


def format_nudge_text(context: NudgeContext) -> str:
    return (
        "Accountability Check-in\n"
        "\n"
        "Your accountability buddy hasn't checked in on their 2026 goal since "
        f"{context.last_check_in_label}.\n"
        "\n"
        f'Their goal: "{context.goal_description}"\n'
        "\n"
        "Maybe send them a quick message of encouragement?\n"
        "\n"
        "---\n"
        "You're receiving this because someone listed you as their accountability buddy.\n"
    )


def format_nudge_html(context: NudgeContext) -> str:
    return f"""\
<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="color: #7c3aed;">Accountability Check-in</h1>
  <p>Hi there!</p>
  <p>
    Your accountability buddy hasn't checked in on their 2026 goal since
    <strong>{html.escape(context.last_check_in_label)}</strong>.
  </p>
  <p>Their goal: <em>"{html.escape(context.goal_description)}"</em></p>
  <p>
    Maybe send them a quick message of encouragement? Sometimes a simple
    "How's your goal going?" can make all the difference!
  </p>
  <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 20px 0;" />
  <p style="color: #6b7280; font-size: 14px;">
    You're receiving this because someone listed you as their accountability buddy
    for their 2026 goals.
  </p>
</div>
"""


class NotificationDispatcher:
    """Sends one nudge to one partner over the preferred channel.

    Email wins whenever the partner has an address; phone-only partners get
    a skipped outcome because SMS delivery is not wired up.
    """

    def __init__(self, transport: EmailTransport):
        self.transport = transport

    async def dispatch(self, partner: Partner, context: NudgeContext) -> NudgeOutcome:
        """
        Attempt a nudge and report what happened.

        Args:
            partner: Accountability partner to notify
            context: Goal description and last check-in label

        Returns:
            NudgeOutcome with SENT, SKIPPED or FAILED status
        """
        if partner.email:
            return await self._send_email(partner.email, context)

        if partner.phone:
            log.info("nudge.sms.skipped", phone=partner.phone, goal=context.goal_description)
            return NudgeOutcome(
                status=NudgeStatus.SKIPPED,
                reason=SMS_NOT_IMPLEMENTED,
                phone=partner.phone,
            )

        log.warning("nudge.partner.no_contact", partner_id=partner.id)
        return NudgeOutcome(status=NudgeStatus.SKIPPED, reason=NO_CONTACT_METHOD)

    async def _send_email(self, email: str, context: NudgeContext) -> NudgeOutcome:
        try:
            await self.transport.send_email(
                to=email,
                subject=NUDGE_SUBJECT,
                body=format_nudge_text(context),
                html=format_nudge_html(context),
            )
        except Exception as e:
            log.error("nudge.email.failed", to=email, error=str(e))
            return NudgeOutcome(
                status=NudgeStatus.FAILED,
                reason=str(e) or type(e).__name__,
                email=email,
            )

        if not self.transport.delivers:
            return NudgeOutcome(
                status=NudgeStatus.SKIPPED,
                reason=f"[DEV] Last check-in: {context.last_check_in_label}",
                email=email,
            )

        return NudgeOutcome(
            status=NudgeStatus.SENT,
            reason=f"Last check-in: {context.last_check_in_label}",
            email=email,
        )
