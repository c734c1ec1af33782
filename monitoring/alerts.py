"""
============================================================================
UPTIME MONITOR - NOTIFIER
============================================================================
Announces incident openings and recoveries on every channel a monitor has
enabled, and records each delivery attempt in the incident's audit trail.

Channels
--------
email     SMTP with STARTTLS (smtplib in a worker thread)
slack     Incoming webhook, blocks payload posted with httpx
telegram  aiogram Bot.send_message with HTML formatting

All enabled channels are attempted concurrently and independently. A
failing channel becomes a failed DeliveryResult; nothing raised by a
channel ever leaves ``Notifier.deliver``.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
import smtplib
from dataclasses import dataclass, field
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional, Sequence

import httpx
from aiogram import Bot

from config.settings import NotificationSettings, Settings
from database.manager import IncidentRepository
from database.models import (
    Incident,
    Monitor,
    NotificationChannel,
    NotificationEvent,
)
from exceptions.database import StorageFailure
from exceptions.monitoring import NotifierDeliveryFailed
from utils.helpers import StringHelper, TimeHelper
from utils.logger import get_logger


logger = get_logger("Notifier")


# ============================================================================
# DELIVERY RESULT
# ============================================================================

@dataclass
class DeliveryResult:
    """Outcome of one channel attempt."""
    channel: NotificationChannel
    event: NotificationEvent
    success: bool
    sent_at: datetime = field(default_factory=TimeHelper.utc_now)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel": self.channel.value,
            "event": self.event.value,
            "success": self.success,
            "sent_at": self.sent_at.isoformat(),
            "error": self.error,
        }


# ============================================================================
# MESSAGE TEMPLATES
# ============================================================================

def subject_for(monitor: Monitor, event: NotificationEvent) -> str:
    if event == NotificationEvent.RECOVERED:
        return f"✅ Monitor Recovered: {monitor.name}"
    return f"🚨 Monitor Down: {monitor.name}"


def _status_text(monitor: Monitor) -> str:
    return monitor.status.value if monitor.status else "unknown"


def render_email_html(monitor: Monitor, incident: Incident, event: NotificationEvent) -> str:
    esc = StringHelper.escape_html
    name = esc(monitor.name)
    url = esc(monitor.url)

    if event == NotificationEvent.RECOVERED:
        return (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            '<h2 style="color: #27ae60;">✅ Monitor Recovered</h2>'
            '<div style="background-color: #f8f9fa; padding: 20px; border-radius: 5px;">'
            f"<p><strong>Monitor:</strong> {name}</p>"
            f'<p><strong>URL:</strong> <a href="{url}">{url}</a></p>'
            '<p><strong>Status:</strong> <span style="color: #27ae60;">UP</span></p>'
            f"<p><strong>Downtime Duration:</strong> {incident.duration_string()}</p>"
            f"<p><strong>Recovered At:</strong> {TimeHelper.format_datetime(incident.end_time)}</p>"
            "</div></div>"
        )

    lines = [
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">',
        '<h2 style="color: #e74c3c;">⚠️ Monitor Alert</h2>',
        '<div style="background-color: #f8f9fa; padding: 20px; border-radius: 5px;">',
        f"<p><strong>Monitor:</strong> {name}</p>",
        f'<p><strong>URL:</strong> <a href="{url}">{url}</a></p>',
        f'<p><strong>Status:</strong> <span style="color: #e74c3c;">{_status_text(monitor)}</span></p>',
        f"<p><strong>Incident Type:</strong> {StringHelper.humanize_identifier(incident.type.value)}</p>",
        f"<p><strong>Time:</strong> {TimeHelper.format_datetime(incident.start_time)}</p>",
    ]
    if incident.error_message:
        lines.append(f"<p><strong>Error:</strong> {esc(incident.error_message)}</p>")
    if incident.status_code:
        lines.append(f"<p><strong>Status Code:</strong> {incident.status_code}</p>")
    if incident.response_time:
        lines.append(f"<p><strong>Response Time:</strong> {incident.response_time}ms</p>")
    lines.append("</div></div>")
    return "".join(lines)


def render_slack_payload(monitor: Monitor, incident: Incident, event: NotificationEvent) -> Dict[str, Any]:
    if event == NotificationEvent.RECOVERED:
        header = "✅ Monitor Recovered"
        fields = [
            {"type": "mrkdwn", "text": f"*Monitor:*\n{monitor.name}"},
            {"type": "mrkdwn", "text": "*Status:*\nUP"},
            {"type": "mrkdwn", "text": f"*URL:*\n{monitor.url}"},
            {"type": "mrkdwn", "text": f"*Downtime:*\n{incident.duration_string()}"},
        ]
    else:
        header = "🚨 Monitor Alert"
        fields = [
            {"type": "mrkdwn", "text": f"*Monitor:*\n{monitor.name}"},
            {"type": "mrkdwn", "text": f"*Status:*\n{_status_text(monitor)}"},
            {"type": "mrkdwn", "text": f"*URL:*\n{monitor.url}"},
            {"type": "mrkdwn", "text": f"*Type:*\n{incident.type.value}"},
        ]

    return {
        "text": subject_for(monitor, event),
        "blocks": [
            {"type": "header", "text": {"type": "plain_text", "text": header}},
            {"type": "section", "fields": fields},
        ],
    }


def render_telegram_text(monitor: Monitor, incident: Incident, event: NotificationEvent) -> str:
    esc = StringHelper.escape_html

    if event == NotificationEvent.RECOVERED:
        return (
            f"🟢 <b>{esc(monitor.name)} is back UP</b>\n\n"
            f"<b>URL:</b> {esc(monitor.url)}\n"
            f"<b>Downtime:</b> {incident.duration_string()}\n"
            f"<b>Recovered At:</b> {TimeHelper.format_datetime(incident.end_time)}"
        )

    lines = [
        f"🔴 <b>{esc(monitor.name)} - {StringHelper.humanize_identifier(incident.type.value)}</b>",
        "",
        f"<b>URL:</b> {esc(monitor.url)}",
        f"<b>Status:</b> {_status_text(monitor)}",
        f"<b>Detected At:</b> {TimeHelper.format_datetime(incident.start_time)}",
    ]
    if incident.error_message:
        lines.append(f"<b>Error:</b> {esc(StringHelper.truncate(incident.error_message, 300))}")
    if incident.status_code:
        lines.append(f"<b>Status Code:</b> {incident.status_code}")
    if incident.response_time:
        lines.append(f"<b>Response Time:</b> {incident.response_time}ms")
    return "\n".join(lines)


# ============================================================================
# CHANNEL ADAPTERS
# ============================================================================

class AlertChannel:
    """
    One way of delivering a notification.

    ``send`` returns normally on success and raises NotifierDeliveryFailed
    (or anything else) on failure.
    """

    channel: NotificationChannel

    def is_enabled(self, monitor: Monitor) -> bool:
        raise NotImplementedError

    async def send(self, monitor: Monitor, incident: Incident, event: NotificationEvent) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        """Release any held resources."""


class EmailChannel(AlertChannel):
    """SMTP delivery. Attempted whenever the monitor has email alerts on."""

    channel = NotificationChannel.EMAIL

    def __init__(self, settings: NotificationSettings):
        self.settings = settings

    def is_enabled(self, monitor: Monitor) -> bool:
        return bool(monitor.alert_email)

    def _build_message(self, monitor: Monitor, incident: Incident, event: NotificationEvent) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.settings.email_from or self.settings.email_user
        msg["To"] = self.settings.email_to
        msg["Subject"] = subject_for(monitor, event)
        msg.attach(MIMEText(render_email_html(monitor, incident, event), "html", "utf-8"))
        return msg

    def _send_blocking(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(
            self.settings.email_host,
            self.settings.email_port,
            timeout=self.settings.webhook_timeout,
        ) as server:
            server.starttls()
            server.login(
                self.settings.email_user,
                self.settings.email_password.get_secret_value(),
            )
            server.send_message(msg)

    async def send(self, monitor: Monitor, incident: Incident, event: NotificationEvent) -> None:
        if not self.settings.email_configured:
            raise NotifierDeliveryFailed(
                "Email service not configured",
                channel=self.channel.value,
            )

        msg = self._build_message(monitor, incident, event)
        try:
            await asyncio.to_thread(self._send_blocking, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotifierDeliveryFailed(
                f"SMTP delivery failed: {e}",
                channel=self.channel.value,
                cause=e,
            ) from e


class SlackChannel(AlertChannel):
    """Slack incoming-webhook delivery."""

    channel = NotificationChannel.SLACK

    def __init__(
        self,
        settings: NotificationSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport

    def is_enabled(self, monitor: Monitor) -> bool:
        return bool(monitor.alert_slack) and self.settings.slack_configured

    async def send(self, monitor: Monitor, incident: Incident, event: NotificationEvent) -> None:
        payload = render_slack_payload(monitor, incident, event)
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.webhook_timeout),
                transport=self._transport,
            ) as client:
                response = await client.post(self.settings.slack_webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotifierDeliveryFailed(
                f"Slack webhook failed: {e}",
                channel=self.channel.value,
                cause=e,
            ) from e


class TelegramChannel(AlertChannel):
    """Telegram delivery through an aiogram Bot."""

    channel = NotificationChannel.TELEGRAM

    def __init__(self, settings: NotificationSettings, bot: Optional[Bot] = None):
        self.settings = settings
        self._bot = bot
        self._owns_bot = bot is None

    def is_enabled(self, monitor: Monitor) -> bool:
        if not monitor.alert_telegram or self.settings.telegram_chat_id is None:
            return False
        return self._bot is not None or self.settings.telegram_configured

    def _get_bot(self) -> Bot:
        if self._bot is None:
            self._bot = Bot(token=self.settings.telegram_bot_token.get_secret_value())
        return self._bot

    async def send(self, monitor: Monitor, incident: Incident, event: NotificationEvent) -> None:
        text = render_telegram_text(monitor, incident, event)
        try:
            await self._get_bot().send_message(
                chat_id=self.settings.telegram_chat_id,
                text=text,
                parse_mode="HTML",
            )
        except Exception as e:
            raise NotifierDeliveryFailed(
                f"Telegram delivery failed: {e}",
                channel=self.channel.value,
                cause=e,
            ) from e

    async def close(self) -> None:
        if self._owns_bot and self._bot is not None:
            await self._bot.session.close()
            self._bot = None


# ============================================================================
# NOTIFIER
# ============================================================================

class Notifier:
    """
    Fan-out delivery with an append-only audit trail.

    Parameters
    ----------
    incidents : IncidentRepository
        Where audit rows are appended.
    settings : Settings
        Application settings; the ``notifications`` section configures
        the default channels.
    channels : list[AlertChannel] | None
        Channel adapters to use. Defaults to email, Slack and Telegram.
    bot : aiogram.Bot | None
        Existing Bot for the Telegram channel. If None one is created
        from the configured token on first use.
    """

    def __init__(
        self,
        incidents: IncidentRepository,
        settings: Settings,
        channels: Optional[Sequence[AlertChannel]] = None,
        bot: Optional[Bot] = None,
    ):
        self.incidents = incidents
        self.settings = settings

        if channels is None:
            notification_settings = settings.notifications
            channels = [
                EmailChannel(notification_settings),
                SlackChannel(notification_settings),
                TelegramChannel(notification_settings, bot=bot),
            ]
        self.channels: List[AlertChannel] = list(channels)

        self.sent_count = 0
        self.failed_count = 0

        logger.info(
            f"Notifier created with channels: "
            f"{', '.join(c.channel.value for c in self.channels) or 'none'}"
        )

    def enabled_channels(self, monitor: Monitor) -> List[AlertChannel]:
        return [channel for channel in self.channels if channel.is_enabled(monitor)]

    async def deliver(
        self,
        monitor: Monitor,
        incident: Incident,
        event: NotificationEvent,
    ) -> List[DeliveryResult]:
        """
        Send *event* for *incident* on every enabled channel.

        Returns
        -------
        list[DeliveryResult]
            One result per attempted channel, in channel order. Never raises.
        """
        channels = self.enabled_channels(monitor)
        if not channels:
            logger.warning(
                f"[Notifier] ⚠️ No alert channels enabled for {monitor.name}; "
                f"{event.value} for incident #{incident.id} not sent"
            )
            return []

        results = await asyncio.gather(
            *(self._attempt(channel, monitor, incident, event) for channel in channels)
        )

        for result in results:
            await self._record(incident, result)

        return list(results)

    async def _attempt(
        self,
        channel: AlertChannel,
        monitor: Monitor,
        incident: Incident,
        event: NotificationEvent,
    ) -> DeliveryResult:
        try:
            await channel.send(monitor, incident, event)
        except NotifierDeliveryFailed as e:
            self.failed_count += 1
            logger.error(
                f"[Notifier] ✗ {channel.channel.value} {event.value} alert for "
                f"{monitor.name} failed: {e.message}"
            )
            return DeliveryResult(channel=channel.channel, event=event, success=False, error=e.message)
        except Exception as e:
            self.failed_count += 1
            logger.opt(exception=True).error(
                f"[Notifier] ✗ {channel.channel.value} {event.value} alert for "
                f"{monitor.name} raised unexpectedly: {e}"
            )
            return DeliveryResult(
                channel=channel.channel,
                event=event,
                success=False,
                error=f"{type(e).__name__}: {e}",
            )

        self.sent_count += 1
        logger.info(
            f"[Notifier] 📧 {channel.channel.value} {event.value} alert sent for {monitor.name}"
        )
        return DeliveryResult(channel=channel.channel, event=event, success=True)

    async def _record(self, incident: Incident, result: DeliveryResult) -> None:
        try:
            await self.incidents.add_notification(
                incident,
                channel=result.channel,
                event=result.event,
                success=result.success,
                error=result.error,
                sent_at=result.sent_at,
            )
        except StorageFailure as e:
            logger.error(
                f"[Notifier] Could not record {result.channel.value} delivery for "
                f"incident #{incident.id}: {e}"
            )

    async def close(self) -> None:
        for channel in self.channels:
            await channel.close()

    def get_stats(self) -> Dict[str, Any]:
        """Return delivery counters for diagnostics."""
        return {
            "channels": [channel.channel.value for channel in self.channels],
            "sent": self.sent_count,
            "failed": self.failed_count,
        }
