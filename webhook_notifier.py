"""
webhook_notifier.py
===================
Forward contact-form messages and job applications to a Discord channel
through an Incoming Webhook, formatted as a single embed per submission.

Delivery is best-effort: the HTTP request runs in the calling thread, and
network or HTTP errors are logged and swallowed so a submission never fails
because Discord is unreachable.

Configuration
-------------
Set ``discord_webhook_url`` in ``config.json`` or the ``DISCORD_WEBHOOK_URL``
environment variable::

    "discord_webhook_url": "https://discord.com/api/webhooks/<id>/<token>"

Usage
-----
::

    from webhook_notifier import WebhookNotifier

    notifier = WebhookNotifier(config)
    notifier.notify_contact(contact_dict)
"""

from __future__ import annotations

import datetime
import logging
from typing import Any, Dict, List

import requests

logger = logging.getLogger('switchgames.webhook')

_DEFAULT_TIMEOUT = 8  # seconds
_FIELD_LIMIT = 1024

CONTACT_COLOUR = 65535
APPLICATION_COLOUR = 3447003
FOOTER_NAME = 'Switch Games'


def truncate(value: Any, limit: int = _FIELD_LIMIT) -> str:
    """Clip *value* to Discord's embed field limit, marking the cut with ``...``."""
    text = str(value) if value is not None else ''
    if len(text) > limit:
        return text[:limit - 3] + '...'
    return text


class WebhookNotifier:
    """Dispatch submission summaries to a Discord webhook.

    Args:
        config:  The application configuration dict.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(self, config: Dict[str, Any], timeout: int = _DEFAULT_TIMEOUT) -> None:
        self._cfg     = config or {}
        self._timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self._get('discord_webhook_url'))

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def notify_contact(self, contact: Dict[str, Any]) -> bool:
        """Post a contact-form submission.

        Args:
            contact: Stored contact record (``name``, ``email``, ``subject``,
                     ``message``).

        Returns:
            ``True`` when Discord accepted the message; ``False`` when the
            webhook is not configured or delivery failed.
        """
        fields = [
            _field('Name', contact.get('name'), inline=True),
            _field('Email', contact.get('email'), inline=True),
            _field('Subject', contact.get('subject')),
            _field('Message', contact.get('message')),
        ]
        return self._send_embed('📧 New Contact Form Submission', CONTACT_COLOUR,
                                fields, f'{FOOTER_NAME} Contact Form')

    def notify_application(self, application: Dict[str, Any]) -> bool:
        """Post a job application, including answers to custom questions.

        Returns:
            ``True`` on a 2xx response, ``False`` otherwise.
        """
        fields = [
            _field('Position', application.get('position')),
            _field('Name', application.get('name'), inline=True),
            _field('Email', application.get('email'), inline=True),
            _field('Discord', application.get('discord') or 'Not provided', inline=True),
            _field('Portfolio', application.get('portfolio') or 'Not provided'),
            _field("Experience & Why They're a Good Fit", application.get('experience')),
        ]
        for answer in application.get('answers') or []:
            if isinstance(answer, dict) and answer.get('question') and answer.get('answer'):
                fields.append(_field(answer['question'], answer['answer']))
        return self._send_embed('💼 New Job Application', APPLICATION_COLOUR,
                                fields, f'{FOOTER_NAME} Job Application')

    def send_discord(self, webhook_url: str, payload: Dict[str, Any]) -> bool:
        """POST *payload* to a Discord webhook.

        Returns:
            ``True`` on a 2xx response, ``False`` otherwise.
        """
        try:
            resp = requests.post(webhook_url, json=payload, timeout=self._timeout)
            resp.raise_for_status()
            logger.info("Discord webhook delivered (HTTP %s)", resp.status_code)
            return True
        except requests.RequestException as exc:
            logger.warning("Discord webhook delivery failed: %s", exc)
            return False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _send_embed(self, title: str, colour: int,
                    fields: List[Dict[str, Any]], footer: str) -> bool:
        url = self._get('discord_webhook_url')
        if not url:
            logger.debug("Discord webhook not configured; skipping '%s'", title)
            return False
        payload = {
            "embeds": [{
                "title": title,
                "color": colour,
                "fields": fields,
                "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
                "footer": {"text": footer},
            }]
        }
        return self.send_discord(url, payload)

    def _get(self, key: str) -> str:
        """Return a config value, or empty string if absent / placeholder."""
        val = self._cfg.get(key, '')
        if not val or not isinstance(val, str):
            return ''
        if val.startswith('YOUR_') or not val.strip():
            return ''
        return val.strip()


def _field(name: str, value: Any, inline: bool = False) -> Dict[str, Any]:
    return {"name": truncate(name, 256), "value": truncate(value) or '-', "inline": inline}
