#!/usr/bin/env python3
"""
Tests for the Discord webhook notifier.

Run with:
    python -m pytest tests/test_webhook_notifier.py
"""
import os
import sys
import unittest
from unittest.mock import MagicMock, patch

import requests

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from webhook_notifier import (
    APPLICATION_COLOUR, CONTACT_COLOUR, WebhookNotifier, truncate,
)

WEBHOOK = 'https://discord.com/api/webhooks/1/abc'

CONTACT = {'name': 'Sam', 'email': 'sam@example.com', 'subject': 'Hi', 'message': 'Hello'}
APPLICATION = {
    'position': 'Scripter', 'name': 'Sam', 'email': 'sam@example.com',
    'discord': '', 'portfolio': 'https://sam.dev', 'experience': 'Lots',
    'answers': [{'question': 'Favourite game?', 'answer': 'Jailbreak'}],
}


def _ok():
    resp = MagicMock()
    resp.status_code = 204
    resp.raise_for_status.return_value = None
    return resp


class TestTruncate(unittest.TestCase):

    def test_short_unchanged(self):
        self.assertEqual(truncate('abc'), 'abc')

    def test_long_clipped_to_limit(self):
        text = truncate('x' * 2000)
        self.assertEqual(len(text), 1024)
        self.assertTrue(text.endswith('...'))

    def test_none(self):
        self.assertEqual(truncate(None), '')


class TestWebhookNotifier(unittest.TestCase):

    @patch('webhook_notifier.requests.post')
    def test_not_configured_skips(self, mock_post):
        notifier = WebhookNotifier({})
        self.assertFalse(notifier.enabled)
        self.assertFalse(notifier.notify_contact(CONTACT))
        mock_post.assert_not_called()

    @patch('webhook_notifier.requests.post')
    def test_placeholder_is_not_configured(self, mock_post):
        notifier = WebhookNotifier({'discord_webhook_url': 'YOUR_DISCORD_WEBHOOK_URL'})
        self.assertFalse(notifier.notify_contact(CONTACT))
        mock_post.assert_not_called()

    @patch('webhook_notifier.requests.post')
    def test_contact_embed(self, mock_post):
        mock_post.return_value = _ok()
        self.assertTrue(WebhookNotifier({'discord_webhook_url': WEBHOOK}).notify_contact(CONTACT))
        url = mock_post.call_args[0][0]
        embed = mock_post.call_args[1]['json']['embeds'][0]
        self.assertEqual(url, WEBHOOK)
        self.assertEqual(embed['color'], CONTACT_COLOUR)
        names = [f['name'] for f in embed['fields']]
        self.assertEqual(names, ['Name', 'Email', 'Subject', 'Message'])
        self.assertIn('timestamp', embed)

    @patch('webhook_notifier.requests.post')
    def test_application_embed_includes_answers(self, mock_post):
        mock_post.return_value = _ok()
        WebhookNotifier({'discord_webhook_url': WEBHOOK}).notify_application(APPLICATION)
        embed = mock_post.call_args[1]['json']['embeds'][0]
        self.assertEqual(embed['color'], APPLICATION_COLOUR)
        fields = {f['name']: f['value'] for f in embed['fields']}
        self.assertEqual(fields['Discord'], 'Not provided')
        self.assertEqual(fields['Favourite game?'], 'Jailbreak')

    @patch('webhook_notifier.requests.post')
    def test_long_message_truncated(self, mock_post):
        mock_post.return_value = _ok()
        WebhookNotifier({'discord_webhook_url': WEBHOOK}).notify_contact(
            dict(CONTACT, message='m' * 5000))
        embed = mock_post.call_args[1]['json']['embeds'][0]
        message = [f for f in embed['fields'] if f['name'] == 'Message'][0]
        self.assertEqual(len(message['value']), 1024)

    @patch('webhook_notifier.requests.post')
    def test_network_error_returns_false(self, mock_post):
        mock_post.side_effect = requests.ConnectionError('down')
        self.assertFalse(WebhookNotifier({'discord_webhook_url': WEBHOOK}).notify_contact(CONTACT))

    @patch('webhook_notifier.requests.post')
    def test_http_error_returns_false(self, mock_post):
        resp = MagicMock()
        resp.raise_for_status.side_effect = requests.HTTPError('400')
        mock_post.return_value = resp
        self.assertFalse(WebhookNotifier({'discord_webhook_url': WEBHOOK}).notify_contact(CONTACT))


if __name__ == '__main__':
    unittest.main()
