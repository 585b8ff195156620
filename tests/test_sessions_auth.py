#!/usr/bin/env python3
"""
Tests for admin sessions, the login throttle, password hashing and the
credential verifier.

Run with:
    python -m pytest tests/test_sessions_auth.py
"""
import hashlib
import os
import shutil
import sys
import tempfile
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import switchgames
from app.errors import AuthError, PersistenceError, RateLimitError, ValidationError
from app.repositories import AccountRepository
from app.services import (
    CredentialVerifier, LoginAttemptTracker, SessionStore, role_allows,
)
from app.services.auth_service import MASTER_ACCOUNT_ID


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# ===========================================================================
# SessionStore
# ===========================================================================

class TestSessionStore(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.store = SessionStore(ttl_seconds=8 * 3600, clock=self.clock)

    def test_token_is_64_hex_chars(self):
        token = self.store.create('editor', 'acc1', 'Ed')
        self.assertEqual(len(token), 64)
        int(token, 16)

    def test_validate_returns_session(self):
        token = self.store.create('editor', 'acc1', 'Ed')
        session = self.store.validate(token)
        self.assertEqual(session['role'], 'editor')
        self.assertEqual(session['accountId'], 'acc1')
        self.assertEqual(session['displayName'], 'Ed')
        self.assertEqual(session['expiresAt'], self.clock.now + 8 * 3600)

    def test_validate_unknown_or_empty(self):
        self.assertIsNone(self.store.validate('nope'))
        self.assertIsNone(self.store.validate(None))
        self.assertIsNone(self.store.validate(''))

    def test_valid_just_before_expiry(self):
        token = self.store.create('editor', 'acc1')
        self.clock.advance(8 * 3600)
        self.assertIsNotNone(self.store.validate(token))

    def test_expired_session_is_evicted(self):
        token = self.store.create('editor', 'acc1')
        self.clock.advance(8 * 3600 + 1)
        self.assertIsNone(self.store.validate(token))
        self.assertEqual(len(self.store), 0)

    def test_validate_returns_copy(self):
        token = self.store.create('editor', 'acc1')
        self.store.validate(token)['role'] = 'superadmin'
        self.assertEqual(self.store.validate(token)['role'], 'editor')

    def test_revoke(self):
        token = self.store.create('editor', 'acc1')
        self.assertTrue(self.store.revoke(token))
        self.assertFalse(self.store.revoke(token))
        self.assertIsNone(self.store.validate(token))

    def test_revoke_all_for_account(self):
        a1 = self.store.create('editor', 'acc1')
        a2 = self.store.create('editor', 'acc1')
        b = self.store.create('editor', 'acc2')
        self.assertEqual(self.store.revoke_all_for_account('acc1'), 2)
        self.assertIsNone(self.store.validate(a1))
        self.assertIsNone(self.store.validate(a2))
        self.assertIsNotNone(self.store.validate(b))

    def test_purge_expired(self):
        self.store.create('editor', 'acc1')
        self.clock.advance(3600)
        fresh = self.store.create('editor', 'acc2')
        self.clock.advance(8 * 3600 - 1800)
        self.assertEqual(self.store.purge_expired(), 1)
        self.assertIsNotNone(self.store.validate(fresh))


# ===========================================================================
# Roles and the login throttle
# ===========================================================================

class TestRoles(unittest.TestCase):

    def test_hierarchy(self):
        self.assertTrue(role_allows('superadmin', 'editor'))
        self.assertTrue(role_allows('admin', 'moderator'))
        self.assertTrue(role_allows('moderator', 'moderator'))
        self.assertFalse(role_allows('editor', 'moderator'))
        self.assertFalse(role_allows('admin', 'superadmin'))

    def test_unknown_role_denied(self):
        self.assertFalse(role_allows('owner', 'editor'))
        self.assertFalse(role_allows(None, 'editor'))


class TestLoginAttemptTracker(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.tracker = LoginAttemptTracker(max_attempts=10, window_seconds=900,
                                           clock=self.clock)

    def test_blocks_after_max_failures(self):
        for _ in range(9):
            self.tracker.record_failure('1.2.3.4')
        self.assertFalse(self.tracker.is_blocked('1.2.3.4'))
        self.tracker.record_failure('1.2.3.4')
        self.assertTrue(self.tracker.is_blocked('1.2.3.4'))
        self.assertFalse(self.tracker.is_blocked('5.6.7.8'))

    def test_failures_age_out(self):
        for _ in range(10):
            self.tracker.record_failure('1.2.3.4')
        self.clock.advance(901)
        self.assertFalse(self.tracker.is_blocked('1.2.3.4'))
        self.assertEqual(self.tracker.failures('1.2.3.4'), 0)

    def test_clear(self):
        for _ in range(10):
            self.tracker.record_failure('1.2.3.4')
        self.tracker.clear('1.2.3.4')
        self.assertFalse(self.tracker.is_blocked('1.2.3.4'))

    def test_purge_expired_forgets_stale_addresses(self):
        for n in range(20):
            self.tracker.record_failure(f'10.0.0.{n}')
        self.clock.advance(600)
        self.tracker.record_failure('10.0.1.1')
        self.clock.advance(301)
        self.assertEqual(self.tracker.purge_expired(), 20)
        self.assertEqual(len(self.tracker), 1)


# ===========================================================================
# Password hashing
# ===========================================================================

class TestPasswordHashing(unittest.TestCase):

    def test_werkzeug_hash_round_trip(self):
        stored = switchgames.hash_password('s3cret!')
        self.assertNotIn('s3cret!', stored)
        self.assertTrue(switchgames.verify_password(stored, 's3cret!'))
        self.assertFalse(switchgames.verify_password(stored, 'wrong'))

    def test_hashes_are_salted(self):
        self.assertNotEqual(switchgames.hash_password('same'), switchgames.hash_password('same'))

    def test_legacy_sha256_digest(self):
        digest = hashlib.sha256(b'letmein').hexdigest()
        self.assertTrue(switchgames.verify_password(digest, 'letmein'))
        self.assertTrue(switchgames.verify_password(digest.upper(), 'letmein'))
        self.assertFalse(switchgames.verify_password(digest, 'letmeout'))

    def test_empty_inputs(self):
        self.assertFalse(switchgames.verify_password('', 'x'))
        self.assertFalse(switchgames.verify_password(switchgames.hash_password('x'), ''))

    def test_garbage_hash(self):
        self.assertFalse(switchgames.verify_password('not-a-hash', 'x'))


# ===========================================================================
# CredentialVerifier
# ===========================================================================

class TestCredentialVerifier(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.clock = FakeClock()
        self.sessions = SessionStore(clock=self.clock)
        self.attempts = LoginAttemptTracker(clock=self.clock)
        self.accounts = AccountRepository(os.path.join(self.tmp, 'staff-accounts.json'))
        self.accounts.create({
            'username': 'alice',
            'passwordHash': switchgames.hash_password('alicepw'),
            'displayName': 'Alice',
            'role': 'editor',
            'lastLogin': None,
        })
        self.verifier = CredentialVerifier(
            self.sessions, self.accounts, self.attempts,
            master_hash=switchgames.hash_password('masterpw'),
        )

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def test_master_login_without_username(self):
        result = self.verifier.login(None, 'masterpw', '1.1.1.1')
        self.assertEqual(result.role, 'superadmin')
        self.assertEqual(result.account_id, MASTER_ACCOUNT_ID)
        self.assertEqual(self.sessions.validate(result.token)['role'], 'superadmin')

    def test_master_login_as_admin(self):
        result = self.verifier.login('Admin', 'masterpw', '1.1.1.1')
        self.assertEqual(result.display_name, 'Administrator')

    def test_account_login(self):
        result = self.verifier.login('alice', 'alicepw', '1.1.1.1')
        self.assertEqual(result.role, 'editor')
        self.assertEqual(result.display_name, 'Alice')
        self.assertIsNotNone(self.accounts.find_by_username('alice')['lastLogin'])

    def test_wrong_password(self):
        with self.assertRaises(AuthError) as ctx:
            self.verifier.login('alice', 'nope', '1.1.1.1')
        self.assertEqual(ctx.exception.message, 'Invalid credentials')
        self.assertEqual(self.attempts.failures('1.1.1.1'), 1)

    def test_unknown_user(self):
        with self.assertRaises(AuthError):
            self.verifier.login('mallory', 'alicepw', '1.1.1.1')

    def test_missing_password(self):
        with self.assertRaises(ValidationError):
            self.verifier.login('alice', '', '1.1.1.1')
        self.assertEqual(self.attempts.failures('1.1.1.1'), 0)

    def test_no_master_configured(self):
        verifier = CredentialVerifier(self.sessions, self.accounts, self.attempts)
        with self.assertRaises(AuthError):
            verifier.login(None, 'anything', '1.1.1.1')

    def test_eleventh_attempt_is_rate_limited(self):
        for _ in range(10):
            with self.assertRaises(AuthError):
                self.verifier.login('alice', 'bad', '9.9.9.9')
        with self.assertRaises(RateLimitError):
            self.verifier.login('alice', 'alicepw', '9.9.9.9')
        # other addresses are unaffected
        self.verifier.login('alice', 'alicepw', '8.8.8.8')

    def test_success_clears_failures(self):
        for _ in range(9):
            with self.assertRaises(AuthError):
                self.verifier.login('alice', 'bad', '9.9.9.9')
        self.verifier.login('alice', 'alicepw', '9.9.9.9')
        self.assertEqual(self.attempts.failures('9.9.9.9'), 0)

    def test_last_login_write_failure_does_not_block_login(self):
        with patch.object(self.accounts, 'update', side_effect=PersistenceError()):
            result = self.verifier.login('alice', 'alicepw', '1.1.1.1')
        self.assertIsNotNone(self.sessions.validate(result.token))

    def test_login_purges_expired_sessions_and_failures(self):
        for _ in range(5):
            self.verifier.login('alice', 'alicepw', '1.1.1.1')
        with self.assertRaises(AuthError):
            self.verifier.login('alice', 'bad', '2.2.2.2')
        self.clock.advance(9 * 3600)
        self.verifier.login('alice', 'alicepw', '1.1.1.1')
        self.assertEqual(len(self.sessions), 1)
        self.assertEqual(len(self.attempts), 0)

    def test_logout(self):
        result = self.verifier.login('alice', 'alicepw', '1.1.1.1')
        self.assertTrue(self.verifier.logout(result.token))
        self.assertIsNone(self.sessions.validate(result.token))


if __name__ == '__main__':
    unittest.main()
