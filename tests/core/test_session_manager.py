import sys
import os
import unittest

from cryptography.fernet import Fernet

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from fittrack.core.session_manager import Identity, SessionManager


class TestSessionManager(unittest.TestCase):

    def setUp(self):
        """A manager with a fixed key, so tokens can be issued and checked."""
        self.key = Fernet.generate_key().decode()
        self.manager = SessionManager(secret_key=self.key, ttl_seconds=60)

    def test_token_round_trip(self):
        identity = Identity(user_id="42", display_name="Ana")
        token = self.manager.issue_token(identity)
        self.assertEqual(self.manager.resolve(token), identity)

    def test_missing_token_is_a_guest(self):
        self.assertIsNone(self.manager.resolve(None))
        self.assertIsNone(self.manager.resolve(""))

    def test_tampered_token_is_a_guest(self):
        token = self.manager.issue_token(Identity("42", "Ana"))
        tampered = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")
        self.assertIsNone(self.manager.resolve(tampered))
        self.assertIsNone(self.manager.resolve("not-a-token"))

    def test_token_from_another_key_is_a_guest(self):
        other = SessionManager(secret_key=Fernet.generate_key().decode())
        token = other.issue_token(Identity("42", "Ana"))
        self.assertIsNone(self.manager.resolve(token))

    def test_expired_token_is_a_guest(self):
        token = self.manager.cipher.encrypt_at_time(b'{"id": "42", "name": "Ana"}', current_time=1000).decode()
        self.assertIsNone(self.manager.resolve(token))

    def test_token_without_user_id_is_a_guest(self):
        token = self.manager.cipher.encrypt(b'{"name": "Ana"}').decode()
        self.assertIsNone(self.manager.resolve(token))

    def test_missing_name_defaults(self):
        token = self.manager.cipher.encrypt(b'{"id": 7}').decode()
        self.assertEqual(self.manager.resolve(token), Identity(user_id="7", display_name="there"))

    def test_missing_secret_key_generates_one(self):
        with self.assertLogs("fittrack.core.session_manager", level="WARNING"):
            manager = SessionManager()
        token = manager.issue_token(Identity("1", "Bo"))
        self.assertEqual(manager.resolve(token).display_name, "Bo")

    def test_resolve_request_prefers_cookie(self):
        cookie_token = self.manager.issue_token(Identity("1", "Cookie"))
        header_token = self.manager.issue_token(Identity("2", "Header"))

        identity = self.manager.resolve_request(
            {"fittrack_session": cookie_token},
            {"authorization": f"Bearer {header_token}"},
        )
        self.assertEqual(identity.display_name, "Cookie")

    def test_resolve_request_falls_back_to_bearer_header(self):
        token = self.manager.issue_token(Identity("2", "Header"))
        identity = self.manager.resolve_request({}, {"authorization": f"Bearer {token}"})
        self.assertEqual(identity.user_id, "2")
        self.assertIsNone(self.manager.resolve_request({}, {}))


if __name__ == '__main__':
    unittest.main()
