# fittrack/core/session_manager.py
"""
Resolves who is talking to the API.

Session tokens are Fernet-encrypted JSON payloads carried in a cookie (or an
`Authorization: Bearer` header). The server never keeps session state: a token
either decrypts within its TTL and yields an Identity, or the caller is a guest.
"""
import json
import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str
    display_name: str


class SessionManager:
    """
    Issues and verifies session tokens.
    """
    def __init__(self, secret_key: Optional[str] = None, ttl_seconds: int = 86400,
                 cookie_name: str = "fittrack_session"):
        """
        Args:
            secret_key: A urlsafe base64 Fernet key. Generated if not provided.
            ttl_seconds: How long an issued token stays valid.
            cookie_name: The cookie the HTTP layer reads the token from.
        """
        if secret_key:
            self.cipher = Fernet(secret_key.encode())
        else:
            self.cipher = Fernet(Fernet.generate_key())
            logger.warning(
                "SESSION_SECRET_KEY not found. Generated an ephemeral key; "
                "issued sessions will not survive a restart."
            )
        self.ttl_seconds = ttl_seconds
        self.cookie_name = cookie_name

    def issue_token(self, identity: Identity) -> str:
        """Encrypts the identity into a token string."""
        payload = json.dumps({"id": identity.user_id, "name": identity.display_name})
        return self.cipher.encrypt(payload.encode("utf-8")).decode("ascii")

    def resolve(self, token: Optional[str]) -> Optional[Identity]:
        """
        Returns the Identity in the token, or None for a missing, tampered,
        expired or malformed token.
        """
        if not token:
            return None
        try:
            raw = self.cipher.decrypt(token.encode("ascii"), ttl=self.ttl_seconds)
            payload = json.loads(raw)
        except (InvalidToken, UnicodeEncodeError, ValueError) as e:
            logger.info(f"Rejected session token: {type(e).__name__}")
            return None

        user_id = payload.get("id") if isinstance(payload, dict) else None
        if not user_id:
            logger.info("Rejected session token without a user id.")
            return None
        return Identity(user_id=str(user_id), display_name=str(payload.get("name") or "there"))

    def resolve_request(self, cookies, headers) -> Optional[Identity]:
        """Looks for a token in the session cookie first, then the Authorization header."""
        token = cookies.get(self.cookie_name)
        if not token:
            auth_header = headers.get("authorization", "")
            if auth_header.lower().startswith("bearer "):
                token = auth_header[7:].strip()
        return self.resolve(token)
