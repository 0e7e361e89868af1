"""
Identity verification service.
Turns a bearer credential into a verified principal.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional
import logging

import jwt

from ..config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """A verified caller."""
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    admin_claim: bool = False


class AuthService:
    """Handles token verification and admin checks."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        expiration_hours: Optional[int] = None,
        admin_emails: Optional[Iterable[str]] = None
    ):
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.expiration_hours = expiration_hours or settings.jwt_expiration_hours
        emails = admin_emails if admin_emails is not None else settings.admin_emails
        self.admin_emails = {email.lower() for email in emails}

    def create_token(
        self,
        user_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
        admin: bool = False,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Create a signed access token.

        Args:
            user_id: User identifier
            email: User email
            name: Display name
            admin: Admin custom claim
            metadata: Additional claims

        Returns:
            JWT token string
        """
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "sub": user_id,
            "exp": now + timedelta(hours=self.expiration_hours),
            "iat": now,
            "type": "access"
        }

        if email:
            payload["email"] = email
        if name:
            payload["name"] = name
        if admin:
            payload["admin"] = True
        if metadata:
            payload.update(metadata)

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

        logger.debug(f"Created token for user: {user_id}")
        return token

    def verify_token(self, token: str) -> Optional[Principal]:
        """
        Verify a token.

        Args:
            token: JWT token string

        Returns:
            Principal, or None if the token is invalid or expired
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])

        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired token")
            return None

        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected invalid token: {e}")
            return None

        user_id = payload.get("sub")
        if not user_id:
            logger.info("Rejected token without subject")
            return None

        return Principal(
            user_id=str(user_id),
            email=payload.get("email"),
            name=payload.get("name"),
            admin_claim=payload.get("admin") is True
        )

    def is_admin(self, principal: Principal) -> bool:
        """
        Admin check: custom claim first, then the configured email allow-list.
        """
        if principal.admin_claim:
            return True
        if principal.email:
            return principal.email.lower() in self.admin_emails
        return False


def extract_bearer_token(auth_header: Optional[str]) -> Optional[str]:
    """Token from an 'Authorization: Bearer <token>' header."""
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header[len("Bearer "):].strip()
    return token or None


__all__ = ['AuthService', 'Principal', 'extract_bearer_token']
