"""
Authentication Service.

Handles:
- Email/password authentication for staff users
- JWT access token generation and validation
- Resolving the acting staff member (Actor) from a token
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Optional, Tuple

import bcrypt
import jwt

from rcn.domain.directory import Actor, RecordStatus, StaffUser
from rcn.domain.referral import utcnow
from rcn.errors import NotFound


class AuthService:
    """Service for handling staff authentication."""

    def __init__(
        self,
        directory,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
        access_token_expire_minutes: int = 60,
    ):
        self.directory = directory
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.access_token_expire_minutes = access_token_expire_minutes
        self.logger = logging.getLogger("service.AuthService")

    # =========================================================================
    # Password Hashing
    # =========================================================================

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt."""
        salt = bcrypt.gensalt()
        return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against its hash."""
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))

    # =========================================================================
    # JWT Token Management
    # =========================================================================

    def create_access_token(self, user: StaffUser) -> str:
        """Create a short-lived access token."""
        expire = datetime.now(timezone.utc) + timedelta(minutes=self.access_token_expire_minutes)
        payload = {
            "sub": user.user_id,
            "organization_id": user.organization_id,
            "role": user.role,
            "exp": expire,
            "type": "access",
        }
        return jwt.encode(payload, self.jwt_secret, algorithm=self.jwt_algorithm)

    def decode_token(self, token: str) -> Optional[dict]:
        """Decode and validate a JWT token. None when expired or invalid."""
        try:
            return jwt.decode(token, self.jwt_secret, algorithms=[self.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            self.logger.info("Rejected expired access token")
            return None
        except jwt.InvalidTokenError:
            self.logger.info("Rejected invalid access token")
            return None

    # =========================================================================
    # Login
    # =========================================================================

    def authenticate_email(self, email: str, password: str) -> Tuple[Optional[dict], Optional[str]]:
        """Authenticate with email/password.

        Returns:
            Tuple of (auth_response, error_message)
        """
        user = self.directory.find_user_by_email(email)
        if user is None or user.status != RecordStatus.ACTIVE:
            return None, "Invalid email or password"
        if not user.password_hash:
            return None, "Invalid email or password"
        if not self.verify_password(password, user.password_hash):
            self.logger.info("Failed login for %s", user.user_id)
            return None, "Invalid email or password"

        self.directory.record_login(user.user_id, utcnow())
        actor = self._actor_for(user)
        return {
            "access_token": self.create_access_token(user),
            "token_type": "bearer",
            "expires_in": self.access_token_expire_minutes * 60,
            "user": user.to_dict(),
            "organization_name": actor.organization_name,
        }, None

    def validate_access_token(self, access_token: str) -> Optional[Actor]:
        """Validate an access token and return the acting staff member."""
        payload = self.decode_token(access_token)
        if not payload or payload.get("type") != "access":
            return None
        user = self.directory.find_user(payload.get("sub", ""))
        if user is None or user.status != RecordStatus.ACTIVE:
            return None
        return self._actor_for(user)

    def _actor_for(self, user: StaffUser) -> Actor:
        try:
            organization = self.directory.get_organization(user.organization_id)
        except NotFound:
            organization = None
        return Actor.from_user(user, organization)
