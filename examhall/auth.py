"""Login, signup and password reset over Supabase Auth."""
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from engine import MIN_PASSWORD_LENGTH
from examhall.models import ExamHallError

logger = logging.getLogger(__name__)

ROLES = ("student", "admin")


class AuthError(ExamHallError):
    pass


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str


@dataclass(frozen=True)
class Profile:
    id: str
    name: str
    email: str
    role: str = "student"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_record(cls, row: Dict) -> "Profile":
        return cls(id=str(row["id"]), name=row.get("name") or "", email=row.get("email") or "",
                   role=row.get("role") or "student")

    def to_record(self) -> Dict:
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role}


def _check_credentials(email: str, password: str) -> None:
    if "@" not in (email or ""):
        raise AuthError("Please enter a valid email address")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def _user_from_response(response) -> AuthUser:
    user = getattr(response, "user", None)
    if user is None:
        raise AuthError("Authentication failed")
    return AuthUser(id=str(user.id), email=user.email or "")


def sign_in(client, email: str, password: str) -> AuthUser:
    _check_credentials(email, password)
    try:
        response = client.auth.sign_in_with_password({"email": email.strip(), "password": password})
    except Exception as e:
        logger.error(f"Login failed for {email}: {e}")
        raise AuthError(f"Login failed: {e}") from e
    return _user_from_response(response)


def sign_up(client, email: str, password: str, confirm: str) -> AuthUser:
    if password != confirm:
        raise AuthError("Passwords do not match")
    _check_credentials(email, password)
    try:
        response = client.auth.sign_up({"email": email.strip(), "password": password})
    except Exception as e:
        logger.error(f"Signup failed for {email}: {e}")
        raise AuthError(f"Signup failed: {e}") from e
    logger.info(f"New account created for {email}")
    return _user_from_response(response)


def send_password_reset(client, email: str) -> None:
    if "@" not in (email or ""):
        raise AuthError("Please enter a valid email address")
    try:
        client.auth.reset_password_for_email(email.strip())
    except Exception as e:
        logger.error(f"Password reset failed for {email}: {e}")
        raise AuthError(f"Could not send reset email: {e}") from e


def sign_out(client) -> None:
    try:
        client.auth.sign_out()
    except Exception as e:
        # local session state is cleared by the caller regardless
        logger.error(f"Sign out failed: {e}")


def complete_profile(user: AuthUser, name: str, role: str = "student") -> Profile:
    if not name.strip():
        raise AuthError("Name cannot be empty")
    if role not in ROLES:
        raise AuthError(f"Unknown role {role!r}")
    return Profile(id=user.id, name=name.strip(), email=user.email, role=role)


def home_route(profile: Optional[Profile]) -> str:
    """Where to send a signed-in user."""
    if profile is None:
        return "complete_profile"
    return "admin_dashboard" if profile.is_admin else "dashboard"
