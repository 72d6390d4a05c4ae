from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from museum.errors import UnauthenticatedError

JWT_ALGORITHM = "HS256"


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str
    name: Optional[str] = None
    is_admin: bool = False


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


class TokenIssuer:
    def __init__(self, secret: str, expires_hours: int = 24):
        self.secret = secret
        self.expires_hours = expires_hours

    def issue(self, user_id: str, email: str) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": user_id,
            "email": email,
            "iat": now,
            "exp": now + timedelta(hours=self.expires_hours),
        }
        return jwt.encode(claims, self.secret, algorithm=JWT_ALGORITHM)

    def decode(self, token: str) -> dict:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError as e:
            raise UnauthenticatedError("Token expired") from e
        except jwt.InvalidTokenError as e:
            raise UnauthenticatedError("Invalid token") from e
        if not claims.get("sub"):
            raise UnauthenticatedError("Invalid token")
        return claims
