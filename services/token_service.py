"""
Session credential issuing and verification.

Every successful mutation re-issues a credential: a JWT carrying the user id
as ``sub`` with a fixed lifetime (one hour by default), delivered both in the
JSON body and as an HTTP-only cookie with a matching max-age.

RS256 is used when a key pair is configured, HS256 with JWT_SECRET otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request, Response

from config import JWTSettings
from errors import AuthenticationError
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Credential:
    token: str
    user_id: str
    expires_at: datetime
    max_age: int
    cookie_name: str
    cookie_secure: bool

    def attach(self, response: Response) -> Response:
        response.set_cookie(
            self.cookie_name,
            value=self.token,
            max_age=self.max_age,
            httponly=True,
            secure=self.cookie_secure,
            samesite="lax",
            path="/",
        )
        return response


class TokenService:
    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings
        if settings.use_rs256:
            # Support keys provided via env with literal \n sequences
            self._signing_key = settings.jwt_private_key.replace("\\n", "\n")
            self._verify_key = settings.jwt_public_key.replace("\\n", "\n")
            self._algorithm = "RS256"
        else:
            if not settings.jwt_secret:
                raise RuntimeError(
                    "JWT_SECRET must be set when RS256 keys are not provided"
                )
            self._signing_key = settings.jwt_secret
            self._verify_key = settings.jwt_secret
            self._algorithm = "HS256"

    @property
    def cookie_name(self) -> str:
        return self._settings.cookie_name

    def from_request(self, request: Request) -> Optional[str]:
        """Raw token from the Bearer header, falling back to the session cookie."""
        auth_header = request.headers.get("Authorization", "")
        if auth_header.lower().startswith("bearer "):
            return auth_header[7:].strip() or None
        return request.cookies.get(self.cookie_name)

    def valid_token(self, request: Request) -> Optional[str]:
        """The request's token if it still verifies, else None."""
        token = self.from_request(request)
        if not token:
            return None
        try:
            self.verify(token)
        except AuthenticationError:
            return None
        return token

    def issue(self, user_id) -> Credential:
        ttl = self._settings.access_token_ttl_seconds
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=ttl)
        claims = {
            "iss": self._settings.jwt_issuer,
            "aud": self._settings.jwt_audience,
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(claims, self._signing_key, algorithm=self._algorithm)
        return Credential(
            token=token,
            user_id=str(user_id),
            expires_at=expires_at,
            max_age=ttl,
            cookie_name=self._settings.cookie_name,
            cookie_secure=self._settings.cookie_secure,
        )

    def verify(self, token: Optional[str]) -> str:
        """Return the user id carried by *token*.

        Raises:
            AuthenticationError: when the token is missing, expired or invalid.
        """
        if not token:
            raise AuthenticationError("Not authorized, no token")
        try:
            claims = jwt.decode(
                token,
                self._verify_key,
                algorithms=[self._algorithm],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Not authorized, token expired")
        except jwt.InvalidTokenError as e:
            log.warning("token_rejected", error=str(e))
            raise AuthenticationError("Not authorized, token failed")
        user_id = claims.get("sub")
        if not user_id:
            raise AuthenticationError("Not authorized, token failed")
        return user_id

    def clear(self, response: Response) -> Response:
        response.delete_cookie(
            self._settings.cookie_name,
            httponly=True,
            secure=self._settings.cookie_secure,
            samesite="lax",
            path="/",
        )
        return response
