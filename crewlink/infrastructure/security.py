import datetime
import secrets
from typing import Optional

import jwt  # Import PyJWT
from jwt import ExpiredSignatureError, InvalidTokenError

from crewlink.infrastructure import schemas


class SecurityService:
    """Verifies bearer tokens issued by the identity provider."""

    def __init__(self, config):
        self.config = config

    def create_access_token(
        self,
        user_id: str,
        display_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
        expires_delta: Optional[datetime.timedelta] = None,
    ):
        # Production tokens come from the identity provider; this mirrors their shape
        # for local tooling and tests.
        to_encode = {"sub": user_id, "nonce": secrets.token_hex(8)}
        if display_name:
            to_encode["name"] = display_name
        if avatar_url:
            to_encode["picture"] = avatar_url
        if expires_delta:
            expire = datetime.datetime.now(datetime.timezone.utc) + expires_delta
        else:
            expire = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(
                minutes=self.config.ACCESS_TOKEN_EXPIRE_MINUTES
            )
        to_encode.update({"exp": expire})
        encoded_jwt = jwt.encode(
            to_encode, self.config.SECRET_KEY, algorithm=self.config.ALGORITHM
        )
        return encoded_jwt, expire

    def decode_access_token(self, token: str) -> Optional[schemas.Identity]:
        try:
            payload = jwt.decode(
                token, self.config.SECRET_KEY, algorithms=[self.config.ALGORITHM]
            )
        except (ExpiredSignatureError, InvalidTokenError):
            return None
        user_id = payload.get("sub")
        if not user_id:
            return None
        return schemas.Identity(
            user_id=str(user_id),
            display_name=payload.get("name"),
            avatar_url=payload.get("picture"),
        )
