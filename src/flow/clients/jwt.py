"""
JSON Web Tokens, exposed to handlers as ``ctx.jwt``.

    token = ctx.jwt.sign({"uid": 7})
    data = ctx.jwt.valid(token)          # {"uid": 7}

Claims:
    exp   now + JwtConfig.timeout
    iss   JwtConfig.issuer
    data  the signed mapping

valid() lets PyJWT's errors through (jwt.ExpiredSignatureError,
jwt.InvalidSignatureError, ...); all derive from jwt.PyJWTError.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping

import jwt

from ..config import JwtConfig


class Jwt:
    def __init__(self, config: JwtConfig):
        self.config = config

    def sign(self, data: Mapping[str, Any]) -> str:
        claims = {
            "exp": datetime.now(timezone.utc) + timedelta(seconds=self.config.timeout),
            "iss": self.config.issuer,
            "data": dict(data),
        }
        return jwt.encode(claims, self.config.secret_key, algorithm=self.config.algorithm)

    def valid(self, token: str) -> Dict[str, Any]:
        if " " in token:
            scheme, token = token.split(None, 1)
            if scheme.lower() != "bearer":
                raise jwt.InvalidTokenError(f"unsupported authorization scheme: {scheme}")

        claims = jwt.decode(
            token,
            self.config.secret_key,
            algorithms=[self.config.algorithm],
            issuer=self.config.issuer,
            options={"require": ["exp"]},
        )
        return claims.get("data") or {}
