"""
Clerk 세션 토큰 인증

Clerk JWT 를 JWKS 로 검증한 뒤 clerk_user_id 로 DB 사용자를 조회합니다.
"""

import asyncio
import os
from dataclasses import dataclass
from typing import Optional

import jwt
from jwt import PyJWKClient

from schemas import AuthUser
from utils.errors import DatabaseError
from utils.logger import get_logger

logger = get_logger("auth")


@dataclass
class AuthResult:
    """인증 결과: user 또는 (error, status)"""
    user: Optional[AuthUser] = None
    error: Optional[str] = None
    status: int = 200

    @property
    def ok(self) -> bool:
        return self.user is not None


class ClerkAuthService:
    """Verify Clerk session JWTs and resolve the database user."""

    def __init__(self, repo, jwks_url: str = None, issuer: str = None):
        self.repo = repo
        self.jwks_url = jwks_url or os.getenv("CLERK_JWKS_URL")
        self.issuer = issuer or os.getenv("CLERK_ISSUER")
        self._jwk_client = None

    @property
    def jwk_client(self) -> PyJWKClient:
        if self._jwk_client is None:
            self._jwk_client = PyJWKClient(self.jwks_url, cache_keys=True)
        return self._jwk_client

    def decode_token(self, token: str) -> dict:
        """서명/만료 검증 후 claims 반환 (jwt.PyJWTError 전파)"""
        signing_key = self.jwk_client.get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            issuer=self.issuer,
            options={"verify_aud": False, "verify_iss": bool(self.issuer)},
        )

    async def verify_user(self, auth_header: Optional[str]) -> AuthResult:
        if not auth_header:
            return AuthResult(error="Missing authorization header", status=401)

        token = auth_header[len("Bearer "):] if auth_header.startswith("Bearer ") else auth_header
        if len(token.split(".")) != 3:
            return AuthResult(
                error="Invalid JWT format - token should have 3 parts separated by dots",
                status=401,
            )

        if not self.jwks_url:
            logger.error("CLERK_JWKS_URL is not configured")
            return AuthResult(error="Authentication is not configured", status=500)

        try:
            # JWKS 조회는 네트워크 I/O
            claims = await asyncio.to_thread(self.decode_token, token)
        except jwt.PyJWTError as e:
            logger.warning(f"Token verification failed: {e}")
            return AuthResult(error="Invalid authentication token", status=401)

        clerk_user_id = claims.get("sub")
        if not clerk_user_id:
            return AuthResult(error="Invalid authentication token", status=401)

        try:
            user = await self.repo.get_user_by_clerk_id(clerk_user_id)
        except DatabaseError as e:
            logger.error(f"User lookup failed for {clerk_user_id}: {e}")
            return AuthResult(error="Failed to load user", status=500)

        if user is None:
            # 온보딩 전 사용자
            return AuthResult(error="Database user not found", status=404)
        return AuthResult(user=user)
