"""Authentication module using password credentials and signed bearer tokens.

This module provides:
1. Password hashing and verification
2. Token issuance and verification
3. Registration and login against the users table
4. FastAPI dependencies that resolve a request into an explicit Identity
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from uuid import UUID

import asyncpg
import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError, ExpiredSignatureError
from pydantic import BaseModel

from config import settings_conf
from database import get_pool
from errors import Unauthenticated, ValidationError, DuplicateEmail

# Configure logging
logger = logging.getLogger(__name__)

# Constants
JWT_ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10
MIN_PASSWORD_LENGTH = 6

if settings_conf['jwt_secret']:
    JWT_SECRET = settings_conf['jwt_secret']
else:
    logger.warning("jwt_secret not configured, tokens will not survive a restart")
    JWT_SECRET = secrets.token_urlsafe(32)  # Generate random secret on startup


class Identity(BaseModel):
    """Verified identity of the caller, passed explicitly to domain operations."""
    id: UUID
    name: str
    email: str
    role: str = 'user'

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin'


def hash_password(password: str) -> str:
    """Hash a password with a fresh salt."""
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    ).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def create_token(user_id: UUID, expires_in: Optional[timedelta] = None) -> str:
    """Issue a signed token carrying the user id."""
    expires_at = datetime.now(timezone.utc) + (
        expires_in or timedelta(days=settings_conf['jwt_expiry_days'])
    )
    return jwt.encode(
        {
            'sub': str(user_id),
            'exp': int(expires_at.timestamp())
        },
        JWT_SECRET,
        algorithm=JWT_ALGORITHM
    )


def decode_token(token: str) -> UUID:
    """Verify a token and return the user id it carries.

    Raises:
        Unauthenticated: If the token is expired, tampered with or malformed
    """
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return UUID(payload['sub'])
    except ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except (JWTError, KeyError, ValueError):
        raise Unauthenticated("Invalid token")


def _public_user(row) -> Dict[str, Any]:
    return {
        'id': row['id'],
        'name': row['name'],
        'email': row['email'],
        'role': row['role'],
        'rating': row['rating']
    }


class AuthManager:
    """Manages registration, login and token verification."""

    def __init__(self, pool=None):
        """Initialize auth manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure database pool is available."""
        if not self.pool:
            self.pool = await get_pool()

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None
    ) -> Dict[str, Any]:
        """Create a new user account.

        Returns:
            Dict containing:
                - token: Bearer token for future requests
                - user: Public user fields

        Raises:
            ValidationError: If a field is missing or the password is too short
            DuplicateEmail: If the email is already registered
        """
        await self.ensure_pool()

        name = (name or '').strip()
        email = (email or '').strip().lower()
        if not name:
            raise ValidationError("name is required")
        if not email:
            raise ValidationError("email is required")
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    INSERT INTO users (name, email, password_hash, latitude, longitude)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING id, name, email, role, rating
                    ''',
                    name,
                    email,
                    hash_password(password),
                    latitude,
                    longitude
                )
        except asyncpg.UniqueViolationError:
            raise DuplicateEmail("User already exists")

        logger.info(f"Registered user {row['id']}")
        return {
            'token': create_token(row['id']),
            'user': _public_user(row)
        }

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Check credentials and issue a token.

        Raises:
            Unauthenticated: If the email is unknown or the password is wrong
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                '''
                SELECT id, name, email, role, rating, password_hash
                FROM users
                WHERE email = $1
                ''',
                (email or '').strip().lower()
            )

        if not row or not verify_password(password or '', row['password_hash']):
            raise Unauthenticated("Invalid credentials")

        return {
            'token': create_token(row['id']),
            'user': _public_user(row)
        }

    async def authenticate(self, token: str) -> Identity:
        """Resolve a bearer token into the identity of an existing user.

        Raises:
            Unauthenticated: If the token is invalid or the user no longer exists
        """
        user_id = decode_token(token)
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                'SELECT id, name, email, role FROM users WHERE id = $1',
                user_id
            )

        if not row:
            raise Unauthenticated("Invalid token")

        return Identity(**dict(row))


# Create global instance
manager = AuthManager()

# FastAPI security scheme; missing credentials are reported as 401 below
auth_scheme = HTTPBearer(
    auto_error=False,
    description="JWT Bearer token required"
)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme)
) -> Identity:
    """FastAPI dependency for getting the authenticated identity.

    Args:
        credentials: Bearer token credentials

    Returns:
        The verified Identity

    Raises:
        HTTPException: If authentication fails
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided"
        )
    try:
        return await manager.authenticate(credentials.credentials)
    except Unauthenticated as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message
        )


async def require_admin(identity: Identity = Depends(get_current_user)) -> Identity:
    """FastAPI dependency allowing only admins through."""
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return identity


# Export public interface
__all__ = [
    'manager',
    'AuthManager',
    'Identity',
    'hash_password',
    'verify_password',
    'create_token',
    'decode_token',
    'get_current_user',
    'require_admin',
    'auth_scheme'
]
