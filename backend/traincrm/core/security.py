"""
Password hashing and JWT handling

Access tokens carry ``sub`` (user id), ``email`` and ``role`` so the role
can be shown client-side without a round trip; the server always reloads
the user and trusts the stored role, never the claim.
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt
import secrets

from traincrm.core.config import settings
from traincrm.core.exceptions import AuthenticationError

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"

# bcrypt ignores everything past 72 bytes
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode('utf-8')[:BCRYPT_MAX_BYTES]


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode('utf-8'))


def get_password_hash(password: str) -> str:
    """Hash password with configurable rounds (BCRYPT_ROUNDS in .env)"""
    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def _encode(data: Dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    claims = data.copy()
    claims.update({"exp": datetime.utcnow() + lifetime, "type": token_type})
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(data, ACCESS_TOKEN, lifetime)


def create_refresh_token(data: Dict[str, Any]) -> str:
    return _encode(data, REFRESH_TOKEN, timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))


def token_claims(user) -> Dict[str, Any]:
    """Claims shared by both tokens of a pair"""
    return {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value,
    }


def create_token_pair(user) -> Dict[str, str]:
    claims = token_claims(user)
    return {
        "access_token": create_access_token(claims),
        "refresh_token": create_refresh_token(claims),
        "token_type": "bearer",
    }


def decode_token(token: str, expected_type: Optional[str] = None) -> Dict[str, Any]:
    """
    Decode and validate a JWT.

    Raises AuthenticationError (401) when the signature or expiry is bad,
    or when ``expected_type`` is given and the ``type`` claim differs.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError:
        raise AuthenticationError("Could not validate credentials")

    if expected_type and payload.get("type") != expected_type:
        raise AuthenticationError(f"Invalid token type - expected {expected_type} token")
    return payload


def generate_verification_suffix(length: int = 8) -> str:
    """Random uppercase hex suffix for certificate verification codes"""
    return secrets.token_hex(length)[:length].upper()
