from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional, List

from ..core.database import get_db, get_redis
from ..core.security import (
    security, verify_token, auth_context_from_token, AuthenticationError,
    AuthorizationError, AuthContext, UserRole, TokenPayload
)
from ..models.user import User
from ..services.data_access import DataAccess
from ..services.session_store import BookingSessionStore

async def get_current_user_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    token = credentials.credentials

    # Verify token
    token_payload = verify_token(token)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    # Check if token is access token
    if token_payload.token_type not in (None, "access"):
        raise AuthenticationError("Invalid token type")

    return token_payload

def _auth_from_profile(token_payload: TokenPayload, db: Session) -> AuthContext:
    claimed = auth_context_from_token(token_payload)

    # The users table is authoritative for role and active status
    user = db.query(User).filter(User.id == claimed.user_id).first()
    if not user:
        raise AuthenticationError("User profile not found")

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return AuthContext(user_id=user.id, email=user.email, role=user.role)

async def get_current_auth(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> AuthContext:
    """AuthContext for the authenticated caller."""
    return _auth_from_profile(token_payload, db)

async def get_optional_auth(
    request: Request,
    db: Session = Depends(get_db)
) -> Optional[AuthContext]:
    """AuthContext if a valid bearer token is present, None otherwise."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None

    token_payload = verify_token(auth_header.split(" ", 1)[1])
    if not token_payload or not token_payload.sub:
        return None

    try:
        return _auth_from_profile(token_payload, db)
    except AuthenticationError:
        return None

# Role-based access control dependencies
def require_role(allowed_roles: List[UserRole]):
    """Create a dependency that requires specific user roles."""
    async def role_checker(
        auth: AuthContext = Depends(get_current_auth)
    ) -> AuthContext:
        if auth.role not in allowed_roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return auth

    return role_checker

# Service dependencies
def get_data_access(db: Session = Depends(get_db)) -> DataAccess:
    return DataAccess(db)

def get_session_store(redis_client = Depends(get_redis)) -> BookingSessionStore:
    return BookingSessionStore(redis_client)
