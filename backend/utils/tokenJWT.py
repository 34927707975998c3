# utils/tokenJWT.py
from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.users import User
from utils.errors import Unauthenticated, Forbidden

# Authorization scheme; tokens are issued by the credential service
bearer_scheme = HTTPBearer(auto_error=False)

# Generate a new JWT access token
def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

# Retrieve the currently authenticated user based on the JWT token
def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    if credentials is None:
        raise Unauthenticated()
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        email: str = payload.get("sub")
        # Ensure email is present in the token payload
        if email is None:
            raise Unauthenticated()
    except JWTError:
        raise Unauthenticated()

    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise Unauthenticated()
    return user

# Dependency factory for role-based access control
def role_required(*allowed_roles):
    allowed = {r.upper() for r in allowed_roles}

    def _checker(current_user: User = Depends(get_current_user)):
        if allowed and (current_user.role or "").upper() not in allowed:
            raise Forbidden()
        return current_user
    return _checker
