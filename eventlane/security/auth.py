from jose import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4
from passlib.context import CryptContext
from fastapi import HTTPException, Depends, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from eventlane import config
from eventlane.models.user_model import User
from eventlane.database import get_db

SECRET_KEY = config.SECRET_KEY
ALGORITHM = config.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = config.ACCESS_TOKEN_EXPIRE_MINUTES
REFRESH_TOKEN_EXPIRE_DAYS = config.REFRESH_TOKEN_EXPIRE_DAYS

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/token", auto_error=False)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def authenticate_user(db: Session, email: str, password: str):
    user = db.query(User).filter(User.email == email, User.is_active == True).first()
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def _create_token(data: dict, token_type: str, expires_delta: timedelta):
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + expires_delta
    to_encode.update({
        "exp": expire,
        "jti": str(uuid4()),  # Unique identifier for this token
        "iat": now,
        "type": token_type,
    })
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt, expire


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    return _create_token(
        data, "access", expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )


def create_refresh_token(data: dict, expires_delta: Optional[timedelta] = None):
    return _create_token(
        data, "refresh", expires_delta or timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    )


def user_from_token(token: str, db: Session, token_type: str = "access") -> User:
    """Decode a token of the given type and load its active, non-revoked user."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials" if token_type == "access" else "Invalid refresh token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str = payload.get("sub")
        jti: str = payload.get("jti")

        if user_id is None or jti is None or payload.get("type") != token_type:
            raise credentials_exception

        from eventlane.utils.token_blacklist import token_blacklist_service
        if token_blacklist_service.is_token_blacklisted(db, jti):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has been revoked",
                headers={"WWW-Authenticate": "Bearer"},
            )

    except jwt.JWTError:
        raise credentials_exception

    user = db.query(User).filter(User.id == user_id, User.is_active == True).first()
    if user is None:
        raise credentials_exception
    return user


def verify_refresh_token(token: str, db: Session) -> User:
    return user_from_token(token, db, token_type="refresh")


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    return user_from_token(token, db)


def get_optional_user(token: Optional[str] = Depends(optional_oauth2_scheme), db: Session = Depends(get_db)):
    """Signed-in user, or None for anonymous callers; a bad token is still refused"""
    if not token:
        return None
    return user_from_token(token, db)


def get_current_active_user(current_user: User = Depends(get_current_user)):
    """Get current user and ensure they are active (not logged out)"""
    if current_user.status != "active":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is currently logged out"
        )
    return current_user


def get_current_admin_user(current_user: User = Depends(get_current_active_user)):
    """Get current user and ensure they are admin"""
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user
