from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import Session
from eventlane.models.user_model import User
from eventlane.schemas.user_schema import (
    UserOut,
    UserLogin,
    LoginResponse,
    LogoutResponse,
    RefreshTokenRequest,
    RefreshTokenResponse,
)
from fastapi import HTTPException, status
from eventlane.security.auth import (
    authenticate_user,
    create_access_token,
    create_refresh_token,
    verify_refresh_token,
)
from eventlane.realtime.broadcast import unread_registry
from eventlane.utils.token_blacklist import token_blacklist_service
from eventlane.logger import get_logger

logger = get_logger(__name__)


class UserService:
    @staticmethod
    def _issue_tokens(user: User):
        access_token, _ = create_access_token(data={"sub": str(user.id)})
        refresh_token, _ = create_refresh_token(data={"sub": str(user.id)})
        return access_token, refresh_token

    @staticmethod
    def login_user(db: Session, user_login: UserLogin) -> LoginResponse:
        user = authenticate_user(db, user_login.email, user_login.password)

        # Logging in again reactivates a logged-out account
        if user.status != "active":
            user.status = "active"
            logger.info(f"User status reactivated for: {user_login.email}")
        user.last_login_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(user)

        access_token, refresh_token = UserService._issue_tokens(user)
        unread_registry.open(db, user.id)

        logger.info(f"User logged in: {user_login.email}")
        return LoginResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="bearer",
            user=UserOut.model_validate(user),
        )

    @staticmethod
    def logout_user(
        db: Session,
        user: User,
        access_token: str,
        refresh_token: Optional[str] = None,
    ) -> LogoutResponse:
        """
        Logout user by:
        1. Setting user status to 'inactive'
        2. Revoking both access and refresh tokens and purging expired revocations
        3. Tearing down the user's unread counter store
        """
        try:
            user.status = "inactive"
            db.commit()
            db.refresh(user)

            token_blacklist_service.revoke(db, access_token)
            if refresh_token:
                token_blacklist_service.revoke(db, refresh_token)
            token_blacklist_service.purge_expired(db)

            unread_registry.close(user.id)
            logger.info(f"User logged out: {user.email}")
            return LogoutResponse(message="Successfully logged out")

        except Exception as e:
            logger.error(f"Error during logout for user {user.email}: {str(e)}")
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error occurred during logout",
            )

    @staticmethod
    def refresh_access_token(
        db: Session, refresh_request: RefreshTokenRequest
    ) -> RefreshTokenResponse:
        """Rotate tokens: the presented refresh token is revoked and a new pair issued"""
        try:
            user = verify_refresh_token(refresh_request.refresh_token, db)

            if not user.is_active:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="User account is inactive",
                )

            token_blacklist_service.revoke(db, refresh_request.refresh_token)
            access_token, refresh_token = UserService._issue_tokens(user)

            logger.info(f"Tokens refreshed for user: {user.email}")
            return RefreshTokenResponse(
                access_token=access_token,
                refresh_token=refresh_token,
                token_type="bearer",
            )

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error refreshing token: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error occurred while refreshing token",
            )


user_app_service = UserService()
