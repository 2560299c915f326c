from datetime import datetime, timezone
from fastapi import HTTPException, status
from typing import List, Optional, Union
from uuid import UUID
from eventlane.schemas.user_schema import AdminUserUpdate, UserCreate, UserUpdate
from eventlane.models.user_model import User
from sqlalchemy.orm import Session
from eventlane.security.auth import get_password_hash
from eventlane.logger import get_logger

logger = get_logger(__name__)


class UserCRUD:
    @staticmethod
    def get_user_by_id(db: Session, user_id: UUID) -> Optional[User]:
        return db.query(User).filter(User.id == str(user_id)).first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def get_users(db: Session, skip: int = 0, limit: int = 100) -> List[User]:
        return db.query(User).order_by(User.created_at.desc()).offset(skip).limit(limit).all()

    @staticmethod
    def create_user(db: Session, user: UserCreate) -> User:
        existing_user = UserCRUD.get_user_by_email(db, user.email)
        if existing_user:
            if existing_user.is_active:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="An account with this email already exists"
                )
            # A deactivated account is revived rather than duplicated
            existing_user.name = user.name
            existing_user.password_hash = get_password_hash(user.password)
            existing_user.role = "user"
            existing_user.status = "active"
            existing_user.is_active = True
            existing_user.created_at = datetime.now(timezone.utc)
            db.commit()
            db.refresh(existing_user)
            logger.info(f"Reactivated account: {user.email}")
            return existing_user

        db_user = User(
            name=user.name,
            email=user.email,
            password_hash=get_password_hash(user.password),
            role="user",
            status="active",
            is_active=True
        )
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
        logger.info(f"Account created: {user.email}")
        return db_user

    @staticmethod
    def update_user(db: Session, user_id: UUID, user_update: Union[UserUpdate, AdminUserUpdate]) -> User:
        db_user = UserCRUD.get_user_by_id(db, user_id)
        if not db_user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

        changes = user_update.model_dump(exclude_unset=True)
        if changes.get("email") and changes["email"] != db_user.email:
            if UserCRUD.get_user_by_email(db, changes["email"]):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="An account with this email already exists"
                )

        for key, value in changes.items():
            if value is None:
                continue
            if key == "password":
                db_user.password_hash = get_password_hash(value)
            elif key == "role":
                db_user.role = value.value
            else:
                setattr(db_user, key, value)

        db.commit()
        db.refresh(db_user)
        return db_user

    @staticmethod
    def delete_user(db: Session, user_id: UUID) -> User:
        db_user = UserCRUD.get_user_by_id(db, user_id)
        if not db_user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )
        # Soft delete keeps the user's bookings and messages readable
        db_user.is_active = False
        db.commit()
        db.refresh(db_user)
        return db_user


user_crud = UserCRUD()
