from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import Session
from eventlane.models.token_blacklist import TokenBlacklist
from jose import jwt
from eventlane.logger import get_logger

logger = get_logger(__name__)


class TokenBlacklistService:
    @staticmethod
    def token_expiry(token: str) -> Optional[datetime]:
        """Read the exp claim without verifying the signature."""
        exp = jwt.get_unverified_claims(token).get("exp")
        return datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None

    @staticmethod
    def revoke(db: Session, token: str) -> bool:
        """Blacklist a token by its JTI until it would have expired anyway"""
        try:
            claims = jwt.get_unverified_claims(token)
            jti = claims.get("jti")
            if not jti:
                logger.warning("Token without JTI cannot be revoked")
                return False

            if db.query(TokenBlacklist).filter(TokenBlacklist.jti == jti).first():
                return True

            db.add(TokenBlacklist(
                jti=jti,
                token_type=claims.get("type") or "access",
                user_id=claims.get("sub"),
                expires_at=TokenBlacklistService.token_expiry(token) or datetime.now(timezone.utc),
            ))
            db.commit()
            logger.info(f"{claims.get('type') or 'access'} token {jti} revoked for user {claims.get('sub')}")
            return True

        except Exception as e:
            logger.error(f"Error revoking token: {str(e)}")
            db.rollback()
            return False

    @staticmethod
    def is_token_blacklisted(db: Session, jti: str) -> bool:
        return db.query(TokenBlacklist).filter(
            TokenBlacklist.jti == jti,
            TokenBlacklist.expires_at > datetime.now(timezone.utc),
        ).first() is not None

    @staticmethod
    def purge_expired(db: Session) -> int:
        """Drop entries whose token has expired; returns how many were removed"""
        removed = db.query(TokenBlacklist).filter(
            TokenBlacklist.expires_at <= datetime.now(timezone.utc)
        ).delete(synchronize_session=False)
        db.commit()
        if removed:
            logger.info(f"Purged {removed} expired blacklist entries")
        return removed


token_blacklist_service = TokenBlacklistService()
