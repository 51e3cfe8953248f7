"""
CRUD operations for User model.

Methods:
- ensure_user: Return the user row for a verified identity, creating it on first sight
- get_user: Load a user dict by id
- update_google_tokens: Persist a (refreshed) Google OAuth grant
"""

from fastcrud import FastCRUD
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.logger import get_logger
from ..models.user import User
from ..schemas.user import (
    TokenData,
    UserCreate,
    UserGoogleTokensUpdate,
    UserRead,
)

logger = get_logger(__name__)


class CRUDUser(FastCRUD[User, UserCreate, UserGoogleTokensUpdate, UserGoogleTokensUpdate, None, UserRead]):

    async def get_user(self, db: AsyncSession, user_id: str) -> dict | None:
        return await self.get(db=db, id=user_id)

    async def ensure_user(self, db: AsyncSession, identity: TokenData) -> dict:
        """Get or create the user behind a verified session."""
        try:
            user = await self.get(db=db, id=identity.user_id)
            if user:
                return user

            await self.create(
                db=db,
                object=UserCreate(
                    id=identity.user_id, email=identity.email, name=identity.name
                ),
            )
            logger.info(f"Created user {identity.user_id}")
            return await self.get(db=db, id=identity.user_id)

        except Exception as e:
            logger.error(f"Failed to ensure user {identity.user_id}: {str(e)}")
            await db.rollback()
            raise

    async def update_google_tokens(
        self,
        db: AsyncSession,
        user_id: str,
        tokens: UserGoogleTokensUpdate,
    ) -> None:
        try:
            await self.update(db=db, object=tokens, id=user_id)
        except Exception as e:
            logger.error(f"Failed to store Google tokens for {user_id}: {str(e)}")
            await db.rollback()
            raise


crud_users = CRUDUser(User)
