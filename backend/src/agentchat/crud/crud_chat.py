"""
CRUD operations for Chat model.

Methods:
- get_owned: Load a chat only if it belongs to the user
- get_or_create: Ensure the chat exists, creating it on the first message
- update_selection: Store a new provider/model selection
- list_for_user: Chats of a user, most recently updated first
- delete_owned: Delete a chat (messages and videos cascade)
- touch: Bump updated_at after a new message
"""

from datetime import datetime, timezone

from fastcrud import FastCRUD
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.logger import get_logger
from ..models.chat import Chat
from ..schemas.chat import ChatCreate, ChatRead, ChatUpdate, ChatUpdateInternal

logger = get_logger(__name__)


class CRUDChat(FastCRUD[Chat, ChatCreate, ChatUpdate, ChatUpdateInternal, None, ChatRead]):

    async def get_owned(
        self, db: AsyncSession, chat_id: str, user_id: str
    ) -> dict | None:
        return await self.get(db=db, id=chat_id, user_id=user_id)

    async def get_or_create(
        self,
        db: AsyncSession,
        chat_id: str,
        user_id: str,
        title: str,
        provider: str,
        model: str,
    ) -> tuple[dict | None, bool]:
        """Return ``(chat, created)``.

        ``chat`` is None when the id exists but belongs to another user.
        """
        try:
            existing = await self.get(db=db, id=chat_id)
            if existing:
                if existing["user_id"] != user_id:
                    return None, False
                return existing, False

            await self.create(
                db=db,
                object=ChatCreate(
                    id=chat_id,
                    user_id=user_id,
                    title=title,
                    provider=provider,
                    model=model,
                ),
            )
            logger.debug(f"Created chat {chat_id} for user {user_id}")
            return await self.get(db=db, id=chat_id), True

        except Exception as e:
            logger.error(f"Failed to load or create chat {chat_id}: {str(e)}")
            await db.rollback()
            raise

    async def update_selection(
        self,
        db: AsyncSession,
        chat_id: str,
        provider: str,
        model: str,
    ) -> None:
        try:
            await self.update(
                db=db,
                object=ChatUpdateInternal(
                    provider=provider,
                    model=model,
                    updated_at=datetime.now(timezone.utc),
                ),
                id=chat_id,
            )
        except Exception as e:
            logger.error(f"Failed to update chat {chat_id}: {str(e)}")
            await db.rollback()
            raise

    async def touch(self, db: AsyncSession, chat_id: str) -> None:
        await self.update(
            db=db,
            object={"updated_at": datetime.now(timezone.utc)},
            id=chat_id,
        )

    async def list_for_user(
        self, db: AsyncSession, user_id: str, offset: int = 0, limit: int = 100
    ) -> dict:
        return await self.get_multi(
            db=db,
            user_id=user_id,
            offset=offset,
            limit=limit,
            schema_to_select=ChatRead,
            sort_columns=["updated_at"],
            sort_orders=["desc"],
        )

    async def delete_owned(self, db: AsyncSession, chat_id: str, user_id: str) -> bool:
        """Delete the chat if owned by the user. Returns False when not found."""
        try:
            if not await self.exists(db=db, id=chat_id, user_id=user_id):
                return False
            await self.db_delete(db=db, id=chat_id, user_id=user_id)
            logger.info(f"Deleted chat {chat_id}")
            return True

        except Exception as e:
            logger.error(f"Failed to delete chat {chat_id}: {str(e)}")
            await db.rollback()
            raise


crud_chat = CRUDChat(Chat)
