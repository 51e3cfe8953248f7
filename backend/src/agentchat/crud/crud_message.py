"""
CRUD operations for Message model.

Methods:
- create_message: Append a transcript entry
- list_by_chat: All messages of a chat, oldest first
"""

from typing import Any

from fastcrud import FastCRUD
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.logger import get_logger
from ..models.message import Message
from ..schemas.message import MessageCreate, MessageRead

logger = get_logger(__name__)


class CRUDMessage(FastCRUD[Message, MessageCreate, None, None, None, MessageRead]):

    async def create_message(
        self,
        db: AsyncSession,
        chat_id: str,
        role: str,
        content: str,
        tool_invocations: list[dict[str, Any]] | None = None,
    ) -> MessageRead:
        """Create a new chat message."""
        try:
            message = await self.create(
                db=db,
                object=MessageCreate(
                    chat_id=chat_id,
                    role=role,
                    content=content,
                    tool_invocations=tool_invocations,
                ),
                return_as_model=True,
                schema_to_select=MessageRead,
            )
            logger.debug(f"Created {role} message for chat {chat_id}")
            return message

        except Exception as e:
            logger.error(f"Failed to create message: {str(e)}")
            await db.rollback()
            raise

    async def list_by_chat(self, db: AsyncSession, chat_id: str) -> list[MessageRead]:
        stmt = (
            select(Message)
            .where(Message.chat_id == chat_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        result = await db.execute(stmt)
        return [MessageRead.model_validate(row) for row in result.scalars().all()]


crud_message = CRUDMessage(Message)
