from fastcrud import FastCRUD
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.logger import get_logger
from ..models.video import Video

logger = get_logger(__name__)


class VideoCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    chat_id: str
    user_id: str
    source_url: str
    content_type: str
    size_bytes: int
    data: bytes


class VideoRef(BaseModel):
    id: str


class CRUDVideo(FastCRUD[Video, VideoCreate, None, None, None, VideoRef]):

    async def create_video(self, db: AsyncSession, video: VideoCreate) -> str:
        """Store the video and return its id."""
        try:
            row = await self.create(
                db=db, object=video, return_as_model=True, schema_to_select=VideoRef
            )
            logger.info(f"Cached video {row.id} ({video.size_bytes} bytes)")
            return row.id
        except Exception as e:
            logger.error(f"Failed to store video: {str(e)}")
            await db.rollback()
            raise

    async def get_owned(
        self, db: AsyncSession, video_id: str, user_id: str
    ) -> dict | None:
        return await self.get(db=db, id=video_id, user_id=user_id)


crud_video = CRUDVideo(Video)
