"""
Comment service — request-level orchestration used by the routers.

Creating a comment resolves its audience, stores it (bumping the object's
counter), then hands a feed event to the background pool.  The event is
fire-and-forget: a broken event pipeline is logged and never fails the
create.
"""
import logging

from bizcomment.background import BackgroundTasks, background_tasks
from bizcomment.config import settings
from bizcomment.events import FeedEventProducer, comment_event
from bizcomment.models import Comment
from bizcomment.schemas import Biz, CommentCreate, CommentResponse
from bizcomment.services.audience import AudienceResolver
from bizcomment.services.comment_repository import CommentRepository

logger = logging.getLogger(__name__)


class CommentService:
    def __init__(
        self,
        repo: CommentRepository,
        audience: AudienceResolver,
        producer: FeedEventProducer,
        tasks: BackgroundTasks = background_tasks,
    ) -> None:
        self.repo = repo
        self.audience = audience
        self.producer = producer
        self.tasks = tasks

    async def create_comment(self, data: CommentCreate) -> CommentResponse:
        audience = await self.audience.resolve(data)
        created = await self.repo.create_comment(
            Comment(
                commentator_id=data.commentator_id,
                biz=int(data.biz),
                biz_id=data.biz_id,
                content=data.content,
                parent_id=audience.parent_id,
                root_id=audience.root_id,
                reply_to_uid=audience.reply_to_uid,
            )
        )
        logger.info(
            "comment created: comment_id=%s biz=%s biz_id=%s reply_to=%s",
            created.id, created.biz.name, created.biz_id, created.reply_to_uid,
        )

        event = comment_event(
            comment_id=created.id,
            commentator_id=created.commentator_id,
            recipient_uid=created.reply_to_uid,
            owner_uid=audience.owner_uid,
            biz_name=created.biz.label,
            biz_id=created.biz_id,
        )
        self.tasks.submit(
            lambda: self.producer.produce(event),
            timeout=settings.EVENT_PUBLISH_TIMEOUT,
            name=f"feed-event-comment-{created.id}",
        )
        return created

    async def list_comments(
        self,
        biz: Biz,
        biz_id: int,
        cur_comment_id: int,
        limit: int,
        degraded: bool = False,
    ) -> list[CommentResponse]:
        return await self.repo.list_top_level(biz, biz_id, cur_comment_id, limit, degraded=degraded)

    async def list_replies(self, root_id: int, cur_comment_id: int, limit: int) -> list[CommentResponse]:
        return await self.repo.list_replies(root_id, cur_comment_id, limit)

    async def get_comment(self, comment_id: int) -> CommentResponse:
        return await self.repo.find_by_id(comment_id)

    async def delete_comment(self, comment_id: int, uid: int) -> None:
        await self.repo.delete_comment(comment_id, uid)
        logger.info("comment deleted: comment_id=%s uid=%s", comment_id, uid)

    async def count(self, biz: Biz, biz_id: int) -> int:
        return await self.repo.get_count(biz, biz_id)
