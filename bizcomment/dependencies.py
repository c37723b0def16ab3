from fastapi import Query, Request

from bizcomment.config import settings
from bizcomment.services.comment_service import CommentService
from bizcomment.schemas import MAX_COMMENT_ID, MIN_ID


class CursorParams:
    """
    Reusable FastAPI dependency for keyset-paginated comment listings.

    Usage in a router::

        @router.get("/comments")
        async def list_comments(cursor: CursorParams = Depends()):
            ...

    Attributes
    ----------
    cur_comment_id:
        Id of the last comment the client has seen, as sent.  ``0`` or a
        negative value means "first page".
    limit:
        Page size, clamped to ``settings.MAX_PAGE_SIZE``.  Top-level pages
        issue one reply-preview query per comment, so this also bounds the
        fan-out width.
    """

    def __init__(
        self,
        cur_comment_id: int = Query(
            0,
            ge=MIN_ID,
            le=MAX_COMMENT_ID,
            description="Last comment id seen by the client; 0 for the first page.",
        ),
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=100,
            description="Number of comments to return.",
        ),
    ) -> None:
        self.cur_comment_id = cur_comment_id
        self.limit = min(limit, settings.MAX_PAGE_SIZE)

    @property
    def before_id(self) -> int:
        """Exclusive upper bound for newest-first listings."""
        return self.cur_comment_id if self.cur_comment_id > 0 else MAX_COMMENT_ID

    @property
    def after_id(self) -> int:
        """Exclusive lower bound for oldest-first listings."""
        return max(self.cur_comment_id, 0)


def get_comment_service(request: Request) -> CommentService:
    """Return the service built during application startup."""
    return request.app.state.comment_service
