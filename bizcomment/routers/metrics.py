from fastapi import APIRouter, Depends

from bizcomment.cache import cache
from bizcomment.dependencies import get_comment_service
from bizcomment.schemas import MetricsResponse
from bizcomment.services.comment_service import CommentService

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])


@router.get("", response_model=MetricsResponse)
async def get_metrics(svc: CommentService = Depends(get_comment_service)):
    total_comments, counted_objects = await svc.repo.totals()
    return MetricsResponse(
        total_comments=total_comments,
        counted_objects=counted_objects,
        cache_info=cache.stats,
    )
