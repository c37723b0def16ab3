from fastapi import APIRouter, Depends, HTTPException, Path, Query

from bizcomment.config import settings
from bizcomment.dependencies import CursorParams, get_comment_service
from bizcomment.errors import (
    CommentError,
    InvalidBiz,
    InvalidParent,
    NotFound,
    OwnerLookupError,
    PermissionDenied,
)
from bizcomment.schemas import (
    MAX_COMMENT_ID,
    MIN_ID,
    Biz,
    CommentCountResponse,
    CommentCreate,
    CommentResponse,
)
from bizcomment.services.comment_service import CommentService

router = APIRouter(prefix="/api/v1/comments", tags=["comments"])


def _http_error(exc: CommentError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PermissionDenied):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, (InvalidBiz, InvalidParent)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, OwnerLookupError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@router.post("", status_code=201, response_model=CommentResponse)
async def create_comment(data: CommentCreate, svc: CommentService = Depends(get_comment_service)):
    try:
        return await svc.create_comment(data)
    except CommentError as exc:
        raise _http_error(exc)


@router.get("", response_model=list[CommentResponse])
async def list_comments(
    biz: Biz = Query(...),
    biz_id: int = Query(..., ge=MIN_ID, le=MAX_COMMENT_ID),
    cursor: CursorParams = Depends(),
    svc: CommentService = Depends(get_comment_service),
):
    return await svc.list_comments(
        biz, biz_id, cursor.before_id, cursor.limit, degraded=settings.DEGRADED_MODE
    )


@router.get("/count", response_model=CommentCountResponse)
async def count_comments(
    biz: Biz = Query(...),
    biz_id: int = Query(..., ge=MIN_ID, le=MAX_COMMENT_ID),
    svc: CommentService = Depends(get_comment_service),
):
    count = await svc.count(biz, biz_id)
    return CommentCountResponse(biz=biz, biz_id=biz_id, count=count)


@router.get("/{comment_id}", response_model=CommentResponse)
async def get_comment(
    comment_id: int = Path(..., ge=MIN_ID, le=MAX_COMMENT_ID),
    svc: CommentService = Depends(get_comment_service),
):
    try:
        return await svc.get_comment(comment_id)
    except CommentError as exc:
        raise _http_error(exc)


@router.get("/{root_id}/replies", response_model=list[CommentResponse])
async def list_replies(
    root_id: int = Path(..., ge=MIN_ID, le=MAX_COMMENT_ID),
    cursor: CursorParams = Depends(),
    svc: CommentService = Depends(get_comment_service),
):
    return await svc.list_replies(root_id, cursor.after_id, cursor.limit)


@router.delete("/{comment_id}", status_code=204)
async def delete_comment(
    comment_id: int = Path(..., ge=MIN_ID, le=MAX_COMMENT_ID),
    uid: int = Query(
        ..., ge=MIN_ID, le=MAX_COMMENT_ID, description="Id of the user asking for the delete."
    ),
    svc: CommentService = Depends(get_comment_service),
):
    try:
        await svc.delete_comment(comment_id, uid)
    except CommentError as exc:
        raise _http_error(exc)
