"""
Audience resolution tests — addressee, owner and thread root for new
comments, plus the HTTP owner lookup against a mocked owning service.
"""
import httpx
import pytest

from bizcomment.config import settings
from bizcomment.errors import (
    BizObjectNotFound,
    CommentNotFound,
    InvalidBiz,
    InvalidParent,
    OwnerLookupError,
)
from bizcomment.models import Comment
from bizcomment.schemas import Biz, CommentCreate
from bizcomment.services import comment_store
from bizcomment.services.audience import AudienceResolver, HttpOwnerLookup, http_owner_lookups


async def _stored(session_factory, uid, biz=Biz.ANSWER, biz_id=42, parent_id=None, root_id=None) -> int:
    async with session_factory() as db:
        return await comment_store.insert_comment(db, Comment(
            commentator_id=uid,
            biz=int(biz),
            biz_id=biz_id,
            content="x",
            parent_id=parent_id,
            root_id=root_id,
            reply_to_uid=0,
        ))


# ---------------------------------------------------------------------------
# AudienceResolver
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_top_level_addresses_object_owner(owner_lookups, session_factory):
    resolver = AudienceResolver(owner_lookups, session_factory)
    audience = await resolver.resolve(
        CommentCreate(commentator_id=5, biz=Biz.ANSWER, biz_id=42, content="hello")
    )
    assert audience.reply_to_uid == 1001
    assert audience.owner_uid == 1001
    assert audience.parent_id is None
    assert audience.root_id is None


@pytest.mark.asyncio
async def test_reply_addresses_parent_author(owner_lookups, session_factory):
    root = await _stored(session_factory, uid=11)
    resolver = AudienceResolver(owner_lookups, session_factory)

    audience = await resolver.resolve(
        CommentCreate(commentator_id=12, biz=Biz.ANSWER, biz_id=42, content="re", parent_id=root)
    )
    assert audience.reply_to_uid == 11
    assert audience.owner_uid == 1001
    assert audience.parent_id == root
    assert audience.root_id == root


@pytest.mark.asyncio
async def test_reply_to_reply_keeps_top_level_root(owner_lookups, session_factory):
    root = await _stored(session_factory, uid=11)
    middle = await _stored(session_factory, uid=12, parent_id=root, root_id=root)
    resolver = AudienceResolver(owner_lookups, session_factory)

    audience = await resolver.resolve(
        CommentCreate(
            commentator_id=13, biz=Biz.ANSWER, biz_id=42, content="re re",
            parent_id=middle, root_id=middle,
        )
    )
    assert audience.reply_to_uid == 12
    assert audience.parent_id == middle
    assert audience.root_id == root


@pytest.mark.asyncio
async def test_missing_parent_is_not_found(owner_lookups, session_factory):
    resolver = AudienceResolver(owner_lookups, session_factory)
    with pytest.raises(CommentNotFound):
        await resolver.resolve(
            CommentCreate(commentator_id=1, biz=Biz.ANSWER, biz_id=42, content="re", parent_id=404)
        )


@pytest.mark.asyncio
async def test_parent_on_another_object_is_rejected(owner_lookups, session_factory):
    other = await _stored(session_factory, uid=11, biz_id=43)
    resolver = AudienceResolver(owner_lookups, session_factory)
    with pytest.raises(InvalidParent):
        await resolver.resolve(
            CommentCreate(commentator_id=1, biz=Biz.ANSWER, biz_id=42, content="re", parent_id=other)
        )


@pytest.mark.asyncio
async def test_unregistered_biz_is_rejected_before_any_lookup(owner_lookups, session_factory):
    resolver = AudienceResolver(owner_lookups, session_factory)
    with pytest.raises(InvalidBiz):
        await resolver.resolve(
            CommentCreate(commentator_id=1, biz=Biz.UNKNOWN, biz_id=42, content="?")
        )
    assert owner_lookups[Biz.ANSWER].calls == []
    assert owner_lookups[Biz.EVALUATION].calls == []


@pytest.mark.asyncio
async def test_unknown_object_propagates_not_found(owner_lookups, session_factory):
    resolver = AudienceResolver(owner_lookups, session_factory)
    with pytest.raises(BizObjectNotFound):
        await resolver.resolve(
            CommentCreate(commentator_id=1, biz=Biz.EVALUATION, biz_id=12345, content="?")
        )


# ---------------------------------------------------------------------------
# HttpOwnerLookup
# ---------------------------------------------------------------------------

def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_http_lookup_reads_publisher_id():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"id": 42, "publisher_id": 1001})

    async with _client(handler) as client:
        lookup = HttpOwnerLookup(client, Biz.ANSWER, "http://answers/", "/api/v1/answers/{biz_id}")
        assert await lookup.get_owner_uid(42) == 1001
    assert seen == ["http://answers/api/v1/answers/42"]


@pytest.mark.asyncio
async def test_http_lookup_404_is_biz_object_not_found():
    async with _client(lambda request: httpx.Response(404)) as client:
        lookup = HttpOwnerLookup(client, Biz.ANSWER, "http://answers", "/api/v1/answers/{biz_id}")
        with pytest.raises(BizObjectNotFound):
            await lookup.get_owner_uid(42)


@pytest.mark.asyncio
async def test_http_lookup_server_error_is_lookup_error():
    async with _client(lambda request: httpx.Response(503)) as client:
        lookup = HttpOwnerLookup(client, Biz.EVALUATION, "http://evals", "/api/v1/evaluations/{biz_id}")
        with pytest.raises(OwnerLookupError):
            await lookup.get_owner_uid(9)


@pytest.mark.asyncio
async def test_http_lookup_malformed_body_is_lookup_error():
    async with _client(lambda request: httpx.Response(200, json={"owner": 1})) as client:
        lookup = HttpOwnerLookup(client, Biz.ANSWER, "http://answers", "/api/v1/answers/{biz_id}")
        with pytest.raises(OwnerLookupError):
            await lookup.get_owner_uid(42)


@pytest.mark.asyncio
async def test_http_lookup_transport_failure_is_lookup_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        lookup = HttpOwnerLookup(client, Biz.ANSWER, "http://answers", "/api/v1/answers/{biz_id}")
        with pytest.raises(OwnerLookupError):
            await lookup.get_owner_uid(42)


@pytest.mark.asyncio
async def test_registered_http_lookups_cover_answer_and_evaluation():
    async with _client(lambda request: httpx.Response(200, json={"publisher_id": 1})) as client:
        lookups = http_owner_lookups(client, settings)
    assert set(lookups) == {Biz.ANSWER, Biz.EVALUATION}
    assert Biz.UNKNOWN not in lookups
