"""
Audience resolution — who a new comment is addressed to.

A top-level comment addresses the owner of the commented object; a reply
addresses the author of its parent.  Owners are looked up through one
``OwnerLookup`` per business type, registered once when the resolver is
built.  A type without a lookup is rejected before anything is written.
"""
import logging
from collections.abc import Mapping
from typing import Protocol

import httpx
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bizcomment.errors import BizObjectNotFound, InvalidBiz, InvalidParent, OwnerLookupError
from bizcomment.schemas import Biz, CommentCreate
from bizcomment.services import comment_store

logger = logging.getLogger(__name__)


class OwnerLookup(Protocol):
    async def get_owner_uid(self, biz_id: int) -> int: ...


class HttpOwnerLookup:
    """
    Ask the service that owns a business type who published an object.

    ``path`` is formatted with ``biz_id``; ``owner_field`` names the JSON
    field carrying the publisher's uid.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        biz: Biz,
        base_url: str,
        path: str,
        owner_field: str = "publisher_id",
    ) -> None:
        self._client = client
        self._biz = biz
        self._base_url = base_url.rstrip("/")
        self._path = path
        self._owner_field = owner_field

    async def get_owner_uid(self, biz_id: int) -> int:
        url = self._base_url + self._path.format(biz_id=biz_id)
        try:
            resp = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise OwnerLookupError(f"{self._biz.name.lower()} owner lookup failed: {exc}") from exc

        if resp.status_code == 404:
            raise BizObjectNotFound(self._biz, biz_id)
        try:
            resp.raise_for_status()
            return int(resp.json()[self._owner_field])
        except (httpx.HTTPStatusError, ValueError, KeyError, TypeError) as exc:
            raise OwnerLookupError(
                f"{self._biz.name.lower()} owner lookup returned an unusable response: {exc}"
            ) from exc


class Audience(BaseModel):
    model_config = ConfigDict(frozen=True)

    reply_to_uid: int
    owner_uid: int
    parent_id: int | None = None
    root_id: int | None = None


class AudienceResolver:
    def __init__(
        self,
        lookups: Mapping[Biz, OwnerLookup],
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._lookups = dict(lookups)
        self._sessions = session_factory

    def lookup_for(self, biz: Biz) -> OwnerLookup:
        try:
            return self._lookups[biz]
        except KeyError:
            raise InvalidBiz(biz) from None

    async def resolve(self, data: CommentCreate) -> Audience:
        """
        Work out the addressee, object owner and thread position of *data*.

        The owner is resolved for replies too because the feed event
        carries it alongside the addressee.
        """
        lookup = self.lookup_for(data.biz)
        owner_uid = await lookup.get_owner_uid(data.biz_id)

        if data.parent_id is None:
            return Audience(reply_to_uid=owner_uid, owner_uid=owner_uid)

        async with self._sessions() as db:
            parent = await comment_store.find_by_id(db, data.parent_id)

        if parent.biz != data.biz or parent.biz_id != data.biz_id:
            raise InvalidParent(
                f"comment {parent.id} belongs to {Biz(parent.biz).name.lower()} {parent.biz_id}"
            )
        # The root is always the top-level ancestor, never an intermediate reply.
        root_id = parent.root_id if parent.root_id is not None else parent.id
        if data.root_id is not None and data.root_id != root_id:
            logger.debug(
                "ignoring client root id: comment_parent=%s client_root=%s root=%s",
                parent.id, data.root_id, root_id,
            )
        return Audience(
            reply_to_uid=parent.commentator_id,
            owner_uid=owner_uid,
            parent_id=parent.id,
            root_id=root_id,
        )


def http_owner_lookups(client: httpx.AsyncClient, settings) -> dict[Biz, OwnerLookup]:
    """Owner lookups for every business type this deployment supports."""
    return {
        Biz.ANSWER: HttpOwnerLookup(
            client, Biz.ANSWER, settings.ANSWER_SERVICE_URL, "/api/v1/answers/{biz_id}"
        ),
        Biz.EVALUATION: HttpOwnerLookup(
            client, Biz.EVALUATION, settings.EVALUATION_SERVICE_URL, "/api/v1/evaluations/{biz_id}"
        ),
    }
