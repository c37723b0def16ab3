"""Domain errors raised by the storage, repository and service layers.

Routers translate these into HTTP status codes; nothing below the router
layer knows about HTTP.
"""


class CommentError(Exception):
    """Base comment service error."""

    pass


class NotFound(CommentError):
    """Referenced record does not exist."""

    pass


class CommentNotFound(NotFound):
    def __init__(self, comment_id: int) -> None:
        super().__init__(f"comment {comment_id} not found")
        self.comment_id = comment_id


class BizObjectNotFound(NotFound):
    def __init__(self, biz, biz_id: int) -> None:
        super().__init__(f"{biz.name.lower()} {biz_id} not found")
        self.biz = biz
        self.biz_id = biz_id


class PermissionDenied(CommentError):
    """Caller is not allowed to touch the comment."""

    pass


class InvalidBiz(CommentError):
    """No owner lookup is registered for the business type."""

    def __init__(self, biz) -> None:
        super().__init__(f"unsupported biz: {biz!r}")
        self.biz = biz


class InvalidParent(CommentError):
    """Reply targets a parent attached to a different business object."""

    pass


class OwnerLookupError(CommentError):
    """Owner service could not answer."""

    pass


class UnsupportedDialect(CommentError):
    """Configured database has no counter upsert."""

    def __init__(self, dialect_name: str) -> None:
        super().__init__(f"unsupported database dialect: {dialect_name}")
        self.dialect_name = dialect_name
