"""
Domain exceptions and HTTP exception utilities.

Pipeline code raises the domain errors below; route handlers translate
missing resources into 404s with the helpers at the bottom.
"""

from typing import TypeVar

from fastapi import HTTPException

T = TypeVar("T")


class NewsEngineError(Exception):
    """Base class for pipeline errors."""
    pass


class FeedNotFoundError(NewsEngineError):
    """Raised when a feed id does not resolve to a stored feed."""

    def __init__(self, feed_id: int):
        super().__init__("Feed not found")
        self.feed_id = feed_id


class FeedFetchError(NewsEngineError):
    """Raised when a feed cannot be downloaded or parsed."""
    pass


class InvalidCronExpressionError(NewsEngineError, ValueError):
    """Raised when a cron expression cannot be turned into a trigger."""

    def __init__(self, expression: str, reason: str = ""):
        message = f"Invalid cron expression: {expression!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.expression = expression


class InvalidSettingsError(NewsEngineError, ValueError):
    """Raised when a settings override is outside the allowed bounds."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class EmbeddingError(NewsEngineError):
    """Raised when the embedding backend fails."""
    pass


def require_resource(resource: T | None, detail: str = "Resource not found") -> T:
    """
    Raise 404 if resource is None, otherwise return the resource.

    Usage:
        feed = require_resource(db.get_feed(id), "Feed not found")
    """
    if resource is None:
        raise HTTPException(status_code=404, detail=detail)
    return resource


def require_feed(feed: T | None) -> T:
    """Raise 404 if feed is None."""
    return require_resource(feed, "Feed not found")


def require_user(user: T | None) -> T:
    """Raise 404 if user is None."""
    return require_resource(user, "User not found")


def require_category(category: T | None) -> T:
    """Raise 404 if category is None."""
    return require_resource(category, "Category not found")
