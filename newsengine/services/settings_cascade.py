"""
Settings cascade: layered feed configuration.

Each tier (feed source, user defaults, category, subscription) is a
FeedSettingsOverride whose fields are all optional. Resolution applies the
tiers in order and the last non-null value for a field wins:

    system fallback < feed source settings < user default < category < subscription

The result records which tier supplied every field.
"""

from dataclasses import asdict, dataclass, field, fields

from ..exceptions import InvalidSettingsError

EXTRACTION_METHODS = ("rss", "readability", "custom")
MERGE_STRATEGIES = ("replace", "prepend", "append")

# Source tier labels, lowest precedence first
SYSTEM = "system"
SOURCE = "source"
USER = "user"
CATEGORY = "category"
FEED = "feed"

# Inclusive bounds for numeric fields
LIMITS = {
    "refresh_interval": (15, 1440),
    "max_articles_per_feed": (50, 5000),
    "max_article_age": (1, 365),
    "extraction_timeout": (1, 120),
    "summary_min_content_length": (0, 1_000_000),
}


@dataclass
class FeedSettingsOverride:
    """One tier of the cascade. None means "not set at this tier"."""
    refresh_interval: int | None = None  # minutes
    max_articles_per_feed: int | None = None
    max_article_age: int | None = None  # days
    extraction_method: str | None = None
    merge_strategy: str | None = None
    extraction_timeout: int | None = None  # seconds
    custom_selector: str | None = None
    headers: dict[str, str] | None = None
    cookies: dict[str, str] | None = None
    summarization_enabled: bool | None = None
    summary_min_content_length: int | None = None
    include_key_points: bool | None = None
    include_topics: bool | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> "FeedSettingsOverride":
        """Build an override from a stored blob, ignoring unknown keys."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict:
        """Serialize only the fields set at this tier."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def is_empty(self) -> bool:
        return not self.to_dict()


@dataclass
class EffectiveFeedSettings:
    """Fully resolved settings for one feed, as seen by one user."""
    refresh_interval: int = 60
    max_articles_per_feed: int = 500
    max_article_age: int = 90
    extraction_method: str = "rss"
    merge_strategy: str = "replace"
    extraction_timeout: int = 30
    custom_selector: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)
    summarization_enabled: bool = False
    summary_min_content_length: int = 500
    include_key_points: bool = True
    include_topics: bool = True
    sources: dict[str, str] = field(default_factory=dict)

    @property
    def refresh_interval_ms(self) -> int:
        return self.refresh_interval * 60_000

    @property
    def uses_extraction(self) -> bool:
        return self.extraction_method != "rss"


CASCADED_FIELDS = [f.name for f in fields(FeedSettingsOverride)]


def resolve_settings(
    user: FeedSettingsOverride | None = None,
    category: FeedSettingsOverride | None = None,
    feed: FeedSettingsOverride | None = None,
    source: FeedSettingsOverride | None = None,
) -> EffectiveFeedSettings:
    """
    Merge the cascade tiers into effective settings.

    Pure function: tiers are applied lowest precedence first and a None
    field never overrides a lower tier.
    """
    effective = EffectiveFeedSettings()
    effective.sources = {name: SYSTEM for name in CASCADED_FIELDS}

    for label, tier in ((SOURCE, source), (USER, user), (CATEGORY, category), (FEED, feed)):
        if tier is None:
            continue
        for name in CASCADED_FIELDS:
            value = getattr(tier, name)
            if value is not None:
                setattr(effective, name, value)
                effective.sources[name] = label

    return effective


def validate_settings(override: FeedSettingsOverride) -> list[str]:
    """Return a list of problems with an override; empty when valid."""
    errors = []

    for name, (low, high) in LIMITS.items():
        value = getattr(override, name)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            errors.append(f"{name} must be an integer")
        elif not low <= value <= high:
            errors.append(f"{name} must be between {low} and {high}")

    if override.extraction_method is not None and override.extraction_method not in EXTRACTION_METHODS:
        errors.append(f"extraction_method must be one of {', '.join(EXTRACTION_METHODS)}")
    if override.merge_strategy is not None and override.merge_strategy not in MERGE_STRATEGIES:
        errors.append(f"merge_strategy must be one of {', '.join(MERGE_STRATEGIES)}")
    if override.extraction_method == "custom" and override.custom_selector == "":
        errors.append("custom_selector must not be empty")

    return errors


def ensure_valid(override: FeedSettingsOverride) -> FeedSettingsOverride:
    """Raise InvalidSettingsError when an override is out of bounds."""
    errors = validate_settings(override)
    if errors:
        raise InvalidSettingsError(errors)
    return override


class SettingsResolver:
    """Loads the cascade tiers from the database and resolves them."""

    def __init__(self, db):
        self.db = db

    def for_feed(self, feed_id: int, user_id: int | None = None) -> EffectiveFeedSettings:
        """
        Effective settings for a feed.

        Without a user only the feed's own settings apply; with a user the
        full cascade (preferences, first category, subscription) is layered on.
        """
        feed = self.db.get_feed(feed_id)
        source = FeedSettingsOverride.from_dict(feed.settings) if feed else None
        if user_id is None:
            return resolve_settings(source=source)

        subscription = self.db.subscriptions.get_subscription(user_id, feed_id)
        return self._resolve_for_user(user_id, subscription, source)

    def for_subscription(self, subscription) -> EffectiveFeedSettings:
        """Effective settings from a subscription row that carries its feed's blob."""
        source = FeedSettingsOverride.from_dict(subscription.feed_settings)
        return self._resolve_for_user(subscription.user_id, subscription, source)

    def _resolve_for_user(self, user_id: int, subscription, source) -> EffectiveFeedSettings:
        user = FeedSettingsOverride.from_dict(self.db.subscriptions.get_preferences(user_id))
        category = None
        feed = None
        if subscription is not None:
            db_category = self.db.subscriptions.get_subscription_category(subscription.id)
            if db_category is not None:
                category = FeedSettingsOverride.from_dict(db_category.settings)
            feed = FeedSettingsOverride.from_dict(subscription.settings)
        return resolve_settings(user=user, category=category, feed=feed, source=source)
