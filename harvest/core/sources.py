"""Harvest source definitions.

A source is a locator (URL or ``r/<subreddit>``) plus a category tag.
Sources come from the built-in defaults or from a TOML file::

    [[sources]]
    locator = "https://huggingface.co/models"
    category = "models"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from harvest.core.artifact_writer import sanitize_name
from harvest.core.categories import REDDIT_PREFIX, is_reddit_locator, normalize_category


@dataclass(frozen=True)
class Source:
    """One thing to harvest."""

    locator: str
    category: str = "general"

    def __post_init__(self) -> None:
        if not self.locator or not self.locator.strip():
            raise ValueError("Source locator must not be empty")

    @property
    def logical_name(self) -> str:
        """Filesystem-safe name derived from the locator."""
        return sanitize_name(self.locator)

    @property
    def is_reddit(self) -> bool:
        return is_reddit_locator(self.locator)

    @property
    def subreddit(self) -> str | None:
        if not self.is_reddit:
            return None
        return self.locator.strip()[len(REDDIT_PREFIX):].strip("/") or None


INVESTOR_NEWS_URLS = (
    "https://www.investors.com/news/",
    "https://www.investors.com/market-trend/stock-market-today/",
    "https://www.investors.com/etfs-and-funds/",
    "https://www.investors.com/category/news/technology/",
    "https://www.investors.com/category/news/business/",
)

AI_SUBREDDITS = (
    "MachineLearning",
    "LocalLLaMA",
    "ArtificialIntelligence",
    "OpenAI",
    "LanguageTechnology",
)

DEFAULT_SOURCES: tuple[Source, ...] = (
    Source("https://huggingface.co/models", "models"),
    *(Source(url, "finance") for url in INVESTOR_NEWS_URLS),
    *(Source(f"{REDDIT_PREFIX}{name}", "reddit") for name in AI_SUBREDDITS),
)


def validate_sources(sources: tuple[Source, ...]) -> tuple[Source, ...]:
    """Reject source lists whose artifact names would collide."""
    seen: dict[str, str] = {}
    for source in sources:
        name = source.logical_name
        if name in seen:
            raise ValueError(
                f"Sources {seen[name]!r} and {source.locator!r} map to the same artifact name {name!r}"
            )
        seen[name] = source.locator
    return sources


def load_sources_file(path: str | Path) -> tuple[Source, ...]:
    """Load sources from a TOML file with a ``[[sources]]`` array.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the TOML is invalid or an entry is malformed.
    """
    sources_file = Path(path)
    if not sources_file.exists():
        raise FileNotFoundError(f"Sources file not found: {sources_file}")

    with open(sources_file, "rb") as f:
        # TOMLDecodeError is a ValueError
        data = tomllib.load(f)

    entries = data.get("sources", [])
    if not isinstance(entries, list):
        raise ValueError(f"{sources_file}: 'sources' must be an array of tables")

    sources = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"{sources_file}: sources[{i}] must be a table")

        locator = entry.get("locator", "")
        if not isinstance(locator, str) or not locator.strip():
            raise ValueError(f"{sources_file}: sources[{i}] has no locator")

        category = entry.get("category")
        if category is not None and not isinstance(category, str):
            raise ValueError(f"{sources_file}: sources[{i}] category must be a string")

        locator = locator.strip()
        sources.append(Source(locator=locator, category=normalize_category(category, locator)))

    return validate_sources(tuple(sources))
