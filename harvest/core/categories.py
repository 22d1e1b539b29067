"""Category normalization and downstream folder mapping for harvested sources."""

# Map plural/alias forms to the canonical category tag
ALIASES = {
    "model": "models",
    "ai_models": "models",
    "news": "finance",
    "investor": "finance",
    "subreddit": "reddit",
}

REDDIT_PREFIX = "r/"


def is_reddit_locator(locator: str | None) -> bool:
    """True for `r/<name>` locators, any case."""
    return bool(locator) and locator.strip().lower().startswith(REDDIT_PREFIX)


# Canonical category -> subdirectory inside the knowledge uploads folder
DOWNSTREAM_DIRS = {
    "models": "ai_model_news",
    "finance": "finance_news",
    "reddit": "reddit_ai",
}


def normalize_category(category: str | None, locator: str | None = None) -> str:
    """Normalize category to a lowercase canonical tag.

    Rules (in order):
    1. Reddit: locator starts with 'r/' -> 'reddit'
    2. Lowercase and strip whitespace
    3. Alias -> canonical (model -> models, news -> finance)
    4. Default: 'general' for None/empty
    """
    if is_reddit_locator(locator):
        return "reddit"

    if not category:
        return "general"

    cat = category.strip().lower()
    return ALIASES.get(cat, cat)


def downstream_dir(category: str) -> str:
    """Subdirectory name a category's artifacts are published into."""
    cat = normalize_category(category)
    if cat in DOWNSTREAM_DIRS:
        return DOWNSTREAM_DIRS[cat]
    return "".join(ch if ch.isalnum() else "_" for ch in cat) or "general"
