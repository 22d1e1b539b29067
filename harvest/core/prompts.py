"""Prompt Registry for summary LLM calls.

One template per source category; unknown categories use the generic one.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass
class PromptTemplate:
    """A prompt template with metadata."""

    key: str
    category: str
    name: str
    description: str
    template: str
    variables: list[str]
    temperature: float
    max_tokens: int

    def render(self, **values: str) -> str:
        return self.template.format(**values)


DEFAULT_PROMPTS: dict[str, dict] = {
    "summary_models": {
        "category": "models",
        "name": "Trending models",
        "description": "Condenses a model-listing page into the currently trending models.",
        "template": """Summarize the most recently trending AI models from the following scraped content.
For each model give its name, publisher, task and anything notable (size, license, downloads).

Source: {locator}

{text}""",
        "variables": ["locator", "text"],
        "temperature": 0.3,
        "max_tokens": 1200,
    },
    "summary_finance": {
        "category": "finance",
        "name": "Market news digest",
        "description": "Condenses a finance news section into headlines and key points.",
        "template": """Summarize the finance and market news in the following scraped page.
List each story with its headline and two or three key points. Keep tickers and figures exact.

Source: {locator}

{text}""",
        "variables": ["locator", "text"],
        "temperature": 0.3,
        "max_tokens": 1200,
    },
    "summary_reddit": {
        "category": "reddit",
        "name": "Subreddit digest",
        "description": "Condenses the day's top posts and comments of a subreddit.",
        "template": """Summarize the main discussions in these top posts from {locator}.
For each post give the topic, the key claim or question and the gist of the comments.

{text}""",
        "variables": ["locator", "text"],
        "temperature": 0.3,
        "max_tokens": 1200,
    },
    "summary_general": {
        "category": "general",
        "name": "Generic summary",
        "description": "Fallback for categories without a dedicated prompt.",
        "template": """Summarize the following scraped content in plain text. Keep names, dates and numbers.

Source: {locator}

{text}""",
        "variables": ["locator", "text"],
        "temperature": 0.3,
        "max_tokens": 1000,
    },
}


def get_prompt(category: str) -> PromptTemplate:
    """Get the summary prompt for a category."""
    key = f"summary_{category}"
    if key not in DEFAULT_PROMPTS:
        key = "summary_general"
    return PromptTemplate(key=key, **DEFAULT_PROMPTS[key])
