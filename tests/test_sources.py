"""Tests for sources.py, categories.py and settings.py"""

import os
from unittest.mock import patch

import pytest

from harvest.core.categories import downstream_dir, normalize_category
from harvest.core.settings import Settings
from harvest.core.sources import (
    DEFAULT_SOURCES,
    Source,
    load_sources_file,
    validate_sources,
)


class TestSource:
    """Tests for the Source value type."""

    def test_empty_locator_rejected(self):
        with pytest.raises(ValueError):
            Source("  ")

    def test_reddit_locator(self):
        source = Source("r/LocalLLaMA", "reddit")
        assert source.is_reddit is True
        assert source.subreddit == "LocalLLaMA"
        assert source.logical_name == "r_LocalLLaMA"

    def test_reddit_prefix_any_case(self):
        source = Source("R/LocalLLaMA")
        assert source.is_reddit is True
        assert source.subreddit == "LocalLLaMA"
        assert normalize_category(None, source.locator) == "reddit"

    def test_url_locator(self):
        source = Source("https://huggingface.co/models", "models")
        assert source.is_reddit is False
        assert source.subreddit is None

    def test_default_sources_order(self):
        assert DEFAULT_SOURCES[0].locator == "https://huggingface.co/models"
        assert [s.category for s in DEFAULT_SOURCES[1:6]] == ["finance"] * 5
        assert all(s.is_reddit for s in DEFAULT_SOURCES[6:])

    def test_default_sources_have_unique_names(self):
        assert validate_sources(DEFAULT_SOURCES) == DEFAULT_SOURCES

    def test_colliding_names_rejected(self):
        with pytest.raises(ValueError, match="same artifact name"):
            validate_sources((Source("a/b"), Source("a?b")))


class TestLoadSourcesFile:
    """Tests for TOML source files."""

    def test_load(self, tmp_path):
        path = tmp_path / "sources.toml"
        path.write_text(
            '[[sources]]\nlocator = "https://example.com/a"\ncategory = "News"\n\n'
            '[[sources]]\nlocator = "r/OpenAI"\n'
        )
        sources = load_sources_file(path)

        assert sources == (
            Source("https://example.com/a", "finance"),
            Source("r/OpenAI", "reddit"),
        )

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_sources_file(tmp_path / "nope.toml")

    def test_entry_without_locator(self, tmp_path):
        path = tmp_path / "sources.toml"
        path.write_text('[[sources]]\ncategory = "models"\n')
        with pytest.raises(ValueError, match="no locator"):
            load_sources_file(path)

    def test_non_string_category(self, tmp_path):
        path = tmp_path / "sources.toml"
        path.write_text('[[sources]]\nlocator = "https://example.com/a"\ncategory = 5\n')
        with pytest.raises(ValueError, match="category must be a string"):
            load_sources_file(path)

    def test_non_table_entries(self, tmp_path):
        path = tmp_path / "sources.toml"
        path.write_text('sources = ["https://example.com/a"]\n')
        with pytest.raises(ValueError, match="must be a table"):
            load_sources_file(path)

    def test_sources_not_an_array(self, tmp_path):
        path = tmp_path / "sources.toml"
        path.write_text('sources = "r/OpenAI"\n')
        with pytest.raises(ValueError, match="array of tables"):
            load_sources_file(path)

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "sources.toml"
        path.write_text("[[sources]\nlocator =")
        with pytest.raises(ValueError):
            load_sources_file(path)


class TestCategories:
    """Tests for category normalization and folder mapping."""

    def test_reddit_locator_wins(self):
        assert normalize_category("finance", "r/MachineLearning") == "reddit"

    def test_alias(self):
        assert normalize_category(" Model ") == "models"

    def test_empty_is_general(self):
        assert normalize_category(None) == "general"

    def test_known_dirs(self):
        assert downstream_dir("models") == "ai_model_news"
        assert downstream_dir("finance") == "finance_news"
        assert downstream_dir("reddit") == "reddit_ai"

    def test_unknown_category_dir(self):
        assert downstream_dir("Crypto News") == "crypto_news"


class TestSettings:
    """Tests for Settings.from_env()."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()

        assert settings.output_dir == "./outputs"
        assert settings.log_file == "scraper.log"
        assert settings.summary_max_chars == 5000
        assert settings.summary_model == "openai/gpt-oss-120b"
        assert settings.publish_mode == "docker"
        assert settings.uploads_dir == "/app/backend/data/uploads"
        assert settings.concurrency == 1
        assert settings.sources == DEFAULT_SOURCES

    def test_summary_auto_follows_key(self):
        with patch.dict(os.environ, {"GROQ_API_KEY": ""}, clear=True):
            assert Settings.from_env().summarize_enabled is False
        with patch.dict(os.environ, {"GROQ_API_KEY": "gsk-test"}, clear=True):
            assert Settings.from_env().summarize_enabled is True

    def test_summary_forced(self):
        with patch.dict(os.environ, {"GROQ_API_KEY": "gsk-test", "SUMMARIZE": "0"}, clear=True):
            assert Settings.from_env().summarize_enabled is False
        with patch.dict(os.environ, {"SUMMARIZE": "1"}, clear=True):
            assert Settings.from_env().summarize_enabled is True

    def test_sources_file(self, tmp_path):
        path = tmp_path / "sources.toml"
        path.write_text('[[sources]]\nlocator = "https://example.com/a"\n')
        with patch.dict(os.environ, {"HARVEST_SOURCES_FILE": str(path)}, clear=True):
            settings = Settings.from_env()
        assert settings.sources == (Source("https://example.com/a", "general"),)

    def test_concurrency_floor(self):
        with patch.dict(os.environ, {"HARVEST_CONCURRENCY": "0"}, clear=True):
            assert Settings.from_env().concurrency == 1
