from __future__ import annotations

import os
from dataclasses import dataclass

from harvest.core.sources import DEFAULT_SOURCES, Source, load_sources_file


@dataclass(frozen=True)
class Settings:
    firecrawl_api_key: str
    firecrawl_base_url: str
    groq_api_key: str
    summary_base_url: str
    summary_model: str
    summary_max_chars: int
    summarize_mode: str
    output_dir: str
    log_file: str
    log_level: str
    uploads_dir: str
    publish_mode: str
    docker_container: str
    reindex_url: str
    fetch_timeout: float
    summary_timeout: float
    publish_timeout: float
    fetch_retries: int
    concurrency: int
    sources: tuple[Source, ...] = DEFAULT_SOURCES

    @property
    def summarize_enabled(self) -> bool:
        """'1'/'0' force the summary stage on/off; 'auto' enables it when a key is set."""
        if self.summarize_mode in ("1", "true", "yes", "on"):
            return True
        if self.summarize_mode in ("0", "false", "no", "off"):
            return False
        return bool(self.groq_api_key)

    @staticmethod
    def from_env() -> "Settings":
        def _s(name: str, default: str) -> str:
            return os.getenv(name, default).strip()

        def _i(name: str, default: str) -> int:
            return int(os.getenv(name, default).strip())

        def _f(name: str, default: str) -> float:
            return float(os.getenv(name, default).strip())

        sources_file = _s("HARVEST_SOURCES_FILE", "")
        sources = load_sources_file(sources_file) if sources_file else DEFAULT_SOURCES

        return Settings(
            firecrawl_api_key=_s("FIRECRAWL_API_KEY", ""),
            firecrawl_base_url=_s("FIRECRAWL_BASE_URL", "https://api.firecrawl.dev"),
            groq_api_key=_s("GROQ_API_KEY", ""),
            summary_base_url=_s("SUMMARY_BASE_URL", "https://api.groq.com/openai/v1"),
            summary_model=_s("SUMMARY_MODEL", "openai/gpt-oss-120b"),
            summary_max_chars=_i("SUMMARY_MAX_CHARS", "5000"),
            summarize_mode=_s("SUMMARIZE", "auto").lower(),
            output_dir=_s("HARVEST_OUTPUT_DIR", "./outputs"),
            log_file=_s("HARVEST_LOG_FILE", "scraper.log"),
            log_level=_s("LOG_LEVEL", "INFO").upper(),
            uploads_dir=_s("KNOWLEDGE_UPLOADS_DIR", "/app/backend/data/uploads"),
            publish_mode=_s("PUBLISH_MODE", "docker").lower(),
            docker_container=_s("DOCKER_CONTAINER", "openwebui"),
            reindex_url=_s("REINDEX_URL", "http://localhost:8080/api/knowledge/rebuild"),
            fetch_timeout=_f("FETCH_TIMEOUT", "60"),
            summary_timeout=_f("SUMMARY_TIMEOUT", "120"),
            publish_timeout=_f("PUBLISH_TIMEOUT", "30"),
            fetch_retries=_i("FETCH_RETRIES", "2"),
            concurrency=max(1, _i("HARVEST_CONCURRENCY", "1")),
            sources=sources,
        )
