"""Harvest run orchestration.

Per source: FETCH -> SUMMARIZE (optional, falls back to raw text) -> WRITE
-> PUBLISH. Each source is isolated: any failure ends that source's pipeline
and the run moves on. After every source has finished, the downstream store
is asked to reindex once, if at least one artifact was written.

Usage:
    run = build_harvest_run(Settings.from_env())
    summary = await run.run()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from harvest.core.artifact_writer import ArtifactWriter, WriteResult
from harvest.core.content_fetcher import (
    BaseFetcher,
    ContentFetcher,
    FetchErrorType,
    FetchResult,
    RoutingFetcher,
    fetch_with_retry,
)
from harvest.core.llm_providers import get_chat_provider
from harvest.core.publisher import Publisher, PublishErrorType, PublishResult, get_publisher
from harvest.core.settings import Settings
from harvest.core.sources import Source
from harvest.core.summarizer import Summarizer, SummaryErrorType, SummaryResult
from harvest.providers.firecrawl import FirecrawlFetcher
from harvest.providers.reddit import RedditFetcher

logger = logging.getLogger(__name__)


class SourceState(str, Enum):
    """Where a source's pipeline ended up."""

    PENDING = "pending"
    FETCHED = "fetched"
    FETCH_FAILED = "fetch_failed"
    SUMMARIZED = "summarized"
    SUMMARY_FALLBACK = "summary_fallback"
    SUMMARY_SKIPPED = "summary_skipped"
    WRITTEN = "written"
    WRITE_FAILED = "write_failed"
    PUBLISHED = "published"
    PUBLISH_FAILED = "publish_failed"


class ReindexStatus(str, Enum):
    """Outcome of the end-of-run reindex signal."""

    NOT_ATTEMPTED = "not_attempted"
    OK = "ok"
    FAILED = "failed"


@dataclass
class HarvestResult:
    """Per-source outcome of one run. Logged, never persisted."""

    source: Source
    state: SourceState = SourceState.PENDING
    # Outcome of the summary stage; `state` moves on to write/publish
    summary_state: SourceState | None = None
    fetch: FetchResult | None = None
    summary: SummaryResult | None = None
    summary_skipped: bool = False
    write: WriteResult | None = None
    publish: PublishResult | None = None

    @property
    def raw_text(self) -> str | None:
        return self.fetch.text if self.fetch and self.fetch.success else None

    @property
    def fallback(self) -> bool:
        """True when raw text was persisted because summarization failed."""
        return self.summary is not None and not self.summary.success

    @property
    def artifact_path(self) -> Path | None:
        return self.write.path if self.write and self.write.success else None

    @property
    def published(self) -> bool:
        return bool(self.publish and self.publish.success)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for log output."""
        return {
            "locator": self.source.locator,
            "category": self.source.category,
            "state": self.state.value,
            "summary_state": self.summary_state.value if self.summary_state else None,
            "fallback": self.fallback,
            "fetch_error": self.fetch.error_message if self.fetch and not self.fetch.success else None,
            "placeholder": bool(self.fetch and self.fetch.placeholder),
            "summary_error": self.summary.error_message if self.fallback else None,
            "summary_skipped": self.summary_skipped,
            "artifact_path": str(self.artifact_path) if self.artifact_path else None,
            "write_error": self.write.error_message if self.write and not self.write.success else None,
            "published": self.published,
            "publish_error": self.publish.error_message if self.publish and not self.publish.success else None,
        }


@dataclass
class RunSummary:
    """Advisory counters for one run."""

    run_date: date
    sources_total: int = 0
    fetched: int = 0
    fetch_failed: int = 0
    summarized: int = 0
    raw_fallback: int = 0
    summary_skipped: int = 0
    written: int = 0
    write_failed: int = 0
    published: int = 0
    publish_failed: int = 0
    reindex: ReindexStatus = ReindexStatus.NOT_ATTEMPTED
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def failed(self) -> int:
        """Sources that did not produce an artifact."""
        return self.fetch_failed + self.write_failed

    @classmethod
    def from_results(cls, run_date: date, results: list[HarvestResult]) -> RunSummary:
        summary = cls(run_date=run_date, sources_total=len(results))
        for r in results:
            if r.fetch is None:
                continue
            if not r.fetch.success:
                summary.fetch_failed += 1
                continue
            summary.fetched += 1
            if r.summary_skipped:
                summary.summary_skipped += 1
            elif r.fallback:
                summary.raw_fallback += 1
            elif r.summary is not None:
                summary.summarized += 1
            if r.write is not None:
                if r.write.success:
                    summary.written += 1
                else:
                    summary.write_failed += 1
            if r.publish is not None:
                if r.publish.success:
                    summary.published += 1
                else:
                    summary.publish_failed += 1
        return summary

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_date": self.run_date.isoformat(),
            "sources_total": self.sources_total,
            "fetched": self.fetched,
            "fetch_failed": self.fetch_failed,
            "summarized": self.summarized,
            "raw_fallback": self.raw_fallback,
            "summary_skipped": self.summary_skipped,
            "written": self.written,
            "write_failed": self.write_failed,
            "published": self.published,
            "publish_failed": self.publish_failed,
            "failed": self.failed,
            "reindex": self.reindex.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class HarvestRun:
    """Runs every configured source through the harvest pipeline once."""

    def __init__(
        self,
        sources: tuple[Source, ...] | list[Source],
        fetcher: BaseFetcher,
        writer: ArtifactWriter,
        summarizer: Summarizer | None = None,
        publisher: Publisher | None = None,
        *,
        run_date: date | None = None,
        concurrency: int = 1,
        fetch_timeout: float = 60.0,
        fetch_retries: int = 2,
        retry_delay: float = 1.0,
    ) -> None:
        self.sources = list(sources)
        self.fetcher = fetcher
        self.writer = writer
        self.summarizer = summarizer
        self.publisher = publisher
        self.run_date = run_date or datetime.now(timezone.utc).date()
        self.concurrency = max(1, concurrency)
        self.fetch_timeout = fetch_timeout
        self.fetch_retries = fetch_retries
        self.retry_delay = retry_delay
        self.results: list[HarvestResult] = []

    async def run(self) -> RunSummary:
        """Process all sources, then send at most one reindex signal."""
        logger.info(
            f"Starting harvest run for {len(self.sources)} sources",
            extra={
                "meta": {
                    "run_date": self.run_date.isoformat(),
                    "summarize": self.summarizer is not None,
                    "publish": self.publisher.name if self.publisher else "none",
                    "concurrency": self.concurrency,
                }
            },
        )

        if self.concurrency == 1:
            self.results = [await self.process_source(s) for s in self.sources]
        else:
            semaphore = asyncio.Semaphore(self.concurrency)

            async def bounded(source: Source) -> HarvestResult:
                async with semaphore:
                    return await self.process_source(source)

            # gather keeps configured order in the result list
            self.results = list(await asyncio.gather(*(bounded(s) for s in self.sources)))

        # Barrier: every source has reached a terminal state here
        summary = RunSummary.from_results(self.run_date, self.results)
        summary.reindex = await self._notify_reindex(summary.written)
        summary.finished_at = datetime.now(timezone.utc)

        logger.info("Harvest run complete", extra={"meta": summary.to_dict()})
        return summary

    async def process_source(self, source: Source) -> HarvestResult:
        """Run one source to a terminal state. Never raises."""
        result = HarvestResult(source=source)

        # 1. Fetch
        result.fetch = await self._fetch(source)
        if not result.fetch.success:
            result.state = SourceState.FETCH_FAILED
            logger.error(
                f"Fetch failed for {source.locator}",
                extra={
                    "meta": {
                        "error_type": result.fetch.error_type.value if result.fetch.error_type else "unknown",
                        "error": result.fetch.error_message,
                    }
                },
            )
            return result

        result.state = SourceState.FETCHED
        raw_text = result.fetch.text or ""
        if result.fetch.placeholder:
            logger.warning(f"Empty content for {source.locator}, storing placeholder")
        else:
            logger.info(f"Fetched {source.locator}", extra={"meta": {"chars": result.fetch.char_count}})

        # 2. Summarize (best-effort)
        content = raw_text
        if self.summarizer is None:
            result.summary_skipped = True
            result.state = result.summary_state = SourceState.SUMMARY_SKIPPED
        else:
            result.summary = await self._summarize(raw_text, source)
            if result.summary.success:
                content = result.summary.text or raw_text
                result.state = result.summary_state = SourceState.SUMMARIZED
                logger.info(
                    f"Summarized {source.locator}",
                    extra={"meta": {"chars": len(content), "truncated": result.summary.truncated}},
                )
            else:
                result.state = result.summary_state = SourceState.SUMMARY_FALLBACK
                logger.warning(
                    f"Summary failed for {source.locator}, falling back to raw text",
                    extra={
                        "meta": {
                            "error_type": result.summary.error_type.value if result.summary.error_type else "unknown",
                            "error": result.summary.error_message,
                        }
                    },
                )

        # 3. Write
        result.write = self._write(source, content)
        if not result.write.success:
            result.state = SourceState.WRITE_FAILED
            logger.error(
                f"Write failed for {source.locator}",
                extra={"meta": {"path": str(result.write.path), "error": result.write.error_message}},
            )
            return result

        result.state = SourceState.WRITTEN
        logger.info(f"Saved {source.locator}", extra={"meta": {"path": str(result.write.path)}})

        # 4. Publish
        if self.publisher is None:
            return result

        result.publish = await self._publish(result.write.path, source)
        if result.publish.success:
            result.state = SourceState.PUBLISHED
            logger.info(
                f"Published {source.locator}",
                extra={"meta": {"destination": result.publish.destination}},
            )
        else:
            result.state = SourceState.PUBLISH_FAILED
            logger.warning(
                f"Publish failed for {source.locator}",
                extra={
                    "meta": {
                        "error_type": result.publish.error_type.value if result.publish.error_type else "unknown",
                        "error": result.publish.error_message,
                    }
                },
            )
        return result

    async def _fetch(self, source: Source) -> FetchResult:
        try:
            return await fetch_with_retry(
                self.fetcher,
                source,
                retries=self.fetch_retries,
                timeout=self.fetch_timeout,
                base_delay=self.retry_delay,
            )
        except Exception as e:
            logger.exception(f"Fetcher raised for {source.locator}")
            return FetchResult.failed(source, FetchErrorType.BACKEND_ERROR, f"{type(e).__name__}: {e}")

    async def _summarize(self, text: str, source: Source) -> SummaryResult:
        assert self.summarizer is not None
        try:
            return await self.summarizer.summarize(text, source)
        except Exception as e:
            logger.exception(f"Summarizer raised for {source.locator}")
            return SummaryResult(
                success=False,
                error_type=SummaryErrorType.BACKEND_ERROR,
                error_message=f"{type(e).__name__}: {e}",
            )

    def _write(self, source: Source, content: str) -> WriteResult:
        # Synchronous write: no other coroutine can touch the same path meanwhile
        try:
            return self.writer.write(source.logical_name, self.run_date, content)
        except Exception as e:
            logger.exception(f"Writer raised for {source.locator}")
            return WriteResult(success=False, error_message=f"{type(e).__name__}: {e}")

    async def _publish(self, artifact: Path, source: Source) -> PublishResult:
        assert self.publisher is not None
        try:
            return await self.publisher.publish(artifact, source.category)
        except Exception as e:
            logger.exception(f"Publisher raised for {source.locator}")
            return PublishResult(
                success=False,
                error_type=PublishErrorType.COPY_FAILED,
                error_message=f"{type(e).__name__}: {e}",
            )

    async def _notify_reindex(self, written: int) -> ReindexStatus:
        if self.publisher is None or not self.publisher.reindex_enabled:
            return ReindexStatus.NOT_ATTEMPTED
        if written == 0:
            logger.info("No artifacts written, skipping reindex")
            return ReindexStatus.NOT_ATTEMPTED

        try:
            result = await self.publisher.notify_reindex()
        except Exception as e:
            logger.exception("Reindex notification raised")
            result = PublishResult(
                success=False,
                error_type=PublishErrorType.HTTP_ERROR,
                error_message=f"{type(e).__name__}: {e}",
            )

        if result.success:
            logger.info("Reindex request sent", extra={"meta": {"url": result.destination}})
            return ReindexStatus.OK

        logger.warning(
            "Reindex request failed",
            extra={"meta": {"url": result.destination, "error": result.error_message}},
        )
        return ReindexStatus.FAILED

    async def close(self) -> None:
        """Close network clients of all components."""
        await self.fetcher.close()
        if self.summarizer is not None:
            await self.summarizer.close()
        if self.publisher is not None:
            await self.publisher.close()


def build_fetcher(settings: Settings) -> RoutingFetcher:
    """Wire the fetch backends from settings."""
    firecrawl = None
    if settings.firecrawl_api_key:
        firecrawl = FirecrawlFetcher(
            api_key=settings.firecrawl_api_key,
            base_url=settings.firecrawl_base_url,
            timeout=settings.fetch_timeout,
        )
    return RoutingFetcher(
        direct=ContentFetcher(timeout=settings.fetch_timeout),
        reddit=RedditFetcher(timeout=settings.fetch_timeout),
        firecrawl=firecrawl,
    )


def build_harvest_run(settings: Settings, run_date: date | None = None) -> HarvestRun:
    """Construct a HarvestRun with concrete backends from settings."""
    summarizer = None
    if settings.summarize_enabled:
        provider = get_chat_provider(
            api_key=settings.groq_api_key,
            model=settings.summary_model,
            base_url=settings.summary_base_url,
            timeout=settings.summary_timeout,
        )
        summarizer = Summarizer(
            provider,
            max_chars=settings.summary_max_chars,
            timeout=settings.summary_timeout,
        )

    publisher = get_publisher(
        settings.publish_mode,
        uploads_dir=settings.uploads_dir,
        container=settings.docker_container,
        reindex_url=settings.reindex_url or None,
        timeout=settings.publish_timeout,
    )

    return HarvestRun(
        sources=settings.sources,
        fetcher=build_fetcher(settings),
        writer=ArtifactWriter(settings.output_dir),
        summarizer=summarizer,
        publisher=publisher,
        run_date=run_date,
        concurrency=settings.concurrency,
        fetch_timeout=settings.fetch_timeout,
        fetch_retries=settings.fetch_retries,
    )


async def run_harvest(settings: Settings, run_date: date | None = None) -> RunSummary:
    """Run one harvest pass and close all clients."""
    run = build_harvest_run(settings, run_date)
    try:
        return await run.run()
    finally:
        await run.close()
