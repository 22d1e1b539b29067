"""Publishing artifacts into the downstream knowledge store.

Two publishing mechanisms are available:
- LocalDirectoryPublisher: copy into a mounted uploads directory
- DockerCopyPublisher: ``docker cp`` into a running container

Both share the reindex notification, a bodiless HTTP POST to the store.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath

import httpx

from harvest.core.categories import downstream_dir

logger = logging.getLogger(__name__)

PUBLISH_TIMEOUT = 30.0


class PublishErrorType(str, Enum):
    """Classification of publish/reindex errors."""

    COPY_FAILED = "copy_failed"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    NOT_CONFIGURED = "not_configured"


@dataclass
class PublishResult:
    """Result of a publish or reindex call."""

    success: bool
    destination: str | None = None
    error_type: PublishErrorType | None = None
    error_message: str | None = None


class Publisher(ABC):
    """Pushes artifacts downstream and signals the store to reindex."""

    name: str = "base"

    def __init__(
        self,
        reindex_url: str | None = None,
        timeout: float = PUBLISH_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.reindex_url = reindex_url or None
        self.timeout = timeout
        self._client = client

    @property
    def reindex_enabled(self) -> bool:
        return self.reindex_url is not None

    @abstractmethod
    async def publish(self, artifact: Path, category: str) -> PublishResult:
        """Copy one artifact into the category's ingestion location."""
        ...

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def notify_reindex(self) -> PublishResult:
        """Ask the knowledge store to rebuild its index."""
        if self.reindex_url is None:
            return PublishResult(
                success=False,
                error_type=PublishErrorType.NOT_CONFIGURED,
                error_message="No reindex URL configured",
            )

        try:
            client = await self._get_client()
            response = await client.post(self.reindex_url)
            response.raise_for_status()
        except httpx.TimeoutException:
            return PublishResult(
                success=False,
                destination=self.reindex_url,
                error_type=PublishErrorType.TIMEOUT,
                error_message=f"Reindex request timed out after {self.timeout}s",
            )
        except httpx.HTTPError as e:
            return PublishResult(
                success=False,
                destination=self.reindex_url,
                error_type=PublishErrorType.HTTP_ERROR,
                error_message=f"{type(e).__name__}: {e}",
            )

        return PublishResult(success=True, destination=self.reindex_url)


class LocalDirectoryPublisher(Publisher):
    """Copies artifacts into ``{uploads_dir}/{category folder}/``."""

    name = "local"

    def __init__(self, uploads_dir: str | Path, **kwargs) -> None:
        super().__init__(**kwargs)
        self.uploads_dir = Path(uploads_dir)

    def destination_for(self, artifact: Path, category: str) -> Path:
        return self.uploads_dir / downstream_dir(category) / artifact.name

    async def publish(self, artifact: Path, category: str) -> PublishResult:
        destination = self.destination_for(artifact, category)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(artifact, destination)
        except OSError as e:
            return PublishResult(
                success=False,
                destination=str(destination),
                error_type=PublishErrorType.COPY_FAILED,
                error_message=f"{type(e).__name__}: {e}",
            )
        return PublishResult(success=True, destination=str(destination))


class DockerCopyPublisher(Publisher):
    """Copies artifacts into a container with ``docker exec`` + ``docker cp``."""

    name = "docker"

    def __init__(
        self,
        container: str,
        uploads_dir: str = "/app/backend/data/uploads",
        docker_bin: str = "docker",
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.container = container
        self.uploads_dir = PurePosixPath(uploads_dir)
        self.docker_bin = docker_bin

    def destination_for(self, artifact: Path, category: str) -> PurePosixPath:
        return self.uploads_dir / downstream_dir(category) / artifact.name

    def _run(self, *args: str) -> None:
        subprocess.run(
            [self.docker_bin, *args],
            check=True,
            capture_output=True,
            timeout=self.timeout,
        )

    async def publish(self, artifact: Path, category: str) -> PublishResult:
        destination = self.destination_for(artifact, category)
        try:
            await asyncio.to_thread(
                self._run, "exec", self.container, "mkdir", "-p", str(destination.parent)
            )
            await asyncio.to_thread(
                self._run, "cp", str(artifact), f"{self.container}:{destination}"
            )
        except subprocess.TimeoutExpired:
            return PublishResult(
                success=False,
                destination=str(destination),
                error_type=PublishErrorType.TIMEOUT,
                error_message=f"docker timed out after {self.timeout}s",
            )
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip()
            return PublishResult(
                success=False,
                destination=str(destination),
                error_type=PublishErrorType.COPY_FAILED,
                error_message=f"docker exited {e.returncode}: {stderr}",
            )
        except OSError as e:
            return PublishResult(
                success=False,
                destination=str(destination),
                error_type=PublishErrorType.COPY_FAILED,
                error_message=f"{type(e).__name__}: {e}",
            )
        return PublishResult(success=True, destination=f"{self.container}:{destination}")


def get_publisher(
    mode: str,
    *,
    uploads_dir: str,
    container: str = "openwebui",
    reindex_url: str | None = None,
    timeout: float = PUBLISH_TIMEOUT,
) -> Publisher | None:
    """Factory for the configured publisher; 'none' disables publishing.

    Raises:
        ValueError: If mode is unknown.
    """
    mode = mode.lower()
    if mode == "none":
        return None
    if mode == "local":
        return LocalDirectoryPublisher(uploads_dir, reindex_url=reindex_url, timeout=timeout)
    if mode == "docker":
        return DockerCopyPublisher(
            container,
            uploads_dir=uploads_dir,
            reindex_url=reindex_url,
            timeout=timeout,
        )
    raise ValueError(f"Unknown publish mode: {mode}. Available: local, docker, none")
