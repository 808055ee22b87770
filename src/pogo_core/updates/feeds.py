"""Remote feed access: version markers and payload downloads."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from ..config import Settings, get_settings
from ..data.models import SourceDescriptor, SourceKind
from ..exceptions import FetchError

logger = logging.getLogger(__name__)


class FeedClient(Protocol):
    """What the update pipeline needs from a remote feed."""

    async def resolve_version_marker(self, source: SourceDescriptor) -> str:
        """Return an opaque identifier of the source's current remote state."""
        ...

    async def fetch_payload(self, source: SourceDescriptor, ref: str | None = None) -> Any:
        """Download the source's structured document, pinned to ``ref`` when given."""
        ...


class GitHubFeedClient:
    """Feed client for sources that live in public GitHub repositories.

    The version marker is the sha of the newest commit touching the source's
    path, so unrelated commits elsewhere in the repository do not trigger an
    update. Payloads are read from raw.githubusercontent.com at that sha.

    Rankings sources point at a directory and are expanded to one file per
    configured league and scenario; their payload is a dict keyed by
    ``(league, scenario)``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self._settings.github_token:
            headers["Authorization"] = f"Bearer {self._settings.github_token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=httpx.Timeout(self._settings.http_timeout_seconds),
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, source: SourceDescriptor, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._get_client().get(url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise FetchError(source.id, f"HTTP {e.response.status_code} for {url}") from e
        except httpx.HTTPError as e:
            raise FetchError(source.id, f"{type(e).__name__} for {url}: {e}") from e
        except ValueError as e:
            raise FetchError(source.id, f"malformed JSON from {url}") from e

    async def resolve_version_marker(self, source: SourceDescriptor) -> str:
        url = f"{self._settings.github_api_url}/repos/{source.repository}/commits"
        data = await self._get_json(
            source,
            url,
            params={"path": source.path, "sha": source.branch, "per_page": 1},
            headers=self._headers(),
        )
        if not isinstance(data, list) or not data or "sha" not in data[0]:
            raise FetchError(source.id, f"no commits found for {source.path}")
        return str(data[0]["sha"])

    def payload_urls(self, source: SourceDescriptor, ref: str | None = None) -> dict[Any, str]:
        """Map payload keys to download URLs for a source."""
        base = f"{self._settings.raw_content_url}/{source.repository}/{ref or source.branch}"
        if source.kind is SourceKind.RANKINGS:
            return {
                (league, scenario): (
                    f"{base}/{source.path}/all/{scenario}/rankings-{cp_limit}.json"
                )
                for league, cp_limit in self._settings.ranking_leagues.items()
                for scenario in self._settings.ranking_scenarios
            }
        return {None: f"{base}/{source.path}"}

    async def fetch_payload(self, source: SourceDescriptor, ref: str | None = None) -> Any:
        urls = self.payload_urls(source, ref)
        if list(urls) == [None]:
            return await self._get_json(source, urls[None])

        payload: dict[Any, Any] = {}
        for key, url in urls.items():
            logger.debug("Fetching %s", url)
            payload[key] = await self._get_json(source, url)
        return payload
