from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import httpx


logger = logging.getLogger(__name__)

# Remote endpoints must always be re-read; the refresh timer is pointless otherwise.
_NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


class SourceUnavailable(Exception):
    """A remote source could not contribute codes for this run."""

    def __init__(self, source_id: str, reason: str) -> None:
        super().__init__(f"Source {source_id!r} unavailable: {reason}")
        self.source_id = source_id
        self.reason = reason


class SourceKind(str, enum.Enum):
    LITERAL = "literal"
    REMOTE = "remote"


@dataclass(frozen=True)
class SourceSpec:
    id: str
    kind: SourceKind
    color_tag: str
    codes: tuple[str, ...] = ()
    url: str | None = None

    @classmethod
    def literal(cls, id: str, codes: Iterable[str], *, color_tag: str) -> SourceSpec:
        return cls(id=id, kind=SourceKind.LITERAL, color_tag=color_tag, codes=tuple(codes))

    @classmethod
    def remote(cls, id: str, url: str, *, color_tag: str) -> SourceSpec:
        return cls(id=id, kind=SourceKind.REMOTE, color_tag=color_tag, url=url)


@dataclass(frozen=True)
class IngestedSource:
    source: SourceSpec
    codes: list[str]
    # Set when a remote source failed and contributed nothing.
    error: str | None = None

    @property
    def available(self) -> bool:
        return self.error is None


def clean_codes(raw: Iterable[str]) -> list[str]:
    """Trim entries and drop empty ones, keeping order and duplicates."""

    out: list[str] = []
    for item in raw:
        code = item.strip()
        if code:
            out.append(code)
    return out


def split_lines(body: str) -> list[str]:
    return clean_codes(body.splitlines())


async def fetch_remote_codes(
    client: httpx.AsyncClient, source: SourceSpec, *, timeout_s: float
) -> list[str]:
    """GET one remote endpoint and return its newline-delimited codes.

    Raises SourceUnavailable on transport errors and non-2xx responses.
    """

    if not source.url:
        raise SourceUnavailable(source.id, "missing endpoint URL")

    try:
        resp = await client.get(
            source.url,
            headers=_NO_CACHE_HEADERS,
            timeout=timeout_s,
        )
    except httpx.TimeoutException as e:
        raise SourceUnavailable(source.id, "request timed out") from e
    except httpx.HTTPError as e:
        raise SourceUnavailable(source.id, f"request failed: {e}") from e
    except httpx.InvalidURL as e:
        raise SourceUnavailable(source.id, f"invalid URL: {e}") from e

    if not resp.is_success:
        raise SourceUnavailable(source.id, f"HTTP {resp.status_code}")

    return split_lines(resp.content.decode("utf-8", errors="replace"))


async def _ingest_one(
    client: httpx.AsyncClient, source: SourceSpec, *, timeout_s: float
) -> IngestedSource:
    if source.kind is SourceKind.LITERAL:
        return IngestedSource(source=source, codes=clean_codes(source.codes))

    try:
        codes = await fetch_remote_codes(client, source, timeout_s=timeout_s)
    except SourceUnavailable as e:
        logger.warning("Geohash source skipped (id=%s reason=%s)", e.source_id, e.reason)
        return IngestedSource(source=source, codes=[], error=e.reason)
    return IngestedSource(source=source, codes=codes)


async def ingest_sources(
    sources: Sequence[SourceSpec],
    *,
    timeout_s: float = 10.0,
    http_client: httpx.AsyncClient | None = None,
) -> list[IngestedSource]:
    """Resolve every source into raw codes.

    Remote fetches run concurrently and the call returns once all of them have
    settled. Output order matches ``sources``; a failed source yields an empty
    code list instead of aborting the run.
    """

    close_client = False
    client = http_client
    if client is None and any(s.kind is SourceKind.REMOTE for s in sources):
        close_client = True
        client = httpx.AsyncClient()

    try:
        return list(
            await asyncio.gather(
                *(_ingest_one(client, s, timeout_s=timeout_s) for s in sources)  # type: ignore[arg-type]
            )
        )
    finally:
        if close_client and client is not None:
            await client.aclose()
