"""httpx wrapper shared by every source.

Why a wrapper:
- Standardizes timeouts, headers and error classification so GitHub and
  GitLab never diverge in how failures are reported.
- Eases testing: a `httpx.MockTransport` can be injected instead of the network.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, TypeVar

import httpx

from hanko.core.config import AppSettings
from hanko.core.errors import (
    ClientError,
    MalformedHeader,
    ServerError,
    SourceConnectionError,
    SourceError,
    UnclassifiedOutcome,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Transport failures that mean "the source cannot be reached".
_CONNECTION_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.ProxyError,
    TimeoutError,
)


def build_async_client(
    settings: AppSettings | None = None,
    *,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an `httpx.AsyncClient` with the project defaults.

    Why a builder:
    - Centralizes timeouts/headers so every source behaves the same.
    - `transport` lets tests replace the network.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {"User-Agent": settings.user_agent}
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            settings.http_timeout_seconds,
            connect=settings.http_connect_timeout_seconds,
        ),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )


def classify_error(outcome: httpx.Response | BaseException) -> SourceError:
    """Map a failed HTTP exchange onto the source error taxonomy.

    Order matters:
    1. connection failure or timeout -> `SourceConnectionError`
    2. 5xx status -> `ServerError`
    3. 4xx status (not claimed by a provider rule) -> `ClientError`
    4. undecodable body or protocol violation -> `ServerError`

    Anything else is a bug in the caller and raises `UnclassifiedOutcome`.
    """

    if isinstance(outcome, _CONNECTION_ERRORS):
        return SourceConnectionError()
    if isinstance(outcome, httpx.Response):
        if outcome.is_server_error:
            return ServerError.from_status(outcome.status_code)
        if outcome.is_client_error:
            return ClientError(outcome.status_code)
    if isinstance(outcome, (httpx.DecodingError, httpx.RemoteProtocolError)):
        return ServerError(f"invalid response, {outcome}")
    if isinstance(outcome, ValueError):
        # json.JSONDecodeError, UnicodeDecodeError and pydantic's ValidationError.
        return ServerError("body is invalid")
    raise UnclassifiedOutcome(f"Unexpected HTTP outcome: {outcome!r}")


async def send_get(
    client: httpx.AsyncClient,
    url: httpx.URL | str,
    *,
    total_timeout: float,
) -> httpx.Response:
    """GET `url`, enforcing a total timeout on top of httpx's per-phase ones."""

    logger.debug("Sending request to %s", url)
    try:
        async with asyncio.timeout(total_timeout):
            response = await client.get(url)
    except (httpx.HTTPError, TimeoutError) as exc:
        raise classify_error(exc) from exc
    logger.debug("Received HTTP %s from %s", response.status_code, url)
    return response


def get_header_value(headers: httpx.Headers, name: str) -> str | None:
    """Return a header value as text, rejecting values that are not UTF-8."""

    wanted = name.lower().encode("ascii")
    for raw_name, raw_value in headers.raw:
        if raw_name.lower() != wanted:
            continue
        try:
            return raw_value.decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedHeader(name, "value is not valid UTF-8") from None
    return None


def parse_header_value(
    headers: httpx.Headers,
    name: str,
    parse: Callable[[str], T],
) -> T | None:
    value = get_header_value(headers, name)
    if value is None:
        return None
    try:
        return parse(value.strip())
    except (ValueError, OverflowError) as exc:
        raise MalformedHeader(name, f"value is not valid: {exc}") from None


def next_url_from_link_header(headers: httpx.Headers) -> httpx.URL | None:
    """Return the `rel="next"` URL of the `Link` header, if present.

    Example header:

        <https://api.github.com/users/octocat/ssh_signing_keys?page=2>; rel="next",
        <https://api.github.com/users/octocat/ssh_signing_keys?page=5>; rel="last"
    """

    link = get_header_value(headers, "Link")
    if link is None:
        return None

    def invalid() -> MalformedHeader:
        return MalformedHeader("Link", f"incorrect format `{link}`")

    for segment in link.split(","):
        url_part, *params = (part.strip() for part in segment.strip().split(";"))

        is_next = False
        for param in params:
            if not param.startswith("rel="):
                continue
            rel = param.removeprefix("rel=").strip('"')
            if not rel:
                raise invalid()
            if "next" in rel.split():
                is_next = True

        if not is_next:
            continue

        if not (url_part.startswith("<") and url_part.endswith(">")):
            raise invalid()
        try:
            url = httpx.URL(url_part[1:-1])
        except httpx.InvalidURL:
            raise invalid() from None
        if url.scheme not in ("http", "https") or not url.host:
            raise invalid()
        return url

    return None


async def iter_pages(
    client: httpx.AsyncClient,
    url: httpx.URL | str,
    *,
    raise_for_status: Callable[[httpx.Response], None],
    total_timeout: float,
) -> AsyncIterator[httpx.Response]:
    """Yield every page of a listing, following `Link: <...>; rel="next"`.

    Rules:
    - A malformed `Link` header stops pagination with a warning; pages already
      yielded stay valid.
    - A `next` URL equal to the URL just fetched stops pagination.
    """

    next_url: httpx.URL | None = httpx.URL(str(url))
    while next_url is not None:
        current = next_url
        response = await send_get(client, current, total_timeout=total_timeout)
        raise_for_status(response)

        try:
            candidate = next_url_from_link_header(response.headers)
        except MalformedHeader as exc:
            logger.warning("Pagination skipped due to %s. Keys may be incomplete.", exc)
            candidate = None

        yield response

        if candidate is not None and candidate == current:
            logger.debug("Link header points back to %s, stopping pagination", current)
            candidate = None
        next_url = candidate
