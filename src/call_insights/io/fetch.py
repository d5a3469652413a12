from __future__ import annotations

import http.client
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass

from call_insights.config import SourceConfig
from call_insights.errors import FetchError

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class EndpointDescriptor:
    url_template: str
    sheet_id: str = ""
    sheet_name: str = ""
    gid: int = 0

    def render(self) -> str:
        return self.url_template.format(
            sheet_id=urllib.parse.quote(self.sheet_id, safe=""),
            sheet_name=urllib.parse.quote(self.sheet_name, safe=""),
            gid=int(self.gid),
        )


def endpoint_for_source(source: SourceConfig) -> EndpointDescriptor:
    if source.kind == "relational":
        raise ValueError("relational sources are queried, not fetched over HTTP")
    return EndpointDescriptor(
        url_template=source.resolved_url_template(),
        sheet_id=source.sheet_id or "",
        sheet_name=source.sheet_name,
        gid=source.gid,
    )


def _decode_body(raw: bytes, content_type: str | None) -> str:
    charset = "utf-8"
    if content_type and "charset=" in content_type:
        charset = content_type.split("charset=", 1)[1].split(";", 1)[0].strip() or charset
    try:
        return raw.decode(charset)
    except (LookupError, UnicodeDecodeError):
        return raw.decode("utf-8", errors="replace")


def fetch_text(
    endpoint: EndpointDescriptor,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    user_agent: str = "call-insights",
) -> str:
    """Perform one GET against the endpoint and return the body as text."""
    try:
        url = endpoint.render()
        request = urllib.request.Request(url, headers={"User-Agent": user_agent})
    except (KeyError, IndexError, ValueError) as exc:
        raise FetchError(f"Invalid endpoint template {endpoint.url_template!r}: {exc}") from exc

    LOGGER.info("Fetching %s", url)
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            status = getattr(response, "status", 200)
            if status < 200 or status >= 300:
                raise FetchError(f"{url} returned HTTP {status}", status=status)
            body = response.read()
            content_type = response.headers.get("Content-Type")
    except urllib.error.HTTPError as exc:
        raise FetchError(f"{url} returned HTTP {exc.code}", status=exc.code) from exc
    except (http.client.HTTPException, ValueError) as exc:
        raise FetchError(f"Bad response from {url}: {exc!r}") from exc
    except (urllib.error.URLError, TimeoutError, OSError) as exc:
        raise FetchError(f"Network error fetching {url}: {exc}") from exc

    text = _decode_body(body, content_type)
    LOGGER.debug("Fetched %d characters from %s", len(text), url)
    return text
