"""Web producer - text content of a single page."""

from dataclasses import dataclass, field
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from seedbed.core.exception import ConfigError, ProducerError
from seedbed.core.types import ContentItem


def extract_text(html: str, selector: str | None = None) -> tuple[str, str | None]:
    """Extract visible text from HTML.

    Args:
        html: Page markup.
        selector: Optional CSS selector limiting extraction to matching elements.

    Returns:
        Tuple of (cleaned text, page title).
    """
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.string if soup.title and soup.title.string else None

    # Remove script and style elements
    for element in soup(["script", "style"]):
        element.decompose()

    if selector:
        text = "\n".join(el.get_text() for el in soup.select(selector))
    else:
        text = soup.get_text()

    lines = (line.strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line), title


@dataclass
class WebProducer:
    """Fetches one URL and emits its text as a single content item.

    Example:
        producer = WebProducer("https://example.com", selector="div.content")
        items = await producer.produce()
    """

    url: str
    selector: str | None = None
    timeout: float = 30.0
    name: str = field(default="web")
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    def __post_init__(self):
        parsed = urlparse(self.url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigError(f"Web producer requires an http(s) URL, got {self.url!r}")
        if self.selector:
            try:
                BeautifulSoup("", "html.parser").select(self.selector)
            except Exception as e:
                raise ConfigError(f"Invalid CSS selector {self.selector!r}: {e}") from e

    def validate(self) -> None:
        pass

    async def produce(self) -> list[ContentItem]:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self.transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(self.url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProducerError(
                f"Fetching {self.url} failed: {e.response.status_code}", producer=self.name
            ) from e
        except httpx.HTTPError as e:
            raise ProducerError(f"Fetching {self.url} failed: {e}", producer=self.name) from e

        text, title = extract_text(response.text, self.selector)
        return [
            ContentItem.from_payload(
                id=self.url,
                payload=text,
                source_tag="web",
                metadata={"source": self.url, "title": title or self.url},
            )
        ]
