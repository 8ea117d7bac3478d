import logging
import re
from urllib.parse import urljoin

import bs4
import httpx


logger = logging.getLogger(__name__)


MAX_CONTENT_LENGTH = 15000
IMAGE_DOWNLOAD_TIMEOUT = 10

NOISE_SELECTORS = [
    "script",
    "style",
    "nav",
    "header",
    "footer",
    "aside",
    ".advertisement",
    ".ad",
    ".sidebar",
    ".menu",
    ".navigation",
    ".social",
    ".share",
    ".comments",
    ".related",
    ".footer-content",
]

CONTENT_SELECTORS = [
    "article",
    ".recipe-content",
    ".recipe",
    ".content",
    "main",
    ".main-content",
    '[role="main"]',
    ".post-content",
    ".entry-content",
    ".recipe-details",
    ".recipe-body",
]

IMAGE_SELECTORS = [
    'img[itemprop="image"]',
    ".recipe-image img",
    ".featured-image img",
    ".hero-image img",
    ".recipe-hero img",
    ".post-image img",
    "article img",
    "main img",
    ".content img",
    '[role="main"] img',
    ".entry-content img",
    "img",
]

IMAGE_SOURCE_ATTRS = ["src", "data-src", "data-lazy-src", "data-original"]


class PageFetchFailed(Exception):
    pass


class NoContentFound(Exception):
    def __init__(self) -> None:
        super().__init__("No content found on the webpage. Please navigate to a recipe page.")


async def fetch_html(url: str, *, client: httpx.AsyncClient | None = None, timeout: float = 20) -> str:
    if client is None:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as owned:
            return await _get_html(owned, url)
    return await _get_html(client, url)


async def _get_html(client: httpx.AsyncClient, url: str) -> str:
    logger.info("Fetching %s", url)
    try:
        resp = await client.get(url)
    except httpx.HTTPError as e:
        raise PageFetchFailed(f"Could not fetch {url}") from e
    if resp.status_code != 200:
        raise PageFetchFailed(f"Could not fetch {url}: {resp.status_code}")
    return resp.text


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def html_to_text(html: str, max_length: int = MAX_CONTENT_LENGTH) -> str:
    soup = bs4.BeautifulSoup(html, features="html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    text = _collapse(soup.get_text(" "))
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return text


def main_content_text(html: str) -> str:
    """The readable text of the page's main content block."""
    soup = bs4.BeautifulSoup(html, features="html.parser")
    for selector in NOISE_SELECTORS:
        for tag in soup.select(selector):
            tag.decompose()

    target = None
    for selector in CONTENT_SELECTORS:
        target = soup.select_one(selector)
        if target is not None:
            break
    if target is None:
        target = soup.body or soup

    text = _collapse(target.get_text(" "))
    if not text:
        raise NoContentFound()
    return text


def _image_source(img: bs4.Tag) -> str | None:
    for attr in IMAGE_SOURCE_ATTRS:
        value = img.get(attr)
        if isinstance(value, str) and value.strip():
            return value.strip()
    srcset = img.get("data-srcset")
    if isinstance(srcset, str) and srcset.strip():
        return srcset.split(",")[0].strip().split(" ")[0]
    return None


def _declared_size(img: bs4.Tag) -> tuple[int, int]:
    def number(attr: str) -> int:
        value = img.get(attr)
        if isinstance(value, str):
            m = re.match(r"\d+", value.strip())
            if m:
                return int(m.group())
        return 0

    return number("width"), number("height")


def recipe_image_url(html: str, base_url: str) -> str | None:
    """Pick the picture that most likely shows the dish."""
    soup = bs4.BeautifulSoup(html, features="html.parser")
    candidates: list[tuple[str, int, int]] = []
    seen: set[str] = set()
    for selector in IMAGE_SELECTORS:
        for img in soup.select(selector):
            src = _image_source(img)
            if src is None or src.startswith("data:"):
                continue
            url = urljoin(base_url, src)
            if url in seen:
                continue
            seen.add(url)
            width, height = _declared_size(img)
            candidates.append((url, width, height))

    if not candidates:
        return None

    for minimum in (150, 100):
        sized = [c for c in candidates if c[1] >= minimum and c[2] >= minimum]
        if sized:
            return max(sized, key=lambda c: c[1] * c[2])[0]
    return candidates[0][0]


async def download_image(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> bytes | None:
    if client is None:
        async with httpx.AsyncClient(
            timeout=IMAGE_DOWNLOAD_TIMEOUT, follow_redirects=True
        ) as owned:
            return await _get_image(owned, url)
    return await _get_image(client, url)


async def _get_image(client: httpx.AsyncClient, url: str) -> bytes | None:
    try:
        resp = await client.get(url)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("Could not download image %s: %s", url, e)
        return None
    return resp.content
