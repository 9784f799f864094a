"""
Candidate cover images: Gemini image generation and stock-photo search.

Stock search walks an ordered provider chain (Unsplash, then Pixabay) and
asks each provider only for the results still missing.  If the real
providers return nothing at all, placeholder pictures from LoremFlickr are
synthesised so a non-empty query never comes back empty.  Partial results
are returned as they are.

AI generation issues three requests concurrently and falls back to stock
search with the same terms if any of them fails.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable
from urllib.parse import quote

import requests
from google import genai
from google.genai import types

from cover_studio.analysis import make_client
from cover_studio.config import (
    AI_IMAGE_COUNT, HTTP_TIMEOUT, IMAGE_MODEL, PIXABAY_MIN_PER_PAGE, PIXABAY_SEARCH_URL,
    PLACEHOLDER_COUNT, PLACEHOLDER_PAGE_STRIDE, PLACEHOLDER_URL_TEMPLATE, STOCK_QUERY_TERMS,
    STOCK_TARGET_RESULTS, UNSPLASH_PER_PAGE, UNSPLASH_SEARCH_URL, USER_AGENT,
    ConfigurationError, pixabay_api_key, unsplash_access_key,
)
from cover_studio.image_io import to_data_uri
from cover_studio.models import ImageResult, ImageSource

logger = logging.getLogger(__name__)

AI_PROMPT_TEMPLATE = """
A professional, high-quality, photorealistic image featuring: {subjects}.
Cinematic lighting, 8k resolution, highly detailed.
PURE PHOTOGRAPHY.
IMPORTANT: NO TEXT, NO WORDS, NO TYPOGRAPHY, NO WATERMARKS, NO LOGOS, NO SIGNATURES.
Focus entirely on the visual scenery, objects, or people.
"""


# =============================================================================
# Stock providers
# =============================================================================
class StockProvider:
    """One stock-photo API in the search chain."""

    name = "provider"

    def __init__(self, api_key: str | None):
        self.api_key = api_key

    def search(self, query: str, page: int, needed: int, session: requests.Session) -> list[ImageResult]:
        if not self.api_key:
            logger.info("%s: no API key configured — skipped", self.name)
            return []
        return self._search(query, page, needed, session)

    def _search(self, query: str, page: int, needed: int, session: requests.Session) -> list[ImageResult]:
        raise NotImplementedError

    def _get_json(self, session: requests.Session, url: str, params: dict) -> dict | None:
        resp = session.get(url, params=params, headers={"User-Agent": USER_AGENT}, timeout=HTTP_TIMEOUT)
        if not resp.ok:
            logger.warning("%s API limit or error: HTTP %s", self.name, resp.status_code)
            return None
        return resp.json()


class UnsplashProvider(StockProvider):
    name = "Unsplash"

    def _search(self, query, page, needed, session):
        data = self._get_json(session, UNSPLASH_SEARCH_URL, {
            "query": query,
            "per_page": UNSPLASH_PER_PAGE,
            "page": page,
            "orientation": "landscape",
            "client_id": self.api_key,
        })
        if data is None:
            return []
        return [
            ImageResult(id=f"unsplash-{img['id']}", url=img["urls"]["regular"], source=ImageSource.STOCK_LIBRARY)
            for img in data.get("results", [])
        ][:needed]


class PixabayProvider(StockProvider):
    name = "Pixabay"

    def _search(self, query, page, needed, session):
        data = self._get_json(session, PIXABAY_SEARCH_URL, {
            "key": self.api_key,
            "q": query,
            "image_type": "photo",
            "page": page,
            "per_page": max(PIXABAY_MIN_PER_PAGE, needed + 1),
        })
        if data is None:
            return []
        return [
            ImageResult(id=f"pixabay-{img['id']}", url=img["largeImageURL"], source=ImageSource.STOCK_LIBRARY)
            for img in data.get("hits", [])[:needed]
        ]


def default_providers() -> list[StockProvider]:
    """The provider chain in priority order."""
    return [UnsplashProvider(unsplash_access_key()), PixabayProvider(pixabay_api_key())]


def placeholder_images(
    keyword: str,
    source: ImageSource,
    page: int = 1,
    clock: Callable[[], float] = time.time,
) -> list[ImageResult]:
    """Keyless LoremFlickr pictures; the lock seed shifts with *page*."""
    seed_base = int(clock() * 1000)
    results = []
    for i in range(PLACEHOLDER_COUNT):
        lock = seed_base + i + page * PLACEHOLDER_PAGE_STRIDE
        url = PLACEHOLDER_URL_TEMPLATE.format(keyword=quote(keyword, safe=""), lock=lock)
        results.append(ImageResult(id=f"backup-{i}-{lock}", url=url, source=source))
    return results


def search_stock_images(
    terms: list[str],
    source: ImageSource = ImageSource.STOCK_LIBRARY,
    page: int = 1,
    providers: list[StockProvider] | None = None,
    session: requests.Session | None = None,
    clock: Callable[[], float] = time.time,
) -> list[ImageResult]:
    """
    Search stock libraries for *terms*.

    Providers are tried in order while fewer than STOCK_TARGET_RESULTS have
    been collected.  Placeholders are used only when no provider found
    anything.  An empty term list returns an empty list without any request.
    """
    terms = [t.strip() for t in terms if t and t.strip()]
    if not terms:
        return []
    query = " ".join(terms[:STOCK_QUERY_TERMS])
    if providers is None:
        providers = default_providers()
    session = session or requests.Session()

    results: list[ImageResult] = []
    for provider in providers:
        needed = STOCK_TARGET_RESULTS - len(results)
        if needed <= 0:
            break
        try:
            found = provider.search(query, page, needed, session)
        except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
            logger.error("%s error: %s", provider.name, exc)
            continue
        logger.debug("%s returned %d result(s) for %r (page %d)", provider.name, len(found), query, page)
        results.extend(found[:needed])

    if not results:
        logger.info("No stock results for %r — using placeholders", query)
        results = placeholder_images(terms[0], source, page, clock)

    return results


# =============================================================================
# AI generation
# =============================================================================
def _inline_images(response) -> list[tuple[str, bytes]]:
    """(mime type, data) for each inline image part of a response."""
    images = []
    for candidate in (response.candidates or [])[:1]:
        if candidate.content is None:
            continue
        for part in candidate.content.parts or []:
            if part.inline_data and part.inline_data.data:
                images.append((part.inline_data.mime_type or "image/png", part.inline_data.data))
    return images


def generate_ai_images(
    terms: list[str],
    client: genai.Client | None = None,
    clock: Callable[[], float] = time.time,
    fallback: Callable[[list[str], ImageSource], list[ImageResult]] = search_stock_images,
) -> list[ImageResult]:
    """Generate up to AI_IMAGE_COUNT images; falls back to stock search on failure."""
    if not terms:
        return []

    prompt = AI_PROMPT_TEMPLATE.format(subjects=", ".join(terms))
    config = types.GenerateContentConfig(response_modalities=[types.Modality.TEXT, types.Modality.IMAGE])

    try:
        if client is None:
            client = make_client()
        with ThreadPoolExecutor(max_workers=AI_IMAGE_COUNT) as executor:
            futures = [
                executor.submit(client.models.generate_content, model=IMAGE_MODEL, contents=prompt, config=config)
                for _ in range(AI_IMAGE_COUNT)
            ]
            responses = [f.result() for f in futures]
    except ConfigurationError as exc:
        logger.warning("AI image generation unavailable (%s) — using stock search", exc)
        return fallback(terms, ImageSource.AI_GENERATION)
    except Exception as exc:
        logger.error("AI image generation failed: %s — using stock search", exc)
        return fallback(terms, ImageSource.AI_GENERATION)

    stamp = int(clock() * 1000)
    results = []
    for idx, response in enumerate(responses):
        for mime_type, data in _inline_images(response):
            results.append(ImageResult(
                id=f"ai-{stamp}-{idx}-{len(results)}",
                url=to_data_uri(data, mime_type),
                source=ImageSource.AI_GENERATION,
            ))
    logger.info("Generated %d AI image(s)", min(len(results), AI_IMAGE_COUNT))
    return results[:AI_IMAGE_COUNT]


def fetch_images(source: ImageSource, terms: list[str], page: int = 1) -> list[ImageResult]:
    """Candidate images for *terms* from the chosen source."""
    if source is ImageSource.AI_GENERATION:
        return generate_ai_images(terms)
    return search_stock_images(terms, ImageSource.STOCK_LIBRARY, page)
