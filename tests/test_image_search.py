"""Tests for the stock-search provider chain and AI image generation."""

from types import SimpleNamespace
from unittest.mock import MagicMock, Mock

import pytest
import requests

from cover_studio import image_search
from cover_studio.config import ConfigurationError
from cover_studio.image_search import (
    PixabayProvider, StockProvider, UnsplashProvider, fetch_images, generate_ai_images,
    placeholder_images, search_stock_images,
)
from cover_studio.models import ImageResult, ImageSource

FIXED_CLOCK = 1700000000.0


class FakeProvider(StockProvider):
    """Returns ``count`` canned results and records what it was asked for."""

    def __init__(self, name, count, error=None):
        super().__init__(api_key="test-key")
        self.name = name
        self.count = count
        self.error = error
        self.calls = []

    def _search(self, query, page, needed, session):
        self.calls.append({"query": query, "page": page, "needed": needed})
        if self.error is not None:
            raise self.error
        return [
            ImageResult(id=f"{self.name}-{i}", url=f"https://img.example/{self.name}/{i}.jpg",
                        source=ImageSource.STOCK_LIBRARY)
            for i in range(min(self.count, needed))
        ]


def _search(terms, providers, **kwargs):
    return search_stock_images(terms, providers=providers, session=Mock(), clock=lambda: FIXED_CLOCK, **kwargs)


class TestProviderChain:
    def test_second_provider_only_fills_the_gap(self):
        unsplash, pixabay = FakeProvider("unsplash", 4), FakeProvider("pixabay", 10)
        results = _search(["coffee", "morning", "desk"], [unsplash, pixabay])

        assert len(results) == 5
        assert [r.id for r in results[-1:]] == ["pixabay-0"]
        assert unsplash.calls == [{"query": "coffee morning", "page": 1, "needed": 5}]
        assert pixabay.calls[0]["needed"] == 1

    def test_second_provider_skipped_when_first_is_enough(self):
        unsplash, pixabay = FakeProvider("unsplash", 5), FakeProvider("pixabay", 10)
        results = _search(["coffee"], [unsplash, pixabay])
        assert len(results) == 5
        assert pixabay.calls == []

    def test_partial_results_are_not_topped_up(self):
        results = _search(["coffee"], [FakeProvider("unsplash", 1), FakeProvider("pixabay", 1)])
        assert [r.id for r in results] == ["unsplash-0", "pixabay-0"]

    def test_placeholders_when_nothing_found(self):
        results = _search(["city night", "neon"], [FakeProvider("unsplash", 0), FakeProvider("pixabay", 0)])

        assert len(results) == 4
        assert all(r.url for r in results)
        assert all("city%20night" in r.url for r in results)
        assert all(r.source is ImageSource.STOCK_LIBRARY for r in results)
        assert results[0].url.endswith(f"lock={1700000000000 + 10}")

    def test_provider_error_moves_on(self):
        broken = FakeProvider("unsplash", 4, error=requests.ConnectionError("down"))
        pixabay = FakeProvider("pixabay", 10)
        results = _search(["coffee"], [broken, pixabay])
        assert len(results) == 5
        assert pixabay.calls[0]["needed"] == 5

    def test_empty_terms_return_nothing(self):
        provider = FakeProvider("unsplash", 4)
        assert _search([], [provider]) == []
        assert _search(["", "   "], [provider]) == []
        assert provider.calls == []

    def test_page_is_forwarded(self):
        provider = FakeProvider("unsplash", 5)
        _search(["coffee"], [provider], page=3)
        assert provider.calls[0]["page"] == 3


class TestPlaceholders:
    def test_refresh_changes_seeds(self):
        first = placeholder_images("sea", ImageSource.AI_GENERATION, 1, clock=lambda: FIXED_CLOCK)
        second = placeholder_images("sea", ImageSource.AI_GENERATION, 2, clock=lambda: FIXED_CLOCK)
        assert {r.url for r in first}.isdisjoint({r.url for r in second})
        assert all(r.source is ImageSource.AI_GENERATION for r in first)
        assert len({r.id for r in first}) == 4


def _response(ok=True, payload=None, status=200):
    return Mock(ok=ok, status_code=status, json=Mock(return_value=payload or {}))


class TestProviders:
    def test_unsplash_request_and_mapping(self):
        session = Mock()
        session.get.return_value = _response(payload={"results": [
            {"id": "a", "urls": {"regular": "https://u/a.jpg"}},
            {"id": "b", "urls": {"regular": "https://u/b.jpg"}},
            {"id": "c", "urls": {"regular": "https://u/c.jpg"}},
        ]})

        results = UnsplashProvider("key").search("coffee morning", 2, 2, session)

        assert [(r.id, r.url) for r in results] == [("unsplash-a", "https://u/a.jpg"), ("unsplash-b", "https://u/b.jpg")]
        params = session.get.call_args.kwargs["params"]
        assert params["per_page"] == 4
        assert params["page"] == 2
        assert params["orientation"] == "landscape"
        assert params["client_id"] == "key"

    def test_pixabay_per_page(self):
        session = Mock()
        session.get.return_value = _response(payload={"hits": [
            {"id": 1, "largeImageURL": "https://p/1.jpg"},
            {"id": 2, "largeImageURL": "https://p/2.jpg"},
            {"id": 3, "largeImageURL": "https://p/3.jpg"},
        ]})

        results = PixabayProvider("key").search("coffee", 1, 1, session)

        assert [r.id for r in results] == ["pixabay-1"]
        assert session.get.call_args.kwargs["params"]["per_page"] == 3

    def test_http_error_yields_nothing(self):
        session = Mock()
        session.get.return_value = _response(ok=False, status=429)
        assert UnsplashProvider("key").search("coffee", 1, 5, session) == []

    def test_missing_key_skips_request(self):
        session = Mock()
        assert PixabayProvider(None).search("coffee", 1, 5, session) == []
        session.get.assert_not_called()


def _image_response(data=b"\x89PNG-data", mime="image/png"):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime))
    text_part = SimpleNamespace(inline_data=None)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[text_part, part]))])


class TestAIGeneration:
    def test_three_concurrent_requests(self):
        client = MagicMock()
        client.models.generate_content.return_value = _image_response()

        results = generate_ai_images(["sunset", "beach"], client=client, clock=lambda: FIXED_CLOCK)

        assert client.models.generate_content.call_count == 3
        assert len(results) == 3
        assert all(r.url.startswith("data:image/png;base64,") for r in results)
        assert all(r.source is ImageSource.AI_GENERATION for r in results)
        assert len({r.id for r in results}) == 3
        prompt = client.models.generate_content.call_args.kwargs["contents"]
        assert "sunset, beach" in prompt

    def test_failure_falls_back_to_stock(self):
        client = MagicMock()
        client.models.generate_content.side_effect = RuntimeError("quota")
        fallback = Mock(return_value=["stock"])

        results = generate_ai_images(["sunset"], client=client, fallback=fallback)

        assert results == ["stock"]
        fallback.assert_called_once_with(["sunset"], ImageSource.AI_GENERATION)

    def test_missing_key_falls_back(self, monkeypatch):
        def no_key():
            raise ConfigurationError("API Key is missing.")

        monkeypatch.setattr(image_search, "make_client", no_key)
        fallback = Mock(return_value=[])
        generate_ai_images(["sunset"], fallback=fallback)
        fallback.assert_called_once_with(["sunset"], ImageSource.AI_GENERATION)

    def test_empty_terms(self):
        client = MagicMock()
        assert generate_ai_images([], client=client) == []
        client.models.generate_content.assert_not_called()


class TestFetchImages:
    @pytest.mark.parametrize("source", [ImageSource.STOCK_LIBRARY, ImageSource.GOOGLE_SEARCH])
    def test_non_ai_sources_use_stock_search(self, monkeypatch, source):
        stock = Mock(return_value=[])
        monkeypatch.setattr(image_search, "search_stock_images", stock)
        fetch_images(source, ["coffee"], page=2)
        stock.assert_called_once_with(["coffee"], ImageSource.STOCK_LIBRARY, 2)

    def test_ai_source_uses_generation(self, monkeypatch):
        generate = Mock(return_value=[])
        monkeypatch.setattr(image_search, "generate_ai_images", generate)
        fetch_images(ImageSource.AI_GENERATION, ["coffee"])
        generate.assert_called_once_with(["coffee"])
