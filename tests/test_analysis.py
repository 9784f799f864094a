"""Tests for Gemini text analysis parsing and error handling."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from cover_studio.analysis import AnalysisError, generate_content_analysis, parse_analysis
from cover_studio.models import Platform


def _payload(titles=4, keywords=12, terms=6, reason="简短理由"):
    return {
        "titles": [{"text": f"标题{i}", "reason": reason} for i in range(titles)],
        "keywords": [{"cn": f"关键词{i}", "en": f"keyword {i}"} for i in range(keywords)],
        "imageSearchTerms": [f"term {i}" for i in range(terms)],
    }


def _client(text):
    client = MagicMock()
    client.models.generate_content.return_value = SimpleNamespace(text=text)
    return client


class TestParseAnalysis:
    def test_trims_to_exact_counts(self):
        result = parse_analysis(json.dumps(_payload()))
        assert len(result.titles) == 3
        assert len(result.keywords) == 10
        assert len(result.image_search_terms) == 5
        assert result.keywords[0].cn == "关键词0"
        assert result.keywords[0].en == "keyword 0"
        assert result.image_search_terms[-1] == "term 4"

    def test_long_reason_is_truncated(self):
        result = parse_analysis(json.dumps(_payload(reason="很" * 100)))
        assert all(len(t.reason) == 60 for t in result.titles)

    @pytest.mark.parametrize("counts", [
        {"titles": 2},
        {"keywords": 9},
        {"terms": 4},
    ])
    def test_too_few_entries(self, counts):
        with pytest.raises(AnalysisError):
            parse_analysis(json.dumps(_payload(**counts)))

    def test_malformed_json(self):
        with pytest.raises(AnalysisError):
            parse_analysis("{not json")

    def test_missing_field(self):
        data = _payload()
        del data["titles"][0]["reason"]
        with pytest.raises(AnalysisError):
            parse_analysis(json.dumps(data))


class TestGenerateContentAnalysis:
    def test_success(self):
        client = _client(json.dumps(_payload()))
        result = generate_content_analysis("今天聊聊咖啡", Platform.ZHIHU, client=client)

        assert [t.text for t in result.titles] == ["标题0", "标题1", "标题2"]
        kwargs = client.models.generate_content.call_args.kwargs
        assert "今天聊聊咖啡" in kwargs["contents"]
        assert "知乎" in kwargs["contents"]
        assert kwargs["config"].response_mime_type == "application/json"

    def test_empty_text_is_rejected_without_request(self):
        client = _client("{}")
        with pytest.raises(AnalysisError):
            generate_content_analysis("   ", Platform.BILIBILI, client=client)
        client.models.generate_content.assert_not_called()

    def test_service_error(self):
        client = MagicMock()
        client.models.generate_content.side_effect = RuntimeError("503")
        with pytest.raises(AnalysisError, match="Analysis failed"):
            generate_content_analysis("text", Platform.XIAOHONGSHU, client=client)

    def test_empty_response(self):
        with pytest.raises(AnalysisError):
            generate_content_analysis("text", Platform.XIAOHONGSHU, client=_client(""))

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)
        with pytest.raises(AnalysisError, match="API Key is missing"):
            generate_content_analysis("text", Platform.XIAOHONGSHU)
