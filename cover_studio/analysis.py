"""
Text analysis via Gemini.

Sends the user's draft and target platform to the text model with a JSON
response schema and turns the reply into an ``AnalysisResult`` holding
exactly three titles, ten keyword pairs and five image-search terms.  Any
failure surfaces as a single ``AnalysisError`` whose message can be shown
to the user as-is.
"""

import json
import logging

from google import genai
from google.genai import types

from cover_studio.config import (
    ANALYSIS_TEMPERATURE, KEYWORD_COUNT, REASON_MAX_CHARS, SEARCH_TERM_COUNT,
    TEXT_MODEL, TITLE_COUNT, ConfigurationError, gemini_api_key,
)
from cover_studio.models import AnalysisResult, KeywordItem, Platform, TitleOption

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = "你是一位专业的中文文案策划和编辑。请分析文本并返回JSON格式结果。推荐理由必须精简（60字以内）。"

ANALYSIS_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "titles": types.Schema(
            type=types.Type.ARRAY,
            description=f"{TITLE_COUNT} unique, high-quality titles",
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "text": types.Schema(type=types.Type.STRING, description="The generated title"),
                    "reason": types.Schema(
                        type=types.Type.STRING,
                        description=f"Brief rationale (MAX {REASON_MAX_CHARS} CHARACTERS)",
                    ),
                },
                required=["text", "reason"],
            ),
        ),
        "keywords": types.Schema(
            type=types.Type.ARRAY,
            description=f"{KEYWORD_COUNT} relevant keyword pairs (Chinese and English)",
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "cn": types.Schema(type=types.Type.STRING, description="Chinese keyword for platform tags"),
                    "en": types.Schema(
                        type=types.Type.STRING,
                        description="English translation of the keyword for image search",
                    ),
                },
                required=["cn", "en"],
            ),
        ),
        "imageSearchTerms": types.Schema(
            type=types.Type.ARRAY,
            description=f"{SEARCH_TERM_COUNT} relevant English keywords to use for searching stock images",
            items=types.Schema(type=types.Type.STRING),
        ),
    },
    required=["titles", "keywords", "imageSearchTerms"],
)


class AnalysisError(RuntimeError):
    """Text analysis failed; the message is suitable for the user."""


def make_client() -> genai.Client:
    """Create a Gemini client from the configured API key."""
    return genai.Client(api_key=gemini_api_key())


def build_prompt(text: str, platform: Platform) -> str:
    return f"""
Analyze the following text content for the platform: {platform.value}.

Content:
"{text}"

Task:
1. Generate {TITLE_COUNT} unique, high-quality Chinese titles suitable for {platform.value}.
   IMPORTANT: The 'reason' for each title must be extremely concise, STRICTLY UNDER {REASON_MAX_CHARS} CHINESE CHARACTERS.
2. Extract {KEYWORD_COUNT} most relevant keywords. Return them as objects with both Chinese ('cn') for tags and English ('en') for image search.
3. Provide {SEARCH_TERM_COUNT} relevant English keywords that describe the visual imagery suitable for this content.
"""


def parse_analysis(raw: str) -> AnalysisResult:
    """
    Parse and normalise the model's JSON reply.

    Extra entries are dropped and reasons are cut to REASON_MAX_CHARS;
    too few entries of any kind is an error.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise AnalysisError("The model returned malformed JSON.") from exc
    if not isinstance(data, dict):
        raise AnalysisError("The model returned an unexpected response.")

    try:
        titles = [
            TitleOption(text=str(t["text"]).strip(), reason=str(t["reason"]).strip()[:REASON_MAX_CHARS])
            for t in data.get("titles", [])
        ]
        keywords = [
            KeywordItem(cn=str(k["cn"]).strip(), en=str(k["en"]).strip())
            for k in data.get("keywords", [])
        ]
        terms = [str(t).strip() for t in data.get("imageSearchTerms", []) if str(t).strip()]
    except (KeyError, TypeError) as exc:
        raise AnalysisError(f"The model response is missing a field: {exc}") from exc

    for name, items, needed in (
        ("titles", titles, TITLE_COUNT),
        ("keywords", keywords, KEYWORD_COUNT),
        ("search terms", terms, SEARCH_TERM_COUNT),
    ):
        if len(items) < needed:
            raise AnalysisError(f"Expected {needed} {name}, got {len(items)}. Please try again.")

    return AnalysisResult(
        titles=titles[:TITLE_COUNT],
        keywords=keywords[:KEYWORD_COUNT],
        image_search_terms=terms[:SEARCH_TERM_COUNT],
    )


def generate_content_analysis(
    text: str,
    platform: Platform,
    client: genai.Client | None = None,
) -> AnalysisResult:
    """Analyse *text* for *platform*; raises AnalysisError on any failure."""
    if not text.strip():
        raise AnalysisError("Please enter some text to analyse.")

    if client is None:
        try:
            client = make_client()
        except ConfigurationError as exc:
            raise AnalysisError(str(exc)) from exc

    config = types.GenerateContentConfig(
        system_instruction=SYSTEM_INSTRUCTION,
        response_mime_type="application/json",
        response_schema=ANALYSIS_SCHEMA,
        temperature=ANALYSIS_TEMPERATURE,
    )

    try:
        response = client.models.generate_content(
            model=TEXT_MODEL, contents=build_prompt(text, platform), config=config,
        )
    except Exception as exc:
        logger.error("Gemini analysis failed: %s", exc)
        raise AnalysisError("Analysis failed, please try again.") from exc

    if not response.text:
        raise AnalysisError("No response received from Gemini.")

    result = parse_analysis(response.text)
    logger.info(
        "Analysis for %s: %d titles, %d keywords, %d search terms",
        platform.value, len(result.titles), len(result.keywords), len(result.image_search_terms),
    )
    return result
