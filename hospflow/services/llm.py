import json
import logging
import re
from typing import TypeVar

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from hospflow.config import (
    ANTHROPIC_API_KEY,
    LLM_DEFAULT_TIER,
    LLM_MODEL_FAST,
    LLM_MODEL_HIGH,
    LLM_MODEL_STANDARD,
    LLM_PROVIDER,
    OPENAI_API_KEY,
)
from hospflow.errors import CollaboratorUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


_ANTHROPIC_DEFAULTS = {
    "fast": "claude-3-haiku-20240307",
    "standard": "claude-3-5-sonnet-20240620",
    "high": "claude-3-5-sonnet-20240620",
}

_OPENAI_DEFAULTS = {
    "fast": "gpt-4o-mini",
    "standard": "gpt-4o",
    "high": "gpt-4o",
}


def _strip_json(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```$", "", text)
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return text
    start = min(starts)
    end = text.rfind("}" if text[start] == "{" else "]")
    if end > start:
        return text[start:end + 1]
    return text


def _parse_score(value: object) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    match = re.search(r"(\d+(?:\.\d+)?)", str(value))
    return float(match.group(1)) if match else 0.0


def _coerce_scores(data: object) -> dict:
    if isinstance(data, dict):
        items = data.get("scores") or data.get("patients") or []
    elif isinstance(data, list):
        items = data
    else:
        items = []

    scores = []
    for item in items:
        if not isinstance(item, dict) or item.get("id") in (None, ""):
            continue
        scores.append({
            "id": str(item["id"]),
            "score": _parse_score(item.get("score", item.get("priorityScore", 0))),
            "rationale": str(item.get("rationale") or item.get("clinicalInsight") or "").strip(),
        })
    return {"scores": scores}


def _coerce_unit_summary(data: object) -> dict:
    if not isinstance(data, dict):
        return {"summary": "", "improvements": []}
    improvements = data.get("improvements")
    return {
        "summary": str(data.get("summary") or ""),
        "improvements": [str(i) for i in improvements] if isinstance(improvements, list) else [],
    }


def _coerce_payload(data: object, response_model: type[T]) -> object:
    name = response_model.__name__
    if name == "AdvisoryScores":
        return _coerce_scores(data)
    if name == "UnitSummaryPayload":
        return _coerce_unit_summary(data)
    return data


class LLMClient:
    def __init__(self) -> None:
        provider = (LLM_PROVIDER or "auto").lower()
        if provider == "auto":
            if ANTHROPIC_API_KEY:
                provider = "anthropic"
            elif OPENAI_API_KEY:
                provider = "openai"
            else:
                provider = "none"
        self.provider = provider

        self._anthropic = AsyncAnthropic(api_key=ANTHROPIC_API_KEY) if ANTHROPIC_API_KEY else None
        self._openai = AsyncOpenAI(api_key=OPENAI_API_KEY) if OPENAI_API_KEY else None

    def available(self) -> bool:
        if self.provider == "anthropic":
            return self._anthropic is not None
        if self.provider == "openai":
            return self._openai is not None
        return False

    def model_for_tier(self, tier: str | None) -> str:
        tier = (tier or LLM_DEFAULT_TIER or "fast").lower()
        if tier not in ("fast", "standard", "high"):
            tier = "standard"

        if tier == "fast" and LLM_MODEL_FAST:
            return LLM_MODEL_FAST
        if tier == "standard" and LLM_MODEL_STANDARD:
            return LLM_MODEL_STANDARD
        if tier == "high" and LLM_MODEL_HIGH:
            return LLM_MODEL_HIGH

        if self.provider == "anthropic":
            return _ANTHROPIC_DEFAULTS[tier]
        return _OPENAI_DEFAULTS[tier]

    async def _complete(self, *, system: str, user: str, max_tokens: int, tier: str | None) -> str:
        model = self.model_for_tier(tier)
        if self.provider == "anthropic":
            message = await self._anthropic.messages.create(
                model=model,
                max_tokens=max_tokens,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
            raw = ""
            for block in message.content:
                if hasattr(block, "text"):
                    raw += block.text
            return raw

        response = await self._openai.chat.completions.create(
            model=model,
            max_tokens=max_tokens,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )
        return response.choices[0].message.content or ""

    async def generate_text(
        self,
        *,
        system: str,
        user: str,
        max_tokens: int = 1500,
        tier: str | None = None,
    ) -> str:
        if not self.available():
            raise CollaboratorUnavailable("Advisory provider not configured")
        try:
            text = await self._complete(system=system, user=user, max_tokens=max_tokens, tier=tier)
        except Exception as exc:
            raise CollaboratorUnavailable(f"Advisory provider call failed: {exc}") from exc
        text = text.strip()
        if not text:
            raise CollaboratorUnavailable("Advisory provider returned no text")
        return text

    async def generate_json(
        self,
        *,
        system: str,
        user: str,
        response_model: type[T],
        max_tokens: int = 2048,
        tier: str | None = None,
    ) -> T:
        if not self.available():
            raise CollaboratorUnavailable("Advisory provider not configured")

        try:
            if self.provider == "openai":
                response = await self._openai.beta.chat.completions.parse(
                    model=self.model_for_tier(tier),
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                    response_format=response_model,
                )
                parsed = response.choices[0].message.parsed
                if parsed is None:
                    raise CollaboratorUnavailable("Advisory parse returned no data")
                return parsed

            raw = await self._complete(system=system, user=user, max_tokens=max_tokens, tier=tier)
        except CollaboratorUnavailable:
            raise
        except Exception as exc:
            raise CollaboratorUnavailable(f"Advisory provider call failed: {exc}") from exc

        raw = _strip_json(raw)
        try:
            return response_model.model_validate_json(raw)
        except ValidationError:
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise CollaboratorUnavailable("Advisory provider returned malformed JSON") from exc
            coerced = _coerce_payload(payload, response_model)
            try:
                return response_model.model_validate(coerced)
            except ValidationError as exc:
                raise CollaboratorUnavailable("Advisory response did not match the expected shape") from exc


_client: LLMClient | None = None


def get_llm_client() -> LLMClient:
    global _client
    if _client is None:
        _client = LLMClient()
    return _client
