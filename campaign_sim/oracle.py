"""
Response oracles: the per-trial decision source the simulation consumes.

An oracle is anything with ``respond(demographic, variant, count)`` that
returns exactly ``count`` responses or raises ``OracleError``.
"""
from __future__ import annotations

import json
import re
import threading
from typing import List, Mapping, Optional, Protocol, Sequence

import numpy as np

from campaign_sim.errors import OracleError
from campaign_sim.models import Demographic, OracleResponse, Outcome, ProductVariant

OUTCOMES = (Outcome.IGNORE, Outcome.FOLLOW_LINK, Outcome.FOLLOW_AND_BUY, Outcome.FOLLOW_AND_SAVE)

DEFAULT_PROBABILITIES = {
    Outcome.IGNORE.value: 0.70,
    Outcome.FOLLOW_LINK.value: 0.15,
    Outcome.FOLLOW_AND_BUY.value: 0.05,
    Outcome.FOLLOW_AND_SAVE.value: 0.10,
}


class ResponseOracle(Protocol):
    def respond(self, demographic: Demographic, variant: ProductVariant, count: int) -> Sequence[OracleResponse]:
        ...


def _normalise(probs: Mapping[str, float]) -> np.ndarray:
    p = np.array([float(probs.get(o.value, 0.0)) for o in OUTCOMES])
    p = np.clip(p, 0.0, None)
    if p.sum() <= 0:
        raise ValueError(f"Outcome probabilities must have a positive sum, got {dict(probs)}")
    return p / p.sum()


class SyntheticOracle:
    """Draws outcomes from fixed per-variant probabilities (seedable)."""

    def __init__(
        self,
        probabilities: Optional[Mapping[str, float]] = None,
        variant_probabilities: Optional[Mapping[str, Mapping[str, float]]] = None,
        seed: Optional[int] = None,
    ) -> None:
        self._default = _normalise(probabilities or DEFAULT_PROBABILITIES)
        self._by_variant = {k: _normalise(v) for k, v in (variant_probabilities or {}).items()}
        self._rng = np.random.default_rng(seed)
        # Generator is not thread-safe; sub-batches may run concurrently
        self._lock = threading.Lock()

    def respond(self, demographic: Demographic, variant: ProductVariant, count: int) -> List[OracleResponse]:
        p = self._by_variant.get(variant.id, self._default)
        with self._lock:
            idx = self._rng.choice(len(OUTCOMES), size=count, p=p)
        return [OracleResponse(choice=OUTCOMES[i]) for i in idx]


PERSONA_PROMPT = """You will act as a specific demographic persona and evaluate your reaction to an advertisement.

Your demographic persona is:
- Age: {age}
- Gender: {gender}
- Interests: {interests}
- Socioeconomic profile: {category}
- Persona description: {description}

You are browsing online and see an advertisement for the following product:

Product: {product}
Tagline: "{tagline}"

How would you most likely respond? Choose exactly one of:
1. "ignore" - scroll past the advertisement
2. "followLink" - click to learn more without buying now
3. "followAndBuy" - click and likely make a purchase
4. "followAndSave" - click and save it for a later purchase

Reply with JSON only, with two fields:
- "choice": one of the four options above, exactly as written
- "text": one or two first-person sentences explaining the choice"""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_response(raw: str) -> OracleResponse:
    match = _JSON_OBJECT.search(raw or "")
    if not match:
        raise OracleError(f"No JSON object in oracle reply: {raw!r}")
    try:
        payload = json.loads(match.group(0))
        choice = Outcome(payload["choice"])
    except (json.JSONDecodeError, KeyError, ValueError, TypeError) as exc:
        raise OracleError(f"Unparseable oracle reply: {raw!r}") from exc
    return OracleResponse(choice=choice, text=str(payload.get("text", "")))


class AnthropicOracle:
    """Asks an Anthropic model to role-play the demographic, one trial per call."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-haiku-latest",
        max_tokens: int = 150,
        temperature: float = 0.7,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        if self._client is None:
            import anthropic

            kwargs = {"api_key": self.api_key}
            if self.timeout is not None:
                kwargs["timeout"] = self.timeout
            self._client = anthropic.Anthropic(**kwargs)
        return self._client

    def prompt(self, demographic: Demographic, variant: ProductVariant) -> str:
        return PERSONA_PROMPT.format(
            age=demographic.age,
            gender=demographic.gender,
            interests=", ".join(demographic.interests),
            category=demographic.category,
            description=demographic.description,
            product=variant.description,
            tagline=variant.tagline,
        )

    def _ask(self, content: str) -> str:
        client = self._get_client()
        try:
            resp = client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system="You will adopt a specific demographic persona and evaluate an advertisement.",
                messages=[{"role": "user", "content": content}],
            )
        except Exception as exc:
            raise OracleError(f"Anthropic request failed: {exc}") from exc
        for block in resp.content or []:
            if getattr(block, "type", None) == "text":
                return block.text
        raise OracleError("No text content in Anthropic response")

    def respond(self, demographic: Demographic, variant: ProductVariant, count: int) -> List[OracleResponse]:
        content = self.prompt(demographic, variant)
        return [parse_response(self._ask(content)) for _ in range(count)]
