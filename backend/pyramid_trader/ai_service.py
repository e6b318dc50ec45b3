"""
AI Decision Source

The ledger never calls an LLM; the pair processor asks a DecisionProvider
for a BUY/HOLD verdict with a confidence (0-100) and reasoning lines.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from pydantic import ValidationError

from pyramid_trader.schemas import AIDecision, IndicatorSnapshot

logger = logging.getLogger(__name__)


class DecisionProvider(ABC):
    @abstractmethod
    async def get_decision(self, pair: str, indicators: IndicatorSnapshot) -> AIDecision:
        """Return the AI verdict for entering (or adding to) `pair`."""
        pass


def parse_decision_response(response_text: str) -> AIDecision:
    """
    Parse a raw model response into an AIDecision.

    Accepts JSON optionally wrapped in a markdown code block. Anything that
    cannot be parsed becomes HOLD with confidence 0.
    """
    text = response_text.strip()

    # Remove markdown code blocks if present
    if text.startswith("```"):
        text = text.split("```")[1]
        if text.startswith("json"):
            text = text[4:]
        text = text.strip()

    try:
        analysis: Dict[str, Any] = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse AI response as JSON: {e}")
        return AIDecision(decision="HOLD", confidence=0, reasoning=["Failed to parse AI response"])

    if not isinstance(analysis, dict):
        logger.error(f"AI response is not a JSON object: {type(analysis).__name__}")
        return AIDecision(decision="HOLD", confidence=0, reasoning=["Invalid AI response"])

    reasoning = analysis.get("reasoning", [])
    if isinstance(reasoning, str):
        reasoning = [reasoning]

    try:
        return AIDecision(
            decision=str(analysis.get("decision", "HOLD")).upper(),
            confidence=min(100.0, max(0.0, float(analysis.get("confidence", 0)))),
            reasoning=[str(r) for r in reasoning],
        )
    except (ValidationError, TypeError, ValueError) as e:
        logger.error(f"AI response has unexpected shape: {e}")
        return AIDecision(decision="HOLD", confidence=0, reasoning=["Invalid AI response"])
