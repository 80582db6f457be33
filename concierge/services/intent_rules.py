"""
IntentClassifier - deterministic rule matcher for concierge intents.

Levels, strongest first:

1. explicit intent passed by the caller (quick links, inline buttons)
2. keyword triggers (exact phrases)
3. regex patterns
4. continuation of the previous intent for short follow-ups
5. loose keyword hints

Every level that fires for a rule produces a candidate; the best candidate by
(confidence, priority) wins. Rules and scores live in ``data/intent_rules.yaml``.
"""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Pattern, Tuple

import yaml
from langsmith import traceable

from ..config import get_settings
from ..intents import ORDER_INTENTS, ConciergeIntent, DetectionSource, parse_intent
from ..models import IntentContext, IntentDetection

logger = logging.getLogger(__name__)

RULES_PATH = Path(__file__).resolve().parents[1] / "data" / "intent_rules.yaml"

_NON_TEXT = re.compile(r"[^a-z0-9#$,'\-\s]")
_WHITESPACE = re.compile(r"\s+")
_PRICE_MAX = re.compile(r"\b(?:under|below|less than|max|up to)\s+\$?(\d[\d,]*)")
_ORDER_NUMBER = re.compile(r"(?:#\s*|\border\s+(?:number\s+)?#?)([a-z]{0,4}-?\d{4,})|\b([a-z]{2,4}-\d{4,})\b")


@dataclass
class IntentRule:
    intent: ConciergeIntent
    priority: int = 50
    triggers: List[str] = field(default_factory=list)
    patterns: List[Pattern[str]] = field(default_factory=list)
    hints: List[str] = field(default_factory=list)
    negative_triggers: List[str] = field(default_factory=list)


@dataclass
class RuleScores:
    keyword: float = 0.85
    keyword_bonus: float = 0.05
    keyword_max: float = 0.95
    pattern: float = 0.75
    refinement: float = 0.72
    hints_multiple: float = 0.6
    hint_single: float = 0.45
    continuation: float = 0.55


@dataclass
class RulesConfig:
    rules: List[IntentRule]
    scores: RuleScores
    continuation_max_tokens: int
    metals: Dict[str, List[str]]
    categories: Dict[str, List[str]]
    ready_to_ship: List[str]


@dataclass
class Candidate:
    intent: ConciergeIntent
    confidence: float
    priority: int
    source: DetectionSource
    reason: str


def normalize_text(text: str) -> str:
    lowered = (text or "").lower().replace("’", "'")
    return _WHITESPACE.sub(" ", _NON_TEXT.sub(" ", lowered)).strip()


def _contains_phrase(normalized: str, phrase: str) -> bool:
    return re.search(rf"(?<![\w-]){re.escape(phrase)}(?![\w-])", normalized) is not None


class IntentClassifier:
    """Config-driven classifier producing an intent, confidence and payload."""

    def __init__(self, rules_path: Path | None = None) -> None:
        self._rules_path = rules_path or RULES_PATH
        self._config = self._load_config(self._rules_path)
        self._rules = sorted(self._config.rules, key=lambda rule: rule.priority, reverse=True)
        logger.info("IntentClassifier initialized with %d rules from %s", len(self._rules), self._rules_path)

    @traceable(run_type="chain", name="concierge_detect_intent")
    def detect_intent(
        self,
        text: str,
        explicit_intent: ConciergeIntent | str | None = None,
        context: IntentContext | None = None,
    ) -> IntentDetection | None:
        """Classify ``text``; returns None when no rule fires at all."""

        context = context or IntentContext()
        normalized = normalize_text(text)

        explicit = parse_intent(explicit_intent)
        if explicit is not None:
            return IntentDetection(
                intent=explicit,
                confidence=1.0,
                payload=self._extract_payload(explicit, normalized, context, continuation=False),
                source="explicit",
                reason="explicit_intent",
            )

        if not normalized:
            return None

        candidates: List[Candidate] = []
        for rule in self._rules:
            candidate = self._match_rule(rule, normalized, context)
            if candidate is not None:
                candidates.append(candidate)

        if not candidates:
            logger.debug("No intent rule matched text=%s", normalized[:60])
            return None

        candidates.sort(key=lambda item: (item.confidence, item.priority), reverse=True)
        best = candidates[0]
        continuation = best.source == "context"
        detection = IntentDetection(
            intent=best.intent,
            confidence=best.confidence,
            payload=self._extract_payload(best.intent, normalized, context, continuation=continuation),
            source=best.source,
            reason=best.reason,
        )
        logger.debug(
            "Intent detected intent=%s confidence=%.2f source=%s reason=%s alternatives=%s",
            detection.intent.value,
            detection.confidence,
            detection.source,
            detection.reason,
            [(item.intent.value, item.confidence) for item in candidates[1:3]],
        )
        return detection

    def _match_rule(self, rule: IntentRule, normalized: str, context: IntentContext) -> Candidate | None:
        if any(_contains_phrase(normalized, negative) for negative in rule.negative_triggers):
            return None

        scores = self._config.scores
        matched_triggers = [trigger for trigger in rule.triggers if _contains_phrase(normalized, trigger)]
        if matched_triggers:
            confidence = scores.keyword
            if len(matched_triggers) >= 2:
                confidence = min(confidence + scores.keyword_bonus * (len(matched_triggers) - 1), scores.keyword_max)
            return Candidate(
                intent=rule.intent,
                confidence=round(confidence, 2),
                priority=rule.priority,
                source="keyword",
                reason=f"keyword:{matched_triggers[0]}",
            )

        for pattern in rule.patterns:
            if pattern.search(normalized):
                return Candidate(
                    intent=rule.intent,
                    confidence=scores.pattern,
                    priority=rule.priority,
                    source="pattern",
                    reason="pattern",
                )

        if context.last_intent == rule.intent and self._is_follow_up(normalized):
            refined = bool(self._extract_refinement(rule.intent, normalized))
            return Candidate(
                intent=rule.intent,
                confidence=scores.refinement if refined else scores.continuation,
                priority=rule.priority,
                source="context",
                reason="continuation_refinement" if refined else "continuation",
            )

        hint_hits = [hint for hint in rule.hints if _contains_phrase(normalized, hint)]
        if hint_hits:
            return Candidate(
                intent=rule.intent,
                confidence=scores.hints_multiple if len(hint_hits) >= 2 else scores.hint_single,
                priority=rule.priority,
                source="hint",
                reason=f"hint:{','.join(hint_hits[:3])}",
            )
        return None

    def _is_follow_up(self, normalized: str) -> bool:
        tokens = normalized.split()
        return 1 <= len(tokens) <= self._config.continuation_max_tokens

    def _extract_refinement(self, intent: ConciergeIntent, normalized: str) -> Dict[str, Any]:
        if intent == ConciergeIntent.FIND_PRODUCT:
            return self.extract_filters(normalized)
        if intent in ORDER_INTENTS:
            order_number = self.extract_order_number(normalized)
            return {"orderNumber": order_number} if order_number else {}
        return {}

    def _extract_payload(
        self,
        intent: ConciergeIntent,
        normalized: str,
        context: IntentContext,
        *,
        continuation: bool,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if intent == ConciergeIntent.FIND_PRODUCT:
            filters = self.extract_filters(normalized)
            if continuation and context.last_filters:
                filters = {**context.last_filters, **filters}
            if filters:
                payload["filters"] = filters
            if normalized:
                payload["query"] = normalized
        elif intent in ORDER_INTENTS:
            order_number = self.extract_order_number(normalized)
            if order_number:
                payload["orderNumber"] = order_number
        return payload

    def extract_filters(self, normalized: str) -> Dict[str, Any]:
        """Pull catalog filters (price ceiling, metal, category, ready to ship) from text."""

        filters: Dict[str, Any] = {}
        price_match = _PRICE_MAX.search(normalized)
        if price_match:
            filters["priceMax"] = int(price_match.group(1).replace(",", ""))
        for metal, keywords in self._config.metals.items():
            if any(_contains_phrase(normalized, keyword) for keyword in keywords):
                filters["metal"] = metal
                break
        for category, keywords in self._config.categories.items():
            if any(_contains_phrase(normalized, keyword) for keyword in keywords):
                filters["category"] = category
                break
        if any(_contains_phrase(normalized, phrase) for phrase in self._config.ready_to_ship):
            filters["readyToShip"] = True
        return filters

    @staticmethod
    def extract_order_number(normalized: str) -> Optional[str]:
        match = _ORDER_NUMBER.search(normalized)
        if not match:
            return None
        value = match.group(1) or match.group(2)
        return value.upper() if value else None

    @staticmethod
    def _load_config(rules_path: Path) -> RulesConfig:
        """Load and parse the YAML rules file."""
        if not rules_path.exists():
            raise FileNotFoundError(f"Intent rules not found at {rules_path}")

        with rules_path.open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}

        defaults = data.get("defaults") or {}
        scores_raw = data.get("scores") or {}
        scores = RuleScores(
            **{key: float(value) for key, value in scores_raw.items() if key in RuleScores.__dataclass_fields__}
        )

        rules: List[IntentRule] = []
        for intent_name, config in (data.get("intents") or {}).items():
            intent = parse_intent(intent_name)
            if intent is None:
                logger.warning("Unknown intent in rules config: %s", intent_name)
                continue
            config = config or {}
            rules.append(
                IntentRule(
                    intent=intent,
                    priority=int(config.get("priority", 50)),
                    triggers=[normalize_text(str(t)) for t in (config.get("triggers") or [])],
                    patterns=[re.compile(str(p)) for p in (config.get("patterns") or [])],
                    hints=[normalize_text(str(h)) for h in (config.get("hints") or [])],
                    negative_triggers=[normalize_text(str(t)) for t in (config.get("negative_triggers") or [])],
                )
            )

        entities = data.get("entities") or {}

        def _keyword_map(raw: Dict[str, Any] | None) -> Dict[str, List[str]]:
            return {
                str(name): [normalize_text(str(keyword)) for keyword in keywords or []]
                for name, keywords in (raw or {}).items()
            }

        return RulesConfig(
            rules=rules,
            scores=scores,
            continuation_max_tokens=int(defaults.get("continuation_max_tokens", 4)),
            metals=_keyword_map(entities.get("metals")),
            categories=_keyword_map(entities.get("categories")),
            ready_to_ship=[normalize_text(str(p)) for p in entities.get("ready_to_ship") or []],
        )


def classify_confidence(confidence: float, *, execute_threshold: float, human_threshold: float) -> Tuple[bool, bool]:
    """Return ``(should_execute, emphasize_human)`` for a detection confidence."""

    if confidence >= execute_threshold:
        return True, False
    return False, confidence < human_threshold


@functools.lru_cache(maxsize=1)
def get_intent_classifier() -> IntentClassifier:
    rules_path = get_settings().rules_path
    return IntentClassifier(Path(rules_path) if rules_path else None)


def detect_intent(
    text: str,
    explicit_intent: ConciergeIntent | str | None = None,
    context: IntentContext | None = None,
) -> IntentDetection | None:
    return get_intent_classifier().detect_intent(text, explicit_intent, context)
