"""
SPU candidate scoring: exact model-key matching and token-similarity fallback.

Exact:  same brand (or no input brand), not filtered, normalized model keys equal.
        score = version score + keyword bonus + model-detail bonus, clamped to 1.0
Fuzzy:  strict brand gate whenever the input brand was recognized.
        similarity = mean of the two directional token scores
        score = base + similarity * 0.6 + keyword bonus, clamped; dropped at similarity <= 0.5

Both return results sorted by score desc, priority desc, simplicity asc.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from catalog import EnhancedCatalogEntry
from dictionaries import (
    MODEL_CODE_PATTERN,
    PRIORITY_OTHER,
    MatcherConfig,
    ScoringConstants,
    default_config,
)
from extractor import ExtractedInfo
from strategy import MatchStrategy
from version_matcher import VersionMatcher

logger = logging.getLogger(__name__)

MATCH_TYPE_EXACT = 'exact'
MATCH_TYPE_FUZZY = 'fuzzy'

_MODEL_CODE = re.compile(MODEL_CODE_PATTERN)


@dataclass(frozen=True)
class MatchExplanation:
    match_type: str
    brand_match: Dict[str, Any]
    model_match: Dict[str, Any]
    version_match: Dict[str, Any]
    details: Tuple[str, ...] = ()

    def details_text(self) -> str:
        return '; '.join(self.details)


@dataclass(frozen=True)
class SPUMatchResult:
    entry: EnhancedCatalogEntry
    score: float
    explanation: MatchExplanation
    priority: int = PRIORITY_OTHER


def clamp(score: float) -> float:
    return max(0.0, min(1.0, score))


def sort_results(results: List[SPUMatchResult]) -> List[SPUMatchResult]:
    return sorted(results, key=lambda r: (-r.score, -r.priority, r.entry.simplicity))


# ---------------------------------------------------------------------------
# Shared bonuses and similarity
# ---------------------------------------------------------------------------

def keyword_tokens(text: str, strategy: MatchStrategy, scoring: ScoringConstants) -> List[str]:
    """Distinct input tokens long enough to count as keywords, in order."""
    return list(dict.fromkeys(
        t for t in strategy.tokenize(text) if len(t) >= scoring.KEYWORD_MIN_TOKEN_LENGTH
    ))


def keyword_bonus(input_text: str, candidate_name: str, strategy: MatchStrategy,
                  scoring: ScoringConstants) -> float:
    name = (candidate_name or '').lower()
    hits = sum(1 for token in keyword_tokens(input_text, strategy, scoring) if token in name)
    return min(hits * scoring.KEYWORD_BONUS_PER_TOKEN, scoring.KEYWORD_BONUS_CAP)


def model_detail_bonus(input_text: str, candidate_name: str, scoring: ScoringConstants,
                       special_editions: Sequence[str] = ()) -> float:
    """Shared model code (XXX-XX00) and shared special-edition words."""
    text = (input_text or '').lower()
    name = (candidate_name or '').lower()
    bonus = 0.0
    if set(_MODEL_CODE.findall(text)) & set(_MODEL_CODE.findall(name)):
        bonus += scoring.MODEL_CODE_BONUS
    for keyword in special_editions:
        if keyword in text and keyword in name:
            bonus += scoring.SPECIAL_EDITION_BONUS
    return min(bonus, scoring.MODEL_DETAIL_BONUS_CAP)


def token_score(a: str, b: str, scoring: ScoringConstants) -> float:
    if a == b:
        return 1.0
    if a in b or b in a:
        return min(len(a), len(b)) / max(len(a), len(b)) * scoring.PARTIAL_TOKEN_FACTOR
    return 0.0


def directional_score(source: Sequence[str], target: Sequence[str], scoring: ScoringConstants) -> float:
    """Mean over `source` of each token's best match in `target`; 0 for an empty side."""
    if not source or not target:
        return 0.0
    total = sum(max(token_score(a, b, scoring) for b in target) for a in source)
    return total / len(source)


def model_similarity(input_tokens: Sequence[str], candidate_tokens: Sequence[str],
                     scoring: ScoringConstants) -> float:
    forward = directional_score(input_tokens, candidate_tokens, scoring)
    backward = directional_score(candidate_tokens, input_tokens, scoring)
    return (forward + backward) / 2


# ---------------------------------------------------------------------------
# Matchers
# ---------------------------------------------------------------------------

class ExactMatcher:

    def __init__(self, strategy: MatchStrategy, version_matcher: Optional[VersionMatcher] = None,
                 scoring: Optional[ScoringConstants] = None,
                 config: Optional[MatcherConfig] = None):
        self.strategy = strategy
        self.config = config or default_config()
        self.scoring = scoring or self.config.scoring
        self.version_matcher = version_matcher or VersionMatcher(self.config, self.scoring)

    def find_matches(self, info: ExtractedInfo,
                     candidates: Sequence[EnhancedCatalogEntry]) -> List[SPUMatchResult]:
        model = info.model.value
        if not model or not candidates:
            return []
        text = info.preprocessed_input
        input_brand = info.brand.value

        results = []
        for candidate in candidates:
            if self.strategy.should_filter(text, candidate.name):
                continue
            if input_brand and not self.strategy.is_brand_match(input_brand, candidate.extracted_brand):
                continue
            if model != candidate.normalized_model:
                continue

            version = self.version_matcher.match(info.version.value, candidate.version)
            kw_bonus = keyword_bonus(text, candidate.name, self.strategy, self.scoring)
            detail_bonus = model_detail_bonus(text, candidate.name, self.scoring,
                                              self.config.special_edition_keywords)
            score = clamp(version['score'] + kw_bonus + detail_bonus)
            details = [f"model key '{model}' equals candidate model", version['explanation']]
            if kw_bonus:
                details.append(f"keyword bonus +{kw_bonus:.2f}")
            if detail_bonus:
                details.append(f"model detail bonus +{detail_bonus:.2f}")

            results.append(SPUMatchResult(
                entry=candidate,
                score=score,
                explanation=MatchExplanation(
                    match_type=MATCH_TYPE_EXACT,
                    brand_match={'matched': True, 'score': 1.0 if input_brand else 0.0},
                    model_match={'matched': True, 'score': 1.0},
                    version_match={'matched': version['matched'], 'score': version['score']},
                    details=tuple(details),
                ),
                priority=self.strategy.get_priority(text, candidate.name),
            ))

        logger.debug("Exact matching: %d of %d candidates for model %r", len(results), len(candidates), model)
        return sort_results(results)


class FuzzyMatcher:

    def __init__(self, strategy: MatchStrategy, version_matcher: Optional[VersionMatcher] = None,
                 scoring: Optional[ScoringConstants] = None,
                 config: Optional[MatcherConfig] = None):
        self.strategy = strategy
        self.config = config or default_config()
        self.scoring = scoring or self.config.scoring
        self.version_matcher = version_matcher or VersionMatcher(self.config, self.scoring)

    def find_matches(self, info: ExtractedInfo, candidates: Sequence[EnhancedCatalogEntry],
                     threshold: Optional[float] = None) -> List[SPUMatchResult]:
        s = self.scoring
        if threshold is None:
            threshold = s.DEFAULT_MATCH_THRESHOLD
        model = info.model.value
        if not model or not candidates:
            return []
        text = info.preprocessed_input
        input_brand = info.brand.value
        input_tokens = self.strategy.tokenize(model)

        results = []
        for candidate in candidates:
            if self.strategy.should_filter(text, candidate.name):
                continue
            if input_brand:
                # Recognized input brand: unknown or different candidate brand is never scored
                if not candidate.extracted_brand or \
                        not self.strategy.is_brand_match(input_brand, candidate.extracted_brand):
                    continue
                base = s.FUZZY_BASE_SCORE
            else:
                base = s.FUZZY_NO_BRAND_BASE

            candidate_model = candidate.extracted_model or candidate.name_part
            similarity = model_similarity(input_tokens, self.strategy.tokenize(candidate_model), s)
            if similarity <= s.FUZZY_MIN_SIMILARITY:
                continue

            kw_bonus = keyword_bonus(text, candidate.name, self.strategy, s)
            score = clamp(base + similarity * s.FUZZY_SIMILARITY_WEIGHT + kw_bonus)
            if score < threshold:
                continue
            version = self.version_matcher.match(info.version.value, candidate.version)
            details = [f"model similarity {similarity:.3f} against '{candidate_model}'"]
            if kw_bonus:
                details.append(f"keyword bonus +{kw_bonus:.2f}")
            details.append(version['explanation'])

            results.append(SPUMatchResult(
                entry=candidate,
                score=score,
                explanation=MatchExplanation(
                    match_type=MATCH_TYPE_FUZZY,
                    brand_match={'matched': bool(input_brand), 'score': 1.0 if input_brand else 0.0},
                    model_match={'matched': True, 'score': similarity},
                    version_match={'matched': version['matched'], 'score': version['score']},
                    details=tuple(details),
                ),
                priority=self.strategy.get_priority(text, candidate.name),
            ))

        logger.debug("Fuzzy matching: %d of %d candidates above %.2f", len(results), len(candidates), threshold)
        return sort_results(results)
