"""
SPU resolution for one request: INDEX-NARROW -> EXACT -> FUZZY (unless exact hit 1.0) -> SELECT.

Selection among candidates sharing the top score:
    0. highest strategy priority
    1. suffix match      matched input suffixes / input suffixes - 0.1 per extra candidate suffix
    2. keyword coverage  input tokens (3+ chars) found in the candidate name
    3. length match      min/max of model key lengths, halved when the candidate is under half
    4. shortest name, then catalog order
Each layer keeps only the candidates at its best value and stops once one remains. The
deciding layer and the per-dimension scores are appended to the explanation details.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

from catalog import CatalogIndex, EnhancedCatalogEntry
from dictionaries import MatcherConfig, ScoringConstants, default_config
from extractor import ExtractedInfo
from spu_matchers import ExactMatcher, FuzzyMatcher, SPUMatchResult, keyword_tokens
from strategy import MatchStrategy
from text_normalize import model_suffixes
from version_matcher import VersionMatcher

logger = logging.getLogger(__name__)

LAYER_SCORE = 'score'
LAYER_PRIORITY = 'priority'
LAYER_SUFFIX = 'suffix match'
LAYER_KEYWORD = 'keyword coverage'
LAYER_LENGTH = 'length match'
LAYER_SHORTEST = 'shortest name'


@dataclass(frozen=True)
class SelectionMetrics:
    base_score: float
    suffix_match_score: float
    keyword_coverage_score: float
    length_match_score: float
    final_score: float

    def describe(self) -> str:
        return (f"base={self.base_score:.3f}, suffix={self.suffix_match_score:.3f}, "
                f"keyword={self.keyword_coverage_score:.3f}, length={self.length_match_score:.3f}")


class MatchOrchestrator:

    def __init__(self, index: CatalogIndex, strategy: MatchStrategy,
                 scoring: Optional[ScoringConstants] = None,
                 exact_matcher: Optional[ExactMatcher] = None,
                 fuzzy_matcher: Optional[FuzzyMatcher] = None,
                 config: Optional[MatcherConfig] = None):
        self.index = index
        self.strategy = strategy
        self.config = config or default_config()
        self.scoring = scoring or self.config.scoring
        version_matcher = VersionMatcher(self.config, self.scoring)
        self.exact_matcher = exact_matcher or ExactMatcher(
            strategy, version_matcher, self.scoring, self.config)
        self.fuzzy_matcher = fuzzy_matcher or FuzzyMatcher(
            strategy, version_matcher, self.scoring, self.config)

    # ------------------------------------------------------------------
    # Index narrowing
    # ------------------------------------------------------------------

    def narrow(self, info: ExtractedInfo) -> List[EnhancedCatalogEntry]:
        brand = info.brand.value
        if not brand:
            return list(self.index.entries)

        seen = set()
        candidates = []
        found_key = False
        for key in self.strategy.brand_keys(brand):
            bucket = self.index.by_brand_key(key)
            if bucket is None:
                continue
            found_key = True
            for entry in bucket:
                if id(entry) not in seen:
                    seen.add(id(entry))
                    candidates.append(entry)
        if found_key:
            return candidates

        # Brand key absent from the index: scan everything with the equivalence predicate
        return [e for e in self.index.entries if self.strategy.is_brand_match(brand, e.extracted_brand)]

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def find_spu(self, info: ExtractedInfo, threshold: Optional[float] = None) -> Optional[SPUMatchResult]:
        if threshold is None:
            threshold = self.scoring.DEFAULT_MATCH_THRESHOLD

        candidates = self.narrow(info)
        logger.debug("Index narrowing for %r: %d candidates", info.original_input, len(candidates))
        if not candidates:
            return None

        exact = self.exact_matcher.find_matches(info, candidates)
        pool: Dict[int, SPUMatchResult] = {}
        for result in exact:
            pool.setdefault(id(result.entry), result)

        if not exact or exact[0].score < 1.0 - self.scoring.SCORE_EPSILON:
            for result in self.fuzzy_matcher.find_matches(info, candidates, threshold):
                key = id(result.entry)
                if key not in pool or result.score > pool[key].score:
                    pool[key] = result

        eligible = [r for r in pool.values() if r.score >= threshold]
        logger.debug("Exact %d, pooled %d, above threshold %d", len(exact), len(pool), len(eligible))
        if not eligible:
            return None
        return self.select(info, eligible)

    # ------------------------------------------------------------------
    # Tie-break
    # ------------------------------------------------------------------

    def suffix_match_score(self, info: ExtractedInfo, entry: EnhancedCatalogEntry) -> float:
        wanted = set(model_suffixes(info.model.value))
        if not wanted:
            return 0.0
        offered = set(model_suffixes(entry.extracted_model or entry.name_part))
        matched = len(wanted & offered)
        extra = len(offered - wanted)
        return max(0.0, matched / len(wanted) - extra * self.scoring.SUFFIX_EXTRA_PENALTY)

    def keyword_coverage_score(self, info: ExtractedInfo, entry: EnhancedCatalogEntry) -> float:
        tokens = keyword_tokens(info.preprocessed_input, self.strategy, self.scoring)
        if not tokens:
            return 0.0
        name = entry.name.lower()
        return sum(1 for token in tokens if token in name) / len(tokens)

    def length_match_score(self, info: ExtractedInfo, entry: EnhancedCatalogEntry) -> float:
        wanted = len(info.model.value or '')
        offered = len(entry.normalized_model or '')
        if not wanted or not offered:
            return 0.0
        score = min(wanted, offered) / max(wanted, offered)
        if offered < wanted / 2:
            score *= self.scoring.SHORT_CANDIDATE_PENALTY
        return score

    def selection_metrics(self, info: ExtractedInfo, result: SPUMatchResult) -> SelectionMetrics:
        return SelectionMetrics(
            base_score=result.score,
            suffix_match_score=self.suffix_match_score(info, result.entry),
            keyword_coverage_score=self.keyword_coverage_score(info, result.entry),
            length_match_score=self.length_match_score(info, result.entry),
            final_score=result.score,
        )

    def _keep_best(self, items: list, value) -> list:
        best = max(value(item) for item in items)
        return [item for item in items if best - value(item) <= self.scoring.SCORE_EPSILON]

    def select(self, info: ExtractedInfo, results: Sequence[SPUMatchResult]) -> SPUMatchResult:
        """Pick one result from a non-empty pool; the reported score is never changed."""
        ordered = sorted(results, key=lambda r: -r.score)
        tied = self._keep_best(ordered, lambda r: r.score)
        total = len(tied)
        layer = LAYER_SCORE

        if len(tied) > 1:
            tied = self._keep_best(tied, lambda r: r.priority)
            layer = LAYER_PRIORITY

        metrics = {id(r): self.selection_metrics(info, r) for r in tied}
        layers = (
            (LAYER_SUFFIX, lambda r: metrics[id(r)].suffix_match_score),
            (LAYER_KEYWORD, lambda r: metrics[id(r)].keyword_coverage_score),
            (LAYER_LENGTH, lambda r: metrics[id(r)].length_match_score),
            (LAYER_SHORTEST, lambda r: -len(r.entry.name)),
        )
        for name, value in layers:
            if len(tied) == 1:
                break
            tied = self._keep_best(tied, value)
            layer = name

        chosen = tied[0]
        note = (f"selected by {layer} among {total} top candidate(s): "
                f"{metrics[id(chosen)].describe()}")
        logger.debug("SPU selection for %r -> %r (%s)", info.original_input, chosen.entry.name, note)
        explanation = replace(chosen.explanation, details=chosen.explanation.details + (note,))
        return replace(chosen, explanation=explanation)
