"""
Variant (SKU) selection inside a resolved SPU.

Each variant is scored per dimension and the weighted average taken with the product
type's weights. A dimension missing on both sides is left out of the denominator; one
missing on a single side scores 0. The first variant with the highest score wins.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence

from catalog import EnhancedCatalogEntry, Variant
from dictionaries import MatcherConfig
from extractor import ExtractedInfo, InfoExtractor
from text_normalize import preprocess_title, tokenize
from version_matcher import is_standard_version

logger = logging.getLogger(__name__)

_CAPACITY_UNITS = re.compile(r'\s+|gb|g', re.IGNORECASE)


@dataclass(frozen=True)
class SKUMatchResult:
    variant: Optional[Variant]
    score: float
    spec_matches: Mapping[str, Dict[str, Any]] = field(default_factory=dict)


def capacity_key(value: Optional[str]) -> Optional[str]:
    """Strip units and spaces: "12GB + 512GB" -> "12+512", "1TB" -> "1T"."""
    if not value:
        return None
    key = _CAPACITY_UNITS.sub('', value.replace('TB', 'T').replace('tb', 'T'))
    return key.upper() or None


class SKUMatcher:

    def __init__(self, config: MatcherConfig, extractor: Optional[InfoExtractor] = None):
        self.config = config
        self.scoring = config.scoring
        self.extractor = extractor or InfoExtractor(config)

    # ------------------------------------------------------------------
    # Variant attributes
    # ------------------------------------------------------------------

    def variant_attributes(self, variant: Variant) -> Dict[str, Optional[str]]:
        """Structured variant fields first, then values read from the variant name."""
        name = preprocess_title(variant.name, self.config)
        ex = self.extractor

        capacity = None
        for source in (variant.capacity, variant.spec, name):
            capacity = ex.extract_capacity(preprocess_title(source, self.config)).value if source else None
            if capacity:
                break
        if not capacity and variant.capacity:
            capacity = variant.capacity

        version = variant.version or variant.combo
        if not version:
            version = getattr(ex.extract_version(name).value, 'name', None)

        return {
            'color': variant.color or ex.extract_color(name).value,
            'capacity': capacity,
            'version': version,
            'size': variant.size or ex.extract_watch_size(name).value,
            'band': variant.band or ex.extract_watch_band(name).value,
            'spec': variant.spec,
        }

    def input_attributes(self, info: ExtractedInfo) -> Dict[str, Optional[str]]:
        return {
            'color': info.color.value,
            'capacity': info.capacity.value,
            'version': info.version_name,
            'size': info.watch_size.value,
            'band': info.watch_band.value,
            'spec': info.preprocessed_input or None,
        }

    # ------------------------------------------------------------------
    # Dimension scores
    # ------------------------------------------------------------------

    def _same_family(self, a: str, b: str) -> bool:
        for words in self.config.color_families.values():
            if any(w in a for w in words) and any(w in b for w in words):
                return True
        return False

    def score_color(self, wanted: Optional[str], offered: Optional[str]) -> float:
        s = self.scoring
        if not wanted or not offered:
            return 0.0
        if wanted == offered or self.config.colors_equivalent(wanted, offered):
            return s.COLOR_EXACT
        if wanted in offered or offered in wanted:
            return s.COLOR_CONTAINS
        if any(ch in wanted and ch in offered for ch in self.config.sku_basic_color_chars):
            return s.COLOR_BASIC_SHARED
        if self._same_family(wanted, offered):
            return s.COLOR_BASIC_SHARED
        return 0.0

    def score_capacity(self, wanted: Optional[str], offered: Optional[str]) -> float:
        a, b = capacity_key(wanted), capacity_key(offered)
        if not a or not b:
            return 0.0
        if a == b:
            return 1.0
        if a.split('+')[-1] == b.split('+')[-1]:
            return self.scoring.CAPACITY_STORAGE_ONLY
        return 0.0

    def score_version(self, wanted: Optional[str], offered: Optional[str]) -> float:
        s = self.scoring
        if not wanted:
            if is_standard_version(offered, self.config.standard_version_markers):
                return s.VERSION_STANDARD_DEFAULT
            return s.VERSION_NEUTRAL
        if not offered:
            return 0.0
        a, b = wanted.lower(), offered.lower()
        return 1.0 if a in b or b in a else 0.0

    @staticmethod
    def score_exact(wanted: Optional[str], offered: Optional[str]) -> float:
        if not wanted or not offered:
            return 0.0
        return 1.0 if wanted.replace(' ', '').lower() == offered.replace(' ', '').lower() else 0.0

    @staticmethod
    def score_spec(title: Optional[str], spec: Optional[str]) -> float:
        """Variant spec string against the whole input title."""
        if not title or not spec:
            return 0.0
        if spec.lower() in title.lower():
            return 1.0
        spec_tokens = set(tokenize(spec))
        if not spec_tokens:
            return 0.0
        return len(spec_tokens & set(tokenize(title))) / len(spec_tokens)

    def score_dimension(self, dimension: str, wanted: Optional[str], offered: Optional[str]) -> float:
        if dimension == 'color':
            return self.score_color(wanted, offered)
        if dimension == 'capacity':
            return self.score_capacity(wanted, offered)
        if dimension == 'version':
            return self.score_version(wanted, offered)
        if dimension == 'spec':
            return self.score_spec(wanted, offered)
        return self.score_exact(wanted, offered)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def score_variant(self, variant: Variant, wanted: Mapping[str, Optional[str]],
                      weights: Mapping[str, float]):
        offered = self.variant_attributes(variant)
        spec_matches = {}
        weighted = total_weight = 0.0
        for dimension, weight in weights.items():
            if weight <= 0:
                continue
            a, b = wanted.get(dimension), offered.get(dimension)
            if not a and not b:
                continue
            score = self.score_dimension(dimension, a, b)
            spec_matches[dimension] = {'matched': score > 0, 'score': score}
            weighted += weight * score
            total_weight += weight
        score = weighted / total_weight if total_weight > 0 else 0.0
        return score, spec_matches

    def find_best_match(self, spu: Optional[EnhancedCatalogEntry], info: ExtractedInfo,
                        product_type: Optional[str] = None,
                        variants: Optional[Sequence[Variant]] = None) -> SKUMatchResult:
        if variants is None:
            variants = spu.variants if spu is not None else ()
        if not variants:
            return SKUMatchResult(variant=None, score=0.0, spec_matches={})

        weights = self.config.spec_weights(product_type or info.product_type)
        wanted = self.input_attributes(info)
        best, best_score, best_matches = None, -1.0, {}
        for variant in variants:
            score, spec_matches = self.score_variant(variant, wanted, weights)
            if score > best_score:
                best, best_score, best_matches = variant, score, spec_matches

        logger.debug("SKU selection: %s scored %.3f over %d variants",
                     getattr(best, 'id', None), best_score, len(variants))
        return SKUMatchResult(variant=best, score=best_score, spec_matches=best_matches)
