"""
Request API and batch runner for matching marketplace titles to the SPU/SKU catalog.

Matching Approach:
    - The catalog is preprocessed once (CatalogMatcher construction): every SPU name goes
      through the extractor and lands in the brand and model-key indexes
    - A title is preprocessed, split into brand / model / color / capacity / version, then
      resolved to an SPU by the orchestrator (index narrowing, exact model-key match,
      token-similarity fallback, four-layer tie-break)
    - The SKU matcher picks the variant of that SPU that best fits color, capacity and version

Statuses (batch):
    - MATCHED:          SPU and SKU resolved
    - SPU_ONLY:         SPU resolved, no variant to pick
    - REVIEW_REQUIRED:  SPU resolved through token similarity only, score below 0.7
    - NO_MATCH:         nothing at or above the threshold

Usage:
    from matcher import CatalogMatcher, match
    result = match("Vivo S30Promini 5G(12+512)可可黑", catalog)
    result["spu"].entry.name, result["sku"].variant.id
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

import pandas as pd
from rapidfuzz import fuzz, process

from catalog import CatalogPreprocessor
from dictionaries import MatcherConfig, default_config
from extractor import ExtractedInfo, InfoExtractor
from orchestrator import MatchOrchestrator
from sku_matcher import SKUMatcher, SKUMatchResult
from spu_matchers import MATCH_TYPE_FUZZY, SPUMatchResult
from strategy import DefaultMatchStrategy, MatchStrategy

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
RESULT_MATCHED = 'matched'            # SPU and SKU resolved
RESULT_SPU_MATCHED = 'spu-matched'    # SPU only
RESULT_UNMATCHED = 'unmatched'

MATCH_STATUS_MATCHED = "MATCHED"
MATCH_STATUS_SPU_ONLY = "SPU_ONLY"
MATCH_STATUS_SUGGESTED = "REVIEW_REQUIRED"
MATCH_STATUS_NO_MATCH = "NO_MATCH"

REVIEW_SCORE_CEILING = 0.7   # Fuzzy-path SPU matches below this need a human look
ALTERNATIVES_LIMIT = 3
PROGRESS_EVERY = 50          # Rows between progress_callback calls

NAME_KEYWORDS = ['title', 'name', 'product', '商品', '标题', '名称', 'description', 'desc', 'item']
NAME_EXCLUDE_KEYWORDS = ['id', 'serial', 'imei', 'barcode', 'sku', 'code', 'number', '编码']


# ---------------------------------------------------------------------------
# Request API
# ---------------------------------------------------------------------------

class CatalogMatcher:
    """
    One catalog snapshot, preprocessed once, serving many match requests.

    The index, the config and the extractor are read-only after construction, so a
    CatalogMatcher can be shared by concurrent callers.
    """

    def __init__(self, catalog: Any, config: Optional[MatcherConfig] = None,
                 strategy: Optional[MatchStrategy] = None, threshold: Optional[float] = None):
        self.config = config or default_config()
        self.threshold = self.config.scoring.DEFAULT_MATCH_THRESHOLD if threshold is None else threshold
        self.index = CatalogPreprocessor(InfoExtractor(self.config)).build(catalog)
        # Input titles see the catalog's own color spellings and model keys
        self.extractor = InfoExtractor(self.config, self.index.color_vocabulary, self.index.brand_models)
        self.strategy = strategy or DefaultMatchStrategy(self.extractor)
        self.orchestrator = MatchOrchestrator(self.index, self.strategy, self.config.scoring,
                                              config=self.config)
        self.sku_matcher = SKUMatcher(self.config, self.extractor)
        self.names: List[str] = [e.name for e in self.index.entries]

    @property
    def stats(self) -> Dict[str, Any]:
        return self.index.stats

    def extract(self, raw_text: Optional[str]) -> ExtractedInfo:
        return self.extractor.extract_all(raw_text)

    def _resolve(self, info: ExtractedInfo):
        spu = self.orchestrator.find_spu(info, self.threshold)
        sku = self.sku_matcher.find_best_match(spu.entry, info) if spu is not None else None
        return spu, sku

    def match(self, raw_text: Optional[str]) -> Dict[str, Optional[Any]]:
        """{"spu": SPUMatchResult | None, "sku": SKUMatchResult | None}. Never raises for absence."""
        spu, sku = self._resolve(self.extract(raw_text))
        return {'spu': spu, 'sku': sku}

    def match_detailed(self, raw_text: Optional[str]) -> Dict[str, Any]:
        """match() plus status, similarity and the display fields a review screen shows."""
        info = self.extract(raw_text)
        spu, sku = self._resolve(info)
        return build_outcome(info, spu, sku)

    def alternatives(self, text: str, limit: int = ALTERNATIVES_LIMIT) -> List[str]:
        """Closest catalog names by token_sort_ratio, for manual review."""
        if not text or not self.names:
            return []
        return [name for name, _, _ in process.extract(text, self.names, scorer=fuzz.token_sort_ratio, limit=limit)]

    def match_many(self, titles: Iterable[Optional[str]]) -> Dict[str, Any]:
        start = time.perf_counter()
        results = [self.match_detailed(title) for title in titles]
        total = len(results)
        matched = sum(1 for r in results if r['status'] == RESULT_MATCHED)
        spu_only = sum(1 for r in results if r['status'] == RESULT_SPU_MATCHED)
        summary = {
            'total': total,
            'matched': matched,
            'spu_matched': spu_only,
            'unmatched': total - matched - spu_only,
            'match_rate': round((matched + spu_only) / total * 100, 1) if total else 0.0,
            'duration_ms': round((time.perf_counter() - start) * 1000, 2),
            'results': results,
        }
        logger.info("Matched %d titles: %d matched, %d SPU only, %d unmatched in %.0fms",
                    total, matched, spu_only, summary['unmatched'], summary['duration_ms'])
        return summary


def match(raw_text: Optional[str], catalog: Any, config: Optional[MatcherConfig] = None) -> Dict[str, Optional[Any]]:
    """One-shot request against a catalog snapshot; prefer CatalogMatcher for repeated calls."""
    return CatalogMatcher(catalog, config).match(raw_text)


def build_outcome(info: ExtractedInfo, spu: Optional[SPUMatchResult],
                  sku: Optional[SKUMatchResult]) -> Dict[str, Any]:
    variant = sku.variant if sku is not None else None
    if spu is None:
        status, similarity = RESULT_UNMATCHED, 0.0
    elif variant is not None:
        status, similarity = RESULT_MATCHED, sku.score
    else:
        status, similarity = RESULT_SPU_MATCHED, spu.score
    return {
        'input': info.original_input,
        'status': status,
        'similarity': similarity,
        'brand': info.brand.value,
        'model': info.model.value,
        'version': info.version_name,
        'capacity': info.capacity.value,
        'color': info.color.value,
        'product_type': info.product_type,
        'spu_id': spu.entry.id if spu else None,
        'spu_name': spu.entry.name if spu else None,
        'spu_score': spu.score if spu else 0.0,
        'match_type': spu.explanation.match_type if spu else None,
        'explanation': spu.explanation.details_text() if spu else '',
        'sku_id': variant.id if variant is not None else None,
        'sku_name': variant.name if variant is not None else None,
        'sku_score': sku.score if sku is not None else 0.0,
        'external_codes': list(variant.external_codes) if variant is not None else [],
        'spu': spu,
        'sku': sku,
        'info': info,
    }


# ---------------------------------------------------------------------------
# Batch matching
# ---------------------------------------------------------------------------

def detect_name_column(columns: List[str]) -> Optional[str]:
    """Title column of an uploaded sheet; ID-like columns are never picked."""
    for col in columns:
        col_lower = str(col).lower().strip()
        if any(excl in col_lower for excl in NAME_EXCLUDE_KEYWORDS):
            continue
        if any(kw in col_lower for kw in NAME_KEYWORDS):
            return col
    return None


def _no_match_row(method: str) -> Dict[str, Any]:
    return {
        'spu_id': None, 'spu_name': '', 'sku_id': None, 'sku_name': '',
        'external_codes': '', 'match_score': 0.0, 'sku_score': 0.0,
        'match_status': MATCH_STATUS_NO_MATCH, 'method': method,
        'explanation': '', 'alternatives': [],
        'extracted_brand': None, 'extracted_model': None, 'extracted_color': None,
        'extracted_capacity': None, 'extracted_version': None,
    }


def match_title_row(title: Any, catalog_matcher: CatalogMatcher) -> Dict[str, Any]:
    """Batch row for one title: status, method, scores and review alternatives."""
    if not isinstance(title, str) or not title.strip() or title.strip().lower() in ('nan', 'none'):
        return _no_match_row('empty_input')

    outcome = catalog_matcher.match_detailed(title)
    info = outcome['info']
    row = _no_match_row('none')
    row.update({
        'extracted_brand': outcome['brand'],
        'extracted_model': outcome['model'],
        'extracted_color': outcome['color'],
        'extracted_capacity': outcome['capacity'],
        'extracted_version': outcome['version'],
    })

    spu = outcome['spu']
    if spu is not None:
        row.update({
            'spu_id': outcome['spu_id'],
            'spu_name': outcome['spu_name'],
            'sku_id': outcome['sku_id'],
            'sku_name': outcome['sku_name'] or '',
            'external_codes': ', '.join(outcome['external_codes']),
            'match_score': round(spu.score, 3),
            'sku_score': round(outcome['sku_score'], 3),
            'method': outcome['match_type'],
            'explanation': outcome['explanation'],
        })
        if outcome['match_type'] == MATCH_TYPE_FUZZY and spu.score < REVIEW_SCORE_CEILING:
            row['match_status'] = MATCH_STATUS_SUGGESTED
        elif outcome['status'] == RESULT_MATCHED:
            row['match_status'] = MATCH_STATUS_MATCHED
        else:
            row['match_status'] = MATCH_STATUS_SPU_ONLY

    if row['match_status'] in (MATCH_STATUS_SUGGESTED, MATCH_STATUS_NO_MATCH):
        row['alternatives'] = catalog_matcher.alternatives(info.preprocessed_input or title)
    return row


def run_matching(
    df_input: pd.DataFrame,
    name_col: str,
    catalog_matcher: CatalogMatcher,
    progress_callback: Optional[Callable] = None,
) -> pd.DataFrame:
    """
    Match every title in `name_col` against the catalog.

    Args:
        df_input: the uploaded title list
        name_col: column holding the marketplace title
        catalog_matcher: a CatalogMatcher built from the catalog snapshot
        progress_callback: optional callable(current, total) for UI progress

    Returns:
        Copy of df_input with added columns:
            spu_id, spu_name, sku_id, sku_name, external_codes, match_score, sku_score,
            match_status, method, explanation, alternatives, extracted_*
    """
    df = df_input.copy()
    df.columns = [str(c).strip() for c in df.columns]
    name_col = name_col.strip() if name_col else name_col
    total = len(df)

    results = []
    for _, row in df.iterrows():
        title = row.get(name_col, '')
        try:
            result = match_title_row(title, catalog_matcher)
        except Exception:
            logger.exception("Matching failed for %r", title)
            result = _no_match_row('error')
        results.append(result)

        if progress_callback and (len(results) % PROGRESS_EVERY == 0 or len(results) == total):
            progress_callback(len(results), total)

    results_df = pd.DataFrame(results, columns=list(_no_match_row('none').keys()))
    for col in results_df.columns:
        df[col] = results_df[col].values
    return df


# ---------------------------------------------------------------------------
# Coverage Dashboard Metrics
# ---------------------------------------------------------------------------

def compute_coverage_metrics(df_results: pd.DataFrame) -> Dict[str, Any]:
    """
    Coverage metrics from a run_matching() result.

    Returns a dict with:
        total_rows
        matched_count / matched_rate, spu_only_count / spu_only_rate,
        review_count / review_rate, no_match_count / no_match_rate (rates in percent)
        avg_match_score: mean SPU score of MATCHED rows
        method_breakdown: method -> count
    """
    total = len(df_results)
    if total == 0:
        return {'total_rows': 0, 'matched_count': 0, 'matched_rate': 0.0,
                'spu_only_count': 0, 'spu_only_rate': 0.0,
                'review_count': 0, 'review_rate': 0.0,
                'no_match_count': 0, 'no_match_rate': 0.0,
                'avg_match_score': 0.0, 'method_breakdown': {}}

    status = df_results['match_status']
    matched = df_results[status == MATCH_STATUS_MATCHED]
    spu_only = df_results[status == MATCH_STATUS_SPU_ONLY]
    review = df_results[status == MATCH_STATUS_SUGGESTED]
    no_match = df_results[status == MATCH_STATUS_NO_MATCH]

    method_breakdown = {}
    if 'method' in df_results.columns:
        method_breakdown = df_results['method'].value_counts().to_dict()

    avg_score = round(float(matched['match_score'].mean()), 3) if len(matched) > 0 else 0.0

    return {
        'total_rows': total,
        'matched_count': len(matched),
        'matched_rate': round(len(matched) / total * 100, 1),
        'spu_only_count': len(spu_only),
        'spu_only_rate': round(len(spu_only) / total * 100, 1),
        'review_count': len(review),
        'review_rate': round(len(review) / total * 100, 1),
        'no_match_count': len(no_match),
        'no_match_rate': round(len(no_match) / total * 100, 1),
        'avg_match_score': avg_score,
        'method_breakdown': method_breakdown,
    }
