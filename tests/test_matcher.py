import pandas as pd
import pytest

from catalog import CatalogError
from conftest import SAMPLE_CATALOG
from dictionaries import load_config
from matcher import (
    MATCH_STATUS_MATCHED,
    MATCH_STATUS_NO_MATCH,
    MATCH_STATUS_SPU_ONLY,
    MATCH_STATUS_SUGGESTED,
    RESULT_MATCHED,
    RESULT_SPU_MATCHED,
    RESULT_UNMATCHED,
    CatalogMatcher,
    compute_coverage_metrics,
    detect_name_column,
    match,
    match_title_row,
    run_matching,
)
from spu_matchers import MATCH_TYPE_EXACT, MATCH_TYPE_FUZZY


@pytest.fixture(scope='module')
def review_matcher():
    config = load_config(overrides={'scoring': {'FUZZY_SIMILARITY_WEIGHT': 0.3}})
    return CatalogMatcher(SAMPLE_CATALOG, config)


# ---------------------------------------------------------------------------
# Request API
# ---------------------------------------------------------------------------

@pytest.mark.parametrize('title, spu_id, sku_id', [
    ('Vivo S30Promini 5G(12+512)可可黑', 101, 1001),
    ('华为Mate60Pro 12GB+512GB 雅川青', 201, 2001),
    ('Apple 17ProMax 256GB 深空黑', 301, 3001),
    ('华为 GT5 46mm 复合编织表带 曜石黑', 203, 2031),
    ('【演示机】华为 Mate 60 Pro 12GB+512GB 雅川青 送充电器', 201, 2001),
])
def test_match_scenarios(catalog_matcher, title, spu_id, sku_id):
    result = catalog_matcher.match(title)
    assert result['spu'].entry.id == spu_id
    assert result['sku'].variant.id == sku_id


def test_match_spec_scenario_scores(catalog_matcher):
    result = catalog_matcher.match('Vivo S30Promini 5G(12+512)可可黑')
    assert result['spu'].score == 1.0
    assert result['spu'].explanation.match_type == MATCH_TYPE_EXACT
    assert result['sku'].score == 1.0


def test_match_without_model(catalog_matcher):
    assert catalog_matcher.match('手机 5G 全网通') == {'spu': None, 'sku': None}


@pytest.mark.parametrize('title', [None, '', '   '])
def test_match_blank_input(catalog_matcher, title):
    assert catalog_matcher.match(title) == {'spu': None, 'sku': None}


def test_match_other_brand_is_not_offered():
    vivo_only = [dict(record) for record in SAMPLE_CATALOG[:2]]
    assert match('华为 S30 Pro mini', vivo_only) == {'spu': None, 'sku': None}


def test_threshold_is_configurable():
    strict = CatalogMatcher(SAMPLE_CATALOG, threshold=0.95)
    assert strict.match('vivo S30 5G')['spu'] is None
    assert strict.match('Vivo S30Promini 5G(12+512)可可黑')['spu'].entry.id == 101


def test_spu_without_variants(catalog_matcher):
    result = catalog_matcher.match_detailed('苹果 iPhone 17 128GB')
    assert result['spu_id'] == 302
    assert result['status'] == RESULT_SPU_MATCHED
    assert result['sku_id'] is None
    assert result['similarity'] == result['spu_score']


def test_match_detailed_fields(catalog_matcher):
    result = catalog_matcher.match_detailed('Vivo S30Promini 5G(12+512)可可黑')
    assert result['status'] == RESULT_MATCHED
    assert result['brand'] == 'vivo'
    assert result['model'] == 's30promini'
    assert result['version'] == '5G'
    assert result['capacity'] == '12+512'
    assert result['color'] == '可可黑'
    assert result['spu_name'] == 'vivo S30 Pro mini 全网通5G'
    assert result['sku_id'] == 1001
    assert 'selected by score' in result['explanation']


def test_match_detailed_unmatched(catalog_matcher):
    result = catalog_matcher.match_detailed('手机 5G 全网通')
    assert result['status'] == RESULT_UNMATCHED
    assert result['similarity'] == 0.0
    assert result['explanation'] == ''


def test_empty_catalog_never_matches():
    matcher = CatalogMatcher([])
    assert matcher.match('华为 Mate 60 Pro') == {'spu': None, 'sku': None}
    assert matcher.alternatives('华为 Mate 60 Pro') == []


def test_invalid_catalog_raises():
    with pytest.raises(CatalogError):
        CatalogMatcher('not a catalog')


def test_stats_exposed(catalog_matcher):
    assert catalog_matcher.stats['indexed'] == len(SAMPLE_CATALOG)


def test_alternatives(catalog_matcher):
    names = catalog_matcher.alternatives('华为 Mate 60 Pro 雅川青')
    assert len(names) == 3
    assert names[0] == '华为 Mate 60 Pro'


def test_match_many(catalog_matcher):
    summary = catalog_matcher.match_many([
        'Vivo S30Promini 5G(12+512)可可黑',
        '苹果 iPhone 17 128GB',
        '手机 5G 全网通',
    ])
    assert summary['total'] == 3
    assert summary['matched'] == 1
    assert summary['spu_matched'] == 1
    assert summary['unmatched'] == 1
    assert summary['match_rate'] == pytest.approx(66.7)
    assert [r['status'] for r in summary['results']] == [RESULT_MATCHED, RESULT_SPU_MATCHED, RESULT_UNMATCHED]


# ---------------------------------------------------------------------------
# Batch rows
# ---------------------------------------------------------------------------

def test_row_matched(catalog_matcher):
    row = match_title_row('Vivo S30Promini 5G(12+512)可可黑', catalog_matcher)
    assert row['match_status'] == MATCH_STATUS_MATCHED
    assert row['method'] == MATCH_TYPE_EXACT
    assert row['spu_id'] == 101
    assert row['sku_id'] == 1001
    assert row['alternatives'] == []


def test_row_spu_only(catalog_matcher):
    row = match_title_row('苹果 iPhone 17 128GB', catalog_matcher)
    assert row['match_status'] == MATCH_STATUS_SPU_ONLY
    assert row['sku_id'] is None


def test_row_review_required_for_weak_fuzzy_match(review_matcher):
    row = match_title_row('S30 Pro', review_matcher)
    assert row['match_status'] == MATCH_STATUS_SUGGESTED
    assert row['method'] == MATCH_TYPE_FUZZY
    assert row['match_score'] == pytest.approx(0.6125, abs=1e-3)
    assert len(row['alternatives']) == 3


def test_row_no_match_offers_alternatives(catalog_matcher):
    row = match_title_row('手机 5G 全网通', catalog_matcher)
    assert row['match_status'] == MATCH_STATUS_NO_MATCH
    assert row['method'] == 'none'
    assert len(row['alternatives']) == 3


@pytest.mark.parametrize('title', [None, '', '  ', 'nan', float('nan')])
def test_row_empty_input(catalog_matcher, title):
    row = match_title_row(title, catalog_matcher)
    assert row['match_status'] == MATCH_STATUS_NO_MATCH
    assert row['method'] == 'empty_input'


class _ExplodingMatcher:

    def match_detailed(self, title):
        raise RuntimeError('boom')

    def alternatives(self, text):
        return []


def test_run_matching_statuses(catalog_matcher):
    df = pd.DataFrame({' 商品标题 ': [
        'Vivo S30Promini 5G(12+512)可可黑',
        '苹果 iPhone 17 128GB',
        '手机 5G 全网通',
        None,
    ]})
    progress = []
    result = run_matching(df, '商品标题', catalog_matcher, lambda done, total: progress.append((done, total)))
    assert list(result['match_status']) == [
        MATCH_STATUS_MATCHED, MATCH_STATUS_SPU_ONLY, MATCH_STATUS_NO_MATCH, MATCH_STATUS_NO_MATCH,
    ]
    assert list(result['method'])[-1] == 'empty_input'
    assert progress[-1] == (4, 4)
    assert '商品标题' in result.columns


def test_run_matching_logs_and_continues_after_errors():
    df = pd.DataFrame({'title': ['华为 Mate 60 Pro', 'vivo X200']})
    result = run_matching(df, 'title', _ExplodingMatcher())
    assert list(result['method']) == ['error', 'error']
    assert list(result['match_status']) == [MATCH_STATUS_NO_MATCH, MATCH_STATUS_NO_MATCH]


def test_compute_coverage_metrics(catalog_matcher):
    df = pd.DataFrame({'title': [
        'Vivo S30Promini 5G(12+512)可可黑',
        '华为 GT5 46mm 复合编织表带 曜石黑',
        '苹果 iPhone 17 128GB',
        '手机 5G 全网通',
    ]})
    metrics = compute_coverage_metrics(run_matching(df, 'title', catalog_matcher))
    assert metrics['total_rows'] == 4
    assert metrics['matched_count'] == 2
    assert metrics['matched_rate'] == 50.0
    assert metrics['spu_only_count'] == 1
    assert metrics['no_match_count'] == 1
    assert metrics['review_count'] == 0
    # Vivo resolves exactly (1.0), the watch through token similarity (0.845)
    assert metrics['avg_match_score'] == pytest.approx(0.9225, abs=1e-3)
    assert metrics['method_breakdown'] == {'exact': 1, 'fuzzy': 2, 'none': 1}


def test_compute_coverage_metrics_empty():
    metrics = compute_coverage_metrics(pd.DataFrame(columns=['match_status']))
    assert metrics['total_rows'] == 0
    assert metrics['method_breakdown'] == {}


@pytest.mark.parametrize('columns, expected', [
    (['SKU ID', 'Product Title', 'Price'], 'Product Title'),
    (['编码', '商品标题'], '商品标题'),
    (['serial_number', 'qty'], None),
])
def test_detect_name_column(columns, expected):
    assert detect_name_column(columns) == expected


# ---------------------------------------------------------------------------
# Model keys across spellings
# ---------------------------------------------------------------------------

def test_spacing_does_not_change_the_model_key():
    matcher = CatalogMatcher([{'id': 7, 'name': 'vivo X Fold3 Pro', 'brand': 'vivo'}])
    info = matcher.extract('vivo X Fold 3 Pro 16+512 青松')
    assert info.model.value == matcher.index.entries[0].normalized_model == 'xfold3pro'
    assert matcher.match('vivo X Fold 3 Pro 16+512 青松')['spu'].entry.id == 7


def test_catalog_model_key_resolves_glued_input():
    matcher = CatalogMatcher([{'id': 5, 'name': '华为 nova Flip', 'brand': '华为'}])
    result = matcher.match('华为 novaflip 樱语粉')
    assert result['spu'].entry.id == 5
    assert result['spu'].explanation.match_type == MATCH_TYPE_EXACT


def test_cjk_band_matches_its_spu_and_variant():
    matcher = CatalogMatcher([
        {'id': 401, 'name': '小米手环9 NFC版', 'brand': '小米', 'variants': [
            {'variantID': 4011, 'color': '黑色'},
            {'variantID': 4012, 'color': '粉色'},
        ]},
        {'id': 402, 'name': '小米手环8 NFC版', 'brand': '小米', 'variants': [
            {'variantID': 4021, 'color': '黑色'},
        ]},
    ])
    result = matcher.match('小米手环9 NFC版 黑色')
    assert result['spu'].entry.id == 401
    assert result['sku'].variant.id == 4011


def test_plus_model_is_not_the_base_model():
    matcher = CatalogMatcher([
        {'id': 1, 'name': '华为 Mate 60 Pro', 'brand': '华为'},
        {'id': 2, 'name': '华为 Mate 60 Pro+', 'brand': '华为'},
    ])
    assert matcher.match('华为 Mate 60 Pro+ 雅川青')['spu'].entry.id == 2
    assert matcher.match('华为 Mate 60 Pro 雅川青')['spu'].entry.id == 1
