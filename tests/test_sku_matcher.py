import pytest

from catalog import CatalogPreprocessor, Variant
from conftest import SAMPLE_CATALOG
from extractor import InfoExtractor
from sku_matcher import SKUMatcher, capacity_key


@pytest.fixture(scope='module')
def index(config):
    return CatalogPreprocessor(InfoExtractor(config)).build(SAMPLE_CATALOG)


@pytest.fixture(scope='module')
def vocab_extractor(config, index):
    return InfoExtractor(config, index.color_vocabulary)


@pytest.fixture(scope='module')
def sku_matcher(config, vocab_extractor):
    return SKUMatcher(config, vocab_extractor)


def _entry(index, entry_id):
    return next(e for e in index.entries if e.id == entry_id)


@pytest.mark.parametrize('raw, key', [
    ('12GB+512GB', '12+512'),
    ('12 + 512', '12+512'),
    ('1TB', '1T'),
    ('16+1T', '16+1T'),
    ('256GB', '256'),
    (None, None),
    ('', None),
])
def test_capacity_key(raw, key):
    assert capacity_key(raw) == key


@pytest.mark.parametrize('wanted, offered, score', [
    ('12+512', '12GB+512GB', 1.0),
    ('8+256', '12+256', 0.7),
    ('1T', '16+1T', 0.7),
    ('12+256', '12+512', 0.0),
    (None, '12+512', 0.0),
])
def test_score_capacity(sku_matcher, wanted, offered, score):
    assert sku_matcher.score_capacity(wanted, offered) == score


@pytest.mark.parametrize('wanted, offered, score', [
    ('雾凇蓝', '雾松蓝', 1.0),
    ('雾松蓝', '雾凇蓝', 1.0),
    ('黑', '可可黑', 0.8),
    ('曜石黑', '可可黑', 0.5),
    ('冰川青', '天青蓝', 0.5),
    ('雪域白', '雅川青', 0.0),
    ('雅川青', None, 0.0),
])
def test_score_color(sku_matcher, wanted, offered, score):
    assert sku_matcher.score_color(wanted, offered) == score


@pytest.mark.parametrize('wanted, offered, score', [
    (None, '标准版', 0.8),
    (None, '全网通5G', 0.5),
    ('5G', '全网通5G', 1.0),
    ('蓝牙版', None, 0.0),
    ('蓝牙版', 'eSIM版', 0.0),
])
def test_score_version(sku_matcher, wanted, offered, score):
    assert sku_matcher.score_version(wanted, offered) == score


def test_score_spec(sku_matcher):
    assert sku_matcher.score_spec('vivo S30 12+512 可可黑', '12+512') == 1.0
    assert sku_matcher.score_spec('vivo S30 12+512', '12+512 可可黑') == pytest.approx(0.5)
    assert sku_matcher.score_spec(None, '12+512') == 0.0


def test_variant_attributes_read_spec_and_name(sku_matcher, index):
    attrs = sku_matcher.variant_attributes(_entry(index, 101).variants[0])
    assert attrs['capacity'] == '12+512'
    assert attrs['color'] == '可可黑'
    assert attrs['version'] == '全网通5G'


def test_variant_attributes_structured_fields_win(sku_matcher):
    variant = Variant(id=1, name='华为 Mate 60 Pro 12+256 雅丹黑', capacity='12GB+512GB',
                      color='雅川青', version='卫星通信版')
    attrs = sku_matcher.variant_attributes(variant)
    assert attrs == {'color': '雅川青', 'capacity': '12+512', 'version': '卫星通信版',
                     'size': None, 'band': None, 'spec': None}


def test_best_variant_by_color_and_capacity(sku_matcher, vocab_extractor, index):
    info = vocab_extractor.extract_all('Vivo S30Promini 5G(12+512)可可黑')
    result = sku_matcher.find_best_match(_entry(index, 101), info)
    assert result.variant.id == 1001
    assert result.score == 1.0
    assert set(result.spec_matches) == {'color', 'capacity', 'version'}


def test_capacity_decides_between_same_colors(sku_matcher, vocab_extractor, index):
    info = vocab_extractor.extract_all('vivo S30 Pro mini 12+256 可可黑')
    assert sku_matcher.find_best_match(_entry(index, 101), info).variant.id == 1003


def test_watch_uses_size_and_band(sku_matcher, vocab_extractor, index):
    info = vocab_extractor.extract_all('华为 GT5 46mm 复合编织表带 曜石黑')
    result = sku_matcher.find_best_match(_entry(index, 203), info)
    assert result.variant.id == 2031
    assert result.score == 1.0
    assert 'capacity' not in result.spec_matches
    assert result.spec_matches['band'] == {'matched': True, 'score': 1.0}


def test_missing_dimension_on_both_sides_is_skipped(sku_matcher, vocab_extractor, index):
    info = vocab_extractor.extract_all('华为Mate60Pro 12GB+512GB 雅川青')
    result = sku_matcher.find_best_match(_entry(index, 201), info)
    assert result.variant.id == 2001
    assert result.score == 1.0
    assert 'version' not in result.spec_matches


def test_first_variant_wins_ties(sku_matcher, vocab_extractor):
    variants = [Variant(id='a', name='vivo X200 可可黑', color='可可黑'),
                Variant(id='b', name='vivo X200 可可黑', color='可可黑')]
    info = vocab_extractor.extract_all('vivo X200 可可黑')
    assert sku_matcher.find_best_match(None, info, variants=variants).variant.id == 'a'


def test_no_variants(sku_matcher, vocab_extractor, index):
    info = vocab_extractor.extract_all('苹果 iPhone 17 128GB')
    result = sku_matcher.find_best_match(_entry(index, 302), info)
    assert result.variant is None
    assert result.score == 0.0
    assert sku_matcher.find_best_match(None, info).variant is None


def test_product_type_override_changes_weights(sku_matcher, vocab_extractor, index):
    info = vocab_extractor.extract_all('华为 Mate 60 Pro 12+1T 雅川青')
    phone = sku_matcher.find_best_match(_entry(index, 201), info)
    band = sku_matcher.find_best_match(_entry(index, 201), info, product_type='band')
    assert 'capacity' in phone.spec_matches
    assert 'capacity' not in band.spec_matches
