import pytest

from dictionaries import PRIORITY_OTHER, PRIORITY_STANDARD, PRIORITY_VERSION_MATCH, load_config
from extractor import InfoExtractor
from strategy import DefaultMatchStrategy, MatchStrategy


@pytest.mark.parametrize('input_text, candidate_name', [
    ('vivo S30 Pro mini 可可黑', 'vivo S30 Pro mini 三丽鸥家族系列礼盒'),
    ('华为 Watch GT 5 蓝牙版', '华为 Watch GT 5 eSIM版'),
    ('华为 Watch GT 5 eSIM版', '华为 Watch GT 5 蓝牙版'),
    ('华为 Mate 60 Pro', '华为 原装充电器 66W'),
])
def test_should_filter(strategy, input_text, candidate_name):
    assert strategy.should_filter(input_text, candidate_name)


@pytest.mark.parametrize('input_text, candidate_name', [
    ('vivo S30 Pro mini 礼盒', 'vivo S30 Pro mini 礼盒版'),
    ('HUAWEI FreeBuds Pro 3', '华为 FreeBuds Pro 3 无线耳机'),
    ('华为 Mate 60 Pro', '华为 Mate 60 Pro'),
])
def test_should_not_filter(strategy, input_text, candidate_name):
    assert not strategy.should_filter(input_text, candidate_name)


def test_filter_reason_names_the_keyword(strategy):
    reason = strategy.filter_reason('华为 Mate 60 Pro', '华为 原装充电器 66W')
    assert '原装' in reason or '充电器' in reason


@pytest.mark.parametrize('input_text, candidate_name, priority', [
    ('vivo S30', 'vivo S30 Pro mini', PRIORITY_STANDARD),
    ('华为 Watch GT 5 蓝牙版', '华为 Watch GT 5 蓝牙版', PRIORITY_VERSION_MATCH),
    ('华为 Watch GT 5', '华为 Watch GT 5 蓝牙版', PRIORITY_OTHER),
    ('vivo S30', 'vivo S30 礼盒', PRIORITY_OTHER),
])
def test_get_priority(strategy, input_text, candidate_name, priority):
    assert strategy.get_priority(input_text, candidate_name) == priority


def test_brand_match_and_keys(strategy):
    assert strategy.is_brand_match('vivo', 'VIVO')
    assert strategy.is_brand_match('HUAWEI', '华为')
    assert not strategy.is_brand_match('华为', '荣耀')
    assert strategy.brand_keys('HUAWEI') == ['华为', 'huawei']
    assert strategy.brand_keys(None) == []


def test_extract_model_returns_normalized_key(strategy):
    assert strategy.extract_model('vivo S30 Pro mini') == 's30promini'
    assert strategy.extract_brand('vivo S30 Pro mini') == 'vivo'


class _MinimalStrategy(MatchStrategy):

    def extract_brand(self, text):
        return None

    def extract_model(self, text, brand=None):
        return None

    def is_brand_match(self, input_brand, candidate_brand):
        return input_brand == candidate_brand

    def should_filter(self, input_text, candidate_name):
        return False

    def get_priority(self, input_text, candidate_name):
        return 1

    def tokenize(self, text):
        return text.split()


def test_base_brand_keys_use_raw_and_lowercase():
    assert _MinimalStrategy().brand_keys('OPPO') == ['OPPO', 'oppo']
    assert _MinimalStrategy().brand_keys('vivo') == ['vivo']


def test_strategy_contract_is_abstract():
    with pytest.raises(TypeError):
        MatchStrategy()


def test_filter_tables_come_from_config(strategy):
    config = load_config(overrides={'gift_box_keywords': ['礼盒']})
    custom = DefaultMatchStrategy(InfoExtractor(config))
    assert strategy.should_filter('vivo S30 Pro mini 可可黑', 'vivo S30 Pro mini 家族系列')
    assert not custom.should_filter('vivo S30 Pro mini 可可黑', 'vivo S30 Pro mini 家族系列')
    assert strategy.get_priority('vivo S30', 'vivo S30 系列') == PRIORITY_OTHER
    assert custom.get_priority('vivo S30', 'vivo S30 系列') == PRIORITY_STANDARD


def test_accessory_exemption_from_config():
    config = load_config(overrides={'accessory_exemptions': {}})
    custom = DefaultMatchStrategy(InfoExtractor(config))
    assert custom.should_filter('HUAWEI FreeBuds Pro 3', '华为 FreeBuds Pro 3 无线耳机')
