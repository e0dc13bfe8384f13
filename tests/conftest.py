import pytest

from dictionaries import default_config
from extractor import InfoExtractor
from matcher import CatalogMatcher
from strategy import DefaultMatchStrategy

SAMPLE_CATALOG = [
    {'id': 101, 'name': 'vivo S30 Pro mini 全网通5G', 'brand': 'vivo', 'variants': [
        {'variantID': 1001, 'color': '可可黑', 'spec': '12+512'},
        {'variantID': 1002, 'color': '雪域白', 'spec': '12+256'},
        {'variantID': 1003, 'color': '可可黑', 'spec': '12+256'},
    ]},
    {'id': 102, 'name': 'vivo S30 Pro mini 三丽鸥家族系列礼盒', 'brand': 'vivo', 'variants': [
        {'variantID': 1011, 'color': '可可黑', 'spec': '12+512'},
    ]},
    {'id': 201, 'name': '华为 Mate 60 Pro', 'brand': '华为', 'variants': [
        {'variantID': 2001, 'color': '雅川青', 'spec': '12+512'},
        {'variantID': 2002, 'color': '雅丹黑', 'spec': '12+1T'},
    ]},
    {'id': 202, 'name': '华为 Mate 60', 'brand': '华为', 'variants': [
        {'variantID': 2011, 'color': '雅川青', 'spec': '12+256'},
    ]},
    {'id': 203, 'name': '华为 Watch GT 5', 'brand': '华为', 'variants': [
        {'variantID': 2031, 'color': '曜石黑', 'size': '46mm', 'band': '复合编织表带'},
        {'variantID': 2032, 'color': '雾凇蓝', 'size': '41mm', 'band': '氟橡胶表带'},
    ]},
    {'id': 301, 'name': '苹果 iPhone 17 Pro Max', 'brand': '苹果', 'variants': [
        {'variantID': 3001, 'color': '深空黑', 'spec': '256GB'},
    ]},
    {'id': 302, 'name': '苹果 iPhone 17', 'brand': '苹果', 'variants': []},
]


@pytest.fixture(scope='session')
def config():
    return default_config()


@pytest.fixture(scope='session')
def extractor(config):
    return InfoExtractor(config)


@pytest.fixture(scope='session')
def strategy(extractor):
    return DefaultMatchStrategy(extractor)


@pytest.fixture
def sample_catalog():
    return [dict(record) for record in SAMPLE_CATALOG]


@pytest.fixture(scope='session')
def catalog_matcher():
    return CatalogMatcher(SAMPLE_CATALOG)
