import pytest

from text_normalize import (
    expand_abbreviations,
    model_suffixes,
    normalize_capacity,
    normalize_model_key,
    preprocess_title,
    spell_plus_suffix,
    split_compound_suffixes,
    tokenize,
)


@pytest.mark.parametrize('raw, expected', [
    ('S30 Pro mini', 's30promini'),
    ('Mate-60_Pro', 'mate60pro'),
    ('  Watch GT 5 ', 'watchgt5'),
    ('s30promini', 's30promini'),
])
def test_normalize_model_key(raw, expected):
    assert normalize_model_key(raw) == expected


@pytest.mark.parametrize('raw', ['S30 Pro mini', 'Mate-60_Pro', 'iPhone 17 Pro Max', 'x-note'])
def test_normalize_model_key_is_idempotent(raw):
    once = normalize_model_key(raw)
    assert normalize_model_key(once) == once


@pytest.mark.parametrize('raw', [None, '', ' - _ '])
def test_normalize_model_key_empty(raw):
    assert normalize_model_key(raw) is None


def test_split_compound_suffixes():
    assert split_compound_suffixes('promax') == ('pro', 'max')
    assert split_compound_suffixes('promini') == ('pro', 'mini')
    assert split_compound_suffixes('prose') == ('prose',)
    assert split_compound_suffixes('pro') == ('pro',)


def test_tokenize_splits_glued_suffixes_and_cjk():
    assert tokenize('17promax') == ['17', 'pro', 'max']
    assert tokenize('Mate60Pro 雅川') == ['mate', '60', 'pro', '雅', '川']
    assert tokenize('') == []
    assert tokenize(None) == []


@pytest.mark.parametrize('text, tokens', [
    ('iphone17', ['iphone', '17']),
    ('Fold3', ['fold', '3']),
    ('Mate 60 Pro+', ['mate', '60', 'pro', 'plus']),
    ('12GB+256GB', ['12', 'gb', '256', 'gb']),
])
def test_tokenize_splits_letter_digit_runs(text, tokens):
    assert tokenize(text) == tokens


@pytest.mark.parametrize('raw, expected', [
    ('Mate 60 Pro+', 'Mate 60 Pro plus '),
    ('12GB+256GB', '12GB+256GB'),
    ('12+512', '12+512'),
])
def test_spell_plus_suffix(raw, expected):
    assert spell_plus_suffix(raw) == expected


def test_model_suffixes():
    assert model_suffixes('S30Promini') == ['pro', 'mini']
    assert model_suffixes('iPhone 17 Pro Max') == ['pro', 'max']
    assert model_suffixes('Mate 60') == []


def test_preprocess_title_strips_noise_and_normalizes_capacity(config):
    raw = '【演示机】华为 Mate 60 Pro 12GB+512GB 雅川青 送充电器'
    assert preprocess_title(raw, config) == '华为 Mate 60 Pro 12+512 雅川青'


def test_preprocess_title_corrects_typos(config):
    assert '雾凇蓝' in preprocess_title('荣耀 Magic6 雾松蓝', config)


def test_preprocess_title_expands_abbreviations(config):
    assert preprocess_title('华为 GT5 46mm', config) == '华为 Watch GT 5 46mm'


def test_expand_abbreviations_skips_when_already_expanded():
    assert expand_abbreviations('华为 Watch GT5', {'GT5': 'Watch GT 5'}) == '华为 Watch GT5'


def test_preprocess_title_applies_brand_aliases(config):
    assert preprocess_title('HUAWEI Mate 60', config) == '华为 Mate 60'


@pytest.mark.parametrize('raw', [None, '', '   '])
def test_preprocess_title_blank(config, raw):
    assert preprocess_title(raw, config) == ''


@pytest.mark.parametrize('raw, expected', [
    ('8GB + 256GB', '8+256'),
    ('12GB+1TB', '12+1T'),
    ('iPad 1 TB', 'iPad 1TB'),
    ('X200 256 GB', 'X200 256GB'),
    ('12 + 512', '12+512'),
])
def test_normalize_capacity(raw, expected):
    assert normalize_capacity(raw, {}) == expected
