import pytest

from extractor import SOURCE_INFERRED, InfoExtractor


def test_spec_scenario_vivo_glued_model(extractor):
    info = extractor.extract_all('Vivo S30Promini 5G(12+512)可可黑')
    assert info.brand.value == 'vivo'
    assert info.model.value == 's30promini'
    assert info.color.value == '可可黑'
    assert info.capacity.value == '12+512'
    assert info.version_name == '5G'
    assert info.product_type == 'phone'


def test_no_model_in_generic_title(extractor):
    info = extractor.extract_all('手机 5G 全网通')
    assert info.model.value is None
    assert info.model.confidence == 0.0
    assert info.model.source == SOURCE_INFERRED


def test_empty_input_gives_empty_fields(extractor):
    info = extractor.extract_all('')
    assert info.brand.value is None
    assert info.model.value is None
    assert info.color.value is None
    assert info.preprocessed_input == ''


@pytest.mark.parametrize('title, brand, confidence', [
    ('华为 Mate 60 Pro', '华为', 1.0),
    ('huawei mate 60', '华为', 0.95),
    ('vivoX200 12+256', 'vivo', 1.0),
])
def test_extract_brand(extractor, title, brand, confidence):
    result = extractor.extract_brand(title)
    assert result.value == brand
    assert result.confidence == confidence


def test_brand_alias_goes_through_preprocessing(extractor):
    assert extractor.extract_all('HUAWEI Mate 60 Pro').brand.value == '华为'


def test_brands_equivalent_is_symmetric(extractor):
    assert extractor.brands_equivalent('华为', 'HUAWEI')
    assert extractor.brands_equivalent('HUAWEI', '华为')
    assert not extractor.brands_equivalent('华为', 'vivo')
    assert not extractor.brands_equivalent(None, '华为')


@pytest.mark.parametrize('title, model', [
    ('华为Mate60Pro 12GB+512GB 雅川青', 'mate60pro'),
    ('华为 Mate 60 Pro', 'mate60pro'),
    ('华为 Mate 60', 'mate60'),
    ('vivo Y300i 8+256 星光白', 'y300i'),
    ('Apple 17ProMax 256GB 深空黑', '17promax'),
    ('苹果 iPhone 17 Pro Max', 'iphone17promax'),
    ('华为 GT5 46mm 复合编织表带', 'watchgt5'),
    ('vivo S30 5G', 's30'),
])
def test_extract_model(extractor, title, model):
    assert extractor.extract_all(title).model.value == model


def test_model_display_keeps_spacing(extractor):
    display, confidence, _ = extractor.extract_model_display('vivo S30 Pro mini 全网通5G')
    assert display == 's30 pro mini'
    assert confidence == 1.0


def test_extract_color_prefers_vocabulary(config):
    extractor = InfoExtractor(config, ['可可黑', '黑'])
    assert extractor.color_vocabulary == ('可可黑',)
    assert extractor.extract_color('vivo S30 可可黑色').value == '可可黑'


def test_extract_color_trailing_run(extractor):
    result = extractor.extract_color('华为 Mate 60 Pro 12+512 雅川青')
    assert result.value == '雅川青'


def test_extract_color_basic_char_fallback(extractor):
    result = extractor.extract_color('vivo X200 黑')
    assert result.value == '黑'
    assert result.source == SOURCE_INFERRED


@pytest.mark.parametrize('text, capacity, confidence', [
    ('vivo X200 12+256', '12+256', 1.0),
    ('苹果 iPhone 17 16+1T', '16+1T', 1.0),
    ('vivo X200 5G 256GB', '256', 0.9),
    ('iPad 1TB', '1T', 0.9),
    ('watch 16GB', '16', 0.7),
])
def test_extract_capacity(extractor, text, capacity, confidence):
    result = extractor.extract_capacity(text)
    assert result.value == capacity
    assert result.confidence == confidence


def test_network_marker_is_not_capacity(extractor):
    assert extractor.extract_capacity('vivo X200 5G').value is None


@pytest.mark.parametrize('text, version', [
    ('华为 Mate 60 Pro 全网通5G', '全网通5G'),
    ('vivo X200 蓝牙版', '蓝牙版'),
    ('华为 Watch GT 5 eSIM版', 'eSIM版'),
    ('vivo X200 5G', '5G'),
    ('华为 Mate 60 典藏版', '典藏版'),
])
def test_extract_version(extractor, text, version):
    assert extractor.extract_version(text).value.name == version


def test_version_keyword_is_bounded(extractor):
    assert extractor.extract_version('vivo X200 12+256 5GB').value is None


def test_watch_fields(extractor):
    info = extractor.extract_all('华为 GT5 46mm 复合编织表带 曜石黑')
    assert info.product_type == 'watch'
    assert info.watch_size.value == '46mm'
    assert info.watch_band.value == '复合编织表带'
    assert info.watch_band.confidence == 1.0


def test_watch_fields_only_for_wearables(extractor):
    info = extractor.extract_all('华为 Mate 60 Pro 12+512 雅川青')
    assert info.watch_size.value is None
    assert info.watch_band.value is None


@pytest.mark.parametrize('text, product_type', [
    ('华为 Watch GT 5', 'watch'),
    ('小米手环 9', 'band'),
    ('华为 MatePad 11.5', 'tablet'),
    ('华为 FreeBuds Pro 3', 'earbuds'),
    ('vivo X200', 'phone'),
])
def test_detect_product_type(extractor, text, product_type):
    assert extractor.detect_product_type(text) == product_type


@pytest.mark.parametrize('glued, spaced', [
    ('vivo X Fold3 Pro', 'vivo X Fold 3 Pro'),
    ('三星 Z Flip6', '三星 Z Flip 6'),
])
def test_model_key_ignores_spacing(extractor, glued, spaced):
    assert extractor.extract_all(glued).model.value == extractor.extract_all(spaced).model.value


def test_single_letter_product_word_with_glued_number(extractor):
    assert extractor.extract_all('vivo X Fold3 Pro').model.value == 'xfold3pro'


def test_known_models_win_over_the_pattern_cascade(config):
    catalog_aware = InfoExtractor(config, known_models={'华为': ['novaflip', 'mate60']})
    assert catalog_aware.extract_model('华为 novaflip 樱语粉').value == 'novaflip'
    assert InfoExtractor(config).extract_model('华为 novaflip 樱语粉').value is None


def test_known_model_never_stops_before_a_suffix(config):
    catalog_aware = InfoExtractor(config, known_models={'华为': ['mate60']})
    assert catalog_aware.extract_all('华为 Mate 60 Pro').model.value == 'mate60pro'


def test_known_models_are_narrowed_by_brand(config):
    catalog_aware = InfoExtractor(config, known_models={'vivo': ['novaflip']})
    assert catalog_aware.extract_model('华为 novaflip').value is None
    assert catalog_aware.extract_model('novaflip').value == 'novaflip'


@pytest.mark.parametrize('title, model', [
    ('小米手环9 NFC版 黑色', '手环9'),
    ('小米手环 9 Pro', '手环9pro'),
    ('华为手表4', '手表4'),
])
def test_cjk_wearable_model(extractor, title, model):
    info = extractor.extract_all(title)
    assert info.model.value == model
    assert info.model.confidence == 0.95


def test_screen_size_is_not_a_color(extractor):
    info = extractor.extract_all('华为 MatePad Pro 12+512 13.2英寸')
    assert info.color.value is None
    assert info.capacity.value == '12+512'


def test_color_after_screen_size(extractor):
    assert extractor.extract_color('华为 MatePad Pro 13.2英寸曜石黑').value == '曜石黑'


def test_plus_suffix_is_part_of_the_model(extractor):
    assert extractor.extract_all('华为 Mate 60 Pro+ 12+512 雅川青').model.value == 'mate60proplus'
    assert extractor.extract_all('华为 Mate 60 Pro 12+512 雅川青').model.value == 'mate60pro'
