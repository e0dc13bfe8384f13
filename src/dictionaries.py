"""
Normalization dictionaries, keyword tables and scoring constants for title matching.

The DEFAULT_* tables are defaults. load_config() merges them with an optional JSON
file and caller overrides, validates the result and freezes it into a MatcherConfig.
The config is built once per process (or per catalog load) and passed explicitly to
the extractor, the matchers and the SKU scorer, which read keyword tables only from it.
The remaining upper-case tables (MODEL_SUFFIXES, MODEL_NOISE_LATIN, ...) describe the
model-name grammar itself and are not configurable.

Config file format (JSON, every key optional, a present key replaces the default table):
    {
        "brands": [{"name": "华为", "spell": "huawei"}, ...],
        "model_aliases": {"promini": "pro mini", ...},
        "typo_corrections": {"雾松蓝": "雾凇蓝", ...},
        "abbreviations": {"GT5": "Watch GT 5", ...},
        "brand_aliases": {"华为": ["HUAWEI"], ...},
        "capacity_normalizations": {"8GB+256GB": "8+256", ...},
        "color_variants": {"雾凇蓝": ["雾松蓝"], ...},
        "product_types": [{"id": "phone", "name": "手机", "keywords": [...],
                           "specWeights": {"capacity": 0.4, ...}}, ...],
        "gift_box_keywords": ["礼盒", "套装", ...],
        "accessory_exemptions": {"耳机": ["buds", "耳机"]},
        "version_compatibility": {"5G版": ["5G"], ...},
        "mutually_exclusive_versions": [["蓝牙版", "eSIM版"], ...],
        ...
        "scoring": {"KEYWORD_BONUS_CAP": 0.1, ...}
    }
Keyword tables (gift_keywords, accessory_keywords, network_version_keywords,
special_edition_keywords, basic_color_chars, color_suffix_denylist, ...) are lists
of strings.
"""

import json
import logging
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)


class MatcherError(Exception):
    """Base error for the matcher. Raised only at load time, never per request."""


class ConfigError(MatcherError):
    """A configuration table is structurally invalid."""


# ---------------------------------------------------------------------------
# Scoring constants
# ---------------------------------------------------------------------------
DEFAULT_MATCH_THRESHOLD = 0.5     # Minimum SPU score the orchestrator will return

KEYWORD_MIN_TOKEN_LENGTH = 3      # Input tokens shorter than this never earn a keyword bonus
KEYWORD_BONUS_PER_TOKEN = 0.05
KEYWORD_BONUS_CAP = 0.10

MODEL_CODE_BONUS = 0.10           # Both sides carry the same XXX-XX00 style model code
SPECIAL_EDITION_BONUS = 0.05      # Per special-edition keyword present on both sides
MODEL_DETAIL_BONUS_CAP = 0.15

PARTIAL_TOKEN_FACTOR = 0.7        # Containment credit: shorter/longer * factor
FUZZY_MIN_SIMILARITY = 0.5        # Model similarity must be strictly above this
FUZZY_BASE_SCORE = 0.4
FUZZY_SIMILARITY_WEIGHT = 0.6
FUZZY_NO_BRAND_BASE = 0.3         # Starting score when the input brand is unknown

SUFFIX_EXTRA_PENALTY = 0.1        # Per suffix the candidate has beyond the input's
SHORT_CANDIDATE_PENALTY = 0.5     # Length score multiplier when candidate < half the input

VERSION_EXACT = 1.0
VERSION_COMPATIBLE = 0.95
VERSION_STANDARD_DEFAULT = 0.8    # No input version, candidate explicitly standard
VERSION_NEUTRAL = 0.5

COLOR_EXACT = 1.0
COLOR_CONTAINS = 0.8
COLOR_BASIC_SHARED = 0.5
CAPACITY_STORAGE_ONLY = 0.7

SCORE_EPSILON = 1e-9              # Scores closer than this are a tie

PRIORITY_STANDARD = 3             # No gift box, no network edition wording
PRIORITY_VERSION_MATCH = 2        # Network edition shared with the input
PRIORITY_OTHER = 1


@dataclass(frozen=True)
class ScoringConstants:
    """Every tuned number used by the matchers, overridable with dataclasses.replace()."""

    DEFAULT_MATCH_THRESHOLD: float = DEFAULT_MATCH_THRESHOLD
    KEYWORD_MIN_TOKEN_LENGTH: int = KEYWORD_MIN_TOKEN_LENGTH
    KEYWORD_BONUS_PER_TOKEN: float = KEYWORD_BONUS_PER_TOKEN
    KEYWORD_BONUS_CAP: float = KEYWORD_BONUS_CAP
    MODEL_CODE_BONUS: float = MODEL_CODE_BONUS
    SPECIAL_EDITION_BONUS: float = SPECIAL_EDITION_BONUS
    MODEL_DETAIL_BONUS_CAP: float = MODEL_DETAIL_BONUS_CAP
    PARTIAL_TOKEN_FACTOR: float = PARTIAL_TOKEN_FACTOR
    FUZZY_MIN_SIMILARITY: float = FUZZY_MIN_SIMILARITY
    FUZZY_BASE_SCORE: float = FUZZY_BASE_SCORE
    FUZZY_SIMILARITY_WEIGHT: float = FUZZY_SIMILARITY_WEIGHT
    FUZZY_NO_BRAND_BASE: float = FUZZY_NO_BRAND_BASE
    SUFFIX_EXTRA_PENALTY: float = SUFFIX_EXTRA_PENALTY
    SHORT_CANDIDATE_PENALTY: float = SHORT_CANDIDATE_PENALTY
    VERSION_EXACT: float = VERSION_EXACT
    VERSION_COMPATIBLE: float = VERSION_COMPATIBLE
    VERSION_STANDARD_DEFAULT: float = VERSION_STANDARD_DEFAULT
    VERSION_NEUTRAL: float = VERSION_NEUTRAL
    COLOR_EXACT: float = COLOR_EXACT
    COLOR_CONTAINS: float = COLOR_CONTAINS
    COLOR_BASIC_SHARED: float = COLOR_BASIC_SHARED
    CAPACITY_STORAGE_ONLY: float = CAPACITY_STORAGE_ONLY
    SCORE_EPSILON: float = SCORE_EPSILON


# ---------------------------------------------------------------------------
# Brands
# ---------------------------------------------------------------------------

class Brand(NamedTuple):
    name: str                 # Canonical display name, usually the Chinese name
    spell: Optional[str]      # Phonetic / Latin alias


DEFAULT_BRANDS: List[Dict[str, str]] = [
    {'name': '华为', 'spell': 'huawei'},
    {'name': '荣耀', 'spell': 'honor'},
    {'name': '小米', 'spell': 'xiaomi'},
    {'name': '红米', 'spell': 'redmi'},
    {'name': 'vivo', 'spell': 'vivo'},
    {'name': 'iQOO', 'spell': 'iqoo'},
    {'name': 'OPPO', 'spell': 'oppo'},
    {'name': '一加', 'spell': 'oneplus'},
    {'name': '真我', 'spell': 'realme'},
    {'name': '苹果', 'spell': 'apple'},
    {'name': '三星', 'spell': 'samsung'},
    {'name': '魅族', 'spell': 'meizu'},
    {'name': '努比亚', 'spell': 'nubia'},
    {'name': '中兴', 'spell': 'zte'},
    {'name': '摩托罗拉', 'spell': 'motorola'},
    {'name': '联想', 'spell': 'lenovo'},
    {'name': '索尼', 'spell': 'sony'},
    {'name': '谷歌', 'spell': 'google'},
]

# Alternate spellings rewritten to the canonical brand before extraction.
# Word-bounded, longest alias first, so "MI" never rewrites inside "XIAOMI".
DEFAULT_BRAND_ALIASES: Dict[str, List[str]] = {
    '华为': ['HUAWEI', 'Huawei'],
    '小米': ['XIAOMI', 'Xiaomi', 'MI'],
    '荣耀': ['HONOR', 'Honor'],
    '一加': ['OnePlus', 'One Plus'],
    '真我': ['Realme'],
}


# ---------------------------------------------------------------------------
# Text mappings
# ---------------------------------------------------------------------------

# Compact model spellings expanded before the model pattern cascade
DEFAULT_MODEL_ALIASES: Dict[str, str] = {
    'promini': 'pro mini',
    'promax': 'pro max',
    'proplus': 'pro plus',
    'ultramax': 'ultra max',
    'watchgt': 'watch gt',
    'watchfit': 'watch fit',
    'watchd': 'watch d',
    'xnote': 'x note',
    'xfold': 'x fold',
    'xflip': 'x flip',
}

DEFAULT_TYPO_CORRECTIONS: Dict[str, str] = {
    '雾松蓝': '雾凇蓝',
    '耀石黑': '曜石黑',
    '羽沙白': '羽砂白',
}

DEFAULT_ABBREVIATIONS: Dict[str, str] = {
    'GT5': 'Watch GT 5',
    'GT4': 'Watch GT 4',
    'GT3': 'Watch GT 3',
}

DEFAULT_CAPACITY_NORMALIZATIONS: Dict[str, str] = {
    '8GB+256GB': '8+256',
    '12GB+256GB': '12+256',
    '12GB+512GB': '12+512',
    '16GB+1TB': '16+1T',
}

# Distinct spellings of one color; equivalence is symmetric and covers the whole group
DEFAULT_COLOR_VARIANTS: Dict[str, List[str]] = {
    '雾凇蓝': ['雾松蓝'],
    '曜石黑': ['耀石黑'],
    '羽砂白': ['羽沙白'],
}

# Basic color families used when two colors share no basic color character
DEFAULT_COLOR_FAMILIES: Dict[str, List[str]] = {
    '黑': ['黑', '曜', '玄', '墨', '夜', '深空'],
    '白': ['白', '雪', '瓷', '月光'],
    '蓝': ['蓝', '海', '天青', '冰川'],
    '绿': ['绿', '青', '翡翠', '松'],
    '金': ['金', '香槟', '琥珀'],
    '银': ['银', '钛', '星河'],
    '紫': ['紫', '薰衣草', '丁香'],
    '粉': ['粉', '樱', '桃'],
}

DEFAULT_BASIC_COLOR_CHARS = ('黑', '白', '蓝', '红', '绿', '紫', '粉', '金', '银', '灰', '棕', '青', '橙', '黄')
DEFAULT_SKU_BASIC_COLOR_CHARS = ('黑', '白', '蓝', '红', '绿', '金', '银', '灰', '粉', '紫')

# Trailing CJK phrases that look like colors but are edition or network wording
DEFAULT_COLOR_SUFFIX_DENYLIST = (
    '全网通', '网通', '版本', '标准', '套餐', '蓝牙版', '活力版', '优享版', '尊享版',
    '标准版', '基础版', '青春版', '旗舰版', '至尊版', '典藏版', '限定版', '纪念版',
    '特别版', '定制版', '英寸', '寸',
)

# Stripped before color extraction so product words never read as a color
DEFAULT_COLOR_NOISE_WORDS = (
    '智能手机', '手机', '智能手表', '手表', '平板电脑', '平板', '笔记本电脑', '笔记本',
    '无线耳机', '耳机', '手环', '全网通', '蓝牙', '软胶', '硅胶', '皮革', '陶瓷', '玻璃',
    '素皮', '钛合金', '官方', '标配', '原装', '正品', '国行',
)

# Latin noise stripped before model extraction; CJK runs are dropped wholesale
MODEL_NOISE_LATIN = ('wifi', 'wlan', 'esim', '5g', '4g', '3g', 'gb', 'tb', 'mm', 'lte', 'nfc')

# Generic two-word fallback never returns these words
MODEL_FALLBACK_STOPWORDS = frozenset([
    'wifi', 'esim', 'lte', 'nfc', 'new', 'official', 'version', 'edition', 'full', 'netcom',
    'gb', 'tb', 'mm',
])

# Model words that pair with a following word or number ("watch gt", "x fold 3")
MODEL_PRODUCT_WORDS = ('watch', 'band', 'buds', 'pad', 'fold', 'flip', 'book')
SINGLE_LETTER_PRODUCT_WORDS = ('note', 'fold', 'flip', 'pad')

# Model suffix words. Tie-break suffix matching uses the first ten;
# glued runs ("promax") are split only into words of three or more letters.
MODEL_SUFFIXES = ('pro', 'max', 'plus', 'ultra', 'mini', 'se', 'air', 'lite', 'note', 'turbo',
                  'fold', 'flip')
TIE_BREAK_SUFFIXES = MODEL_SUFFIXES[:10]
COMPOUND_SUFFIXES = tuple(s for s in MODEL_SUFFIXES if len(s) >= 3)

# Removed from raw titles before anything else
DEFAULT_DEMO_MARKERS = ('演示机', '样机', '展示机', '体验机', '试用机', '测试机')
DEFAULT_BUNDLED_ACCESSORY_KEYWORDS = (
    '充电器', '充电线', '数据线', '耳机', '保护壳', '保护套', '保护膜', '贴膜', '钢化膜',
    '支架', '转接头', '适配器', '电源', '配件',
)


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------

class VersionKeyword(NamedTuple):
    name: str
    keywords: Tuple[str, ...]
    priority: int
    tier: str                 # network | standard | premium
    confidence: float


TIER_CONFIDENCE = {'network': 1.0, 'standard': 0.95, 'premium': 0.9}

# Checked in order: first hit wins, so longer network phrases come first
DEFAULT_VERSION_KEYWORDS: List[Dict[str, Any]] = [
    {'name': '全网通5G', 'keywords': ['全网通5G'], 'priority': 10, 'tier': 'network'},
    {'name': '卫星通信版', 'keywords': ['卫星通信版'], 'priority': 10, 'tier': 'network'},
    {'name': '全网通版', 'keywords': ['全网通版'], 'priority': 9, 'tier': 'network'},
    {'name': '蓝牙版', 'keywords': ['蓝牙版'], 'priority': 9, 'tier': 'network'},
    {'name': 'eSIM版', 'keywords': ['eSIM版'], 'priority': 9, 'tier': 'network'},
    {'name': 'WiFi版', 'keywords': ['WiFi版', 'WLAN版'], 'priority': 9, 'tier': 'network'},
    {'name': '5G版', 'keywords': ['5G版'], 'priority': 9, 'tier': 'network'},
    {'name': '4G版', 'keywords': ['4G版'], 'priority': 8, 'tier': 'network'},
    {'name': '3G版', 'keywords': ['3G版'], 'priority': 7, 'tier': 'network'},
    {'name': '5G', 'keywords': ['5G'], 'priority': 9, 'tier': 'network'},
    {'name': '4G', 'keywords': ['4G'], 'priority': 8, 'tier': 'network'},
    {'name': '3G', 'keywords': ['3G'], 'priority': 7, 'tier': 'network'},
    {'name': '活力版', 'keywords': ['活力版'], 'priority': 5, 'tier': 'standard'},
    {'name': '优享版', 'keywords': ['优享版'], 'priority': 5, 'tier': 'standard'},
    {'name': '尊享版', 'keywords': ['尊享版'], 'priority': 5, 'tier': 'standard'},
    {'name': '青春版', 'keywords': ['青春版'], 'priority': 5, 'tier': 'standard'},
    {'name': '轻享版', 'keywords': ['轻享版'], 'priority': 5, 'tier': 'standard'},
    {'name': '标准版', 'keywords': ['标准版'], 'priority': 4, 'tier': 'standard'},
    {'name': '基础版', 'keywords': ['基础版'], 'priority': 4, 'tier': 'standard'},
    {'name': '普通版', 'keywords': ['普通版'], 'priority': 4, 'tier': 'standard'},
    {'name': 'Pro版', 'keywords': ['Pro版'], 'priority': 6, 'tier': 'standard'},
    {'name': '旗舰版', 'keywords': ['旗舰版'], 'priority': 6, 'tier': 'premium'},
    {'name': '至尊版', 'keywords': ['至尊版'], 'priority': 6, 'tier': 'premium'},
    {'name': '典藏版', 'keywords': ['典藏版'], 'priority': 5, 'tier': 'premium'},
    {'name': '限定版', 'keywords': ['限定版'], 'priority': 5, 'tier': 'premium'},
    {'name': '纪念版', 'keywords': ['纪念版'], 'priority': 5, 'tier': 'premium'},
    {'name': '特别版', 'keywords': ['特别版'], 'priority': 5, 'tier': 'premium'},
    {'name': '定制版', 'keywords': ['定制版'], 'priority': 5, 'tier': 'premium'},
    {'name': '礼盒版', 'keywords': ['礼盒版', '礼盒'], 'priority': 3, 'tier': 'premium'},
    {'name': '套装版', 'keywords': ['套装版'], 'priority': 3, 'tier': 'premium'},
]

DEFAULT_STANDARD_VERSION_MARKERS = ('标准', '基础版', '普通版')

# Network labels that satisfy one another
DEFAULT_VERSION_COMPATIBILITY: Dict[str, List[str]] = {
    '全网通5G': ['5G', '5G版', '全网通版'],
    '5G版': ['5G'],
    '全网通版': ['5G', '4G', '3G'],
}

# Labels that can never describe the same device
DEFAULT_MUTUALLY_EXCLUSIVE_VERSIONS: List[List[str]] = [
    ['蓝牙版', 'eSIM版'],
    ['WiFi版', 'eSIM版'],
    ['WiFi版', '蓝牙版'],
]


# ---------------------------------------------------------------------------
# Candidate filters and priority
# ---------------------------------------------------------------------------
DEFAULT_GIFT_BOX_KEYWORDS = ('礼盒', '套装', '系列', '礼品', '礼包')
DEFAULT_GIFT_KEYWORDS = ('赠品', '定制', '限定', '立牌', '周边', '手办', '摆件')
DEFAULT_ACCESSORY_KEYWORDS = (
    '充电器', '充电线', '数据线', '耳机', '保护壳', '保护套', '保护膜', '贴膜', '钢化膜',
    '支架', '转接头', '适配器', '电源', '原装', '配件', '套餐', '底座', '充电底座', '无线充电',
)
# An accessory keyword is not a filter reason when the input names that product itself
DEFAULT_ACCESSORY_EXEMPTIONS: Dict[str, List[str]] = {
    '耳机': ['buds', '耳机', 'earphone', 'airpods'],
}
DEFAULT_NETWORK_VERSION_KEYWORDS = ('蓝牙版', 'eSIM版', 'esim版', '5G版', '4G版', '3G版', '全网通版')

DEFAULT_SPECIAL_EDITION_KEYWORDS = ('十周年', '周年', '纪念版', '限量版', '特别版')
MODEL_CODE_PATTERN = r'[a-z]{3}-[a-z]{2}\d{2}'


# ---------------------------------------------------------------------------
# Product types and SKU weights
# ---------------------------------------------------------------------------

class ProductType(NamedTuple):
    id: str
    name: str
    keywords: Tuple[str, ...]
    spec_weights: Mapping[str, float]


DEFAULT_PRODUCT_TYPE = 'phone'
DEFAULT_SPEC_WEIGHTS: Dict[str, float] = {'color': 0.3, 'capacity': 0.4, 'version': 0.3}

# Detection walks this list in order; phone is the fallback
DEFAULT_PRODUCT_TYPES: List[Dict[str, Any]] = [
    {'id': 'watch', 'name': '手表', 'keywords': ['watch', '手表'],
     'specWeights': {'size': 0.3, 'band': 0.2, 'color': 0.3, 'version': 0.2}},
    {'id': 'band', 'name': '手环', 'keywords': ['band', '手环'],
     'specWeights': {'color': 0.6, 'version': 0.4}},
    {'id': 'tablet', 'name': '平板', 'keywords': ['pad', '平板', 'tablet'],
     'specWeights': {'capacity': 0.4, 'color': 0.3, 'version': 0.3}},
    {'id': 'laptop', 'name': '笔记本', 'keywords': ['book', '笔记本'],
     'specWeights': {'capacity': 0.3, 'spec': 0.3, 'color': 0.2, 'version': 0.2}},
    {'id': 'earbuds', 'name': '耳机', 'keywords': ['buds', '耳机'],
     'specWeights': {'color': 0.6, 'version': 0.4}},
    {'id': 'phone', 'name': '手机', 'keywords': ['手机', 'phone'],
     'specWeights': {'capacity': 0.4, 'color': 0.3, 'version': 0.3}},
]

DEFAULT_WATCH_BAND_KEYWORDS = (
    '复合编织表带', '尼龙编织表带', '编织表带', '真皮表带', '素皮表带', '皮革表带',
    '不锈钢表带', '钛金属表带', '金属表带', '氟橡胶表带', '硅胶表带', '橡胶表带',
)
DEFAULT_GENERIC_BAND_KEYWORDS = ('表带', '腕带', '表链')


# ---------------------------------------------------------------------------
# Frozen config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatcherConfig:
    """Read-only bundle of every table the pipeline consults."""

    brands: Tuple[Brand, ...]
    model_aliases: Mapping[str, str]
    typo_corrections: Mapping[str, str]
    abbreviations: Mapping[str, str]
    brand_aliases: Mapping[str, Tuple[str, ...]]
    capacity_normalizations: Mapping[str, str]
    color_variants: Mapping[str, Tuple[str, ...]]
    color_families: Mapping[str, Tuple[str, ...]]
    product_types: Tuple[ProductType, ...]
    version_keywords: Tuple[VersionKeyword, ...]
    standard_version_markers: Tuple[str, ...]
    version_compatibility: Mapping[str, Tuple[str, ...]]
    mutually_exclusive_versions: Tuple[Tuple[str, str], ...]
    demo_markers: Tuple[str, ...]
    bundled_accessory_keywords: Tuple[str, ...]
    color_noise_words: Tuple[str, ...]
    color_suffix_denylist: frozenset
    basic_color_chars: Tuple[str, ...]
    sku_basic_color_chars: Tuple[str, ...]
    gift_box_keywords: Tuple[str, ...]
    gift_keywords: Tuple[str, ...]
    accessory_keywords: Tuple[str, ...]
    accessory_exemptions: Mapping[str, Tuple[str, ...]]
    network_version_keywords: Tuple[str, ...]
    special_edition_keywords: Tuple[str, ...]
    watch_band_keywords: Tuple[str, ...]
    generic_band_keywords: Tuple[str, ...]
    scoring: ScoringConstants = field(default_factory=ScoringConstants)
    _color_groups: Mapping[str, frozenset] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        groups: Dict[str, frozenset] = {}
        for key, spellings in self.color_variants.items():
            group = frozenset([key, *spellings])
            for color in group:
                groups[color] = groups.get(color, frozenset()) | group
        object.__setattr__(self, '_color_groups', MappingProxyType(groups))

    def colors_equivalent(self, a: Optional[str], b: Optional[str]) -> bool:
        """True when a and b are the same color or spellings of one variant group."""
        if not a or not b:
            return False
        if a == b:
            return True
        return b in self._color_groups.get(a, ()) or a in self._color_groups.get(b, ())

    def spec_weights(self, product_type: Optional[str]) -> Dict[str, float]:
        for pt in self.product_types:
            if pt.id == product_type:
                return dict(pt.spec_weights)
        return dict(DEFAULT_SPEC_WEIGHTS)


def _default_raw() -> Dict[str, Any]:
    return {
        'brands': DEFAULT_BRANDS,
        'model_aliases': DEFAULT_MODEL_ALIASES,
        'typo_corrections': DEFAULT_TYPO_CORRECTIONS,
        'abbreviations': DEFAULT_ABBREVIATIONS,
        'brand_aliases': DEFAULT_BRAND_ALIASES,
        'capacity_normalizations': DEFAULT_CAPACITY_NORMALIZATIONS,
        'color_variants': DEFAULT_COLOR_VARIANTS,
        'color_families': DEFAULT_COLOR_FAMILIES,
        'product_types': DEFAULT_PRODUCT_TYPES,
        'version_keywords': DEFAULT_VERSION_KEYWORDS,
        'standard_version_markers': DEFAULT_STANDARD_VERSION_MARKERS,
        'version_compatibility': DEFAULT_VERSION_COMPATIBILITY,
        'mutually_exclusive_versions': DEFAULT_MUTUALLY_EXCLUSIVE_VERSIONS,
        'demo_markers': DEFAULT_DEMO_MARKERS,
        'bundled_accessory_keywords': DEFAULT_BUNDLED_ACCESSORY_KEYWORDS,
        'color_noise_words': DEFAULT_COLOR_NOISE_WORDS,
        'color_suffix_denylist': DEFAULT_COLOR_SUFFIX_DENYLIST,
        'basic_color_chars': DEFAULT_BASIC_COLOR_CHARS,
        'sku_basic_color_chars': DEFAULT_SKU_BASIC_COLOR_CHARS,
        'gift_box_keywords': DEFAULT_GIFT_BOX_KEYWORDS,
        'gift_keywords': DEFAULT_GIFT_KEYWORDS,
        'accessory_keywords': DEFAULT_ACCESSORY_KEYWORDS,
        'accessory_exemptions': DEFAULT_ACCESSORY_EXEMPTIONS,
        'network_version_keywords': DEFAULT_NETWORK_VERSION_KEYWORDS,
        'special_edition_keywords': DEFAULT_SPECIAL_EDITION_KEYWORDS,
        'watch_band_keywords': DEFAULT_WATCH_BAND_KEYWORDS,
        'generic_band_keywords': DEFAULT_GENERIC_BAND_KEYWORDS,
        'scoring': {},
    }


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _str_mapping(raw: Any, key: str) -> Mapping[str, str]:
    if not isinstance(raw, dict):
        raise ConfigError(f"'{key}' must be an object of string → string, got {type(raw).__name__}")
    for k, v in raw.items():
        if not isinstance(k, str) or not isinstance(v, str):
            raise ConfigError(f"'{key}' entry {k!r} must map a string to a string")
    return MappingProxyType(dict(raw))


def _list_mapping(raw: Any, key: str) -> Mapping[str, Tuple[str, ...]]:
    if not isinstance(raw, dict):
        raise ConfigError(f"'{key}' must be an object of string → list, got {type(raw).__name__}")
    out = {}
    for k, v in raw.items():
        if not isinstance(v, (list, tuple)) or not all(isinstance(s, str) for s in v):
            raise ConfigError(f"'{key}' entry {k!r} must be a list of strings")
        out[str(k)] = tuple(v)
    return MappingProxyType(out)


def _str_list(raw: Any, key: str) -> Tuple[str, ...]:
    if not isinstance(raw, (list, tuple)) or not all(isinstance(s, str) for s in raw):
        raise ConfigError(f"'{key}' must be a list of strings")
    return tuple(raw)


def _version_pairs(raw: Any) -> Tuple[Tuple[str, str], ...]:
    if not isinstance(raw, (list, tuple)):
        raise ConfigError("'mutually_exclusive_versions' must be a list of [label, label] pairs")
    pairs = []
    for pair in raw:
        if (not isinstance(pair, (list, tuple)) or len(pair) != 2
                or not all(isinstance(s, str) for s in pair)):
            raise ConfigError(f"exclusive version entry {pair!r} must be a pair of labels")
        pairs.append((pair[0], pair[1]))
    return tuple(pairs)


def _brands(raw: Any) -> Tuple[Brand, ...]:
    if not isinstance(raw, (list, tuple)):
        raise ConfigError("'brands' must be a list of {name, spell} objects")
    brands = []
    for item in raw:
        if not isinstance(item, dict) or not isinstance(item.get('name'), str) or not item['name'].strip():
            raise ConfigError(f"brand entry {item!r} is missing a 'name'")
        spell = item.get('spell')
        brands.append(Brand(item['name'].strip(), spell.strip() if isinstance(spell, str) and spell.strip() else None))
    return tuple(brands)


def _product_types(raw: Any) -> Tuple[ProductType, ...]:
    if not isinstance(raw, (list, tuple)):
        raise ConfigError("'product_types' must be a list")
    types = []
    for item in raw:
        if not isinstance(item, dict) or 'id' not in item:
            raise ConfigError(f"product type {item!r} is missing 'id'")
        weights = item.get('specWeights', item.get('spec_weights'))
        if not isinstance(weights, dict):
            raise ConfigError(f"product type {item['id']!r} is missing 'specWeights'")
        for dim, w in weights.items():
            if not isinstance(w, (int, float)) or isinstance(w, bool):
                raise ConfigError(f"product type {item['id']!r} weight {dim!r} is not a number")
        keywords = item.get('keywords', [])
        if not isinstance(keywords, (list, tuple)):
            raise ConfigError(f"product type {item['id']!r} keywords must be a list")
        types.append(ProductType(
            id=str(item['id']),
            name=str(item.get('name', item['id'])),
            keywords=tuple(str(k) for k in keywords),
            spec_weights=MappingProxyType({str(k): float(v) for k, v in weights.items()}),
        ))
    return tuple(types)


def _version_keywords(raw: Any) -> Tuple[VersionKeyword, ...]:
    if not isinstance(raw, (list, tuple)):
        raise ConfigError("'version_keywords' must be a list")
    out = []
    for item in raw:
        if not isinstance(item, dict) or not item.get('name') or not item.get('keywords'):
            raise ConfigError(f"version keyword {item!r} needs 'name' and 'keywords'")
        tier = item.get('tier', 'standard')
        if tier not in TIER_CONFIDENCE:
            raise ConfigError(f"version keyword {item['name']!r} has unknown tier {tier!r}")
        out.append(VersionKeyword(
            name=item['name'],
            keywords=tuple(item['keywords']),
            priority=int(item.get('priority', 0)),
            tier=tier,
            confidence=TIER_CONFIDENCE[tier],
        ))
    return tuple(out)


def _scoring(raw: Any) -> ScoringConstants:
    if not isinstance(raw, dict):
        raise ConfigError("'scoring' must be an object of constant name → number")
    known = {f.name for f in fields(ScoringConstants)}
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"unknown scoring constants: {sorted(unknown)}")
    return replace(ScoringConstants(), **raw)


def build_config(raw: Dict[str, Any]) -> MatcherConfig:
    """Validate a raw table dict and freeze it."""
    if not isinstance(raw, dict):
        raise ConfigError(f"config must be an object, got {type(raw).__name__}")
    return MatcherConfig(
        brands=_brands(raw.get('brands', [])),
        model_aliases=_str_mapping(raw.get('model_aliases', {}), 'model_aliases'),
        typo_corrections=_str_mapping(raw.get('typo_corrections', {}), 'typo_corrections'),
        abbreviations=_str_mapping(raw.get('abbreviations', {}), 'abbreviations'),
        brand_aliases=_list_mapping(raw.get('brand_aliases', {}), 'brand_aliases'),
        capacity_normalizations=_str_mapping(raw.get('capacity_normalizations', {}), 'capacity_normalizations'),
        color_variants=_list_mapping(raw.get('color_variants', {}), 'color_variants'),
        color_families=_list_mapping(raw.get('color_families', {}), 'color_families'),
        product_types=_product_types(raw.get('product_types', [])),
        version_keywords=_version_keywords(raw.get('version_keywords', [])),
        standard_version_markers=_str_list(raw.get('standard_version_markers', []), 'standard_version_markers'),
        version_compatibility=_list_mapping(raw.get('version_compatibility', {}), 'version_compatibility'),
        mutually_exclusive_versions=_version_pairs(raw.get('mutually_exclusive_versions', [])),
        demo_markers=_str_list(raw.get('demo_markers', []), 'demo_markers'),
        bundled_accessory_keywords=_str_list(raw.get('bundled_accessory_keywords', []),
                                             'bundled_accessory_keywords'),
        color_noise_words=_str_list(raw.get('color_noise_words', []), 'color_noise_words'),
        color_suffix_denylist=frozenset(_str_list(raw.get('color_suffix_denylist', []),
                                                  'color_suffix_denylist')),
        basic_color_chars=_str_list(raw.get('basic_color_chars', []), 'basic_color_chars'),
        sku_basic_color_chars=_str_list(raw.get('sku_basic_color_chars', []), 'sku_basic_color_chars'),
        gift_box_keywords=_str_list(raw.get('gift_box_keywords', []), 'gift_box_keywords'),
        gift_keywords=_str_list(raw.get('gift_keywords', []), 'gift_keywords'),
        accessory_keywords=_str_list(raw.get('accessory_keywords', []), 'accessory_keywords'),
        accessory_exemptions=_list_mapping(raw.get('accessory_exemptions', {}), 'accessory_exemptions'),
        network_version_keywords=_str_list(raw.get('network_version_keywords', []),
                                           'network_version_keywords'),
        special_edition_keywords=_str_list(raw.get('special_edition_keywords', []),
                                           'special_edition_keywords'),
        watch_band_keywords=_str_list(raw.get('watch_band_keywords', []), 'watch_band_keywords'),
        generic_band_keywords=_str_list(raw.get('generic_band_keywords', []), 'generic_band_keywords'),
        scoring=_scoring(raw.get('scoring', {})),
    )


def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> MatcherConfig:
    """
    Build a MatcherConfig from the defaults, an optional JSON file and overrides.

    A key present in the file or the overrides replaces the default table wholesale,
    except 'scoring', whose constants are merged one by one.
    Raises ConfigError on a missing file, bad JSON or a structurally invalid table.
    """
    raw = _default_raw()
    layers = []
    if path:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                layers.append(json.load(f))
        except (OSError, ValueError) as e:
            raise ConfigError(f"cannot read config file {path}: {e}") from e
    if overrides:
        layers.append(overrides)

    for layer in layers:
        if not isinstance(layer, dict):
            raise ConfigError(f"config layer must be an object, got {type(layer).__name__}")
        for key, value in layer.items():
            if key not in raw:
                raise ConfigError(f"unknown config table {key!r}")
            if key == 'scoring':
                if not isinstance(value, dict):
                    raise ConfigError("'scoring' must be an object of constant name → number")
                raw['scoring'] = {**raw['scoring'], **value}
            else:
                raw[key] = value

    config = build_config(raw)
    logger.debug("Loaded matcher config: %d brands, %d product types, %d version keywords",
                 len(config.brands), len(config.product_types), len(config.version_keywords))
    return config


_DEFAULT_CONFIG: Optional[MatcherConfig] = None


def default_config() -> MatcherConfig:
    """The defaults-only config, built on first use and shared afterwards."""
    global _DEFAULT_CONFIG
    if _DEFAULT_CONFIG is None:
        _DEFAULT_CONFIG = load_config()
    return _DEFAULT_CONFIG
