"""
Field extraction from noisy product titles.

Every field comes back as an ExtractionResult {value, confidence, source}. A field that
cannot be found is ExtractionResult(None, 0.0, 'inferred'); extraction never raises.

Model extraction cascade (first rule that produces a model wins):
    prep    lowercase, brand removed, bracketed codes, capacities, sizes, network
            words and CJK runs stripped, "pro+" spelled "pro plus", compact aliases
            expanded ("promini" -> "pro mini")
    0. catalog model        longest known key of the brand over adjacent words,
                            spaces ignored ("x fold 3 pro" -> xfold3pro)    (1.0)
    -  wearable             "手环9", "手表 4 pro" (before CJK runs are dropped)  (0.95)
    1. word + word          "watch gt 5", "x fold 3", "x fold3", "pad se"   (0.85)
    2. complex              "s30 pro mini", "mate 60 pro"                   (1.0)
    3. simple               "y300i", "iphone 17", "k70"                     (0.9)
    4. generic two words    fallback, stopwords excluded                    (0.6, fuzzy)
The model value is normalize_model_key(display), the same key the catalog stores.
"""

import logging
import re
from dataclasses import dataclass
from typing import Generic, Iterable, List, Mapping, Optional, Tuple, TypeVar

from dictionaries import (
    DEFAULT_PRODUCT_TYPE,
    MODEL_FALLBACK_STOPWORDS,
    MODEL_NOISE_LATIN,
    MODEL_PRODUCT_WORDS,
    MODEL_SUFFIXES,
    SINGLE_LETTER_PRODUCT_WORDS,
    Brand,
    MatcherConfig,
    VersionKeyword,
)
from text_normalize import (
    CJK,
    collapse_whitespace,
    latin_bounded,
    normalize_model_key,
    preprocess_title,
    spell_plus_suffix,
    split_compound_suffixes,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

SOURCE_EXACT = 'exact'
SOURCE_FUZZY = 'fuzzy'
SOURCE_INFERRED = 'inferred'

MODEL_CONFIDENCE_CATALOG = 1.0
MODEL_CONFIDENCE_WEARABLE = 0.95
MODEL_CONFIDENCE_WORD = 0.85
MODEL_CONFIDENCE_COMPLEX = 1.0
MODEL_CONFIDENCE_SIMPLE = 0.9
MODEL_CONFIDENCE_FALLBACK = 0.6


@dataclass(frozen=True)
class ExtractionResult(Generic[T]):
    value: Optional[T] = None
    confidence: float = 0.0
    source: str = SOURCE_INFERRED


MISSING: ExtractionResult = ExtractionResult()


@dataclass(frozen=True)
class ExtractedInfo:
    """Everything extracted from one request title."""

    original_input: str
    preprocessed_input: str
    brand: ExtractionResult
    model: ExtractionResult
    color: ExtractionResult
    capacity: ExtractionResult
    version: ExtractionResult
    product_type: str = DEFAULT_PRODUCT_TYPE
    watch_size: ExtractionResult = MISSING
    watch_band: ExtractionResult = MISSING

    @property
    def version_name(self) -> Optional[str]:
        return self.version.value.name if self.version.value else None


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------
_PARENS = re.compile(r'[(（\[【][^)）\]】]*[)）\]】]')
_CAPACITY_COMBO_STRIP = re.compile(r'\d+\s*(?:gb|g|tb|t)?\s*\+\s*\d+\s*(?:gb|g|tb|t)?(?![a-z])')
_CAPACITY_SINGLE_STRIP = re.compile(r'(?<![a-z0-9])\d+\s*(?:gb|tb)(?![a-z])')
_SIZE_STRIP = re.compile(r'\d+(?:\.\d+)?\s*(?:mm|寸|英寸)')
_CJK_RUN = re.compile(rf'[{CJK}]+')
_NON_MODEL_CHARS = re.compile(r'[^a-z0-9\s]')
_GLUED_TAIL = re.compile(r'^([a-z]*\d+)([a-z]+)$')

_SUFFIX_ALT = '|'.join(MODEL_SUFFIXES)
_COMPLEX = re.compile(
    rf'(?<![a-z0-9])([a-z]*\d+[a-z]*)((?:\s+(?:{_SUFFIX_ALT}))+)(?![a-z0-9])'
)
_SIMPLE_TOKEN = re.compile(r'^([a-z]*)(\d+)([a-z]*)$')
_NETWORK_TOKEN = re.compile(r'^[2345]g$')
_CAPACITY_TOKEN = re.compile(r'^\d+(?:gb|g|tb|t)$|gb')
_WORD_TAIL = re.compile(rf'^(?:\d+[a-z]?|{_SUFFIX_ALT})$')
_WORD_HEAD = re.compile(r'^(?:[a-z]+\d*|\d+[a-z]*)$')
_SINGLE_LETTER_PRODUCT = re.compile(rf'^(?:{"|".join(SINGLE_LETTER_PRODUCT_WORDS)})\d*$')
_WEARABLE = re.compile(rf'(手环|手表)\s*(\d+)((?:\s*(?:{_SUFFIX_ALT})(?![a-z]))*)')
KNOWN_MODEL_MAX_WORDS = 6

_COMBO_CAPACITY = re.compile(r'(\d+)\s*(?:gb|g)?\s*\+\s*(\d+)\s*(tb|t|gb|g)?(?![a-z])', re.IGNORECASE)
_SINGLE_CAPACITY = re.compile(r'(?<![a-z0-9+.])(\d+)\s*(tb|t|gb|g)(?![a-z0-9])', re.IGNORECASE)
_WATCH_MM = re.compile(r'(\d{2}(?:\.\d)?)\s*mm', re.IGNORECASE)
_SCREEN_INCH = re.compile(r'(\d+(?:\.\d+)?)\s*寸')
_SCREEN_INCH_STRIP = re.compile(r'\d+(?:\.\d+)?\s*(?:英寸|寸)')

_COLOR_AFTER_EDITION = re.compile(rf'版\s*([{CJK}]{{2,5}})(?![{CJK}])')
_COLOR_TRAILING = re.compile(rf'(?<![{CJK}])([{CJK}]{{2,5}})\s*$')
_COLOR_AFTER_CAPACITY = re.compile(
    rf'\d+\s*(?:gb|g)?\s*\+\s*\d+\s*(?:gb|g|tb|t)?\s*[)）]?\s*([{CJK}]{{2,5}})', re.IGNORECASE
)
_PRO_WITH_SUFFIX = re.compile(r'pro\s*(?:mini|max|plus|ultra|air|lite|se)')


def _brand_form_pattern(form: str) -> str:
    """Short ASCII forms must stand alone ("zte"); longer ones may be glued ("vivoX200")."""
    if form.isascii() and len(form) <= 3:
        return latin_bounded(form)
    return re.escape(form)


def _keyword_pattern(keyword: str) -> str:
    """Bound keywords at their ASCII ends so "5G" never matches inside "15G" or "5GB"."""
    pattern = re.escape(keyword.lower())
    if keyword[:1].isascii() and keyword[:1].isalnum():
        pattern = r'(?<![a-z0-9])' + pattern
    if keyword[-1:].isascii() and keyword[-1:].isalnum():
        pattern = pattern + r'(?![a-z0-9])'
    return pattern


class InfoExtractor:
    """
    Extracts brand, model, color, capacity, version, watch size/band and product type.

    Holds only read-only data: the frozen config plus, when built for a live catalog,
    its color vocabulary and its model keys per brand (lowercase canonical brand ->
    normalized model keys).
    """

    def __init__(self, config: MatcherConfig, color_vocabulary: Iterable[str] = (),
                 known_models: Optional[Mapping[str, Iterable[str]]] = None):
        self.config = config
        self._brands: Tuple[Brand, ...] = tuple(sorted(config.brands, key=lambda b: len(b.name), reverse=True))
        self._brand_patterns = [
            (brand,
             re.compile(_brand_form_pattern(brand.name.lower())),
             re.compile(_brand_form_pattern(brand.spell.lower())) if brand.spell else None)
            for brand in self._brands
        ]
        self._brand_lookup = {}
        for brand in config.brands:
            self._brand_lookup[brand.name.lower()] = brand
            if brand.spell:
                self._brand_lookup.setdefault(brand.spell.lower(), brand)
        for canonical, aliases in config.brand_aliases.items():
            brand = self._brand_lookup.get(canonical.lower())
            if brand:
                for alias in aliases:
                    self._brand_lookup.setdefault(alias.lower(), brand)
        self._model_aliases = sorted(config.model_aliases.items(), key=lambda kv: len(kv[0]), reverse=True)
        self._version_patterns = [
            (vk, [re.compile(_keyword_pattern(kw)) for kw in vk.keywords])
            for vk in config.version_keywords
        ]
        vocab = {c.strip() for c in color_vocabulary if isinstance(c, str) and len(c.strip()) >= 2}
        self.color_vocabulary: Tuple[str, ...] = tuple(sorted(vocab, key=lambda c: (-len(c), c)))
        self._known_models = {
            brand.lower(): frozenset(k for k in keys if k and len(k) >= 2)
            for brand, keys in (known_models or {}).items()
        }
        self._all_known_models = frozenset().union(*self._known_models.values())

    # ------------------------------------------------------------------
    # Brand
    # ------------------------------------------------------------------

    def extract_brand(self, text: Optional[str]) -> ExtractionResult:
        """Longest brand name first; a name hit is 1.0, a phonetic-spelling hit 0.95."""
        if not text:
            return MISSING
        lowered = text.lower()
        for brand, name_re, spell_re in self._brand_patterns:
            if name_re.search(lowered):
                return ExtractionResult(brand.name, 1.0, SOURCE_EXACT)
            if spell_re is not None and spell_re.search(lowered):
                return ExtractionResult(brand.name, 0.95, SOURCE_EXACT)
        return MISSING

    def canonical_brand(self, brand: Optional[str]) -> Optional[str]:
        """Map any known spelling ("HUAWEI", "huawei", "华为") to the canonical name."""
        if not isinstance(brand, str) or not brand.strip():
            return None
        known = self._brand_lookup.get(brand.strip().lower())
        return known.name if known else brand.strip()

    def brands_equivalent(self, a: Optional[str], b: Optional[str]) -> bool:
        ca, cb = self.canonical_brand(a), self.canonical_brand(b)
        if ca is None or cb is None:
            return False
        return ca.lower() == cb.lower()

    def brand_forms(self, brand: Optional[str]) -> List[str]:
        """Lowercased name and spell of a brand, for index keys and text removal."""
        canonical = self.canonical_brand(brand)
        if canonical is None:
            return []
        known = self._brand_lookup.get(canonical.lower())
        forms = [canonical.lower()]
        if known and known.spell and known.spell.lower() not in forms:
            forms.append(known.spell.lower())
        return forms

    # ------------------------------------------------------------------
    # Model
    # ------------------------------------------------------------------

    def _prepare_model_text(self, text: str, brand: Optional[str]) -> str:
        s = text.lower()
        for form in self.brand_forms(brand):
            s = re.sub(_brand_form_pattern(form), ' ', s)
        s = _PARENS.sub(' ', s)
        s = _CAPACITY_COMBO_STRIP.sub(' ', s)
        s = _CAPACITY_SINGLE_STRIP.sub(' ', s)
        s = _SIZE_STRIP.sub(' ', s)
        s = spell_plus_suffix(s)
        for word in MODEL_NOISE_LATIN:
            s = re.sub(latin_bounded(word), ' ', s)
        s = _CJK_RUN.sub(' ', s)
        s = _NON_MODEL_CHARS.sub(' ', s)
        for alias, expansion in self._model_aliases:
            s = s.replace(alias, f' {expansion} ')
        words = []
        for word in s.split():
            words.extend(self._split_glued_suffixes(word))
        return ' '.join(words)

    @staticmethod
    def _split_glued_suffixes(word: str) -> Tuple[str, ...]:
        """'mate60pro' -> mate60, pro; 'y300i' stays whole because 'i' is no suffix."""
        if word.isalpha():
            return split_compound_suffixes(word)
        m = _GLUED_TAIL.match(word)
        if m:
            tail = split_compound_suffixes(m.group(2))
            if len(tail) > 1 or m.group(2) in MODEL_SUFFIXES:
                return (m.group(1),) + tail
        return (word,)

    @staticmethod
    def _is_capacity_like(token: str) -> bool:
        return bool(_NETWORK_TOKEN.match(token) or _CAPACITY_TOKEN.search(token))

    @staticmethod
    def _extend_tail(words: List[str], start: int, limit: int = 3) -> int:
        end = start
        while end < len(words) and end - start < limit and _WORD_TAIL.match(words[end]):
            end += 1
        return end

    def _match_word_pattern(self, words: List[str]) -> Optional[str]:
        # Single-letter product forms ("x note", "z fold 6", "x fold3") are more specific
        for i in range(len(words) - 1):
            if len(words[i]) == 1 and words[i].isalpha() and _SINGLE_LETTER_PRODUCT.match(words[i + 1]):
                end = self._extend_tail(words, i + 2)
                return ' '.join(words[i:end])
        for i in range(len(words) - 1):
            if words[i] in MODEL_PRODUCT_WORDS and _WORD_HEAD.match(words[i + 1]) \
                    and not self._is_capacity_like(words[i + 1]) \
                    and words[i + 1] not in MODEL_FALLBACK_STOPWORDS:
                end = self._extend_tail(words, i + 2)
                return ' '.join(words[i:end])
        return None

    def _match_known_model(self, words: List[str], brand: Optional[str]) -> Optional[str]:
        """
        Longest catalog model key spelled by adjacent words, spaces ignored.

        Keys are narrowed to the brand when there is one. A run directly followed by a
        suffix word is skipped so "mate 60 pro" never stops at "mate60".
        """
        canonical = self.canonical_brand(brand)
        keys = self._known_models.get(canonical.lower(), frozenset()) if canonical else self._all_known_models
        if not keys:
            return None
        best_key, best_display = '', None
        for i in range(len(words)):
            compact = ''
            for j in range(i, min(len(words), i + KNOWN_MODEL_MAX_WORDS)):
                compact += words[j]
                if j + 1 < len(words) and words[j + 1] in MODEL_SUFFIXES:
                    continue
                if compact in keys and len(compact) > len(best_key):
                    best_key, best_display = compact, ' '.join(words[i:j + 1])
        return best_display

    @staticmethod
    def _match_wearable(text: str, brand_forms: List[str]) -> Optional[str]:
        """CJK band and watch names ("小米手环9" -> "手环9"), read before CJK runs are dropped."""
        lowered = text.lower()
        for form in brand_forms:
            lowered = re.sub(_brand_form_pattern(form), ' ', lowered)
        m = _WEARABLE.search(lowered)
        if not m:
            return None
        return collapse_whitespace(f'{m.group(1)}{m.group(2)} {m.group(3)}')

    def _with_prefix(self, words: List[str], core_index: int, core: str) -> str:
        """A bare number borrows the preceding word ("mate 60", "iphone 17")."""
        if core.isdigit() and core_index > 0:
            prev = words[core_index - 1]
            if prev.isalpha() and prev not in MODEL_SUFFIXES and prev not in MODEL_FALLBACK_STOPWORDS:
                return f'{prev} {core}'
        return core

    def _match_complex(self, prepared: str, words: List[str]) -> Optional[str]:
        candidates = []
        for m in _COMPLEX.finditer(prepared):
            core = m.group(1)
            if self._is_capacity_like(core):
                continue
            core_index = len(prepared[:m.start(1)].split())
            display = collapse_whitespace(f'{self._with_prefix(words, core_index, core)} {m.group(2)}')
            candidates.append((display, m.start()))
        if not candidates:
            return None
        candidates.sort(key=lambda c: (-len(c[0]), c[1]))
        return candidates[0][0]

    def _match_simple(self, words: List[str]) -> Optional[str]:
        candidates = []
        for i, word in enumerate(words):
            m = _SIMPLE_TOKEN.match(word)
            if not m or self._is_capacity_like(word):
                continue
            letters_before, digits, letters_after = m.groups()
            if not letters_before and not letters_after:
                number = int(digits)
                has_prefix = i > 0 and words[i - 1].isalpha() \
                    and words[i - 1] not in MODEL_FALLBACK_STOPWORDS and words[i - 1] not in MODEL_SUFFIXES
                if not (10 <= number <= 999 or (has_prefix and 1 <= number <= 999)):
                    continue
            display = self._with_prefix(words, i, word)
            candidates.append((display, bool(letters_after), i))
        if not candidates:
            return None
        # Longer first; at equal length a trailing letter ("y300i") beats a bare number
        candidates.sort(key=lambda c: (-len(c[0]), not c[1], c[2]))
        return candidates[0][0]

    @staticmethod
    def _match_fallback(words: List[str]) -> Optional[str]:
        for i in range(len(words) - 1):
            a, b = words[i], words[i + 1]
            if a.isalpha() and b.isalpha() and len(a) > 1 \
                    and a not in MODEL_FALLBACK_STOPWORDS and b not in MODEL_FALLBACK_STOPWORDS:
                return f'{a} {b}'
        return None

    def extract_model_display(self, text: Optional[str], brand: Optional[str] = None) -> Tuple[Optional[str], float, str]:
        """Spaced lowercase model ("s30 pro mini") with its confidence and source."""
        if not text:
            return None, 0.0, SOURCE_INFERRED
        if brand is None:
            brand = self.extract_brand(text).value
        prepared = self._prepare_model_text(text, brand)
        words = prepared.split()

        display = self._match_known_model(words, brand)
        if display:
            return display, MODEL_CONFIDENCE_CATALOG, SOURCE_EXACT
        display = self._match_wearable(text, self.brand_forms(brand))
        if display:
            return display, MODEL_CONFIDENCE_WEARABLE, SOURCE_EXACT
        if not words:
            return None, 0.0, SOURCE_INFERRED

        display = self._match_word_pattern(words)
        if display:
            return display, MODEL_CONFIDENCE_WORD, SOURCE_EXACT
        display = self._match_complex(prepared, words)
        if display:
            return display, MODEL_CONFIDENCE_COMPLEX, SOURCE_EXACT
        display = self._match_simple(words)
        if display:
            return display, MODEL_CONFIDENCE_SIMPLE, SOURCE_EXACT
        display = self._match_fallback(words)
        if display:
            return display, MODEL_CONFIDENCE_FALLBACK, SOURCE_FUZZY
        return None, 0.0, SOURCE_INFERRED

    def extract_model(self, text: Optional[str], brand: Optional[str] = None) -> ExtractionResult:
        display, confidence, source = self.extract_model_display(text, brand)
        key = normalize_model_key(display)
        if key is None:
            return MISSING
        return ExtractionResult(key, confidence, source)

    # ------------------------------------------------------------------
    # Color
    # ------------------------------------------------------------------

    def extract_color(self, text: Optional[str]) -> ExtractionResult:
        """
        Vocabulary hit (longest wins) > run after 版 > trailing CJK run >
        run after a capacity > single basic color character.
        """
        if not text:
            return MISSING
        work = _SCREEN_INCH_STRIP.sub(' ', text)
        for word in self.config.color_noise_words:
            work = work.replace(word, ' ')

        for color in self.color_vocabulary:
            if color in work:
                return ExtractionResult(color, 0.95, SOURCE_EXACT)

        m = _COLOR_AFTER_EDITION.search(work)
        if m and m.group(1) not in self.config.color_suffix_denylist:
            return ExtractionResult(m.group(1), 0.9, SOURCE_EXACT)

        m = _COLOR_TRAILING.search(work.strip())
        if m and m.group(1) not in self.config.color_suffix_denylist and not m.group(1).endswith('版'):
            return ExtractionResult(m.group(1), 0.85, SOURCE_FUZZY)

        m = _COLOR_AFTER_CAPACITY.search(work)
        if m and m.group(1) not in self.config.color_suffix_denylist:
            return ExtractionResult(m.group(1), 0.8, SOURCE_FUZZY)

        for char in self.config.basic_color_chars:
            if char in work:
                return ExtractionResult(char, 0.7, SOURCE_INFERRED)
        return MISSING

    # ------------------------------------------------------------------
    # Capacity / version
    # ------------------------------------------------------------------

    def extract_capacity(self, text: Optional[str]) -> ExtractionResult:
        """RAM+storage as "12+512" ("16+1T" for TB); storage alone as "256" or "1T"."""
        if not text:
            return MISSING
        m = _COMBO_CAPACITY.search(text)
        if m:
            unit = (m.group(3) or '').lower()
            suffix = 'T' if unit in ('tb', 't') else ''
            return ExtractionResult(f'{m.group(1)}+{m.group(2)}{suffix}', 1.0, SOURCE_EXACT)
        for m in _SINGLE_CAPACITY.finditer(text):
            number, unit = int(m.group(1)), m.group(2).lower()
            if unit == 'g' and 2 <= number <= 5:
                continue  # 5G / 4G network marker
            if unit in ('tb', 't'):
                return ExtractionResult(f'{number}T', 0.9, SOURCE_EXACT)
            if number <= 32:
                return ExtractionResult(str(number), 0.7, SOURCE_FUZZY)
            return ExtractionResult(str(number), 0.9, SOURCE_EXACT)
        return MISSING

    def extract_version(self, text: Optional[str]) -> ExtractionResult:
        """First keyword-table hit, in table order; the value is the VersionKeyword row."""
        if not text:
            return MISSING
        lowered = text.lower()
        for vk, patterns in self._version_patterns:
            if vk.name == 'Pro版' and _PRO_WITH_SUFFIX.search(lowered):
                continue
            if any(p.search(lowered) for p in patterns):
                return ExtractionResult(vk, vk.confidence, SOURCE_EXACT)
        return MISSING

    # ------------------------------------------------------------------
    # Watch attributes and product type
    # ------------------------------------------------------------------

    def extract_watch_size(self, text: Optional[str]) -> ExtractionResult:
        if not text:
            return MISSING
        m = _WATCH_MM.search(text)
        if m:
            return ExtractionResult(f'{m.group(1)}mm', 1.0, SOURCE_EXACT)
        m = _SCREEN_INCH.search(text)
        if m:
            return ExtractionResult(f'{m.group(1)}寸', 1.0, SOURCE_EXACT)
        return MISSING

    def extract_watch_band(self, text: Optional[str]) -> ExtractionResult:
        if not text:
            return MISSING
        for keyword in self.config.watch_band_keywords:
            if keyword in text:
                return ExtractionResult(keyword, 1.0, SOURCE_EXACT)
        for keyword in self.config.generic_band_keywords:
            m = re.search(rf'[{CJK}]{{0,4}}{keyword}', text)
            if m:
                return ExtractionResult(m.group(0), 0.8, SOURCE_FUZZY)
        return MISSING

    def detect_product_type(self, text: Optional[str], model: Optional[str] = None) -> str:
        haystack = f"{text or ''} {model or ''}".lower()
        for product_type in self.config.product_types:
            if any(keyword.lower() in haystack for keyword in product_type.keywords):
                return product_type.id
        return DEFAULT_PRODUCT_TYPE

    # ------------------------------------------------------------------
    # Aggregate
    # ------------------------------------------------------------------

    def _safe(self, name: str, fn, *args) -> ExtractionResult:
        try:
            return fn(*args)
        except Exception:
            logger.warning("Extraction of %s failed for %r", name, args[0] if args else None, exc_info=True)
            return MISSING

    def extract_all(self, raw_text: Optional[str]) -> ExtractedInfo:
        original = raw_text if isinstance(raw_text, str) else ''
        try:
            preprocessed = preprocess_title(original, self.config)
        except Exception:
            logger.warning("Preprocessing failed for %r", original, exc_info=True)
            preprocessed = original

        brand = self._safe('brand', self.extract_brand, preprocessed)
        model = self._safe('model', self.extract_model, preprocessed, brand.value)
        product_type = self.detect_product_type(preprocessed, model.value)
        is_wearable = product_type in ('watch', 'band')
        info = ExtractedInfo(
            original_input=original,
            preprocessed_input=preprocessed,
            brand=brand,
            model=model,
            color=self._safe('color', self.extract_color, preprocessed),
            capacity=self._safe('capacity', self.extract_capacity, preprocessed),
            version=self._safe('version', self.extract_version, preprocessed),
            product_type=product_type,
            watch_size=self._safe('watch_size', self.extract_watch_size, preprocessed) if is_wearable else MISSING,
            watch_band=self._safe('watch_band', self.extract_watch_band, preprocessed) if is_wearable else MISSING,
        )
        logger.debug(
            "Extracted %r: brand=%s model=%s color=%s capacity=%s version=%s type=%s",
            original, brand.value, model.value, info.color.value, info.capacity.value,
            info.version_name, product_type,
        )
        return info
