"""
Text helpers shared by every matching stage.

normalize_model_key() is the only model normalization in the code base. The extractor
applies it once when it produces ExtractedInfo.model.value, and the catalog preprocessor
applies it once when it builds EnhancedCatalogEntry.normalized_model; comparisons after
that are plain string equality.

preprocess_title() turns a raw marketplace title into the form every extractor sees:
    1. NFKC folding (full-width letters, digits and brackets become ASCII)
    2. Demo-unit markers and bundled-accessory phrases removed
    3. Brackets become spaces, trailing punctuation dropped
    4. Typo corrections, abbreviation expansion, brand aliases
    5. Capacity normalization ("8GB+256GB" -> "8+256", "1 TB" -> "1TB")
"""

import re
import unicodedata
from functools import lru_cache
from typing import List, Mapping, Optional, Sequence, Tuple

from dictionaries import COMPOUND_SUFFIXES, TIE_BREAK_SUFFIXES, MatcherConfig

CJK = '\u4e00-\u9fff'

_MODEL_KEY_STRIP = re.compile(r'[\s\-_]+')
_DIGIT_THEN_LETTER = re.compile(r'(\d)([a-z])')
_LETTER_THEN_DIGIT = re.compile(r'([a-z])(\d)')
_PLUS_SUFFIX = re.compile(r'(?<![a-z])([a-z]{2,})\+', re.IGNORECASE)
_CAPACITY_UNITS = ('gb', 'tb')
_TOKEN_RE = re.compile(rf'[a-z0-9]+|[{CJK}]')
_WHITESPACE = re.compile(r'\s+')


# ---------------------------------------------------------------------------
# Model key normalization
# ---------------------------------------------------------------------------

def normalize_model_key(model: Optional[str]) -> Optional[str]:
    """
    Lowercase and strip whitespace, hyphens and underscores.

    Idempotent: normalize_model_key(normalize_model_key(x)) == normalize_model_key(x).
    Returns None for None or for strings that normalize to nothing.
    """
    if model is None:
        return None
    key = _MODEL_KEY_STRIP.sub('', model.lower())
    return key or None


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(' ', text).strip()


def latin_bounded(word: str) -> str:
    """
    Regex for `word` not glued to other Latin letters or digits.

    \\b is not usable here: Python treats CJK characters as word characters, so
    "全网通5G" has no boundary before the "5".
    """
    return rf'(?<![a-z0-9]){re.escape(word)}(?![a-z0-9])'


def spell_plus_suffix(text: str) -> str:
    """"Pro+" -> "Pro plus "; the '+' of a capacity ("12GB+256GB") is kept."""
    def _spell(m):
        if m.group(1).lower() in _CAPACITY_UNITS:
            return m.group(0)
        return f'{m.group(1)} plus '
    return _PLUS_SUFFIX.sub(_spell, text)


# ---------------------------------------------------------------------------
# Tokenizer and suffix splitting
# ---------------------------------------------------------------------------

def _segment(word: str) -> Optional[Tuple[str, ...]]:
    if not word:
        return ()
    for suffix in sorted(COMPOUND_SUFFIXES, key=len, reverse=True):
        if word.startswith(suffix):
            rest = _segment(word[len(suffix):])
            if rest is not None:
                return (suffix,) + rest
    return None


@lru_cache(maxsize=4096)
def split_compound_suffixes(word: str) -> Tuple[str, ...]:
    """
    Split a glued run of suffix words: 'promax' -> ('pro', 'max').

    Only words made entirely of suffixes of three or more letters are split, so
    'prose' stays whole instead of becoming pro + se.
    """
    parts = _segment(word)
    if parts and len(parts) > 1:
        return parts
    return (word,)


@lru_cache(maxsize=8192)
def _tokenize(text: str) -> Tuple[str, ...]:
    lowered = spell_plus_suffix(text.lower())
    lowered = _LETTER_THEN_DIGIT.sub(r'\1 \2', lowered)
    lowered = _DIGIT_THEN_LETTER.sub(r'\1 \2', lowered)
    tokens: List[str] = []
    for tok in _TOKEN_RE.findall(lowered):
        if tok.isascii() and tok.isalpha():
            tokens.extend(split_compound_suffixes(tok))
        else:
            tokens.append(tok)
    return tuple(tokens)


def tokenize(text: Optional[str]) -> List[str]:
    """
    Lowercase tokens: Latin/digit runs, one token per CJK character.

    Letter and digit runs glued together are separate tokens ("mate60pro" -> mate, 60,
    pro), glued suffix runs are split and a trailing "+" reads as "plus". Everything
    else separates tokens.
    """
    if not text:
        return []
    return list(_tokenize(text))


def model_suffixes(text: Optional[str]) -> List[str]:
    """Tie-break suffix words in `text`, in order, glued forms included."""
    return [t for t in tokenize(text) if t in TIE_BREAK_SUFFIXES]


# ---------------------------------------------------------------------------
# Title preprocessing
# ---------------------------------------------------------------------------

_BRACKETS = re.compile(r'[()\[\]【】「」『』“”‘’《》<>{}]')
_TRAILING_PUNCT = re.compile(r'[,，.。;；:：!！?？、]+$')
_RAM_STORAGE = re.compile(r'(\d+)\s*(?:gb|g)\s*\+\s*(\d+)\s*(tb|t|gb|g)(?![a-z])', re.IGNORECASE)
_TB = re.compile(r'(?<![a-z0-9])(\d+)\s+tb(?![a-z])', re.IGNORECASE)
_GB = re.compile(r'(?<![a-z0-9])(\d+)\s+gb(?![a-z])', re.IGNORECASE)
_PLUS_SPACING = re.compile(r'\s*\+\s*')


def clean_title(text: str, demo_markers: Sequence[str] = (), accessories: Sequence[str] = ()) -> str:
    """Drop demo-unit markers, bundled accessories, brackets and trailing punctuation."""
    if not text or not text.strip():
        return ''
    cleaned = unicodedata.normalize('NFKC', text)
    for marker in demo_markers:
        cleaned = cleaned.replace(marker, '')
    for keyword in accessories:
        # "送充电器", "附赠耳机", "+ 数据线"
        cleaned = re.sub(rf'[+\s]*[送附赠带配][赠送]?\s*{re.escape(keyword)}', '', cleaned)
        cleaned = re.sub(rf'\s*\+\s*{re.escape(keyword)}', '', cleaned)
    cleaned = _BRACKETS.sub(' ', cleaned)
    cleaned = _TRAILING_PUNCT.sub('', cleaned.strip())
    return collapse_whitespace(cleaned)


def correct_typos(text: str, corrections: Mapping[str, str]) -> str:
    for typo, fixed in corrections.items():
        text = re.sub(re.escape(typo), fixed, text, flags=re.IGNORECASE)
    return text


def expand_abbreviations(text: str, abbreviations: Mapping[str, str]) -> str:
    """
    Expand word-bounded abbreviations, longest first ("GT5" -> "Watch GT 5").

    An occurrence already preceded by the expansion's first word ("Watch GT5") is left
    alone so the product word is not doubled.
    """
    for abbr, full in sorted(abbreviations.items(), key=lambda kv: len(kv[0]), reverse=True):
        lead = full.split()[0].lower() if full.split() else ''

        def _expand(m, full=full, lead=lead):
            before = m.string[:m.start()].rstrip().lower()
            if lead and before.endswith(lead):
                return m.group(0)
            return full

        text = re.sub(latin_bounded(abbr), _expand, text, flags=re.IGNORECASE)
    return text


def apply_brand_aliases(text: str, aliases: Mapping[str, Tuple[str, ...]]) -> str:
    """Rewrite brand aliases to the canonical brand, longest alias first."""
    pairs = [(alias, canonical) for canonical, names in aliases.items() for alias in names]
    pairs.sort(key=lambda p: len(p[0]), reverse=True)
    for alias, canonical in pairs:
        text = re.sub(latin_bounded(alias), canonical, text, flags=re.IGNORECASE)
    return text


def normalize_capacity(text: str, normalizations: Mapping[str, str]) -> str:
    """Unit-less RAM+storage ("12GB+512GB" -> "12+512"), glued storage units, tight '+'."""
    for pattern, replacement in sorted(normalizations.items(), key=lambda kv: len(kv[0]), reverse=True):
        text = re.sub(re.escape(pattern), replacement, text, flags=re.IGNORECASE)

    def _ram_storage(m):
        unit = m.group(3).lower()
        return f"{m.group(1)}+{m.group(2)}{'T' if unit in ('tb', 't') else ''}"

    text = _RAM_STORAGE.sub(_ram_storage, text)
    text = _TB.sub(r'\1TB', text)
    text = _GB.sub(r'\1GB', text)
    text = _PLUS_SPACING.sub('+', text)
    return collapse_whitespace(text)


def preprocess_title(text: Optional[str], config: MatcherConfig) -> str:
    """Full preprocessing pipeline; empty or blank input gives ''."""
    if not isinstance(text, str) or not text.strip():
        return ''
    processed = clean_title(text, config.demo_markers, config.bundled_accessory_keywords)
    processed = correct_typos(processed, config.typo_corrections)
    processed = expand_abbreviations(processed, config.abbreviations)
    processed = apply_brand_aliases(processed, config.brand_aliases)
    return normalize_capacity(processed, config.capacity_normalizations)
