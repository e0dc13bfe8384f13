"""
Catalog snapshot types, loading, and the one-pass preprocessor that builds the indexes.

A catalog is an ordered list of SPU records:
    {"id": 101, "name": "vivo S30 Pro mini 全网通5G", "brand": "vivo",
     "variants": [{"variantID": 9001, "color": "可可黑", "spec": "12+512", "combo": "全网通5G"}]}
Variant keys also accept the SKU spelling (skuID, memory, gtins). A flat table with one
row per SKU can be loaded with catalog_from_dataframe() / load_catalog_file().

CatalogPreprocessor.build() runs the extractor once per entry and returns a CatalogIndex:
    brand_index   brand key (canonical, lowercase, phonetic spell) -> entries
    model_index   normalized model key -> entries
    brand_models  lowercase canonical brand -> its model keys, longest first
    color/spec/combo indexes  value -> entry ids, plus the color vocabulary
An entry that fails preprocessing is logged and skipped; the rest are still indexed.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from dictionaries import MatcherError, VersionKeyword
from extractor import InfoExtractor
from text_normalize import normalize_model_key, preprocess_title

logger = logging.getLogger(__name__)


class CatalogError(MatcherError):
    """Catalog input that cannot be indexed at all."""


# ---------------------------------------------------------------------------
# Snapshot types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Variant:
    id: Any
    name: str
    spu_id: Any = None
    color: Optional[str] = None
    capacity: Optional[str] = None
    version: Optional[str] = None
    spec: Optional[str] = None
    combo: Optional[str] = None
    size: Optional[str] = None
    band: Optional[str] = None
    external_codes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CatalogEntry:
    id: Any
    name: str
    brand: Optional[str] = None
    variants: Tuple[Variant, ...] = ()


@dataclass(frozen=True)
class EnhancedCatalogEntry:
    """A CatalogEntry plus the fields derived from it once per catalog load."""

    entry: CatalogEntry
    extracted_brand: Optional[str]
    extracted_model: Optional[str]
    normalized_model: Optional[str]
    name_part: str
    simplicity: int
    version: Optional[VersionKeyword] = None

    @property
    def id(self):
        return self.entry.id

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def variants(self) -> Tuple[Variant, ...]:
        return self.entry.variants


# ---------------------------------------------------------------------------
# Record coercion
# ---------------------------------------------------------------------------

def _first(record: Mapping, *keys, default=None):
    for key in keys:
        value = record.get(key)
        if value is None:
            continue
        if isinstance(value, float) and pd.isna(value):
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return default


def _text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _codes(value) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(c.strip() for c in re.split(r'[,;，；\s]+', value) if c.strip())
    if isinstance(value, (list, tuple)):
        return tuple(str(c).strip() for c in value if str(c).strip())
    return (str(value),)


def variant_from_record(record: Mapping, spu_id: Any = None, spu_name: str = '') -> Variant:
    """Build a Variant from an entry-level descriptor or a full SKU record."""
    variant_id = _first(record, 'id', 'variantID', 'variant_id', 'skuID', 'sku_id')
    if variant_id is None:
        raise ValueError(f"variant record without an id: {dict(record)!r}")
    color = _text(_first(record, 'color'))
    spec = _text(_first(record, 'spec'))
    name = _text(_first(record, 'name', 'skuName', 'sku_name')) \
        or ' '.join(p for p in (spu_name, spec, color) if p)
    return Variant(
        id=variant_id,
        name=name,
        spu_id=_first(record, 'spuID', 'spu_id', default=spu_id),
        color=color,
        capacity=_text(_first(record, 'capacity', 'memory')),
        version=_text(_first(record, 'version')),
        spec=spec,
        combo=_text(_first(record, 'combo')),
        size=_text(_first(record, 'size')),
        band=_text(_first(record, 'band')),
        external_codes=_codes(_first(record, 'externalCodes', 'external_codes', 'gtins', 'gtin')),
    )


def entry_from_record(record: Any) -> CatalogEntry:
    if isinstance(record, CatalogEntry):
        return record
    if not isinstance(record, Mapping):
        raise ValueError(f"catalog record must be a mapping, got {type(record).__name__}")
    entry_id = _first(record, 'id', 'spuID', 'spu_id')
    name = _text(_first(record, 'name', 'spuName', 'spu_name'))
    if entry_id is None or name is None:
        raise ValueError(f"catalog record needs an id and a name: {dict(record)!r}")
    raw_variants = _first(record, 'variants', 'skuIDs', 'skus', default=[]) or []
    variants = []
    for raw in raw_variants:
        if isinstance(raw, Variant):
            variants.append(raw)
            continue
        try:
            variants.append(variant_from_record(raw, spu_id=entry_id, spu_name=name))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Skipping variant of SPU %s: %s", entry_id, e)
    return CatalogEntry(id=entry_id, name=name, brand=_text(_first(record, 'brand')), variants=tuple(variants))


def coerce_catalog(catalog: Any) -> List[CatalogEntry]:
    """
    Accept a list of records / CatalogEntry objects or a per-SKU DataFrame.

    Raises CatalogError when the input is not a list-like at all. Malformed single
    records are logged and skipped.
    """
    if isinstance(catalog, pd.DataFrame):
        return catalog_from_dataframe(catalog)
    if catalog is None or isinstance(catalog, (str, bytes, Mapping)) or not isinstance(catalog, (list, tuple)):
        raise CatalogError(f"catalog must be a list of SPU records, got {type(catalog).__name__}")
    entries = []
    for i, record in enumerate(catalog):
        try:
            entries.append(entry_from_record(record))
        except (ValueError, TypeError) as e:
            logger.warning("Skipping catalog record #%d: %s", i, e)
    return entries


# ---------------------------------------------------------------------------
# Tabular catalogs (Excel / CSV / JSON)
# ---------------------------------------------------------------------------

SPU_ID_KEYWORDS = ['spu_id', 'spuid', 'spu id', 'product_id']
SPU_NAME_KEYWORDS = ['spu_name', 'spuname', 'spu name', 'product_name', 'name']
BRAND_KEYWORDS = ['brand', '品牌', 'manufacturer']
SKU_ID_KEYWORDS = ['sku_id', 'skuid', 'sku id', 'variant_id']


def _detect_column(columns: List[str], keywords: List[str]) -> Optional[str]:
    lowered = {str(c).strip().lower(): c for c in columns}
    for kw in keywords:
        if kw in lowered:
            return lowered[kw]
    return None


def catalog_from_dataframe(df: pd.DataFrame) -> List[CatalogEntry]:
    """
    Group a one-row-per-SKU table into CatalogEntry objects, keeping first-seen order.

    Expected columns (case-insensitive): spu_id, spu_name, brand, sku_id, color, spec,
    capacity, version, combo, gtin. spu_name is required; sku_id is optional.
    """
    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]
    name_col = _detect_column(df.columns.tolist(), SPU_NAME_KEYWORDS)
    if name_col is None:
        raise CatalogError(f"catalog table has no SPU name column; columns: {df.columns.tolist()}")
    id_col = _detect_column(df.columns.tolist(), SPU_ID_KEYWORDS)
    brand_col = _detect_column(df.columns.tolist(), BRAND_KEYWORDS)
    sku_col = _detect_column(df.columns.tolist(), SKU_ID_KEYWORDS)

    df = df[df[name_col].notna()]
    df = df[df[name_col].astype(str).str.strip() != '']
    key_col = id_col or name_col

    entries = []
    for spu_key, group in df.groupby(key_col, sort=False):
        first = group.iloc[0]
        record = {
            'id': spu_key,
            'name': str(first[name_col]).strip(),
            'brand': first[brand_col] if brand_col else None,
            'variants': [],
        }
        if sku_col:
            for _, row in group.iterrows():
                if pd.isna(row[sku_col]):
                    continue
                sku = {k: v for k, v in row.to_dict().items() if not (isinstance(v, float) and pd.isna(v))}
                sku['id'] = row[sku_col]
                sku.pop('name', None)
                record['variants'].append(sku)
        try:
            entries.append(entry_from_record(record))
        except (ValueError, TypeError) as e:
            logger.warning("Skipping catalog SPU %s: %s", spu_key, e)
    return entries


def load_catalog_file(file, filename: Optional[str] = None) -> List[CatalogEntry]:
    """Load a catalog from a path or an uploaded file object (.xlsx, .csv or .json)."""
    name = (filename or getattr(file, 'name', None) or str(file)).lower()
    if name.endswith('.json'):
        if isinstance(file, (str, os.PathLike)):
            with open(file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        else:
            data = json.load(file)
        return coerce_catalog(data)
    if name.endswith('.csv'):
        return catalog_from_dataframe(pd.read_csv(file))
    if name.endswith(('.xlsx', '.xls')):
        return catalog_from_dataframe(pd.read_excel(file))
    raise CatalogError(f"unsupported catalog file type: {name}")


# ---------------------------------------------------------------------------
# Preprocessing and indexes
# ---------------------------------------------------------------------------

_CUT_FULL_NETWORK = re.compile(r'全网通\s*5g', re.IGNORECASE)
_CUT_NETWORK = re.compile(r'(?<![a-z0-9])[2345]g(?![a-z0-9])', re.IGNORECASE)
_CUT_CAPACITY = re.compile(r'\d+\s*(?:gb|g)?\s*\+\s*\d+', re.IGNORECASE)
_CUT_WATCH_SIZE = re.compile(r'\d{2}(?:\.\d)?\s*mm', re.IGNORECASE)


_INDEX_FIELDS = ('brand_index', 'model_index', 'brand_models', 'color_index', 'spec_index',
                 'combo_index', 'stats')


@dataclass(frozen=True)
class CatalogIndex:
    """Read-only result of one preprocessing pass. Never mutated by match requests."""

    entries: Tuple[EnhancedCatalogEntry, ...] = ()
    brand_index: Mapping[str, Tuple[EnhancedCatalogEntry, ...]] = field(default_factory=dict)
    model_index: Mapping[str, Tuple[EnhancedCatalogEntry, ...]] = field(default_factory=dict)
    brand_models: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    color_index: Mapping[str, Tuple[Any, ...]] = field(default_factory=dict)
    spec_index: Mapping[str, Tuple[Any, ...]] = field(default_factory=dict)
    combo_index: Mapping[str, Tuple[Any, ...]] = field(default_factory=dict)
    color_vocabulary: Tuple[str, ...] = ()
    stats: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'entries', tuple(self.entries))
        for name in _INDEX_FIELDS:
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def __len__(self):
        return len(self.entries)

    def by_brand_key(self, key: str) -> Optional[Tuple[EnhancedCatalogEntry, ...]]:
        return self.brand_index.get(key)

    def by_model(self, normalized_model: Optional[str]) -> Tuple[EnhancedCatalogEntry, ...]:
        if not normalized_model:
            return ()
        return self.model_index.get(normalized_model, ())


class CatalogPreprocessor:
    """Runs the extractor once per catalog entry and builds the lookup indexes."""

    def __init__(self, extractor: InfoExtractor):
        self.extractor = extractor
        self.config = extractor.config

    def brand_keys(self, brand: Optional[str]) -> List[str]:
        """Canonical name, its lowercase form and its phonetic spelling."""
        canonical = self.extractor.canonical_brand(brand)
        if canonical is None:
            return []
        keys = [canonical]
        for form in self.extractor.brand_forms(canonical):
            if form not in keys:
                keys.append(form)
        return keys

    def _display_model(self, name: str, spaced_model: str) -> str:
        """Recover the catalog's own casing for a spaced lowercase model."""
        parts = [r'(?:plus|\+)' if p == 'plus' else re.escape(p) for p in spaced_model.split()]
        m = re.search(r'[\s\-_]*'.join(parts), name, re.IGNORECASE)
        return m.group(0).strip() if m else spaced_model

    def extract_name_part(self, name: str, color: Optional[str] = None) -> str:
        """The SPU part of a name: everything before network, capacity or size, minus a trailing color."""
        cut = len(name)
        for pattern in (_CUT_FULL_NETWORK, _CUT_NETWORK, _CUT_CAPACITY, _CUT_WATCH_SIZE):
            m = pattern.search(name)
            if m and m.start() > 0:
                cut = min(cut, m.start())
        part = name[:cut].strip()
        if color and part.endswith(color) and len(part) > len(color):
            part = part[:-len(color)].strip()
        return part or name.strip()

    def enhance(self, entry: CatalogEntry) -> EnhancedCatalogEntry:
        text = preprocess_title(entry.name, self.config)
        brand = self.extractor.canonical_brand(entry.brand) or self.extractor.extract_brand(text).value
        spaced, _, _ = self.extractor.extract_model_display(text, brand)
        normalized = normalize_model_key(spaced)
        display = self._display_model(entry.name, spaced) if spaced else None
        color = self.extractor.extract_color(text).value
        name_part = self.extract_name_part(entry.name, color)
        simplicity = max(0, len(name_part) - len(brand or '') - len(display or ''))
        return EnhancedCatalogEntry(
            entry=entry,
            extracted_brand=brand,
            extracted_model=display,
            normalized_model=normalized,
            name_part=name_part,
            simplicity=simplicity,
            version=self.extractor.extract_version(text).value,
        )

    def build(self, catalog: Any) -> CatalogIndex:
        """
        Preprocess a whole catalog snapshot.

        Raises CatalogError for input that is not a catalog at all; single entries that
        fail are logged and skipped.
        """
        entries = coerce_catalog(catalog)
        warnings = []
        enhanced: List[EnhancedCatalogEntry] = []
        brand_index: Dict[str, List[EnhancedCatalogEntry]] = {}
        model_index: Dict[str, List[EnhancedCatalogEntry]] = {}
        color_index: Dict[str, List[Any]] = {}
        spec_index: Dict[str, List[Any]] = {}
        combo_index: Dict[str, List[Any]] = {}
        color_counts: Dict[str, int] = {}
        skipped = no_brand = no_model = 0

        for entry in entries:
            try:
                item = self.enhance(entry)
            except Exception as e:
                skipped += 1
                logger.warning("Skipping SPU %s (%r): preprocessing failed: %s", entry.id, entry.name, e)
                continue
            enhanced.append(item)

            if item.extracted_brand:
                for key in self.brand_keys(item.extracted_brand):
                    brand_index.setdefault(key, []).append(item)
            else:
                no_brand += 1
                logger.debug("SPU %s (%r) has no recognizable brand", entry.id, entry.name)

            if item.normalized_model:
                model_index.setdefault(item.normalized_model, []).append(item)
            else:
                no_model += 1
                logger.debug("SPU %s (%r) has no recognizable model", entry.id, entry.name)

            for variant in entry.variants:
                for value, index in ((variant.color, color_index), (variant.spec, spec_index),
                                     (variant.combo, combo_index)):
                    if value:
                        ids = index.setdefault(value, [])
                        if entry.id not in ids:
                            ids.append(entry.id)
                if variant.color:
                    color_counts[variant.color] = color_counts.get(variant.color, 0) + 1

        if no_brand:
            warnings.append(f"{no_brand} SPU entries have no recognizable brand")
        if no_model:
            warnings.append(f"{no_model} SPU entries have no recognizable model")
        if skipped:
            warnings.append(f"{skipped} SPU entries failed preprocessing and were skipped")

        stats = {
            'entries': len(entries),
            'indexed': len(enhanced),
            'skipped': skipped,
            'no_brand': no_brand,
            'no_model': no_model,
            'brand_keys': len(brand_index),
            'models': len(model_index),
            'colors': len(color_index),
            'specs': len(spec_index),
            'combos': len(combo_index),
            'top_colors': tuple(sorted(color_counts.items(), key=lambda kv: (-kv[1], kv[0]))[:10]),
            'warnings': tuple(warnings),
        }
        logger.info(
            "Catalog indexed: %d/%d entries, %d brand keys, %d models, %d colors",
            len(enhanced), len(entries), len(brand_index), len(model_index), len(color_index),
        )
        for warning in warnings:
            logger.warning(warning)

        brand_models: Dict[str, set] = {}
        for key, items in model_index.items():
            for item in items:
                if item.extracted_brand:
                    brand_models.setdefault(item.extracted_brand.lower(), set()).add(key)

        return CatalogIndex(
            entries=tuple(enhanced),
            brand_index={k: tuple(v) for k, v in brand_index.items()},
            model_index={k: tuple(v) for k, v in model_index.items()},
            brand_models={b: tuple(sorted(keys, key=lambda k: (-len(k), k))) for b, keys in brand_models.items()},
            color_index={k: tuple(v) for k, v in color_index.items()},
            spec_index={k: tuple(v) for k, v in spec_index.items()},
            combo_index={k: tuple(v) for k, v in combo_index.items()},
            color_vocabulary=tuple(color_index),
            stats=stats,
        )
