"""
Micro-benchmark for the title matcher.

Tests:
1. CatalogMatcher construction (preprocessing + indexes) on a synthetic 5k catalog
2. run_matching() end-to-end on a synthetic 1k title sheet
3. InfoExtractor.extract_all() hot path

Usage:
    python scripts/benchmark_matcher.py
"""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
import time
import pandas as pd
import numpy as np
from dictionaries import default_config
from extractor import InfoExtractor
from matcher import CatalogMatcher, run_matching

BRANDS = ['华为', 'vivo', 'OPPO', '小米', '荣耀', '一加']
SERIES = {'华为': 'Mate', 'vivo': 'S', 'OPPO': 'Reno', '小米': '', '荣耀': 'Magic', '一加': 'Ace'}
SUFFIXES = ['', ' Pro', ' Pro Max', ' Pro mini', ' Ultra', ' Plus']
COLORS = ['曜石黑', '雪域白', '可可黑', '雾凇蓝', '星河银', '冰川青']
CAPACITIES = ['8+256', '12+256', '12+512', '16+1T']


def generate_synthetic_catalog(n_spus: int = 5000, seed: int = 7) -> list:
    """SPU records with 3-6 variants each."""
    rng = np.random.default_rng(seed)
    catalog = []
    for i in range(n_spus):
        brand = str(rng.choice(BRANDS))
        number = int(rng.integers(10, 90))
        suffix = str(rng.choice(SUFFIXES))
        name = f"{brand} {SERIES[brand]}{number}{suffix} 全网通5G".replace('  ', ' ')
        variants = []
        for j in range(int(rng.integers(3, 7))):
            variants.append({
                'variantID': f'{i}-{j}',
                'color': str(rng.choice(COLORS)),
                'spec': str(rng.choice(CAPACITIES)),
            })
        catalog.append({'id': i, 'name': name, 'brand': brand, 'variants': variants})
    return catalog


def generate_synthetic_titles(catalog: list, n_rows: int = 1000, seed: int = 11) -> pd.DataFrame:
    """Titles derived from catalog names with glued suffixes, capacity and color noise."""
    rng = np.random.default_rng(seed)
    rows = []
    for _ in range(n_rows):
        entry = catalog[int(rng.integers(0, len(catalog)))]
        variant = entry['variants'][int(rng.integers(0, len(entry['variants'])))]
        base = entry['name'].replace(' 全网通5G', '')
        if rng.random() < 0.5:
            base = base.replace(' Pro ', 'Pro').replace(' Pro', 'Pro')
        rows.append({'商品标题': f"{base} 5G({variant['spec']}){variant['color']}"})
    return pd.DataFrame(rows)


def benchmark_function(func, *args, **kwargs):
    """Benchmark a function and return (result, elapsed_ms)."""
    start = time.perf_counter()
    result = func(*args, **kwargs)
    elapsed_ms = (time.perf_counter() - start) * 1000
    return result, elapsed_ms


def benchmark_extract_all(n_iterations: int = 2000):
    print("\n" + "="*70)
    print("BENCHMARK: InfoExtractor.extract_all()")
    print("="*70)
    extractor = InfoExtractor(default_config())
    for title in ["Vivo S30Promini 5G(12+512)可可黑", "华为Mate60Pro 12GB+512GB 雅川青", "GT5 46mm 复合编织表带"]:
        start = time.perf_counter()
        for _ in range(n_iterations):
            extractor.extract_all(title)
        elapsed_ms = (time.perf_counter() - start) * 1000
        print(f"\nInput: {title}")
        print(f"  Per call: {elapsed_ms * 1000 / n_iterations:.2f}μs")


def benchmark_run_matching():
    print("\n" + "="*70)
    print("BENCHMARK: CatalogMatcher + run_matching()")
    print("="*70)
    catalog = generate_synthetic_catalog()
    matcher, build_time = benchmark_function(CatalogMatcher, catalog)
    print(f"\n  Index build: {build_time:.2f}ms for {len(catalog):,} SPUs")

    df_titles = generate_synthetic_titles(catalog)
    df_result, match_time = benchmark_function(run_matching, df_titles, '商品标题', matcher)
    print(f"  Matching time: {match_time:.2f}ms")
    print(f"  Per-item time: {match_time / len(df_titles):.2f}ms")

    print("\nMatch Results:")
    for status, count in df_result['match_status'].value_counts().items():
        print(f"  {status}: {count} ({count/len(df_result)*100:.1f}%)")


def main():
    benchmark_extract_all()
    benchmark_run_matching()


if __name__ == '__main__':
    main()
