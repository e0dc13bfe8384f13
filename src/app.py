"""
Catalog Title Matcher — Streamlit UI

Upload the SPU/SKU catalog (Excel, CSV or JSON records) and a list of marketplace
titles; every title is matched to an SPU and, where possible, a SKU.

Run with:
    streamlit run src/app.py
"""

import io
import logging

import pandas as pd
import streamlit as st

from catalog import CatalogError, load_catalog_file
from dictionaries import MatcherError
from matcher import (
    CatalogMatcher,
    MATCH_STATUS_MATCHED,
    MATCH_STATUS_NO_MATCH,
    MATCH_STATUS_SPU_ONLY,
    MATCH_STATUS_SUGGESTED,
    compute_coverage_metrics,
    detect_name_column,
    run_matching,
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Catalog Title Matcher",
    page_icon="🔗",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.title("🔗 Catalog Title Matcher")
st.markdown("**Noisy marketplace titles → SPU → SKU, with an explanation for every match**")

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
st.sidebar.header("⚙️ Settings")
threshold = st.sidebar.slider("SPU score threshold", 0.3, 0.9, 0.5, 0.05)

st.sidebar.markdown("**Statuses:**")
st.sidebar.markdown("🟢 **MATCHED** — SPU and SKU resolved")
st.sidebar.markdown("🔵 **SPU_ONLY** — SPU resolved, no variant")
st.sidebar.markdown("🟡 **REVIEW_REQUIRED** — similarity match below 0.7")
st.sidebar.markdown("🔴 **NO_MATCH** — nothing above the threshold")

# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
st.subheader("📚 Catalog")
catalog_upload = st.file_uploader(
    "Upload catalog (.xlsx, .csv or .json)",
    type=["xlsx", "csv", "json"],
    key="catalog_upload",
    help="One row per SKU with spu_id, spu_name, brand, sku_id, color, spec, version; or JSON SPU records",
)
if catalog_upload is None:
    st.info("💡 Upload a catalog to start.")
    st.stop()


@st.cache_resource(show_spinner="Indexing catalog...")
def build_matcher(data: bytes, filename: str, score_threshold: float) -> CatalogMatcher:
    entries = load_catalog_file(io.BytesIO(data), filename=filename)
    return CatalogMatcher(entries, threshold=score_threshold)


try:
    catalog_matcher = build_matcher(catalog_upload.getvalue(), catalog_upload.name, threshold)
except (CatalogError, MatcherError) as e:
    st.error(f"Catalog could not be indexed: {e}")
    st.stop()

stats = catalog_matcher.stats
col1, col2, col3, col4 = st.columns(4)
col1.metric("SPUs indexed", f"{stats['indexed']:,}")
col2.metric("Brand keys", stats['brand_keys'])
col3.metric("Models", stats['models'])
col4.metric("Colors", stats['colors'])
for warning in stats['warnings']:
    st.warning(warning)

# ---------------------------------------------------------------------------
# Single title
# ---------------------------------------------------------------------------
with st.expander("🔍 Try a single title"):
    title = st.text_input("Title", value="")
    if title:
        outcome = catalog_matcher.match_detailed(title)
        st.json({k: v for k, v in outcome.items() if k not in ('spu', 'sku', 'info')})

# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------
st.divider()
st.subheader("📤 Upload Titles")
titles_upload = st.file_uploader("Titles (.xlsx or .csv)", type=["xlsx", "csv"], key="titles_upload")
if titles_upload is None:
    st.stop()

try:
    if titles_upload.name.lower().endswith('.csv'):
        df_titles = pd.read_csv(titles_upload)
    else:
        df_titles = pd.read_excel(titles_upload)
except Exception as e:
    st.error(f"Failed to parse: {e}")
    st.stop()

columns = [str(c).strip() for c in df_titles.columns]
df_titles.columns = columns
detected = detect_name_column(columns)
name_col = st.selectbox("Title column", columns, index=columns.index(detected) if detected in columns else 0)

with st.expander("Preview Raw Data"):
    st.dataframe(df_titles.head(10), use_container_width=True, hide_index=True)

if st.button("🚀 Run Matching", type="primary", use_container_width=True):
    progress = st.progress(0, text="Starting...")

    def progress_cb(current, total):
        progress.progress(current / total, text=f"Matching... {current:,}/{total:,}")

    df_result = run_matching(df_titles, name_col, catalog_matcher, progress_callback=progress_cb)
    progress.progress(1.0, text="✅ Complete!")

    # Lists to strings for PyArrow and Excel
    df_result['alternatives'] = df_result['alternatives'].apply(lambda alts: ' | '.join(alts) if alts else '')

    metrics = compute_coverage_metrics(df_result)
    ca, cb, cc, cd = st.columns(4)
    ca.metric("🟢 Matched", metrics['matched_count'], f"{metrics['matched_rate']}%")
    cb.metric("🔵 SPU only", metrics['spu_only_count'], f"{metrics['spu_only_rate']}%")
    cc.metric("🟡 Review Required", metrics['review_count'], f"{metrics['review_rate']}%")
    cd.metric("🔴 No Match", metrics['no_match_count'], f"{metrics['no_match_rate']}%")

    def color_status(val):
        if val == MATCH_STATUS_MATCHED:
            return 'background-color: #d4edda; color: #155724'
        elif val == MATCH_STATUS_SPU_ONLY:
            return 'background-color: #cce5ff; color: #004085'
        elif val == MATCH_STATUS_SUGGESTED:
            return 'background-color: #fff3cd; color: #856404'
        elif val == MATCH_STATUS_NO_MATCH:
            return 'background-color: #f8d7da; color: #721c24'
        return ''

    st.dataframe(
        df_result.head(200).style.map(color_status, subset=['match_status']),
        use_container_width=True, hide_index=True,
    )

    # ------------------------------------------------------------------
    # Output Excel
    # ------------------------------------------------------------------
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        df_result.to_excel(writer, sheet_name='All Results', index=False)
        for status, sheet in ((MATCH_STATUS_SUGGESTED, 'Review Required'), (MATCH_STATUS_NO_MATCH, 'Unmatched')):
            subset = df_result[df_result['match_status'] == status]
            if len(subset) > 0:
                subset.to_excel(writer, sheet_name=sheet, index=False)
        pd.DataFrame([
            {'metric': k, 'value': v} for k, v in metrics.items() if k != 'method_breakdown'
        ]).to_excel(writer, sheet_name='Summary', index=False)
    output.seek(0)

    st.download_button(
        "📥 Download Results (.xlsx)",
        data=output,
        file_name="title_matching_results.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        use_container_width=True,
    )
