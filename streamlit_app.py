from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import streamlit as st
from pydantic import ValidationError

from qcr.core.ai_client import AIReviewClient
from qcr.core.config import Settings
from qcr.core.errors import AnalysisInputError, ConfigurationError
from qcr.core.reviewer import detect_language, failed_review, review_batch
from qcr.core.schemas import SourceFile
from qcr.core.scoring import score_band
from qcr.utils.fs import CODE_EXTS, decode_bytes


def inject_css():
    st.markdown(
        """
        <style>
        .stApp { background: #F7F9FC; }
        .block-container { padding-top: 2rem; max-width: 1200px; }
        section[data-testid="stFileUploaderDropzone"] {
            border: 2px dashed #CBD5E1;
            border-radius: 12px;
        }
        .qcr-badge {
            display: inline-block;
            padding: 6px 10px;
            border-radius: 999px;
            border: 1px solid #CBD5E1;
            font-weight: 600;
        }
        .qcr-excellent { background: #DCFCE7; color: #166534; }
        .qcr-good { background: #DBEAFE; color: #1E40AF; }
        .qcr-fair { background: #FEF9C3; color: #854D0E; }
        .qcr-poor { background: #FEE2E2; color: #991B1B; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def score_badge(score: int) -> str:
    band = score_band(score)
    return f'<span class="qcr-badge qcr-{band}"><b>{score}/100</b> · {band.title()}</span>'


def findings_frame(review: dict) -> pd.DataFrame:
    rows = [{"kind": "issue", **f} for f in review["issues"]]
    rows += [{"kind": "suggestion", **f} for f in review["suggestions"]]
    return pd.DataFrame(rows, columns=["kind", "severity", "line", "rule", "message"])


st.set_page_config(page_title="QCR: Quality Code Reviewer", layout="wide")

try:
    settings = Settings()
except ValidationError as e:
    st.error(f"Invalid QCR_* setting: {e}")
    st.stop()

inject_css()

st.title("QCR: Quality Code Reviewer")
st.caption("Upload code files. Rule-based checks for security, quality and maintainability, scored 0-100.")

with st.sidebar:
    st.header("Scoring")
    policy_name = st.radio(
        "Policy",
        options=["severity", "flat"],
        index=0 if settings.scoring_policy == "severity" else 1,
        help="severity: weigh issues by severity. flat: fixed penalty per finding.",
    )
    reject_empty = st.checkbox("Fail empty files", value=False)

    st.divider()
    st.header("AI review")
    use_ai = st.checkbox("Append AI feedback", value=False)
    model = st.text_input("Model", value=settings.model)
    base_url = st.text_input("API base URL", value=settings.base_url)
    temperature = st.slider("Temperature", min_value=0.0, max_value=1.0, value=settings.temperature, step=0.05)

    st.divider()
    st.subheader("Filters")
    sev_filter = st.multiselect(
        "Severity",
        options=["critical", "high", "medium", "low"],
        default=["critical", "high", "medium", "low"],
    )
    search = st.text_input("Search in messages", value="").strip()

    st.divider()
    st.markdown("**Supported uploads:** " + ", ".join(sorted(CODE_EXTS)))

uploaded = st.file_uploader(
    "Upload code file(s)",
    type=sorted(ext.lstrip(".") for ext in CODE_EXTS),
    accept_multiple_files=True,
)

c_run, c_clear = st.columns([1, 1])
with c_run:
    run_review = st.button("Review now", use_container_width=True)
with c_clear:
    if st.button("Clear", use_container_width=True):
        st.session_state.pop("reviews", None)
        st.rerun()

if not uploaded:
    st.info("Upload one or more code files to review.")
    st.stop()

if run_review:
    try:
        policy = settings.scoring(policy_name)
        ai_client = (
            AIReviewClient.from_settings(settings, model=model, base_url=base_url, temperature=temperature)
            if use_ai
            else None
        )
    except ConfigurationError as e:
        st.error(str(e))
        st.stop()

    slots = []
    sources = []
    for uf in uploaded:
        try:
            sources.append(SourceFile(name=uf.name, content=decode_bytes(uf.getvalue(), name=uf.name)))
            slots.append(None)
        except AnalysisInputError as e:
            slots.append(failed_review(uf.name, detect_language(uf.name), str(e)))

    with st.spinner(f"Reviewing {len(sources)} file(s)..."):
        try:
            reviewed = iter(
                review_batch(
                    sources,
                    policy=policy,
                    ai_client=ai_client,
                    reject_empty=reject_empty,
                    max_workers=settings.max_workers,
                )
            )
        finally:
            if ai_client is not None:
                ai_client.close()

    reviews = [slot if slot is not None else next(reviewed) for slot in slots]
    st.session_state["reviews"] = [r.model_dump() for r in reviews]

reviews = st.session_state.get("reviews")
if not reviews:
    st.warning("Click **Review now** to generate feedback.")
    st.stop()

for idx, data in enumerate(reviews):
    fname = data["filename"]
    df = findings_frame(data)
    df = df[df["severity"].isin(sev_filter)]
    if search:
        df = df[df["message"].astype(str).str.lower().str.contains(search.lower(), na=False, regex=False)]

    header_left, header_right = st.columns([3, 2])
    with header_left:
        st.markdown(f"### {fname}")
        st.write(f"**Summary:** {data['summary']}")
        st.caption(f"{len(data['issues'])} issues • {len(data['suggestions'])} suggestions")
    with header_right:
        st.markdown(score_badge(int(data["score"])), unsafe_allow_html=True)
        st.caption(f"Language: {data['language']}")

    if data.get("error"):
        st.error(data["error"])

    with st.expander("Show findings", expanded=not df.empty):
        if not df.empty:
            st.dataframe(df, use_container_width=True, hide_index=True)
        else:
            st.success("No findings (after filters).")

    st.download_button(
        label="Download JSON report",
        data=json.dumps(data, indent=2).encode("utf-8"),
        file_name=f"{Path(fname).stem}_review.json",
        mime="application/json",
        use_container_width=True,
        key=f"download-{idx}",
    )

    st.divider()
