"""Streamlit instructor dashboard for case-chat analytics.

Pages: Home (class overview), Analytics (date-ranged rollups), Results
(filterable student table with CSV export), Case prep (outline jobs) and
Data quality. All computation lives in ``src/casechat_analytics``.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import streamlit as st

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for path in (ROOT, SRC):
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from app.sample_data import load_sample_data  # noqa: E402
from app.ui import (  # noqa: E402
    AppShell,
    Step,
    alert,
    badge,
    card,
    download_results,
    format_number,
    kpi_row,
    score_tone,
    section_header,
    status_badge,
    stepper,
    style_fig,
)
from casechat_analytics import invariants, jobs  # noqa: E402
from casechat_analytics.client import DashboardClient, fetch_dashboard_data  # noqa: E402
from casechat_analytics.config import Settings, load_settings  # noqa: E402
from casechat_analytics.errors import ApiError  # noqa: E402
from casechat_analytics.export import COLUMN_LABELS, COLUMN_OPTIONS  # noqa: E402
from casechat_analytics.filters import ALL, DATE_RANGE_LABELS  # noqa: E402
from casechat_analytics.home import build_home, format_time_ago, progress_percent  # noqa: E402
from casechat_analytics.io import load_dashboard_dir  # noqa: E402
from casechat_analytics.log import configure_logging  # noqa: E402
from casechat_analytics.metrics import build_report, score_distribution  # noqa: E402
from casechat_analytics.plots import case_score_bar, distribution_chart, section_completion_bar  # noqa: E402
from casechat_analytics.records import DashboardData  # noqa: E402
from casechat_analytics.refresh import AutoRefresh  # noqa: E402
from casechat_analytics.results import GAP, PAGE_SIZES, SORT_KEYS, build_result_rows  # noqa: E402
from casechat_analytics.session import LocalResultsSource, ResultsSession  # noqa: E402
from casechat_analytics.timer import timer_display  # noqa: E402
from tools.generate_synthetic import generate_synthetic_dataset  # noqa: E402

st.set_page_config(page_title="Case Chat Analytics", layout="wide", page_icon="📊")

logger = logging.getLogger(__name__)

DATA_DIR = ROOT / "data"
SYNTHETIC_DIR = DATA_DIR / "synthetic"
SOURCES = ["Demo", "Synthetic", "Live API"]
PAGES = ["Home", "Analytics", "Results", "Case prep", "Data quality"]
STATUS_LABELS = {"completed": "Completed", "in_progress": "In Progress", "not_started": "Not Started"}


def _init_state() -> None:
    defaults = {
        "source": "Demo",
        "loaded_source": None,
        "data": None,
        "refresh_flag": {"stale": False},
        "auto_refresh": None,
        "results_session": None,
        "job_tracker": None,
        "date_range": "30d",
    }
    for key, val in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = val


@st.cache_resource
def _settings() -> Settings:
    settings = load_settings()
    configure_logging(settings.log_level)
    return settings


def _client(settings: Settings) -> DashboardClient:
    if "client" not in st.session_state:
        st.session_state["client"] = DashboardClient.from_settings(settings)
    return st.session_state["client"]


def _load_data(source: str, settings: Settings) -> Optional[DashboardData]:
    if source == "Synthetic":
        if not (SYNTHETIC_DIR / "evaluations.csv").exists():
            generate_synthetic_dataset(SYNTHETIC_DIR)
        return load_dashboard_dir(SYNTHETIC_DIR)
    if source == "Live API":
        return fetch_dashboard_data(_client(settings))
    return load_sample_data()


def _current_data(source: str, settings: Settings, force: bool = False) -> Optional[DashboardData]:
    flag = st.session_state["refresh_flag"]
    stale = force or flag.get("stale") or st.session_state["loaded_source"] != source
    if stale:
        st.session_state["data"] = _load_data(source, settings)
        logger.info("Loaded %s data (force=%s)", source, force)
        st.session_state["loaded_source"] = source
        st.session_state["results_session"] = None
        st.session_state["loaded_at"] = pd.Timestamp.now(tz="UTC")
        flag["stale"] = False
    return st.session_state["data"]


def _sync_auto_refresh(page: str, interval: float) -> None:
    """Keep one refresh timer alive while Home is showing; tear it down elsewhere."""

    timer: Optional[AutoRefresh] = st.session_state.get("auto_refresh")
    if page != "Home":
        if timer is not None:
            timer.stop()
            st.session_state["auto_refresh"] = None
        return
    if timer is None or not timer.running:
        flag = st.session_state["refresh_flag"]
        st.session_state["auto_refresh"] = AutoRefresh(lambda: flag.update(stale=True), interval=interval).start()


def _render_unavailable():
    st.error("Data unavailable: the dashboard could not load its data. Check the API connection and try again.")


def _render_home(data: DashboardData, client: Optional[DashboardClient]):
    home = build_home(data)
    stats = home["stats"]
    kpi_row(
        [
            {"label": "Active sections", "value": stats["active_sections"]},
            {"label": "Students", "value": stats["total_students"]},
            {"label": "Completed this week", "value": stats["completed_this_week"]},
            {"label": "Active chats", "value": stats["active_chats"]},
        ]
    )
    loaded_at = st.session_state.get("loaded_at")
    if loaded_at is not None:
        st.caption(f"Last refreshed {format_time_ago(loaded_at)}")

    for item in home["alerts"]:
        alert(item["message"])

    left, right = st.columns([0.65, 0.35])
    with left:
        section_header("Sections")
        overview = home["sections"]
        if overview.empty:
            st.caption("No enabled sections.")
        for _, row in overview.iterrows():
            with card(row["section_title"], row["year_term"]):
                percent = progress_percent(row["completed_students"], row["total_students"])
                st.progress(percent / 100, text=f"{row['completed_students']}/{row['total_students']} completed ({percent}%)")
                st.caption(
                    f"In progress: {row['in_progress_students']} · Active chats: {row['active_chats']} · "
                    f"Avg score: {format_number(row['avg_score'])}"
                )
    with right:
        section_header("Recent activity")
        if not home["recent"]:
            st.caption("No completions yet.")
        for item in home["recent"]:
            st.write(f"**{item['student_name']}** completed {item['case_title']}")
            st.caption(f"{item['section_title']} · {format_time_ago(item['timestamp'])}")

        if client is not None:
            section_header("Chat timer")
            chat_id = st.text_input("Chat ID", key="timer_chat_id")
            if chat_id:
                try:
                    display = timer_display(client.get_time_remaining(chat_id))
                except ApiError as exc:
                    st.error(exc.message)
                else:
                    if display is None:
                        st.caption("This chat has no time limit.")
                    else:
                        st.metric("Time remaining", display.label, help=f"Level: {display.level}")


def _render_analytics(data: DashboardData):
    ranges = list(DATE_RANGE_LABELS)
    date_range = st.radio(
        "Date range",
        ranges,
        index=ranges.index(st.session_state["date_range"]),
        format_func=DATE_RANGE_LABELS.get,
        horizontal=True,
    )
    st.session_state["date_range"] = date_range

    report = build_report(data, date_range)
    if report is None:
        _render_unavailable()
        return

    overall = report.overall
    trend = {"up": "▲", "down": "▼", "flat": "■"}[overall["trend"]]
    kpi_row(
        [
            {"label": "Sections", "value": overall["total_sections"]},
            {"label": "Students", "value": overall["total_students"]},
            {
                "label": "Completions",
                "value": overall["total_completions"],
                "hint": f"{trend} {overall['completion_delta']:+d} vs last week",
            },
            {"label": "Avg score", "value": format_number(overall["avg_score"]), "hint": "out of 15"},
            {"label": "Completion rate", "value": format_number(overall["completion_rate"], 0, "%")},
        ]
    )

    st.plotly_chart(style_fig(distribution_chart(report.distribution)), use_container_width=True)

    left, right = st.columns(2)
    with left:
        section_header("By section", "Highest completion rate first")
        if report.sections.empty:
            st.caption("No enabled sections.")
        else:
            st.plotly_chart(style_fig(section_completion_bar(report.sections)), use_container_width=True)
            st.dataframe(report.sections.round(1), use_container_width=True, hide_index=True)
    with right:
        section_header("By case", "Most attempted first; cases without attempts are hidden")
        if report.cases.empty:
            st.caption("No attempts in this range.")
        else:
            st.plotly_chart(style_fig(case_score_bar(report.cases)), use_container_width=True)
            st.dataframe(report.cases.round(1), use_container_width=True, hide_index=True)


def _results_session(source: str, data: DashboardData, client: Optional[DashboardClient]) -> ResultsSession:
    session = st.session_state.get("results_session")
    if session is None:
        backend = client if source == "Live API" else LocalResultsSource(build_result_rows(data))
        session = ResultsSession(backend)
        st.session_state.pop("results_filters", None)
        st.session_state["results_session"] = session
    return session


def _filter_options(data: DashboardData, client: Optional[DashboardClient]) -> Dict[str, Dict[str, str]]:
    if client is not None:
        try:
            options = client.get_filter_options()
            return {
                "sections": {o["section_id"]: o["section_title"] for o in options["sections"]},
                "cases": {o["case_id"]: o["case_title"] for o in options["cases"]},
            }
        except ApiError as exc:
            st.warning(f"Failed to fetch filter options: {exc.message}")
    enabled = data.sections[data.sections["enabled"]]
    return {
        "sections": dict(zip(enabled["section_id"], enabled["section_title"])),
        "cases": dict(zip(data.cases["case_id"], data.cases["case_title"])),
    }


def _multiselect(label: str, options: Dict[str, str], current) -> List[str]:
    keys = [ALL] + list(options)
    default = [ALL] if current == ALL else [k for k in current if k in options]
    return st.multiselect(label, keys, default=default, format_func=lambda k: "All" if k == ALL else options.get(k, k))


def _render_results(source: str, data: DashboardData, client: Optional[DashboardClient], settings: Settings):
    session = _results_session(source, data, client)
    options = _filter_options(data, client)

    cols = st.columns(3)
    with cols[0]:
        sections = _multiselect("Sections", options["sections"], session.section_ids)
    with cols[1]:
        cases = _multiselect("Cases", options["cases"], session.case_ids)
    with cols[2]:
        statuses = _multiselect("Status", STATUS_LABELS, session.statuses)
    chosen = tuple(ALL if not picked or ALL in picked else picked for picked in (sections, cases, statuses))
    previous = st.session_state.get("results_filters")
    if chosen != previous:
        session.set_filters(*chosen)
        st.session_state["results_filters"] = chosen

    cols = st.columns([0.5, 0.2, 0.15, 0.15])
    with cols[0]:
        visible = st.multiselect(
            "Columns",
            COLUMN_OPTIONS,
            default=session.visible_columns,
            format_func=COLUMN_LABELS.get,
        )
        session.set_visible_columns(visible)
    with cols[1]:
        sort_key = st.selectbox("Sort by", SORT_KEYS, index=SORT_KEYS.index(session.sort_by))
        if sort_key != session.sort_by:
            session.sort(sort_key)
    with cols[2]:
        st.write("")
        if st.button(f"Direction: {session.sort_dir}"):
            session.sort(session.sort_by)
    with cols[3]:
        size = st.selectbox("Page size", PAGE_SIZES, index=PAGE_SIZES.index(session.page_size))
        if size != session.page_size:
            session.set_page_size(size)

    session.refresh()
    if session.error:
        st.error(session.error)
    result = session.result
    if result is None:
        return

    summary = result.summary
    kpi_row(
        [
            {"label": "Students", "value": summary.get("totalStudents", 0)},
            {"label": "Completions", "value": summary.get("totalCompletions", 0)},
            {"label": "Avg score", "value": format_number(summary.get("avgScore"))},
            {"label": "Avg hints", "value": format_number(summary.get("avgHints"))},
            {"label": "Completion rate", "value": format_number(summary.get("completionRate"), 0, "%")},
        ]
    )
    distribution = pd.DataFrame(summary.get("scoreDistribution") or score_distribution(result.rows).to_dict("records"))
    with st.expander("Score distribution and breakdowns"):
        st.plotly_chart(style_fig(distribution_chart(distribution)), use_container_width=True)
        if summary.get("sectionBreakdown"):
            st.dataframe(pd.DataFrame(summary["sectionBreakdown"]), use_container_width=True, hide_index=True)
        if summary.get("caseBreakdown"):
            st.dataframe(pd.DataFrame(summary["caseBreakdown"]), use_container_width=True, hide_index=True)

    rows = result.rows
    table = rows[["student_name"] + session.visible_columns].rename(columns={"student_name": "Student", **COLUMN_LABELS})
    st.dataframe(table, use_container_width=True, hide_index=True)

    items = session.page_numbers()
    for col, item in zip(st.columns(len(items)) if items else [], items):
        with col:
            if item == GAP:
                st.write("…")
            elif st.button(str(item), key=f"page-{item}", disabled=item == session.page):
                session.set_page(item)
                st.rerun()
    st.caption(f"{result.total} rows · page {session.page} of {max(session.total_pages, 1)}")

    evaluated = rows[rows["evaluation_id"].notna()]
    if not evaluated.empty:
        with st.expander("Re-chat permission"):
            choice = st.selectbox(
                "Student / case",
                evaluated.index,
                format_func=lambda i: f"{evaluated.loc[i, 'student_name']} · {evaluated.loc[i, 'case_title']}",
            )
            current = evaluated.loc[choice]
            status_badge(current["status"])
            badge(f"Score {format_number(current['score'])}", score_tone(current["score"]))
            label = "Revoke re-chat" if current["allow_rechat"] else "Allow re-chat"
            if st.button(label):
                if session.toggle_rechat(current):
                    st.rerun()
                else:
                    st.error(session.error or "Failed to update re-chat setting")

    download_results("Export CSV", rows, session.visible_columns, settings.export_dir)


def _job_steps(tracker: Optional[jobs.OutlineJobTracker]) -> List[Step]:
    state = tracker.state if tracker is not None else jobs.IDLE
    order = [jobs.IDLE, jobs.SUBMITTED, jobs.POLLING]
    final = state if state in jobs.TERMINAL_STATES or state == jobs.DETACHED else "settled"
    detail = (tracker.message or tracker.error or "") if tracker is not None else ""

    def status(step: str) -> str:
        if step == state:
            return "active"
        return "done" if state not in order or order.index(step) < order.index(state) else "waiting"

    final_status = "waiting"
    if state in (jobs.FAILED, jobs.ABORTED):
        final_status = "error"
    elif state in jobs.TERMINAL_STATES:
        final_status = "done"
    elif state == jobs.DETACHED:
        final_status = "active"
    return [
        Step("Choose file", "Pick a case file and model", status(jobs.IDLE)),
        Step("Submitted", "Job sent to the outline worker", status(jobs.SUBMITTED)),
        Step("Processing", "Checking status every few seconds", status(jobs.POLLING)),
        Step(final.replace("_", " ").title(), detail, final_status),
    ]


def _render_case_prep(source: str, data: DashboardData, client: Optional[DashboardClient], settings: Settings):
    if source != "Live API" or client is None:
        st.info("Case prep talks to the outline worker; switch the data source to Live API to use it.")
        return

    cases = dict(zip(data.cases["case_id"], data.cases["case_title"]))
    if not cases:
        st.caption("No cases available.")
        return
    case_id = st.selectbox("Case", list(cases), format_func=cases.get)
    try:
        files = client.list_case_prep_files(case_id)
    except ApiError as exc:
        st.error(exc.message)
        return
    if not files:
        st.caption("No files uploaded for this case yet.")
        return

    file_labels = {str(f["id"]): f"{f.get('filename') or f['id']} ({f.get('processing_status', 'pending')})" for f in files}
    file_id = st.selectbox("File", list(file_labels), format_func=file_labels.get)
    model_id = st.text_input("Model ID", value=st.session_state.get("model_id", ""))
    st.session_state["model_id"] = model_id

    tracker: Optional[jobs.OutlineJobTracker] = st.session_state.get("job_tracker")
    stepper(_job_steps(tracker))
    current = next((f for f in files if str(f["id"]) == file_id), {})
    shown = tracker if tracker is not None and tracker.file_id == file_id else None

    cols = st.columns(5)
    with cols[0]:
        busy = tracker is not None and tracker.is_active
        if st.button("Process", disabled=busy or not model_id):
            if shown is not None:
                draft = shown.content
            else:
                draft = st.session_state.get(_outline_key(file_id, None), current.get("outline_content"))
            tracker = jobs.OutlineJobTracker(
                client,
                case_id,
                file_id,
                model_id=model_id,
                interval=settings.poll_interval,
                timeout=settings.job_timeout,
                content=draft,
            )
            st.session_state["job_tracker"] = tracker
            tracker.start()
            st.rerun()
    if tracker is not None:
        with cols[1]:
            if st.button("Abort", disabled=tracker.state != jobs.POLLING):
                tracker.abort()
                st.rerun()
        with cols[2]:
            if st.button("Continue in background", disabled=tracker.state != jobs.POLLING):
                tracker.detach()
                st.rerun()
        with cols[3]:
            if st.button("Reattach", disabled=tracker.state not in (jobs.DETACHED, jobs.TIMED_OUT)):
                tracker.reattach()
                tracker.start()
                st.rerun()
        with cols[4]:
            if st.button("Check status"):
                st.rerun()

        if tracker.state == jobs.FAILED:
            st.error(tracker.error)
        elif tracker.state == jobs.TIMED_OUT:
            st.warning(tracker.message)

    section_header("Outline", current.get("filename") or file_id)
    content = shown.content if shown is not None else current.get("outline_content")
    edited = st.text_area("Outline", content or "", height=320, key=_outline_key(file_id, shown), label_visibility="collapsed")
    if shown is not None and edited != (shown.content or ""):
        shown.stage(edited)
    locked = shown is not None and shown.is_active
    if st.button("Save outline", disabled=locked or not edited.strip()):
        try:
            client.save_outline(file_id, edited)
        except ApiError as exc:
            st.error(exc.message)
        else:
            logger.info("Saved outline for case file %s", file_id)
            st.success("Outline saved")


def _outline_key(file_id: str, tracker: Optional[jobs.OutlineJobTracker]) -> str:
    # a new tracker state remounts the editor with the tracker's content
    return f"outline-{file_id}-{tracker.state if tracker is not None else 'file'}"


def _render_quality(data: DashboardData):
    section_header("Invariant checks", "Evaluation records as received")
    results = pd.DataFrame(invariants.run_invariants(data.evaluations))
    results["detail"] = results["detail"].astype(str)
    st.dataframe(results, use_container_width=True, hide_index=True)

    section_header("Row counts")
    counts = data.row_counts()
    st.dataframe(pd.DataFrame({"table": list(counts), "rows": list(counts.values())}), use_container_width=True, hide_index=True)


def main():
    _init_state()
    try:
        settings = _settings()
    except ValueError as exc:
        st.error(f"Configuration error: {exc}")
        return

    shell = AppShell("Case Chat Analytics", "Section progress, case performance and student results")

    st.sidebar.header("Data source")
    source = st.sidebar.radio("Source", SOURCES, index=SOURCES.index(st.session_state["source"]))
    st.session_state["source"] = source
    page = st.sidebar.radio("Page", PAGES)
    force = st.sidebar.button("Refresh data")
    shell.header(right=source)

    if source == "Synthetic":
        st.info("Synthetic mode: all data shown is randomly generated for illustration only.")

    _sync_auto_refresh(page, settings.refresh_interval)
    client = _client(settings) if source == "Live API" else None
    data = _current_data(source, settings, force=force)
    if data is None:
        _render_unavailable()
        return

    if page == "Home":
        _render_home(data, client)
    elif page == "Analytics":
        _render_analytics(data)
    elif page == "Results":
        _render_results(source, data, client, settings)
    elif page == "Case prep":
        _render_case_prep(source, data, client, settings)
    else:
        _render_quality(data)


if __name__ == "__main__":
    main()
