"""Streamlit dashboard for the GRC portal.

Talks to the FastAPI backend via httpx. Run with: streamlit run src/ui/app.py
"""

import os

import httpx
import streamlit as st

API_URL = os.environ.get("API_URL", "http://localhost:8000")

st.set_page_config(page_title="GRC & Cybersecurity Portal", layout="wide")

# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

if "access_token" not in st.session_state:
    st.session_state.access_token = None

if "email" not in st.session_state:
    st.session_state.email = ""

# Last successfully rendered report, shown again if a refresh fails
if "report" not in st.session_state:
    st.session_state.report = None

# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------

if st.session_state.access_token is None:
    st.title("GRC & Cybersecurity Portal")
    with st.form("sign_in"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in")
    if submitted:
        try:
            resp = httpx.post(f"{API_URL}/session", json={"email": email, "password": password}, timeout=15.0)
            if resp.status_code == 200:
                body: dict[str, object] = resp.json()
                st.session_state.access_token = body.get("access_token")
                st.session_state.email = body.get("email") or email
                st.rerun()
            else:
                st.error(f"Sign-in failed: {resp.json().get('detail', resp.text)}")
        except httpx.ConnectError:
            st.error("Cannot reach API server. Is `uvicorn src.api.main:app` running?")
    st.stop()

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------

with st.sidebar:
    st.title("GRC Portal")
    st.caption(st.session_state.email)
    if st.button("Sign out"):
        st.session_state.access_token = None
        st.session_state.report = None
        st.rerun()
    refresh = st.button("Refresh report")

# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

if refresh or st.session_state.report is None:
    with st.spinner("Loading reports..."):
        try:
            resp = httpx.get(
                f"{API_URL}/report",
                headers={"Authorization": f"Bearer {st.session_state.access_token}"},
                timeout=30.0,
            )
            resp.raise_for_status()
            data: dict[str, object] = resp.json()
            if data.get("stale") and st.session_state.report is not None:
                st.warning(f"Could not refresh inventory: {data.get('error')}. Showing last known report.")
            else:
                st.session_state.report = data
        except httpx.ConnectError:
            st.error("Cannot reach the API server. Make sure `uvicorn src.api.main:app` is running.")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 401:
                st.session_state.access_token = None
                st.session_state.report = None
                st.rerun()
            st.error(f"API error (HTTP {exc.response.status_code}): {exc.response.text}")

report = st.session_state.report
if report is None:
    st.stop()

snapshot = report["snapshot"]
creds = snapshot["credential_totals"]
addrs = snapshot["address_totals"]

st.header("Security Reports & Analytics")
if report.get("stale"):
    st.warning(f"Inventory unavailable: {report.get('error')}")

col1, col2, col3, col4 = st.columns(4)
col1.metric("Security Score", f"{snapshot['security_score']}/100", report["rating"], delta_color="off")
col2.metric("API Keys", creds["total"], f"{creds['active_count']} active, {creds['expired_count']} expired")
col3.metric("IP Addresses", addrs["total"])
col4.metric(
    "Active Threats",
    addrs["high_risk_count"] + addrs["critical_risk_count"],
    f"{addrs['critical_risk_count']} critical, {addrs['high_risk_count']} high",
    delta_color="off",
)


def _breakdown(title: str, counts: dict[str, int], total: int, empty_text: str) -> None:
    st.subheader(title)
    if not counts:
        st.caption(empty_text)
        return
    for key, count in counts.items():
        share = count / total if total > 0 else 0.0
        st.progress(share, text=f"{key.capitalize()}: {count} ({share * 100:.0f}%)")


left, right = st.columns(2)
with left:
    _breakdown(
        "API Keys by Environment", snapshot["counts_by_environment"], creds["total"], "No API keys data available"
    )
    _breakdown(
        "IP Addresses by Category", snapshot["counts_by_category"], addrs["total"], "No IP category data available"
    )
with right:
    _breakdown(
        "IP Addresses by Risk Level", snapshot["counts_by_risk_level"], addrs["total"], "No IP address data available"
    )
    st.subheader("Recent Activity")
    if not snapshot["recent_activity"]:
        st.caption("No recent activity")
    for item in snapshot["recent_activity"]:
        icon = ":key:" if item["kind"] == "credential" else ":globe_with_meridians:"
        st.markdown(f"{icon} {item['description']}  \n`{item['timestamp']}`")

st.subheader("Security Recommendations")
for rec in snapshot["recommendations"]:
    text = f"**{rec['title']}:** {rec['message']}"
    if rec["severity"] == "critical":
        st.error(text)
    elif rec["severity"] == "warning":
        st.warning(text)
    else:
        st.success(text)
