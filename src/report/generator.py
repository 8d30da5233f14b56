"""Security posture report built from the operator's inventory.

``compute_snapshot`` is a pure function of the credential and address
collections: no I/O, no shared state, safe to call from anywhere.  Fetching
the collections and the fallback on storage failures live in
``src.report.loader``.

The security score is a linear penalty heuristic
(``100 - 5 * (high + critical addresses) - 3 * expired credentials``, floored
at 0).  It summarises the inventory; it is not a validated risk model.
"""

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing_extensions import TypedDict

from src.inventory.models import (
    AddressRecord,
    CredentialRecord,
    CredentialStatus,
    RiskLevel,
    label,
)

MAX_SCORE = 100
THREAT_PENALTY = 5
EXPIRED_PENALTY = 3
ACTIVITY_PER_SOURCE = 3
MAX_RECENT_ACTIVITY = 5


# ---------------------------------------------------------------------------
# Structured data types
# ---------------------------------------------------------------------------


class CredentialTotals(TypedDict):
    total: int
    active_count: int
    expired_count: int


class AddressTotals(TypedDict):
    total: int
    high_risk_count: int
    critical_risk_count: int


class ActivityItem(TypedDict):
    kind: str  # credential | address
    description: str
    timestamp: datetime


class Recommendation(TypedDict):
    code: str
    severity: str  # critical | warning | ok
    title: str
    message: str


class ReportSnapshot(TypedDict):
    security_score: int
    credential_totals: CredentialTotals
    address_totals: AddressTotals
    counts_by_environment: dict[str, int]
    counts_by_risk_level: dict[str, int]
    counts_by_category: dict[str, int]
    recent_activity: list[ActivityItem]
    recommendations: list[Recommendation]


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


def _count_by(values: Iterable[str]) -> dict[str, int]:
    """Count occurrences, keyed in first-seen order."""
    counts: dict[str, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    return counts


def security_score(high_risk: int, critical_risk: int, expired: int) -> int:
    """Linear penalty score in [0, 100]."""
    total_threats = high_risk + critical_risk
    return max(0, MAX_SCORE - THREAT_PENALTY * total_threats - EXPIRED_PENALTY * expired)


def score_rating(score: int) -> str:
    """Human label for a security score."""
    if score >= 90:
        return "Excellent"
    if score >= 70:
        return "Good"
    if score >= 50:
        return "Fair"
    return "Needs Attention"


def _recent_activity(
    credentials: Sequence[CredentialRecord],
    addresses: Sequence[AddressRecord],
) -> list[ActivityItem]:
    items = [
        ActivityItem(
            kind="credential",
            description=f"{c['name']} for {c['service']}",
            timestamp=c["created_at"],
        )
        for c in credentials[:ACTIVITY_PER_SOURCE]
    ]
    items += [
        ActivityItem(
            kind="address",
            description=f"{a['address']} ({label(a['risk_level'])} risk)",
            timestamp=a["created_at"],
        )
        for a in addresses[:ACTIVITY_PER_SOURCE]
    ]
    # Stable: equal timestamps keep input order
    items = sorted(items, key=lambda item: item["timestamp"], reverse=True)
    return items[:MAX_RECENT_ACTIVITY]


def _recommendations(expired: int, critical_risk: int, high_risk: int) -> list[Recommendation]:
    recs: list[Recommendation] = []
    if expired > 0:
        recs.append(
            Recommendation(
                code="expired_credentials",
                severity="critical",
                title="Expired API Keys Detected",
                message=f"You have {expired} expired API key(s). Rotate or remove them immediately.",
            )
        )
    if critical_risk > 0:
        recs.append(
            Recommendation(
                code="critical_risk_addresses",
                severity="critical",
                title="Critical Risk IP Addresses",
                message=(
                    f"{critical_risk} IP address(es) marked as critical risk. Review and block if necessary."
                ),
            )
        )
    if high_risk > 0:
        recs.append(
            Recommendation(
                code="high_risk_addresses",
                severity="warning",
                title="High Risk IP Addresses",
                message=f"{high_risk} IP address(es) marked as high risk. Monitor closely.",
            )
        )
    if not recs:
        recs.append(
            Recommendation(
                code="all_clear",
                severity="ok",
                title="All Systems Secure",
                message="No critical security issues detected. Continue monitoring your systems regularly.",
            )
        )
    return recs


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def compute_snapshot(
    credentials: Sequence[CredentialRecord],
    addresses: Sequence[AddressRecord],
) -> ReportSnapshot:
    """Derive the report snapshot from the two inventory collections.

    Never raises for well-typed input.  Enum values outside the known set are
    counted under their literal value.  Input order only matters for which
    records feed the recent-activity list and how timestamp ties are ordered.
    """
    active = sum(1 for c in credentials if c["status"] == CredentialStatus.ACTIVE)
    expired = sum(1 for c in credentials if c["status"] == CredentialStatus.EXPIRED)
    high_risk = sum(1 for a in addresses if a["risk_level"] == RiskLevel.HIGH)
    critical_risk = sum(1 for a in addresses if a["risk_level"] == RiskLevel.CRITICAL)

    return ReportSnapshot(
        security_score=security_score(high_risk, critical_risk, expired),
        credential_totals=CredentialTotals(total=len(credentials), active_count=active, expired_count=expired),
        address_totals=AddressTotals(
            total=len(addresses),
            high_risk_count=high_risk,
            critical_risk_count=critical_risk,
        ),
        counts_by_environment=_count_by(label(c["environment"]) for c in credentials),
        counts_by_risk_level=_count_by(label(a["risk_level"]) for a in addresses),
        counts_by_category=_count_by(label(a["category"]) for a in addresses),
        recent_activity=_recent_activity(credentials, addresses),
        recommendations=_recommendations(expired, critical_risk, high_risk),
    )


def empty_snapshot() -> ReportSnapshot:
    """The all-zero snapshot shown before the first successful fetch."""
    return compute_snapshot([], [])


def distribution(counts: Mapping[str, int], total: int) -> dict[str, float]:
    """Share of ``total`` per bucket, as percentages. All zero when total is 0."""
    return {key: (count / total * 100 if total > 0 else 0.0) for key, count in counts.items()}


# ---------------------------------------------------------------------------
# Markdown formatter
# ---------------------------------------------------------------------------


def _format_plain_table(
    headers: list[str],
    rows: list[list[str]],
    right_align: set[int] | None = None,
) -> str:
    """Format a plain-text table with aligned columns (no pipe characters).

    Args:
        headers: Column header strings.
        rows: List of rows, each a list of cell strings.
        right_align: Set of column indices (0-based) to right-align.

    Returns:
        Multi-line string with padded columns separated by two spaces.
    """
    right_align = right_align or set()
    if not rows:
        return ""
    all_data = [headers, *rows]
    col_widths = [max(len(row[i]) for row in all_data) for i in range(len(headers))]

    def fmt_row(cells: list[str]) -> str:
        parts: list[str] = []
        for i, cell in enumerate(cells):
            width = col_widths[i]
            parts.append(cell.rjust(width) if i in right_align else cell.ljust(width))
        return "  ".join(parts)

    lines = [fmt_row(headers)]
    lines.append("  ".join("-" * w for w in col_widths))
    for row in rows:
        lines.append(fmt_row(row))
    return "\n".join(lines)


def _format_breakdown(title: str, counts: dict[str, int], total: int, empty_text: str) -> list[str]:
    lines = [f"## {title}", ""]
    if not counts:
        lines.append(f"*{empty_text}*")
    else:
        shares = distribution(counts, total)
        rows = [[key.capitalize(), str(count), f"{shares[key]:.0f}%"] for key, count in counts.items()]
        lines.append(_format_plain_table(["Group", "Count", "Share"], rows, right_align={1, 2}))
    lines.append("")
    return lines


def format_report_markdown(snapshot: ReportSnapshot, generated_at: str | None = None) -> str:
    """Convert a ReportSnapshot into a readable markdown report."""
    creds = snapshot["credential_totals"]
    addrs = snapshot["address_totals"]
    threats = addrs["high_risk_count"] + addrs["critical_risk_count"]
    score = snapshot["security_score"]

    lines: list[str] = []
    lines.append("# Security Reports & Analytics")
    lines.append("")
    if generated_at:
        lines.append(f"**Generated:** {generated_at}")
        lines.append("")

    # 1. Headline figures
    lines.append("## Overview")
    lines.append("")
    lines.append(f"- **Security score:** {score}/100 ({score_rating(score)})")
    lines.append(
        f"- **API keys:** {creds['total']} ({creds['active_count']} active, {creds['expired_count']} expired)"
    )
    lines.append(f"- **IP addresses:** {addrs['total']} monitored endpoints")
    lines.append(
        f"- **Active threats:** {threats} "
        f"({addrs['critical_risk_count']} critical, {addrs['high_risk_count']} high)"
    )
    lines.append("")

    # 2. Breakdowns
    lines += _format_breakdown(
        "API Keys by Environment", snapshot["counts_by_environment"], creds["total"], "No API keys data available."
    )
    lines += _format_breakdown(
        "IP Addresses by Risk Level", snapshot["counts_by_risk_level"], addrs["total"], "No IP address data available."
    )
    lines += _format_breakdown(
        "IP Addresses by Category", snapshot["counts_by_category"], addrs["total"], "No IP category data available."
    )

    # 3. Recent activity
    lines.append("## Recent Activity")
    lines.append("")
    if snapshot["recent_activity"]:
        for item in snapshot["recent_activity"]:
            kind = "API key" if item["kind"] == "credential" else "IP address"
            lines.append(f"- {item['timestamp'].isoformat()} [{kind}] {item['description']}")
    else:
        lines.append("*No recent activity.*")
    lines.append("")

    # 4. Recommendations
    lines.append("## Security Recommendations")
    lines.append("")
    for rec in snapshot["recommendations"]:
        lines.append(f"- **{rec['title']}:** {rec['message']}")
    lines.append("")

    return "\n".join(lines)
