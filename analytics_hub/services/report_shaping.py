"""
Report shaping

Turns flat GA4 report rows into the nested summaries shown on the dashboard
and stored in the account snapshot, and consolidates those summaries across
properties.

Rows are dicts keyed by dimension / metric name, as produced by
``AnalyticsDataConnector``. Metric values arrive as strings; anything missing
or unparsable counts as zero. Every ranking is accumulate, sort (stable, so
ties keep first-seen order), then slice.
"""
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from analytics_hub.utils.helpers import safe_divide, safe_number

Number = Union[int, float]

TOP_COUNTRIES_LIMIT = 10
TOP_CITIES_LIMIT = 10
TRAFFIC_SOURCES_LIMIT = 15
TOP_PAGES_LIMIT = 15
CONSOLIDATED_LIMIT = 10

# GA4 placeholder for rows it could not attribute
NOT_SET = "(not set)"

SNAPSHOT_PERIOD = "Last 30 days"
SNAPSHOT_DESCRIPTION = "Marketing and performance data - Google Analytics"

TOTAL_FIELDS = ("total_users", "total_sessions", "total_page_views", "total_conversions", "total_revenue")


def _num(value: Any) -> Number:
    number = safe_number(value)
    return int(number) if number.is_integer() else number


def _metric(row: Dict[str, Any], name: str) -> Number:
    return _num(row.get(name))


def _dimension(row: Dict[str, Any], name: str) -> str:
    value = row.get(name)
    return "" if value is None else str(value)


def _ranked(totals: Dict[str, Number], label: str, value_field: str, limit: Optional[int]) -> List[Dict[str, Any]]:
    ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    if limit is not None:
        ordered = ordered[:limit]
    return [{label: key, value_field: value} for key, value in ordered]


def _sum_by(rows: Iterable[Dict[str, Any]], dimension: str, metric: str, skip: Sequence[str] = ()) -> Dict[str, Number]:
    totals: Dict[str, Number] = {}
    for row in rows:
        key = _dimension(row, dimension)
        if key in skip:
            continue
        totals[key] = totals.get(key, 0) + _metric(row, metric)
    return totals


# ---------------------------------------------------------------------------
# Per-property summaries
# ---------------------------------------------------------------------------

def summarize_totals(rows: List[Dict[str, Any]]) -> Dict[str, Number]:
    """Summed counts plus per-row averages of the rate metrics"""
    def total(metric: str) -> Number:
        return sum((_metric(row, metric) for row in rows), 0)

    row_count = len(rows)
    return {
        "total_users": total("activeUsers"),
        "total_new_users": total("newUsers"),
        "total_sessions": total("sessions"),
        "total_page_views": total("screenPageViews"),
        "total_conversions": total("conversions"),
        "total_revenue": total("totalRevenue"),
        "avg_session_duration": safe_divide(total("averageSessionDuration"), row_count),
        "avg_bounce_rate": safe_divide(total("bounceRate"), row_count),
        "avg_engagement_rate": safe_divide(total("engagementRate"), row_count),
    }


def top_countries(rows: List[Dict[str, Any]], limit: int = TOP_COUNTRIES_LIMIT) -> List[Dict[str, Any]]:
    return _ranked(_sum_by(rows, "country", "sessions"), "country", "sessions", limit)


def top_cities(rows: List[Dict[str, Any]], limit: int = TOP_CITIES_LIMIT) -> List[Dict[str, Any]]:
    """Sessions per city; unattributed cities are left out"""
    return _ranked(_sum_by(rows, "city", "sessions", skip=("", NOT_SET)), "city", "sessions", limit)


def device_breakdown(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    totals = _sum_by(rows, "deviceCategory", "sessions")
    return [{"device": device, "sessions": sessions} for device, sessions in totals.items()]


def traffic_sources(rows: List[Dict[str, Any]], limit: int = TRAFFIC_SOURCES_LIMIT) -> List[Dict[str, Any]]:
    """Sessions and users per "source / medium" pair"""
    totals: Dict[str, Dict[str, Number]] = {}
    for row in rows:
        key = f"{_dimension(row, 'sessionSource')} / {_dimension(row, 'sessionMedium')}"
        entry = totals.setdefault(key, {"sessions": 0, "users": 0})
        entry["sessions"] += _metric(row, "sessions")
        entry["users"] += _metric(row, "activeUsers")

    ordered = sorted(totals.items(), key=lambda item: item[1]["sessions"], reverse=True)[:limit]
    return [{"source_medium": key, **values} for key, values in ordered]


def top_pages(rows: List[Dict[str, Any]], limit: int = TOP_PAGES_LIMIT) -> List[Dict[str, Any]]:
    """Page views per path; the title comes from the first row seen for that path"""
    totals: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        path = _dimension(row, "pagePath")
        entry = totals.setdefault(path, {"page_views": 0, "page_title": _dimension(row, "pageTitle")})
        entry["page_views"] += _metric(row, "screenPageViews")

    ordered = sorted(totals.items(), key=lambda item: item[1]["page_views"], reverse=True)[:limit]
    return [{"page_path": path, **values} for path, values in ordered]


def daily_trend(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Users, sessions and page views per day, oldest first (GA4 dates are YYYYMMDD strings)"""
    totals: Dict[str, Dict[str, Number]] = {}
    for row in rows:
        entry = totals.setdefault(_dimension(row, "date"), {"users": 0, "sessions": 0, "page_views": 0})
        entry["users"] += _metric(row, "activeUsers")
        entry["sessions"] += _metric(row, "sessions")
        entry["page_views"] += _metric(row, "screenPageViews")

    return [{"date": day, **values} for day, values in sorted(totals.items(), key=lambda item: item[0])]


def summarize_marketing_rows(rows: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
    """Full marketing summary for one property. No rows gives zeroed totals and empty lists."""
    rows = rows or []
    return {
        "summary": summarize_totals(rows),
        "top_countries": top_countries(rows),
        "top_cities": top_cities(rows),
        "device_breakdown": device_breakdown(rows),
        "traffic_sources": traffic_sources(rows),
        "top_pages": top_pages(rows),
        "daily_trend": daily_trend(rows),
    }


def format_dashboard_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Flat dashboard rows: dimensions at the top level, parsed metrics nested"""
    formatted = []
    for row in rows:
        formatted.append({
            "date": _dimension(row, "date"),
            "device_category": _dimension(row, "deviceCategory"),
            "country": _dimension(row, "country"),
            "city": _dimension(row, "city"),
            "page_path": _dimension(row, "pagePath"),
            "session_source": _dimension(row, "sessionSource"),
            "session_medium": _dimension(row, "sessionMedium"),
            "metrics": {
                "active_users": _metric(row, "activeUsers"),
                "new_users": _metric(row, "newUsers"),
                "sessions": _metric(row, "sessions"),
                "screen_page_views": _metric(row, "screenPageViews"),
                "average_session_duration": _metric(row, "averageSessionDuration"),
                "bounce_rate": _metric(row, "bounceRate"),
                "conversions": _metric(row, "conversions"),
                "total_revenue": _metric(row, "totalRevenue"),
                "engaged_sessions": _metric(row, "engagedSessions"),
                "engagement_rate": _metric(row, "engagementRate"),
            },
        })
    return formatted


# ---------------------------------------------------------------------------
# Cross-property consolidation
# ---------------------------------------------------------------------------

def property_record(prop: Dict[str, Any], property_id: str, marketing_data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Snapshot entry for one GA4 property (marketing_data is None when its report failed)"""
    return {
        "id": property_id,
        "display_name": prop.get("displayName"),
        "create_time": prop.get("createTime"),
        "update_time": prop.get("updateTime"),
        "time_zone": prop.get("timeZone"),
        "currency_code": prop.get("currencyCode"),
        "industry_category": prop.get("industryCategory"),
        "service_level": prop.get("serviceLevel"),
        "marketing_data": marketing_data,
    }


def _properties(accounts: List[Dict[str, Any]]) -> Iterable[Dict[str, Any]]:
    for account in accounts:
        for prop in account.get("properties") or []:
            yield prop


def overall_totals(accounts: List[Dict[str, Any]]) -> Dict[str, Number]:
    """Sum the headline totals of every property that has marketing data"""
    totals: Dict[str, Number] = {field: 0 for field in TOTAL_FIELDS}
    for prop in _properties(accounts):
        marketing_data = prop.get("marketing_data")
        if not marketing_data:
            continue
        summary = marketing_data.get("summary") or {}
        for field in TOTAL_FIELDS:
            totals[field] += summary.get(field) or 0
    return totals


def _merge_by_key(
    accounts: List[Dict[str, Any]],
    list_name: str,
    key: str,
    fields: Sequence[str],
    limit: int,
) -> List[Dict[str, Any]]:
    merged: Dict[str, Dict[str, Any]] = {}
    for prop in _properties(accounts):
        for item in (prop.get("marketing_data") or {}).get(list_name) or []:
            existing = merged.get(item[key])
            if existing is None:
                merged[item[key]] = dict(item)
            else:
                for field in fields:
                    existing[field] = existing.get(field, 0) + (item.get(field) or 0)

    ordered = sorted(merged.values(), key=lambda entry: entry.get("sessions", 0), reverse=True)
    return ordered[:limit]


def consolidate_top_countries(accounts: List[Dict[str, Any]], limit: int = CONSOLIDATED_LIMIT) -> List[Dict[str, Any]]:
    return _merge_by_key(accounts, "top_countries", "country", ("sessions",), limit)


def consolidate_traffic_sources(accounts: List[Dict[str, Any]], limit: int = CONSOLIDATED_LIMIT) -> List[Dict[str, Any]]:
    """Traffic sources of all properties merged on source / medium; sessions and users add up"""
    return _merge_by_key(accounts, "traffic_sources", "source_medium", ("sessions", "users"), limit)


def conversion_rate(totals: Dict[str, Number]) -> str:
    sessions = totals.get("total_sessions") or 0
    if sessions <= 0:
        return "0%"
    return f"{(totals.get('total_conversions') or 0) / sessions * 100:.2f}%"


def build_snapshot(
    profile: Optional[Dict[str, Any]],
    accounts: List[Dict[str, Any]],
    collected_at: str,
    merchant_accounts: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """
    Assemble the aggregate snapshot.

    Args:
        profile: userinfo payload, or None when it could not be fetched
        accounts: ``[{account_id, account_name, properties: [property_record, ...]}]``
        collected_at: ISO timestamp of the collection
        merchant_accounts: accessible Merchant Center accounts
    """
    profile = profile or {}
    totals = overall_totals(accounts)

    return {
        "metadata": {
            "data_collected_at": collected_at,
            "period": SNAPSHOT_PERIOD,
            "description": SNAPSHOT_DESCRIPTION,
        },
        "overview": {
            **totals,
            "property_count": sum(len(account.get("properties") or []) for account in accounts),
            "overall_conversion_rate": conversion_rate(totals),
        },
        "user": {
            "name": profile.get("name") or "N/A",
            "email": profile.get("email") or "N/A",
        },
        "properties": accounts,
        "merchant_accounts": merchant_accounts or [],
        "consolidated": {
            "top_countries": consolidate_top_countries(accounts),
            "traffic_sources": consolidate_traffic_sources(accounts),
        },
    }
