"""
Google Analytics 4 Data API connector
Runs reports against a GA4 property on behalf of the signed-in user
"""
from typing import Any, Dict, List, Optional, Sequence

from google.analytics.data_v1beta import BetaAnalyticsDataClient
from google.analytics.data_v1beta.types import (
    DateRange,
    Dimension,
    Metric,
    OrderBy,
    RunReportRequest,
)

from analytics_hub.connectors.base_connector import BaseConnector
from analytics_hub.utils.logger import log

REPORT_START_DATE = "30daysAgo"
REPORT_END_DATE = "today"

# Per-property marketing report used to build the account snapshot
MARKETING_DIMENSIONS = [
    "date",
    "country",
    "city",
    "deviceCategory",
    "sessionSource",
    "sessionMedium",
    "pagePath",
    "pageTitle",
]
MARKETING_METRICS = [
    "activeUsers",
    "newUsers",
    "sessions",
    "screenPageViews",
    "averageSessionDuration",
    "bounceRate",
    "conversions",
    "totalRevenue",
    "engagementRate",
    "eventCount",
]
MARKETING_ROW_LIMIT = 10000

# Flat report served to the dashboard page
DASHBOARD_DIMENSIONS = [
    "date",
    "deviceCategory",
    "country",
    "city",
    "pagePath",
    "sessionSource",
    "sessionMedium",
]
DASHBOARD_METRICS = [
    "activeUsers",
    "newUsers",
    "sessions",
    "screenPageViews",
    "averageSessionDuration",
    "bounceRate",
    "conversions",
    "totalRevenue",
    "engagedSessions",
    "engagementRate",
]
DASHBOARD_ROW_LIMIT = 1000


def build_report_request(
    property_id: str,
    dimensions: Sequence[str],
    metrics: Sequence[str],
    limit: int,
    order_by_date_desc: bool = False,
) -> RunReportRequest:
    """Report over the last 30 days for the given dimensions and metrics"""
    order_bys = []
    if order_by_date_desc:
        order_bys.append(
            OrderBy(dimension=OrderBy.DimensionOrderBy(dimension_name="date"), desc=True)
        )

    return RunReportRequest(
        property=f"properties/{property_id}",
        date_ranges=[DateRange(start_date=REPORT_START_DATE, end_date=REPORT_END_DATE)],
        dimensions=[Dimension(name=name) for name in dimensions],
        metrics=[Metric(name=name) for name in metrics],
        order_bys=order_bys,
        limit=limit,
    )


def rows_to_dicts(response: Any, dimensions: Sequence[str], metrics: Sequence[str]) -> List[Dict[str, str]]:
    """
    Flatten a RunReportResponse into one dict per row, keyed by dimension and
    metric name. Values stay strings; parsing is left to the report shaping.
    """
    dimension_names = [h.name for h in getattr(response, "dimension_headers", [])] or list(dimensions)
    metric_names = [h.name for h in getattr(response, "metric_headers", [])] or list(metrics)

    rows = []
    for row in getattr(response, "rows", None) or []:
        record: Dict[str, str] = {}
        for name, value in zip(dimension_names, row.dimension_values):
            record[name] = value.value
        for name, value in zip(metric_names, row.metric_values):
            record[name] = value.value
        rows.append(record)
    return rows


class AnalyticsDataConnector(BaseConnector):
    """Connector for the GA4 Data API (v1beta)"""

    def __init__(self, access_token: str = None, client: Optional[BetaAnalyticsDataClient] = None, **kwargs):
        super().__init__("Google Analytics 4", access_token, **kwargs)
        self.client = client

    def connect(self) -> BetaAnalyticsDataClient:
        if self.client is None:
            self.client = BetaAnalyticsDataClient(credentials=self.credentials)
            log.debug("Created GA4 Data API client")
        return self.client

    async def run_report(
        self,
        property_id: str,
        dimensions: Sequence[str],
        metrics: Sequence[str],
        limit: int,
        order_by_date_desc: bool = False,
    ) -> List[Dict[str, str]]:
        """Run a report and return its rows as name-keyed dicts"""
        client = self.connect()
        request = build_report_request(property_id, dimensions, metrics, limit, order_by_date_desc)
        response = await self._call(lambda: client.run_report(request), f"runReport({property_id})")
        rows = rows_to_dicts(response, dimensions, metrics)
        log.info(f"GA4 property {property_id}: {len(rows)} report rows")
        return rows

    async def fetch_marketing_rows(self, property_id: str) -> List[Dict[str, str]]:
        """Rows for the per-property marketing summary"""
        return await self.run_report(property_id, MARKETING_DIMENSIONS, MARKETING_METRICS, MARKETING_ROW_LIMIT)

    async def fetch_dashboard_rows(self, property_id: str) -> List[Dict[str, str]]:
        """Rows for the dashboard page, newest date first"""
        return await self.run_report(
            property_id,
            DASHBOARD_DIMENSIONS,
            DASHBOARD_METRICS,
            DASHBOARD_ROW_LIMIT,
            order_by_date_desc=True,
        )
