"""Google API connectors for Analytics Hub"""

from analytics_hub.connectors.base_connector import BaseConnector, UpstreamAPIError
from analytics_hub.connectors.profile_connector import ProfileConnector
from analytics_hub.connectors.analytics_admin_connector import AnalyticsAdminConnector
from analytics_hub.connectors.analytics_data_connector import AnalyticsDataConnector
from analytics_hub.connectors.merchant_center_connector import MerchantCenterConnector

__all__ = [
    "BaseConnector",
    "UpstreamAPIError",
    "ProfileConnector",
    "AnalyticsAdminConnector",
    "AnalyticsDataConnector",
    "MerchantCenterConnector",
]
