"""
Google Analytics Admin API connector
Lists the accounts and GA4 properties the signed-in user can see
"""
from typing import Any, Dict, List

from analytics_hub.connectors.base_connector import BaseConnector
from analytics_hub.utils.logger import log


class AnalyticsAdminConnector(BaseConnector):
    """Connector for the Analytics Admin API (v1beta)"""

    API_NAME = "analyticsadmin"
    API_VERSION = "v1beta"

    def __init__(self, access_token: str = None, **kwargs):
        super().__init__("Analytics Admin", access_token, **kwargs)

    async def list_accounts(self) -> List[Dict[str, Any]]:
        """Accounts visible to the user; each has ``name`` ('accounts/<id>') and ``displayName``"""
        service = self.connect()
        result = await self._execute(service.accounts().list(), "accounts.list")
        accounts = result.get("accounts", [])
        log.info(f"Fetched {len(accounts)} Analytics accounts")
        return accounts

    async def list_properties(self, account_id: str) -> List[Dict[str, Any]]:
        """GA4 properties whose parent is the given account"""
        service = self.connect()
        result = await self._execute(
            service.properties().list(filter=f"parent:accounts/{account_id}"),
            "properties.list",
        )
        properties = result.get("properties", [])
        log.info(f"Fetched {len(properties)} properties for account {account_id}")
        return properties
