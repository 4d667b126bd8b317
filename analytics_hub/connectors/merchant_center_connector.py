"""
Google Merchant Center data connector
Lists the Merchant Center accounts a user can reach and their product catalog
"""
from typing import Any, Dict, List, Optional
import asyncio

from analytics_hub.connectors.base_connector import BaseConnector
from analytics_hub.utils.logger import log

PRODUCTS_PAGE_SIZE = 250  # API maximum


class MerchantCenterConnector(BaseConnector):
    """Connector for the Content API for Shopping (v2.1)"""

    API_NAME = "content"
    API_VERSION = "v2.1"

    def __init__(self, access_token: str = None, **kwargs):
        super().__init__("Google Merchant Center", access_token, **kwargs)

    async def get_auth_info(self) -> List[Dict[str, Any]]:
        """Account identifiers (merchantId / aggregatorId) the token can access"""
        service = self.connect()
        result = await self._execute(service.accounts().authinfo(), "accounts.authinfo")
        return result.get("accountIdentifiers", [])

    async def get_account(self, merchant_id: str) -> Dict[str, Any]:
        """Account details for a merchant id"""
        service = self.connect()
        return await self._execute(
            service.accounts().get(merchantId=merchant_id, accountId=merchant_id),
            f"accounts.get({merchant_id})",
        )

    async def _describe_account(self, identifier: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        merchant_id = identifier.get("merchantId")
        aggregator_id = identifier.get("aggregatorId")
        if not merchant_id and not aggregator_id:
            return None

        # Multi-client accounts are looked up by their aggregator id
        account_id = str(aggregator_id or merchant_id)
        try:
            detail = await self.get_account(account_id)
            detail_id = str(detail.get("id") or account_id)
            return {
                "id": detail_id,
                "name": detail.get("name") or f"Account {detail_id}",
                "is_mca": bool(aggregator_id) or bool(detail.get("subaccounts")),
                "website_url": detail.get("websiteUrl"),
                "business_information": detail.get("businessInformation"),
            }
        except Exception as e:
            log.warning(f"Failed to fetch details for Merchant Center account {account_id}: {str(e)}")
            return {
                "id": account_id,
                "name": f"Account {account_id} (details unavailable)",
                "is_mca": bool(aggregator_id),
            }

    async def list_accounts(self) -> List[Dict[str, Any]]:
        """Accessible accounts with their names; detail lookups run concurrently"""
        identifiers = await self.get_auth_info()
        described = await asyncio.gather(*(self._describe_account(i) for i in identifiers))
        accounts = [a for a in described if a]
        log.info(f"Fetched {len(accounts)} Merchant Center accounts")
        return accounts

    async def get_account_name(self, merchant_id: str) -> str:
        """Display name of an account, ``Account <id>`` when it cannot be fetched"""
        fallback = f"Account {merchant_id}"
        try:
            account = await self.get_account(merchant_id)
        except Exception as e:
            log.warning(f"Could not fetch name for Merchant Center account {merchant_id}: {str(e)}")
            return fallback
        return account.get("name") or fallback

    async def list_products(self, merchant_id: str) -> List[Dict[str, Any]]:
        """All product resources for a merchant, following ``nextPageToken`` until it is absent"""
        service = self.connect()
        products: List[Dict[str, Any]] = []
        page_token = None
        pages = 0

        while True:
            request = service.products().list(
                merchantId=merchant_id,
                maxResults=PRODUCTS_PAGE_SIZE,
                pageToken=page_token,
            )
            result = await self._execute(request, f"products.list({merchant_id})")
            pages += 1

            products.extend(result.get("resources", []))

            page_token = result.get("nextPageToken")
            if not page_token:
                break

        log.info(f"Fetched {len(products)} products in {pages} pages for merchant {merchant_id}")
        return products
