"""
Account data service

Collects everything the signed-in user can see (profile, Analytics accounts
and properties with a 30-day marketing report each, Merchant Center
accounts) into one aggregate snapshot, and persists snapshots as JSON files.

Collection is fail-soft: every sub-fetch that errors is logged and replaced by
an empty placeholder, so a snapshot is always produced.
"""
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Dict, List, Optional, TypeVar
import asyncio
import json
import re

from analytics_hub.config import get_settings
from analytics_hub.connectors.analytics_admin_connector import AnalyticsAdminConnector
from analytics_hub.connectors.analytics_data_connector import AnalyticsDataConnector
from analytics_hub.connectors.merchant_center_connector import MerchantCenterConnector
from analytics_hub.connectors.profile_connector import ProfileConnector
from analytics_hub.services import report_shaping
from analytics_hub.services.session_store import SessionData
from analytics_hub.utils.helpers import file_timestamp, iso_utc, resource_id
from analytics_hub.utils.logger import log

T = TypeVar("T")


@dataclass
class GoogleConnectors:
    """The four user-scoped connectors one collection run needs"""

    profile: ProfileConnector
    admin: AnalyticsAdminConnector
    data: AnalyticsDataConnector
    merchant: MerchantCenterConnector

    @classmethod
    def for_token(cls, access_token: str) -> "GoogleConnectors":
        return cls(
            profile=ProfileConnector(access_token),
            admin=AnalyticsAdminConnector(access_token),
            data=AnalyticsDataConnector(access_token),
            merchant=MerchantCenterConnector(access_token),
        )


async def _fail_soft(awaitable: Awaitable[T], what: str, default: T) -> T:
    try:
        return await awaitable
    except Exception as e:
        log.error(f"Failed to fetch {what}: {str(e)}")
        return default


async def fetch_marketing_data(connectors: GoogleConnectors, property_id: str) -> Optional[Dict[str, Any]]:
    """Marketing summary for one property, or None when its report failed"""
    rows = await _fail_soft(
        connectors.data.fetch_marketing_rows(property_id),
        f"marketing report for property {property_id}",
        None,
    )
    if rows is None:
        return None
    return report_shaping.summarize_marketing_rows(rows)


async def _collect_property(connectors: GoogleConnectors, prop: Dict[str, Any]) -> Dict[str, Any]:
    property_id = resource_id(prop.get("name", ""))
    marketing_data = await fetch_marketing_data(connectors, property_id)
    return report_shaping.property_record(prop, property_id, marketing_data)


async def _collect_account(connectors: GoogleConnectors, account: Dict[str, Any]) -> Dict[str, Any]:
    account_id = resource_id(account.get("name", ""))
    properties = await _fail_soft(
        connectors.admin.list_properties(account_id),
        f"properties of account {account_id}",
        [],
    )
    records = await asyncio.gather(*(_collect_property(connectors, prop) for prop in properties))
    return {
        "account_id": account_id,
        "account_name": account.get("displayName"),
        "properties": list(records),
    }


async def collect_account_data(
    access_token: Optional[str] = None,
    connectors: Optional[GoogleConnectors] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build the aggregate snapshot for a user.

    Profile, Analytics accounts and Merchant Center accounts are fetched
    together; then every account's properties and every property's report
    are fetched concurrently and joined before consolidation.
    """
    if connectors is None:
        connectors = GoogleConnectors.for_token(access_token)
    collected_at = iso_utc(now or datetime.now(timezone.utc))

    log.info("Collecting account and marketing data")
    profile, accounts, merchant_accounts = await asyncio.gather(
        _fail_soft(connectors.profile.get_user_profile(), "user profile", None),
        _fail_soft(connectors.admin.list_accounts(), "Analytics accounts", []),
        _fail_soft(connectors.merchant.list_accounts(), "Merchant Center accounts", []),
    )
    if not profile:
        log.warning("User profile unavailable; snapshot will carry placeholders")

    account_records = await asyncio.gather(*(_collect_account(connectors, a) for a in accounts))
    snapshot = report_shaping.build_snapshot(
        profile,
        list(account_records),
        collected_at,
        merchant_accounts=merchant_accounts,
    )
    log.info(
        f"Collected {snapshot['overview']['property_count']} properties across "
        f"{len(account_records)} accounts"
    )
    return snapshot


def snapshot_user_id(snapshot: Dict[str, Any]) -> str:
    """File-name friendly user id: name with whitespace as '_', else email local part, else 'unknown'"""
    user = snapshot.get("user") or {}
    name = user.get("name")
    if name and name != "N/A":
        return re.sub(r"\s+", "_", name)
    email = user.get("email")
    if email and email != "N/A":
        return email.split("@")[0]
    return "unknown"


def save_snapshot(
    snapshot: Dict[str, Any],
    user_id: str,
    directory: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """Write the snapshot as pretty JSON. Returns the file path, or None if writing failed."""
    try:
        data_dir = Path(directory or get_settings().account_data_dir).resolve()
        data_dir.mkdir(parents=True, exist_ok=True)

        timestamp = file_timestamp(now or datetime.now(timezone.utc))
        file_path = data_dir / f"account_{user_id}_{timestamp}.json"
        file_path.write_text(json.dumps(snapshot, indent=2, ensure_ascii=False), encoding="utf-8")

        log.info(f"Account data saved to {file_path}")
        return str(file_path)
    except Exception as e:
        log.error(f"Error saving account data: {str(e)}")
        return None


def download_filename(snapshot: Dict[str, Any], today: Optional[date] = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return f"account_data_{snapshot_user_id(snapshot)}_{today.isoformat()}.json"


async def refresh_session_snapshot(session: SessionData, connectors: Optional[GoogleConnectors] = None) -> Dict[str, Any]:
    """Collect a new snapshot with the session's tokens, persist it and cache it on the session"""
    snapshot = await collect_account_data(session.access_token, connectors=connectors)
    session.account_data = snapshot
    session.account_data_file = save_snapshot(snapshot, snapshot_user_id(snapshot))
    log.info(f"Account data collected for {snapshot['user']['name']}")
    return snapshot
