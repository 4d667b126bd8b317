"""
Account data collection tests.

The four connectors are swapped for fakes so the fan-out, its fail-soft
behaviour and snapshot persistence can be checked without Google.
"""
import asyncio
import json
from datetime import date, datetime, timezone
from pathlib import Path

from analytics_hub.services import account_data_service
from analytics_hub.services.account_data_service import (
    GoogleConnectors,
    collect_account_data,
    download_filename,
    refresh_session_snapshot,
    save_snapshot,
    snapshot_user_id,
)
from analytics_hub.services.session_store import SessionStore

NOW = datetime(2024, 5, 1, 12, 30, 15, 123000, tzinfo=timezone.utc)


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


class FakeProfile:
    def __init__(self, profile=None, fail=False):
        self.profile = profile
        self.fail = fail

    async def get_user_profile(self):
        if self.fail:
            raise RuntimeError("userinfo unavailable")
        return self.profile


class FakeAdmin:
    def __init__(self, accounts, properties, fail_accounts=()):
        self.accounts = accounts
        self.properties = properties
        self.fail_accounts = set(fail_accounts)

    async def list_accounts(self):
        return self.accounts

    async def list_properties(self, account_id):
        if account_id in self.fail_accounts:
            raise RuntimeError("properties unavailable")
        return self.properties.get(account_id, [])


class FakeData:
    def __init__(self, rows_by_property, fail_properties=()):
        self.rows_by_property = rows_by_property
        self.fail_properties = set(fail_properties)

    async def fetch_marketing_rows(self, property_id):
        if property_id in self.fail_properties:
            raise RuntimeError("report failed")
        return self.rows_by_property.get(property_id, [])


class FakeMerchant:
    def __init__(self, accounts=None, fail=False):
        self.accounts = accounts or []
        self.fail = fail

    async def list_accounts(self):
        if self.fail:
            raise RuntimeError("merchant unavailable")
        return self.accounts


def _connectors(profile=None, profile_fails=False, fail_accounts=(), fail_properties=(), merchant_fails=False):
    return GoogleConnectors(
        profile=FakeProfile(profile, fail=profile_fails),
        admin=FakeAdmin(
            accounts=[
                {"name": "accounts/1", "displayName": "Acme"},
                {"name": "accounts/2", "displayName": "Globex"},
            ],
            properties={
                "1": [
                    {"name": "properties/10", "displayName": "Acme Web", "currencyCode": "EUR"},
                    {"name": "properties/11", "displayName": "Acme App"},
                ],
                "2": [{"name": "properties/20", "displayName": "Globex Web"}],
            },
            fail_accounts=fail_accounts,
        ),
        data=FakeData(
            {
                "10": [{"country": "France", "sessions": "40", "conversions": "2", "activeUsers": "30"}],
                "11": [{"country": "France", "sessions": "10", "conversions": "0", "activeUsers": "9"}],
                "20": [{"country": "Spain", "sessions": "50", "conversions": "3", "activeUsers": "45"}],
            },
            fail_properties=fail_properties,
        ),
        merchant=FakeMerchant(
            [{"id": "777", "name": "Shop", "is_mca": False}],
            fail=merchant_fails,
        ),
    )


# ────────────────────────────────────────────
# COLLECTION
# ────────────────────────────────────────────


class TestCollectAccountData:

    def test_full_snapshot(self):
        snapshot = _run(collect_account_data(
            connectors=_connectors({"name": "Jane Doe", "email": "jane@example.com"}),
            now=NOW,
        ))

        assert snapshot["metadata"]["data_collected_at"] == "2024-05-01T12:30:15.123Z"
        assert snapshot["user"] == {"name": "Jane Doe", "email": "jane@example.com"}
        assert [a["account_id"] for a in snapshot["properties"]] == ["1", "2"]
        first_property = snapshot["properties"][0]["properties"][0]
        assert first_property["id"] == "10"
        assert first_property["currency_code"] == "EUR"
        assert first_property["marketing_data"]["summary"]["total_sessions"] == 40
        assert snapshot["overview"]["property_count"] == 3
        assert snapshot["overview"]["total_sessions"] == 100
        assert snapshot["overview"]["overall_conversion_rate"] == "5.00%"
        assert snapshot["merchant_accounts"][0]["id"] == "777"
        assert snapshot["consolidated"]["top_countries"][0] == {"country": "France", "sessions": 50}

    def test_failed_report_leaves_property_without_data(self):
        snapshot = _run(collect_account_data(connectors=_connectors(fail_properties={"11"}), now=NOW))

        acme = snapshot["properties"][0]["properties"]
        assert acme[1]["id"] == "11"
        assert acme[1]["marketing_data"] is None
        assert snapshot["overview"]["property_count"] == 3
        assert snapshot["overview"]["total_sessions"] == 90

    def test_failed_property_listing_gives_empty_account(self):
        snapshot = _run(collect_account_data(connectors=_connectors(fail_accounts={"2"}), now=NOW))

        assert snapshot["properties"][1]["account_name"] == "Globex"
        assert snapshot["properties"][1]["properties"] == []
        assert snapshot["overview"]["property_count"] == 2

    def test_profile_and_merchant_failures_use_placeholders(self):
        snapshot = _run(collect_account_data(
            connectors=_connectors(profile_fails=True, merchant_fails=True),
            now=NOW,
        ))

        assert snapshot["user"] == {"name": "N/A", "email": "N/A"}
        assert snapshot["merchant_accounts"] == []
        assert snapshot["overview"]["total_sessions"] == 100


# ────────────────────────────────────────────
# FILE NAMES / PERSISTENCE
# ────────────────────────────────────────────


def test_snapshot_user_id_prefers_name_then_email():
    assert snapshot_user_id({"user": {"name": "Jane  Q Doe", "email": "jane@example.com"}}) == "Jane_Q_Doe"
    assert snapshot_user_id({"user": {"name": "N/A", "email": "jane@example.com"}}) == "jane"
    assert snapshot_user_id({"user": {"name": "N/A", "email": "N/A"}}) == "unknown"
    assert snapshot_user_id({}) == "unknown"


def test_download_filename():
    snapshot = {"user": {"name": "Jane Doe", "email": "jane@example.com"}}
    assert download_filename(snapshot, today=date(2024, 5, 1)) == "account_data_Jane_Doe_2024-05-01.json"


def test_save_snapshot_writes_pretty_json(tmp_path):
    snapshot = {"user": {"name": "Jane Doe"}, "overview": {"total_sessions": 3}}
    target = tmp_path / "nested" / "dir"

    path = save_snapshot(snapshot, "Jane_Doe", directory=str(target), now=NOW)

    assert path is not None
    saved = Path(path)
    assert saved.name == "account_Jane_Doe_2024-05-01T12-30-15-123Z.json"
    assert saved.parent == target.resolve()
    assert json.loads(saved.read_text(encoding="utf-8")) == snapshot
    assert "\n  " in saved.read_text(encoding="utf-8")


def test_save_snapshot_failure_returns_none(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x")

    assert save_snapshot({"user": {}}, "someone", directory=str(blocker), now=NOW) is None


def test_refresh_session_snapshot_caches_and_persists(tmp_path, monkeypatch):
    monkeypatch.setattr(
        account_data_service,
        "save_snapshot",
        lambda snapshot, user_id: str(tmp_path / f"account_{user_id}.json"),
    )
    session = SessionStore("secret").create()
    session.tokens = {"access_token": "token"}

    snapshot = _run(refresh_session_snapshot(
        session,
        connectors=_connectors({"name": "Jane Doe", "email": "jane@example.com"}),
    ))

    assert session.account_data is snapshot
    assert session.account_data_file == str(tmp_path / "account_Jane_Doe.json")
