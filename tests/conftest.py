"""
Pytest fixtures for SproutSync testing.

Provides:
- An in-memory DestinationWriter
- A fake Sprout API served through httpx.MockTransport
- An in-memory SQLite engine for sync state
- Sample profiles and data points
"""

import json
import re
from datetime import date
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from sproutsync.connectors.sheets.base import DestinationWriter
from sproutsync.connectors.sprout.client import SproutClient
from sproutsync.core.retry import RetryPolicy
from sproutsync.database import init_db
from sproutsync.models.analytics_models import DataPoint, Profile


# =============================================================================
# DESTINATION FIXTURES
# =============================================================================


class InMemoryWriter(DestinationWriter):
    """Spreadsheet store kept in dicts; mirrors the Google writer's behaviour."""

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.append_calls: List[tuple] = []
        self._next_id = 1

    async def find_spreadsheet(self, title_prefix, folder_id):
        for doc_id, doc in self.documents.items():
            if doc["folder"] == folder_id and doc["name"].startswith(title_prefix):
                return {"id": doc_id, "name": doc["name"]}
        return None

    async def create_spreadsheet(self, title, folder_id):
        doc_id = f"doc-{self._next_id}"
        self._next_id += 1
        self.documents[doc_id] = {"name": title, "folder": folder_id, "sheets": {"Sheet1": []}}
        return doc_id

    async def rename_spreadsheet(self, spreadsheet_id, title):
        self.documents[spreadsheet_id]["name"] = title

    async def list_sheets(self, spreadsheet_id):
        return list(self.documents[spreadsheet_id]["sheets"])

    async def create_sheet(self, spreadsheet_id, sheet_name):
        self.documents[spreadsheet_id]["sheets"].setdefault(sheet_name, [])

    async def read_column(self, spreadsheet_id, sheet_name, column="A"):
        index = ord(column.upper()) - ord("A")
        rows = self.documents[spreadsheet_id]["sheets"][sheet_name]
        return [[str(r[index])] for r in rows if len(r) > index]

    async def append_rows(self, spreadsheet_id, sheet_name, rows):
        self.append_calls.append((spreadsheet_id, sheet_name, len(rows)))
        self.documents[spreadsheet_id]["sheets"][sheet_name].extend(list(r) for r in rows)

    # -- test helpers --

    def rows(self, spreadsheet_id: str, sheet_name: str) -> List[list]:
        return self.documents[spreadsheet_id]["sheets"][sheet_name]

    def data_rows(self, spreadsheet_id: str, sheet_name: str) -> List[list]:
        """Rows below the header."""
        return self.rows(spreadsheet_id, sheet_name)[1:]


@pytest.fixture
def memory_writer():
    return InMemoryWriter()


# =============================================================================
# SPROUT API FIXTURES
# =============================================================================

PERIOD_FILTER = re.compile(r"reporting_period\.in\((\d{4}-\d{2}-\d{2})\.\.\.(\d{4}-\d{2}-\d{2})\)")
PROFILE_FILTER = re.compile(r"customer_profile_id\.eq\((.*)\)")


class FakeSproutAPI:
    """Serves metadata and analytics from in-memory records.

    Analytics requests are answered with the records matching the request's
    profile and reporting-period filters, like the real endpoint.
    """

    def __init__(
        self,
        groups: Optional[List[dict]] = None,
        profiles: Optional[List[dict]] = None,
        records: Optional[List[dict]] = None,
    ):
        self.groups = groups or []
        self.profiles = profiles or []
        self.records = records or []
        self.analytics_status: Optional[int] = None
        self.requests: List[httpx.Request] = []
        self.analytics_bodies: List[dict] = []

    def _matching_records(self, body: dict) -> List[dict]:
        start = end = None
        ids: set = set()
        for f in body.get("filters", []):
            m = PERIOD_FILTER.match(f)
            if m:
                start, end = date.fromisoformat(m.group(1)), date.fromisoformat(m.group(2))
            m = PROFILE_FILTER.match(f)
            if m:
                ids = {i.strip() for i in m.group(1).split(",")}
        matched = []
        for record in self.records:
            dims = record["dimensions"]
            day = date.fromisoformat(str(dims["reporting_period.by(day)"])[:10])
            if str(dims["customer_profile_id"]) in ids and start <= day <= end:
                matched.append(record)
        return matched

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/metadata/customer/groups"):
            return httpx.Response(200, json={"data": self.groups})
        if path.endswith("/metadata/customer"):
            return httpx.Response(200, json={"data": self.profiles})
        if path.endswith("/analytics/profiles"):
            if self.analytics_status is not None:
                return httpx.Response(self.analytics_status, json={"error": "boom"})
            body = json.loads(request.content)
            self.analytics_bodies.append(body)
            data = self._matching_records(body)
            return httpx.Response(200, json={"data": data, "paging": {"current_page": 1, "total_pages": 1}})
        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> SproutClient:
        return SproutClient(
            api_token="test-token",
            customer_id="12345",
            base_url="https://api.sprout.test/v1",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)),
        )


def analytics_record(profile_id: Any, day: str, **metrics) -> dict:
    return {
        "dimensions": {"customer_profile_id": profile_id, "reporting_period.by(day)": f"{day}T00:00:00Z"},
        "metrics": metrics,
    }


def mock_sprout_client(handler: Callable[[httpx.Request], httpx.Response]) -> SproutClient:
    return SproutClient(
        api_token="test-token",
        customer_id="12345",
        base_url="https://api.sprout.test/v1",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.fixture
def sample_groups():
    return [
        {"group_id": 100, "name": "Acme"},
        {"group_id": 200, "name": "Globex"},
    ]


@pytest.fixture
def sample_profile_records():
    return [
        {
            "customer_profile_id": 1,
            "name": "Acme Instagram",
            "network_type": "fb_instagram_account",
            "native_id": "ig-1",
            "groups": [100],
        },
        {
            "customer_profile_id": 2,
            "name": "Acme on X",
            "network_type": "twitter_profile",
            "native_id": "tw-2",
            "groups": [100],
        },
        {
            "customer_profile_id": 3,
            "name": "Globex Page",
            "network_type": "fb_page",
            "native_id": "fb-3",
            "groups": [200],
        },
    ]


@pytest.fixture
def fake_api(sample_groups, sample_profile_records):
    return FakeSproutAPI(groups=sample_groups, profiles=sample_profile_records)


# =============================================================================
# RETRY / TIMING FIXTURES
# =============================================================================


@pytest.fixture
def no_sleep():
    """Awaitable sleep that returns immediately and records its calls."""
    return AsyncMock(return_value=None)


@pytest.fixture
def fast_policy():
    return RetryPolicy(max_attempts=3, delay_seconds=10.0)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture
def memory_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


# =============================================================================
# MODEL FIXTURES
# =============================================================================


@pytest.fixture
def twitter_profile():
    return Profile(
        profile_id="2",
        name="Acme on X",
        network_type="twitter_profile",
        network_id="tw-2",
        groups=("100",),
    )


@pytest.fixture
def instagram_profile():
    return Profile(
        profile_id="1",
        name="Acme Instagram",
        network_type="fb_instagram_account",
        network_id="ig-1",
        groups=("100",),
    )


@pytest.fixture
def make_point():
    def _make(profile_id: Any = "1", day: str = "2024-01-15", metrics: Optional[dict] = None):
        return DataPoint(
            profile_id=profile_id,
            reporting_period=date.fromisoformat(day),
            metrics={} if metrics is None else metrics,
        )

    return _make
