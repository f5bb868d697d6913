"""
Dashboard search endpoint and SQL search backend tests.
"""

from __future__ import annotations

import pytest

from app.core.config import Settings
from app.core.metrics import DASHBOARD_SEARCH_NOT_SERVED
from app.models.dashboard import Dashboard
from app.services.search import (
    REASON_DISABLED,
    RESULTS_FRAME_NAME,
    ReadinessCheck,
    SearchService,
    SQLSearchService,
)
from dashhub_shared.schemas.search import DashboardQuery, FrameField, ResultFrame

from conftest import bearer

SEARCH_URL = "/api/v1/search/"


# ---------------------------------------------------------------------------
# Stub backends
# ---------------------------------------------------------------------------

class StubSearch(SearchService):
    def __init__(self, ready=True, reason="", frames=None, error=None):
        self.readiness = ReadinessCheck(is_ready=ready, reason=reason)
        self.frames = frames if frames is not None else []
        self.error = error
        self.queries: list[DashboardQuery] = []

    async def is_ready(self, org_id):
        return self.readiness

    async def query_dashboards(self, auth, org_id, query, session):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.frames


def _frame(name="results", uids=("a",)):
    return ResultFrame(
        name=name,
        fields=[FrameField(name="uid")],
        values=[list(uids)],
    )


# ---------------------------------------------------------------------------
# Endpoint behaviour
# ---------------------------------------------------------------------------

class TestSearchEndpoint:
    async def test_not_ready_returns_loading_frame(self, client_for, seed, metrics):
        search = StubSearch(ready=False, reason="initial-indexing")
        async with client_for(search=search) as ac:
            resp = await ac.post(SEARCH_URL, json={"query": "x"}, headers=bearer(seed["viewer"], seed["org"]))

        assert resp.status_code == 200
        assert resp.json() == {
            "schema": {"name": "Loading", "fields": []},
            "data": {"values": []},
        }
        assert metrics.get(DASHBOARD_SEARCH_NOT_SERVED, reason="initial-indexing") == 1
        assert search.queries == []

    async def test_readiness_checked_before_body_parsing(self, client_for, seed, metrics):
        search = StubSearch(ready=False, reason="initial-indexing")
        async with client_for(search=search) as ac:
            resp = await ac.post(
                SEARCH_URL,
                content=b"{not json",
                headers={**bearer(seed["viewer"], seed["org"]), "Content-Type": "application/json"},
            )

        assert resp.status_code == 200
        assert resp.json()["schema"]["name"] == "Loading"
        assert metrics.get(DASHBOARD_SEARCH_NOT_SERVED) == 1

    async def test_malformed_body_is_400(self, client_for, seed):
        search = StubSearch(frames=[_frame()])
        async with client_for(search=search) as ac:
            resp = await ac.post(
                SEARCH_URL,
                content=b"{not json",
                headers={**bearer(seed["viewer"], seed["org"]), "Content-Type": "application/json"},
            )

        assert resp.status_code == 400
        assert resp.json()["detail"].startswith("error parsing body")
        assert search.queries == []

    async def test_wrong_field_type_is_400(self, client_for, seed):
        search = StubSearch(frames=[_frame()])
        async with client_for(search=search) as ac:
            resp = await ac.post(SEARCH_URL, json={"limit": "many"}, headers=bearer(seed["viewer"], seed["org"]))
        assert resp.status_code == 400

    async def test_single_frame_returned_verbatim(self, client_for, seed, metrics):
        search = StubSearch(frames=[_frame(uids=("a", "b"))])
        async with client_for(search=search) as ac:
            resp = await ac.post(
                SEARCH_URL,
                json={"query": "cpu", "tags": ["prod"], "from": 5, "limit": 10},
                headers=bearer(seed["viewer"], seed["org"]),
            )

        assert resp.status_code == 200
        assert resp.json() == {
            "schema": {"name": "results", "fields": [{"name": "uid", "type": "string"}]},
            "data": {"values": [["a", "b"]]},
        }
        query = search.queries[0]
        assert query.query == "cpu"
        assert query.tags == ["prod"]
        assert query.from_ == 5
        assert query.limit == 10
        assert metrics.get(DASHBOARD_SEARCH_NOT_SERVED) == 0

    async def test_empty_body_is_400(self, client_for, seed):
        search = StubSearch(frames=[_frame()])
        async with client_for(search=search) as ac:
            resp = await ac.post(SEARCH_URL, headers=bearer(seed["viewer"], seed["org"]))
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith("error parsing body")
        assert search.queries == []

    @pytest.mark.parametrize("count", [0, 2])
    async def test_frame_count_other_than_one_is_500(self, client_for, seed, count):
        search = StubSearch(frames=[_frame() for _ in range(count)])
        async with client_for(search=search) as ac:
            resp = await ac.post(SEARCH_URL, json={}, headers=bearer(seed["viewer"], seed["org"]))
        assert resp.status_code == 500
        assert f"got {count}" in resp.json()["detail"]

    async def test_backend_error_is_500(self, client_for, seed):
        search = StubSearch(error=RuntimeError("index unavailable"))
        async with client_for(search=search) as ac:
            resp = await ac.post(SEARCH_URL, json={}, headers=bearer(seed["viewer"], seed["org"]))
        assert resp.status_code == 500
        assert "index unavailable" in resp.json()["detail"]

    async def test_requires_session(self, client_for, seed):
        async with client_for(search=StubSearch(frames=[_frame()])) as ac:
            resp = await ac.post(SEARCH_URL, json={})
        assert resp.status_code == 401


# ---------------------------------------------------------------------------
# SQL backend
# ---------------------------------------------------------------------------

class TestSQLSearchService:
    @pytest.fixture
    async def dashboards(self, seed, session_factory):
        org_id = seed["org"].id
        async with session_factory() as s:
            s.add_all([
                Dashboard(org_id=org_id, uid="cpu", title="CPU usage", tags=["prod", "infra"]),
                Dashboard(org_id=org_id, uid="mem", title="Memory", tags=["prod"], folder="ops"),
                Dashboard(org_id=org_id, uid="biz", title="Business KPIs", tags=["sales"]),
            ])
            await s.commit()
        return org_id

    @pytest.fixture
    def service(self):
        return SQLSearchService(Settings(app_url="https://dash.example.com/"))

    @pytest.fixture
    def auth(self, seed):
        from unittest.mock import MagicMock
        auth = MagicMock()
        auth.user_id = seed["viewer"].id
        return auth

    async def _uids(self, service, auth, org_id, session, **query):
        frames = await service.query_dashboards(auth, org_id, DashboardQuery(**query), session)
        assert len(frames) == 1
        assert frames[0].name == RESULTS_FRAME_NAME
        return frames[0].values[1]

    async def test_disabled_is_not_ready(self):
        service = SQLSearchService(Settings(search_enabled=False))
        check = await service.is_ready(None)
        assert not check.is_ready
        assert check.reason == REASON_DISABLED

    async def test_enabled_is_ready(self, service):
        assert (await service.is_ready(None)).is_ready

    async def test_all_sorted_by_title(self, service, auth, dashboards, session):
        assert await self._uids(service, auth, dashboards, session) == ["biz", "cpu", "mem"]

    async def test_sort_desc(self, service, auth, dashboards, session):
        uids = await self._uids(service, auth, dashboards, session, sort="alpha-desc")
        assert uids == ["mem", "cpu", "biz"]

    async def test_title_match(self, service, auth, dashboards, session):
        assert await self._uids(service, auth, dashboards, session, query="cpu") == ["cpu"]

    async def test_tags_must_all_match(self, service, auth, dashboards, session):
        uids = await self._uids(service, auth, dashboards, session, tags=["prod", "infra"])
        assert uids == ["cpu"]

    async def test_location_filter(self, service, auth, dashboards, session):
        assert await self._uids(service, auth, dashboards, session, location="ops") == ["mem"]

    async def test_paging(self, service, auth, dashboards, session):
        uids = await self._uids(service, auth, dashboards, session, from_=1, limit=1)
        assert uids == ["cpu"]

    async def test_other_kind_returns_empty_frame(self, service, auth, dashboards, session):
        assert await self._uids(service, auth, dashboards, session, kind=["folder"]) == []

    async def test_other_org_sees_nothing(self, service, auth, dashboards, session):
        import uuid
        assert await self._uids(service, auth, uuid.uuid4(), session) == []

    async def test_frame_columns(self, service, auth, dashboards, session):
        frames = await service.query_dashboards(auth, dashboards, DashboardQuery(uid=["mem"]), session)
        wire = frames[0].to_wire()
        assert [f["name"] for f in wire["schema"]["fields"]] == [
            "kind", "uid", "name", "url", "tags", "location",
        ]
        assert wire["data"]["values"] == [
            ["dashboard"], ["mem"], ["Memory"], ["https://dash.example.com/d/mem"], [["prod"]], ["ops"],
        ]
