"""Tests for feed listing, save/unsave and report endpoints."""

import asyncio

from tests.test_api.conftest import (
    ADMIN,
    OTHER_USER,
    USER,
    feed_ids,
    make_client,
    make_service,
)


class TestListFeeds:
    def test_requires_user_identity(self, client):
        response = client.get("/feeds")

        assert response.status_code == 401
        assert "X-User-ID" in response.json()["detail"]

    def test_first_page_of_fresh_feed(self, client, service):
        response = client.get("/feeds", headers=USER)

        assert response.status_code == 200
        data = response.json()
        assert data["refresh_status"] == "fresh"
        assert data["pagination"] == {
            "page": 1,
            "limit": 10,
            "total_items": 3,
            "total_pages": 1,
        }
        assert [item["id"] for item in data["items"]] == feed_ids(service)
        first = data["items"][0]
        assert first["source"] == "twitter"
        assert first["author"]["name"] == "Studio Sam"
        assert first["engagement"] == {"likes": 10, "shares": 2, "comments": 1}
        assert first["is_saved"] is False

    def test_newest_first(self, client):
        items = client.get("/feeds", headers=USER).json()["items"]

        timestamps = [item["timestamp"] for item in items]
        assert timestamps == sorted(timestamps, reverse=True)

    def test_later_pages_skip_refresh(self, client):
        response = client.get("/feeds", params={"page": 2, "limit": 2}, headers=USER)

        data = response.json()
        assert data["refresh_status"] is None
        assert len(data["items"]) == 1
        assert data["pagination"]["total_pages"] == 2

    def test_page_past_end_is_empty(self, client):
        response = client.get("/feeds", params={"page": 9}, headers=USER)

        assert response.status_code == 200
        assert response.json()["items"] == []

    def test_empty_store_refreshes_from_connectors(self):
        service = make_service(seed=0)
        with make_client(service) as client:
            response = client.get("/feeds", headers=USER)

        data = response.json()
        assert data["refresh_status"] == "refreshed"
        assert data["pagination"]["total_items"] == 4
        assert {item["source"] for item in data["items"]} == {"twitter", "reddit"}

    def test_invalid_page(self, client):
        response = client.get("/feeds", params={"page": 0}, headers=USER)

        assert response.status_code == 422
        assert response.json()["error_type"] == "validation"

    def test_invalid_limit(self, client):
        assert client.get("/feeds", params={"limit": 0}, headers=USER).status_code == 422
        assert client.get("/feeds", params={"limit": 101}, headers=USER).status_code == 422

    def test_invalid_args_do_not_trigger_refresh(self):
        service = make_service(seed=0)
        with make_client(service) as client:
            response = client.get("/feeds", params={"limit": 0}, headers=USER)

        assert response.status_code == 422
        assert all(c.fetch_count == 0 for c in service.connectors)
        assert asyncio.run(service.feed_store.count()) == 0


class TestSaveFeed:
    def test_save_credits_user(self, client, service):
        feed_id = feed_ids(service)[0]

        response = client.post(f"/feeds/{feed_id}/save", headers=USER)

        assert response.status_code == 201
        assert response.json() == {"credited": 2, "total": 2, "duplicate": False}

        items = client.get("/feeds", headers=USER).json()["items"]
        saved = next(item for item in items if item["id"] == feed_id)
        assert saved["is_saved"] is True
        assert saved["saved_count"] == 1

    def test_save_twice_conflicts(self, client, service):
        feed_id = feed_ids(service)[0]
        client.post(f"/feeds/{feed_id}/save", headers=USER)

        response = client.post(f"/feeds/{feed_id}/save", headers=USER)

        assert response.status_code == 409
        assert response.json()["error_type"] == "conflict"

    def test_save_unknown_feed(self, client):
        response = client.post("/feeds/feed_missing/save", headers=USER)

        assert response.status_code == 404
        assert response.json()["error_type"] == "not_found"

    def test_unsave(self, client, service):
        feed_id = feed_ids(service)[0]
        client.post(f"/feeds/{feed_id}/save", headers=USER)

        response = client.post(f"/feeds/{feed_id}/unsave", headers=USER)

        assert response.status_code == 204
        saved = client.get("/users/me/saved-feeds", headers=USER).json()
        assert saved["total"] == 0
        assert client.get("/credits", headers=USER).json()["total"] == 2

    def test_unsave_not_saved_is_noop(self, client, service):
        feed_id = feed_ids(service)[0]

        assert client.post(f"/feeds/{feed_id}/unsave", headers=USER).status_code == 204


class TestReportFeed:
    def test_report(self, client, service):
        feed_id = feed_ids(service)[0]

        response = client.post(
            f"/feeds/{feed_id}/report", json={"reason": "spam"}, headers=USER
        )

        assert response.status_code == 201
        assert response.json()["credited"] == 1

    def test_reason_required(self, client, service):
        feed_id = feed_ids(service)[0]

        response = client.post(f"/feeds/{feed_id}/report", json={}, headers=USER)

        assert response.status_code == 422
        assert response.json()["error_type"] == "validation"

    def test_second_report_by_same_user(self, client, service):
        feed_id = feed_ids(service)[0]
        client.post(f"/feeds/{feed_id}/report", json={"reason": "spam"}, headers=USER)

        response = client.post(
            f"/feeds/{feed_id}/report", json={"reason": "spam again"}, headers=USER
        )

        assert response.status_code == 409

    def test_reported_list_is_admin_only(self, client, service):
        feed_id = feed_ids(service)[0]
        client.post(f"/feeds/{feed_id}/report", json={"reason": "spam"}, headers=USER)
        client.post(f"/feeds/{feed_id}/report", json={"reason": "scam"}, headers=OTHER_USER)

        forbidden = client.get("/feeds/reported", headers=USER)
        assert forbidden.status_code == 403
        assert forbidden.json()["error_type"] == "forbidden"

        response = client.get("/feeds/reported", headers=ADMIN)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        item = data["items"][0]
        assert item["id"] == feed_id
        assert item["report_count"] == 2
        assert [(r["user_id"], r["reason"], r["username"]) for r in item["reports"]] == [
            ("u1", "spam", "Sam"),
            ("u2", "scam", "Riley"),
        ]
