"""Tests for collection endpoints."""

from src.services.errors import NotFoundError
from src.services.schemas import CollectionRequest, CollectionResult

from tests.test_api.conftest import make_collection


class TestLogCollection:

    def test_created(self, client, mock_coordinator):
        mock_coordinator.log_collection.return_value = CollectionResult(
            collection_log=make_collection(collected_by="user-1"),
            alerts_resolved=3,
        )

        resp = client.post("/collections", json={"bin_id": "bin-1", "collected_by": "user-1"})

        assert resp.status_code == 201
        body = resp.json()
        assert body["alerts_resolved"] == 3
        assert body["collection_log"]["fill_level_before"] == 88
        assert body["collection_log"]["fill_level_after"] == 0

        request = mock_coordinator.log_collection.call_args.args[0]
        assert isinstance(request, CollectionRequest)
        assert request.collected_by == "user-1"

    def test_missing_bin_id(self, client, mock_coordinator):
        assert client.post("/collections", json={}).status_code == 422
        mock_coordinator.log_collection.assert_not_called()

    def test_unknown_bin(self, client, mock_coordinator):
        mock_coordinator.log_collection.side_effect = NotFoundError("Bin", "missing")
        resp = client.post("/collections", json={"bin_id": "missing"})
        assert resp.status_code == 404


class TestCollectionQueries:

    def test_list_filters(self, client, mock_collection_repo):
        mock_collection_repo.get_recent.return_value = [make_collection()]

        resp = client.get("/collections", params={"collected_by": "user-1"})

        assert resp.status_code == 200
        assert resp.json()["total"] == 1
        mock_collection_repo.get_recent.assert_awaited_once_with(
            bin_id=None, collected_by="user-1", limit=50, offset=0,
        )

    def test_get_missing(self, client):
        assert client.get("/collections/nope").status_code == 404
