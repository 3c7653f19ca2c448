"""
HTTP API tests against an app wired with in-memory collaborators.
"""

import pytest
from fastapi.testclient import TestClient

from spreadwatch.config import Settings
from spreadwatch.db import SQLiteStorage
from spreadwatch.main import create_app


@pytest.fixture
def app(source, store):
    return create_app(settings=Settings(auto_start=False), source=source, store=store)


@pytest.fixture
def client(app):
    # no context manager: the lifespan (and the background loop) stays off
    return TestClient(app)


@pytest.fixture
def loaded(client, source, pair_prices, make_tick):
    """Client with 40 aligned samples ingested and one cycle run."""
    a, b = pair_prices(40)
    for i, (pa, pb) in enumerate(zip(a, b)):
        source.emit(make_tick("BTCUSDT", float(pa), 1_700_000_000_000 + i * 1000))
        source.emit(make_tick("ETHUSDT", float(pb), 1_700_000_000_000 + i * 1000))
    assert client.post("/api/analytics/recompute").status_code == 200
    return client


class TestHealth:
    def test_root_and_health(self, client):
        assert client.get("/").json()["name"] == "SpreadWatch API"

        health = client.get("/health").json()
        assert health["status"] == "healthy"
        assert health["orchestrator"]["symbols"] == ["BTCUSDT", "ETHUSDT"]


class TestAnalytics:
    def test_snapshot_missing(self, client):
        assert client.get("/api/analytics/snapshot").status_code == 404
        assert client.post("/api/analytics/recompute").status_code == 409

    def test_snapshot(self, loaded):
        data = loaded.get("/api/analytics/snapshot", params={"tail": 5}).json()

        assert data["sample_count"] == 40
        assert len(data["spread"]) == 5
        assert len(data["z_score"]) == 5
        assert data["hedge_ratio"] == pytest.approx(2.0, abs=0.1)

    def test_config_update(self, client):
        response = client.put("/api/analytics/config", json={"regression_method": "huber", "rolling_window": 30})

        assert response.status_code == 200
        assert response.json()["regression_method"] == "huber"
        assert response.json()["rolling_window"] == 30

    @pytest.mark.parametrize("body", [{"rolling_window": 5}, {"regression_method": "lasso"}, {"timeframe": "2h"}])
    def test_config_rejects_invalid(self, client, body):
        assert client.put("/api/analytics/config", json=body).status_code == 422

    def test_backtest(self, client, loaded):
        response = loaded.get("/api/analytics/backtest", params={"entry_z": 1.0})

        assert response.status_code == 200
        data = response.json()
        assert data["params"]["entry_z"] == 1.0
        assert data["total_trades"] == data["winning_trades"] + data["losing_trades"]

    def test_backtest_without_snapshot(self, client):
        assert client.get("/api/analytics/backtest").status_code == 404

    def test_kalman(self, loaded):
        data = loaded.get("/api/analytics/kalman", params={"tail": 10}).json()

        assert len(data["estimates"]) == 10
        assert data["current"] == pytest.approx(2.05, abs=0.05)

    def test_regression_comparison(self, loaded):
        data = loaded.get("/api/analytics/regression").json()

        assert set(data["fits"]) == {"ols", "huber", "theil-sen"}
        assert data["samples"] == 40

    def test_regression_unknown_method(self, loaded):
        assert loaded.get("/api/analytics/regression", params={"method": "lasso"}).status_code == 400

    def test_rolling_correlation(self, loaded):
        data = loaded.get("/api/analytics/rolling-correlation", params={"window": 10}).json()
        assert len(data["values"]) == 31


class TestAlerts:
    def test_crud_and_toggle(self, client):
        created = client.post("/api/alerts", json={"type": "z-score", "condition": "above", "threshold": 2.0})
        assert created.status_code == 201
        alert_id = created.json()["alert"]["id"]

        assert client.get("/api/alerts").json()["count"] == 1
        assert client.get(f"/api/alerts/{alert_id}").json()["alert"]["threshold"] == 2.0

        toggled = client.post(f"/api/alerts/{alert_id}/toggle").json()["alert"]
        assert toggled["active"] is False

        assert client.delete(f"/api/alerts/{alert_id}").status_code == 200
        assert client.get(f"/api/alerts/{alert_id}").status_code == 404
        assert client.post(f"/api/alerts/{alert_id}/toggle").status_code == 404

    def test_invalid_type(self, client):
        response = client.post("/api/alerts", json={"type": "spread", "condition": "above", "threshold": 1})
        assert response.status_code == 422

    def test_fired_alert_in_history(self, client, loaded):
        client.post("/api/alerts", json={"type": "price", "condition": "above", "threshold": 0})
        client.post("/api/analytics/recompute")

        history = client.get("/api/alerts/history").json()
        assert history["count"] == 1
        assert client.get("/api/alerts/stats").json()["triggered_alerts"] == 1


class TestLiveAndData:
    def test_connect(self, client, source):
        response = client.post("/api/live/connect", json={"symbols": ["solusdt", "ethusdt"]})

        assert response.status_code == 200
        assert response.json()["symbols"] == ["SOLUSDT", "ETHUSDT"]
        assert source.connected[-1] == ["SOLUSDT", "ETHUSDT"]

    def test_connect_without_symbols(self, client):
        assert client.post("/api/live/connect", json={"symbols": []}).status_code == 400

    def test_status_and_disconnect(self, client, source):
        assert client.get("/api/live/status").json()["status"] == "stopped"
        assert client.post("/api/live/disconnect").json()["status"] == "disconnected"
        assert source.disconnects == 1

    def test_ticks_and_ohlc(self, loaded):
        ticks = loaded.get("/api/data/BTCUSDT/ticks", params={"limit": 5}).json()
        assert ticks["count"] == 5

        ohlc = loaded.get("/api/data/BTCUSDT/ohlc", params={"timeframe": "1s"}).json()
        assert ohlc["count"] == 40

        assert loaded.get("/api/data/XRPUSDT/ticks").status_code == 404
        assert loaded.get("/api/data/BTCUSDT/ohlc", params={"timeframe": "7m"}).status_code == 400

    def test_clear(self, loaded, store):
        assert loaded.post("/api/data/clear").status_code == 200
        assert loaded.get("/api/analytics/snapshot").status_code == 404
        assert store.cleared == 1


class TestStoredHistory:
    @pytest.fixture
    def sqlite_client(self, source, tmp_path):
        db = SQLiteStorage(str(tmp_path / "api.db"))
        app = create_app(settings=Settings(auto_start=False), source=source, store=db)
        yield TestClient(app)
        db.close()

    def test_stored_ticks_and_stats(self, sqlite_client, source, make_tick):
        for i in range(5):
            source.emit(make_tick("BTCUSDT", 100.0 + i, 1_700_000_000_000 + i))
        source.emit(make_tick("ETHUSDT", 50.0))

        ticks = sqlite_client.get("/api/data/history/btcusdt/ticks", params={"limit": 3}).json()
        assert ticks["count"] == 3
        assert [t["price"] for t in ticks["data"]] == [102.0, 103.0, 104.0]

        stats = sqlite_client.get("/api/data/storage").json()
        assert stats["tick_count"] == 6
        assert stats["symbols"] == ["BTCUSDT", "ETHUSDT"]

    def test_stored_uploaded_bars(self, sqlite_client):
        csv = "timestamp,open,high,low,close,volume\n60000,1,2,0.5,1.5,10\n"
        upload = sqlite_client.post(
            "/api/upload/ohlc",
            params={"symbol": "BTCUSDT"},
            files={"file": ("bars.csv", csv, "text/csv")},
        )
        assert upload.status_code == 200

        bars = sqlite_client.get("/api/data/history/BTCUSDT/ohlc").json()
        assert bars["count"] == 1
        assert bars["data"][0]["close"] == 1.5

    def test_missing_history(self, sqlite_client):
        assert sqlite_client.get("/api/data/history/XRPUSDT/ticks").status_code == 404
        assert sqlite_client.get("/api/data/history/XRPUSDT/ohlc").status_code == 404

    def test_without_persistent_store(self, client):
        assert client.get("/api/data/storage").status_code == 503
        assert client.get("/api/data/history/BTCUSDT/ticks").status_code == 503


class TestUploadAndExport:
    CSV = (
        "timestamp,symbol,open,high,low,close,volume\n"
        "1700000000000,BTCUSDT,1,2,0.5,1.5,10\n"
        "1700000060000,BTCUSDT,1.5,2.5,1,2,12\n"
        "1700000000000,ETHUSDT,3,4,2.5,3.5,7\n"
    )

    def test_upload_ohlc(self, client, store):
        response = client.post(
            "/api/upload/ohlc",
            files={"file": ("bars.csv", self.CSV.encode(), "text/csv")},
        )

        assert response.status_code == 200
        assert response.json()["count"] == 3
        assert response.json()["symbols"] == ["BTCUSDT", "ETHUSDT"]
        assert len(store.bars) == 3

        exported = client.get("/api/export/ohlc")
        assert exported.status_code == 200
        assert exported.text.splitlines()[0] == "Symbol,Timestamp,Open,High,Low,Close,Volume"
        assert len(exported.text.splitlines()) == 4

    def test_upload_requires_symbol(self, client):
        csv = "timestamp,open,high,low,close\n1,1,1,1,1\n"
        response = client.post("/api/upload/ohlc", files={"file": ("bars.csv", csv.encode(), "text/csv")})
        assert response.status_code == 400

    def test_upload_tick_batch(self, client):
        response = client.post("/api/upload/ticks", json={"ticks": [
            {"symbol": "btcusdt", "timestamp": 1, "price": 10.0},
            {"symbol": "btcusdt", "timestamp": 2},
        ]})

        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert response.json()["errors"] == 1

    def test_export_analytics(self, client, loaded):
        response = client.get("/api/export/analytics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment; filename=analytics_" in response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert lines[0] == "Metric,Value"
        assert lines[1].startswith("Hedge Ratio,")

    def test_export_before_data(self, client):
        assert client.get("/api/export/analytics").status_code == 404
        assert client.get("/api/export/ticks").status_code == 404

    def test_export_ticks_json(self, client, loaded):
        response = client.get("/api/export/ticks", params={"format": "json"})

        assert response.status_code == 200
        assert len(response.json()) == 80
