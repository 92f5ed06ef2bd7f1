"""KPI endpoints: definitions, daily entries, status board and alerts."""
from __future__ import annotations

from conftest import PLAN_START


class TestKpiEndpoints:
    def test_create_and_list_without_entries(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi()
        assert kpi["calculationType"] == "manual"
        board = client.get(f"/api/plans/{plan_id}/kpis", headers=auth).json()["data"]
        assert len(board) == 1
        assert board[0]["id"] == kpi["id"]
        assert board[0]["latestValue"] is None
        assert board[0]["status"] == "green"
        assert board[0]["trend"] == "stable"
        assert board[0]["entries"] == []

    def test_invalid_enum_rejected(self, client, auth, plan_id):
        resp = client.post(
            f"/api/plans/{plan_id}/kpis",
            json={"name": "X", "category": "vibes", "unit": "percent", "targetType": "minimum", "targetValue": 1},
            headers=auth,
        )
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "category"

    def test_update(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi()
        resp = client.patch(f"/api/plans/{plan_id}/kpis/{kpi['id']}", json={"targetValue": 30}, headers=auth)
        assert resp.status_code == 200
        assert resp.json()["data"]["targetValue"] == 30
        assert resp.json()["data"]["name"] == "Open Rate"

    def test_delete_removes_entries(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi()
        url = f"/api/plans/{plan_id}/kpis/{kpi['id']}"
        client.post(f"{url}/entries", json={"date": PLAN_START, "value": 30}, headers=auth)
        assert client.delete(url, headers=auth).status_code == 200
        assert client.get(f"{url}/entries", headers=auth).status_code == 404
        assert client.get(f"/api/plans/{plan_id}/export/csv", headers=auth).text.count("\n") == 0

    def test_kpi_404(self, client, auth, plan_id):
        assert client.get(f"/api/plans/{plan_id}/kpis/999/entries", headers=auth).status_code == 404


class TestKpiEntries:
    def test_upsert_keeps_one_entry_per_date(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi()
        url = f"/api/plans/{plan_id}/kpis/{kpi['id']}/entries"
        first = client.post(url, json={"date": PLAN_START, "value": 30, "notes": "morning"}, headers=auth)
        second = client.post(url, json={"date": PLAN_START, "value": 35}, headers=auth)
        assert first.status_code == 201
        assert second.status_code == 201
        assert first.json()["data"]["id"] == second.json()["data"]["id"]

        entries = client.get(url, headers=auth).json()["data"]
        assert len(entries) == 1
        assert entries[0]["value"] == 35
        # notes not sent on the second write are left alone
        assert entries[0]["notes"] == "morning"

    def test_entries_listed_oldest_first(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi()
        url = f"/api/plans/{plan_id}/kpis/{kpi['id']}/entries"
        for day, value in (("2026-02-03", 30), ("2026-02-01", 26), ("2026-02-02", 28)):
            client.post(url, json={"date": day, "value": value}, headers=auth)
        dates = [e["date"] for e in client.get(url, headers=auth).json()["data"]]
        assert dates == ["2026-02-01", "2026-02-02", "2026-02-03"]

    def test_in_range_value_creates_no_alert(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi(targetValue=25)
        resp = client.post(
            f"/api/plans/{plan_id}/kpis/{kpi['id']}/entries", json={"date": PLAN_START, "value": 23}, headers=auth,
        )
        assert resp.json()["data"]["alertCreated"] is False
        assert client.get(f"/api/plans/{plan_id}/alerts", headers=auth).json()["data"] == []

    def test_out_of_range_value_creates_alert_every_time(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi(targetValue=25)
        url = f"/api/plans/{plan_id}/kpis/{kpi['id']}/entries"
        resp = client.post(url, json={"date": PLAN_START, "value": 10}, headers=auth)
        assert resp.json()["data"]["alertCreated"] is True
        assert resp.json()["message"] == "Open Rate is outside target range: 10 (target: minimum 25)"
        client.post(url, json={"date": PLAN_START, "value": 12}, headers=auth)

        alerts = client.get(f"/api/plans/{plan_id}/alerts", headers=auth).json()["data"]
        assert len(alerts) == 2
        assert all(a["severity"] == "warning" for a in alerts)
        assert alerts[0]["kpi"]["name"] == "Open Rate"
        assert alerts[0]["dateTriggered"] == PLAN_START
        assert len(client.get(url, headers=auth).json()["data"]) == 1

    def test_maximum_target_alert(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi(name="Bounce Rate", targetType="maximum", targetValue=5)
        resp = client.post(
            f"/api/plans/{plan_id}/kpis/{kpi['id']}/entries", json={"date": PLAN_START, "value": 8}, headers=auth,
        )
        assert resp.json()["data"]["alertCreated"] is True


class TestKpiBoard:
    def test_status_and_trend(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi(targetValue=100)
        url = f"/api/plans/{plan_id}/kpis/{kpi['id']}/entries"
        for day, value in (("2026-02-01", 80), ("2026-02-02", 90), ("2026-02-03", 95)):
            client.post(url, json={"date": day, "value": value}, headers=auth)
        board = client.get(f"/api/plans/{plan_id}/kpis", headers=auth).json()["data"][0]
        assert board["latestValue"] == 95
        assert board["latestDate"] == "2026-02-03"
        assert board["status"] == "yellow"
        assert board["trend"] == "up"
        assert [e["value"] for e in board["entries"]] == [80, 90, 95]

    def test_red_and_down(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi(targetValue=100)
        url = f"/api/plans/{plan_id}/kpis/{kpi['id']}/entries"
        for day, value in (("2026-02-01", 100), ("2026-02-02", 70)):
            client.post(url, json={"date": day, "value": value}, headers=auth)
        board = client.get(f"/api/plans/{plan_id}/kpis", headers=auth).json()["data"][0]
        assert board["status"] == "red"
        assert board["trend"] == "down"

    def test_board_keeps_last_seven_entries(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi(targetValue=1)
        url = f"/api/plans/{plan_id}/kpis/{kpi['id']}/entries"
        for day in range(1, 10):
            client.post(url, json={"date": f"2026-02-{day:02d}", "value": day}, headers=auth)
        board = client.get(f"/api/plans/{plan_id}/kpis", headers=auth).json()["data"][0]
        assert len(board["entries"]) == 7
        assert board["entries"][0]["date"] == "2026-02-03"
        assert board["latestValue"] == 9


class TestAlerts:
    def _raise_alert(self, client, auth, plan_id, kpi_id, day=PLAN_START):
        client.post(
            f"/api/plans/{plan_id}/kpis/{kpi_id}/entries", json={"date": day, "value": 1}, headers=auth,
        )

    def test_resolve(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi()
        self._raise_alert(client, auth, plan_id, kpi["id"])
        alert = client.get(f"/api/plans/{plan_id}/alerts", headers=auth).json()["data"][0]
        resp = client.post(
            f"/api/plans/{plan_id}/alerts/{alert['id']}/resolve",
            json={"resolutionNotes": "Fixed the DNS records"}, headers=auth,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["resolvedAt"] is not None
        assert data["resolutionNotes"] == "Fixed the DNS records"

    def test_resolve_requires_notes(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi()
        self._raise_alert(client, auth, plan_id, kpi["id"])
        alert = client.get(f"/api/plans/{plan_id}/alerts", headers=auth).json()["data"][0]
        resp = client.post(
            f"/api/plans/{plan_id}/alerts/{alert['id']}/resolve", json={"resolutionNotes": "   "}, headers=auth,
        )
        assert resp.status_code == 400

    def test_filter_by_resolved(self, client, auth, plan_id, make_kpi):
        kpi = make_kpi()
        self._raise_alert(client, auth, plan_id, kpi["id"], "2026-02-01")
        self._raise_alert(client, auth, plan_id, kpi["id"], "2026-02-02")
        alerts = client.get(f"/api/plans/{plan_id}/alerts", headers=auth).json()["data"]
        client.post(
            f"/api/plans/{plan_id}/alerts/{alerts[0]['id']}/resolve",
            json={"resolutionNotes": "ok"}, headers=auth,
        )
        open_alerts = client.get(f"/api/plans/{plan_id}/alerts", params={"resolved": "false"}, headers=auth)
        closed = client.get(f"/api/plans/{plan_id}/alerts", params={"resolved": "true"}, headers=auth)
        assert [a["id"] for a in open_alerts.json()["data"]] == [alerts[1]["id"]]
        assert [a["id"] for a in closed.json()["data"]] == [alerts[0]["id"]]

    def test_resolved_alert_clears_calendar_flag(self, client, auth, plan_id, make_kpi, make_task):
        make_task()
        kpi = make_kpi()
        self._raise_alert(client, auth, plan_id, kpi["id"])
        alert = client.get(f"/api/plans/{plan_id}/alerts", headers=auth).json()["data"][0]
        client.post(
            f"/api/plans/{plan_id}/alerts/{alert['id']}/resolve", json={"resolutionNotes": "ok"}, headers=auth,
        )
        day = client.get(f"/api/plans/{plan_id}/calendar", headers=auth).json()["data"]["days"][0]
        assert day["hasAlerts"] is False

    def test_alert_404(self, client, auth, plan_id):
        resp = client.post(f"/api/plans/{plan_id}/alerts/999/resolve", json={"resolutionNotes": "x"}, headers=auth)
        assert resp.status_code == 404
