"""Contacts, imports and outreach events."""
from __future__ import annotations

import io

import openpyxl

from conftest import PLAN_START


def _contact(client, auth, plan_id, **fields) -> dict:
    body = {"email": "ann@example.com", "segment": "past_payer"}
    body.update(fields)
    resp = client.post(f"/api/plans/{plan_id}/contacts", json=body, headers=auth)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


class TestContactEndpoints:
    def test_create_defaults(self, client, auth, plan_id):
        contact = _contact(client, auth, plan_id, tags=["vip"])
        assert contact["status"] == "not_contacted"
        assert contact["tags"] == ["vip"]

    def test_invalid_email(self, client, auth, plan_id):
        resp = client.post(
            f"/api/plans/{plan_id}/contacts", json={"email": "nope", "segment": "past_payer"}, headers=auth,
        )
        assert resp.status_code == 400

    def test_filters(self, client, auth, plan_id):
        _contact(client, auth, plan_id, email="a@example.com")
        _contact(client, auth, plan_id, email="b@example.com", segment="cold_list")
        _contact(client, auth, plan_id, email="c@example.com", segment="cold_list", status="replied")
        url = f"/api/plans/{plan_id}/contacts"

        def emails(**params):
            return [c["email"] for c in client.get(url, params=params, headers=auth).json()["data"]]

        assert emails() == ["a@example.com", "b@example.com", "c@example.com"]
        assert emails(segment="cold_list") == ["b@example.com", "c@example.com"]
        assert emails(status="replied") == ["c@example.com"]

    def test_update_and_delete(self, client, auth, plan_id):
        contact = _contact(client, auth, plan_id)
        url = f"/api/plans/{plan_id}/contacts/{contact['id']}"
        resp = client.patch(url, json={"status": "booked_call", "notes": "Tuesday"}, headers=auth)
        assert resp.json()["data"]["status"] == "booked_call"
        assert resp.json()["data"]["email"] == "ann@example.com"
        assert client.delete(url, headers=auth).status_code == 200
        assert client.patch(url, json={"notes": "x"}, headers=auth).status_code == 404


class TestContactImport:
    def test_json_import(self, client, auth, plan_id):
        resp = client.post(
            f"/api/plans/{plan_id}/contacts/import",
            json={"contacts": [
                {"email": "x@example.com", "segment": "past_payer", "name": "X"},
                {"email": "y@example.com", "segment": "cold_list", "tags": ["feb"]},
            ]},
            headers=auth,
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Imported 2 contacts"
        assert all(c["status"] == "not_contacted" for c in body["data"])

    def test_json_import_rejects_bad_row(self, client, auth, plan_id):
        resp = client.post(
            f"/api/plans/{plan_id}/contacts/import",
            json={"contacts": [{"email": "x@example.com", "segment": "past_payer"}, {"email": "bad", "segment": "x"}]},
            headers=auth,
        )
        assert resp.status_code == 400
        assert client.get(f"/api/plans/{plan_id}/contacts", headers=auth).json()["data"] == []

    def test_csv_file_import(self, client, auth, plan_id):
        content = (
            "Email,Name,Segment,Tags\n"
            "one@example.com,One,past_payer,vip;feb\n"
            "not-an-email,Two,cold_list,\n"
            "three@example.com,Three,Cold List,\n"
        ).encode()
        resp = client.post(
            f"/api/plans/{plan_id}/contacts/import/file",
            files={"file": ("contacts.csv", content, "text/csv")},
            headers=auth,
        )
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["imported"] == 2
        assert [c["email"] for c in data["contacts"]] == ["one@example.com", "three@example.com"]
        assert data["contacts"][0]["tags"] == ["vip", "feb"]
        assert data["contacts"][1]["segment"] == "cold_list"
        assert [e["row"] for e in data["errors"]] == [3]

    def test_xlsx_file_import(self, client, auth, plan_id):
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["email", "segment", "name"])
        ws.append(["sheet@example.com", "past_payer", "Sheet"])
        buf = io.BytesIO()
        wb.save(buf)
        resp = client.post(
            f"/api/plans/{plan_id}/contacts/import/file",
            files={"file": ("contacts.xlsx", buf.getvalue(), "application/octet-stream")},
            headers=auth,
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["contacts"][0]["name"] == "Sheet"

    def test_unsupported_file(self, client, auth, plan_id):
        resp = client.post(
            f"/api/plans/{plan_id}/contacts/import/file",
            files={"file": ("contacts.txt", b"email,segment\n", "text/plain")},
            headers=auth,
        )
        assert resp.status_code == 400


class TestOutreach:
    def test_event_marks_new_contact_contacted(self, client, auth, plan_id):
        contact = _contact(client, auth, plan_id)
        resp = client.post(
            f"/api/plans/{plan_id}/outreach-events",
            json={"contactId": contact["id"], "date": PLAN_START, "channel": "email", "outcome": "delivered"},
            headers=auth,
        )
        assert resp.status_code == 201
        event = resp.json()["data"]
        assert event["contact"]["status"] == "contacted"
        got = client.get(f"/api/plans/{plan_id}/contacts", headers=auth).json()["data"][0]
        assert got["status"] == "contacted"

    def test_event_keeps_later_status(self, client, auth, plan_id):
        contact = _contact(client, auth, plan_id, status="replied")
        client.post(
            f"/api/plans/{plan_id}/outreach-events",
            json={"contactId": contact["id"], "date": PLAN_START, "channel": "dm", "outcome": "replied"},
            headers=auth,
        )
        got = client.get(f"/api/plans/{plan_id}/contacts", headers=auth).json()["data"][0]
        assert got["status"] == "replied"

    def test_event_for_unknown_contact(self, client, auth, plan_id):
        resp = client.post(
            f"/api/plans/{plan_id}/outreach-events",
            json={"contactId": 999, "date": PLAN_START, "channel": "email", "outcome": "delivered"},
            headers=auth,
        )
        assert resp.status_code == 404

    def test_list_newest_first(self, client, auth, plan_id):
        contact = _contact(client, auth, plan_id)
        for day in ("2026-02-01", "2026-02-03", "2026-02-02"):
            client.post(
                f"/api/plans/{plan_id}/outreach-events",
                json={"contactId": contact["id"], "date": day, "channel": "call", "outcome": "delivered"},
                headers=auth,
            )
        events = client.get(f"/api/plans/{plan_id}/outreach-events", headers=auth).json()["data"]
        assert [e["date"] for e in events] == ["2026-02-03", "2026-02-02", "2026-02-01"]
        assert events[0]["contact"]["email"] == "ann@example.com"

    def test_deleting_contact_removes_events(self, client, auth, plan_id):
        contact = _contact(client, auth, plan_id)
        client.post(
            f"/api/plans/{plan_id}/outreach-events",
            json={"contactId": contact["id"], "date": PLAN_START, "channel": "email", "outcome": "delivered"},
            headers=auth,
        )
        client.delete(f"/api/plans/{plan_id}/contacts/{contact['id']}", headers=auth)
        assert client.get(f"/api/plans/{plan_id}/outreach-events", headers=auth).json()["data"] == []
