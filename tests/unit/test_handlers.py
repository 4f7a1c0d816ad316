"""
HTTP handler tests routed through the Lambda entrypoint.

The engine runs against a per-test SQLite store; no AWS services are
touched.

Run with: pytest tests/unit/test_handlers.py -v
"""

import json
from datetime import timedelta
from unittest.mock import patch

import pytest

from helpdesk.handlers import common, tickets
from helpdesk.handlers.main import lambda_handler


def make_event(method, path, actor=None, body=None, query=None):
    event = {"requestContext": {"http": {"method": method, "path": path}}, "headers": {}}
    if actor:
        event["headers"]["X-Actor-Id"] = actor
    if body is not None:
        event["body"] = json.dumps(body)
    if query is not None:
        event["queryStringParameters"] = query
    return event


def call(method, path, actor=None, body=None, query=None):
    result = lambda_handler(make_event(method, path, actor, body, query), None)
    return result["statusCode"], json.loads(result["body"])


@pytest.fixture(autouse=True)
def installed_service(service):
    common.set_service(service)
    yield service
    common.set_service(None)


@pytest.fixture
def ticket_id():
    status, body = call(
        "POST",
        "/tickets",
        actor="emp-1",
        body={
            "category": "Payroll / Salary Issue",
            "description": "March salary credited short",
            "priority": "High",
        },
    )
    assert status == 201
    return body["ticket"]["id"]


class TestCreateTicketHandler:
    def test_create_returns_routed_ticket(self):
        status, body = call(
            "POST",
            "/tickets",
            actor="emp-1",
            body={"category": "Leave Issue", "description": "Balance wrong"},
        )

        assert status == 201
        assert body["ticket"]["status"] == "Open"
        assert body["ticket"]["assigned_to"] == {"kind": "present", "actor_id": "exec-1"}
        assert body["ticket"]["priority"] == "Medium"
        assert "correlation_id" in body

    def test_unknown_category(self):
        status, body = call(
            "POST", "/tickets", actor="emp-1", body={"category": "Parking", "description": "x"}
        )
        assert status == 422
        assert body["kind"] == "UnknownCategory"

    def test_missing_actor_header(self):
        status, body = call("POST", "/tickets", body={"category": "Leave Issue", "description": "x"})
        assert status == 422
        assert body["kind"] == "InvalidRequest"

    def test_payload_validation(self):
        status, body = call("POST", "/tickets", actor="emp-1", body={"category": "Leave Issue"})
        assert status == 422
        assert body["errors"][0]["loc"] == ["description"]

    def test_malformed_json(self):
        event = make_event("POST", "/tickets", actor="emp-1")
        event["body"] = "{not json"
        result = lambda_handler(event, None)
        assert result["statusCode"] == 422

    def test_no_eligible_actor_is_503(self, service):
        service.tombstone_actor("bp-1")
        status, body = call(
            "POST",
            "/tickets",
            actor="emp-1",
            body={"category": "Harassment / Grievance", "description": "complaint"},
        )
        assert status == 503
        assert body["kind"] == "NoEligibleActor"


class TestLifecycleHandlers:
    def test_round_trip(self, ticket_id):
        status, body = call("POST", f"/tickets/{ticket_id}/resolve", actor="mgr-a", body={"comment": "Paid"})
        assert status == 200
        assert body["ticket"]["status"] == "Resolved"

        status, body = call("POST", f"/tickets/{ticket_id}/confirm", actor="emp-1")
        assert status == 200
        assert body["ticket"]["status"] == "Closed"

        status, body = call("POST", f"/tickets/{ticket_id}/feedback", actor="emp-1", body={"rating": 4})
        assert status == 200
        assert body["feedback"]["rating"] == 4

    def test_wrong_role_carries_ticket_context(self, ticket_id):
        status, body = call("POST", f"/tickets/{ticket_id}/resolve", actor="emp-1", body={})
        assert status == 403
        assert body["kind"] == "WrongActorRole"
        assert body["ticket_id"] == ticket_id
        assert body["current_status"] == "Open"

    def test_reopen_after_deadline(self, service, clock, ticket_id):
        call("POST", f"/tickets/{ticket_id}/resolve", actor="mgr-a", body={})
        clock.advance(days=3, seconds=1)

        status, body = call(
            "POST", f"/tickets/{ticket_id}/reopen", actor="emp-1", body={"reason": "Still short"}
        )

        assert status == 409
        assert body["kind"] == "DeadlinePassed"
        assert body["current_status"] == "Resolved"

    def test_reopen_requires_reason(self, ticket_id):
        call("POST", f"/tickets/{ticket_id}/resolve", actor="mgr-a", body={})
        status, body = call("POST", f"/tickets/{ticket_id}/reopen", actor="emp-1", body={})
        assert status == 422
        assert body["kind"] == "InvalidRequest"

    def test_status_and_escalate(self, ticket_id):
        status, body = call(
            "POST", f"/tickets/{ticket_id}/status", actor="mgr-a", body={"status": "Pending"}
        )
        assert status == 200
        assert body["ticket"]["status"] == "Pending"

        status, body = call(
            "POST", f"/tickets/{ticket_id}/escalate", actor="emp-1", body={"reason": "Stalled"}
        )
        assert status == 200
        assert body["ticket"]["escalation_level"] == 1

    def test_invalid_status_value(self, ticket_id):
        status, _ = call("POST", f"/tickets/{ticket_id}/status", actor="mgr-a", body={"status": "Done"})
        assert status == 422

    def test_assign(self, ticket_id):
        status, body = call(
            "POST", f"/tickets/{ticket_id}/assign", actor="mgr-a", body={"assignee_id": "mgr-b"}
        )
        assert status == 200
        assert body["ticket"]["assigned_to"]["actor_id"] == "mgr-b"

    def test_messages(self, ticket_id):
        status, _ = call(
            "POST", f"/tickets/{ticket_id}/messages", actor="mgr-a", body={"body": "On it"}
        )
        assert status == 201
        call(
            "POST",
            f"/tickets/{ticket_id}/messages",
            actor="mgr-a",
            body={"body": "Bank file issue", "internal": True},
        )

        status, body = call("GET", f"/tickets/{ticket_id}/messages", actor="emp-1")
        assert status == 200
        assert [m["message_type"] for m in body["messages"]] == [
            "system_message",
            "hr_response",
            "system_message",
        ]

    def test_get_ticket_and_missing_ticket(self, ticket_id):
        status, body = call("GET", f"/tickets/{ticket_id}", actor="emp-1")
        assert status == 200
        assert body["ticket"]["id"] == ticket_id

        status, body = call("GET", "/tickets/does-not-exist", actor="emp-1")
        assert status == 404
        assert body["kind"] == "TicketNotFound"

    def test_unexpected_failure_is_500(self, ticket_id):
        with patch.object(tickets, "get_service", side_effect=RuntimeError("db down")):
            status, body = call("GET", f"/tickets/{ticket_id}", actor="emp-1")
        assert status == 500
        assert body["kind"] == "InternalError"


class TestWorkloadHandlers:
    def test_workload_by_role(self, ticket_id):
        status, body = call("GET", "/workload", query={"roles": "HR Manager"})
        assert status == 200
        assert [(w["actor_id"], w["open_ticket_count"]) for w in body["workload"]] == [
            ("mgr-b", 0),
            ("mgr-a", 1),
        ]

    def test_workload_requires_roles(self):
        status, body = call("GET", "/workload")
        assert status == 422

    def test_workload_unknown_role(self):
        status, body = call("GET", "/workload", query={"roles": "Chef"})
        assert status == 422
        assert "Chef" in body["message"]

    def test_personnel_for_category(self):
        status, body = call("GET", "/categories/Harassment%20%2F%20Grievance/personnel")
        assert status == 200
        assert body["category"] == "Harassment / Grievance"
        assert body["eligible_roles"] == ["HR BP"]
        assert body["confidential"] is True
        assert [p["actor_id"] for p in body["hr_personnel"]] == ["bp-1"]

    def test_personnel_unknown_category(self):
        status, body = call("GET", "/categories/Parking/personnel")
        assert status == 422


class TestListingHandlers:
    def test_list_scoped_to_actor(self, ticket_id):
        call("POST", "/tickets", actor="emp-2", body={"category": "Leave Issue", "description": "x"})

        status, body = call("GET", "/tickets", actor="emp-1")
        assert status == 200
        assert [t["id"] for t in body["tickets"]] == [ticket_id]
        assert body["pagination"] == {"current": 1, "pages": 1, "total": 1, "limit": 10}

        status, body = call("GET", "/tickets", actor="admin-1")
        assert body["pagination"]["total"] == 2

    def test_list_query_parameters(self, ticket_id):
        call("POST", "/tickets", actor="emp-1", body={"category": "Leave Issue", "description": "x"})

        status, body = call(
            "GET", "/tickets", actor="emp-1", query={"priority": "High", "page": "1", "limit": "5"}
        )
        assert status == 200
        assert [t["id"] for t in body["tickets"]] == [ticket_id]
        assert body["pagination"]["limit"] == 5

    def test_list_rejects_bad_paging(self):
        status, body = call("GET", "/tickets", actor="emp-1", query={"limit": "500"})
        assert status == 422
        assert body["kind"] == "InvalidRequest"

    def test_list_rejects_unknown_category(self):
        status, body = call("GET", "/tickets", actor="emp-1", query={"category": "Parking"})
        assert status == 422
        assert body["kind"] == "UnknownCategory"

    def test_stats(self, ticket_id):
        status, body = call("GET", "/tickets/stats", actor="emp-1")
        assert status == 200
        assert body["stats"]["total"] == 1
        assert body["stats"]["by_status"]["Open"] == 1
        assert body["stats"]["by_priority"] == {"High": 1}

    def test_escalation_history(self, ticket_id):
        call("POST", f"/tickets/{ticket_id}/escalate", actor="emp-1", body={"reason": "No reply"})

        status, body = call("GET", f"/tickets/{ticket_id}/escalations", actor="emp-1")
        assert status == 200
        assert [(e["level"], e["reason"]) for e in body["escalations"]] == [(1, "No reply")]

        status, body = call("GET", f"/tickets/{ticket_id}/escalations", actor="emp-2")
        assert status == 403
