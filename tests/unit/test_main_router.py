"""Routing tests for the single Lambda entrypoint."""

import json
from unittest.mock import patch

from helpdesk.handlers import main


def _event(method, path):
    return {"requestContext": {"http": {"method": method, "path": path}}}


class TestMainRouter:
    def test_unknown_route_returns_404(self):
        result = main.lambda_handler(_event("GET", "/unknown/path"), None)

        assert result["statusCode"] == 404
        body = json.loads(result["body"])
        assert "Route not found" in body["message"]
        assert body["route"] == "GET /unknown/path"

    def test_method_must_match(self):
        result = main.lambda_handler(_event("DELETE", "/tickets"), None)
        assert result["statusCode"] == 404

    def test_health_check(self):
        result = main.lambda_handler(_event("GET", "/health"), None)

        assert result["statusCode"] == 200
        body = json.loads(result["body"])
        assert body["status"] == "ok"
        assert body["service"] == "helpdesk"

    def test_path_parameters_extracted(self):
        with patch.object(main.tickets, "reopen_handler", return_value={"statusCode": 200}) as handler:
            main.lambda_handler(_event("POST", "/tickets/abc123/reopen"), None)

        event = handler.call_args[0][0]
        assert event["pathParameters"] == {"id": "abc123"}

    def test_trailing_slash_accepted(self):
        with patch.object(main.tickets, "get_handler", return_value={"statusCode": 200}) as handler:
            main.lambda_handler(_event("GET", "/tickets/abc123/"), None)
        assert handler.called

    def test_category_is_unquoted(self):
        with patch.object(main.workload, "personnel_handler", return_value={"statusCode": 200}) as handler:
            main.lambda_handler(_event("GET", "/categories/Tax%20%2F%20TDS%20%2F%20Form-16/personnel"), None)

        event = handler.call_args[0][0]
        assert event["pathParameters"]["category"] == "Tax / TDS / Form-16"

    def test_listing_routes_precede_ticket_lookup(self):
        with patch.object(main.tickets, "stats_handler", return_value={"statusCode": 200}) as stats, \
                patch.object(main.tickets, "list_handler", return_value={"statusCode": 200}) as listing, \
                patch.object(main.tickets, "get_handler", return_value={"statusCode": 200}) as lookup:
            main.lambda_handler(_event("GET", "/tickets/stats"), None)
            main.lambda_handler(_event("GET", "/tickets"), None)

        assert stats.called
        assert listing.called
        assert not lookup.called
