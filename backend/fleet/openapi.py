"""Minimal deterministic OpenAPI document for the service ticket API.

Scope (purposefully narrow):
- Auth endpoints: /auth/login (POST), /auth/me (GET)
- Service tickets: list + single GET & HEAD with caching headers, CRUD and lifecycle actions
- Approvals: queue and decision endpoints
- Audit log listing

The ticket schema carries the live status transition table under `x-transitions`.
"""
from typing import Any, Dict, List
from fleet.models.service_ticket import ServiceTicket
from fleet.models.service_ticket_approval import ServiceTicketApproval
from fleet.services.ticket_lifecycle import TICKET_FSM

__all__ = ["build_openapi_spec", "ACTION_REGISTRY"]

# Declarative registry for lifecycle (state-changing) endpoints.
ACTION_REGISTRY: List[Dict[str, str]] = [
    {"action": "submit", "summary": "Submit ticket for approval", "permission": "TKT.SUBMIT"},
    {"action": "start", "summary": "Start work on approved ticket", "permission": "TKT.WORK"},
    {"action": "complete", "summary": "Complete ticket", "permission": "TKT.WORK"},
    {"action": "cancel", "summary": "Cancel ticket", "permission": "TKT.CANCEL"},
]

SORT_FIELDS = ["created_at", "updated_at", "submitted_at", "priority", "status", "ticket_number", "id"]


def caching_headers() -> Dict[str, Any]:
    return {
        "ETag": {"schema": {"type": "string"}},
        "Last-Modified": {"schema": {"type": "string"}},
        "X-Last-Modified-ISO": {"schema": {"type": "string"}},
    }


def _ref(name: str) -> Dict[str, str]:
    return {"$ref": f"#/components/schemas/{name}"}


def _json(schema: Dict[str, Any]) -> Dict[str, Any]:
    return {"application/json": {"schema": schema}}


def _id_param() -> Dict[str, Any]:
    return {"name": "ticket_id", "in": "path", "required": True, "schema": {"type": "integer"}}


def _schemas() -> Dict[str, Any]:
    money = {"type": "number", "nullable": True}
    badge = {
        "type": "object",
        "properties": {"value": {"type": "string"}, "label": {"type": "string"}, "tone": {"type": "string"}},
        "required": ["value", "label", "tone"],
    }
    ticket = {
        "type": "object",
        "properties": {
            "id": {"type": "integer"},
            "ticket_number": {"type": "string"},
            "subsidiary_id": {"type": "integer"},
            "vehicle_id": {"type": "integer"},
            "title": {"type": "string"},
            "description": {"type": "string"},
            "ticket_type": {"type": "string", "enum": list(ServiceTicket.TYPES)},
            "priority": {"type": "string", "enum": list(ServiceTicket.PRIORITIES)},
            "urgency": {"type": "string", "enum": list(ServiceTicket.URGENCIES)},
            "status": {"type": "string", "enum": list(ServiceTicket.ALL_STATUSES)},
            "estimated_labor_cost": money,
            "estimated_parts_cost": money,
            "estimated_total_cost": money,
            "actual_total_cost": money,
            "version": {"type": "integer"},
            "status_badge": _ref("Badge"),
            "priority_badge": _ref("Badge"),
        },
        "required": ["id", "ticket_number", "status", "version"],
        "x-transitions": TICKET_FSM.as_table(),
    }
    approval = {
        "type": "object",
        "properties": {
            "id": {"type": "integer"},
            "ticket_id": {"type": "integer"},
            "approver_id": {"type": "integer"},
            "subsidiary_id": {"type": "integer"},
            "action": {"type": "string", "enum": list(ServiceTicketApproval.ALL_ACTIONS)},
            "comments": {"type": "string", "nullable": True},
            "modifications": {"type": "string", "nullable": True},
            "modified_labor_cost_limit": money,
            "modified_parts_cost_limit": money,
            "modified_total_cost_limit": money,
            "modified_completion_date": {"type": "string", "format": "date", "nullable": True},
            "modified_vendor_id": {"type": "integer", "nullable": True},
            "created_at": {"type": "string", "format": "date-time"},
        },
        "required": ["id", "ticket_id", "approver_id", "action"],
    }
    decision = {
        "type": "object",
        "properties": {k: v for k, v in approval["properties"].items()
                       if k not in ("id", "ticket_id", "approver_id", "created_at")}
        | {"expected_version": {"type": "integer"}},
        "required": ["action"],
    }
    return {
        "Badge": badge,
        "ServiceTicket": ticket,
        "ServiceTicketApproval": approval,
        "DecisionRequest": decision,
        "Pagination": {
            "type": "object",
            "properties": {
                "total": {"type": "integer"},
                "limit": {"type": "integer"},
                "offset": {"type": "integer"},
                "returned": {"type": "integer"},
            },
            "required": ["total", "limit", "offset", "returned"],
        },
        "Error": {
            "type": "object",
            "properties": {
                "error": {
                    "type": "object",
                    "properties": {"status": {"type": "integer"}, "title": {"type": "string"}, "detail": {"type": "string"}},
                }
            },
            "required": ["error"],
        },
    }


def _ticket_paths() -> Dict[str, Any]:
    paths: Dict[str, Any] = {}
    list_ok = {
        "description": "OK",
        "headers": caching_headers(),
        "content": _json({
            "type": "object",
            "properties": {"data": {"type": "array", "items": _ref("ServiceTicket")}, "pagination": _ref("Pagination")},
        }),
    }
    single_ok = {"description": "OK", "headers": caching_headers(), "content": _json(_ref("ServiceTicket"))}
    paths["/service-tickets"] = {
        "get": {
            "summary": "List service tickets",
            "parameters": [
                {"$ref": "#/components/parameters/LimitParam"},
                {"$ref": "#/components/parameters/OffsetParam"},
                {"$ref": "#/components/parameters/TicketSortParam"},
                {"name": "subsidiary_id", "in": "query", "schema": {"type": "integer"}},
                {"name": "status", "in": "query", "schema": {"type": "string"}},
                {"name": "priority", "in": "query", "schema": {"type": "string"}},
                {"name": "search", "in": "query", "schema": {"type": "string"}},
            ],
            "responses": {"200": list_ok, "304": {"description": "Not Modified"},
                          "400": {"$ref": "#/components/responses/BadRequest"}},
            "x-required-permissions": ["TKT.READ"],
        },
        "head": {
            "summary": "ServiceTicket list validators",
            "responses": {"200": {"description": "Headers only", "headers": caching_headers()},
                          "304": {"description": "Not Modified"}},
            "x-required-permissions": ["TKT.READ"],
        },
        "post": {
            "summary": "Create service ticket (draft, or submitted with submit=true)",
            "requestBody": {"content": _json(_ref("ServiceTicket"))},
            "responses": {"201": {"description": "Created", "content": _json(_ref("ServiceTicket"))},
                          "400": {"$ref": "#/components/responses/BadRequest"}},
            "x-required-permissions": ["TKT.CREATE"],
        },
    }
    paths["/service-tickets/stats"] = {
        "get": {"summary": "Ticket counts and cost totals",
                "parameters": [{"name": "subsidiary_id", "in": "query", "schema": {"type": "integer"}}],
                "responses": {"200": {"description": "OK"}}, "x-required-permissions": ["TKT.READ"]},
    }
    paths["/service-tickets/meta/badges"] = {
        "get": {"summary": "Status and priority badge catalog", "responses": {"200": {"description": "OK"}}},
    }
    paths["/service-tickets/{ticket_id}"] = {
        "get": {
            "summary": "Get service ticket",
            "parameters": [_id_param()],
            "responses": {"200": single_ok, "304": {"description": "Not Modified"},
                          "404": {"$ref": "#/components/responses/NotFound"}},
            "x-required-permissions": ["TKT.READ"],
        },
        "head": {
            "summary": "ServiceTicket validators",
            "parameters": [_id_param()],
            "responses": {"200": {"description": "Headers only", "headers": caching_headers()},
                          "304": {"description": "Not Modified"},
                          "404": {"$ref": "#/components/responses/NotFound"}},
            "x-required-permissions": ["TKT.READ"],
        },
        "patch": {
            "summary": "Edit draft or rejected ticket",
            "parameters": [_id_param()],
            "responses": {"200": single_ok, "409": {"$ref": "#/components/responses/Conflict"}},
            "x-required-permissions": ["TKT.UPDATE"],
        },
        "delete": {
            "summary": "Delete draft ticket",
            "parameters": [_id_param()],
            "responses": {"200": {"description": "Deleted"}, "409": {"$ref": "#/components/responses/Conflict"}},
            "x-required-permissions": ["TKT.DELETE"],
        },
    }
    paths["/service-tickets/{ticket_id}/approvals"] = {
        "get": {
            "summary": "Approval history, oldest first",
            "parameters": [_id_param()],
            "responses": {"200": {"description": "OK", "content": _json({
                "type": "object",
                "properties": {"data": {"type": "array", "items": _ref("ServiceTicketApproval")},
                               "count": {"type": "integer"}},
            })}},
            "x-required-permissions": ["TKT.READ"],
        },
    }
    for spec in ACTION_REGISTRY:
        paths[f"/service-tickets/{{ticket_id}}/{spec['action']}"] = {
            "post": {
                "summary": spec["summary"],
                "parameters": [_id_param()],
                "responses": {
                    "200": {"description": "OK", "content": _json(_ref("ServiceTicket"))},
                    "400": {"$ref": "#/components/responses/BadRequest"},
                    "404": {"$ref": "#/components/responses/NotFound"},
                },
                "x-required-permissions": [spec["permission"]],
            }
        }
    return paths


def _approval_paths() -> Dict[str, Any]:
    return {
        "/approvals/queue": {
            "get": {
                "summary": "Submitted tickets awaiting a decision, oldest submission first",
                "parameters": [{"name": "subsidiary_id", "in": "query", "required": True, "schema": {"type": "integer"}}],
                "responses": {
                    "200": {"description": "OK", "headers": {"ETag": {"schema": {"type": "string"}}}, "content": _json({
                        "type": "object",
                        "properties": {"data": {"type": "array", "items": _ref("ServiceTicket")},
                                       "count": {"type": "integer"}},
                    })},
                    "304": {"description": "Not Modified"},
                    "400": {"$ref": "#/components/responses/BadRequest"},
                },
                "x-required-permissions": ["TKT.READ"],
            }
        },
        "/approvals/tickets/{ticket_id}/decision": {
            "post": {
                "summary": "Record an approval decision",
                "parameters": [_id_param(), {"name": "If-Match", "in": "header", "schema": {"type": "string"}}],
                "requestBody": {"required": True, "content": _json(_ref("DecisionRequest"))},
                "responses": {
                    "200": {"description": "OK", "content": _json({
                        "type": "object",
                        "properties": {"ticket": _ref("ServiceTicket"), "approval": _ref("ServiceTicketApproval")},
                    })},
                    "400": {"$ref": "#/components/responses/BadRequest"},
                    "404": {"$ref": "#/components/responses/NotFound"},
                    "409": {"$ref": "#/components/responses/Conflict"},
                },
                "x-required-permissions": ["TKT.APPROVE"],
            }
        },
    }


def build_openapi_spec() -> Dict[str, Any]:
    components: Dict[str, Any] = {
        "schemas": _schemas(),
        "responses": {
            "NotFound": {"description": "Not Found", "content": _json(_ref("Error"))},
            "BadRequest": {"description": "Bad Request", "content": _json(_ref("Error"))},
            "Conflict": {"description": "Conflict", "content": _json(_ref("Error"))},
        },
        "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        "parameters": {
            "LimitParam": {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 50}},
            "OffsetParam": {"name": "offset", "in": "query", "schema": {"type": "integer", "default": 0}},
            "TicketSortParam": {
                "name": "sort", "in": "query", "schema": {"type": "string", "default": "-created_at"},
                "description": "Comma separated fields, '-' prefix for descending: " + ", ".join(SORT_FIELDS),
            },
        },
    }

    paths: Dict[str, Any] = {
        "/auth/login": {"post": {"summary": "Login", "security": [], "responses": {"200": {"description": "JWT issued"}}}},
        "/auth/me": {"get": {"summary": "Current user", "responses": {"200": {"description": "OK"}}}},
    }
    paths.update(_ticket_paths())
    paths.update(_approval_paths())
    paths["/audit/logs"] = {
        "get": {
            "summary": "List audit log entries",
            "parameters": [
                {"$ref": "#/components/parameters/LimitParam"},
                {"$ref": "#/components/parameters/OffsetParam"},
                {"name": "entity", "in": "query", "schema": {"type": "string"}},
                {"name": "entity_id", "in": "query", "schema": {"type": "string"}},
                {"name": "action", "in": "query", "schema": {"type": "string"}},
            ],
            "responses": {"200": {"description": "OK", "headers": caching_headers()},
                          "304": {"description": "Not Modified"}},
            "x-required-permissions": ["AUDIT.READ"],
        }
    }

    # Add operationIds & tags
    tag_desc: Dict[str, str] = {}
    for path, ops in paths.items():
        tag = path.split("/")[1].replace("-", " ").title()
        for method, od in ops.items():
            rid = path.strip("/").replace("/", "_").replace("-", "_").replace("{", "").replace("}", "")
            od["operationId"] = f"{method}_{rid}"
            od["tags"] = [tag]
        tag_desc[tag] = f"{tag} endpoints"

    return {
        "openapi": "3.0.3",
        "info": {"title": "Fleet Service Tickets API", "version": "0.1.0"},
        "paths": paths,
        "components": components,
        "security": [{"BearerAuth": []}],
        "tags": [{"name": n, "description": d} for n, d in sorted(tag_desc.items())],
    }
