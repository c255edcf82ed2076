"""Clean minimal deterministic OpenAPI spec builder.

Scope (purposefully narrow):
- Public tracking lookup: /track, /track/{ticket_number}
- Staff ticket endpoints under /repairs/tickets with caching headers on reads
- Reusable params: page, page_size
"""
from typing import Any, Dict

from .constants.permissions import PERM_READ, PERM_MANAGE
from .models.repair_ticket import RepairTicket
from .services.lifecycle import TICKET_FSM

__all__ = ["build_openapi_spec"]


def caching_headers() -> Dict[str, Any]:
    return {
        "ETag": {"schema": {"type": "string"}},
        "Last-Modified": {"schema": {"type": "string"}},
        "X-Last-Modified-ISO": {"schema": {"type": "string"}},
    }


def _ticket_schema() -> Dict[str, Any]:
    string = {"type": "string"}
    nullable = {"type": "string", "nullable": True}
    schema = {
        "type": "object",
        "properties": {
            "id": {"type": "integer"},
            "ticket_number": {"type": "string", "pattern": r"^[A-Z]+-\d{4}-\d{4,}$"},
            "customer_name": string,
            "customer_email": nullable,
            "customer_phone": nullable,
            "device_type": string,
            "device_brand": string,
            "device_model": string,
            "issue_description": string,
            "status": {"type": "string", "enum": list(RepairTicket.ALL_STATUSES)},
            "priority": {"type": "string", "enum": list(RepairTicket.ALL_PRIORITIES)},
            "priority_tier": {"type": "string", "enum": ["severe", "medium", "mild"]},
            "estimated_cost": nullable,
            "final_cost": nullable,
            "estimated_completion": {"type": "string", "format": "date", "nullable": True},
            "age_in_days": {"type": "integer"},
            "is_overdue": {"type": "boolean"},
            "progress_index": {"type": "integer"},
            "created_at": {"type": "string", "format": "date-time"},
            "updated_at": {"type": "string", "format": "date-time"},
        },
        "required": ["id", "ticket_number", "customer_name", "status", "priority"],
    }
    # Allowed status transitions, mirroring the runtime FSM table
    schema["x-transitions"] = {s: sorted(TICKET_FSM.allowed_targets(s)) for s in RepairTicket.ALL_STATUSES}
    return schema


def _list_response(description: str) -> Dict[str, Any]:
    return {
        "description": description,
        "headers": caching_headers(),
        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/TicketList"}}},
    }


def build_openapi_spec() -> Dict[str, Any]:
    paging = [{"$ref": "#/components/parameters/PageParam"}, {"$ref": "#/components/parameters/PageSizeParam"}]
    ticket_ref = {"content": {"application/json": {"schema": {"$ref": "#/components/schemas/RepairTicket"}}}}
    id_param = {"name": "ticket_id", "in": "path", "required": True, "schema": {"type": "integer"}}

    paths: Dict[str, Any] = {
        "/track": {
            "get": {
                "summary": "Look up tickets by ticket number (exact) or customer name (substring)",
                "security": [],
                "parameters": [
                    {"name": "q", "in": "query", "required": True, "schema": {"type": "string", "minLength": 2}},
                    {"name": "type", "in": "query", "schema": {"type": "string", "enum": ["ticket_number", "customer_name"], "default": "ticket_number"}},
                ] + paging,
                "responses": {"200": {"description": "Matches (possibly empty)"}, "400": {"$ref": "#/components/responses/BadRequest"}},
            }
        },
        "/track/{ticket_number}": {
            "get": {
                "summary": "Look up one ticket by number",
                "security": [],
                "parameters": [{"name": "ticket_number", "in": "path", "required": True, "schema": {"type": "string"}}],
                "responses": {"200": {"description": "Match (possibly empty)"}},
            }
        },
        "/repairs/tickets": {
            "get": {
                "summary": "List repair tickets (newest first)",
                "parameters": [
                    {"name": "status", "in": "query", "schema": {"type": "string"}},
                    {"name": "search", "in": "query", "schema": {"type": "string"}},
                    {"name": "q", "in": "query", "schema": {"type": "string"}},
                    {"name": "type", "in": "query", "schema": {"type": "string", "default": "customer_name"}},
                ] + paging,
                "responses": {"200": _list_response("Ticket page"), "304": {"description": "Not Modified"}},
                "x-required-permissions": [PERM_READ],
            },
            "head": {
                "summary": "List headers only",
                "parameters": paging,
                "responses": {"200": {"description": "OK", "headers": caching_headers()}},
                "x-required-permissions": [PERM_READ],
            },
            "post": {
                "summary": "Create a repair ticket",
                "requestBody": ticket_ref,
                "responses": {"201": {"description": "Created", **ticket_ref}, "400": {"$ref": "#/components/responses/BadRequest"}},
                "x-required-permissions": [PERM_MANAGE],
            },
        },
        "/repairs/tickets/summary": {
            "get": {
                "summary": "Ticket counters for the dashboard",
                "responses": {"200": {"description": "OK"}},
                "x-required-permissions": [PERM_READ],
            }
        },
        "/repairs/tickets/{ticket_id}": {
            "get": {
                "summary": "Get one ticket with its timeline",
                "parameters": [id_param],
                "responses": {"200": {"description": "OK", "headers": caching_headers(), **ticket_ref}, "404": {"$ref": "#/components/responses/NotFound"}},
                "x-required-permissions": [PERM_READ],
            },
            "patch": {
                "summary": "Edit status, priority, costs or notes",
                "parameters": [id_param],
                "responses": {"200": {"description": "Updated", **ticket_ref}, "409": {"description": "Illegal status transition"}},
                "x-required-permissions": [PERM_MANAGE],
            },
            "delete": {
                "summary": "Soft delete",
                "parameters": [id_param],
                "responses": {"204": {"description": "Deleted"}},
                "x-required-permissions": [PERM_MANAGE],
            },
        },
        "/repairs/tickets/{ticket_id}/cancel": {
            "post": {
                "summary": "Cancel a ticket",
                "parameters": [id_param],
                "responses": {"200": {"description": "Cancelled", **ticket_ref}, "409": {"description": "Already terminal"}},
                "x-required-permissions": [PERM_MANAGE],
            }
        },
    }

    for path, ops in paths.items():
        tag = path.split("/")[1].capitalize()
        for method, od in ops.items():
            rid = path.strip("/").replace("/", "_").replace("{", "").replace("}", "")
            od["operationId"] = f"{method}_{rid}"
            od["tags"] = [tag]

    return {
        "openapi": "3.0.3",
        "info": {"title": "RepairDesk API", "version": "0.1.0"},
        "paths": paths,
        "components": {
            "schemas": {
                "RepairTicket": _ticket_schema(),
                "TicketList": {
                    "type": "object",
                    "properties": {
                        "data": {"type": "array", "items": {"$ref": "#/components/schemas/RepairTicket"}},
                        "pagination": {"$ref": "#/components/schemas/Pagination"},
                        "omitted": {"type": "integer"},
                    },
                },
                "Pagination": {
                    "type": "object",
                    "properties": {
                        "total": {"type": "integer"},
                        "page": {"type": "integer"},
                        "page_size": {"type": "integer"},
                        "returned": {"type": "integer"},
                    },
                    "required": ["total", "page", "page_size", "returned"],
                },
                "Error": {"type": "object", "properties": {"error": {"type": "object"}}, "required": ["error"]},
            },
            "responses": {"NotFound": {"description": "Not Found"}, "BadRequest": {"description": "Bad Request"}},
            "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
            "parameters": {
                "PageParam": {"name": "page", "in": "query", "schema": {"type": "integer", "default": 1, "minimum": 1}},
                "PageSizeParam": {"name": "page_size", "in": "query", "schema": {"type": "integer", "default": 10, "maximum": 100}},
            },
        },
        "security": [{"BearerAuth": []}],
        "tags": [{"name": "Repairs", "description": "Staff ticket management"}, {"name": "Track", "description": "Public ticket tracking"}],
    }
