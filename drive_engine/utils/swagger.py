"""Swagger/OpenAPI configuration for the application."""
from flask_swagger_ui import get_swaggerui_blueprint

# Swagger UI configuration
SWAGGER_URL = '/api/docs'
API_URL = '/api/swagger.json'

def get_swagger_blueprint():
    """Create and return swagger UI blueprint."""
    swaggerui_blueprint = get_swaggerui_blueprint(
        SWAGGER_URL,
        API_URL,
        config={
            'app_name': "Placement Drive Engine API",
            'defaultModelsExpandDepth': -1,
            'docExpansion': 'list',
            'filter': True,
            'validatorUrl': None,
        }
    )
    return swaggerui_blueprint

def _ref(name):
    return {"$ref": f"#/components/schemas/{name}"}

def _json(schema):
    return {"application/json": {"schema": schema}}

def _operation(tag, summary, body=None, responses=None, params=None, secured=True):
    op = {
        "tags": [tag],
        "summary": summary,
        "responses": {
            code: {"description": description, "content": _json(_ref("Error" if code[0] in "45" else "Success"))}
            for code, description in (responses or {"200": "OK"}).items()
        }
    }
    if body:
        op["requestBody"] = {"required": True, "content": _json(body)}
    if params:
        op["parameters"] = params
    if secured:
        op["security"] = [{"bearerAuth": []}]
    return op

def _path_param(name):
    return {"name": name, "in": "path", "required": True, "schema": {"type": "integer"}}

def _query_param(name, schema):
    return {"name": name, "in": "query", "required": False, "schema": schema}

def _object(required, **properties):
    return {"type": "object", "required": list(required), "properties": properties}

ROUND_STATES = [
    "NOT_STARTED", "ACTIVE", "TEMP_CLOSED", "PERM_CLOSED", "NOT_ELIGIBLE",
    "ATTENDED_ATTENDED", "ATTENDED_PASSED", "ATTENDED_FAILED"
]

def generate_swagger_spec():
    """Generate OpenAPI/Swagger specification."""
    token_body = _object(["token"], token={"type": "string"})
    return {
        "openapi": "3.0.0",
        "info": {
            "title": "Placement Drive Engine API",
            "description": "Drive rounds, attendance sessions, rotating scan tokens and the round attendance ledger",
            "version": "1.0.0"
        },
        "servers": [{"url": "/api", "description": "Current server"}],
        "components": {
            "securitySchemes": {
                "bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
            },
            "schemas": {
                "Round": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "integer"},
                        "job_id": {"type": "integer"},
                        "name": {"type": "string"},
                        "order": {"type": "integer", "minimum": 1},
                        "is_removed": {"type": "boolean"}
                    }
                },
                "Session": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "integer"},
                        "round_id": {"type": "integer"},
                        "status": {"type": "string", "enum": ["ACTIVE", "TEMP_CLOSED", "PERM_CLOSED"]},
                        "start_time": {"type": "string", "format": "date-time"},
                        "end_time": {"type": "string", "format": "date-time", "nullable": True}
                    }
                },
                "RoundStatus": {
                    "type": "object",
                    "properties": {
                        "round_id": {"type": "integer"},
                        "round_name": {"type": "string"},
                        "round_order": {"type": "integer"},
                        "status": {"type": "string", "enum": ROUND_STATES},
                        "token": {"type": "object", "nullable": True},
                        "attendance": {"type": "object", "nullable": True}
                    }
                },
                "Error": {
                    "type": "object",
                    "properties": {
                        "error": {"type": "boolean"},
                        "message": {"type": "string"},
                        "status_code": {"type": "integer"},
                        "code": {"type": "string"}
                    }
                },
                "Success": {
                    "type": "object",
                    "properties": {
                        "error": {"type": "boolean", "default": False},
                        "message": {"type": "string"},
                        "data": {"type": "object"}
                    }
                }
            }
        },
        "paths": {
            "/auth/login": {
                "post": _operation(
                    "Authentication", "Login",
                    body=_object(["email", "password"], email={"type": "string"}, password={"type": "string"}),
                    responses={"200": "Login successful", "401": "Invalid credentials"},
                    secured=False
                )
            },
            "/auth/refresh": {
                "post": _operation(
                    "Authentication", "Exchange a refresh token for a new access token",
                    responses={"200": "Token refreshed", "401": "User not found or inactive"}
                )
            },
            "/admin/jobs/{job_id}/rounds": {
                "get": _operation(
                    "Rounds", "List rounds with latest session and attendance counts",
                    params=[_path_param("job_id"), _query_param("include_removed", {"type": "boolean"})]
                ),
                "post": _operation(
                    "Rounds", "Create round",
                    body=_object(["name", "order"], name={"type": "string"}, order={"type": "integer"}),
                    params=[_path_param("job_id")],
                    responses={"201": "Round created", "409": "Duplicate order"}
                )
            },
            "/admin/rounds/{round_id}": {
                "patch": _operation(
                    "Rounds", "Rename round",
                    body=_object(["name"], name={"type": "string"}),
                    params=[_path_param("round_id")],
                    responses={"200": "Renamed", "409": "Round has an open session"}
                )
            },
            "/admin/rounds/{round_id}/reorder": {
                "post": _operation(
                    "Rounds", "Swap with the adjacent round",
                    body=_object(["direction"], direction={"type": "string", "enum": ["up", "down"]}),
                    params=[_path_param("round_id")],
                    responses={"200": "Reordered", "409": "Conflict or invalid state"}
                )
            },
            "/admin/rounds/{round_id}/remove": {
                "post": _operation("Rounds", "Soft-delete round", params=[_path_param("round_id")])
            },
            "/admin/rounds/{round_id}/restore": {
                "post": _operation("Rounds", "Restore round", params=[_path_param("round_id")])
            },
            "/admin/rounds/{round_id}/sessions": {
                "post": _operation(
                    "Sessions", "Start session",
                    params=[_path_param("round_id")],
                    responses={"201": "Session started", "409": "Session already open"}
                )
            },
            "/admin/sessions/{session_id}": {
                "put": _operation(
                    "Sessions", "Temp-close, perm-close or reopen a session",
                    body=_object(["action"], action={"type": "string", "enum": ["TEMP_CLOSE", "PERM_CLOSE", "REOPEN"]}),
                    params=[_path_param("session_id")],
                    responses={"200": "Updated", "409": "Illegal transition"}
                )
            },
            "/admin/jobs/{job_id}/sessions": {
                "get": _operation(
                    "Sessions", "List sessions",
                    params=[_path_param("job_id"), _query_param("round_id", {"type": "integer"})]
                )
            },
            "/attendance/jobs/{job_id}/my-rounds": {
                "get": _operation(
                    "Attendance", "Poll round statuses; ACTIVE rounds carry a fresh scan token",
                    params=[_path_param("job_id")]
                )
            },
            "/attendance/rounds/{round_id}/token": {
                "post": _operation(
                    "Attendance", "Rotate scan token for one round",
                    params=[_path_param("round_id")],
                    responses={"200": "Token issued", "409": "Round not active"}
                )
            },
            "/attendance/scan/verify": {
                "post": _operation(
                    "Attendance", "Check a scanned token without consuming it",
                    body=token_body,
                    responses={"200": "Valid", "403": "Not eligible", "404": "Unknown token", "410": "Expired"}
                )
            },
            "/attendance/scan": {
                "post": _operation(
                    "Attendance", "Redeem a scanned token",
                    body=token_body,
                    responses={
                        "201": "Attendance recorded",
                        "403": "Not eligible",
                        "404": "Unknown token",
                        "409": "Consumed, duplicate or session not active",
                        "410": "Expired"
                    }
                )
            },
            "/admin/attendance/{attendance_id}": {
                "put": _operation(
                    "Attendance", "Set PASSED or FAILED",
                    body=_object(["status"], status={"type": "string", "enum": ["PASSED", "FAILED"]}),
                    params=[_path_param("attendance_id")]
                )
            },
            "/admin/jobs/{job_id}/attendance": {
                "get": _operation(
                    "Attendance", "List attendance records",
                    params=[
                        _path_param("job_id"),
                        _query_param("round_id", {"type": "integer"}),
                        _query_param("status", {"type": "string", "enum": ["ATTENDED", "PASSED", "FAILED"]}),
                        _query_param("page", {"type": "integer", "minimum": 1}),
                        _query_param("limit", {"type": "integer", "minimum": 1})
                    ]
                )
            }
        }
    }
