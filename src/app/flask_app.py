"""
Flask admin API for the credential pool.
"""
import asyncio
import csv
import hmac
import io
import json
import logging

from flask import Blueprint, Flask, Response, current_app, jsonify, request
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from src.admin import AdminService, AdminServiceError, InternalError
from src.admin.models import (
    EXPORT_COLUMNS,
    BatchDeleteRequest,
    BatchImportRequest,
    SetDisabledRequest,
    SetPriorityRequest,
)
from src.config.settings import get_settings
from src.credentials.errors import PaginationError
from src.credentials.models import CreateCredential

# Configure logging
settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def create_app(admin_service: AdminService, api_key: str | None = None) -> Flask:
    """Build the app. The admin API is only mounted when an API key is set."""
    app = Flask(__name__)
    app.extensions["admin_service"] = admin_service

    api_key = api_key or get_settings().admin_api_key
    if api_key:
        app.config["ADMIN_API_KEY"] = api_key
        app.register_blueprint(admin_bp)
    else:
        logger.warning("No admin API key configured, admin API disabled")
    return app


def run_async(coro):
    """Run async coroutine in sync context."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def get_service() -> AdminService:
    return current_app.extensions["admin_service"]


def success(message: str, **extra):
    return jsonify({"success": True, "message": message, **extra})


def error_response(kind: str, message: str, status: int):
    return jsonify({"error": {"type": kind, "message": message}}), status


# ============== Authentication & Errors ==============

@admin_bp.before_request
def require_api_key():
    """Accept the key from x-api-key or an Authorization: Bearer header."""
    provided = request.headers.get("x-api-key")
    if not provided:
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            provided = auth[len("Bearer "):].strip()

    expected = current_app.config["ADMIN_API_KEY"]
    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        return error_response("authentication_error", "Invalid or missing admin API key", 401)
    return None


@admin_bp.errorhandler(AdminServiceError)
def handle_admin_error(e: AdminServiceError):
    return jsonify(e.to_response()), e.status_code


@admin_bp.errorhandler(ValidationError)
def handle_validation_error(e: ValidationError):
    message = "; ".join(
        f"{'.'.join(map(str, err['loc'])) or 'body'}: {err['msg']}" for err in e.errors()
    )
    return error_response("invalid_request", message, 400)


@admin_bp.errorhandler(PaginationError)
def handle_pagination_error(e: PaginationError):
    return error_response("invalid_request", str(e), 400)


@admin_bp.errorhandler(Exception)
def handle_unexpected_error(e: Exception):
    if isinstance(e, HTTPException):
        return e
    logger.exception(f"Unhandled admin API error: {e}")
    error = InternalError(str(e))
    return jsonify(error.to_response()), error.status_code


# ============== Credentials ==============

@admin_bp.route("/credentials", methods=["GET"])
def list_credentials():
    """Paginated live status of every credential."""
    config = get_settings()
    page = request.args.get("page", 1, type=int)
    page_size = request.args.get("pageSize", config.default_page_size, type=int)
    page_size = min(page_size, config.max_page_size)

    response = get_service().get_all_credentials(page, page_size)
    return jsonify(response.model_dump(mode="json", by_alias=True))


@admin_bp.route("/credentials", methods=["POST"])
def add_credential():
    spec = CreateCredential.model_validate(request.get_json(silent=True))
    response = run_async(get_service().add_credential(spec))
    return jsonify(response.model_dump(mode="json", by_alias=True))


@admin_bp.route("/credentials/<int:credential_id>", methods=["DELETE"])
def delete_credential(credential_id: int):
    get_service().delete_credential(credential_id)
    return success(f"Credential #{credential_id} deleted")


@admin_bp.route("/credentials/<int:credential_id>/disabled", methods=["POST"])
def set_credential_disabled(credential_id: int):
    payload = SetDisabledRequest.model_validate(request.get_json(silent=True))
    result = get_service().set_disabled(credential_id, payload.disabled)
    action = "disabled" if result.disabled else "enabled"
    return success(
        f"Credential #{credential_id} {action}",
        failover={
            "attempted": result.switch_attempted,
            "switched": result.switched,
            "error": result.switch_error,
        },
    )


@admin_bp.route("/credentials/<int:credential_id>/priority", methods=["POST"])
def set_credential_priority(credential_id: int):
    payload = SetPriorityRequest.model_validate(request.get_json(silent=True))
    get_service().set_priority(credential_id, payload.priority)
    return success(f"Credential #{credential_id} priority set to {payload.priority}")


@admin_bp.route("/credentials/<int:credential_id>/reset", methods=["POST"])
def reset_failure_count(credential_id: int):
    get_service().reset_and_enable(credential_id)
    return success(f"Credential #{credential_id} failure count reset and re-enabled")


@admin_bp.route("/credentials/<int:credential_id>/balance", methods=["GET"])
def get_credential_balance(credential_id: int):
    response = run_async(get_service().get_balance(credential_id))
    return jsonify(response.model_dump(mode="json", by_alias=True))


# ============== Batch Operations ==============

@admin_bp.route("/credentials/batch-import", methods=["POST"])
def batch_import():
    payload = BatchImportRequest.model_validate(request.get_json(silent=True))
    result = run_async(get_service().batch_import(payload.credentials))
    return jsonify(result.model_dump(mode="json", by_alias=True))


@admin_bp.route("/credentials/batch-delete", methods=["POST"])
def batch_delete():
    payload = BatchDeleteRequest.model_validate(request.get_json(silent=True))
    result = get_service().batch_delete(payload.ids)
    return jsonify(result.model_dump(mode="json", by_alias=True))


# ============== Export ==============

@admin_bp.route("/credentials/export", methods=["GET"])
def export_credentials():
    """Download every credential as JSON or CSV."""
    export_format = request.args.get("format", "json").lower()
    if export_format not in ("json", "csv"):
        return error_response("invalid_request", f"Unsupported export format '{export_format}'", 400)

    items = get_service().export_all()

    if export_format == "json":
        body = json.dumps([item.model_dump(mode="json", by_alias=True) for item in items], indent=2)
        mimetype = "application/json"
    else:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(EXPORT_COLUMNS)
        for item in items:
            writer.writerow(item.to_row())
        body = buffer.getvalue()
        mimetype = "text/csv"

    return Response(
        body,
        mimetype=mimetype,
        headers={"Content-Disposition": f'attachment; filename="credentials.{export_format}"'},
    )
