"""Pipeline API: background processing, status, unlock, cron sweep. Async work runs via asyncio.run."""
import asyncio
import hmac
import logging

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from newsletter_intel.pipeline.errors import InvalidRequestError, StoreUnavailableError
from newsletter_intel.pipeline.factory import create_processor
from newsletter_intel.pipeline.models import ProcessRequest
from newsletter_intel.pipeline.store import SqlWorkStore
from newsletter_intel.pipeline.sweep import run_sweep

logger = logging.getLogger(__name__)

bp = Blueprint("pipeline", __name__, url_prefix="/api")


def _settings():
    return current_app.config["PIPELINE_SETTINGS"]


def _processor():
    return current_app.config.get("PIPELINE_PROCESSOR") or create_processor(_settings())


def _user_id_from_body():
    data = request.get_json(force=True, silent=True) or {}
    user_id = data.get("userId") if isinstance(data, dict) else None
    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidRequestError("userId is required")
    return user_id.strip()


@bp.errorhandler(InvalidRequestError)
def _invalid_request(e):
    return jsonify({"success": False, "error": str(e)}), 400


@bp.errorhandler(StoreUnavailableError)
def _store_unavailable(e):
    logger.error("Store unavailable: %s", e, exc_info=e)
    return jsonify({"success": False, "error": str(e)}), 500


@bp.route("/pipeline/process-background", methods=["POST"])
def process_background():
    """POST /api/pipeline/process-background. Body: userId, batchSize (optional, clamped 1..25)."""
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise InvalidRequestError("userId is required")
    try:
        body = ProcessRequest.model_validate(data)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        if "userId" in fields or not fields:
            raise InvalidRequestError("userId is required") from e
        raise InvalidRequestError(f"Invalid request field(s): {', '.join(fields)}") from e

    processor = _processor()
    trigger = request.headers.get("X-Pipeline-Trigger", "manual")
    result = asyncio.run(
        processor.process(
            body.user_id,
            body.batch_size,
            request_headers=dict(request.headers),
            trigger=trigger,
        )
    )
    return jsonify(result.to_response()), 200


@bp.route("/pipeline/status", methods=["GET"])
def pipeline_status():
    """GET /api/pipeline/status?userId=. E-mail counts per status, company totals, lock state."""
    user_id = (request.args.get("userId") or "").strip()
    if not user_id:
        raise InvalidRequestError("userId is required")
    store = SqlWorkStore()
    try:
        counts = store.status_counts(user_id)
        totals = store.company_counts(user_id)
        locked = store.is_user_locked(user_id)
    except Exception as e:
        raise StoreUnavailableError("Failed to read pipeline status") from e
    return jsonify(
        {
            "success": True,
            "userId": user_id,
            "emails": {
                "pending": counts.get("pending", 0),
                "processing": counts.get("processing", 0),
                "completed": counts.get("completed", 0),
                "failed": counts.get("failed", 0),
                "total": sum(counts.values()),
            },
            "companies": totals["companies"],
            "mentions": totals["mentions"],
            "locked": locked,
        }
    ), 200


@bp.route("/pipeline/unlock", methods=["POST"])
def pipeline_unlock():
    """POST /api/pipeline/unlock. Body: userId. Force-releases a stuck processing lock."""
    user_id = _user_id_from_body()
    try:
        released = SqlWorkStore().force_release_user_lock(user_id)
    except Exception as e:
        raise StoreUnavailableError("Failed to release processing lock") from e
    logger.info("Processing lock force-released for user %s (held=%s)", user_id, released)
    return jsonify({"success": True, "userId": user_id, "released": released}), 200


@bp.route("/cron/process-emails", methods=["GET"])
def cron_process_emails():
    """GET /api/cron/process-emails. Requires Authorization: Bearer <cron_secret> when one is set."""
    secret = _settings().cron_secret
    if secret:
        provided = request.headers.get("Authorization", "")
        if not hmac.compare_digest(provided.encode(), f"Bearer {secret}".encode()):
            return jsonify({"error": "Unauthorized"}), 401
    processor = _processor()
    summary = asyncio.run(run_sweep(processor))
    return jsonify(summary), 200
