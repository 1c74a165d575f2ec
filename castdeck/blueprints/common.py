from flask import jsonify

from ..errors import NotFoundError, TransportError


def register_error_handlers(bp, logger):
    @bp.errorhandler(NotFoundError)
    def not_found(exc):
        return jsonify({"error": str(exc)}), 404

    @bp.errorhandler(TransportError)
    def upstream_failed(exc):
        logger.error(f"Upstream request failed: {exc}")
        return jsonify({"error": str(exc), "upstream_status": exc.status_code}), 502


def arg_bool(value, default=False):
    if value is None:
        return default
    return str(value).lower() in ("1", "true", "yes", "on")


def arg_int(value, default, minimum=0):
    try:
        return max(minimum, int(value))
    except (TypeError, ValueError):
        return default
