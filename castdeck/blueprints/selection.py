from flask import Blueprint, jsonify, request

from ..security import authorise
from .common import arg_bool, register_error_handlers


def create_selection_blueprint(*, engine, logger):
    bp = Blueprint("selection", __name__)
    register_error_handlers(bp, logger)

    selection = engine.selection

    def payload(channel):
        return jsonify({"selection": channel.to_dict() if channel else None})

    @bp.route("/api/selection", methods=["GET"])
    @authorise
    def current():
        return payload(selection.current)

    @bp.route("/api/selection", methods=["POST"])
    @authorise
    def select():
        data = request.get_json(silent=True) or {}
        source_id = data.get("sourceId")
        item_id = data.get("id") or data.get("streamId")
        if source_id is None or item_id is None:
            return jsonify({"error": "sourceId and id are required"}), 400
        return payload(selection.select(source_id, item_id))

    @bp.route("/api/selection/view", methods=["POST"])
    @authorise
    def view():
        data = request.get_json(silent=True) or {}
        selection.set_view_filter(
            search=data.get("search"),
            show_hidden=arg_bool(data.get("showHidden")),
            source_id=data.get("sourceId"),
        )
        return jsonify({"ok": True})

    @bp.route("/api/selection/next", methods=["POST"])
    @authorise
    def select_next():
        selection.select_next()
        return payload(selection.current)

    @bp.route("/api/selection/prev", methods=["POST"])
    @authorise
    def select_prev():
        selection.select_prev()
        return payload(selection.current)

    @bp.route("/api/selection/key", methods=["POST"])
    @authorise
    def key():
        data = request.get_json(silent=True) or {}
        selection.handle_key(data.get("key", ""))
        return payload(selection.current)

    return bp
