from flask import Blueprint, jsonify, request

from ..security import authorise
from .common import arg_bool, arg_int, register_error_handlers


def create_epg_blueprint(*, engine, enqueue_epg_refresh, get_epg_refresh_interval, logger):
    bp = Blueprint("epg", __name__)
    register_error_handlers(bp, logger)

    programs = engine.programs

    @bp.route("/api/epg/now/<source_id>/<item_id>", methods=["GET"])
    @authorise
    def now(source_id, item_id):
        channel = engine.catalog.get_channel(source_id, item_id)
        if programs.is_stale(get_epg_refresh_interval() * 3600):
            logger.info("EPG cache is stale, triggering background refresh...")
            enqueue_epg_refresh(reason="cache_stale")
        current = programs.now_playing(channel)
        limit = arg_int(request.args.get("limit"), 5, minimum=1)
        return jsonify(
            {
                "channel": channel.to_dict(),
                "current": current.to_dict() if current else None,
                "upcoming": [p.to_dict() for p in programs.upcoming(channel, limit=limit)],
            }
        )

    @bp.route("/api/epg/refresh", methods=["POST"])
    @authorise
    def refresh():
        force = arg_bool(request.args.get("force"))
        status = enqueue_epg_refresh(reason="manual", force=force)
        return jsonify({"status": status}), 202

    @bp.route("/api/epg/display-index", methods=["POST"])
    @authorise
    def display_index():
        payload = request.get_json(silent=True) or {}
        items = payload.get("channels")
        identities = None
        if items is not None:
            identities = [
                (str(i.get("sourceId")), str(i.get("id")))
                for i in items
                if isinstance(i, dict) and i.get("sourceId") is not None and i.get("id") is not None
            ]
        task = engine.refresh_display_index(identities)
        return jsonify({"queued": len(task.identities), "batch_size": task.batch_size}), 202

    @bp.route("/api/epg/display-index", methods=["GET"])
    @authorise
    def display_index_values():
        index = programs.display_index()
        return jsonify(
            [
                {"sourceId": source_id, "id": channel_id, "nowPlaying": title}
                for (source_id, channel_id), title in index.items()
            ]
        )

    return bp
