from flask import Blueprint, jsonify, request

from ..security import authorise
from .common import arg_bool, arg_int, register_error_handlers


def create_catalog_blueprint(*, engine, enqueue_refresh_catalog, logger):
    bp = Blueprint("catalog", __name__)
    register_error_handlers(bp, logger)

    catalog = engine.catalog

    def channel_payload(channel):
        data = channel.to_dict()
        title = engine.programs.display_title(channel.identity)
        if title is None:
            program = engine.programs.now_playing(channel)
            title = program.title if program else None
        data["nowPlaying"] = title
        data["isFavorite"] = engine.favorites.is_favorite(channel.source_id, channel.id)
        data["hidden"] = catalog.is_hidden(channel)
        return data

    @bp.route("/api/catalog/channels", methods=["GET"])
    @authorise
    def channels():
        view = catalog.ordered_view(
            search=request.args.get("search"),
            show_hidden=arg_bool(request.args.get("show_hidden")),
            source_id=request.args.get("source") or None,
        )
        offset = arg_int(request.args.get("offset"), 0)
        limit = arg_int(request.args.get("limit"), 0)
        page = view[offset:offset + limit] if limit else view[offset:]
        return jsonify(
            {
                "total": len(view),
                "offset": offset,
                "version": catalog.version,
                "channels": [channel_payload(c) for c in page],
            }
        )

    @bp.route("/api/catalog/channels/<source_id>/<item_id>", methods=["GET"])
    @authorise
    def channel(source_id, item_id):
        return jsonify(channel_payload(catalog.get_channel(source_id, item_id)))

    @bp.route("/api/catalog/reload", methods=["POST"])
    @authorise
    def reload():
        status = enqueue_refresh_catalog(reason="manual")
        logger.info(f"Catalog reload requested: {status}")
        return jsonify({"status": status}), 202

    @bp.route("/api/catalog/groups", methods=["GET"])
    @authorise
    def groups():
        return jsonify(catalog.groups(show_hidden=arg_bool(request.args.get("show_hidden"))))

    @bp.route("/api/catalog/groups/toggle", methods=["POST"])
    @authorise
    def toggle_group():
        payload = request.get_json(silent=True) or {}
        group = payload.get("group")
        if not group:
            return jsonify({"error": "group is required"}), 400
        collapsed = catalog.toggle_group_collapse(group)
        return jsonify({"group": group, "collapsed": collapsed})

    @bp.route("/api/catalog/groups/expand", methods=["POST"])
    @authorise
    def expand_all():
        catalog.expand_all()
        return jsonify({"ok": True})

    @bp.route("/api/catalog/groups/collapse", methods=["POST"])
    @authorise
    def collapse_all():
        catalog.collapse_all()
        return jsonify({"ok": True, "collapsed": sorted(catalog.collapsed_groups)})

    return bp
