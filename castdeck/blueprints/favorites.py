from flask import Blueprint, jsonify, request

from ..security import authorise
from .common import register_error_handlers


def create_favorites_blueprint(*, engine, logger):
    bp = Blueprint("favorites", __name__)
    register_error_handlers(bp, logger)

    @bp.route("/api/favorites/resolved", methods=["GET"])
    @authorise
    def resolved():
        return jsonify([fav.to_dict() for fav in engine.favorites.resolved()])

    @bp.route("/api/favorites/toggle", methods=["POST"])
    @authorise
    def toggle():
        data = request.get_json(silent=True) or {}
        source_id = data.get("sourceId")
        channel_id = data.get("channelId")
        if source_id is None or channel_id is None:
            return jsonify({"error": "sourceId and channelId are required"}), 400
        is_favorite = engine.favorites.toggle_favorite(source_id, channel_id)
        logger.info(
            f"Favorite {'added' if is_favorite else 'removed'}: {source_id}/{channel_id}"
        )
        return jsonify({"isFavorite": is_favorite})

    return bp
