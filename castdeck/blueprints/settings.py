import logging
from flask import Blueprint, jsonify, request

from ..config import defaultSettings, getSettings, saveSettings
from ..security import authorise

logger = logging.getLogger("CastDeck")


def create_settings_blueprint(*, apply_settings=None, enqueue_epg_refresh=None):
    bp = Blueprint("settings", __name__)

    @bp.route("/api/settings/data", methods=["GET"])
    @authorise
    def settings_data():
        settings = dict(getSettings())
        if settings.get("upstream token"):
            settings["upstream token"] = "********"
        return jsonify(settings)

    @bp.route("/api/settings/defaults", methods=["GET"])
    @authorise
    def settings_defaults():
        return jsonify(defaultSettings)

    @bp.route("/api/settings/save", methods=["POST"])
    @authorise
    def save():
        payload = request.get_json(silent=True)
        if payload is None:
            payload = request.form.to_dict()
        settings = dict(getSettings())

        changed = []
        for setting in defaultSettings:
            if setting not in payload:
                continue
            if setting == "upstream token" and payload[setting] == "********":
                continue
            settings[setting] = payload[setting]
            changed.append(setting)

        saveSettings(settings)
        logger.info(f"Settings saved! ({', '.join(changed) or 'no changes'})")

        if apply_settings:
            apply_settings(getSettings())
        if enqueue_epg_refresh and "epg max age hours" in changed:
            enqueue_epg_refresh(reason="settings_changed")
        return jsonify({"ok": True, "changed": changed})

    return bp
