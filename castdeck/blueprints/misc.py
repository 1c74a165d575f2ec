import os

from flask import Blueprint, jsonify, request

from ..security import authorise


def create_misc_blueprint(*, engine, job_manager, LOG_DIR):
    bp = Blueprint("misc", __name__)

    @bp.route("/api/status")
    @authorise
    def status():
        data = engine.status()
        data["jobs"] = job_manager.get_status()
        return jsonify(data)

    @bp.route("/api/jobs")
    @authorise
    def jobs():
        return jsonify(job_manager.get_status())

    @bp.route("/log")
    @authorise
    def log():
        logFilePath = os.path.join(LOG_DIR, "CastDeck.log")
        lines_param = request.args.get("lines", "500")
        try:
            with open(logFilePath, "r", encoding="utf-8", errors="replace") as f:
                all_lines = [line.rstrip() for line in f if line.strip()]
        except FileNotFoundError:
            return "Log file not found"

        if lines_param != "all":
            try:
                all_lines = all_lines[-int(lines_param):]
            except ValueError:
                all_lines = all_lines[-500:]
        return "\n".join(all_lines)

    return bp
