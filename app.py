#!/usr/bin/env python3
import os
import threading
import logging
from castdeck.config import (
    LOG_DIR,
    CONFIG_PATH,
    ensure_dirs,
    loadConfig,
    getSettings,
    get_epg_refresh_interval,
    get_channel_refresh_interval,
)
from castdeck.errors import TransportError
from castdeck.runtime_state import RuntimeState, SchedulerState
from castdeck.services.engine import SyncEngine
from castdeck.services.jobs import JobManager
from castdeck.services.scheduler import (
    start_channel_scheduler,
    start_display_refresh_timer,
    start_epg_scheduler,
)
from castdeck.services.transport import UpstreamClient
from castdeck.blueprints.catalog import create_catalog_blueprint
from castdeck.blueprints.epg import create_epg_blueprint
from castdeck.blueprints.favorites import create_favorites_blueprint
from castdeck.blueprints.misc import create_misc_blueprint
from castdeck.blueprints.selection import create_selection_blueprint
from castdeck.blueprints.settings import create_settings_blueprint

from flask import Flask
import secrets
import waitress

logger = logging.getLogger("CastDeck")
logger.setLevel(logging.INFO)
logFormat = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")

ensure_dirs()
log_file_path = os.path.join(LOG_DIR, "CastDeck.log")

# File logging
fileHandler = logging.FileHandler(log_file_path)
fileHandler.setFormatter(logFormat)
logger.addHandler(fileHandler)

# Console logging (docker logs)
consoleFormat = logging.Formatter("[%(levelname)s] %(message)s")
consoleHandler = logging.StreamHandler()
consoleHandler.setFormatter(consoleFormat)
logger.addHandler(consoleHandler)

# Bind settings (container internal)
BIND_HOST = os.getenv("BIND_HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8001"))

loadConfig()
settings = getSettings()
logger.info(f"Using config file: {CONFIG_PATH}")
logger.info(f"Upstream API: {settings['upstream url']}")

app = Flask(__name__)
app.secret_key = secrets.token_urlsafe(32)

transport = UpstreamClient(
    settings["upstream url"],
    token=settings["upstream token"],
    timeout=settings["request timeout"],
)
engine = SyncEngine(
    transport,
    display_batch_size=settings["display batch size"],
    epg_max_age_hours=settings["epg max age hours"],
    arrow_keys_change_channel=settings["arrow keys change channel"],
)


def apply_settings(new_settings):
    transport.base_url = new_settings["upstream url"].rstrip("/")
    transport.timeout = new_settings["request timeout"]
    token = new_settings["upstream token"]
    if token:
        transport.session.headers["Authorization"] = f"Bearer {token}"
    else:
        transport.session.headers.pop("Authorization", None)
    engine.display_batch_size = max(1, new_settings["display batch size"])
    engine.epg_max_age_hours = new_settings["epg max age hours"]
    engine.selection.arrow_keys_change_channel = new_settings["arrow keys change channel"]


job_manager = JobManager(
    logger=logger,
    refresh_catalog=engine.refresh_catalog,
    refresh_epg=engine.refresh_epg,
    refresh_display_index=engine.refresh_display_index,
)

state = RuntimeState(
    logger=logger,
    engine=engine,
    job_manager=job_manager,
    scheduler=SchedulerState(
        logger=logger,
        job_manager=job_manager,
        get_epg_refresh_interval=lambda: get_epg_refresh_interval(logger),
        get_channel_refresh_interval=lambda: get_channel_refresh_interval(logger),
    ),
)

app.register_blueprint(
    create_catalog_blueprint(
        engine=engine,
        enqueue_refresh_catalog=job_manager.enqueue_refresh_catalog,
        logger=logger,
    )
)
app.register_blueprint(
    create_epg_blueprint(
        engine=engine,
        enqueue_epg_refresh=job_manager.enqueue_epg_refresh,
        get_epg_refresh_interval=state.scheduler.get_epg_refresh_interval,
        logger=logger,
    )
)
app.register_blueprint(create_selection_blueprint(engine=engine, logger=logger))
app.register_blueprint(create_favorites_blueprint(engine=engine, logger=logger))
app.register_blueprint(
    create_misc_blueprint(engine=engine, job_manager=job_manager, LOG_DIR=LOG_DIR)
)
app.register_blueprint(
    create_settings_blueprint(
        apply_settings=apply_settings,
        enqueue_epg_refresh=job_manager.enqueue_epg_refresh,
    )
)


def on_selection_changed(channel):
    if channel is not None:
        logger.info(f"Selected channel: {channel.name} ({channel.source_id}/{channel.id})")


engine.selection_changed.connect(on_selection_changed)


def start_refresh():
    # Sources first, then channels, then EPG; the catalog job chains the EPG job.
    def refresh_all():
        try:
            engine.registry.load_sources()
        except TransportError as e:
            logger.error(f"Could not load sources from upstream: {e}")
        job_manager.enqueue_refresh_catalog(reason="startup")

    threading.Thread(target=refresh_all, daemon=True).start()

    start_epg_scheduler(state)
    start_channel_scheduler(state)
    start_display_refresh_timer(state)


if __name__ == "__main__":
    start_refresh()

    if "TERM_PROGRAM" in os.environ.keys() and os.environ["TERM_PROGRAM"] == "vscode":
        app.run(host=BIND_HOST, port=PORT, debug=True)
    else:
        waitress.serve(app, host=BIND_HOST, port=PORT, _quiet=True, threads=24)
