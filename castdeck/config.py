import json
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime
try:
    import fcntl  # Unix-only file locking
except Exception:  # pragma: no cover - non-Unix platforms
    fcntl = None

# ----------------------------
# Docker / Volume friendly paths
# ----------------------------
DATA_DIR = os.getenv("DATA_DIR", "/app/data")
LOG_DIR = os.getenv("LOG_DIR", "/app/logs")

# CONFIG: allow absolute config file path from env
CONFIG_PATH = os.getenv("CONFIG", os.path.join(DATA_DIR, "CastDeck.json"))

# Interval overrides (hours); take precedence over settings when set
EPG_REFRESH_INTERVAL_ENV = os.getenv("EPG_REFRESH_INTERVAL", None)
CHANNEL_REFRESH_INTERVAL_ENV = os.getenv("CHANNEL_REFRESH_INTERVAL", None)

config = {"settings": {}}
_config_lock = threading.Lock()


def ensure_dirs():
    os.makedirs(os.path.dirname(CONFIG_PATH) or ".", exist_ok=True)
    os.makedirs(DATA_DIR, exist_ok=True)
    os.makedirs(LOG_DIR, exist_ok=True)


def is_true(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).lower() == "true"


def _coerce_value(default, value):
    if value is None:
        return default
    if isinstance(default, bool):
        return is_true(value)
    if isinstance(default, int) and not isinstance(default, bool):
        try:
            return int(value)
        except (TypeError, ValueError):
            return default
    if isinstance(default, float):
        try:
            return float(value)
        except (TypeError, ValueError):
            return default
    if isinstance(default, str):
        return str(value)
    return value


def _coerce_settings(settings):
    settings_out = {}
    for setting, default in defaultSettings.items():
        settings_out[setting] = _coerce_value(default, settings.get(setting))
    return settings_out


@contextmanager
def _file_lock():
    """Best-effort cross-process lock using fcntl on Unix."""
    if fcntl is None:
        yield
        return
    lock_path = CONFIG_PATH + ".lock"
    os.makedirs(os.path.dirname(lock_path) or ".", exist_ok=True)
    with open(lock_path, "w", encoding="utf-8") as lock_file:
        fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)


defaultSettings = {
    "upstream url": "http://localhost:3000",
    "upstream token": "",
    "request timeout": 30,
    "epg refresh interval": 0.5,
    "channel refresh interval": 24.0,
    "epg max age hours": 24,
    "display batch size": 50,
    "arrow keys change channel": True,
    "enable security": False,
    "username": "admin",
    "password": "12345",
}


def _write_config(data):
    config_dir = os.path.dirname(CONFIG_PATH) or "."
    os.makedirs(config_dir, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", delete=False, dir=config_dir, encoding="utf-8"
    ) as tmp:
        json.dump(data, tmp, indent=4)
        tmp_path = tmp.name
    os.replace(tmp_path, CONFIG_PATH)


def loadConfig():
    global config
    with _config_lock, _file_lock():
        try:
            with open(CONFIG_PATH, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            data = {}
        except ValueError:
            # Back up corrupt config for inspection
            ts = datetime.utcnow().strftime("%Y%m%d%H%M%S")
            backup_path = f"{CONFIG_PATH}.corrupt.{ts}"
            try:
                os.replace(CONFIG_PATH, backup_path)
            except OSError:
                pass
            data = {}

    if not isinstance(data, dict):
        data = {}
    data.setdefault("settings", {})
    data["settings"] = _coerce_settings(data["settings"])

    with _file_lock():
        _write_config(data)

    config = data
    return data


def getSettings():
    if not config.get("settings"):
        config["settings"] = _coerce_settings({})
    return config["settings"]


def saveSettings(settings):
    config["settings"] = _coerce_settings(settings)
    with _config_lock, _file_lock():
        _write_config(config)


def _interval_hours(env_value, setting, logger=None):
    if env_value is not None:
        try:
            return float(env_value)
        except ValueError:
            if logger:
                logger.warning(f"Invalid interval env value: {env_value}, using settings")
    return float(getSettings().get(setting, defaultSettings[setting]))


def get_epg_refresh_interval(logger=None):
    """EPG refresh interval in hours. ENV variable takes precedence over settings."""
    return _interval_hours(EPG_REFRESH_INTERVAL_ENV, "epg refresh interval", logger)


def get_channel_refresh_interval(logger=None):
    """Channel refresh interval in hours; 0 disables automatic refresh."""
    return _interval_hours(CHANNEL_REFRESH_INTERVAL_ENV, "channel refresh interval", logger)
