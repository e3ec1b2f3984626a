import json
import os

from loguru import logger

from selection_state import SELECTION_MODES

HOME = os.path.expanduser("~")
XDG_CONFIG_HOME = os.environ.get("XDG_CONFIG_HOME")
CONFIG_HOME = XDG_CONFIG_HOME if XDG_CONFIG_HOME else os.path.join(HOME, ".config")
CONFIG_DIR = os.path.join(CONFIG_HOME, "gridstate")
CONFIG_JSON = os.path.join(CONFIG_DIR, "config.json")
LOG_PATH = os.path.join(CONFIG_DIR, "gridstate.log")

# default settings
OVERSCAN_DEFAULT = 2
AUTO_ENABLE_THRESHOLD_DEFAULT = 50
SELECTION_MODE_DEFAULT = "range"
MULTI_SELECT_DEFAULT = True
ROW_HEIGHT_DEFAULT = 1
HEADER_ROW_HEIGHT_DEFAULT = 1
SHOW_GRAND_TOTAL_DEFAULT = False
SHOW_GROUP_FOOTERS_DEFAULT = False


def ensure_config_dirs():
    os.makedirs(CONFIG_DIR, exist_ok=True)


def _non_negative_int(value):
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value >= 0 else None


def _positive_int(value):
    value = _non_negative_int(value)
    return value if value else None


def _bool(value):
    return value if isinstance(value, bool) else None


def _mode(value):
    return value if value in SELECTION_MODES else None


# json key -> (config key, validator)
_SCHEMA = {
    "overscan": ("OVERSCAN", _non_negative_int),
    "auto_enable_threshold": ("AUTO_ENABLE_THRESHOLD", _non_negative_int),
    "selection_mode": ("SELECTION_MODE", _mode),
    "multi_select": ("MULTI_SELECT", _bool),
    "row_height": ("ROW_HEIGHT", _positive_int),
    "header_row_height": ("HEADER_ROW_HEIGHT", _positive_int),
    "show_grand_total": ("SHOW_GRAND_TOTAL", _bool),
    "show_group_footers": ("SHOW_GROUP_FOOTERS", _bool),
}


def default_config():
    return {
        "OVERSCAN": OVERSCAN_DEFAULT,
        "AUTO_ENABLE_THRESHOLD": AUTO_ENABLE_THRESHOLD_DEFAULT,
        "SELECTION_MODE": SELECTION_MODE_DEFAULT,
        "MULTI_SELECT": MULTI_SELECT_DEFAULT,
        "ROW_HEIGHT": ROW_HEIGHT_DEFAULT,
        "HEADER_ROW_HEIGHT": HEADER_ROW_HEIGHT_DEFAULT,
        "SHOW_GRAND_TOTAL": SHOW_GRAND_TOTAL_DEFAULT,
        "SHOW_GROUP_FOOTERS": SHOW_GROUP_FOOTERS_DEFAULT,
    }


def load_config():
    cfg = default_config()

    if not os.path.exists(CONFIG_JSON):
        return cfg

    try:
        with open(CONFIG_JSON, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        logger.warning("ignoring unreadable config {}: {}", CONFIG_JSON, exc)
        return cfg

    if not isinstance(data, dict):
        logger.warning("ignoring config {}: top level is not an object", CONFIG_JSON)
        return cfg

    grid = data.get("grid") if isinstance(data.get("grid"), dict) else data
    for json_key, (cfg_key, validate) in _SCHEMA.items():
        if json_key not in grid:
            continue
        value = validate(grid[json_key])
        if value is None:
            logger.warning("ignoring invalid {}={!r}", json_key, grid[json_key])
            continue
        cfg[cfg_key] = value

    return cfg
