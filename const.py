"""Constants for the airlock controller."""

import logging
import os

# Extra verbosity below DEBUG, used for per-tick messages
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LOG_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
}

# Config files
DEFAULT_CONFIG_FILE = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "default_config.json"
)
CONFIG_FILE = "/etc/airlock/config.json"
ENV_DEFAULT_CONFIG = "AIRLOCK_DEFAULT_CONFIG"
ENV_CONFIG = "AIRLOCK_CONFIG"

# Control loop
TICK_INTERVAL = 0.25  # 4 Hz

# Upper bound for configured durations [s]
MAX_DURATION = 24 * 60 * 60

# Panel colours
COLOR_WHITE = "white"
COLOR_BLACK = "black"
COLOR_GRAY = "gray"
COLOR_LIGHT_GRAY = "lightGray"
COLOR_RED = "red"
COLOR_GREEN = "green"
COLOR_YELLOW = "yellow"
COLOR_ORANGE = "orange"
COLOR_PINK = "pink"
COLOR_PURPLE = "purple"

# Lock level badge: level -> (background, foreground)
LOCK_LEVEL_COLORS = {
    1: (COLOR_YELLOW, COLOR_BLACK),
    2: (COLOR_ORANGE, COLOR_WHITE),
    3: (COLOR_RED, COLOR_WHITE),
    4: (COLOR_PINK, COLOR_BLACK),
    5: (COLOR_PURPLE, COLOR_WHITE),
}

# Dashboard
DEFAULT_WEB_HOST = "0.0.0.0"
DEFAULT_WEB_PORT = 8099
