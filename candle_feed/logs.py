"""
Colored console output shared by every candle_feed module.

One line per message, prefixed with a colored level tag. Timing
diagnostics are opt-in via verbose mode or CANDLE_FEED_DEBUG_TIMING.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Optional

import colorama
from colorama import Fore, Style

colorama.init(autoreset=True)

# ----------------------------------------------------------------------
# Level tags
# ----------------------------------------------------------------------
INFO = Fore.GREEN + "[INFO]" + Style.RESET_ALL
WARNING = Fore.YELLOW + "[WARNING]" + Style.RESET_ALL
ERROR = Fore.RED + "[ERROR]" + Style.RESET_ALL
SUCCESS = Fore.GREEN + "[SUCCESS]" + Style.RESET_ALL
UPDATE = Fore.MAGENTA + "[UPDATE]" + Style.RESET_ALL
TIMING = Fore.CYAN + "[TIMING]" + Style.RESET_ALL
LAG = Fore.RED + "[LAG]" + Style.RESET_ALL

COLOR_VAR = Fore.CYAN
COLOR_TYPE = Fore.YELLOW
COLOR_DESC = Fore.MAGENTA
COLOR_TIMESTAMPS = Fore.MAGENTA
COLOR_ROWS = Fore.RED

ENV_DEBUG_TIMING_KEY: str = "CANDLE_FEED_DEBUG_TIMING"

LABELS = {
    "INFO": INFO,
    "WARN": WARNING,
    "ERROR": ERROR,
    "SUCCESS": SUCCESS,
    "UPDATE": UPDATE,
    "TIMING": TIMING,
    "LAG": LAG,
}


def _label(level: str) -> str:
    return LABELS.get(level, INFO)


def log(level: str, message: str) -> None:
    print(f"{_label(level)} {message}", flush=True)


def log_info(message: str) -> None:
    log("INFO", message)


def log_warn(message: str) -> None:
    log("WARN", message)


def log_error(message: str) -> None:
    log("ERROR", message)


def log_success(message: str) -> None:
    log("SUCCESS", message)


def log_update(message: str) -> None:
    log("UPDATE", message)


def log_lag(message: str) -> None:
    log("LAG", message)


def log_timing(message: str) -> None:
    now_str = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
    log("TIMING", f"{now_str} {message}")


def c_var(x: object) -> str:
    return f"{COLOR_VAR}{x}{Style.RESET_ALL}"


def c_type(x: object) -> str:
    return f"{COLOR_TYPE}{x}{Style.RESET_ALL}"


def c_desc(x: object) -> str:
    return f"{COLOR_DESC}{x}{Style.RESET_ALL}"


def c_ts(x: object) -> str:
    return f"{COLOR_TIMESTAMPS}{x}{Style.RESET_ALL}"


def c_rows(x: object) -> str:
    return f"{COLOR_ROWS}{x}{Style.RESET_ALL}"


def truthy_env(val: Optional[str]) -> bool:
    if val is None:
        return False
    s = val.strip().lower()
    return s not in ("", "0", "false", "no", "off")


def debug_timing_enabled(verbose: bool = False) -> bool:
    return truthy_env(os.environ.get(ENV_DEBUG_TIMING_KEY)) or bool(verbose)
