"""
Runtime settings.

Values come from environment variables (optionally loaded from a .env file in
the working directory). Nothing here touches the network.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


# ---------------------------------------------------------------------------
# URLs & constants
# ---------------------------------------------------------------------------

ACORN_URL = "https://acorn.utoronto.ca/sws/#/"
COURSES_URL = "https://acorn.utoronto.ca/sws/#/courses/{index}"
COURSE_VIEW_URL = "https://acorn.utoronto.ca/sws/rest/enrolment/course/view"
REFERER = "https://acorn.utoronto.ca/sws/"

POST_CODE = "ASCRSHBSC"

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Per-operation timeouts (seconds)
VERIFY_TIMEOUT = 5.0
NAVIGATION_TIMEOUT = 30.0
REQUEST_TIMEOUT = 30.0
ELEMENT_TIMEOUT = 10.0
MFA_TIMEOUT = 10.0
LOGIN_TIMEOUT = 60.0
CONFIRM_TIMEOUT = 5.0


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def default_config_path() -> Path:
    """
    Return the default location of config.json.

    Windows keeps per-user data under %APPDATA%, everything else under $HOME.
    """
    base = os.environ.get("APPDATA") or os.environ.get("HOME") or str(Path.home())
    return Path(base) / ".squirrel" / "config.json"


@dataclass(frozen=True)
class Settings:
    config_path: Path
    debug: bool = False
    headless: bool = False
    browser_channel: str | None = "chrome"
    log_file: str = "squirrel.log"
    utorid: str = ""
    password: str = ""


def load_settings(dotenv: bool = True) -> Settings:
    """
    Build Settings from the environment.

    SQUIRREL_CONFIG overrides the config file location (mainly for tests).
    """
    if dotenv:
        load_dotenv()

    override = os.environ.get("SQUIRREL_CONFIG", "").strip()
    config_path = Path(override).expanduser() if override else default_config_path()

    channel = os.environ.get("SQUIRREL_BROWSER_CHANNEL", "chrome").strip()

    return Settings(
        config_path=config_path,
        debug=_env_flag("DEBUG"),
        headless=_env_flag("SQUIRREL_HEADLESS"),
        browser_channel=channel or None,
        log_file=os.environ.get("SQUIRREL_LOG_FILE", "squirrel.log").strip() or "squirrel.log",
        utorid=os.environ.get("UTORID", "").strip(),
        password=os.environ.get("PASSWORD", ""),
    )
