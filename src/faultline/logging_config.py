"""Process-wide logging setup, done in two phases around the litellm import.

Phase 1, ``setup_logging()``: runs before anything imports litellm.
  Pins LITELLM_LOG, configures the root logger on stderr and quiets
  chatty HTTP client loggers.

Phase 2, ``cleanup_third_party_handlers()``: runs after all imports.
  Drops the StreamHandlers litellm attaches at import time so advisor
  messages are not printed twice.

Both phases run at most once per process.
"""

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"

PACKAGE_LOGGER = "faultline"

# Kept at WARNING whatever the package level is
_SUPPRESSED_LOGGERS = (
    "LiteLLM",
    "LiteLLM Router",
    "LiteLLM Proxy",
    "httpx",
    "httpcore",
)

# Loggers that litellm gives their own handlers
_LITELLM_LOGGERS = ("LiteLLM", "LiteLLM Router", "LiteLLM Proxy")

_phase1_done = False
_phase2_done = False


def setup_logging(level: str = "INFO") -> None:
    """Phase 1: configure the root logger and litellm's env knob.

    Later calls are no-ops; use ``set_package_level`` to change the
    faultline level once settings are loaded.
    """
    global _phase1_done  # noqa: PLW0603
    if _phase1_done:
        return
    _phase1_done = True

    # Read by litellm._logging at import time.
    os.environ.setdefault("LITELLM_LOG", "WARNING")

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )

    for name in _SUPPRESSED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def cleanup_third_party_handlers() -> None:
    """Phase 2: strip litellm's own handlers and let records propagate."""
    global _phase2_done  # noqa: PLW0603
    if _phase2_done:
        return
    _phase2_done = True

    for name in _LITELLM_LOGGERS:
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.propagate = True


def set_package_level(level: str) -> None:
    """Apply ``Settings.log_level`` to every ``faultline.*`` logger."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(getattr(logging, level.upper()))
