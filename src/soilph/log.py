"""
Logging configuration for SoilPH.

All modules log under the `soilph` namespace. Every line carries the scenario
(profile dataset) it belongs to, so progress lines from subsoil and topsoil
runs can be told apart in a shared terminal or log file.
"""

from __future__ import annotations

import logging
from pathlib import Path

LOGGER_NAME = "soilph"
LOG_FILENAME = "soilph.log"
LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(scenario)s] %(name)s: %(message)s"


class ScenarioFilter(logging.Filter):
    """Stamps `record.scenario` so the formatter can print it."""

    def __init__(self, scenario: str) -> None:
        super().__init__()
        self.scenario = scenario

    def filter(self, record: logging.LogRecord) -> bool:
        record.scenario = self.scenario
        return True


def _drop_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, "_soilph", False):
            logger.removeHandler(handler)
            handler.close()


def configure_logging(log_dir: Path, level: str = "INFO", *, scenario: str = "-") -> logging.Logger:
    """
    Point the `soilph` logger at `log_dir/soilph.log` and the terminal.

    Calling it again (a second scenario, another project root in tests) replaces
    the handlers installed by the previous call instead of stacking them.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())
    logger.propagate = False
    _drop_handlers(logger)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    # Handler-level filter: logger filters do not see records from child loggers.
    stamp = ScenarioFilter(scenario)
    for handler in (logging.StreamHandler(), logging.FileHandler(log_dir / LOG_FILENAME, encoding="utf-8")):
        handler.setFormatter(fmt)
        handler.setLevel(level.upper())
        handler.addFilter(stamp)
        handler._soilph = True
        logger.addHandler(handler)

    return logger
