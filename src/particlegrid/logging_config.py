"""
Logging Configuration
Sets up the 'particlegrid' loggers for a host application.

The engine logs at two granularities:
    INFO  - grid rebuilds and drains (rare, one line per event)
    DEBUG - every tick, mutation, stall and mask reset (up to 10 lines/s)

``trace_ticks`` enables the DEBUG stream for the tick-level modules only, so a
host can follow convergence without raising the level of the whole package.
"""
import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "particlegrid"
# Modules whose DEBUG output traces individual ticks and mutations
TICK_LOGGERS = (
    "particlegrid.model.reconciler",
    "particlegrid.controller.particle_system",
)
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None, trace_ticks: bool = False) -> None:
    """
    Configures the package logger and, optionally, tick tracing.

    Args:
        level: Logging level for the package (e.g. logging.INFO)
        log_file: Optional path to also save logs to a file.
        trace_ticks: Emit DEBUG records from the reconciler and scheduler
            regardless of ``level``.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    # Avoid duplicate lines when a host reconfigures
    if logger.hasHandlers():
        logger.handlers.clear()

    # Handlers must pass DEBUG through when tracing; the loggers do the filtering
    handler_level = logging.DEBUG if trace_ticks else level
    formatter = logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S')

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w', encoding='utf-8'))
    for handler in handlers:
        handler.setLevel(handler_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    for name in TICK_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if trace_ticks else logging.NOTSET)

    logger.info(f"Logging initialized (tick tracing {'on' if trace_ticks else 'off'}).")
