"""Colored, filtered console logging for batching scripts."""
import logging
import logging.handlers
from pathlib import Path
from typing import Optional


class Colors:
    """ANSI color codes."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"


class ColoredFormatter(logging.Formatter):
    """A logging formatter that adds colors to the output."""

    LOG_LEVEL_COLORS = {
        logging.DEBUG: Colors.CYAN,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record):
        color = self.LOG_LEVEL_COLORS.get(record.levelno)
        message = super().format(record)
        if color:
            return color + message + Colors.RESET
        return message


class ConsoleFilter(logging.Filter):
    """Keeps the console to run summaries; per-merge chatter goes to the log file only."""

    SUMMARY_LOGGERS = ("pcr_batching.batcher", "pcr_batching.reporting")

    def __init__(self, show_stage_details: bool = False):
        super().__init__()
        self.show_stage_details = show_stage_details

    def filter(self, record):
        # Always allow warnings and above
        if record.levelno >= logging.WARNING:
            return True

        if record.levelno == logging.INFO:
            if record.name in self.SUMMARY_LOGGERS:
                return True
            # Messages from the command-line runner
            if "batch_pcr" in record.name:
                return True
            if self.show_stage_details and record.name.startswith("pcr_batching.clustering"):
                return True

        return False


def setup_batching_logging(
    console_level=logging.INFO,
    file_level=logging.DEBUG,
    quiet=False,
    verbose=False,
    log_dir: Optional[Path] = None,
):
    """
    Set up logging for batching runs with a colored, filtered console
    handler and a verbose rotating file handler.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if not quiet:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(console_level)
        console_handler.setFormatter(
            ColoredFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S")
        )
        console_handler.addFilter(ConsoleFilter(show_stage_details=verbose))
        root_logger.addHandler(console_handler)

    log_dir = Path(log_dir) if log_dir is not None else Path("logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        log_dir / "batching.log", maxBytes=5 * 1024 * 1024, backupCount=5
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s")
    )
    root_logger.addHandler(file_handler)

    logging.getLogger(__name__).info("Colored and filtered logging initialized.")
