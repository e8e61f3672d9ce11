import sys
import logging

from factorio_supervisor.config import effective_settings as config
from factorio_supervisor.log.handler import LokiHandler

SUPERVISOR_FORMAT = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'


class MainFormatter(logging.Formatter):
    """
    Prints server output raw and formats the supervisor's own records.

    Output of the supervised server is logged on 'proc.<name>' loggers and
    already carries Factorio's own timestamps.
    """

    def __init__(self) -> None:
        super().__init__(SUPERVISOR_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        if record.name.startswith('proc.'):
            return record.getMessage()
        return super().format(record)


def setup_logging(console_level: int = logging.INFO) -> None:
    """
    Configures the root logger for the supervisor.
    This sets up handlers for the console and optionally Loki,
    clearing any previously configured handlers to prevent duplication.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    """
    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    # --- Loki Handler (conditional) ---
    if config.LOKI_ENABLED:
        try:
            loki_handler = LokiHandler(
                url=config.LOKI_URL,
                org_id=config.LOKI_ORG_ID,
                flush_interval=config.LOG_BUFFER_FLUSH_INTERVAL,
                batch_size=config.LOG_BUFFER_SIZE,
            )
            loki_handler.setLevel(logging.INFO) # Avoid spamming Loki with DEBUG logs
            loki_handler.setFormatter(logging.Formatter(SUPERVISOR_FORMAT))
            root_logger.addHandler(loki_handler)
            root_logger.info(f"Grafana Loki logging handler initialized for {config.LOKI_URL}.")
        except Exception as e:
            root_logger.error(f"Failed to initialize Grafana Loki logging handler: {e}")
