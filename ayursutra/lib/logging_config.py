import logging
import sys

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "ayursutra-realtime"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
        if not log_record.get('timestamp'):
            log_record['timestamp'] = record.created
        if log_record.get('level'):
            log_record['severity'] = log_record['level'].upper()
        else:
            log_record['severity'] = record.levelname
        log_record.setdefault('service', SERVICE_NAME)


def setup_logging(level: str = "INFO"):
    """
    Set up logging to output structured JSON to stdout.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    # Get the root logger
    root_logger = logging.getLogger()

    # Clear any existing handlers
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    root_logger.setLevel(log_level)

    # Use stdout for the log handler
    log_handler = logging.StreamHandler(sys.stdout)

    # Use our custom JSON formatter
    formatter = CustomJsonFormatter(
        '%(timestamp)s %(severity)s %(name)s %(message)s'
    )

    log_handler.setFormatter(formatter)
    root_logger.addHandler(log_handler)

    # Socket.IO and Engine.IO log through the same handler, but only warnings
    for name in ("socketio", "engineio", "aiohttp"):
        library_logger = logging.getLogger(name)
        library_logger.handlers = [log_handler]
        library_logger.propagate = False
        library_logger.setLevel(max(log_level, logging.WARNING))

    logging.info("Logging configured to output structured JSON to stdout.")
