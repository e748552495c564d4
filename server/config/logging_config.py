"""Logging configuration"""
import logging
import sys


def setup_logging(log_level: str = "INFO"):
    """Configure application logging"""

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    # setup_logging can run more than once (tests build several apps)
    if not root_logger.handlers:
        root_logger.addHandler(console_handler)

    # Quiet noisy libraries
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("realtime").setLevel(logging.WARNING)

    logging.info(f"Logging configured with level: {log_level}")
