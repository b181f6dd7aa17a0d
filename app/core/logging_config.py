import logging
import sys

def setup_logging():
    """
    Configure structured logging for the back office.

    Logs go to stdout with timestamps, levels, and module names so the
    container runtime can collect them.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # Reduce SQLAlchemy noise in logs
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return logging.getLogger("backoffice")


# Create global logger instance
logger = setup_logging()
