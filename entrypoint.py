import uvicorn

from constants import HOST, LOG_FILE, LOG_LEVEL, PORT, RELOAD
from logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def main():
    setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
    logger.info(f"Starting EphemeralChat server on {HOST}:{PORT} (reload={RELOAD})")
    # log_config=None keeps uvicorn from replacing our handlers
    uvicorn.run("app:app", host=HOST, port=PORT, reload=RELOAD, log_config=None)


if __name__ == "__main__":
    main()
