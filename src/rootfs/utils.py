import logging


# --- Logging Setup Utility ---
def init_logging(level: int = logging.INFO, clear_existing_handlers: bool = True) -> None:
    """
    Sets up a console logging configuration for rootfs.

    Args:
        level: The desired logging level for the root logger (e.g., logging.INFO, logging.DEBUG).
        clear_existing_handlers: If True, removes any handlers already attached to the
                                 root logger so re-running setup code doesn't duplicate output.
    """
    root_logger = logging.getLogger()

    if clear_existing_handlers:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - [%(name)s] %(message)s")
    )
    root_logger.addHandler(stream_handler)
    root_logger.setLevel(level)

    logging.getLogger(__name__).debug(
        f"Logging setup complete. Root logger level set to {logging.getLevelName(level)}."
    )
