"""Logging configuration for llamacode."""

import logging
from pathlib import Path


def setup_logging(log_file: str | Path, level: int = logging.DEBUG, interactive: bool = True) -> None:
    """Setup logging to file and, outside the interactive chat, to stderr."""

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handlers: list[logging.Handler] = [
        logging.FileHandler(log_path, mode="a", encoding="utf-8"),
    ]

    # A stream handler would interleave with the chat prompt
    if not interactive:
        stream = logging.StreamHandler()
        stream.setLevel(logging.WARNING)
        handlers.append(stream)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )

    # Suppress noisy third-party logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("markdown_it").setLevel(logging.WARNING)
    logging.getLogger("primp").setLevel(logging.WARNING)

    logging.getLogger("llamacode").setLevel(level)

    logging.info("=" * 60)
    logging.info(f"llamacode logging started. Writing to {log_path.absolute()}")
    logging.info("=" * 60)
