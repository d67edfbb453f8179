import logging
import sys
from pathlib import Path
from typing import Optional, Union

import structlog
from rich.console import Console
from rich.logging import RichHandler
from rich.style import Style
from rich.text import Text

# Azure SDK HTTP logging is extremely verbose below WARNING.
NOISY_LOGGERS = (
    "azure",
    "azure.core.pipeline.policies.http_logging_policy",
    "azure.identity",
    "msal",
    "urllib3",
)


LEVEL_STYLES = {
    "DEBUG": Style(color="white", dim=True),
    "INFO": Style(color="blue", bold=True),
    "WARNING": Style(color="yellow", bold=True),
    "ERROR": Style(color="red", bold=True),
    "CRITICAL": Style(color="red", bold=True, reverse=True),
}


class MigrationRichHandler(RichHandler):
    def get_level_text(self, record: logging.LogRecord) -> Text:
        """Override log level colors for better readability."""
        level_name = record.levelname
        style = LEVEL_STYLES.get(level_name, Style(color="cyan"))
        return Text(level_name.ljust(8), style=style)


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Path] = None,
    json_logs: bool = False,
) -> None:
    """
    Configure stdlib logging and structlog for the CLI.

    Console output goes through rich; an optional log file receives plain
    (or JSON, with json_logs) lines. structlog events render through the
    same stdlib handlers.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    console_handler = MigrationRichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=True,
        show_level=True,
        show_path=False,
    )
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

    noisy_level = level if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        processors += [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
