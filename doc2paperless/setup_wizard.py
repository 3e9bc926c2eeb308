# setup_wizard.py
# Interactive creation of the doc2paperless INI file.
import logging
import os
import sys
from pathlib import Path
from typing import Dict

import questionary

from .config import (
    DEFAULT_RETRY_DELAY,
    DEFAULT_STABILITY_CHECK_COUNT,
    DEFAULT_STABILITY_CHECK_INTERVAL,
    parse_duration,
    resolve_ini_path,
    save_config_to_ini,
)

logger = logging.getLogger(__name__)


def _validate_url(text: str):
    if text.startswith(("http://", "https://")):
        return True
    return "Enter a URL starting with http:// or https:// (e.g., http://paperless:8000)."


def _validate_duration(text: str):
    try:
        parse_duration(text)
    except ValueError:
        return "Enter a duration such as 2s, 500ms or 1m."
    return True


def _validate_count(text: str):
    return (text.isdigit() and int(text) > 0) or "Must be a positive integer."


def _ask(question):
    answer = question.ask()
    if answer is None:  # User cancelled (e.g., Ctrl+C)
        raise EOFError("User cancelled input.")
    return answer.strip() if isinstance(answer, str) else answer


def get_values_interactively() -> Dict[str, str]:
    """Prompts for every setting and returns INI key -> value."""
    values = {}
    values["paperless_base_url"] = _ask(questionary.text(
        "Paperless base URL?", validate=_validate_url
    ))
    values["paperless_auth_token"] = _ask(questionary.password(
        "Paperless API token?",
        validate=lambda text: True if text.strip() else "Token cannot be empty.",
    ))

    consume_folder = _ask(questionary.path(
        "Consume folder to watch?",
        only_directories=True,
        validate=lambda text: True if text.strip() else "Path cannot be empty.",
    ))
    consume_path = Path(os.path.expanduser(consume_folder)).resolve()
    if not consume_path.is_dir():
        logger.warning(f"'{consume_path}' is not an existing directory. The service will refuse to start until it exists.")
    values["consume_folder"] = str(consume_path)

    values["file_consume_whitelist"] = _ask(questionary.text(
        "Allowed file patterns, comma-separated (e.g., *.pdf,*.txt) (Leave blank to allow all files):",
        default="*.pdf",
    ))
    values["file_stability_check_interval_seconds"] = _ask(questionary.text(
        "Time between size checks?", default=f"{DEFAULT_STABILITY_CHECK_INTERVAL:g}s", validate=_validate_duration
    ))
    values["file_stability_check_count"] = _ask(questionary.text(
        "Number of identical size readings before a file counts as complete?",
        default=str(DEFAULT_STABILITY_CHECK_COUNT), validate=_validate_count,
    ))
    values["http_upload_retry_delay_seconds"] = _ask(questionary.text(
        "Delay between upload attempts?", default=f"{DEFAULT_RETRY_DELAY:g}s", validate=_validate_duration
    ))
    values["verbose"] = "true" if _ask(questionary.confirm("Enable verbose logging?", default=False)) else "false"
    return values


def run_setup(ini_path: Path = None):
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - SETUP - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    ini_path = ini_path or resolve_ini_path(os.environ)
    logger.info("Welcome to the doc2paperless setup.")
    logger.info("Environment variables always take precedence over the file written here.")

    try:
        if ini_path.exists():
            logger.info(f"An existing configuration file was found: {ini_path}")
            if not _ask(questionary.confirm("Do you want to reconfigure and overwrite the existing file?", default=False)):
                logger.info("Exiting setup without changes to the existing configuration.")
                return
        values = get_values_interactively()
        save_config_to_ini(values, ini_path)
    except (KeyboardInterrupt, EOFError):
        logger.warning("Setup process cancelled by user. No configuration file was saved or modified.")
        sys.exit(1)
    except OSError as e:
        logger.error(f"Could not write configuration to {ini_path}: {e}")
        sys.exit(1)

    logger.info("Setup complete! Start the service with: doc2paperless")


if __name__ == "__main__":
    run_setup()
