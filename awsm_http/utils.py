"""Utility functions shared by the engine and the CLI."""

import logging
from urllib.parse import urlparse


# Configure logging
def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the request engine.

    Args:
        verbose: Enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    # Suppress noisy transport logging
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("socketio").setLevel(logging.WARNING)
    logging.getLogger("engineio").setLevel(logging.WARNING)
    logging.getLogger("faker").setLevel(logging.WARNING)

    logger.setLevel(level)


logger = logging.getLogger("awsm_http")


def validate_url(url: str) -> tuple[bool, str]:
    """Validate URL format.

    Returns:
        (is_valid, error_message)
    """
    if not url or not url.strip():
        return False, "URL is required"
    try:
        parsed = urlparse(url.strip())
        if parsed.scheme not in ("http", "https"):
            return False, "URL must start with http:// or https://"
        if not parsed.netloc:
            return False, "URL must include a host"
        return True, ""
    except ValueError as e:
        return False, f"Invalid URL: {e}"


def sanitize_url(url: str) -> str:
    """Sanitize URL for logging (remove credentials)."""
    try:
        parsed = urlparse(url)
        if parsed.password:
            netloc = f"{parsed.username}:****@{parsed.hostname}"
            if parsed.port:
                netloc = f"{netloc}:{parsed.port}"
            return parsed._replace(netloc=netloc).geturl()
        return url
    except ValueError:
        return url
