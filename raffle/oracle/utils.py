import os
import logging
from typing import Optional

import requests
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Ensure environment variables from .env are loaded when this module is imported.
load_dotenv()


def open_session(api_key: Optional[str] = None) -> requests.Session:
    """Open a requests session authenticated against the VRF coordinator.

    Parameters
    ----------
    api_key : Optional[str]
        Coordinator API key. Falls back to ``VRF_API_KEY``.

    Returns
    -------
    requests.Session
        Session carrying the JSON ``Accept`` and API key headers.

    Raises
    ------
    RuntimeError
        If no API key is supplied or configured.
    """
    key = api_key or os.environ.get("VRF_API_KEY")
    if not key:
        raise RuntimeError("Environment variable 'VRF_API_KEY' is not set")

    session = requests.Session()
    session.headers.update({"Accept": "application/json", "X-API-Key": key})
    # Never log the key itself
    logger.debug("Coordinator session opened (API key redacted)")
    return session
