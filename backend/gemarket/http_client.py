"""
HTTP acquisition for wiki pages and the catalog API.

Each call either returns a payload or raises AcquisitionError; there is no
retry. Callers decide how much of a run a failed fetch costs.
"""

from typing import Any, Optional

import requests

from . import config


class AcquisitionError(Exception):
    """A source page or API payload could not be fetched."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url


def create_session() -> requests.Session:
    """Session with the default request headers applied."""
    session = requests.Session()
    session.headers.update(config.HEADERS)
    return session


def fetch_page(url: str, session: Optional[requests.Session] = None,
               timeout: Optional[float] = None) -> str:
    """Fetch a page and return its HTML."""
    session = session or create_session()
    try:
        response = session.get(url, timeout=timeout or config.REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.text
    except requests.RequestException as e:
        raise AcquisitionError(url, str(e)) from e


def fetch_json(url: str, session: Optional[requests.Session] = None,
               timeout: Optional[float] = None) -> Any:
    """Fetch a URL and decode its JSON body."""
    session = session or create_session()
    try:
        response = session.get(url, headers={'Accept': 'application/json'},
                               timeout=timeout or config.REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        raise AcquisitionError(url, str(e)) from e
    except ValueError as e:
        raise AcquisitionError(url, f"Invalid JSON: {e}") from e
