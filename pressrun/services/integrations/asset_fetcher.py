import logging
from typing import Optional

import requests
from flask import Flask, current_app

logger = logging.getLogger(__name__)

_EXTENSION_KEY = 'pressrun.asset_fetcher'


class AssetFetcher:
    """Download artwork referenced by batch items for the export archive."""

    def __init__(self, timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, url: str) -> bytes:
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.content


def set_asset_fetcher(app: Flask, fetcher) -> None:
    app.extensions[_EXTENSION_KEY] = fetcher


def get_asset_fetcher():
    fetcher = current_app.extensions.get(_EXTENSION_KEY)
    if fetcher is None:
        fetcher = AssetFetcher(timeout=current_app.config.get('ASSET_FETCH_TIMEOUT', 15.0))
        current_app.extensions[_EXTENSION_KEY] = fetcher
    return fetcher
