"""
Host-side parsing of page snapshots.
"""
import json
import logging
from typing import Any

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

HTML = "html"
JSON = "json"


def parse_document(text: str, fmt: str = HTML) -> Any:
    """
    Turn a raw page snapshot into a scope the resolver can work on:
    a BeautifulSoup tree for HTML, decoded data for JSON.
    """
    if fmt == JSON:
        try:
            return json.loads(text or "null")
        except json.JSONDecodeError as e:
            # Browsers wrap JSON responses in a <pre> element
            soup = BeautifulSoup(text or "", "html.parser")
            pre = soup.find("pre")
            if pre is None:
                raise ValueError(f"Snapshot is not JSON: {e}") from e
            logger.debug("Reading JSON from a browser-rendered <pre> element")
            return json.loads(pre.get_text())
    return BeautifulSoup(text or "", "html.parser")
