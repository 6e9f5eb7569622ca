"""
Image metrics clients.

The quality gate only needs an image's pixel dimensions. Looking them up is
delegated to a metrics service; the wizard calls ``get_dimensions(url)`` and
gets back ``(width_px, height_px)``.

Two implementations:
- HttpImageMetricsClient: GET {base_url}?url=<image url> -> {"widthPx", "heightPx"}
- StaticImageMetricsClient: dimensions known up front (generated images,
  tests, offline demo)
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import requests


logger = logging.getLogger(__name__)


class ImageMetricsError(Exception):
    """Dimensions could not be determined for an image URL."""


class HttpImageMetricsClient:
    """Looks up image dimensions through the metrics HTTP endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    def get_dimensions(self, image_url: str) -> Tuple[int, int]:
        try:
            response = self._session.get(
                self.base_url, params={"url": image_url}, timeout=self.timeout_seconds
            )
            response.raise_for_status()
            body = response.json()
            width, height = int(body["widthPx"]), int(body["heightPx"])
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Image metrics lookup failed for {image_url[:50]}: {e}")
            raise ImageMetricsError(f"Unable to read image dimensions: {e}") from e
        return width, height


class StaticImageMetricsClient:
    """Serves dimensions registered ahead of time, keyed by URL."""

    def __init__(self, dimensions: Optional[Dict[str, Tuple[int, int]]] = None):
        self._dimensions = dict(dimensions or {})

    def register(self, image_url: str, width_px: int, height_px: int) -> None:
        self._dimensions[image_url] = (width_px, height_px)

    def get_dimensions(self, image_url: str) -> Tuple[int, int]:
        try:
            return self._dimensions[image_url]
        except KeyError:
            raise ImageMetricsError(f"No dimensions registered for {image_url[:50]}") from None
