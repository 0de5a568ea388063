"""
Client for the TinyPNG image recompression API.

A shrink is two requests: the image bytes are POSTed to the shrink
endpoint, which answers 201 with the location of the compressed result,
then the result is downloaded. Requests are not retried.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from kiln.core.exceptions import TransformError

logger = logging.getLogger(__name__)


class TinifyClient:
    """
    Recompress raster images through the TinyPNG API.

    Example:
        >>> async with httpx.AsyncClient() as http:
        ...     client = TinifyClient(api_key="...", http=http)
        ...     smaller = await client.compress(Path("a.png").read_bytes(), Path("a.png"))
    """

    def __init__(
        self,
        api_key: str,
        http: httpx.AsyncClient,
        api_url: str = "https://api.tinify.com/shrink",
    ) -> None:
        self.api_key = api_key
        self.http = http
        self.api_url = api_url

    @property
    def _auth(self) -> tuple[str, str]:
        return ("api", self.api_key)

    async def compress(self, data: bytes, source: Path) -> bytes:
        """
        Return the recompressed bytes of one image.

        Args:
            data: Original image bytes
            source: Path used in error messages

        Raises:
            TransformError: On any HTTP or protocol failure
        """
        try:
            response = await self.http.post(self.api_url, content=data, auth=self._auth)
            if response.status_code != 201:
                raise TransformError("img", self._describe_error(response), source)

            location = response.headers.get("Location")
            if not location:
                location = response.json().get("output", {}).get("url")
            if not location:
                raise TransformError("img", "compression response had no output location", source)

            result = await self.http.get(location, auth=self._auth)
            result.raise_for_status()
        except httpx.HTTPError as e:
            raise TransformError("img", f"recompression request failed: {e}", source) from e

        input_size = len(data)
        output_size = len(result.content)
        logger.info(f"Recompressed {source.name}: {input_size} -> {output_size} bytes")
        return result.content

    @staticmethod
    def _describe_error(response: httpx.Response) -> str:
        try:
            body = response.json()
            detail = f"{body.get('error', 'Error')}: {body.get('message', '')}".strip()
        except ValueError:
            detail = response.text.strip()
        return f"recompression service returned {response.status_code} ({detail})"
