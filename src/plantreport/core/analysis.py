"""Image analysis through a remote generative model.

:class:`AnalysisClient` is the contract the HTTP layer depends on;
:class:`GeminiAnalysisClient` implements it on top of the ``google-genai``
SDK.  One call sends one image plus a natural-language instruction and
returns the model's free-text answer.  There is no streaming, no partial
result and no retry.

Every failure mode (missing API key, transport error, quota rejection,
empty response, exceeded deadline) is reported as
:class:`~plantreport.core.errors.UpstreamError`.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

import httpx
from google import genai
from google.genai import errors, types

from plantreport.core.config import PlantReportConfig
from plantreport.core.errors import UpstreamError

logger = logging.getLogger(__name__)


class AnalysisClient(ABC):
    """Contract for image analysis clients."""

    @abstractmethod
    async def analyze(self, image_bytes: bytes, mime_type: str, prompt: str) -> str:
        """Return the model's plain-text analysis of an image.

        Raises:
            UpstreamError: If the call fails or returns no text.
        """


class GeminiAnalysisClient(AnalysisClient):
    """Analysis client backed by Google Gemini.

    The SDK client is created on the first call rather than at
    construction, so a missing API key fails the request that needs it
    instead of application startup.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_seconds: float,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._client: genai.Client | None = None

    @classmethod
    def from_config(cls, config: PlantReportConfig) -> GeminiAnalysisClient:
        return cls(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            timeout_seconds=config.analysis_timeout_seconds,
        )

    def _get_client(self) -> genai.Client:
        if self._client is None:
            try:
                self._client = genai.Client(api_key=self._api_key or None)
            except ValueError as e:
                raise UpstreamError(f"Gemini client unavailable: {e}") from e
        return self._client

    async def analyze(self, image_bytes: bytes, mime_type: str, prompt: str) -> str:
        client = self._get_client()
        contents = [
            prompt,
            types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
        ]

        logger.debug(f"Gemini analysis call (model={self._model}, {len(image_bytes)} bytes)")
        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(model=self._model, contents=contents),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamError(
                f"Gemini did not respond within {self._timeout_seconds}s"
            ) from e
        except errors.APIError as e:
            raise UpstreamError(f"Gemini API error: {e}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"Gemini request failed: {e}") from e

        text = response.text
        if not text:
            raise UpstreamError("Gemini returned an empty response")

        logger.info(f"Gemini analysis completed (model={self._model}, {len(text)} chars)")
        return text
