"""
Ollama HTTP client for completions and embeddings.

The HTTP calls are blocking ``requests`` calls; the async methods push them
onto the default executor so the event loop keeps serving other files.
"""
import asyncio
from typing import List, Optional

import numpy as np
import requests

from resume_pipeline.models.settings import EmbeddingSettings, LLMSettings, get_settings
from resume_pipeline.utils.exceptions import ExternalServiceError, retry_with_logging
from resume_pipeline.utils.logging_config import get_logger

logger = get_logger(__name__)


class OllamaClient:
    def __init__(
        self,
        llm: LLMSettings = None,
        embedding: EmbeddingSettings = None,
        retry_attempts: int = 2,
        retry_backoff: float = 0.5,
        session: Optional[requests.Session] = None,
    ):
        self.llm = llm or LLMSettings()
        self.embedding = embedding or EmbeddingSettings()
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.http = session or requests.Session()

    @classmethod
    def from_settings(cls, settings=None) -> "OllamaClient":
        settings = settings or get_settings()
        return cls(
            llm=settings.llm,
            embedding=settings.embedding,
            retry_attempts=settings.processing.retry_attempts,
            retry_backoff=settings.processing.retry_backoff,
        )

    @property
    def embedding_model(self) -> str:
        return self.embedding.model_name

    def _post(self, url: str, payload: dict, timeout: int) -> dict:
        @retry_with_logging(
            max_attempts=self.retry_attempts,
            backoff_factor=self.retry_backoff,
            exceptions=(requests.ConnectionError, requests.Timeout),
            logger=logger,
        )
        def send():
            resp = self.http.post(url, json=payload, timeout=timeout)
            resp.raise_for_status()
            return resp.json()

        try:
            return send()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise ExternalServiceError(
                f"Ollama returned an error for {url}: {e}",
                service_name="ollama",
                status_code=status,
                cause=e,
            ) from e
        except (requests.RequestException, ValueError) as e:
            raise ExternalServiceError(
                f"Ollama request to {url} failed: {e}", service_name="ollama", cause=e
            ) from e

    def generate(self, prompt: str, temperature: float = None) -> str:
        temperature = self.llm.temperature if temperature is None else temperature
        data = self._post(
            f"{self.llm.base_url}/api/generate",
            {
                "model": self.llm.model_name,
                "prompt": prompt,
                "options": {"temperature": temperature},
                "stream": False,
            },
            self.llm.timeout,
        )
        return data.get("response", "") or ""

    def embed_text(self, text: str) -> np.ndarray:
        data = self._post(
            f"{self.embedding.base_url}/api/embeddings",
            {"model": self.embedding.model_name, "prompt": text},
            self.embedding.timeout,
        )
        vector = data.get("embedding")
        if not vector:
            raise ExternalServiceError(
                "Ollama returned an empty embedding", service_name="ollama",
                details={"model": self.embedding.model_name},
            )
        return np.asarray(vector, dtype=np.float32)

    async def complete(self, prompt: str, temperature: float = None) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.generate, prompt, temperature)

    async def embed(self, text: str) -> List[float]:
        loop = asyncio.get_running_loop()
        vector = await loop.run_in_executor(None, self.embed_text, text)
        return vector.tolist()
