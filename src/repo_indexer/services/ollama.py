"""Ollama API client for embeddings generation."""

import logging
import re
import time
from typing import List, Dict, Any, Optional

import httpx

from ..config import OllamaConfig
from .embedding_provider import EmbeddingProvider

logger = logging.getLogger(__name__)

_WHITESPACE_RUN = re.compile(r"\s+")


def preprocess_text(text: str) -> str:
    """Normalize text before embedding.

    Removes NUL characters, collapses whitespace runs to a single newline if
    the run contained one and to a single space otherwise, and trims.
    """
    text = text.replace("\x00", "")
    text = _WHITESPACE_RUN.sub(
        lambda match: "\n" if "\n" in match.group(0) else " ", text
    )
    return text.strip()


class OllamaClient(EmbeddingProvider):
    """Client for interacting with Ollama API."""

    def __init__(
        self, config: OllamaConfig, http_client: Optional[httpx.Client] = None
    ):
        self.config = config
        self.client = http_client or httpx.Client(
            base_url=config.host, timeout=config.timeout
        )

    def health_check(self) -> bool:
        """Check if Ollama service is accessible."""
        try:
            response = self.client.get("/api/tags")
            return bool(response.status_code == 200)
        except Exception:
            return False

    def list_models(self) -> List[Dict[str, Any]]:
        """List available models."""
        try:
            response = self.client.get("/api/tags")
            response.raise_for_status()
            return list(response.json().get("models", []))
        except httpx.RequestError as e:
            raise ConnectionError(f"Failed to connect to Ollama: {e}")
        except httpx.HTTPStatusError as e:
            raise RuntimeError(f"Ollama API error: {e}")

    def model_exists(self, model_name: str) -> bool:
        """Check if a specific model exists.

        An untagged name matches the model's ":latest" tag.
        """
        candidates = {model_name}
        if ":" not in model_name:
            candidates.add(f"{model_name}:latest")
        return any(model.get("name") in candidates for model in self.list_models())

    def _post_embedding(self, model_name: str, prompt: str) -> List[float]:
        """Single embedding request with retries for transient failures."""
        last_exception: Optional[Exception] = None

        for attempt in range(self.config.max_retries + 1):
            try:
                response = self.client.post(
                    "/api/embeddings", json={"model": model_name, "prompt": prompt}
                )
                response.raise_for_status()

                embedding = response.json().get("embedding")
                if not embedding or not isinstance(embedding, list):
                    raise ValueError("No embedding returned from Ollama")

                return list(embedding)

            except httpx.HTTPStatusError as e:
                last_exception = e
                status = e.response.status_code
                # Client errors other than rate limiting will not improve on retry
                if status < 500 and status != 429:
                    break
            except httpx.RequestError as e:
                last_exception = e

            if attempt < self.config.max_retries:
                wait_time = self.config.retry_delay * (2**attempt)
                logger.warning(
                    f"Retry {attempt + 1}/{self.config.max_retries} after error: "
                    f"{last_exception}"
                )
                time.sleep(wait_time)

        if isinstance(last_exception, httpx.RequestError):
            raise ConnectionError(f"Failed to connect to Ollama: {last_exception}")
        if isinstance(last_exception, httpx.HTTPStatusError):
            if last_exception.response.status_code == 404:
                raise ValueError(f"Model {model_name} not found. Try pulling it first.")
            raise RuntimeError(f"Ollama API error: {last_exception}")
        raise RuntimeError(f"Ollama embedding request failed: {last_exception}")

    def get_embedding(self, text: str, model: Optional[str] = None) -> List[float]:
        """Generate embedding for given text."""
        model_name = model or self.config.model

        prompt = preprocess_text(text)
        if len(prompt) > self.config.max_input_length:
            prompt = prompt[: self.config.max_input_length]

        logger.debug(f"Generating embedding for text (length: {len(prompt)})")
        return self._post_embedding(model_name, prompt)

    def get_current_model(self) -> str:
        """Get the current active model name."""
        return self.config.model

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
