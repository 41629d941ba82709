"""
Embedding Client

This module implements the embedding client used at ingestion and query time.
It talks to the OpenAI embeddings API (or any compatible provider) and is
responsible for:

- Normalizing input text (embedding models are sensitive to literal newlines)
- Batching many texts into as few requests as possible
- Classifying upstream failures as retryable or fatal
- Strict response validation (count, order, dimension)

The client performs no caching: identical text is re-embedded on every call.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence, Optional
import logging
import httpx

from ..config import settings
from ..core.errors import EmbeddingServiceError

logger = logging.getLogger("rag.embedder")


class Embedder:
    """
    Asynchronous embedding generator.

    Owns a single ``httpx.AsyncClient``; construct once at startup and call
    :meth:`aclose` at shutdown.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        dimension: Optional[int] = None,
        batch_size: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize an Embedder.

        Parameters
        ----------
        api_key : Optional[str]
            Optional override for the API key. Defaults to settings.openai_api_key.

        model : Optional[str]
            Optional override for the embedding model. Defaults to settings.embedding_model.

        base_url : Optional[str]
            Full URL of the embeddings endpoint.

        timeout : Optional[float]
            HTTP timeout for each request, in seconds.

        dimension : Optional[int]
            Expected vector length. Every returned vector is checked against it.

        batch_size : Optional[int]
            Maximum number of texts sent in one request.

        client : Optional[httpx.AsyncClient]
            Pre-built HTTP client (tests inject one with a mock transport).
        """
        self.api_key = api_key or settings.openai_api_key.get_secret_value()
        self.model = model or settings.embedding_model
        self.base_url = base_url or settings.embedding_base_url
        self.timeout = timeout if timeout is not None else settings.embedding_timeout
        self.dimension = dimension or settings.embedding_dimension
        self.batch_size = batch_size or settings.embedding_batch_size
        self._client = client or httpx.AsyncClient(timeout=self.timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> List[float]:
        """
        Embed a single text (query path).

        Raises
        ------
        EmbeddingServiceError
            If the request fails or the response is malformed.
        """
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Generate embeddings for a sequence of input texts.

        Parameters
        ----------
        texts : Sequence[str]
            Input strings. Newlines are replaced with spaces before submission.

        Returns
        -------
        List[List[float]]
            One vector per input, in input order.

        Raises
        ------
        EmbeddingServiceError
            If any batch fails or the response is malformed.
        """
        if not texts:
            return []

        prepared = [self.prepare(t) for t in texts]
        all_embeddings: List[List[float]] = []

        for start in range(0, len(prepared), self.batch_size):
            batch = prepared[start : start + self.batch_size]
            data = await self._request(batch)
            all_embeddings.extend(self._extract_embeddings(data, expected=len(batch)))

        return all_embeddings

    @staticmethod
    def prepare(text: str) -> str:
        return text.replace("\r\n", " ").replace("\n", " ")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _payload(self, batch: List[str]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "input": batch,
        }
        # Only the text-embedding-3 family accepts a requested dimension
        if self.model.startswith("text-embedding-3"):
            payload["dimensions"] = self.dimension
        return payload

    async def _request(self, batch: List[str]) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            response = await self._client.post(
                self.base_url,
                json=self._payload(batch),
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            retryable = self._is_retryable_status(exc.response)
            logger.error(
                "Embedding request rejected (HTTP %d): batch size=%d, retryable=%s",
                exc.response.status_code,
                len(batch),
                retryable,
            )
            raise EmbeddingServiceError(
                f"Embedding service returned HTTP {exc.response.status_code}: "
                f"{self._error_message(exc.response)}",
                retryable=retryable,
            ) from exc
        except httpx.HTTPError as exc:
            # Transport failures and timeouts
            logger.error(
                "Embedding request failed (%s): batch size=%d, error=%s",
                type(exc).__name__,
                len(batch),
                str(exc),
            )
            raise EmbeddingServiceError(
                f"Embedding generation failed: {type(exc).__name__}",
                retryable=True,
            ) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise EmbeddingServiceError("Embedding response is not valid JSON.") from exc

    @staticmethod
    def _error_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        error = body.get("error") if isinstance(body, dict) else None
        return error if isinstance(error, dict) else {}

    @classmethod
    def _error_message(cls, response: httpx.Response) -> str:
        return str(cls._error_body(response).get("message") or response.reason_phrase)

    @classmethod
    def _is_retryable_status(cls, response: httpx.Response) -> bool:
        if response.status_code >= 500:
            return True
        if response.status_code == 429:
            # Exhausted quota looks like rate limiting but will not recover
            return cls._error_body(response).get("code") != "insufficient_quota"
        return False

    def _extract_embeddings(self, data: Any, expected: int) -> List[List[float]]:
        """
        Parse and validate embedding output format.

        OpenAI returns:
            { "data": [ {"index": 0, "embedding": [...]}, ... ] }

        Raises
        ------
        EmbeddingServiceError
            If the API returns unexpected structure.
        """
        if not isinstance(data, dict) or "data" not in data:
            raise EmbeddingServiceError("Embedding response missing 'data' field.")

        records = data["data"]
        if not isinstance(records, list):
            raise EmbeddingServiceError("'data' field must be a list.")

        if len(records) != expected:
            raise EmbeddingServiceError(
                f"Embedding response has {len(records)} vectors for {expected} inputs."
            )

        for index, record in enumerate(records):
            if not isinstance(record, dict) or "embedding" not in record:
                raise EmbeddingServiceError(
                    f"Malformed embedding record at index {index}: {record!r}"
                )

        # Providers may return records out of order; 'index' is authoritative
        indices = [r.get("index") for r in records]
        if any(i is not None for i in indices):
            if not all(isinstance(i, int) for i in indices) or sorted(indices) != list(
                range(expected)
            ):
                raise EmbeddingServiceError(
                    f"Embedding response indices {indices!r} do not cover "
                    f"inputs 0..{expected - 1} exactly once."
                )
            records = sorted(records, key=lambda r: r["index"])

        embeddings: List[List[float]] = []

        for index, record in enumerate(records):
            emb = record["embedding"]
            if not isinstance(emb, list) or not all(
                isinstance(x, (float, int)) for x in emb
            ):
                raise EmbeddingServiceError(
                    f"Invalid embedding vector at index {index}: must be float list."
                )
            if len(emb) != self.dimension:
                raise EmbeddingServiceError(
                    f"Embedding at index {index} has dimension {len(emb)}, "
                    f"expected {self.dimension}."
                )

            embeddings.append([float(x) for x in emb])

        return embeddings
