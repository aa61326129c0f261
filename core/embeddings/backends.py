#!/usr/bin/env python3
"""
Embedding Backends - one class per provider behind a single interface.

Contract: a list of texts and a target dimension in, one vector per text
out, same order, same length.
"""
import hashlib
import logging
import re
from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np
from openai import OpenAI

from core.llm.openai_service import build_openai_client, openai_retry

logger = logging.getLogger(__name__)


class EmbeddingBackend(ABC):
    """Abstract embedding provider."""

    name: str = "abstract"

    @abstractmethod
    def embed_texts(self, texts: List[str], dimensions: int) -> List[List[float]]:
        """
        Embed a batch of texts.

        Args:
            texts: Texts to embed (already capped to the gateway batch size)
            dimensions: Target vector dimension

        Returns:
            One vector per input text, in input order
        """
        pass


class OpenAIEmbeddingBackend(EmbeddingBackend):
    """OpenAI (or OpenAI-compatible) embeddings endpoint."""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = "text-embedding-3-small",
        timeout: Optional[float] = None,
        client: Optional[OpenAI] = None
    ):
        self.client = client or build_openai_client(api_key, base_url, timeout)
        self.model = model

    @openai_retry(attempts=4)
    def embed_texts(self, texts: List[str], dimensions: int) -> List[List[float]]:
        response = self.client.embeddings.create(
            input=texts,
            model=self.model,
            dimensions=dimensions
        )
        # Proxies may reorder items; result[i] must belong to texts[i]
        data = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in data]


class HashingEmbeddingBackend(EmbeddingBackend):
    """Deterministic bag-of-words hashing vectors.

    No network and no model download; similar wording gives similar vectors.
    Intended for local development and tests.
    """

    name = "hashing"
    _TOKEN = re.compile(r"\w+", re.UNICODE)

    def embed_texts(self, texts: List[str], dimensions: int) -> List[List[float]]:
        return [self._embed_one(text, dimensions) for text in texts]

    def _embed_one(self, text: str, dimensions: int) -> List[float]:
        vector = np.zeros(dimensions, dtype=np.float64)
        for token in self._TOKEN.findall(text.lower()):
            digest = hashlib.md5(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % dimensions
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[bucket] += sign

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm
        return vector.tolist()
