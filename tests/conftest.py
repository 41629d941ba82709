import math
from typing import List, Sequence

import pytest

from docs_rag.rag.chunker import Chunker
from docs_rag.rag.faiss_store import FaissVectorStore
from docs_rag.rag.ingest import IngestionPipeline
from docs_rag.rag.retriever import Retriever

# Small fixed vocabulary so tests can reason about exact similarities
VOCAB = [
    "the", "quick", "brown", "fox", "jumps", "over", "lazy", "dog",
    "cat", "bird", "fish", "tree", "river", "stone", "cloud", "<other>",
]
DIM = len(VOCAB)


def keyword_vector(text: str) -> List[float]:
    """Bag-of-words vector over VOCAB, L2-normalized."""
    vec = [0.0] * DIM
    for word in text.lower().split():
        word = word.strip(".,;:!?")
        if not word:
            continue
        idx = VOCAB.index(word) if word in VOCAB else DIM - 1
        vec[idx] += 1.0
    norm = math.sqrt(sum(v * v for v in vec))
    return [v / norm for v in vec] if norm else vec


def unit(*weights: float) -> List[float]:
    """A DIM-length vector whose leading components are ``weights``."""
    return list(weights) + [0.0] * (DIM - len(weights))


class KeywordEmbedder:
    """Deterministic stand-in for the embedding service."""

    def __init__(self) -> None:
        self.batch_calls: List[List[str]] = []

    async def embed(self, text: str) -> List[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        self.batch_calls.append(list(texts))
        return [keyword_vector(t) for t in texts]

    async def aclose(self) -> None:
        pass


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def store():
    return FaissVectorStore(dimension=DIM)


@pytest.fixture
def retriever(embedder, store):
    return Retriever(embedder, store)


@pytest.fixture
def pipeline(embedder, store):
    return IngestionPipeline(
        Chunker(chunk_size=10, chunk_overlap=3, separators=[" "]),
        embedder,
        store,
    )
