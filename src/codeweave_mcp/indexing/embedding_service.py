"""
Embedding providers.

Two interchangeable backends implement IEmbeddingProvider:

- ``EmbeddingService``: local SentenceTransformers model (default:
  CodeRankEmbed, a 137M parameter code embedding model)
- ``OllamaEmbeddingProvider``: an Ollama server reached over HTTP

The backend is chosen once by ``create_embedding_provider(config)``. The
indexer and the query path only see the interface, so the same instance is
used for documents and queries.

Usage:
    from codeweave_mcp.core.config import EmbeddingConfig
    from codeweave_mcp.indexing.embedding_service import create_embedding_provider

    provider = create_embedding_provider(EmbeddingConfig())
    vector = provider.embed("def hello(): pass")
    vectors = provider.embed_batch(["text1", "text2"])
"""

import contextlib
import gc
import io
import logging
import threading
import time
from functools import lru_cache
from typing import Dict, List, Optional

import httpx

from codeweave_mcp.core.config import EmbeddingConfig
from codeweave_mcp.core.exceptions import ConfigurationError, EmbeddingError
from codeweave_mcp.core.interfaces import IEmbeddingProvider

logger = logging.getLogger(__name__)

# Lazy imports for heavy dependencies
_sentence_transformers = None
_torch = None


def _import_dependencies():
    """Import sentence-transformers and torch on first use."""
    global _sentence_transformers, _torch

    if _sentence_transformers is None:
        import sentence_transformers
        _sentence_transformers = sentence_transformers

    if _torch is None:
        import torch
        _torch = torch

    return _sentence_transformers, _torch


# Known model aliases. Any other name is treated as a HuggingFace model id.
EMBEDDING_MODELS = {
    'coderankembed': {
        'hf_name': 'nomic-ai/CodeRankEmbed',
        'dimensions': 768,
        'max_seq_length': 8192,
        'trust_remote_code': True,
        'prompt_prefix': '',
        'query_prefix': 'Represent this query for searching relevant code: ',
    },
    'minilm': {
        'hf_name': 'sentence-transformers/all-MiniLM-L6-v2',
        'dimensions': 384,
        'max_seq_length': 256,
        'trust_remote_code': False,
        'prompt_prefix': '',
        'query_prefix': '',
    },
}

DEFAULT_MODEL = 'coderankembed'


class EmbeddingService(IEmbeddingProvider):
    """
    Local embedding provider using SentenceTransformers.

    Features:
    - Lazy model load on first embed (thread-safe)
    - LRU cache for single embeds (repeated queries are free)
    - Batch encoding for indexing
    - GPU when available
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        device: Optional[str] = None,
        batch_size: int = 32,
        normalize: bool = True,
        cache_dir: Optional[str] = None,
    ):
        """
        Args:
            model_name: Alias from EMBEDDING_MODELS or a HuggingFace model id
            device: 'cuda', 'cpu', or None to pick automatically
            batch_size: Encoding batch size
            normalize: L2-normalize vectors (cosine == inner product)
            cache_dir: Directory for downloaded models
        """
        _import_dependencies()

        self.model_name = model_name
        self.batch_size = batch_size
        self.normalize = normalize
        self.cache_dir = cache_dir

        if model_name in EMBEDDING_MODELS:
            self.config = dict(EMBEDDING_MODELS[model_name])
        else:
            self.config = {
                'hf_name': model_name,
                'dimensions': None,  # known after load
                'max_seq_length': 512,
                'trust_remote_code': False,
                'prompt_prefix': '',
                'query_prefix': '',
            }

        if device is None:
            device = 'cuda' if _torch.cuda.is_available() else 'cpu'  # pragma: no cover
        self.device = device

        self._lock = threading.Lock()
        self._model = None
        self._model_loaded = False

        self.stats = self._empty_stats()
        self._embed_cached = lru_cache(maxsize=1000)(self._embed_single_uncached)

    @staticmethod
    def _empty_stats() -> Dict[str, float]:
        return {
            'total_embeddings': 0,
            'total_batches': 0,
            'total_time': 0.0,
            'cache_hits': 0,
            'cache_misses': 0,
        }

    def _load_model(self):
        """Load the model on first use."""
        if self._model_loaded:
            return

        with self._lock:
            if self._model_loaded:
                return

            logger.info(f"Loading embedding model {self.config['hf_name']} on {self.device}")

            model_kwargs = {'device': self.device}
            if self.cache_dir:
                model_kwargs['cache_folder'] = self.cache_dir
            if self.config.get('trust_remote_code'):
                model_kwargs['trust_remote_code'] = True

            # Weight loading writes to stdout, which would corrupt the MCP stdio stream
            try:
                with contextlib.redirect_stdout(io.StringIO()), contextlib.redirect_stderr(io.StringIO()):
                    self._model = _sentence_transformers.SentenceTransformer(
                        self.config['hf_name'], **model_kwargs
                    )
            except Exception as e:
                raise EmbeddingError(f"Failed to load embedding model {self.config['hf_name']}: {e}") from e

            if self.config['dimensions'] is None:
                self.config['dimensions'] = self._model.get_sentence_embedding_dimension()

            self._model_loaded = True
            logger.info(f"Embedding model loaded ({self.config['dimensions']} dimensions)")

    @property
    def dimensions(self) -> int:
        self._load_model()
        return self.config['dimensions']

    def _prefix(self, is_query: bool) -> str:
        return self.config['query_prefix'] if is_query else self.config['prompt_prefix']

    def _embed_single_uncached(self, text: str, is_query: bool) -> tuple:
        """Embed one text; returns a tuple so the LRU cache can hold it."""
        self._load_model()
        try:
            vectors = self._model.encode(
                [self._prefix(is_query) + text],
                show_progress_bar=False,
                normalize_embeddings=self.normalize,
                convert_to_numpy=True,
            )
        except Exception as e:
            raise EmbeddingError(f"Encoding failed: {e}") from e
        return tuple(vectors[0].tolist())

    def embed(self, text: str, is_query: bool = False) -> List[float]:
        """
        Embed a single text with LRU caching.

        Args:
            text: Text to embed
            is_query: Use the model's query prefix (for search queries)

        Returns:
            Embedding as list of floats
        """
        hits_before = self._embed_cached.cache_info().hits
        vector = self._embed_cached(text, is_query)

        if self._embed_cached.cache_info().hits > hits_before:
            self.stats['cache_hits'] += 1
        else:
            self.stats['cache_misses'] += 1
            self.stats['total_embeddings'] += 1

        return list(vector)

    def embed_batch(self, texts: List[str], is_query: bool = False) -> List[List[float]]:
        """Embed many texts in batches, preserving order."""
        if not texts:
            return []

        self._load_model()

        prefix = self._prefix(is_query)
        if prefix:
            texts = [prefix + t for t in texts]

        start_time = time.time()
        try:
            vectors = self._model.encode(
                texts,
                batch_size=self.batch_size,
                show_progress_bar=False,
                normalize_embeddings=self.normalize,
                convert_to_numpy=True,
            )
        except Exception as e:
            raise EmbeddingError(f"Batch encoding failed: {e}") from e

        self.stats['total_embeddings'] += len(texts)
        self.stats['total_batches'] += (len(texts) + self.batch_size - 1) // self.batch_size
        self.stats['total_time'] += time.time() - start_time

        # Periodic GC keeps long indexing runs from growing
        if self.stats['total_batches'] % 100 == 0:
            gc.collect()
            if self.device == 'cuda':  # pragma: no cover
                _torch.cuda.empty_cache()

        return vectors.tolist()

    def get_stats(self) -> dict:
        stats = self.stats.copy()
        elapsed = stats['total_time']
        stats['embeddings_per_second'] = stats['total_embeddings'] / elapsed if elapsed > 0 else 0
        return stats

    def get_cache_stats(self) -> dict:
        info = self._embed_cached.cache_info()
        total = self.stats['cache_hits'] + self.stats['cache_misses']
        hit_rate = self.stats['cache_hits'] / total if total > 0 else 0.0
        return {
            'hits': self.stats['cache_hits'],
            'misses': self.stats['cache_misses'],
            'hit_rate': f"{hit_rate:.1%}",
            'size': info.currsize,
            'maxsize': info.maxsize,
        }

    def clear_cache(self):
        self._embed_cached.cache_clear()
        self.stats['cache_hits'] = 0
        self.stats['cache_misses'] = 0

    def unload(self):
        """Unload the model to free memory."""
        with self._lock:
            if self._model is not None:
                self._model = None
                self._model_loaded = False
                self._embed_cached.cache_clear()
                gc.collect()
                if self.device == 'cuda':  # pragma: no cover
                    _torch.cuda.empty_cache()


class OllamaEmbeddingProvider(IEmbeddingProvider):
    """
    Embedding provider backed by an Ollama server.

    Calls ``POST {base_url}/api/embeddings`` with ``{"model", "prompt"}``,
    one request per text. Vector dimensions are learned from the first
    response.
    """

    def __init__(
        self,
        model_name: str,
        base_url: str = "http://localhost:11434",
        timeout_seconds: float = 120.0,
        client: Optional[httpx.Client] = None,
    ):
        self.model_name = model_name
        self.base_url = base_url.rstrip('/')
        self._client = client or httpx.Client(base_url=self.base_url, timeout=timeout_seconds)
        self._dimensions: Optional[int] = None

    @property
    def dimensions(self) -> int:
        if self._dimensions is None:
            self.embed("dimensions")
        return self._dimensions

    def embed(self, text: str, is_query: bool = False) -> List[float]:
        try:
            response = self._client.post(
                "/api/embeddings",
                json={"model": self.model_name, "prompt": text},
            )
            response.raise_for_status()
            vector = response.json().get("embedding")
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Ollama embedding request failed: {e}") from e

        if not vector:
            raise EmbeddingError(f"Ollama returned no embedding for model {self.model_name}")

        self._dimensions = len(vector)
        return [float(v) for v in vector]

    def embed_batch(self, texts: List[str], is_query: bool = False) -> List[List[float]]:
        return [self.embed(text, is_query=is_query) for text in texts]

    def close(self):
        self._client.close()


# Model-keyed cache so every caller of one local model shares its weights
_embedding_services: Dict[str, EmbeddingService] = {}
_singleton_lock = threading.Lock()


def get_embedding_service(model_name: str = DEFAULT_MODEL, **kwargs) -> EmbeddingService:
    """
    Get the shared EmbeddingService for a model, creating it on first use.

    Args:
        model_name: Embedding model name
        **kwargs: Additional arguments for EmbeddingService

    Returns:
        EmbeddingService instance for the model
    """
    if model_name not in _embedding_services:
        with _singleton_lock:
            if model_name not in _embedding_services:
                _embedding_services[model_name] = EmbeddingService(model_name, **kwargs)

    return _embedding_services[model_name]


def reset_embedding_service(model_name: Optional[str] = None):
    """Unload and forget one cached service, or all of them."""
    with _singleton_lock:
        if model_name is None:
            for service in _embedding_services.values():
                service.unload()
            _embedding_services.clear()
        elif model_name in _embedding_services:
            _embedding_services.pop(model_name).unload()


def create_embedding_provider(config: EmbeddingConfig) -> IEmbeddingProvider:
    """
    Build the provider named by the configuration.

    Raises:
        ConfigurationError: If the provider is unknown
    """
    if config.provider == "sentence-transformers":
        return get_embedding_service(config.model_name, batch_size=config.batch_size)
    if config.provider == "ollama":
        return OllamaEmbeddingProvider(
            model_name=config.model_name,
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
        )
    raise ConfigurationError(f"Unknown embedding provider: {config.provider}")
