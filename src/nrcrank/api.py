"""High-level public API for NRC ranking."""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

from nrcrank.models import DEFAULT_SYMBOLS, ContextModel, build_context_model
from nrcrank.ranking import top_n
from nrcrank.scoring import Observer, ScoreBoard, score_database

Content = Union[str, ContextModel]

DEFAULT_K = 13
DEFAULT_ALPHA = 1.0
DEFAULT_TOP = 20


@dataclass
class RankingConfig:
    """Unified configuration object for library usage."""

    content: Content
    database: Mapping[str, str]
    k: int = DEFAULT_K
    alpha: float = DEFAULT_ALPHA
    top: int = DEFAULT_TOP
    valid_symbols: str = DEFAULT_SYMBOLS
    n_jobs: Optional[int] = None
    backend: str = "loky"
    cancel: Optional[threading.Event] = field(default=None, repr=False)
    observer: Optional[Observer] = field(default=None, repr=False)


@dataclass
class RankingResult:
    """Ranked pairs plus the full board they were drawn from."""

    ranked: List[Tuple[str, float]]
    board: ScoreBoard
    model: ContextModel = field(repr=False)


def create_config(
    content: Content,
    database: Mapping[str, str],
    k: int = DEFAULT_K,
    alpha: float = DEFAULT_ALPHA,
    top: int = DEFAULT_TOP,
    valid_symbols: str = DEFAULT_SYMBOLS,
    n_jobs: Optional[int] = None,
    backend: str = "loky",
    cancel: Optional[threading.Event] = None,
    observer: Optional[Observer] = None,
) -> RankingConfig:
    """Build a ranking config."""

    if backend not in {"loky", "threading"}:
        raise ValueError(f"Unknown backend: {backend!r}. Available: loky, threading")
    if top < 0:
        raise ValueError(f"top must be >= 0, got {top}")

    return RankingConfig(
        content=content,
        database=database,
        k=k,
        alpha=alpha,
        top=top,
        valid_symbols=valid_symbols,
        n_jobs=n_jobs,
        backend=backend,
        cancel=cancel,
        observer=observer,
    )


def rank_sequences(
    content: Content,
    database: Mapping[str, str],
    k: int = DEFAULT_K,
    alpha: float = DEFAULT_ALPHA,
    top: int = DEFAULT_TOP,
    valid_symbols: str = DEFAULT_SYMBOLS,
    n_jobs: Optional[int] = None,
    backend: str = "loky",
    cancel: Optional[threading.Event] = None,
    observer: Optional[Observer] = None,
) -> List[Tuple[str, float]]:
    """Single-call entry point: learn the reference model and return the top ranked sequences."""

    config = create_config(
        content=content,
        database=database,
        k=k,
        alpha=alpha,
        top=top,
        valid_symbols=valid_symbols,
        n_jobs=n_jobs,
        backend=backend,
        cancel=cancel,
        observer=observer,
    )
    return run_ranking(config).ranked


def run_ranking(config: RankingConfig) -> RankingResult:
    """Execute a ranking using the unified config."""

    model = _resolve_model(config.content, config.k, config.valid_symbols)
    board = score_database(
        model,
        config.database,
        config.alpha,
        n_jobs=config.n_jobs,
        backend=config.backend,
        cancel=config.cancel,
        observer=config.observer,
    )
    return RankingResult(ranked=top_n(board, config.top), board=board, model=model)


def _resolve_model(content: Content, k: int, valid_symbols: str) -> ContextModel:
    """Convert a content reference to a ContextModel."""

    if isinstance(content, ContextModel):
        if content.k != k:
            raise ValueError(f"Model was built with k={content.k}, config asks for k={k}")
        return content
    if isinstance(content, str):
        return build_context_model(content, k, valid_symbols)
    raise TypeError(f"Unsupported content type: {type(content)!r}")


def generate_random_sequences(
    num_sequences: int, seq_length: int, symbols: str = DEFAULT_SYMBOLS, seed: int = 127, prefix: str = "random"
) -> Dict[str, str]:
    """Generate uniformly random sequences over ``symbols``."""

    if num_sequences <= 0:
        raise ValueError(f"num_sequences must be positive, got {num_sequences}")
    if seq_length <= 0:
        raise ValueError(f"seq_length must be positive, got {seq_length}")

    rng = np.random.default_rng(seed)
    alphabet = np.array(list(symbols), dtype="U1")
    return {
        f"{prefix}_{i}": "".join(alphabet[rng.integers(0, len(symbols), size=seq_length)])
        for i in range(num_sequences)
    }
