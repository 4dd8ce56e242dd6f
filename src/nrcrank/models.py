"""
Context Models
==============

Order-k context (Markov) models learned from a reference content and the
estimators built on top of them.

Key Features:
- Immutable model container (frozen dataclass over read-only numpy arrays)
  that can be shared by any number of concurrent scoring tasks
- Contexts stored as rolling integer codes, looked up with ``searchsorted``
- Lidstone-smoothed symbol probabilities and bit costs
- Total-bit estimation, NRC scoring and per-character NRC progressions
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from nrcrank.errors import InsufficientDataError, InvalidConfiguration, NRCError, TaskFailure
from nrcrank.functions import (
    LN2,
    code_space_fits,
    context_codes,
    decode_context,
    encode_sequence,
    lidstone_log_prob,
    nrc,
    nrc_fixed,
)
from nrcrank.ragged import RaggedData, ragged_from_list

DEFAULT_SYMBOLS = "ACGT"


@dataclass(frozen=True)
class ContextModel:
    """Immutable order-k context model.

    The numeric fields are excluded from comparison and hashing since numpy
    arrays support neither.

    Attributes
    ----------
    symbols : str
        Sorted alphabet observed in the content. Symbol ``symbols[i]`` has code ``i``.
    k : int
        Context width.
    contexts : np.ndarray
        Sorted unique context codes (int64, base ``len(symbols) + 1``).
    counts : np.ndarray
        Next-symbol counts, shape ``(len(contexts), len(symbols))``.
    totals : np.ndarray
        Row sums of ``counts``.
    content_length : int
        Length of the filtered content the model was learned from.
    """

    symbols: str
    k: int
    contexts: np.ndarray = dc_field(repr=False, compare=False)
    counts: np.ndarray = dc_field(repr=False, compare=False)
    totals: np.ndarray = dc_field(repr=False, compare=False)
    content_length: int = 0

    @classmethod
    def from_content(cls, content: str, k: int, valid_symbols: str = DEFAULT_SYMBOLS) -> ContextModel:
        return build_context_model(content, k, valid_symbols)

    @property
    def alphabet(self) -> FrozenSet[str]:
        return frozenset(self.symbols)

    @property
    def alphabet_size(self) -> int:
        return len(self.symbols)

    @property
    def base(self) -> int:
        """Radix of context codes; the extra digit stands for symbols outside the alphabet."""
        return len(self.symbols) + 1

    @property
    def num_contexts(self) -> int:
        return int(self.contexts.size)

    def context_index(self, context: str) -> Optional[int]:
        """Row of ``context`` in the count table, or None if it was never observed."""
        if len(context) != self.k:
            raise ValueError(f"Context must have length {self.k}, got {len(context)}: {context!r}")
        code = 0
        for digit in encode_sequence(context, self.symbols):
            code = code * self.base + int(digit)
        idx = int(np.searchsorted(self.contexts, code))
        if idx < self.contexts.size and self.contexts[idx] == code:
            return idx
        return None

    def counts_for(self, context: str) -> Dict[str, int]:
        """Non-zero next-symbol counts of a context."""
        idx = self.context_index(context)
        if idx is None:
            return {}
        row = self.counts[idx]
        return {symbol: int(row[i]) for i, symbol in enumerate(self.symbols) if row[i] > 0}

    def total(self, context: str) -> int:
        idx = self.context_index(context)
        return 0 if idx is None else int(self.totals[idx])

    def as_table(self) -> Dict[str, Dict[str, int]]:
        """Full ``context -> {symbol: count}`` mapping."""
        table = {}
        for idx, code in enumerate(self.contexts):
            row = self.counts[idx]
            table[decode_context(int(code), self.k, self.symbols)] = {
                symbol: int(row[i]) for i, symbol in enumerate(self.symbols) if row[i] > 0
            }
        return table


def filter_content(content: str, valid_symbols: str = DEFAULT_SYMBOLS) -> str:
    """Remove every character that is not in ``valid_symbols``."""
    if not valid_symbols:
        raise InvalidConfiguration("valid_symbols must not be empty")
    return re.sub(f"[^{re.escape(valid_symbols)}]", "", content)


def extract_alphabet(content: str) -> FrozenSet[str]:
    """Set of symbols appearing at least once in ``content``."""
    return frozenset(content)


def check_alpha(alpha: float) -> float:
    """Validate the smoothing parameter."""
    try:
        value = float(alpha)
    except (TypeError, ValueError):
        raise InvalidConfiguration(f"alpha must be a number, got {alpha!r}") from None
    if not (math.isfinite(value) and value > 0):
        raise InvalidConfiguration(f"alpha must be a positive finite number, got {alpha!r}")
    return value


def build_context_model(content: str, k: int, valid_symbols: str = DEFAULT_SYMBOLS) -> ContextModel:
    """
    Learn an order-k context model from a reference content.

    Every window ``content[i:i + k]`` followed by a symbol contributes one
    observation of ``content[i + k]``. The last k symbols have no successor
    and contribute nothing.

    Parameters
    ----------
    content : str
        Raw reference content. Characters outside ``valid_symbols`` are removed first.
    k : int
        Context width, at least 1.
    valid_symbols : str
        ASCII symbols allowed in the content.

    Returns
    -------
    ContextModel
        Immutable model.
    """
    logger = logging.getLogger(__name__)

    if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k < 1:
        raise InvalidConfiguration(f"Context width k must be an integer >= 1, got {k!r}")
    if not valid_symbols.isascii():
        raise InvalidConfiguration(f"valid_symbols must be ASCII, got {valid_symbols!r}")

    content = filter_content(content, valid_symbols)
    alphabet = extract_alphabet(content)
    if not alphabet:
        raise InvalidConfiguration(f"Reference content has no symbols from {valid_symbols!r}")
    if len(content) <= k:
        raise InsufficientDataError(
            f"Reference content of length {len(content)} is too short for context width {k}"
        )

    symbols = "".join(sorted(alphabet))
    if not code_space_fits(len(symbols), int(k)):
        raise InvalidConfiguration(
            f"Context width {k} is too large for an alphabet of {len(symbols)} symbols"
        )

    base = len(symbols) + 1
    data = encode_sequence(content, symbols)
    codes = context_codes(data, int(k), base)
    following = data[k:]

    contexts, inverse = np.unique(codes, return_inverse=True)
    counts = np.zeros((contexts.size, len(symbols)), dtype=np.int64)
    np.add.at(counts, (inverse.ravel(), following), 1)
    totals = counts.sum(axis=1)

    for array in (contexts, counts, totals):
        array.setflags(write=False)

    logger.info(
        f"Built order-{k} context model: {contexts.size} contexts, alphabet {symbols!r}, "
        f"{codes.size} observations"
    )

    return ContextModel(
        symbols=symbols,
        k=int(k),
        contexts=contexts,
        counts=counts,
        totals=totals,
        content_length=len(content),
    )


def symbol_probability(model: ContextModel, context: str, symbol: str, alpha: float) -> float:
    """Smoothed probability of ``symbol`` following ``context``."""
    alpha = check_alpha(alpha)
    if len(symbol) != 1:
        raise ValueError(f"symbol must be a single character, got {symbol!r}")

    idx = model.context_index(context)
    total = 0 if idx is None else int(model.totals[idx])
    code = model.symbols.find(symbol)
    count = 0 if idx is None or code < 0 else int(model.counts[idx, code])
    return (count + alpha) / (total + alpha * model.alphabet_size)


def symbol_bits(model: ContextModel, context: str, symbol: str, alpha: float) -> float:
    """Information cost in bits of ``symbol`` following ``context``."""
    return -math.log2(symbol_probability(model, context, symbol, alpha))


def context_distribution(model: ContextModel, context: str, alpha: float) -> Dict[str, float]:
    """Smoothed probability of every alphabet symbol after ``context``."""
    return {symbol: symbol_probability(model, context, symbol, alpha) for symbol in model.symbols}


def _window_log_probs(model: ContextModel, sequence: str, alpha: float) -> np.ndarray:
    """Natural-log probability of every symbol that follows a full context window."""
    alpha = check_alpha(alpha)
    if len(sequence) <= model.k:
        raise InsufficientDataError(
            f"Sequence of length {len(sequence)} is too short for context width {model.k}"
        )

    data = encode_sequence(sequence, model.symbols)
    codes = context_codes(data, model.k, model.base)
    following = data[model.k :]

    position = np.searchsorted(model.contexts, codes)
    position = np.minimum(position, model.contexts.size - 1)
    seen = model.contexts[position] == codes
    known = following < model.alphabet_size

    totals = np.where(seen, model.totals[position], 0)
    symbol_column = np.minimum(following, model.alphabet_size - 1)
    counts = np.where(seen & known, model.counts[position, symbol_column], 0)

    return lidstone_log_prob(counts, totals, alpha, model.alphabet_size)


def estimate_total_bits(model: ContextModel, sequence: str, alpha: float) -> float:
    """Total bits needed to encode ``sequence`` under the model."""
    return float(-np.sum(_window_log_probs(model, sequence, alpha)) / LN2)


def estimate_bits_per_character(model: ContextModel, sequence: str, alpha: float) -> np.ndarray:
    """Per-step bit costs, one per context window, in window order."""
    return -_window_log_probs(model, sequence, alpha) / LN2


def nrc_progression(model: ContextModel, sequence: str, alpha: float) -> np.ndarray:
    """
    NRC of every window step against the fixed 4-letter alphabet.

    Step j is normalized by the offset ``k + j`` of the symbol it encodes.
    """
    bits = estimate_bits_per_character(model, sequence, alpha)
    offsets = range(model.k, model.k + bits.size)
    return np.array([nrc_fixed(float(b), o) for b, o in zip(bits, offsets)], dtype=np.float64)


def score_sequence(model: ContextModel, sequence: str, alpha: float) -> float:
    """NRC score of one candidate sequence."""
    return nrc(estimate_total_bits(model, sequence, alpha), sequence)


def batch_progressions(
    model: ContextModel, database: Mapping[str, str], alpha: float, ids: Optional[Sequence[str]] = None
) -> Tuple[List[str], RaggedData, Dict[str, TaskFailure]]:
    """
    NRC progressions of several sequences packed into one RaggedData.

    A sequence that cannot be profiled is left out of the returned ids and
    recorded as a :class:`TaskFailure` instead; the others are unaffected.
    """
    logger = logging.getLogger(__name__)
    alpha = check_alpha(alpha)

    selected = list(database.keys()) if ids is None else list(ids)
    missing = [i for i in selected if i not in database]
    if missing:
        raise KeyError(f"Unknown sequence identifier(s): {missing}")

    profiled = []
    progressions = []
    failures = {}
    for identifier in selected:
        try:
            progression = nrc_progression(model, database[identifier], alpha)
        except NRCError as exc:
            failures[identifier] = TaskFailure(identifier, type(exc).__name__, str(exc))
            logger.warning(f"Failed to profile sequence {failures[identifier]}")
            continue
        profiled.append(identifier)
        progressions.append(progression)

    return profiled, ragged_from_list(progressions, dtype=np.float64), failures
