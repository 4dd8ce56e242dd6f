import functools
import math

import numpy as np
from numba import njit

from nrcrank.errors import DegenerateNormalization

LN2 = math.log(2.0)
FIXED_ALPHABET_SIZE = 4
_INT64_MAX = np.iinfo(np.int64).max


@functools.lru_cache(maxsize=32)
def translation_table(symbols: str) -> bytes:
    """Byte translation table mapping each symbol to its index and everything else to ``len(symbols)``."""
    foreign = len(symbols)
    table = bytearray([foreign] * 256)
    for code, char in enumerate(symbols.encode("ascii")):
        table[char] = code
    return bytes(table)


def encode_sequence(sequence: str, symbols: str) -> np.ndarray:
    """Integer-encode a sequence over ``symbols``; foreign characters get the code ``len(symbols)``."""
    points = np.frombuffer(sequence.encode("utf-32-le", errors="surrogatepass"), dtype="<u4")
    table = np.frombuffer(translation_table(symbols), dtype=np.uint8)
    return np.where(points < 256, table[np.minimum(points, 255)], len(symbols)).astype(np.int64)


def decode_context(code: int, k: int, symbols: str) -> str:
    """Convert an integer context code back to its string form."""
    base = len(symbols) + 1
    chars = []
    for _ in range(k):
        code, digit = divmod(int(code), base)
        chars.append(symbols[digit] if digit < len(symbols) else "?")
    return "".join(reversed(chars))


def code_space_fits(n_symbols: int, k: int) -> bool:
    """Return True if every context code of width k fits in int64."""
    return (n_symbols + 1) ** k <= _INT64_MAX


@njit(cache=True)
def context_codes(data, k, base):
    """
    Rolling integer codes of every context window.

    Element i encodes ``data[i:i + k]`` in the given base. Only windows that
    have a following symbol are produced, so the output has
    ``len(data) - k`` elements (or none).
    """
    n_windows = data.shape[0] - k
    if n_windows <= 0:
        return np.empty(0, dtype=np.int64)

    high = 1
    for _ in range(k - 1):
        high *= base

    codes = np.empty(n_windows, dtype=np.int64)
    code = 0
    for j in range(k):
        code = code * base + data[j]

    for i in range(n_windows):
        codes[i] = code
        code = (code - data[i] * high) * base + data[i + k]

    return codes


def lidstone_log_prob(counts, totals, alpha: float, n_symbols: int):
    """Natural-log Lidstone estimate ``ln((count + alpha) / (total + alpha * n_symbols))``."""
    return np.log((counts + alpha) / (totals + alpha * n_symbols))


def log2(value: float) -> float:
    return math.log(value) / LN2


def count_distinct(sequence: str) -> int:
    """Number of distinct characters in a sequence."""
    return len(set(sequence))


def nrc(bits: float, sequence: str) -> float:
    """
    Normalized Relative Compression of a whole sequence.

    The denominator uses the number of distinct symbols of the sequence
    itself, so a sequence made of a single repeated symbol has no defined
    NRC.
    """
    unique = count_distinct(sequence)
    if unique <= 1:
        raise DegenerateNormalization(
            f"NRC is undefined for a sequence with {unique} distinct symbol(s) (length {len(sequence)})"
        )
    return bits / (len(sequence) * log2(unique))


def nrc_fixed(bits: float, length: int) -> float:
    """NRC normalized against the canonical 4-letter nucleotide alphabet."""
    if length <= 0:
        raise ValueError(f"length must be positive, got {length}")
    if bits < 0:
        raise ValueError(f"Bit estimate must be non-negative, got {bits}")
    return bits / (length * log2(FIXED_ALPHABET_SIZE))
