from typing import Iterator, List

import numpy as np


class RaggedData:
    """
    Class for storing ragged (variable-length) arrays.

    Values of all rows live in one flat array; row i spans
    ``data[offsets[i]:offsets[i + 1]]``. Used to hold per-position NRC
    progressions of sequences of different lengths without padding.
    """

    def __init__(self, data: np.ndarray, offsets: np.ndarray):
        """Initialize the RaggedData object."""
        if offsets.ndim != 1 or offsets.size == 0 or offsets[0] != 0 or offsets[-1] != data.size:
            raise ValueError("offsets must start at 0 and end at data.size")
        self.data = data
        self.offsets = offsets

    def get_length(self, i: int) -> int:
        """Return the length of the i-th row."""
        return int(self.offsets[i + 1] - self.offsets[i])

    def get_slice(self, i: int) -> np.ndarray:
        """Return a view of the i-th row."""
        return self.data[self.offsets[i] : self.offsets[i + 1]]

    @property
    def num_rows(self) -> int:
        return self.offsets.size - 1

    def __len__(self) -> int:
        return self.num_rows

    def __iter__(self) -> Iterator[np.ndarray]:
        for i in range(self.num_rows):
            yield self.get_slice(i)


def ragged_from_list(data_list: List[np.ndarray], dtype=None) -> RaggedData:
    """Create RaggedData from a list of numpy arrays."""
    if dtype is None:
        dtype = data_list[0].dtype if data_list else np.float64

    if len(data_list) == 0:
        return RaggedData(np.empty(0, dtype=dtype), np.zeros(1, dtype=np.int64))

    lengths = np.fromiter((len(row) for row in data_list), dtype=np.int64, count=len(data_list))
    offsets = np.zeros(len(data_list) + 1, dtype=np.int64)
    offsets[1:] = np.cumsum(lengths)

    data = np.empty(offsets[-1], dtype=dtype)
    for i, row in enumerate(data_list):
        data[offsets[i] : offsets[i + 1]] = row

    return RaggedData(data, offsets)
