from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Sequence, TextIO, Tuple

import numpy as np

from nrcrank.ragged import RaggedData, ragged_from_list


def read_text(path: str | Path) -> str:
    """Read a reference content file as one string, dropping line breaks and '>' header lines."""
    parts: List[str] = []
    with open(path, "r") as handle:
        for line in handle:
            line = line.strip()
            if not line or line.startswith(">"):
                continue
            parts.append(line)
    return "".join(parts)


def read_fasta(path: str | Path) -> Dict[str, str]:
    """Read a FASTA file into an identifier -> sequence mapping.

    The identifier is the first whitespace-separated token of the header.
    Sequence lines are joined as they are; filtering is left to the scorer.
    """
    sequences: Dict[str, str] = {}
    current_id = None
    current_parts: List[str] = []

    def flush():
        if current_id is None:
            return
        if current_id in sequences:
            raise ValueError(f"Duplicate sequence identifier in {path}: {current_id!r}")
        sequences[current_id] = "".join(current_parts)

    with open(path, "r") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            if line.startswith(">"):
                flush()
                header = line[1:].split()
                if not header:
                    raise ValueError(f"Empty FASTA header in {path}")
                current_id = header[0]
                current_parts = []
            elif current_id is None:
                raise ValueError(f"Sequence data before the first header in {path}")
            else:
                current_parts.append(line)
        flush()

    logger = logging.getLogger(__name__)
    logger.debug(f"Read {len(sequences)} sequence(s) from {path}")
    return sequences


def write_fasta(sequences: Dict[str, str], path: str | Path) -> None:
    """Write an identifier -> sequence mapping as FASTA."""
    with open(path, "w") as out:
        for identifier, sequence in sequences.items():
            out.write(f">{identifier}\n")
            out.write(f"{sequence}\n")


def write_ranking(ranked: Sequence[Tuple[str, float]], handle: TextIO) -> None:
    """Write ranked pairs as ``score<TAB>identifier`` lines."""
    for identifier, score in ranked:
        handle.write(f"{score}\t{identifier}\n")


def write_profiles(ids: Sequence[str], profiles: RaggedData, handle: TextIO) -> None:
    """Write per-sequence value profiles: a '>id' header then one comma-separated line."""
    if len(ids) != profiles.num_rows:
        raise ValueError(f"Got {len(ids)} identifier(s) for {profiles.num_rows} profile(s)")
    for identifier, row in zip(ids, profiles):
        handle.write(f">{identifier}\n")
        handle.write(",".join(f"{value:.6f}" for value in row) + "\n")


def read_profiles(path: str | Path) -> Tuple[List[str], RaggedData]:
    """Read a profile file written by :func:`write_profiles`.

    Values may be separated by commas, tabs or whitespace.
    """
    ids: List[str] = []
    rows: List[np.ndarray] = []

    with open(path, "r") as file:
        for line in file:
            line = line.strip()
            if not line:
                continue
            if line.startswith(">"):
                ids.append(line[1:].strip())
                continue

            if "," in line:
                values = [float(x) for x in line.split(",")]
            elif "\t" in line:
                values = [float(x) for x in line.split("\t")]
            else:
                values = [float(x) for x in line.split()]
            rows.append(np.array(values, dtype=np.float64))

    if len(ids) != len(rows):
        raise ValueError(f"Malformed profile file {path}: {len(ids)} header(s), {len(rows)} row(s)")

    return ids, ragged_from_list(rows, dtype=np.float64)
