from __future__ import annotations

from typing import Iterable, List, Mapping, Tuple, Union

import numpy as np
import pandas as pd

from nrcrank.scoring import ScoreBoard

ScoresLike = Union[ScoreBoard, Mapping[str, float], Iterable[Tuple[str, float]]]


def _pairs(scores: ScoresLike) -> List[Tuple[str, float]]:
    if isinstance(scores, ScoreBoard):
        return list(scores.scores.items())
    if isinstance(scores, Mapping):
        return list(scores.items())
    return [(identifier, score) for identifier, score in scores]


def top_n(scores: ScoresLike, t: int) -> List[Tuple[str, float]]:
    """
    Best ``t`` entries, ascending by score.

    Lower NRC means more similar to the reference. Equal scores are ordered
    by identifier so the result is reproducible. Only successful scores are
    ranked; failures of a ScoreBoard never appear.
    """
    if t < 0:
        raise ValueError(f"t must be >= 0, got {t}")
    ranked = sorted(_pairs(scores), key=lambda pair: (pair[1], pair[0]))
    return ranked[:t]


def board_frame(board: ScoreBoard) -> pd.DataFrame:
    """Tabular view of a ScoreBoard, one row per identifier, ranked rows first."""
    rows = [
        {"identifier": identifier, "score": score, "status": "ok", "error": ""}
        for identifier, score in board.scores.items()
    ]
    rows += [
        {"identifier": identifier, "score": np.nan, "status": "failed", "error": f"{failure.kind}: {failure.message}"}
        for identifier, failure in board.failures.items()
    ]
    rows += [
        {"identifier": identifier, "score": np.nan, "status": "missing", "error": ""} for identifier in board.missing
    ]

    df = pd.DataFrame(rows, columns=["identifier", "score", "status", "error"])
    if len(df) == 0:
        df["rank"] = pd.Series(dtype="Int64")
        return df

    df = df.sort_values(["score", "identifier"], ascending=[True, True], na_position="last").reset_index(drop=True)
    ranks = np.arange(1, len(df) + 1)
    df["rank"] = pd.array(np.where(df["status"] == "ok", ranks, 0), dtype="Int64")
    df.loc[df["status"] != "ok", "rank"] = pd.NA
    return df
