"""
Error types raised by nrcrank.

Configuration and insufficient-data errors are fatal for a whole run.
Per-sequence errors are recorded against the sequence identifier by the
batch scorer and never abort sibling computations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nrcrank.scoring import ScoreBoard


class NRCError(Exception):
    """Base class for all nrcrank errors."""


class InvalidConfiguration(NRCError, ValueError):
    """Raised for k < 1, alpha <= 0, an empty alphabet or an unusable symbol set."""


class InsufficientDataError(NRCError, ValueError):
    """Raised when a content or candidate sequence is not longer than the context width."""


class DegenerateNormalization(NRCError, ArithmeticError):
    """Raised when NRC is undefined because a sequence has a single distinct symbol."""


class TaskFailure(NRCError):
    """
    Marker for a batch entry that could not be scored.

    Instances are stored in :attr:`ScoreBoard.failures` rather than raised.
    All state lives in ``args`` so markers survive pickling between worker
    processes.
    """

    def __init__(self, identifier: str, kind: str, message: str):
        super().__init__(identifier, kind, message)

    @property
    def identifier(self) -> str:
        return self.args[0]

    @property
    def kind(self) -> str:
        return self.args[1]

    @property
    def message(self) -> str:
        return self.args[2]

    def __str__(self) -> str:
        return f"{self.identifier}: {self.kind}: {self.message}"


class InterruptedBatch(NRCError):
    """
    Raised when batch collection is cancelled before every entry is accounted for.

    Attributes
    ----------
    board : ScoreBoard
        Partial results. ``board.missing`` lists the identifiers that have
        neither a score nor a failure marker.
    """

    def __init__(self, board: "ScoreBoard"):
        super().__init__(f"Batch interrupted with {len(board.missing)} sequence(s) unscored")
        self.board = board

    @property
    def missing(self) -> tuple:
        return self.board.missing
