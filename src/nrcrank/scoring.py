"""
scoring
=======

Concurrent NRC scoring of a sequence database against one shared
:class:`~nrcrank.models.ContextModel`.  Every database entry is an
independent task; results are gathered in completion order into a
:class:`ScoreBoard`, which keeps successful scores and failure markers
apart so that "no result" is never confused with a score.
"""

from __future__ import annotations

import logging
import math
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Tuple

from joblib import Parallel, cpu_count, delayed

from nrcrank.errors import InterruptedBatch, TaskFailure
from nrcrank.models import ContextModel, check_alpha, score_sequence

POLL_INTERVAL = 0.05

Observer = Callable[[str, Optional[float], Optional[TaskFailure]], None]


def worker_count(database_size: int, available_parallelism: Optional[int] = None) -> int:
    """
    Number of workers for a batch.

    One worker per ten sequences, never more than the available cores minus
    the one left for collecting results, and never fewer than one.
    """
    if available_parallelism is None:
        available_parallelism = cpu_count()
    return max(1, min(database_size // 10, available_parallelism - 1))


@dataclass
class ScoreBoard:
    """Result of one batch run.

    Attributes
    ----------
    scores : dict
        Identifier -> NRC score for every entry scored successfully.
    failures : dict
        Identifier -> :class:`TaskFailure` marker for every entry that failed.
    missing : tuple
        Identifiers with neither a score nor a failure (interrupted batches only).
    """

    scores: Dict[str, float] = field(default_factory=dict)
    failures: Dict[str, TaskFailure] = field(default_factory=dict)
    missing: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.scores)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self.scores

    @property
    def accounted(self) -> int:
        """Entries with either a score or a failure marker."""
        return len(self.scores) + len(self.failures)

    @property
    def complete(self) -> bool:
        return not self.missing

    def status(self, identifier: str) -> str:
        if identifier in self.scores:
            return "ok"
        if identifier in self.failures:
            return "failed"
        if identifier in self.missing:
            return "missing"
        raise KeyError(identifier)


def _score_entry(
    model: ContextModel, identifier: str, sequence: str, alpha: float
) -> Tuple[str, Optional[float], Optional[TaskFailure]]:
    """Score one entry, turning any error into a failure marker."""
    try:
        score = score_sequence(model, sequence, alpha)
    except Exception as exc:
        return identifier, None, TaskFailure(identifier, type(exc).__name__, str(exc))

    if not math.isfinite(score):
        return identifier, None, TaskFailure(identifier, "NonFiniteScore", f"score evaluated to {score}")
    return identifier, score, None


def _collect(
    model: ContextModel,
    database: Mapping[str, str],
    alpha: float,
    n_jobs: int,
    backend: str,
    inbox: queue.Queue,
    stop: threading.Event,
) -> None:
    """Run the batch and forward results to ``inbox`` until exhausted or ``stop`` is set."""
    try:
        results = Parallel(n_jobs=n_jobs, backend=backend, return_as="generator_unordered")(
            delayed(_score_entry)(model, identifier, sequence, alpha) for identifier, sequence in database.items()
        )
        try:
            for item in results:
                if stop.is_set():
                    break
                inbox.put(("result", item))
        finally:
            results.close()
    except Exception as exc:
        inbox.put(("error", exc))
    finally:
        inbox.put(("done", None))


def score_database(
    model: ContextModel,
    database: Mapping[str, str],
    alpha: float,
    n_jobs: Optional[int] = None,
    backend: str = "loky",
    cancel: Optional[threading.Event] = None,
    observer: Optional[Observer] = None,
) -> ScoreBoard:
    """
    Score every sequence of a database concurrently.

    Parameters
    ----------
    model : ContextModel
        Shared, read-only reference model.
    database : Mapping[str, str]
        Identifier -> sequence.
    alpha : float
        Smoothing parameter, > 0.
    n_jobs : int, optional
        Number of workers. Defaults to :func:`worker_count` of the database size.
    backend : str
        joblib backend, 'loky' (processes) or 'threading'.
    cancel : threading.Event, optional
        Polled while waiting for results; once set, the wait is abandoned
        and :class:`InterruptedBatch` is raised.
    observer : callable, optional
        Called with ``(identifier, score, failure)`` for each collected result.

    Returns
    -------
    ScoreBoard
        One entry (score or failure) per database key.

    Raises
    ------
    InterruptedBatch
        If cancelled or interrupted before every entry was accounted for.
    """
    logger = logging.getLogger(__name__)
    alpha = check_alpha(alpha)

    board = ScoreBoard()
    if not database:
        return board

    if cancel is not None and cancel.is_set():
        board.missing = tuple(database.keys())
        raise InterruptedBatch(board)

    if n_jobs is None:
        n_jobs = worker_count(len(database))
    logger.info(f"Scoring {len(database)} sequence(s) with {n_jobs} worker(s), backend '{backend}'")

    inbox = queue.Queue()
    stop = threading.Event()
    collector = threading.Thread(
        target=_collect,
        args=(model, database, alpha, n_jobs, backend, inbox, stop),
        name="nrcrank-collector",
        daemon=True,
    )
    collector.start()

    interrupted = False
    try:
        while True:
            if cancel is not None and cancel.is_set() and board.accounted < len(database):
                interrupted = True
                break
            try:
                kind, payload = inbox.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue

            if kind == "done":
                break
            if kind == "error":
                raise payload

            identifier, score, failure = payload
            if failure is None:
                board.scores[identifier] = score
            else:
                board.failures[identifier] = failure
                logger.warning(f"Failed to score sequence {failure}")

            if observer is not None:
                observer(identifier, score, failure)
    except KeyboardInterrupt:
        interrupted = True
    finally:
        stop.set()

    if interrupted:
        board.missing = tuple(i for i in database if i not in board.scores and i not in board.failures)
        logger.error(f"Batch interrupted: {board.accounted} of {len(database)} sequence(s) accounted for")
        raise InterruptedBatch(board)

    collector.join()
    logger.info(f"Scored {len(board.scores)} sequence(s), {len(board.failures)} failure(s)")
    return board
