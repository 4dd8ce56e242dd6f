"""
nrcrank
==================

This package ranks candidate biological sequences by how well they are
explained by an order-k context model learned from a reference content.
The similarity measure is the Normalized Relative Compression (NRC): the
number of bits the model needs to encode a sequence, divided by the
maximum entropy of a sequence of the same length and symbol diversity.
Lower scores mean the sequence is more similar to the reference.

The top level modules expose the following key components:

``models``
    The immutable :class:`ContextModel`, its builder, the Lidstone-smoothed
    bit cost estimator, total-bit estimation, NRC scoring and per-character
    NRC progressions.

``functions``
    Numeric kernels: symbol encoding, rolling context codes and the NRC
    normalizations.

``scoring``
    Concurrent scoring of a whole sequence database into a
    :class:`ScoreBoard` that records failures explicitly.

``ranking``
    Top-N selection and a tabular view of score boards.

``io``
    Readers for reference content and FASTA databases, writers for ranked
    results and progression profiles.

``api``
    Single-call entry points and the unified configuration object.

``cli``
    The ``nrcrank`` command line interface.
"""

from nrcrank.api import RankingConfig, RankingResult, create_config, rank_sequences, run_ranking
from nrcrank.errors import (
    DegenerateNormalization,
    InsufficientDataError,
    InterruptedBatch,
    InvalidConfiguration,
    NRCError,
    TaskFailure,
)
from nrcrank.models import ContextModel, build_context_model
from nrcrank.ranking import top_n
from nrcrank.scoring import ScoreBoard, score_database

__version__ = "0.1.0"
