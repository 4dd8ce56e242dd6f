"""
Unit tests for key computational functions in nrcrank.

These tests validate the correctness of individual functions from:
- nrcrank/functions.py
- nrcrank/models.py
- nrcrank/ranking.py
- nrcrank/io.py
"""

import io
import math

import numpy as np
import pytest

from nrcrank.api import generate_random_sequences
from nrcrank.errors import DegenerateNormalization, InsufficientDataError, InvalidConfiguration, TaskFailure
from nrcrank.functions import code_space_fits, context_codes, decode_context, encode_sequence, nrc, nrc_fixed
from nrcrank.io import read_fasta, read_profiles, read_text, write_profiles, write_ranking
from nrcrank.models import (
    batch_progressions,
    build_context_model,
    context_distribution,
    estimate_bits_per_character,
    estimate_total_bits,
    extract_alphabet,
    filter_content,
    nrc_progression,
    score_sequence,
    symbol_bits,
    symbol_probability,
)
from nrcrank.ragged import RaggedData, ragged_from_list
from nrcrank.ranking import board_frame, top_n
from nrcrank.scoring import ScoreBoard, worker_count

LOG2_2_5 = math.log2(2.5)


def test_encode_sequence_with_foreign_symbols():
    """Test that symbols outside the alphabet get the extra code"""
    encoded = encode_sequence("ACGTNa", "ACGT")
    np.testing.assert_array_equal(encoded, [0, 1, 2, 3, 4, 4])


def test_encode_sequence_non_ascii_is_foreign():
    """Test that non-ASCII characters never alias a '?' symbol"""
    encoded = encode_sequence("AC?é€", "AC?")
    np.testing.assert_array_equal(encoded, [0, 1, 2, 3, 3])

    model = build_context_model("AC?AC?AC?AC?", 2, valid_symbols="AC?")
    assert estimate_total_bits(model, "ACéAC", 1.0) == pytest.approx(estimate_total_bits(model, "ACNAC", 1.0))
    assert estimate_total_bits(model, "ACéAC", 1.0) > estimate_total_bits(model, "AC?AC", 1.0)


def test_context_codes_rolling():
    """Test rolling context codes against direct base conversion"""
    data = encode_sequence("ATCGAT", "ACGT")
    codes = context_codes(data, 2, 5)

    expected = [data[i] * 5 + data[i + 1] for i in range(len(data) - 2)]
    np.testing.assert_array_equal(codes, expected)
    assert decode_context(int(codes[0]), 2, "ACGT") == "AT"


def test_context_codes_short_input():
    """Test that no codes are produced when no window has a successor"""
    data = encode_sequence("ACG", "ACGT")
    assert context_codes(data, 3, 5).size == 0


def test_code_space_limit():
    """Test int64 code space check"""
    assert code_space_fits(4, 27)
    assert not code_space_fits(4, 28)


def test_filter_content_and_alphabet():
    """Test removal of non-member characters and alphabet extraction"""
    content = filter_content("AT-CG\nNNatcgA", "ACGT")
    assert content == "ATCGA"
    assert extract_alphabet(content) == frozenset("ACGT")
    assert extract_alphabet("") == frozenset()


def test_context_table_hand_derived(toy_model):
    """Test the context table of ATCGATCG with k=2"""
    assert toy_model.symbols == "ACGT"
    assert toy_model.alphabet_size == 4
    assert toy_model.as_table() == {
        "AT": {"C": 2},
        "TC": {"G": 2},
        "CG": {"A": 1},
        "GA": {"T": 1},
    }
    assert toy_model.total("AT") == 2
    assert toy_model.total("CG") == 1
    assert toy_model.counts_for("AA") == {}
    assert int(toy_model.totals.sum()) == 6


def test_model_is_immutable(toy_model):
    """Test that the model and its arrays cannot be modified"""
    with pytest.raises(Exception):
        toy_model.k = 3
    with pytest.raises(ValueError):
        toy_model.counts[0, 0] = 10


def test_build_rejects_bad_configuration():
    """Test configuration errors at model construction"""
    with pytest.raises(InvalidConfiguration):
        build_context_model("ACGTACGT", 0)
    with pytest.raises(InvalidConfiguration):
        build_context_model("NNNN", 1)
    with pytest.raises(InvalidConfiguration):
        build_context_model("ACGTACGT" * 10, 40)
    with pytest.raises(InsufficientDataError):
        build_context_model("ACGT", 4)
    with pytest.raises(InsufficientDataError):
        build_context_model("AC-GT-", 4)


def test_symbol_probability_formula(toy_model):
    """Test Lidstone estimates for seen and unseen context/symbol pairs"""
    assert symbol_probability(toy_model, "AT", "C", 1.0) == pytest.approx(3 / 6)
    assert symbol_probability(toy_model, "AT", "A", 1.0) == pytest.approx(1 / 6)
    assert symbol_probability(toy_model, "CG", "A", 1.0) == pytest.approx(2 / 5)
    assert symbol_probability(toy_model, "CG", "T", 0.5) == pytest.approx(0.5 / 3)
    assert symbol_bits(toy_model, "AT", "C", 1.0) == pytest.approx(1.0)


@pytest.mark.parametrize("alpha", [0.01, 0.5, 1.0, 3.0])
@pytest.mark.parametrize("context", ["AT", "TC", "CG", "GA", "AA", "GG"])
def test_distribution_sums_to_one(toy_model, context, alpha):
    """Test that smoothed probabilities over the alphabet sum to 1"""
    distribution = context_distribution(toy_model, context, alpha)
    assert set(distribution) == set("ACGT")
    assert sum(distribution.values()) == pytest.approx(1.0)


def test_unseen_context_is_uniform(toy_model):
    """Test that a never observed context gives 1/|alphabet| for every symbol"""
    for alpha in (0.1, 1.0, 7.0):
        for symbol in "ACGT":
            assert symbol_probability(toy_model, "TT", symbol, alpha) == pytest.approx(0.25)


def test_probability_rejects_bad_arguments(toy_model):
    """Test argument validation of the estimator"""
    with pytest.raises(InvalidConfiguration):
        symbol_probability(toy_model, "AT", "C", 0.0)
    with pytest.raises(InvalidConfiguration):
        symbol_probability(toy_model, "AT", "C", -1.0)
    with pytest.raises(InvalidConfiguration):
        symbol_probability(toy_model, "AT", "C", float("nan"))
    with pytest.raises(ValueError):
        symbol_probability(toy_model, "ATC", "C", 1.0)
    with pytest.raises(ValueError):
        symbol_probability(toy_model, "AT", "CG", 1.0)


def test_estimate_total_bits_hand_derived(toy_model):
    """Test total bits of the reference itself"""
    bits = estimate_total_bits(toy_model, "ATCGATCG", 1.0)
    assert bits == pytest.approx(4.0 + 2 * LOG2_2_5)


def test_estimate_total_bits_foreign_symbols(toy_model):
    """Test that foreign symbols give zero counts and unseen contexts"""
    bits = estimate_total_bits(toy_model, "ATNCG", 1.0)
    assert bits == pytest.approx(math.log2(6) + 2.0 + 2.0)


def test_bits_per_character_matches_total(toy_model):
    """Test per-step costs in window order and their sum"""
    per_step = estimate_bits_per_character(toy_model, "ATCGATCG", 1.0)
    np.testing.assert_allclose(per_step, [1.0, 1.0, LOG2_2_5, LOG2_2_5, 1.0, 1.0])
    assert per_step.sum() == pytest.approx(estimate_total_bits(toy_model, "ATCGATCG", 1.0))


def test_short_sequence_is_insufficient(toy_model):
    """Test sequences not longer than k"""
    with pytest.raises(InsufficientDataError):
        estimate_total_bits(toy_model, "AT", 1.0)
    with pytest.raises(InsufficientDataError):
        estimate_bits_per_character(toy_model, "A", 1.0)


def test_nrc_normalization():
    """Test NRC against the distinct symbols of the sequence"""
    assert nrc(16.0, "ATCGATCG") == pytest.approx(16.0 / (8 * 2))
    assert nrc(8.0, "ACACACAC") == pytest.approx(1.0)
    with pytest.raises(DegenerateNormalization):
        nrc(3.0, "AAAA")


def test_nrc_fixed_normalization():
    """Test NRC against the fixed 4-letter alphabet"""
    assert nrc_fixed(2.0, 1) == pytest.approx(1.0)
    assert nrc_fixed(3.0, 6) == pytest.approx(0.25)
    with pytest.raises(ValueError):
        nrc_fixed(-0.5, 4)
    with pytest.raises(ValueError):
        nrc_fixed(1.0, 0)


def test_score_sequence_hand_derived(toy_model):
    """Test full NRC of the reference under its own model"""
    score = score_sequence(toy_model, "ATCGATCG", 1.0)
    assert score == pytest.approx((4.0 + 2 * LOG2_2_5) / 16.0)


def test_score_sequence_degenerate(toy_model):
    """Test that a single-symbol sequence is reported, not scored as infinity"""
    with pytest.raises(DegenerateNormalization):
        score_sequence(toy_model, "AAAAAA", 1.0)


def test_nrc_progression_hand_derived(toy_model):
    """Test per-step NRC with growing offsets starting at k"""
    progression = nrc_progression(toy_model, "ATCGATCG", 1.0)
    expected = [1.0 / 4, 1.0 / 6, LOG2_2_5 / 8, LOG2_2_5 / 10, 1.0 / 12, 1.0 / 14]
    np.testing.assert_allclose(progression, expected)

    again = nrc_progression(toy_model, "ATCGATCG", 1.0)
    np.testing.assert_array_equal(progression, again)


def test_batch_progressions(toy_model):
    """Test progressions of several sequences packed into RaggedData"""
    database = {"a": "ATCGATCG", "b": "ATCGA", "c": "GGGG"}
    ids, profiles, failures = batch_progressions(toy_model, database, 1.0, ids=["a", "b"])

    assert ids == ["a", "b"]
    assert not failures
    assert isinstance(profiles, RaggedData)
    assert profiles.get_length(0) == 6
    assert profiles.get_length(1) == 3
    np.testing.assert_allclose(profiles.get_slice(1), nrc_progression(toy_model, "ATCGA", 1.0))

    with pytest.raises(KeyError):
        batch_progressions(toy_model, database, 1.0, ids=["zzz"])


def test_batch_progressions_isolates_short_sequences(toy_model):
    """Test that a sequence too short to profile does not affect the others"""
    database = {"good": "ATCGATCG", "short": "AT", "also_good": "ATCGA"}
    ids, profiles, failures = batch_progressions(toy_model, database, 1.0)

    assert ids == ["good", "also_good"]
    assert profiles.num_rows == 2
    np.testing.assert_allclose(profiles.get_slice(0), nrc_progression(toy_model, "ATCGATCG", 1.0))
    assert set(failures) == {"short"}
    assert failures["short"].kind == "InsufficientDataError"


def test_training_substring_beats_random(reference, reference_model):
    """Test that a substring of the reference compresses better than random sequences"""
    substring = reference[3000:4000]
    own = score_sequence(reference_model, substring, 0.1)

    for sequence in generate_random_sequences(5, 1000, seed=99).values():
        assert own < score_sequence(reference_model, sequence, 0.1)


def test_ragged_from_list_basic():
    """Test RaggedData creation and row access"""
    ragged = ragged_from_list([np.array([1.0, 2.0]), np.array([]), np.array([3.0])])
    assert ragged.num_rows == 3
    assert len(ragged) == 3
    assert ragged.get_length(1) == 0
    np.testing.assert_array_equal(ragged.get_slice(2), [3.0])
    assert [row.size for row in ragged] == [2, 0, 1]

    empty = ragged_from_list([])
    assert empty.num_rows == 0


def test_ragged_rejects_bad_offsets():
    """Test RaggedData offset validation"""
    with pytest.raises(ValueError):
        RaggedData(np.zeros(3), np.array([0, 2], dtype=np.int64))


def test_worker_count():
    """Test worker sizing from database size and available cores"""
    assert worker_count(5, 8) == 1
    assert worker_count(100, 8) == 7
    assert worker_count(30, 16) == 3
    assert worker_count(0, 1) == 1
    assert worker_count(1000, 1) == 1
    assert worker_count(10) >= 1


def test_top_n_ordering_and_truncation():
    """Test ascending order, ties by identifier and truncation"""
    scores = {"d": 0.9, "b": 0.5, "a": 0.5, "c": 0.1}

    assert top_n(scores, 0) == []
    assert top_n(scores, 2) == [("c", 0.1), ("a", 0.5)]
    assert top_n(scores, 10) == [("c", 0.1), ("a", 0.5), ("b", 0.5), ("d", 0.9)]

    with pytest.raises(ValueError):
        top_n(scores, -1)


def test_top_n_is_idempotent():
    """Test that ranking a ranked list returns it unchanged"""
    scores = {f"s{i}": float((i * 7) % 5) for i in range(20)}
    ranked = top_n(scores, 8)
    assert top_n(ranked, 8) == ranked
    assert len(ranked) == 8


def test_top_n_ignores_failures():
    """Test that failed entries never appear in the ranking"""
    board = ScoreBoard(
        scores={"x": 0.4, "y": 0.2},
        failures={"z": TaskFailure("z", "DegenerateNormalization", "one symbol")},
    )
    assert top_n(board, 5) == [("y", 0.2), ("x", 0.4)]


def test_board_frame():
    """Test tabular view of a score board"""
    board = ScoreBoard(
        scores={"x": 0.4, "y": 0.2},
        failures={"z": TaskFailure("z", "InsufficientDataError", "too short")},
        missing=("w",),
    )
    df = board_frame(board)

    assert list(df.columns) == ["identifier", "score", "status", "error", "rank"]
    assert list(df["identifier"][:2]) == ["y", "x"]
    assert list(df["rank"][:2]) == [1, 2]
    assert df.set_index("identifier").loc["z", "status"] == "failed"
    assert "too short" in df.set_index("identifier").loc["z", "error"]
    assert df.set_index("identifier").loc["w", "status"] == "missing"


def test_board_status():
    """Test status lookup of a score board"""
    board = ScoreBoard(scores={"x": 0.4}, failures={"z": TaskFailure("z", "ValueError", "bad")}, missing=("w",))
    assert board.status("x") == "ok"
    assert board.status("z") == "failed"
    assert board.status("w") == "missing"
    assert board.accounted == 2
    assert not board.complete
    with pytest.raises(KeyError):
        board.status("nope")


def test_task_failure_fields():
    """Test failure marker fields and message"""
    failure = TaskFailure("seq_1", "DegenerateNormalization", "one symbol")
    assert failure.identifier == "seq_1"
    assert failure.kind == "DegenerateNormalization"
    assert str(failure) == "seq_1: DegenerateNormalization: one symbol"


def test_read_fasta(temp_dir):
    """Test FASTA parsing into an identifier mapping"""
    path = temp_dir / "db.fa"
    path.write_text(">seq_1 first\nACGT\nACGT\n\n>seq_2\nTTTT\n")

    assert read_fasta(path) == {"seq_1": "ACGTACGT", "seq_2": "TTTT"}


def test_read_fasta_duplicate_identifier(temp_dir):
    """Test that duplicate identifiers are rejected"""
    path = temp_dir / "db.fa"
    path.write_text(">a\nACGT\n>a\nTTTT\n")

    with pytest.raises(ValueError):
        read_fasta(path)


def test_read_text(temp_dir):
    """Test reading reference content without headers and line breaks"""
    path = temp_dir / "meta.txt"
    path.write_text(">reference\nACGT\nTTGA\n")

    assert read_text(path) == "ACGTTTGA"


def test_write_ranking():
    """Test score<TAB>identifier rendering"""
    handle = io.StringIO()
    write_ranking([("b", 0.25), ("a", 0.5)], handle)
    assert handle.getvalue() == "0.25\tb\n0.5\ta\n"


def test_profiles_file(temp_dir):
    """Test writing and reading progression profiles"""
    profiles = ragged_from_list([np.array([0.25, 0.5]), np.array([1.0])])
    path = temp_dir / "profiles.txt"
    with open(path, "w") as handle:
        write_profiles(["a", "b"], profiles, handle)

    ids, loaded = read_profiles(path)
    assert ids == ["a", "b"]
    np.testing.assert_allclose(loaded.data, profiles.data)
    np.testing.assert_array_equal(loaded.offsets, profiles.offsets)


if __name__ == "__main__":
    pytest.main([__file__])
