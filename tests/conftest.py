"""
Pytest configuration and common fixtures for nrcrank tests.
"""
import tempfile
from pathlib import Path

import numpy as np
import pytest

from nrcrank.models import build_context_model


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def toy_model():
    """Order-2 model of the eight-symbol reference ATCGATCG."""
    return build_context_model("ATCGATCG", 2)


@pytest.fixture(scope="session")
def reference():
    """Long random nucleotide reference with a fixed seed."""
    rng = np.random.default_rng(2024)
    return "".join(rng.choice(list("ACGT"), size=20000))


@pytest.fixture(scope="session")
def reference_model(reference):
    """Order-8 model of the random reference."""
    return build_context_model(reference, 8)
