import os
import sys

import pytest
import torch

# Ensure 'src' is on sys.path for local runs
src_path = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if os.path.isdir(src_path) and src_path not in sys.path:
    sys.path.insert(0, src_path)


def pytest_runtest_setup(item) -> None:
    # Set a default seed for determinism unless a test overrides it
    torch.manual_seed(0)


@pytest.fixture
def generator() -> torch.Generator:
    return torch.Generator().manual_seed(1234)
