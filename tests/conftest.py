import os

import pytest

# Must be set before main.py reads settings at import time
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from services import PaymentEngine


@pytest.fixture
def engine() -> PaymentEngine:
    """Fresh engine with the default overwrite policy."""
    return PaymentEngine()


@pytest.fixture
def csv_file(tmp_path):
    """Write CSV text to a temporary file and return its path."""
    def _write(content: str, name: str = "transactions.csv"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path
    return _write
