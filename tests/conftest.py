import os
import sys

import pytest

# Ensure that the repository root is in the PYTHONPATH for test discovery
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)


@pytest.fixture(autouse=True)
def clear_ingest_key(monkeypatch):
    """Keep the host's INGEST_KEY from leaking into tests."""
    monkeypatch.delenv('INGEST_KEY', raising=False)
