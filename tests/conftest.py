import os
import sys
from pathlib import Path

import pytest

# Ensure the 'src' directory is on sys.path for imports in tests
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Keep test runs independent of a developer's .env / shell
os.environ.setdefault("REBASE_NODE_URL", "http://node.invalid:1984")
os.environ.setdefault("REBASE_LOG_LEVEL", "WARNING")

from tests._helpers import build_tree, lorem  # noqa: E402


@pytest.fixture
def tree_a():
    return build_tree(lorem(474000))


@pytest.fixture
def tree_b():
    return build_tree(lorem(120000, seed=b"b"))


@pytest.fixture
def tree_c():
    return build_tree(lorem(524288, seed=b"c"))
