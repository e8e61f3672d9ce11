import random
from pathlib import Path

import pytest

from factorio_supervisor.server import FactorioServer

FILE_DIR = Path(__file__).parent / "file"


@pytest.fixture
def file_dir() -> Path:
    return FILE_DIR


@pytest.fixture
def write_dir(tmp_path: Path) -> Path:
    return tmp_path / "write"


@pytest.fixture
def server(write_dir: Path) -> FactorioServer:
    """A server pointing at the fixture install, with a seeded random source."""
    return FactorioServer(FILE_DIR / "factorio", write_dir, {"rng": random.Random(1234)})
