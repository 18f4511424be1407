import sys
from pathlib import Path

import pytest

project_root = Path(__file__).resolve().parents[1]
src_path = project_root / "src"
for path in (src_path, project_root):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from chesslog.config import get_settings  # noqa: E402
from chesslog.db.duckdb_store import get_connection, init_schema  # noqa: E402
from chesslog.db.repositories import build_repositories  # noqa: E402


@pytest.fixture
def settings(tmp_path):
    return get_settings(
        username="tester",
        duckdb_path=tmp_path / "chesslog.duckdb",
        job_time_budget_s=3600,
        callback_delay_s=0,
        max_retries=3,
    )


@pytest.fixture
def repos(settings):
    conn = get_connection(settings.duckdb_path)
    init_schema(conn)
    yield build_repositories(conn)
    conn.close()
