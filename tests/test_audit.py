from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from db_ai_mcp.execute.audit import SEPARATOR, append_record, format_entry
from db_ai_mcp.models import ExecutionRecord, OperationKind

HEADER = "\n=== Query Execution ===\n"


def _record(index: int) -> ExecutionRecord:
    # Large rows make a torn write show up as a broken block
    rows = [{"writer": index, "row": n, "payload": "x" * 200} for n in range(50)]
    return ExecutionRecord(
        query=f"SELECT * FROM t{index}",
        operation=OperationKind.SELECT,
        data=rows,
        timestamp=f"2024-01-01T00:00:{index:02d}+00:00",
    )


def test_concurrent_appends_keep_blocks_whole(tmp_path: Path) -> None:
    path = tmp_path / "logs" / "output.log"
    writers = 16
    records = [_record(i) for i in range(writers)]

    with ThreadPoolExecutor(max_workers=writers) as pool:
        list(pool.map(lambda record: append_record(path, record), records))

    text = path.read_text(encoding="utf-8")
    assert text.count(HEADER) == writers
    assert text.count(SEPARATOR + "\n") == writers
    assert sorted(block for block in text.split(HEADER) if block) == sorted(
        format_entry(record)[len(HEADER) :] for record in records
    )


def test_append_creates_parent_and_accumulates(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "audit.log"

    append_record(path, _record(1))
    append_record(path, _record(2))

    text = path.read_text(encoding="utf-8")
    assert text.startswith(HEADER)
    assert text.index("t1") < text.index("t2")
