from __future__ import annotations

import logging
from pathlib import Path

from catalog_harvester.logging_conf import available_stage_logs, log_dir, stage_logger, tail_log


def test_stage_logger_writes_to_stage_file(harvester_home: Path) -> None:
    logger = stage_logger("unit")
    logger.info("unit_event", item_id=42)
    for handler in logging.getLogger("catalog_harvester.stage.unit").handlers:
        handler.flush()

    path = log_dir() / "stages" / "unit.log"
    assert log_dir() == harvester_home.resolve() / "logs"
    assert "unit.log" in [p.name for p in available_stage_logs()]
    content = path.read_text(encoding="utf-8")
    assert "unit_event" in content
    assert "42" in content


def test_tail_log_returns_last_lines(tmp_path: Path) -> None:
    path = tmp_path / "sample.log"
    path.write_text("".join(f"line {n}\n" for n in range(10)), encoding="utf-8")
    assert tail_log(path, 3) == ["line 7\n", "line 8\n", "line 9\n"]
    assert tail_log(tmp_path / "missing.log") == []
