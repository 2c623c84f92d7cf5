# tests/test_logging_setup.py

from __future__ import annotations

import logging
from types import SimpleNamespace

import pytest

from taskboard.logging_setup import ConsoleFilter, level_from_name, setup_logging


@pytest.fixture()
def root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def _own_handlers(root: logging.Logger) -> list[logging.Handler]:
    return [h for h in root.handlers if getattr(h, "_taskboard_handler", False)]


def test_setup_logging_uses_settings_levels_and_file(tmp_path, root_logger) -> None:
    settings = SimpleNamespace(
        app_name="board",
        data_dir=tmp_path / "data",
        log_level="WARNING",
        file_log_level="debug",
    )
    log_file = setup_logging(settings)

    assert log_file == tmp_path / "data" / "board.log"
    own = _own_handlers(root_logger)
    assert sorted(h.level for h in own) == [logging.DEBUG, logging.WARNING]
    assert root_logger.level == logging.DEBUG

    logging.getLogger("taskboard.recurring.store").debug("row written")
    for h in own:
        h.flush()
    assert "taskboard.recurring.store: row written" in log_file.read_text(encoding="utf-8")


def test_setup_logging_replaces_only_its_own_handlers(tmp_path, root_logger) -> None:
    foreign = logging.NullHandler()
    root_logger.addHandler(foreign)
    settings = SimpleNamespace(app_name="board", data_dir=tmp_path, log_level="INFO", file_log_level="INFO")

    setup_logging(settings)
    setup_logging(settings)

    assert len(_own_handlers(root_logger)) == 2
    assert foreign in root_logger.handlers


def test_console_filter_keeps_store_chatter_in_the_file() -> None:
    f = ConsoleFilter()
    assert not f.filter(_record("taskboard.recurring.store", logging.INFO))
    assert not f.filter(_record("taskboard.recurring.store", logging.DEBUG))
    assert f.filter(_record("taskboard.recurring.store", logging.WARNING))
    assert f.filter(_record("taskboard.recurring.orchestrator", logging.INFO))
    assert f.filter(_record("taskboard", logging.DEBUG))
    assert not f.filter(_record("taskboardx", logging.WARNING))
    assert not f.filter(_record("dotenv.main", logging.WARNING))
    assert f.filter(_record("dotenv.main", logging.ERROR))


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("debug", logging.DEBUG),
        (" Warning ", logging.WARNING),
        ("15", 15),
        ("bogus", logging.INFO),
        ("", logging.INFO),
        (None, logging.INFO),
    ],
)
def test_level_from_name(name, expected) -> None:
    assert level_from_name(name) == expected
