import logging
import os

from nodewright.logging.log import EVENTS_FILE, init_logging


def _close(logger):
    for h in list(logger.handlers):
        h.close()
        logger.removeHandler(h)


def test_init_logging_writes_run_dir(tmp_path):
    base = tmp_path / "logs"
    logger, run_id, log_path = init_logging(base_dir=base, name="nwtest")
    logger.debug("poll 1 of node abc")
    for h in logger.handlers:
        h.flush()

    assert log_path.parent.parent == base
    assert log_path.parent.name.endswith(run_id[:8])
    text = log_path.read_text()
    assert f"| {run_id[:8]} | poll 1 of node abc" in text
    assert not (log_path.parent / EVENTS_FILE).exists()

    console = [h for h in logger.handlers if not isinstance(h, logging.FileHandler)]
    assert console[0].level == logging.INFO
    _close(logger)


def test_old_runs_are_pruned(tmp_path):
    base = tmp_path / "logs"
    for i, name in enumerate(["a", "b", "c"]):
        d = base / name
        d.mkdir(parents=True)
        os.utime(d, (1000 + i, 1000 + i))

    logger, _, log_path = init_logging(base_dir=base, name="nwtest", run_id="0123456789", keep_runs=2)
    _close(logger)

    assert sorted(p.name for p in base.iterdir()) == sorted(["c", log_path.parent.name])
