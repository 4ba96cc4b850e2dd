import json
import logging

import pytest

import logger as ssp_logger
from SSP.ssp_events import PollEvent


@pytest.fixture
def root_logger(monkeypatch):
    root = logging.getLogger()
    saved = (root.handlers[:], root.level)
    monkeypatch.setattr(ssp_logger, "LOG_FILE", ssp_logger.LOG_FILE)
    yield root
    for handler in root.handlers:
        if handler not in saved[0]:
            handler.close()
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    logging.getLogger(ssp_logger.FRAME_LOGGER).setLevel(logging.NOTSET)


def test_log_event_is_one_json_line(caplog):
    caplog.set_level(logging.INFO)
    ev = PollEvent(0xEE, "CREDIT", channel=2, value=1000, country="EUR")
    ssp_logger.log_event(logging.getLogger("ssp.test"), ev)
    assert json.loads(caplog.records[-1].getMessage()) == {
        "event": "CREDIT", "channel": 2, "value": 1000, "country": "EUR",
    }


def test_log_event_includes_payout_values(caplog):
    caplog.set_level(logging.INFO)
    ev = PollEvent(0xD2, "DISPENSED", value=1500, values=((500, "EUR"), (1000, "EUR")))
    ssp_logger.log_event(logging.getLogger("ssp.test"), ev)
    assert json.loads(caplog.records[-1].getMessage())["values"] == [[500, "EUR"], [1000, "EUR"]]


def test_setup_logging_writes_rotating_file(tmp_path, root_logger):
    path = ssp_logger.setup_logging(str(tmp_path / "ssp.log"), "warning", trace_frames=True)
    assert root_logger.level == logging.WARNING
    assert logging.getLogger(ssp_logger.FRAME_LOGGER).level == logging.DEBUG

    logging.getLogger("ssp.test").warning("cashbox removed")
    for handler in root_logger.handlers:
        handler.flush()
    assert "cashbox removed" in (tmp_path / "ssp.log").read_text(encoding="utf-8")

    ssp_logger.purge_log()
    assert (tmp_path / "ssp.log").read_text(encoding="utf-8") == ""
    assert path == str(tmp_path / "ssp.log")
