import json
import logging

import pytest

from ayursutra.clients.socketio_client import create_socketio_client
from ayursutra.lib.logging_config import CustomJsonFormatter, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    libraries = {
        name: (list(logging.getLogger(name).handlers), logging.getLogger(name).propagate)
        for name in ("socketio", "engineio", "aiohttp")
    }
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, (library_handlers, propagate) in libraries.items():
        library = logging.getLogger(name)
        library.handlers = library_handlers
        library.propagate = propagate
        library.setLevel(logging.NOTSET)


def test_formatter_adds_severity_and_service():
    formatter = CustomJsonFormatter("%(timestamp)s %(severity)s %(name)s %(message)s")
    record = logging.LogRecord(
        "ayursutra.test", logging.WARNING, __file__, 1, "connection lost", None, None
    )
    record.notification_id = "abc"

    output = json.loads(formatter.format(record))

    assert output["severity"] == "WARNING"
    assert output["service"] == "ayursutra-realtime"
    assert output["message"] == "connection lost"
    assert output["notification_id"] == "abc"
    assert output["timestamp"]


def test_setup_logging_emits_json(restore_logging, capsys):
    setup_logging("debug")
    logging.getLogger("ayursutra.test").debug("hello", extra={"unread": 3})

    lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
    last = json.loads(lines[-1])
    assert last["message"] == "hello"
    assert last["severity"] == "DEBUG"
    assert last["unread"] == 3
    assert logging.getLogger("socketio").level == logging.WARNING


def test_setup_logging_falls_back_to_info(restore_logging):
    setup_logging("chatty")
    assert logging.getLogger().level == logging.INFO


def test_socketio_client_factory_logs_through_given_logger(caplog):
    logger = logging.getLogger("ayursutra.test.transport")
    with caplog.at_level(logging.DEBUG, logger="ayursutra.test.transport"):
        client = create_socketio_client(logger)

    assert not client.connected
    assert [r.name for r in caplog.records if r.message == "Socket.IO client created"] == [
        "ayursutra.test.transport"
    ]
