"""Unit tests for correlation ids and the logger adapter."""

import logging
import threading

import pytest

from static_server.domain.correlation_id import (
    adopt_inbound_correlation_id,
    clear_correlation_id,
    generate_correlation_id,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)


@pytest.fixture(autouse=True)
def _clean_context():
    clear_correlation_id()
    yield
    clear_correlation_id()


def test_generated_ids_are_unique() -> None:
    assert generate_correlation_id() != generate_correlation_id()


def test_ids_are_isolated_per_thread() -> None:
    set_correlation_id("main-thread")
    seen = []

    thread = threading.Thread(target=lambda: seen.append(get_correlation_id()))
    thread.start()
    thread.join()

    assert seen == [None]
    assert get_correlation_id() == "main-thread"


@pytest.mark.parametrize("value", ["abc-123", "req.42:7", "A" * 128])
def test_inbound_token_is_adopted(value: str) -> None:
    assert adopt_inbound_correlation_id(value)
    assert get_correlation_id() == value


@pytest.mark.parametrize(
    "value", ["", None, "has space", "x" * 129, "evil\r\nheader", "trailing\n"]
)
def test_inbound_garbage_is_ignored(value) -> None:
    set_correlation_id("kept")

    assert not adopt_inbound_correlation_id(value)
    assert get_correlation_id() == "kept"


def test_adapter_injects_component_and_id(caplog) -> None:
    caplog.set_level(logging.INFO)
    set_correlation_id("req-1")

    get_logger("transport.worker").info("hello", extra={"event": "greeting"})

    record = caplog.records[-1]
    assert record.correlation_id == "req-1"
    assert record.component == "transport.worker"
    assert record.event == "greeting"


def test_adapter_uses_placeholder_without_id(caplog) -> None:
    caplog.set_level(logging.INFO)

    get_logger("access").info("hello")

    assert caplog.records[-1].correlation_id == "-"
