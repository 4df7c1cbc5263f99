"""Tests for shared.diagnostics helpers."""

import logging
from types import SimpleNamespace

import psutil

import shared.diagnostics as diagnostics


def test_get_memory_info_direct():
    info = diagnostics.get_memory_info()
    assert 'rss_mb' in info
    assert info['total_mb'] > 0


def test_get_connection_info_direct():
    info = diagnostics.get_connection_info()
    assert 'error' in info or info['py_threads'] >= 1


def test_get_memory_info_with_dummy_process(monkeypatch):
    """get_memory_info should convert psutil byte counts to MB."""

    class DummyProcess:
        def memory_info(self):
            return SimpleNamespace(rss=1024 * 1024, vms=2 * 1024 * 1024)

    monkeypatch.setattr(diagnostics.psutil, 'Process', lambda: DummyProcess())
    monkeypatch.setattr(
        diagnostics.psutil,
        'virtual_memory',
        lambda: SimpleNamespace(total=10 * 1024 * 1024, available=4 * 1024 * 1024, percent=60),
    )

    info = diagnostics.get_memory_info()

    assert info == {
        'rss_mb': 1.0,
        'vms_mb': 2.0,
        'total_mb': 10.0,
        'available_mb': 4.0,
        'used_percent': 60,
    }


def test_get_memory_info_psutil_error(monkeypatch):
    def broken():
        raise psutil.AccessDenied(pid=1)

    monkeypatch.setattr(diagnostics.psutil, 'Process', broken)

    info = diagnostics.get_memory_info()

    assert 'Failed to get memory info' in info['error']


def test_get_connection_info_with_dummy_process(monkeypatch):
    class DummyProcess:
        def net_connections(self):
            return ['conn1', 'conn2']

        def num_threads(self):
            return 4

    monkeypatch.setattr(diagnostics.psutil, 'Process', lambda: DummyProcess())

    info = diagnostics.get_connection_info()

    assert info['connections'] == 2
    assert info['os_threads'] == 4
    assert info['py_threads'] >= 1


def test_log_memory_usage(monkeypatch, caplog):
    monkeypatch.setattr(
        diagnostics,
        'get_memory_info',
        lambda: {'rss_mb': 1, 'available_mb': 2},
    )

    with caplog.at_level(logging.INFO):
        diagnostics.log_memory_usage('after 64 tiles')

    assert 'Memory (after 64 tiles): rss=1MB available=2MB' in caplog.text


def test_log_memory_usage_with_error(monkeypatch, caplog):
    monkeypatch.setattr(diagnostics, 'get_memory_info', lambda: {'error': 'boom'})

    with caplog.at_level(logging.INFO):
        diagnostics.log_memory_usage()

    assert 'rss=N/AMB' in caplog.text


def test_log_request_diagnostics(monkeypatch, caplog):
    monkeypatch.setattr(diagnostics, 'get_connection_info', lambda: {'connections': 3, 'py_threads': 2})

    with caplog.at_level(logging.WARNING):
        diagnostics.log_request_diagnostics('all tiles failed z=9')

    assert 'Diagnostics [all tiles failed z=9]' in caplog.text
    assert 'connections=3 threads=2' in caplog.text


def test_setup_logging_with_file(tmp_path):
    log_file = tmp_path / 'logs' / 'run.log'
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    try:
        diagnostics.setup_logging(logging.DEBUG, log_file)
        logging.getLogger('tiles.fetcher').debug('hello from the fetcher')
        for handler in root.handlers:
            handler.flush()

        assert root.level == logging.DEBUG
        text = log_file.read_text(encoding='utf-8')
        assert 'tiles.fetcher - DEBUG - hello from the fetcher' in text
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
