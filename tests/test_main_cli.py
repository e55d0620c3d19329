"""Tests for main.py -- port selection and launcher wiring."""

from __future__ import annotations

import socket
from unittest.mock import patch

import main


def _occupied_port() -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    return sock


def test_free_port_is_kept() -> None:
    with patch.object(main, "_port_is_free", return_value=True):
        assert main.find_available_port("127.0.0.1", 3000, 3001) == 3000


def test_busy_port_moves_up() -> None:
    busy = _occupied_port()
    try:
        port = busy.getsockname()[1]
        chosen = main.find_available_port("127.0.0.1", port, port + 5)
        assert chosen != port
        assert port < chosen <= port + 15
    finally:
        busy.close()


def test_nothing_free_falls_back() -> None:
    with patch.object(main, "_port_is_free", return_value=False):
        assert main.find_available_port("127.0.0.1", 3000, 3001) == 3001


def test_main_runs_uvicorn_on_chosen_port() -> None:
    with patch.object(main, "find_available_port", return_value=4321), patch.object(main.uvicorn, "run") as run:
        main.main(["--host", "127.0.0.1", "--port", "4000"])
    run.assert_called_once_with("asgi:app", host="127.0.0.1", port=4321, reload=False)


def test_free_port_above_fallback_range_is_kept() -> None:
    with patch.object(main, "_port_is_free", return_value=True):
        assert main.find_available_port("127.0.0.1", 8080, 3001) == 8080


def test_busy_port_above_fallback_range_moves_up() -> None:
    with patch.object(main, "_port_is_free", side_effect=lambda host, port: port != 8080):
        assert main.find_available_port("127.0.0.1", 8080, 3001) == 8081
