"""Fixtures shared by the unit and integration suites."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import Iterator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"
HOST = "127.0.0.1"

SITE_FILES = {
    "index.html": "<h1>home</h1>",
    "about.html": "<h1>about</h1>",
    "404.html": "<h1>custom not found</h1>",
    "blog/index.html": "<h1>blog</h1>",
    "blog/first-post.html": "<h1>first post</h1>",
    "css/site.css": "body { color: black; }",
    "robots.txt": "User-agent: *\n",
}


class ServerProcessInfo(TypedDict):
    """A server subprocess and where to reach it."""

    base_url: str
    host: str
    port: int
    directory: Path
    process: subprocess.Popen[str]
    log_file: Path


def build_site(root: Path) -> Path:
    """Populate ``root`` with a small static site and return it."""
    for relative, content in SITE_FILES.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return root


def _stop(process: subprocess.Popen[str]) -> None:
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=5)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()


def _serve(
    workdir: Path, extra_args: list[str] | None = None
) -> Iterator[ServerProcessInfo]:
    """Run main.py against a fresh site under ``workdir`` until resumed."""
    port = reserve_port(HOST)
    directory = build_site(workdir / "site")
    log_file = workdir / "server.log"
    command = [
        sys.executable,
        str(SERVER_ENTRYPOINT),
        "--directory",
        str(directory),
        "--host",
        HOST,
        "--port",
        str(port),
        "--log-destination",
        str(log_file),
        *(extra_args or []),
    ]

    process = subprocess.Popen(  # pylint: disable=consider-using-with
        command,
        cwd=PROJECT_ROOT,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    try:
        try:
            wait_for_port(HOST, port)
        except RuntimeError:
            _stop(process)
            _, stderr = process.communicate(timeout=5)
            print(f"\nServer stderr:\n{stderr}")
            if log_file.exists():
                print(f"\nServer log:\n{log_file.read_text()}")
            raise
        yield {
            "base_url": f"http://{HOST}:{port}",
            "host": HOST,
            "port": port,
            "directory": directory,
            "process": process,
            "log_file": log_file,
        }
    finally:
        _stop(process)
        process.communicate(timeout=5)


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Repository root, where main.py lives."""

    return PROJECT_ROOT


@pytest.fixture()
def site_root(tmp_path: Path) -> Path:
    """A populated content root for in-process tests."""

    return build_site(tmp_path / "site")


@pytest.fixture()
def server_process(tmp_path_factory: pytest.TempPathFactory) -> Iterator[ServerProcessInfo]:
    """A server subprocess with debug endpoints, logging to a file."""

    yield from _serve(tmp_path_factory.mktemp("server"), ["--debug-endpoints"])


@pytest.fixture()
def launch_server(tmp_path_factory: pytest.TempPathFactory):
    """Factory starting servers with extra CLI arguments; all stopped at teardown."""

    running: list[Iterator[ServerProcessInfo]] = []

    def _launch(extra_args: list[str] | None = None) -> ServerProcessInfo:
        server = _serve(tmp_path_factory.mktemp("server"), extra_args)
        running.append(server)
        return next(server)

    yield _launch

    for server in running:
        next(server, None)


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Base URL of the ``server_process`` fixture."""

    return server_process["base_url"]
