"""
Shared fixtures: a stand-in for wkhtmltopdf.

The fake renderer follows the same stream protocol (HTML on stdin, PDF on stdout,
diagnostics on stderr, trailing "- -" arguments) and is steered by its own flags:

    --mode fixed|cat|stream|cwd|args   what to write to stdout (default: fixed)
    --exit N                           exit code (default: 0)
    --last-line TEXT                   final stderr line
    --lines N                          emit N "progress i" stderr lines first
    --progress N                       emit N "[i/N]" updates, each ended by a bare CR
    --sleep S                          sleep S seconds before producing output
    --pid-file PATH                    record the process id
"""

import os
import stat
import sys
from pathlib import Path

import pytest
from loguru import logger

FAKE_PDF = b"%PDF-1.4\n% fake renderer output\n%%EOF\n"

FAKE_RENDERER_SCRIPT = r'''
import os
import sys
import time

FAKE_PDF = b"%PDF-1.4\n% fake renderer output\n%%EOF\n"

args = sys.argv[1:]
if args[-2:] != ["-", "-"]:
    sys.stderr.write("expected trailing '- -' arguments\n")
    sys.exit(64)
args = args[:-2]


def option(name, default=None):
    return args[args.index(name) + 1] if name in args else default


pid_file = option("--pid-file")
if pid_file:
    with open(pid_file, "w") as f:
        f.write(str(os.getpid()))

for i in range(int(option("--lines", "0"))):
    sys.stderr.write(f"progress {i}\n")
    sys.stderr.flush()

progress = int(option("--progress", "0"))
for i in range(1, progress + 1):
    sys.stderr.write(f"[{i}/{progress}]\r")
    sys.stderr.flush()

mode = option("--mode", "fixed")
stdin = sys.stdin.buffer
stdout = sys.stdout.buffer

if mode == "stream":
    # Echo while still reading, like a renderer that starts output early
    while True:
        chunk = stdin.read1(65536)
        if not chunk:
            break
        stdout.write(chunk)
        stdout.flush()
else:
    data = stdin.read()
    time.sleep(float(option("--sleep", "0")))
    if mode == "cat":
        stdout.write(data)
    elif mode == "cwd":
        stdout.write(os.getcwd().encode())
    elif mode == "args":
        stdout.write(" ".join(args).encode())
    else:
        stdout.write(FAKE_PDF)
stdout.flush()

last_line = option("--last-line")
if last_line is not None:
    sys.stderr.write(last_line + "\n")
    sys.stderr.flush()

sys.exit(int(option("--exit", "0")))
'''


def _install_renderer(bin_dir: Path, use_exec: bool) -> Path:
    if os.name == "nt":
        pytest.skip("fake renderer relies on a POSIX shell wrapper")

    bin_dir.mkdir()
    script = bin_dir / "fake_renderer.py"
    script.write_text(FAKE_RENDERER_SCRIPT)

    launch = "exec " if use_exec else ""
    wrapper = bin_dir / "wkhtmltopdf"
    wrapper.write_text(f'#!/bin/sh\n{launch}"{sys.executable}" "{script}" "$@"\n')
    wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    return wrapper


@pytest.fixture
def fake_renderer(tmp_path) -> Path:
    """Executable that mimics wkhtmltopdf's stream protocol."""
    return _install_renderer(tmp_path / "renderer-bin", use_exec=True)


@pytest.fixture
def forking_renderer(tmp_path) -> Path:
    """Same renderer behind a shell wrapper that forks it instead of exec-ing."""
    return _install_renderer(tmp_path / "forking-bin", use_exec=False)


@pytest.fixture
def minimal_html() -> str:
    return "<!DOCTYPE html><html><head><title>t</title></head><body><p>Hello</p></body></html>"


@pytest.fixture
def fake_pdf() -> bytes:
    """Bytes the fake renderer writes to stdout in its default mode."""
    return FAKE_PDF


@pytest.fixture(autouse=True)
def reset_loguru():
    """Drop sinks a test configured (e.g. a CliRunner stdout) so later tests log to stderr."""
    yield
    logger.remove()
    logger.add(sys.stderr, level="DEBUG")
