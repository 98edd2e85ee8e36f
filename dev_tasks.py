#!/usr/bin/env python3
"""
Development tasks for prunetree.

    python dev_tasks.py <clean|format|lint|test|build|all>

Tools come from the ``dev`` extra: ``pip install -e .[dev]``.
"""

import shutil
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
PACKAGE = "prunetree"
SOURCES = [PACKAGE, "tests", "examples"]


def run(*args: str) -> bool:
    cmd = [sys.executable, "-m", *args]
    print(f"Running: {' '.join(cmd)}")
    return subprocess.run(cmd, cwd=ROOT).returncode == 0


def clean() -> bool:
    for name in ("build", "dist", ".pytest_cache", ".mypy_cache", "htmlcov"):
        shutil.rmtree(ROOT / name, ignore_errors=True)
    for path in ROOT.glob("*.egg-info"):
        shutil.rmtree(path, ignore_errors=True)
    for path in ROOT.rglob("__pycache__"):
        shutil.rmtree(path, ignore_errors=True)
    return True


def format_code() -> bool:
    return run("isort", *SOURCES) and run("black", *SOURCES)


def lint() -> bool:
    # both run even when the first fails
    results = [run("flake8", *SOURCES), run("mypy", PACKAGE)]
    return all(results)


def test() -> bool:
    return run("pytest", "tests", f"--cov={PACKAGE}", "--cov-report=term-missing")


def build() -> bool:
    return clean() and run("build")


COMMANDS = {
    "clean": clean,
    "format": format_code,
    "lint": lint,
    "test": test,
    "build": build,
}


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1 or (argv[0] not in COMMANDS and argv[0] != "all"):
        print(__doc__.strip())
        return 1
    if argv[0] == "all":
        steps = [lint, test, build]
    else:
        steps = [COMMANDS[argv[0]]]
    for step in steps:
        if not step():
            print(f"{step.__name__} failed.")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
