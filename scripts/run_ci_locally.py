#!/usr/bin/env python3
"""
Run the idcard_info checks locally in the ACTIVE virtual environment.

Steps:
  1) uv pip install -e .[test,dev]
  2) black --check on idcard_info, tests and scripts (line length 120)
  3) mypy idcard_info
  4) pytest tests/ with coverage of idcard_info

Pass --skip-install to reuse the current environment as-is.
"""

import argparse
import os
import shutil
import subprocess
import sys
from pathlib import Path


def repo_root() -> Path:
    here = Path(__file__).resolve().parent
    for d in [here] + list(here.parents):
        if (d / "pyproject.toml").exists():
            return d
    return here


REPO = repo_root()
LINT_TARGETS = ["idcard_info", "tests", "scripts"]


def uv_exe() -> list[str]:
    uv_path = shutil.which("uv")
    if uv_path:
        return [uv_path]
    return [sys.executable, "-m", "uv"]


def run(cmd: list[str], *, env: dict[str, str] | None = None) -> None:
    print(">>>", " ".join(cmd))
    subprocess.run(cmd, check=True, cwd=str(REPO), env=env)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--skip-install", action="store_true", help="do not reinstall the package first")
    parser.add_argument("--cov-fail-under", type=int, default=90)
    args = parser.parse_args()

    if not args.skip_install:
        run(uv_exe() + ["pip", "install", "-e", ".[test,dev]"])

    run([sys.executable, "-m", "black", *LINT_TARGETS, "--check", "--line-length", "120"])
    run([sys.executable, "-m", "mypy", "idcard_info", "--ignore-missing-imports"])

    env = os.environ.copy()
    env["PYTHONPATH"] = str(REPO)
    run(
        [
            sys.executable,
            "-m",
            "pytest",
            "tests/",
            "--cov=idcard_info",
            "--cov-report=term-missing",
            f"--cov-fail-under={args.cov_fail_under}",
        ],
        env=env,
    )

    print("\nALL CHECKS PASSED")


if __name__ == "__main__":
    try:
        main()
    except subprocess.CalledProcessError as e:
        print(f"\nCommand failed with exit code {e.returncode}", file=sys.stderr)
        sys.exit(e.returncode)
