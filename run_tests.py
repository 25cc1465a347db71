#!/usr/bin/env python3
"""
Test runner for the toolbox service.

    python run_tests.py            # whole suite
    python run_tests.py -k redirect
"""

import os
import subprocess
import sys


def run_tests(extra_args):
    os.chdir(os.path.dirname(os.path.abspath(__file__)))

    command = [sys.executable, "-m", "pytest", "tests/", "-v", "--tb=short", *extra_args]
    try:
        result = subprocess.run(command)
    except FileNotFoundError:
        print("pytest not found. Install with: pip install -e '.[test]'")
        return 1

    print("\nAll tests passed" if result.returncode == 0 else f"\nTests failed with exit code {result.returncode}")
    return result.returncode


if __name__ == "__main__":
    sys.exit(run_tests(sys.argv[1:]))
