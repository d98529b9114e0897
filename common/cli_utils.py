#!/usr/bin/env python3

import os
import sys
import json
from typing import Any, Dict, Optional


def handle_error(message: str, exit_code: int = 1) -> None:
    """Print error message and exit with specified code."""
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(exit_code)


def log_verbose(message: str, verbose: bool) -> None:
    """Print a progress message to stderr when --verbose is set."""
    if verbose:
        print(message, file=sys.stderr)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Read an environment variable, stripping surrounding whitespace."""
    value = os.getenv(name, default)
    return value.strip() if value else value


def write_csv_output(df, include_header: bool = True) -> None:
    """Write DataFrame as CSV to stdout."""
    df.to_csv(sys.stdout, index=False, header=include_header)


def write_json_output(data: Dict[str, Any], indent: int = 2) -> None:
    """Write data as JSON to stdout."""
    json.dump(data, sys.stdout, indent=indent, ensure_ascii=False)
    sys.stdout.write("\n")
