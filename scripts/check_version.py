#!/usr/bin/env python3
"""Validate version consistency between src/config.py and pyproject.toml.

The default ``app_version`` setting is what /health reports, so it must
track the packaged version.

Exit codes:
    0: Versions match
    1: Version mismatch or error
"""

from __future__ import annotations

import re
import sys
import tomllib
from pathlib import Path


def get_settings_version(config_file: Path) -> str | None:
    """Extract the default ``app_version`` from the settings module.

    Args:
        config_file: Path to src/config.py.

    Returns:
        Version string if found, None otherwise.
    """
    content = config_file.read_text(encoding="utf-8")
    match = re.search(
        r'^\s*app_version:\s*str\s*=\s*["\']([^"\']+)["\']', content, re.MULTILINE
    )
    return match.group(1) if match else None


def get_pyproject_version(pyproject_file: Path) -> str | None:
    """Extract version from pyproject.toml file."""
    try:
        data = tomllib.loads(pyproject_file.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError:
        return None
    version = data.get("project", {}).get("version")
    return version if isinstance(version, str) else None


def main() -> int:
    """Compare both versions and report the result."""
    project_root = Path(__file__).parent.parent
    config_file = project_root / "src" / "config.py"
    pyproject_file = project_root / "pyproject.toml"

    for path in (config_file, pyproject_file):
        if not path.exists():
            print(f"❌ Error: {path} not found", file=sys.stderr)
            return 1

    settings_version = get_settings_version(config_file)
    if settings_version is None:
        print(f"❌ Error: Could not find app_version in {config_file}", file=sys.stderr)
        return 1

    pyproject_version = get_pyproject_version(pyproject_file)
    if pyproject_version is None:
        print(f"❌ Error: Could not find version in {pyproject_file}", file=sys.stderr)
        return 1

    if settings_version != pyproject_version:
        print("❌ Version mismatch detected!", file=sys.stderr)
        print(f"   src/config.py:  {settings_version}", file=sys.stderr)
        print(f"   pyproject.toml: {pyproject_version}", file=sys.stderr)
        return 1

    print(f"✅ Version consistency check passed: {settings_version}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
