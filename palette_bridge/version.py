"""
Version information for palette-bridge.

Installed metadata wins; a source checkout reads pyproject.toml so that the
version has a single home.
"""
import importlib.metadata
import pathlib

import tomli

DISTRIBUTION = "palette-bridge"
PYPROJECT = pathlib.Path(__file__).parent.parent / "pyproject.toml"
# Reported when neither the metadata nor pyproject.toml is available
UNKNOWN_VERSION = "0.0.0+unknown"


def read_version(pyproject: pathlib.Path = PYPROJECT) -> str:
    try:
        return importlib.metadata.version(DISTRIBUTION)
    except importlib.metadata.PackageNotFoundError:
        pass
    try:
        with pyproject.open("rb") as f:
            return tomli.load(f)["project"]["version"]
    except (FileNotFoundError, KeyError):
        return UNKNOWN_VERSION


__version__ = read_version()
