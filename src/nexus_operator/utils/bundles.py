"""
Configuration bundle helpers.

Bundles are ConfigMaps named ``<instance>-<category>``. They are materialized
from the asset tree shipped with the operator: each file of the
default-configuration directory becomes its own bundle, while the scripts
directory is collapsed into a single ``<instance>-scripts`` bundle.
"""

import json
import logging
from pathlib import Path
from typing import Any

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


def read_asset_path(path: Path) -> dict[str, str]:
    """
    Read a file or a directory into ConfigMap data.

    A directory yields one entry per regular file, keyed by file name. A single
    file yields one entry keyed by its base name.

    Raises:
        ConfigurationError: If the path does not exist or cannot be read
    """
    path = Path(path)
    try:
        if path.is_dir():
            return {
                entry.name: entry.read_text(encoding="utf-8")
                for entry in sorted(path.iterdir())
                if entry.is_file()
            }
        return {path.name: path.read_text(encoding="utf-8")}
    except OSError as e:
        raise ConfigurationError(
            f"Couldn't read configuration assets at {path}: {e}",
            user_action="Check NEXUS_CONFIGS_DIR and the operator image contents",
        ) from e


def bundles_from_directory(
    directory: Path, instance_name: str, explode: bool
) -> dict[str, dict[str, str]]:
    """
    Map bundle names to ConfigMap data for an asset directory.

    Args:
        directory: Asset directory to materialize
        instance_name: Name of the owning Nexus instance
        explode: One bundle per file when True, a single bundle named after
            the directory otherwise

    Returns:
        Bundle name to ConfigMap data
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise ConfigurationError(
            f"Couldn't read directory {directory} for {instance_name}",
            user_action="Check NEXUS_CONFIGS_DIR and the operator image contents",
        )

    if not explode:
        return {f"{instance_name}-{directory.name}": read_asset_path(directory)}

    return {
        f"{instance_name}-{entry.name}": read_asset_path(entry)
        for entry in sorted(directory.iterdir())
        if entry.is_file()
    }


def parse_bundle_entries(
    data: dict[str, str], key: str, bundle_name: str
) -> list[dict[str, Any]]:
    """
    Parse the JSON array of parameter maps stored under ``key``.

    Raises:
        ConfigurationError: If the entry is missing or is not a JSON array of
            objects
    """
    if key not in data:
        raise ConfigurationError(
            f"Bundle {bundle_name} has no '{key}' entry",
            retryable=True,
            user_action="Re-run installation so that default bundles are recreated",
        )

    try:
        entries = json.loads(data[key])
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Bundle {bundle_name} entry '{key}' is not valid JSON: {e}"
        ) from e

    if not isinstance(entries, list) or not all(
        isinstance(entry, dict) for entry in entries
    ):
        raise ConfigurationError(
            f"Bundle {bundle_name} entry '{key}' must be a JSON array of objects"
        )

    logger.debug(f"Parsed {len(entries)} entries from bundle {bundle_name}")
    return entries


def script_bundle_to_sources(data: dict[str, str]) -> dict[str, str]:
    """Map script names (file stems) to their Groovy source."""
    return {Path(file_name).stem: content for file_name, content in data.items()}
