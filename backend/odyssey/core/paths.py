from __future__ import annotations

from pathlib import Path

from odyssey.core.config import settings

# Project root is 3 levels up from this file (backend/odyssey/core/paths.py -> root)
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent

# Data directory (logs) inside the package
DATA_DIR = Path(__file__).parent.parent / "data"


def get_data_path(filename: str = "") -> Path:
    """Get path to file in odyssey/data directory.

    Args:
        filename: Optional filename to append to data directory path

    Returns:
        Path object pointing to odyssey/data or odyssey/data/filename
    """
    if filename:
        return DATA_DIR / filename
    return DATA_DIR


def randomize_dir(asset_root: str | Path) -> Path:
    """Folder holding the numbered layer folders (01_Background, 02_Eyes, ...)."""
    return Path(asset_root) / settings.randomize_dir_name


def trait_config_path(asset_root: str | Path) -> Path:
    """Location of the persisted taxonomy document under an asset root."""
    return randomize_dir(asset_root) / settings.trait_config_filename


def token_image_path(asset_root: str | Path, token_id: int, image_type: str) -> Path:
    return Path(asset_root) / f"{token_id}.{image_type}"


def token_metadata_path(asset_root: str | Path, token_id: int) -> Path:
    return Path(asset_root) / f"{token_id}.json"
