"""
Asset directory validators for batch publishing.

Checks an indexed asset folder (0.png, 0.json, 1.png, 1.json, ...) before any
upload: one image type throughout, no index gaps, a metadata document per
image with every mandatory field filled in.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from odyssey.core.logging import log
from odyssey.core.models import ValidationReport
from odyssey.core.paths import token_image_path, token_metadata_path

IMAGE_EXTENSIONS = ("png", "jpg", "jpeg")
MANDATORY_FIELDS = ("name", "image", "properties", "seller_fee_basis_points", "attributes")


class ValidationError(Exception):
    """Raised when an asset directory fails validation and must not be published."""

    def __init__(self, message: str, defects: list[str] | None = None):
        super().__init__(message)
        self.defects = defects or []


def _is_empty(value: Any) -> bool:
    # 0 is a legitimate royalty / share, so only missing and blank values count
    return value is None or value == "" or value == [] or value == {}


def _image_files(asset_dir: Path) -> list[Path]:
    return sorted(
        p for p in asset_dir.iterdir()
        if p.is_file() and p.suffix.lower().lstrip(".") in IMAGE_EXTENSIONS
    )


def _token_index(stem: str) -> int | None:
    """Index of a `{i}` file stem; zero-padded stems (01) are not indices."""
    if not stem.isdigit() or (len(stem) > 1 and stem.startswith("0")):
        return None
    return int(stem)


def check_image_types(image_files: list[Path]) -> tuple[str | None, list[str]]:
    """Verify every image shares one extension.

    Returns:
        Tuple of (active image type or None, defects)
    """
    if not image_files:
        return None, ["No image files (png/jpg/jpeg) found in the folder"]

    types = sorted({p.suffix.lower().lstrip(".") for p in image_files})
    if len(types) > 1:
        return None, [f"Image files have different types: {', '.join(types)}"]

    return types[0], []


def check_index_contiguity(
    asset_dir: Path, image_files: list[Path], image_type: str | None
) -> tuple[int, list[str]]:
    """Verify images and metadata exist for every index 0..max.

    Returns:
        Tuple of (number of contiguous indices starting at 0, defects)
    """
    defects = [
        f"Image file {p.name} is zero-padded; token files are named 0, 1, 2, ..."
        for p in image_files
        if p.stem.isdigit() and _token_index(p.stem) is None
    ]
    indices = {i for i in (_token_index(p.stem) for p in image_files) if i is not None}
    if not indices:
        if image_files:
            defects.append("No indexed image files (0, 1, 2, ...) found in the folder")
        return 0, defects

    contiguous = 0
    gap_seen = False

    for i in range(max(indices) + 1):
        if image_type:
            has_image = token_image_path(asset_dir, i, image_type).is_file()
        else:
            has_image = i in indices

        if not has_image:
            gap_seen = True
            defects.append(f"Image file missing for index {i}")
        elif not gap_seen:
            contiguous += 1

        if not token_metadata_path(asset_dir, i).is_file():
            defects.append(f"JSON file missing for index {i}")

    return contiguous, defects


def verify_metadata_fields(document: Any, filename: str) -> list[str]:
    """Mandatory metadata field checks for one document; returns defects."""
    if not isinstance(document, dict):
        return [f"{filename}: metadata must be a JSON object"]

    defects = []
    for field in MANDATORY_FIELDS:
        if _is_empty(document.get(field)):
            defects.append(f"{filename}: mandatory metadata field '{field}' missing")

    properties = document.get("properties")
    if isinstance(properties, dict):
        creators = properties.get("creators")
        if not isinstance(creators, list):
            defects.append(f"{filename}: 'properties.creators' should be an array")
        else:
            for index, creator in enumerate(creators):
                if (
                    not isinstance(creator, dict)
                    or _is_empty(creator.get("address"))
                    or _is_empty(creator.get("share"))
                ):
                    defects.append(
                        f"{filename}: creators[{index}] missing 'address' or 'share'"
                    )
    elif not _is_empty(properties):
        defects.append(f"{filename}: 'properties' should be an object")

    attributes = document.get("attributes")
    if attributes is not None and not isinstance(attributes, list):
        defects.append(f"{filename}: 'attributes' field should be an array")
    elif isinstance(attributes, list):
        for index, attribute in enumerate(attributes):
            if (
                not isinstance(attribute, dict)
                or _is_empty(attribute.get("trait_type"))
                or _is_empty(attribute.get("value"))
            ):
                defects.append(
                    f"{filename}: attributes[{index}] missing 'trait_type' or 'value'"
                )

    return defects


def check_metadata(asset_dir: Path, count: int) -> list[str]:
    """Run verify_metadata_fields over every existing {i}.json for i < count."""
    defects = []
    for i in range(count):
        path = token_metadata_path(asset_dir, i)
        if not path.is_file():
            continue
        try:
            with open(path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            defects.append(f"{path.name}: malformed JSON ({e.msg} at line {e.lineno})")
            continue
        defects.extend(verify_metadata_fields(document, path.name))
    return defects


def validate_asset_dir(asset_dir: str | Path) -> ValidationReport:
    """
    Validate an asset directory before batch publishing.

    Every check runs and every defect is collected; files are never modified.

    Args:
        asset_dir: Folder holding {i}.{ext} images and {i}.json documents

    Returns:
        ValidationReport with defects, the active image type and the token count

    Raises:
        FileNotFoundError: If asset_dir does not exist
    """
    asset_dir = Path(asset_dir)
    if not asset_dir.is_dir():
        raise FileNotFoundError(f"Asset folder not found: {asset_dir}")

    image_files = _image_files(asset_dir)

    image_type, defects = check_image_types(image_files)
    count, index_defects = check_index_contiguity(asset_dir, image_files, image_type)
    defects.extend(index_defects)

    indices = [i for i in (_token_index(p.stem) for p in image_files) if i is not None]
    span = max(indices, default=-1) + 1
    defects.extend(check_metadata(asset_dir, span))

    report = ValidationReport(defects=defects, image_type=image_type, token_count=count)

    for defect in defects:
        log.warning(f"VALIDATE_ASSETS path={asset_dir} defect={defect}")
    log.info(
        f"VALIDATE_ASSETS path={asset_dir} type={image_type} count={count} "
        f"defects={len(defects)} {'PASS' if report.ok else 'FAIL'}"
    )
    return report
