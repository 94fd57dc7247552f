"""Persisted trait config (randomize/trait_config.json).

The document is the hand-off point to curators, who may tune probabilities
by hand, and to the on-chain trait config population step. Regeneration
always replaces it wholesale; manual edits are not merged.
"""

from __future__ import annotations

import threading
from pathlib import Path

from pydantic import ValidationError

from odyssey.core.errors import ParseError
from odyssey.core.logging import log
from odyssey.core.models import Taxonomy
from odyssey.core.paths import randomize_dir, trait_config_path
from odyssey.core.storage import read_json_document, write_json_document
from odyssey.core.taxonomy import build_taxonomy, distribute_weights

_regenerate_lock = threading.Lock()


def regenerate(asset_root: str | Path) -> Taxonomy:
    """Rebuild trait_config.json from the layer folders under asset_root.

    Deletes any existing document first, then builds, distributes weights
    and writes the result. If the build fails nothing is written.

    Args:
        asset_root: Asset directory containing randomize/

    Returns:
        The taxonomy that was persisted

    Raises:
        StructuralInputError: If the layer folder tree is invalid
        FileNotFoundError: If randomize/ does not exist
    """
    path = trait_config_path(asset_root)

    with _regenerate_lock:
        if path.exists():
            path.unlink()
            log.info(f"trait_config_deleted path={path}")

        taxonomy = distribute_weights(build_taxonomy(randomize_dir(asset_root)))
        write_json_document(path, taxonomy.to_document())

    log.info(f"trait_config_written path={path} trait_types={len(taxonomy.trait_types)}")
    return taxonomy


def load(asset_root: str | Path) -> Taxonomy:
    """Read and validate the persisted taxonomy.

    Raises:
        ParseError: If the document is absent, not JSON, or fails schema validation
    """
    path = trait_config_path(asset_root)
    document = read_json_document(path)

    if not isinstance(document, dict):
        raise ParseError(f"Trait config {path} must be an object keyed by trait type")

    try:
        return Taxonomy.from_document(document)
    except ValidationError as e:
        log.error(f"trait_config_invalid path={path} errors={e.error_count()}")
        raise ParseError(f"Trait config {path} failed validation: {e}") from e
