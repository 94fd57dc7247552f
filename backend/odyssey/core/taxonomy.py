"""Trait taxonomy inference from the layered `randomize/` folder tree.

Folder layout:
    randomize/
        01_Background/blue.png, red.png
        02_Eye_Color/green.png, light-blue.png

Each folder name carries a layer prefix and a trait type label separated by
the first underscore. The prefix fixes the compositing order; there is no
default ordering, so a folder without one is rejected.

Building happens in two phases: folder names are parsed and validated into
an ordered list of layer folders, then the taxonomy is built from that list.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Iterable

from odyssey.core.errors import StructuralInputError
from odyssey.core.logging import log
from odyssey.core.models import Selection, Taxonomy, TraitType, TraitValue, single_token_id

TOTAL_WEIGHT = Decimal("100")
CENT = Decimal("0.01")
_LAYER_PREFIX = re.compile(r"[0-9]{2}\Z")


@dataclass(frozen=True)
class LayerFolder:
    layer: str
    label: str
    path: Path


def parse_layer_folder(name: str) -> tuple[str, str]:
    """Split a layer folder name into (layer, label).

    Args:
        name: Folder name, e.g. "02_Eye_Color"

    Returns:
        Tuple of two-digit layer string and trait type label, e.g. ("02", "Eye_Color")

    Raises:
        StructuralInputError: If the name has no underscore, a prefix that is
            not exactly two digits, or an empty label
    """
    prefix, sep, label = name.partition("_")
    if not sep:
        raise StructuralInputError(
            f"Layer folder '{name}' has no underscore; a layer prefix is required "
            f"for image layer sequencing (e.g. 01_{name})"
        )
    if not _LAYER_PREFIX.match(prefix):
        raise StructuralInputError(
            f"Layer folder '{name}' has layer prefix '{prefix}'; expected two digits (01, 02, ...)"
        )
    if not label:
        raise StructuralInputError(f"Layer folder '{name}' has an empty trait type label")
    return prefix, label


def collect_layer_folders(root: str | Path) -> list[LayerFolder]:
    """Phase 1: recursively parse every folder under root, sorted by layer.

    Raises:
        FileNotFoundError: If root does not exist
        StructuralInputError: If any folder name cannot be parsed
        OSError: If a directory cannot be listed
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Layer folder root not found: {root}")

    folders: list[LayerFolder] = []

    def visit(current: Path) -> None:
        with os.scandir(current) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            if entry.is_dir():
                layer, label = parse_layer_folder(entry.name)
                folders.append(LayerFolder(layer=layer, label=label, path=Path(entry.path)))
                visit(Path(entry.path))

    visit(root)
    return sorted(folders, key=lambda f: (f.layer, f.label))


def _layer_files(folder: Path) -> list[str]:
    """File names directly inside a layer folder, lexicographic."""
    with os.scandir(folder) as it:
        return sorted(
            entry.name
            for entry in it
            if entry.is_file() and not entry.name.startswith(".")
        )


def build_taxonomy(root: str | Path) -> Taxonomy:
    """Phase 2: build the trait taxonomy (all weights 0) from the folder tree.

    Every file becomes a TraitValue of the trait type of its immediate parent
    folder. Folders without files contribute no trait type. Files directly in
    root belong to no trait type and are ignored.

    Args:
        root: The randomize/ directory

    Returns:
        Taxonomy ordered by layer, values ordered by file name

    Raises:
        StructuralInputError: On unparseable folder names, duplicate layers or
            labels, or non-contiguous layer prefixes
        OSError: If any directory cannot be listed (nothing is returned)
    """
    try:
        folders = collect_layer_folders(root)
        trait_types: dict[str, TraitType] = {}
        seen_layers: dict[str, str] = {}

        for folder in folders:
            files = _layer_files(folder.path)
            if not files:
                continue
            if folder.label in trait_types:
                raise StructuralInputError(f"Duplicate trait type '{folder.label}' in {folder.path}")
            if folder.layer in seen_layers:
                raise StructuralInputError(
                    f"Layer {folder.layer} used by both '{seen_layers[folder.layer]}' and '{folder.label}'"
                )
            seen_layers[folder.layer] = folder.label
            trait_types[folder.label] = TraitType(
                layer=folder.layer,
                trait_values=[TraitValue(name=name, weight=0) for name in files],
            )
    except (StructuralInputError, OSError) as e:
        log.error(f"taxonomy_build_failed root={root} reason={type(e).__name__}:{e}")
        raise

    expected = [f"{i:02d}" for i in range(1, len(trait_types) + 1)]
    actual = sorted(seen_layers)
    if actual != expected:
        log.error(f"taxonomy_build_failed root={root} layers={actual}")
        raise StructuralInputError(
            f"Layer prefixes must be contiguous starting at 01; found {', '.join(actual)}"
        )

    taxonomy = Taxonomy(trait_types=trait_types)
    log.info(
        f"taxonomy_built root={root} trait_types={len(trait_types)} "
        f"trait_values={count_trait_values(taxonomy)}"
    )
    return taxonomy


def distribute_weights(taxonomy: Taxonomy) -> Taxonomy:
    """Spread 100 evenly over each trait type's values.

    The first k-1 values get round(100/k, 2); the last takes the remainder so
    the type sums to exactly 100.00. Pure: returns a new Taxonomy.
    """
    distributed: dict[str, TraitType] = {}
    for label, trait_type in taxonomy.ordered():
        k = len(trait_type.trait_values)
        share = (TOTAL_WEIGHT / k).quantize(CENT, rounding=ROUND_HALF_UP)
        remainder = (TOTAL_WEIGHT - share * (k - 1)).quantize(CENT, rounding=ROUND_HALF_UP)

        values = []
        for index, value in enumerate(trait_type.trait_values):
            weight = remainder if index == k - 1 else share
            values.append(TraitValue(name=value.name, weight=float(weight)))

        distributed[label] = TraitType(layer=trait_type.layer, trait_values=values)

    return Taxonomy(trait_types=distributed)


def count_trait_values(taxonomy: Taxonomy) -> int:
    """Total number of trait values across all trait types."""
    return sum(len(t.trait_values) for t in taxonomy.trait_types.values())


def weight_entries(taxonomy: Taxonomy) -> list[tuple[str, str, int]]:
    """Rows submitted by the on-chain trait config population step.

    Weights are converted to basis points (33.33 -> 3333), in layer order.

    Returns:
        List of (trait_type, trait_value_name, basis_points)
    """
    entries = []
    for label, trait_type in taxonomy.ordered():
        for value in trait_type.trait_values:
            basis_points = (Decimal(str(value.weight)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            entries.append((label, value.name, int(basis_points)))
    return entries


def order_selections(selections: Iterable[Selection], taxonomy: Taxonomy) -> list[Selection]:
    """Check a token's selections cover every trait type once; sort by layer.

    Args:
        selections: All selections for a single token
        taxonomy: Taxonomy the selections were drawn from

    Returns:
        Selections in ascending layer order

    Raises:
        StructuralInputError: On mixed token ids, unknown, missing or
            duplicate trait types
    """
    selections = list(selections)
    token_id = single_token_id(selections)

    by_type: dict[str, Selection] = {}
    for selection in selections:
        if selection.trait_type not in taxonomy.trait_types:
            raise StructuralInputError(
                f"Token {token_id}: unknown trait type '{selection.trait_type}'"
            )
        if selection.trait_type in by_type:
            raise StructuralInputError(
                f"Token {token_id}: duplicate trait type '{selection.trait_type}'"
            )
        by_type[selection.trait_type] = selection

    missing = [label for label in taxonomy.trait_types if label not in by_type]
    if missing:
        raise StructuralInputError(
            f"Token {token_id}: missing trait types {', '.join(missing)}"
        )

    return [by_type[label] for label, _ in taxonomy.ordered()]
