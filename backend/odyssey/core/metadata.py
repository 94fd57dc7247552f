"""Token metadata synthesis from trait selections."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

from odyssey.core.logging import log
from odyssey.core.models import Attribute, MetadataDocument, Selection, Taxonomy
from odyssey.core.paths import token_metadata_path
from odyssey.core.storage import write_json_document
from odyssey.core.taxonomy import order_selections

_EXTENSION = re.compile(r"\.[^.]*$")
_SEPARATORS = re.compile(r"[_-]")
_WORD_START = re.compile(r"\b\w")


def humanize(text: str) -> str:
    """'eye_color' / 'EYE-COLOR' -> 'Eye Color'."""
    spaced = _SEPARATORS.sub(" ", text).lower()
    return _WORD_START.sub(lambda m: m.group(0).upper(), spaced)


def trait_type_label(trait_type: str) -> str:
    return humanize(trait_type)


def trait_value_label(trait_value: str) -> str:
    """'light-blue.png' -> 'Light Blue'."""
    return humanize(_EXTENSION.sub("", trait_value))


def build_metadata(
    selections: Iterable[Selection],
    taxonomy: Taxonomy,
    collection_name: str,
    description: str,
) -> MetadataDocument:
    """Metadata document for one token; `image` stays empty until publish.

    Attributes follow the order of `selections`.

    Raises:
        StructuralInputError: If the selections do not cover every trait type
            of the taxonomy exactly once
    """
    selections = list(selections)
    token_id = order_selections(selections, taxonomy)[0].token_id

    return MetadataDocument(
        name=f"{collection_name} #{token_id}",
        image="",
        description=description,
        attributes=[
            Attribute(
                trait_type=trait_type_label(s.trait_type),
                value=trait_value_label(s.trait_value),
            )
            for s in selections
        ],
    )


def synthesize_metadata(
    selections: Iterable[Selection],
    taxonomy: Taxonomy,
    collection_name: str,
    description: str,
    out_dir: str | Path,
) -> Path:
    """Write `{token_id}.json` for a token's selections.

    Args:
        selections: The token's selections; attribute order follows them
        taxonomy: Taxonomy the selections must cover
        collection_name: Collection name used as the token name prefix
        description: Collection description
        out_dir: Asset directory

    Returns:
        Path of the written document

    Raises:
        StructuralInputError: If the selections are empty, span several
            tokens, or do not cover every trait type exactly once
    """
    selections = list(selections)
    document = build_metadata(selections, taxonomy, collection_name, description)
    token_id = selections[0].token_id

    out_path = token_metadata_path(out_dir, token_id)
    write_json_document(out_path, document.to_document())

    log.info(f"metadata_written token={token_id} attributes={len(document.attributes)} path={out_path}")
    return out_path
