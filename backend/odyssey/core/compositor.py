"""Layered image compositing for token assets.

Stacks one layer image per trait type, base layer (01) first, and writes the
flattened result as `{token_id}.{image_type}`.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Iterable

from PIL import Image

from odyssey.core.errors import StructuralInputError
from odyssey.core.logging import log
from odyssey.core.models import Selection, Taxonomy
from odyssey.core.paths import token_image_path
from odyssey.core.storage import atomic_write_bytes, safe_join
from odyssey.core.taxonomy import order_selections

SAVE_FORMATS = {"png": "PNG", "jpg": "JPEG", "jpeg": "JPEG"}


def _layer_path(root: Path, folder: str, trait_value: str, token_id: int) -> Path:
    # Trait values may come from the ledger; keep them inside the layer folder
    try:
        return Path(safe_join(str(root), folder, trait_value))
    except ValueError as e:
        raise StructuralInputError(f"Token {token_id}: {e}") from e


def _load_layer(path: Path, token_id: int) -> Image.Image:
    if not path.is_file():
        raise StructuralInputError(f"Token {token_id}: layer file not found: {path}")
    with Image.open(path) as img:
        return img.convert("RGBA")


def render_layers(ordered: list[Selection], taxonomy: Taxonomy, randomize_dir: str | Path) -> Image.Image:
    """Alpha-composite the layer images; canvas size is the base layer's size."""
    root = Path(randomize_dir)
    token_id = ordered[0].token_id

    layers = [
        _load_layer(_layer_path(root, taxonomy.folder_name(s.trait_type), s.trait_value, token_id), token_id)
        for s in ordered
    ]

    canvas = layers[0]
    for layer in layers[1:]:
        if layer.size != canvas.size:
            # Draw at origin, clipped to the canvas
            padded = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
            padded.paste(layer, (0, 0))
            layer = padded
        canvas = Image.alpha_composite(canvas, layer)

    return canvas


def compose_token_image(
    selections: Iterable[Selection],
    taxonomy: Taxonomy,
    randomize_dir: str | Path,
    out_dir: str | Path,
    image_type: str = "png",
) -> Path:
    """Render and write a token's composite image.

    All layers are loaded before anything is written, so a missing layer
    leaves no partial image behind. Output is byte-identical for identical
    inputs.

    Args:
        selections: The token's selections (any order)
        taxonomy: Taxonomy providing layer order and folder names
        randomize_dir: Directory containing the NN_<TraitType> folders
        out_dir: Asset directory receiving `{token_id}.{image_type}`
        image_type: Active image extension (png, jpg or jpeg)

    Returns:
        Path of the written image

    Raises:
        StructuralInputError: If selections are incomplete or a layer file is missing
        ValueError: If image_type is not supported
    """
    image_type = image_type.lower()
    if image_type not in SAVE_FORMATS:
        raise ValueError(f"Unsupported image type: {image_type}")

    ordered = order_selections(selections, taxonomy)
    token_id = ordered[0].token_id

    try:
        canvas = render_layers(ordered, taxonomy, randomize_dir)
    except StructuralInputError as e:
        log.error(f"compose_failed token={token_id} reason={e}")
        raise

    save_format = SAVE_FORMATS[image_type]
    if save_format == "JPEG":
        # JPEG has no alpha channel
        canvas = canvas.convert("RGB")

    buffer = io.BytesIO()
    canvas.save(buffer, format=save_format)

    out_path = token_image_path(out_dir, token_id, image_type)
    atomic_write_bytes(out_path, buffer.getvalue())

    log.info(
        f"compose_done token={token_id} layers={len(ordered)} "
        f"size={canvas.width}x{canvas.height} path={out_path}"
    )
    return out_path
