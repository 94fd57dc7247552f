"""Tests for layered token image compositing."""

from __future__ import annotations

import pytest
from PIL import Image

from odyssey.core import trait_store
from odyssey.core.compositor import compose_token_image
from odyssey.core.errors import StructuralInputError
from odyssey.core.models import Selection
from odyssey.core.taxonomy import build_taxonomy, order_selections


def _selections(token_id: int = 7, eyes: str = "green.png") -> list[Selection]:
    # Deliberately not in layer order
    return [
        Selection(token_id=token_id, trait_type="Eyes", trait_value=eyes),
        Selection(token_id=token_id, trait_type="Background", trait_value="blue.png"),
    ]


@pytest.fixture
def taxonomy(asset_root):
    return build_taxonomy(asset_root / "randomize")


def test_layers_stack_base_first(asset_root, taxonomy, tmp_path):
    out = compose_token_image(_selections(), taxonomy, asset_root / "randomize", tmp_path)

    assert out == tmp_path / "7.png"
    with Image.open(out) as img:
        assert img.size == (8, 8)
        assert img.getpixel((0, 0))[:3] == (0, 255, 0)
        assert img.getpixel((5, 5))[:3] == (0, 0, 255)


def test_regenerated_trait_config_composites(asset_root, tmp_path):
    trait_store.regenerate(asset_root)
    taxonomy = trait_store.load(asset_root)

    out = compose_token_image(_selections(0), taxonomy, asset_root / "randomize", tmp_path)

    with Image.open(out) as img:
        assert img.getpixel((0, 0))[:3] == (0, 255, 0)


def test_unpadded_prefix_is_rejected_before_compositing(asset_root, tmp_path):
    randomize = asset_root / "randomize"
    (randomize / "01_Background").rename(randomize / "1_Background")

    with pytest.raises(StructuralInputError, match="expected two digits"):
        trait_store.regenerate(asset_root)
    assert not (randomize / "trait_config.json").exists()


def test_output_is_byte_identical_across_runs(asset_root, taxonomy, tmp_path):
    first = tmp_path / "a"
    second = tmp_path / "b"
    first.mkdir()
    second.mkdir()

    compose_token_image(_selections(), taxonomy, asset_root / "randomize", first)
    compose_token_image(_selections(), taxonomy, asset_root / "randomize", second)

    assert (first / "7.png").read_bytes() == (second / "7.png").read_bytes()


def test_missing_layer_file_leaves_no_image(asset_root, taxonomy, tmp_path):
    with pytest.raises(StructuralInputError, match="layer file not found"):
        compose_token_image(
            _selections(eyes="purple.png"), taxonomy, asset_root / "randomize", tmp_path
        )

    assert not (tmp_path / "7.png").exists()


def test_jpg_output(asset_root, taxonomy, tmp_path):
    out = compose_token_image(_selections(), taxonomy, asset_root / "randomize", tmp_path, "jpg")

    assert out.name == "7.jpg"
    with Image.open(out) as img:
        assert img.format == "JPEG"
        assert img.mode == "RGB"


def test_unsupported_image_type(asset_root, taxonomy, tmp_path):
    with pytest.raises(ValueError, match="Unsupported"):
        compose_token_image(_selections(), taxonomy, asset_root / "randomize", tmp_path, "gif")


class TestOrderSelections:
    def test_orders_by_layer(self, taxonomy):
        ordered = order_selections(_selections(), taxonomy)
        assert [s.trait_type for s in ordered] == ["Background", "Eyes"]

    def test_missing_trait_type(self, taxonomy):
        with pytest.raises(StructuralInputError, match="missing trait types Eyes"):
            order_selections(_selections()[1:], taxonomy)

    def test_duplicate_trait_type(self, taxonomy):
        selections = _selections() + [
            Selection(token_id=7, trait_type="Eyes", trait_value="light-blue.png")
        ]
        with pytest.raises(StructuralInputError, match="duplicate"):
            order_selections(selections, taxonomy)

    def test_unknown_trait_type(self, taxonomy):
        selections = _selections() + [
            Selection(token_id=7, trait_type="Hats", trait_value="cap.png")
        ]
        with pytest.raises(StructuralInputError, match="unknown"):
            order_selections(selections, taxonomy)

    def test_mixed_token_ids(self, taxonomy):
        selections = [_selections(1)[0], _selections(2)[1]]
        with pytest.raises(StructuralInputError):
            order_selections(selections, taxonomy)
