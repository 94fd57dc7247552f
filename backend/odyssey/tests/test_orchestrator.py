"""Tests for token asset generation and collection publishing."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from odyssey.agents.validators import ValidationError
from odyssey.coordinator.orchestrator import (
    generate_token_assets,
    publish_collection,
    sync_token_assets,
)
from odyssey.core import trait_store
from odyssey.core.errors import ParseError, StructuralInputError
from odyssey.core.models import Selection


def _selections(token_id: int) -> list[Selection]:
    return [
        Selection(token_id=token_id, trait_type="Background", trait_value="red.png"),
        Selection(token_id=token_id, trait_type="Eyes", trait_value="light-blue.png"),
    ]


class TestGenerateTokenAssets:
    def test_creates_image_and_metadata(self, asset_root):
        trait_store.regenerate(asset_root)

        result = generate_token_assets(0, _selections(0), asset_root, collection_name="Odyssey", description="d")

        assert result["created"] == {"image": True, "metadata": True}
        assert (asset_root / "0.png").is_file()
        document = json.loads((asset_root / "0.json").read_text(encoding="utf-8"))
        assert document["name"] == "Odyssey #0"
        assert document["attributes"] == [
            {"trait_type": "Background", "value": "Red"},
            {"trait_type": "Eyes", "value": "Light Blue"},
        ]

    def test_existing_files_are_kept(self, asset_root, make_token):
        make_token(asset_root, 0)
        before = (asset_root / "0.json").read_bytes()

        # No trait config on disk: only reachable if the image were regenerated
        result = generate_token_assets(0, _selections(0), asset_root)

        assert result["created"] == {"image": False, "metadata": False}
        assert (asset_root / "0.json").read_bytes() == before

    def test_only_missing_metadata_is_filled(self, asset_root, make_token):
        trait_store.regenerate(asset_root)
        make_token(asset_root, 0)
        (asset_root / "0.json").unlink()

        result = generate_token_assets(0, _selections(0), asset_root, collection_name="Odyssey")

        assert result["created"] == {"image": False, "metadata": True}

    def test_metadata_for_existing_image_checks_coverage(self, asset_root, make_token):
        trait_store.regenerate(asset_root)
        make_token(asset_root, 0)
        (asset_root / "0.json").unlink()
        duplicated = [
            Selection(token_id=0, trait_type="Eyes", trait_value="green.png"),
            Selection(token_id=0, trait_type="Eyes", trait_value="light-blue.png"),
        ]

        with pytest.raises(StructuralInputError):
            generate_token_assets(0, duplicated, asset_root)
        assert not (asset_root / "0.json").exists()

    def test_missing_trait_config(self, asset_root):
        with pytest.raises(ParseError):
            generate_token_assets(0, _selections(0), asset_root)

    def test_other_tokens_selections_are_ignored(self, asset_root):
        trait_store.regenerate(asset_root)

        result = generate_token_assets(1, _selections(0) + _selections(1), asset_root)

        assert result["created"]["image"] is True
        assert not (asset_root / "0.png").exists()


def test_sync_token_assets_reads_ledger(asset_root, monkeypatch):
    from odyssey.core.config import settings

    monkeypatch.setattr(settings, "odyssey_module", "0x1::odyssey")
    trait_store.regenerate(asset_root)
    ledger = MagicMock()
    ledger.read_resource.return_value = {
        "tokenTraitValues": [
            {"tokenID": "2", "traitType": "Background", "traitValue": "blue.png"},
            {"tokenID": "2", "traitType": "Eyes", "traitValue": "green.png"},
        ]
    }

    result = sync_token_assets(ledger, "0xres", 2, asset_root)

    assert result["created"] == {"image": True, "metadata": True}
    assert (asset_root / "2.png").is_file()


class TestPublishCollection:
    @pytest.fixture
    def asset_dir(self, tmp_path):
        path = tmp_path / "collection"
        path.mkdir()
        return path

    def test_invalid_folder_uploads_nothing(self, asset_dir, make_token, storage_client, wallet):
        make_token(asset_dir, 0, "png")
        make_token(asset_dir, 1, "jpg")

        with pytest.raises(ValidationError) as exc_info:
            publish_collection(asset_dir, storage_client, wallet)

        assert exc_info.value.defects
        assert storage_client.post_attempts == 0

    def test_publishes_every_token(self, asset_dir, make_token, storage_client, wallet):
        for i in range(2):
            make_token(asset_dir, i)

        results = publish_collection(asset_dir, storage_client, wallet)

        assert results == [
            {"token_id": 0, "uri": "https://arweave.net/tx-1"},
            {"token_id": 1, "uri": "https://arweave.net/tx-3"},
        ]

    def test_failed_token_is_skipped(self, asset_dir, make_token, failing_storage_client, wallet):
        for i in range(2):
            make_token(asset_dir, i)
        client = failing_storage_client(fail_on=0)

        results = publish_collection(asset_dir, client, wallet)

        assert results == [{"token_id": 1, "uri": "https://arweave.net/tx-2"}]
