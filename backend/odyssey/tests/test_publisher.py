"""Tests for token publishing (image upload, then metadata upload)."""

from __future__ import annotations

import json

import pytest

from odyssey.agents.publisher import publish_token, upload_artifact
from odyssey.core.errors import ParseError, UploadError
from odyssey.core.ids import content_digest


@pytest.fixture
def asset_dir(tmp_path, make_token):
    path = tmp_path / "collection"
    path.mkdir()
    make_token(path, 0)
    return path


def test_publish_uploads_image_then_metadata(asset_dir, storage_client, wallet):
    image_bytes = (asset_dir / "0.png").read_bytes()

    uri = publish_token(0, asset_dir, "png", storage_client, wallet)

    assert uri == "https://arweave.net/tx-1"
    image_tx, metadata_tx = storage_client.posted
    assert image_tx.data == image_bytes
    assert dict(image_tx.tags)["Content-Type"] == "image/png"
    assert dict(metadata_tx.tags)["Content-Type"] == "application/json"

    sent = json.loads(metadata_tx.data)
    assert sent["image"] == "https://arweave.net/tx-0"


def test_file_hash_covers_bytes_sent(asset_dir, storage_client, wallet):
    publish_token(0, asset_dir, "png", storage_client, wallet)

    for tx in storage_client.posted:
        tags = dict(tx.tags)
        assert tags["File-Hash"] == content_digest(tx.data)
        assert tags["User-Agent"] == "odyssey"
        assert tags["Type"] == "file"
        assert tx.owner == wallet["n"]


def test_metadata_written_back_with_extras(asset_dir, storage_client, wallet):
    publish_token(0, asset_dir, "png", storage_client, wallet)

    document = json.loads((asset_dir / "0.json").read_text(encoding="utf-8"))
    assert document["image"] == "https://arweave.net/tx-0"
    assert document["seller_fee_basis_points"] == 500
    assert document["properties"] == {"creators": [{"address": "0xabc", "share": 100}]}


def test_image_upload_failure_leaves_metadata_untouched(asset_dir, failing_storage_client, wallet):
    client = failing_storage_client(fail_on=0)
    before = (asset_dir / "0.json").read_bytes()

    with pytest.raises(UploadError):
        publish_token(0, asset_dir, "png", client, wallet)

    assert client.post_attempts == 1
    assert (asset_dir / "0.json").read_bytes() == before


def test_metadata_upload_failure_leaves_metadata_untouched(asset_dir, failing_storage_client, wallet):
    client = failing_storage_client(fail_on=1)
    before = (asset_dir / "0.json").read_bytes()

    with pytest.raises(UploadError):
        publish_token(0, asset_dir, "png", client, wallet)

    assert client.post_attempts == 2
    assert (asset_dir / "0.json").read_bytes() == before


def test_missing_files_raise(asset_dir, storage_client, wallet):
    with pytest.raises(FileNotFoundError):
        publish_token(1, asset_dir, "png", storage_client, wallet)
    with pytest.raises(FileNotFoundError):
        publish_token(0, asset_dir, "jpg", storage_client, wallet)
    assert storage_client.post_attempts == 0


def test_malformed_metadata_fails_before_upload(asset_dir, storage_client, wallet):
    (asset_dir / "0.json").write_text("{broken")

    with pytest.raises(ParseError):
        publish_token(0, asset_dir, "png", storage_client, wallet)
    assert storage_client.post_attempts == 0


def test_upload_artifact_record(storage_client, wallet):
    record = upload_artifact(storage_client, wallet, b"abc", "text/plain", "https://gw.example/")

    assert record.content_address == "tx-0"
    assert record.uri == "https://gw.example/tx-0"
    assert record.digest == content_digest(b"abc")
    assert record.tags["File-Hash"] == record.digest


def test_only_image_field_changes(tmp_path, make_token, storage_client, wallet):
    asset_dir = tmp_path / "collection"
    asset_dir.mkdir()
    metadata = {
        "name": "Odyssey #0",
        "image": "",
        "seller_fee_basis_points": 500,
        "properties": {"creators": [{"address": "0xabc", "share": 100}]},
        "attributes": [
            {"trait_type": "Legendary", "value": True},
            {"trait_type": "Level", "value": 3},
        ],
    }
    make_token(asset_dir, 0, metadata=metadata)

    publish_token(0, asset_dir, "png", storage_client, wallet)

    expected = {**metadata, "image": "https://arweave.net/tx-0"}
    sent = json.loads(storage_client.posted[1].data)
    written = json.loads((asset_dir / "0.json").read_text(encoding="utf-8"))
    for document in (sent, written):
        assert document == expected
        assert list(document) == list(expected)
        assert document["attributes"][0]["value"] is True
        assert "description" not in document
