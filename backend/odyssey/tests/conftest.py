"""Shared fixtures: layer folder trees, indexed asset folders, fake storage client."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from PIL import Image

from odyssey.clients.arweave import StorageTransaction, b64url_encode
from odyssey.core.errors import UploadError


def _jwk_from_key(key: rsa.RSAPrivateKey) -> dict:
    def enc(value: int) -> str:
        return b64url_encode(value.to_bytes((value.bit_length() + 7) // 8, "big"))

    numbers = key.private_numbers()
    return {
        "kty": "RSA",
        "n": enc(numbers.public_numbers.n),
        "e": enc(numbers.public_numbers.e),
        "d": enc(numbers.d),
        "p": enc(numbers.p),
        "q": enc(numbers.q),
        "dp": enc(numbers.dmp1),
        "dq": enc(numbers.dmq1),
        "qi": enc(numbers.iqmp),
    }


WALLET_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
WALLET = _jwk_from_key(WALLET_KEY)


def solid_image(path: Path, rgba: tuple, size: tuple = (8, 8)) -> None:
    Image.new("RGBA", size, rgba).save(path)


def corner_image(path: Path, rgba: tuple, size: tuple = (8, 8)) -> None:
    """Transparent image with an opaque 2x2 square in the top-left corner."""
    img = Image.new("RGBA", size, (0, 0, 0, 0))
    for x in range(2):
        for y in range(2):
            img.putpixel((x, y), rgba)
    img.save(path)


def valid_metadata(token_id: int) -> dict:
    return {
        "name": f"Odyssey #{token_id}",
        "image": "https://example.com/placeholder.png",
        "description": "Test collection",
        "seller_fee_basis_points": 500,
        "properties": {"creators": [{"address": "0xabc", "share": 100}]},
        "attributes": [{"trait_type": "Background", "value": "Blue"}],
    }


def write_token(asset_dir: Path, token_id: int, ext: str = "png", metadata: dict | None = None) -> None:
    Image.new("RGB", (8, 8), (10, 20, 30)).save(asset_dir / f"{token_id}.{ext}")
    with open(asset_dir / f"{token_id}.json", "w", encoding="utf-8") as f:
        json.dump(metadata if metadata is not None else valid_metadata(token_id), f, indent=2)


@pytest.fixture
def asset_root(tmp_path):
    """Asset folder with randomize/01_Background (blue, red) and 02_Eyes (green, light-blue)."""
    root = tmp_path / "assets"
    background = root / "randomize" / "01_Background"
    eyes = root / "randomize" / "02_Eyes"
    background.mkdir(parents=True)
    eyes.mkdir()

    solid_image(background / "blue.png", (0, 0, 255, 255))
    solid_image(background / "red.png", (255, 0, 0, 255))
    corner_image(eyes / "green.png", (0, 255, 0, 255))
    corner_image(eyes / "light-blue.png", (173, 216, 230, 255))
    return root


@pytest.fixture
def wallet():
    return dict(WALLET)


@pytest.fixture
def wallet_public_key():
    return WALLET_KEY.public_key()


class FakeStorageClient:
    """In-memory stand-in for ArweaveClient; fails the Nth post when asked."""

    def __init__(self, fail_on: int | None = None):
        self.fail_on = fail_on
        self.post_attempts = 0
        self.posted: list[StorageTransaction] = []

    def create_transaction(self, data: bytes) -> StorageTransaction:
        return StorageTransaction(data=data)

    def add_tag(self, tx: StorageTransaction, name: str, value: str) -> None:
        tx.tags.append((name, value))

    def sign(self, tx: StorageTransaction, wallet: dict) -> None:
        tx.owner = wallet["n"]

    def post(self, tx: StorageTransaction) -> str:
        attempt = self.post_attempts
        self.post_attempts += 1
        if self.fail_on is not None and attempt == self.fail_on:
            raise UploadError("gateway unavailable")
        tx.id = f"tx-{attempt}"
        self.posted.append(tx)
        return tx.id


@pytest.fixture
def storage_client():
    return FakeStorageClient()


@pytest.fixture
def failing_storage_client():
    """Factory: failing_storage_client(fail_on=0) fails the first post."""
    return FakeStorageClient


@pytest.fixture
def make_token():
    """write_token(asset_dir, token_id, ext="png", metadata=None)."""
    return write_token


@pytest.fixture
def make_metadata():
    return valid_metadata
