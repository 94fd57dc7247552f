"""Arweave storage client.

Builds format 2 Arweave transactions, signs them with the wallet's RSA key
(RSA-PSS over the transaction's deep hash) and posts them to an Arweave node.
The transaction id, which is the content address, is the SHA-256 of the
signature.
"""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from odyssey.core import concurrency
from odyssey.core.config import settings
from odyssey.core.errors import UploadError
from odyssey.core.logging import log

WALLET_FIELDS = ("kty", "n", "e", "d", "p", "q", "dp", "dq", "qi")

TX_FORMAT = 2
MAX_CHUNK_SIZE = 256 * 1024
MIN_CHUNK_SIZE = 32 * 1024
NOTE_SIZE = 32
PSS_SALT_LENGTH = 32


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def load_wallet(wallet_path: str | Path) -> dict[str, str]:
    """Load the Arweave key pair (JWK) from a JSON file.

    Fields are extracted as-is; they are only decoded when signing.

    Args:
        wallet_path: Path of the wallet JSON file

    Returns:
        Dict with kty, n, e, d, p, q, dp, dq, qi

    Raises:
        RuntimeError: If the file cannot be read, is not JSON, or lacks a key field
    """
    try:
        with open(wallet_path, "r", encoding="utf-8") as f:
            keypair = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        log.error(f"wallet_load_failed path={wallet_path} reason={type(e).__name__}")
        raise RuntimeError("Failed to load wallet from JSON file.") from e

    if not isinstance(keypair, dict):
        raise RuntimeError("Failed to load wallet from JSON file: expected a JWK object.")

    missing = [name for name in WALLET_FIELDS if name not in keypair]
    if missing:
        raise RuntimeError(f"Wallet JSON file is missing key fields: {', '.join(missing)}")

    return {name: keypair[name] for name in WALLET_FIELDS}


def private_key_from_wallet(wallet: dict[str, str]) -> rsa.RSAPrivateKey:
    """RSA private key from JWK fields (base64url big-endian integers)."""

    def num(name: str) -> int:
        return int.from_bytes(b64url_decode(wallet[name]), "big")

    try:
        public = rsa.RSAPublicNumbers(e=num("e"), n=num("n"))
        return rsa.RSAPrivateNumbers(
            p=num("p"),
            q=num("q"),
            d=num("d"),
            dmp1=num("dp"),
            dmq1=num("dq"),
            iqmp=num("qi"),
            public_numbers=public,
        ).private_key()
    except (KeyError, ValueError, TypeError) as e:
        raise UploadError(f"Wallet key is not a valid RSA JWK: {e}") from e


def deep_hash(item: bytes | list) -> bytes:
    """Arweave deep hash (SHA-384) of a blob or a nested list of blobs."""
    if isinstance(item, list):
        acc = hashlib.sha384(b"list" + str(len(item)).encode()).digest()
        for child in item:
            acc = hashlib.sha384(acc + deep_hash(child)).digest()
        return acc

    tag = hashlib.sha384(b"blob" + str(len(item)).encode()).digest()
    return hashlib.sha384(tag + hashlib.sha384(item).digest()).digest()


def _sha256(*parts: bytes) -> bytes:
    return hashlib.sha256(b"".join(parts)).digest()


def _note(value: int) -> bytes:
    return value.to_bytes(NOTE_SIZE, "big")


def chunk_ranges(data: bytes) -> list[tuple[int, int]]:
    """(start, end) byte ranges of the data chunks, as the node expects them.

    Chunks are MAX_CHUNK_SIZE; when the remainder after a full chunk would be
    smaller than MIN_CHUNK_SIZE the last two chunks are split evenly instead.
    """
    ranges = []
    cursor = 0
    rest = len(data)
    while rest >= MAX_CHUNK_SIZE:
        size = MAX_CHUNK_SIZE
        following = rest - MAX_CHUNK_SIZE
        if 0 < following < MIN_CHUNK_SIZE:
            size = -(-rest // 2)
        ranges.append((cursor, cursor + size))
        cursor += size
        rest -= size
    ranges.append((cursor, cursor + rest))
    return ranges


def data_root(data: bytes) -> bytes:
    """Merkle root over the data chunks (empty for empty data)."""
    if not data:
        return b""

    # (id, max byte range) per node
    nodes = [
        (_sha256(_sha256(_sha256(data[start:end])), _sha256(_note(end))), end)
        for start, end in chunk_ranges(data)
    ]
    while len(nodes) > 1:
        layer = []
        for i in range(0, len(nodes), 2):
            if i + 1 == len(nodes):
                layer.append(nodes[i])
                continue
            (left_id, left_max), (right_id, right_max) = nodes[i], nodes[i + 1]
            branch_id = _sha256(_sha256(left_id), _sha256(right_id), _sha256(_note(left_max)))
            layer.append((branch_id, right_max))
        nodes = layer
    return nodes[0][0]


@dataclass
class StorageTransaction:
    """Pending upload; `id` is the content address once signed."""

    data: bytes
    tags: list[tuple[str, str]] = field(default_factory=list)
    owner: str = ""
    last_tx: str = ""
    reward: str = "0"
    target: str = ""
    quantity: str = "0"
    data_root: str = ""
    signature: str = ""
    id: str | None = None

    @property
    def data_size(self) -> str:
        return str(len(self.data))

    def signature_data(self) -> bytes:
        """Deep hash of the signed fields (format 2)."""
        return deep_hash(
            [
                str(TX_FORMAT).encode(),
                b64url_decode(self.owner),
                b64url_decode(self.target),
                self.quantity.encode(),
                self.reward.encode(),
                b64url_decode(self.last_tx),
                [[name.encode(), value.encode()] for name, value in self.tags],
                self.data_size.encode(),
                b64url_decode(self.data_root),
            ]
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "format": TX_FORMAT,
            "id": self.id,
            "last_tx": self.last_tx,
            "owner": self.owner,
            "tags": [{"name": b64url_encode(k.encode()), "value": b64url_encode(v.encode())} for k, v in self.tags],
            "target": self.target,
            "quantity": self.quantity,
            "data": b64url_encode(self.data),
            "data_size": self.data_size,
            "data_root": self.data_root,
            "reward": self.reward,
            "signature": self.signature,
        }


class ArweaveClient:
    """Arweave node client (anchor, price, signed transaction posting)."""

    def __init__(self, node_url: str | None = None, timeout_s: int | None = None):
        self.node_url = (node_url or settings.arweave_node_url).rstrip("/")
        if not self.node_url:
            raise RuntimeError("ARWEAVE_NODE_URL missing")
        self.timeout_s = timeout_s or settings.upload_timeout_s

    def _get_text(self, path: str) -> str:
        try:
            with httpx.Client(timeout=self.timeout_s) as client:
                r = client.get(f"{self.node_url}/{path}")
        except httpx.HTTPError as e:
            raise UploadError(f"Arweave {path} network error: {e}") from e

        if r.status_code >= 400:
            log.error(f"arweave_get_failed path={path} status={r.status_code} body={r.text[:200]}")
            raise UploadError(f"Arweave {path} failed ({r.status_code}): {r.text[:200]}")
        return r.text.strip()

    def create_transaction(self, data: bytes) -> StorageTransaction:
        """Data transaction anchored to the node's current tx anchor and priced for its size."""
        tx = StorageTransaction(data=data)
        tx.last_tx = self._get_text("tx_anchor")
        tx.reward = self._get_text(f"price/{len(data)}")
        if not tx.reward.isdigit():
            raise UploadError(f"Arweave price response is not a winston amount: {tx.reward[:50]}")
        tx.data_root = b64url_encode(data_root(data))
        return tx

    def add_tag(self, tx: StorageTransaction, name: str, value: str) -> None:
        tx.tags.append((name, value))

    def sign(self, tx: StorageTransaction, wallet: dict[str, str]) -> None:
        """Sign with the wallet key; sets owner, signature and id.

        Tags must all be added before signing.
        """
        key = private_key_from_wallet(wallet)
        tx.owner = wallet["n"]
        signature = key.sign(
            tx.signature_data(),
            padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=PSS_SALT_LENGTH),
            hashes.SHA256(),
        )
        tx.signature = b64url_encode(signature)
        tx.id = b64url_encode(hashlib.sha256(signature).digest())

    def post(self, tx: StorageTransaction) -> str:
        """Post a signed transaction to the node.

        Returns:
            The transaction id

        Raises:
            UploadError: On network failure or a rejected transaction. No
                retry is attempted.
        """
        if not tx.signature or not tx.id:
            raise UploadError("Transaction must be signed before posting")

        try:
            with concurrency.upload_slot():
                with httpx.Client(timeout=self.timeout_s) as client:
                    r = client.post(f"{self.node_url}/tx", json=tx.to_json())
        except httpx.HTTPError as e:
            log.error(f"arweave_post_failed id={tx.id} reason={type(e).__name__}:{e}")
            raise UploadError(f"Arweave upload network error: {e}") from e

        # 208: already accepted by the node
        if r.status_code not in (200, 202, 208):
            log.error(f"arweave_post_failed id={tx.id} status={r.status_code} body={r.text[:500]}")
            raise UploadError(f"Arweave upload failed ({r.status_code}): {r.text[:500]}")

        log.info(f"arweave_posted id={tx.id} size={len(tx.data)} status={r.status_code}")
        return tx.id
