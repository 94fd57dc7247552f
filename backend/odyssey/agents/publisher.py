"""Token publisher: uploads a token's image, then its metadata, to Arweave.

The metadata upload depends on the image's content address, so the two
uploads always run in sequence. A failure after the image upload leaves an
orphaned (harmless) image on Arweave; there is no rollback and no dedup.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from odyssey.clients.arweave import ArweaveClient
from odyssey.core.config import settings
from odyssey.core.errors import ParseError, UploadError
from odyssey.core.ids import content_digest
from odyssey.core.logging import log
from odyssey.core.models import MetadataDocument, UploadRecord
from odyssey.core.paths import token_image_path, token_metadata_path
from odyssey.core.storage import read_json_document, write_json_document

FILE_TYPE = "file"


def upload_tags(content_type: str, digest: str) -> dict[str, str]:
    return {
        "Content-Type": content_type,
        "User-Agent": settings.user_agent,
        "User-Agent-Version": settings.user_agent_version,
        "Type": FILE_TYPE,
        "File-Hash": digest,
    }


def upload_artifact(
    client: ArweaveClient,
    wallet: dict[str, str],
    data: bytes,
    content_type: str,
    storage_base_uri: str | None = None,
) -> UploadRecord:
    """Digest, tag, sign and post one artifact.

    Args:
        client: Storage client (create_transaction/add_tag/sign/post)
        wallet: Key pair from load_wallet()
        data: Exact bytes to upload; the digest covers these bytes
        content_type: MIME type recorded in the Content-Type tag
        storage_base_uri: Gateway base for the returned URI

    Returns:
        UploadRecord with digest, content address and URI

    Raises:
        UploadError: If posting fails or no content address is returned
    """
    base_uri = (storage_base_uri or settings.storage_base_uri).rstrip("/")
    digest = content_digest(data)
    tags = upload_tags(content_type, digest)

    tx = client.create_transaction(data)
    for name, value in tags.items():
        client.add_tag(tx, name, value)
    client.sign(tx, wallet)
    client.post(tx)

    if not tx.id:
        raise UploadError(f"Upload of {content_type} returned no content address")

    return UploadRecord(digest=digest, content_address=tx.id, uri=f"{base_uri}/{tx.id}", tags=tags)


def load_metadata(path: str | Path) -> dict[str, Any]:
    """Read a token metadata document, validating its shape.

    The raw document is returned so fields are published exactly as written;
    the model is only used as a check.

    Raises:
        ParseError: If the document is missing, not JSON, or fails validation
    """
    raw = read_json_document(path)
    if not isinstance(raw, dict):
        raise ParseError(f"Metadata {path} must be a JSON object")
    try:
        MetadataDocument.model_validate(raw)
    except ValidationError as e:
        raise ParseError(f"Metadata {path} failed validation: {e}") from e
    return raw


def publish_token(
    token_id: int,
    asset_dir: str | Path,
    image_type: str,
    client: ArweaveClient,
    wallet: dict[str, str],
    storage_base_uri: str | None = None,
) -> str:
    """Upload `{token_id}.{image_type}` and `{token_id}.json`; return the metadata URI.

    Steps (strictly ordered):
    1. Digest and upload the image bytes
    2. Point the metadata's `image` at the uploaded image (no other field changes)
    3. Digest and upload the updated metadata bytes
    4. Write the updated metadata back to `{token_id}.json`

    Args:
        token_id: Token to publish
        asset_dir: Folder holding the token's image and metadata
        image_type: Active image extension from validation (png/jpg/jpeg)
        client: Storage client
        wallet: Key pair from load_wallet()
        storage_base_uri: Gateway base URI (default STORAGE_BASE_URI)

    Returns:
        Published metadata URI `{storage_base_uri}/{metadata_tx_id}`

    Raises:
        FileNotFoundError: If the image or JSON file is missing
        ParseError: If the metadata document is malformed
        UploadError: If either upload fails (metadata is left unmodified
            on disk when the image upload fails)
    """
    image_path = token_image_path(asset_dir, token_id, image_type)
    json_path = token_metadata_path(asset_dir, token_id)

    if not image_path.is_file() or not json_path.is_file():
        raise FileNotFoundError(f"Image or JSON file missing for tokenID {token_id}")

    payload = load_metadata(json_path)
    log.info(f"publish_start token={token_id} image={image_path.name}")

    try:
        image_record = upload_artifact(
            client, wallet, image_path.read_bytes(), f"image/{image_type}", storage_base_uri
        )
        log.info(f"publish_image_uploaded token={token_id} id={image_record.content_address} hash={image_record.digest}")

        payload["image"] = image_record.uri
        metadata_bytes = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

        metadata_record = upload_artifact(
            client, wallet, metadata_bytes, "application/json", storage_base_uri
        )
        log.info(f"publish_metadata_uploaded token={token_id} id={metadata_record.content_address} hash={metadata_record.digest}")
    except UploadError as e:
        log.error(f"publish_failed token={token_id} reason={e}")
        raise

    write_json_document(json_path, payload)

    log.info(f"publish_done token={token_id} uri={metadata_record.uri}")
    return metadata_record.uri
