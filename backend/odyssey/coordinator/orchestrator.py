from __future__ import annotations

from pathlib import Path

from odyssey.agents import publisher
from odyssey.agents.validators import ValidationError, validate_asset_dir
from odyssey.clients.aptos import AptosClient, fetch_token_selections
from odyssey.clients.arweave import ArweaveClient, load_wallet
from odyssey.core import trait_store
from odyssey.core.compositor import compose_token_image
from odyssey.core.config import settings
from odyssey.core.logging import log
from odyssey.core.metadata import synthesize_metadata
from odyssey.core.models import Selection
from odyssey.core.paths import randomize_dir, token_image_path, token_metadata_path


def generate_token_assets(
    token_id: int,
    selections: list[Selection],
    asset_dir: str | Path | None = None,
    image_type: str = "png",
    collection_name: str | None = None,
    description: str | None = None,
) -> dict:
    """Create a token's image and metadata from its selections, if absent.

    Existing `{token_id}.{image_type}` / `{token_id}.json` files are left as
    they are, so re-running after a partial failure only fills the gaps.

    Args:
        token_id: Token being generated
        selections: The token's selections (one per trait type)
        asset_dir: Asset folder (default ASSETS_DIR)
        image_type: Image extension to write
        collection_name: Token name prefix (default COLLECTION_NAME)
        description: Collection description (default COLLECTION_DESCRIPTION)

    Returns:
        Dict with token_id, image/metadata paths and which were created

    Raises:
        StructuralInputError: If selections are incomplete or a layer is missing
        ParseError: If the persisted trait config is malformed
    """
    asset_dir = Path(asset_dir or settings.assets_dir)
    selections = [s for s in selections if s.token_id == token_id]

    image_path = token_image_path(asset_dir, token_id, image_type)
    json_path = token_metadata_path(asset_dir, token_id)
    created = {"image": False, "metadata": False}

    need_image = not image_path.exists()
    need_metadata = not json_path.exists()

    # Trait config is only read when something is generated
    taxonomy = trait_store.load(asset_dir) if need_image or need_metadata else None

    if need_image:
        compose_token_image(selections, taxonomy, randomize_dir(asset_dir), asset_dir, image_type)
        created["image"] = True
        log.info(f"token_image_created token={token_id}")

    if need_metadata:
        synthesize_metadata(
            selections,
            taxonomy,
            collection_name if collection_name is not None else settings.collection_name,
            description if description is not None else settings.collection_description,
            asset_dir,
        )
        created["metadata"] = True
        log.info(f"token_metadata_created token={token_id}")

    return {
        "token_id": token_id,
        "image_path": str(image_path),
        "metadata_path": str(json_path),
        "created": created,
    }


def sync_token_assets(
    ledger: AptosClient,
    resource_account: str,
    token_id: int,
    asset_dir: str | Path | None = None,
    image_type: str = "png",
) -> dict:
    """Fetch a token's on-chain selections and generate its assets."""
    selections = fetch_token_selections(ledger, resource_account, token_id)
    return generate_token_assets(token_id, selections, asset_dir, image_type)


def publish_collection(
    asset_dir: str | Path | None = None,
    client: ArweaveClient | None = None,
    wallet: dict[str, str] | None = None,
) -> list[dict]:
    """Validate an asset folder, then publish tokens 0..N-1 one at a time.

    A token that fails to publish is logged and skipped; the rest continue.

    Args:
        asset_dir: Asset folder (default ASSETS_DIR)
        client: Storage client (default ArweaveClient from settings)
        wallet: Key pair (default loaded from WALLET_FILE)

    Returns:
        List of {"token_id", "uri"} for successfully published tokens

    Raises:
        ValidationError: If the folder fails validation (nothing is uploaded)
    """
    asset_dir = Path(asset_dir or settings.assets_dir)
    report = validate_asset_dir(asset_dir)
    if not report.ok:
        raise ValidationError(
            f"Asset folder {asset_dir} failed validation with {len(report.defects)} defect(s)",
            report.defects,
        )

    client = client or ArweaveClient()
    wallet = wallet or load_wallet(settings.wallet_file)

    log.info(f"publish_cycle_start dir={asset_dir} count={report.token_count} type={report.image_type}")
    results = []

    for token_id in range(report.token_count):
        try:
            uri = publisher.publish_token(token_id, asset_dir, report.image_type, client, wallet)
            results.append({"token_id": token_id, "uri": uri})
        except Exception as e:
            log.error(
                f"publish_fail token={token_id} reason={type(e).__name__}:{e}",
                exc_info=True,
            )
            # Continue with next token

    log.info(f"publish_cycle_complete success={len(results)} fail={report.token_count - len(results)}")
    return results
