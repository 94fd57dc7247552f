"""Asset pipeline API routes (trait config, validation, token assets, publish)."""

from __future__ import annotations

import json

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from odyssey.agents import publisher
from odyssey.agents.validators import validate_asset_dir
from odyssey.clients.arweave import ArweaveClient, load_wallet
from odyssey.coordinator.orchestrator import generate_token_assets
from odyssey.core import concurrency, trait_store
from odyssey.core.config import settings
from odyssey.core.errors import ParseError, StructuralInputError, UploadError
from odyssey.core.logging import log
from odyssey.core.models import Selection
from odyssey.core.taxonomy import count_trait_values, weight_entries

router = APIRouter()

# Rate limiter instance
limiter = Limiter(key_func=get_remote_address)


async def _parse_body(request: Request, model: type[BaseModel]) -> BaseModel:
    # Parse body manually to work around slowapi/FastAPI integration issue
    try:
        body_bytes = await request.body()
        body_dict = json.loads(body_bytes) if body_bytes else {}
        return model(**body_dict)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Invalid request body: {str(e)}")


# ============================================================================
# Trait Config
# ============================================================================


@router.post("/trait-config/regenerate")
@limiter.limit("10/minute")
async def regenerate_trait_config(request: Request) -> dict:
    """Rebuild randomize/trait_config.json from the layer folders.

    Destructive: hand-tuned probabilities are replaced by an even split.

    Returns:
        Dict with the new trait config, the number of trait values and the
        basis-point rows for on-chain population

    Raises:
        HTTPException: 404 if randomize/ is missing, 400 if a folder is malformed
    """
    try:
        taxonomy = trait_store.regenerate(settings.assets_dir)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StructuralInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "ok": True,
        "trait_config": taxonomy.to_document(),
        "trait_values": count_trait_values(taxonomy),
        "entries": [
            {"trait_type": t, "trait_value": v, "basis_points": bp}
            for t, v, bp in weight_entries(taxonomy)
        ],
    }


@router.get("/trait-config")
def get_trait_config() -> dict:
    """Return the persisted trait config."""
    try:
        taxonomy = trait_store.load(settings.assets_dir)
    except ParseError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {"ok": True, "trait_config": taxonomy.to_document()}


# ============================================================================
# Asset Validation
# ============================================================================


@router.post("/assets/validate")
@limiter.limit("30/minute")
async def validate_assets(request: Request) -> dict:
    """Run the pre-flight checks over the asset folder (no files are modified)."""
    try:
        report = validate_asset_dir(settings.assets_dir)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return report.model_dump()


# ============================================================================
# Token Assets + Publish
# ============================================================================


class TraitChoice(BaseModel):
    trait_type: str = Field(..., min_length=1)
    trait_value: str = Field(..., min_length=1)


class TokenAssetsRequest(BaseModel):
    """Request body for generating a token's image + metadata."""

    selections: list[TraitChoice] = Field(..., min_length=1)
    image_type: str = "png"
    collection_name: str | None = None
    description: str | None = None


class PublishRequest(BaseModel):
    image_type: str = Field(default="png", pattern=r"^(png|jpe?g)$")


@router.post("/tokens/{token_id}/assets")
@limiter.limit("30/minute")
async def create_token_assets(token_id: int, request: Request) -> dict:
    """Generate `{token_id}.{ext}` and `{token_id}.json` if they do not exist yet."""
    body = await _parse_body(request, TokenAssetsRequest)

    selections = [
        Selection(token_id=token_id, trait_type=c.trait_type, trait_value=c.trait_value)
        for c in body.selections
    ]

    try:
        result = generate_token_assets(
            token_id,
            selections,
            settings.assets_dir,
            body.image_type,
            body.collection_name,
            body.description,
        )
    except StructuralInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ParseError as e:
        raise HTTPException(status_code=409, detail=f"Trait config unavailable: {e}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"ok": True, **result}


@router.post("/tokens/{token_id}/publish")
@limiter.limit("10/minute")
async def publish_token(token_id: int, request: Request) -> dict:
    """Upload a token's image and metadata to Arweave.

    Returns:
        Dict with the published metadata URI

    Raises:
        HTTPException: 404 if files are missing, 422 if metadata is malformed,
            502 if an upload fails, 500 if the wallet cannot be loaded
    """
    body = await _parse_body(request, PublishRequest)

    try:
        wallet = load_wallet(settings.wallet_file)
        uri = publisher.publish_token(
            token_id, settings.assets_dir, body.image_type, ArweaveClient(), wallet
        )
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ParseError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except UploadError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except RuntimeError as e:
        log.error(f"publish_route_failed token={token_id} reason={e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {"ok": True, "token_id": token_id, "uri": uri}


# ============================================================================
# Observability
# ============================================================================


@router.get("/healthz")
def healthz() -> dict:
    """Liveness check with upload slot usage."""
    return {"ok": True, "concurrency": concurrency.status()}
