"""Read-only Aptos node client for on-chain trait selections.

Transaction submission and signing stay with the Aptos SDK; this module only
reads account resources and calls view functions over the node REST API.
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError

from odyssey.core.config import settings
from odyssey.core.errors import ParseError
from odyssey.core.logging import log
from odyssey.core.models import Selection


class AptosClient:
    """Aptos fullnode REST client (reads only)."""

    def __init__(self, node_url: str | None = None, timeout_s: int | None = None):
        self.node_url = (node_url or settings.aptos_node_url).rstrip("/")
        self.timeout_s = timeout_s or settings.ledger_timeout_s
        self.headers = {"Accept": "application/json"}

    def read_resource(self, address: str, resource_type: str) -> dict[str, Any]:
        """Fetch an account resource's data.

        Raises:
            LookupError: If the resource does not exist on the account
            RuntimeError: On any other failure
        """
        url = f"{self.node_url}/accounts/{address}/resource/{resource_type}"
        try:
            with httpx.Client(timeout=self.timeout_s) as client:
                r = client.get(url, headers=self.headers)
        except httpx.HTTPError as e:
            raise RuntimeError(f"Aptos resource read network error: {e}") from e

        if r.status_code == 404:
            raise LookupError(f"Aptos resource {resource_type} not found on {address}")
        if r.status_code >= 400:
            log.error(f"aptos_read_failed status={r.status_code} body={r.text[:500]}")
            raise RuntimeError(f"Aptos resource read failed ({r.status_code}): {r.text[:500]}")

        return r.json().get("data", {})

    def view(self, function: str, args: list[Any], type_arguments: list[str] | None = None) -> list[Any]:
        """Call a Move view function and return its values."""
        body = {
            "function": function,
            "type_arguments": type_arguments or [],
            "arguments": args,
        }
        try:
            with httpx.Client(timeout=self.timeout_s) as client:
                r = client.post(f"{self.node_url}/view", headers=self.headers, json=body)
        except httpx.HTTPError as e:
            raise RuntimeError(f"Aptos view network error: {e}") from e

        if r.status_code >= 400:
            log.error(f"aptos_view_failed function={function} status={r.status_code} body={r.text[:500]}")
            raise RuntimeError(f"Aptos view {function} failed ({r.status_code}): {r.text[:500]}")

        return r.json()


def selections_from_resource(resource: dict[str, Any], token_id: int) -> list[Selection]:
    """Selections of one token from a TokenTraitValueList resource.

    Args:
        resource: Resource data with a `tokenTraitValues` list of
            {tokenID, traitType, traitValue}
        token_id: Token to extract

    Raises:
        ParseError: If the resource does not have the expected shape
    """
    rows = resource.get("tokenTraitValues")
    if not isinstance(rows, list):
        raise ParseError("TokenTraitValueList resource has no 'tokenTraitValues' list")

    try:
        selections = [
            Selection(
                token_id=int(row["tokenID"]),
                trait_type=row["traitType"],
                trait_value=row["traitValue"],
            )
            for row in rows
        ]
    except (KeyError, TypeError, ValueError, ValidationError) as e:
        raise ParseError(f"Malformed tokenTraitValues entry: {e}") from e

    return [s for s in selections if s.token_id == token_id]


def fetch_token_selections(
    client: AptosClient,
    resource_account: str,
    token_id: int,
    module: str | None = None,
) -> list[Selection]:
    """Read a token's on-chain trait selections from the collection's resource account."""
    module = module or settings.odyssey_module
    if not module:
        raise RuntimeError("ODYSSEY_MODULE missing (e.g. 0x1234::odyssey)")

    resource = client.read_resource(resource_account, f"{module}::TokenTraitValueList")
    selections = selections_from_resource(resource, token_id)
    log.info(f"token_selections_fetched token={token_id} count={len(selections)}")
    return selections
