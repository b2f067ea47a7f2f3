"""Finance ledger bridge: posts a movement to the external finance service's RPC."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

RPC_PATH = "/rest/v1/rpc/ingest_external_transaction"


class FinanceBridgeError(Exception):
    """Raised when the finance service rejects or cannot take a movement."""


@dataclass
class FinancePayload:
    api_key: str
    finance_url: str
    date: str
    amount: float
    description: str
    movement_type: str  # income / expense
    category: str
    provider_name: str | None = None
    concept_id: str | None = None

    def to_rpc_body(self) -> dict[str, Any]:
        return {
            "p_api_key": self.api_key,
            "p_date": self.date,
            "p_amount": self.amount,
            "p_description": self.description,
            "p_type": self.movement_type,
            "p_category": self.category,
            "p_provider_name": self.provider_name or None,
            "p_concept_id": self.concept_id or None,
        }


async def send_to_finance(client: httpx.AsyncClient, payload: FinancePayload) -> Any:
    """Post one ledger movement. Returns the decoded JSON reply."""
    if not payload.finance_url:
        raise FinanceBridgeError("Finance API Error: missing finance_url")

    rpc_url = payload.finance_url.rstrip("/") + RPC_PATH
    logger.info("Sending movement to finance service: %s", payload.description)

    resp = await client.post(
        rpc_url,
        json=payload.to_rpc_body(),
        headers={
            "Content-Type": "application/json",
            "apikey": payload.api_key,
            "Authorization": f"Bearer {payload.api_key}",
        },
    )
    if not resp.is_success:
        raise FinanceBridgeError(f"Finance API Error: {resp.text}")

    try:
        return resp.json()
    except ValueError:
        return resp.text
