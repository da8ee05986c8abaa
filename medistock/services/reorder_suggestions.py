"""
Reorder suggestions from a chat-completions language model.

The current inventory goes out as JSON; the model must answer with a JSON
array of {itemName, quantityToReorder, reason}. Anything else is an error.
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from ..config import Settings
from ..schemas.suggestions import ReorderingSuggestion
from .aggregation import earliest_expiration, total_quantity


log = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are an inventory management assistant for a medical supply tracker. "
    "Based on the following inventory data, provide a list of items that need reordering. "
    "Prioritize items that are below their target quantity and items that will expire soon. "
    "Suggest a reasonable quantity to reorder for each item and give a brief reason. "
    "Respond only with a JSON array of objects with the keys itemName, quantityToReorder and reason."
)

_suggestions_adapter = TypeAdapter(List[ReorderingSuggestion])


class ReorderSuggestionError(RuntimeError):
    pass


def inventory_payload(items) -> List[Dict[str, Any]]:
    payload = []
    for item in items:
        earliest: Optional[datetime] = earliest_expiration(item)
        payload.append({
            "name": item.name,
            "barcode": item.barcode,
            "quantity": total_quantity(item),
            "targetQuantity": item.target_quantity,
            "earliestExpiration": earliest.date().isoformat() if earliest else None,
            "moduleId": str(item.module_id),
        })
    return payload


def _strip_fence(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_suggestions(content: str) -> List[ReorderingSuggestion]:
    try:
        data = json.loads(_strip_fence(content or ""))
    except json.JSONDecodeError as e:
        raise ReorderSuggestionError("The model did not return valid JSON.") from e
    if isinstance(data, dict) and isinstance(data.get("suggestions"), list):
        data = data["suggestions"]
    try:
        return _suggestions_adapter.validate_python(data)
    except ValidationError as e:
        raise ReorderSuggestionError("The model response did not match the expected format.") from e


class ReorderSuggestionClient:
    """Client for an OpenAI-compatible /chat/completions endpoint"""

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        self.url = settings.ai_api_url
        self.api_key = settings.ai_api_key
        self.model = settings.ai_model
        self.timeout = settings.ai_timeout_seconds
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def suggest(self, items) -> List[ReorderingSuggestion]:
        if not self.url:
            log.error("reorder_suggestions_not_configured")
            raise ReorderSuggestionError("Reorder suggestions are not configured on the server.")

        inventory = inventory_payload(items)
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": json.dumps(inventory)},
            ],
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.url, json=body, headers=self._headers())
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            log.error("reorder_suggestions_request_failed", error=str(e))
            raise ReorderSuggestionError(f"Language model request failed: {e}") from e
        except ValueError as e:
            raise ReorderSuggestionError("The language model endpoint returned a non-JSON body.") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ReorderSuggestionError("The language model response had no message content.") from e

        suggestions = parse_suggestions(content)
        log.info("reorder_suggestions", items=len(inventory), suggestions=len(suggestions))
        return suggestions
