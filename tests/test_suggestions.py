import json

import httpx
import pytest

from conftest import make_item
from medistock.config import Settings
from medistock.routes.deps import get_suggestion_client
from medistock.services.reorder_suggestions import (
    ReorderSuggestionClient,
    ReorderSuggestionError,
    parse_suggestions,
)


def _settings(**kw):
    base = {"AI_API_URL": "https://llm.test/v1/chat/completions", "AI_API_KEY": "k", "AI_MODEL": "m"}
    base.update(kw)
    return Settings(**base)


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def test_client_sends_inventory_and_parses_reply():
    seen = {}

    def handler(request: httpx.Request):
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        reply = [{"itemName": "Gauze", "quantityToReorder": 6, "reason": "Below target"}]
        return httpx.Response(200, json=_completion(json.dumps(reply)))

    client = ReorderSuggestionClient(_settings(), transport=httpx.MockTransport(handler))
    suggestions = client.suggest([make_item("Gauze", target=10, batches=[(4, None)], module_id="m1")])

    assert seen["auth"] == "Bearer k"
    assert seen["body"]["model"] == "m"
    inventory = json.loads(seen["body"]["messages"][1]["content"])
    assert inventory == [{
        "name": "Gauze",
        "barcode": None,
        "quantity": 4,
        "targetQuantity": 10,
        "earliestExpiration": None,
        "moduleId": "m1",
    }]
    assert suggestions[0].item_name == "Gauze"
    assert suggestions[0].quantity_to_reorder == 6


def test_fenced_json_is_accepted():
    content = "```json\n[{\"itemName\": \"Tape\", \"quantityToReorder\": 2, \"reason\": \"low\"}]\n```"
    assert parse_suggestions(content)[0].item_name == "Tape"


def test_invalid_json_is_an_error():
    with pytest.raises(ReorderSuggestionError):
        parse_suggestions("Sure! Here are some items to reorder.")
    with pytest.raises(ReorderSuggestionError):
        parse_suggestions('[{"itemName": "Tape", "quantityToReorder": -1}]')


def test_upstream_failure_is_an_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(503, json={"error": "overloaded"}))
    client = ReorderSuggestionClient(_settings(), transport=transport)
    with pytest.raises(ReorderSuggestionError):
        client.suggest([make_item("Gauze")])


def test_missing_configuration_is_an_error():
    client = ReorderSuggestionClient(_settings(AI_API_URL=None))
    with pytest.raises(ReorderSuggestionError):
        client.suggest([make_item("Gauze")])


def test_endpoint_returns_aliased_suggestions(app, client, add_item, staff_headers):
    add_item("Gauze", target=10, batches=[(4, None)])
    reply = [{"itemName": "Gauze", "quantityToReorder": 6, "reason": "Below target"}]
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=_completion(json.dumps(reply))))
    app.dependency_overrides[get_suggestion_client] = lambda: ReorderSuggestionClient(_settings(), transport=transport)

    r = client.post("/api/suggestions/reorder", headers=staff_headers)
    assert r.status_code == 200
    assert r.json() == {"suggestions": reply}


def test_endpoint_maps_model_errors_to_502(app, client, add_item, staff_headers):
    add_item("Gauze")
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=_completion("not json")))
    app.dependency_overrides[get_suggestion_client] = lambda: ReorderSuggestionClient(_settings(), transport=transport)

    r = client.post("/api/suggestions/reorder", headers=staff_headers)
    assert r.status_code == 502
    assert r.json()["detail"] == "The model did not return valid JSON."
