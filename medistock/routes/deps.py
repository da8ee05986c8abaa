"""
Request-scoped collaborators. Tests swap these with app.dependency_overrides.
"""
from datetime import datetime, timezone

from fastapi import Request

from ..config import settings
from ..services.live_feed import InventoryFeed
from ..services.mailer import SmtpMailer
from ..services.reorder_suggestions import ReorderSuggestionClient


def get_now() -> datetime:
    return datetime.now(timezone.utc)


def get_mailer() -> SmtpMailer:
    return SmtpMailer(settings)


def get_suggestion_client() -> ReorderSuggestionClient:
    return ReorderSuggestionClient(settings)


def get_inventory_feed(request: Request) -> InventoryFeed:
    return request.app.state.inventory_feed
