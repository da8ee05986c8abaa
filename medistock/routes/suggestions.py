from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import User
from ..auth.security import get_current_user
from ..schemas.suggestions import ReorderingSuggestionsResponse
from ..services.inventory import load_items
from ..services.reorder_suggestions import ReorderSuggestionClient, ReorderSuggestionError
from .deps import get_suggestion_client


router = APIRouter(prefix="/api/suggestions", tags=["suggestions"])


@router.post("/reorder", response_model=ReorderingSuggestionsResponse, response_model_by_alias=True)
def reorder_suggestions(
    db: Session = Depends(get_db),
    client: ReorderSuggestionClient = Depends(get_suggestion_client),
    _: User = Depends(get_current_user),
):
    items = load_items(db)
    if not items:
        return {"suggestions": []}
    try:
        suggestions = client.suggest(items)
    except ReorderSuggestionError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"suggestions": suggestions}
