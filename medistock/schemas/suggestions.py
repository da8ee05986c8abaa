from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReorderingSuggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_name: str = Field(alias="itemName")
    quantity_to_reorder: int = Field(alias="quantityToReorder", ge=0)
    reason: Optional[str] = None


class ReorderingSuggestionsResponse(BaseModel):
    suggestions: List[ReorderingSuggestion]
