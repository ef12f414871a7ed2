from typing import Optional

from app.models.base import CamelModel


class KnowledgeSearchRequest(CamelModel):
    search_query: Optional[str] = None
    category: Optional[str] = None
    action_button_type: Optional[str] = None
