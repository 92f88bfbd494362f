"""
Quest template endpoints.
"""
from typing import Annotated

from fastapi import APIRouter, Depends

from questline.api.deps import get_template_store
from questline.schemas.quest import QuestTemplate
from questline.services.templates import TemplateStore

router = APIRouter()

Store = Annotated[TemplateStore, Depends(get_template_store)]


@router.get("", response_model=list[QuestTemplate])
async def list_templates(templates: Store) -> list[QuestTemplate]:
    """Active quest templates, newest first."""
    return await templates.list_active_templates()


@router.get("/{template_id}", response_model=QuestTemplate)
async def get_template(template_id: str, templates: Store) -> QuestTemplate:
    """
    Get a quest template by id.

    Deactivated templates are still returned so clients of users who
    started on them can render their steps.
    """
    return await templates.get_template(template_id)
