from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from decision_governance.db.session import get_db
from decision_governance.models.security import Entity
from decision_governance.schemas.groups import EntityOut
from decision_governance.security.context import AuthContext
from decision_governance.security.dependencies import get_auth_context
from decision_governance.services.groups import get_entity, list_entities

router = APIRouter(prefix="/entities", tags=["entities"])


@router.get("", response_model=list[EntityOut])
def list_all(db: Session = Depends(get_db), ctx: AuthContext = Depends(get_auth_context)) -> list[Entity]:
    return list_entities(db, ctx)


@router.get("/{entity_id}", response_model=EntityOut)
def get_one(entity_id: int, db: Session = Depends(get_db), ctx: AuthContext = Depends(get_auth_context)) -> Entity:
    return get_entity(db, ctx, entity_id)
