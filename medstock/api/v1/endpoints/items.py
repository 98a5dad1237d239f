# medstock/api/v1/endpoints/items.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from medstock.core.database import get_db
from medstock.dependencies.authz import get_current_profile, require_catalog_manager
from medstock.models.stock import Item, StockMovement
from medstock.models.user import UserProfile
from medstock.schemas.item import ItemCreate, ItemResponse, ItemUpdate

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_item_or_404(db: Session, item_id: str) -> Item:
    item = db.get(Item, item_id)
    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Item não encontrado.",
        )
    return item


def _ensure_code_free(db: Session, code: str, exclude_id: str | None = None) -> None:
    query = db.query(Item).filter(Item.code == code)
    if exclude_id:
        query = query.filter(Item.id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Já existe um item com o código '{code}'.",
        )


@router.get("", response_model=list[ItemResponse], tags=["items"])
def list_items(
    search: Optional[str] = Query(
        None, description="Search by name or code (case-insensitive)"
    ),
    category: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(
        None, description="Sort by field: 'name', 'code' or 'current_quantity_central'"
    ),
    sort_dir: Optional[str] = Query("asc", description="Sort direction: 'asc' or 'desc'"),
    current_profile: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> list[ItemResponse]:
    """
    List catalog items.
    """
    query = db.query(Item)

    if category:
        query = query.filter(Item.category == category)

    if search and search.strip():
        search_term = f"%{search.strip()}%"
        query = query.filter(
            or_(Item.name.ilike(search_term), Item.code.ilike(search_term))
        )

    desc = (sort_dir or "asc").lower() == "desc"
    sort_columns = {
        "name": Item.name,
        "code": Item.code,
        "current_quantity_central": Item.current_quantity_central,
    }
    column = sort_columns.get(sort_by or "name", Item.name)
    query = query.order_by(column.desc() if desc else column.asc())

    return [ItemResponse.model_validate(item) for item in query.all()]


@router.post(
    "",
    response_model=ItemResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["items"],
)
def create_item(
    payload: ItemCreate,
    current_profile: UserProfile = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
) -> ItemResponse:
    """
    Create a catalog item. The initial central quantity is taken as given;
    every later change goes through stock movements.
    """
    _ensure_code_free(db, payload.code)

    item = Item(**payload.model_dump())
    try:
        db.add(item)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Já existe um item com o código '{payload.code}'.",
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create item code=%s", payload.code)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao criar o item.",
        )

    db.refresh(item)
    logger.info("Created item id=%s code=%s", item.id, item.code)
    return ItemResponse.model_validate(item)


@router.get("/{item_id}", response_model=ItemResponse, tags=["items"])
def get_item(
    item_id: str,
    current_profile: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> ItemResponse:
    return ItemResponse.model_validate(_get_item_or_404(db, item_id))


@router.patch("/{item_id}", response_model=ItemResponse, tags=["items"])
def update_item(
    item_id: str,
    payload: ItemUpdate,
    current_profile: UserProfile = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
) -> ItemResponse:
    """
    Partial update. Movement history keeps the names captured when each
    movement was recorded.
    """
    item = _get_item_or_404(db, item_id)

    data = payload.model_dump(exclude_unset=True)
    if data.get("code") and data["code"] != item.code:
        _ensure_code_free(db, data["code"], exclude_id=item.id)

    for field, value in data.items():
        if value is None and field not in ("supplier", "expiration_date"):
            continue
        setattr(item, field, value)

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to update item id=%s", item_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao atualizar o item.",
        )

    db.refresh(item)
    return ItemResponse.model_validate(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["items"])
def delete_item(
    item_id: str,
    current_profile: UserProfile = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
) -> None:
    """
    Delete an item. Items referenced by the movement ledger cannot be
    removed.
    """
    item = _get_item_or_404(db, item_id)

    has_movements = (
        db.query(StockMovement.id).filter(StockMovement.item_id == item.id).first()
    )
    if has_movements:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="O item possui movimentações registradas e não pode ser excluído.",
        )

    try:
        db.delete(item)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to delete item id=%s", item_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao excluir o item.",
        )
    logger.info("Deleted item id=%s by=%s", item_id, current_profile.id)
