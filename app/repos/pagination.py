# app/repos/pagination.py
from dataclasses import dataclass
from typing import Any, List

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from app.domain.errors import InvalidCursor


@dataclass
class Page:
    items: List[Any]
    total_items: int
    next_cursor: int | None
    has_next_page: bool


def keyset_paginate(
    db: Session,
    stmt,
    model,
    limit: int,
    cursor: int | None = None,
    page: int | None = None,
) -> Page:
    """
    Stronicowanie po (created_at desc, id desc).

    Pobiera limit+1 wierszy - jesli przyszlo wiecej niz limit, jest nastepna
    strona, a next_cursor to id ostatniego wiersza na tej stronie. Kolejna
    strona zaczyna sie scisle za kursorem. Bez kursora mozna podac page (offset).
    """
    total_items = db.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ).scalar_one()

    stmt = stmt.order_by(model.created_at.desc(), model.id.desc())

    if cursor is not None:
        anchor = db.execute(
            select(model.created_at, model.id).where(model.id == cursor)
        ).first()
        if anchor is None:
            raise InvalidCursor(cursor)

        stmt = stmt.where(
            or_(
                model.created_at < anchor.created_at,
                and_(model.created_at == anchor.created_at, model.id < anchor.id),
            )
        )
    elif page and page > 1:
        stmt = stmt.offset((page - 1) * limit)

    rows = db.execute(stmt.limit(limit + 1)).scalars().all()

    has_next_page = len(rows) > limit
    rows = rows[:limit]
    next_cursor = rows[-1].id if has_next_page else None

    return Page(
        items=list(rows),
        total_items=total_items,
        next_cursor=next_cursor,
        has_next_page=has_next_page,
    )
