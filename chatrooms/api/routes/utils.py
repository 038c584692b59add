# chatrooms/api/routes/utils.py

from __future__ import annotations

from typing import Iterable, Type

from pydantic import BaseModel

from chatrooms.models.models import Page


def to_page(items: Iterable, schema: Type[BaseModel], page: int, per_page: int, total: int, last_page: int) -> Page:
    """
    Wrap one page of ORM rows in the paged response shape:

        {
            "data": [...],
            "current_page": 1,
            "per_page": 10,
            "total": 42,
            "last_page": 5
        }
    """
    return Page[schema](
        data=[schema.model_validate(item) for item in items],
        current_page=page,
        per_page=per_page,
        total=total,
        last_page=last_page,
    )
