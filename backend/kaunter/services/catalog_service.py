"""
Catalog reads used at order time.

Item CRUD lives outside this service; the order engine only needs the
current name and price of the items in a cart, looked up inside one company.
"""

from __future__ import annotations

from typing import Iterable

from ..extensions import db
from ..models import Item


def fetch_items_by_ids(company_id: int, item_ids: Iterable[int]) -> list[Item]:
    """
    Fetch items by id, scoped to ``company_id``.

    Active status and soft deletion are not filtered here: an
    item that was deactivated while a cart was open still resolves.
    Ids that belong to another company are simply absent from the result.
    """
    ids = sorted(set(item_ids))
    if not ids:
        return []
    return (
        db.session.query(Item)
        .filter(Item.company_id == company_id, Item.id.in_(ids))
        .all()
    )
