# app/repositories/product_repo.py
import uuid
from typing import Iterable

from sqlmodel import Session, select

from app.models.product import Product


class ProductRepository:
    """
    Read access to products.

    - Pure DB operations (queries).
    - No FastAPI, no business logic.
    """

    def get_many(
        self,
        session: Session,
        product_ids: Iterable[uuid.UUID],
    ) -> dict[uuid.UUID, Product]:
        """Load several products in one query, keyed by id."""
        ids = set(product_ids)
        if not ids:
            return {}
        stmt = select(Product).where(Product.id.in_(ids))
        return {p.id: p for p in session.exec(stmt).all()}
