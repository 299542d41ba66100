# app/repositories/store_repo.py
import uuid

from sqlmodel import Session, select

from app.models.store import Store


class StoreRepository:
    """
    Read access to stores. Store CRUD lives in the catalog service.
    """

    def get_by_id(self, session: Session, store_id: uuid.UUID) -> Store | None:
        return session.get(Store, store_id)

    def list_ids_for_owner(
        self,
        session: Session,
        owner_id: uuid.UUID,
    ) -> list[uuid.UUID]:
        stmt = select(Store.id).where(Store.owner_id == owner_id)
        return list(session.exec(stmt).all())
