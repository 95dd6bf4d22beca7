from __future__ import annotations

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Residence
from .concurrency import run_with_retry


def create_residence(name: str, address: str | None = None) -> Residence:
    def _op():
        clean = (name or "").strip()
        if not clean:
            raise ValidationError("Residence name is required", details={"field": "name"})
        if db.session.query(Residence).filter_by(name=clean).first():
            raise ConflictError("Residence name already exists")

        residence = Residence(name=clean, address=address)
        db.session.add(residence)
        db.session.commit()
        return residence

    return run_with_retry(_op)


def get_residence(residence_id: int) -> Residence:
    residence = db.session.get(Residence, residence_id)
    if not residence:
        raise NotFoundError("Residence not found")
    return residence


def list_residences(*, include_inactive: bool = False) -> list[Residence]:
    q = db.session.query(Residence)
    if not include_inactive:
        q = q.filter(Residence.is_active.is_(True))
    return q.order_by(Residence.name.asc()).all()
