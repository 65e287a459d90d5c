from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

class Company(db.Model):
    """
    Multi-tenant root: every tenant is a Company.

    WHY: Shared-database multi-tenancy with strict isolation. Items, users and
    orders all carry company_id and every query touching them must filter by it.

    Companies are soft-deleted (deleted_at) so historical orders keep their owner.
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = db.Column(db.Integer, nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
        }
