from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .tombstone import TombstoneMixin


VALID_ROLES = {"customer", "admin", "super_admin"}
VALID_ACCOUNT_STATUSES = {"active", "suspended"}


class User(TombstoneMixin, db.Model):
    """
    Storefront/admin account.

    Credentials and sessions are owned by the external auth service; this
    row only carries profile data, role and the two lifecycle flags.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    company_name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(40), nullable=True)

    role = db.Column(db.String(16), nullable=False, default="customer")
    account_status = db.Column(db.String(16), nullable=False, default="active")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "company_name": self.company_name,
            "phone": self.phone,
            "role": self.role,
            "account_status": self.account_status,
            "is_active": self.is_active,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
