from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


VALID_REQUEST_STATUSES = {"pending", "approved", "rejected", "processing", "completed"}


class Request(db.Model):
    """
    Proforma invoice request (a numbered, non-binding quote).

    IMMUTABILITY: every column except status and notified_at is written once
    at creation. Status moves only through request_service.transition().
    """
    __tablename__ = "requests"
    __table_args__ = (
        db.UniqueConstraint("request_number", name="uq_requests_request_number"),
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'processing', 'completed')",
            name="ck_requests_status_valid",
        ),
        db.Index("ix_requests_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_number = db.Column(db.String(32), nullable=False)

    # NULL for guest submissions
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # Customer snapshot at submit time
    customer_name = db.Column(db.String(255), nullable=False)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(40), nullable=True)
    company_name = db.Column(db.String(255), nullable=True)
    customer_data = db.Column(db.JSON, nullable=True)
    is_guest = db.Column(db.Boolean, nullable=False, default=False)

    notes = db.Column(db.Text, nullable=True)
    currency = db.Column(db.String(3), nullable=False, default="GHS")
    total_amount_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    notified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    lines = db.relationship(
        "RequestLine",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="RequestLine.id",
        lazy="selectin",
    )
    user = db.relationship("User", backref=db.backref("requests", lazy=True))

    def __repr__(self) -> str:
        return f"<Request id={self.id} number={self.request_number!r} status={self.status!r}>"

    def customer_dict(self) -> dict:
        data = dict(self.customer_data or {})
        data.update({
            "name": self.customer_name,
            "email": self.customer_email,
            "phone": self.customer_phone,
            "company_name": self.company_name,
            "is_guest": self.is_guest,
        })
        return data

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_number": self.request_number,
            "user_id": self.user_id,
            "customer": self.customer_dict(),
            "lines": [line.to_dict() for line in self.lines],
            "notes": self.notes,
            "currency": self.currency,
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "notified_at": to_utc_z(self.notified_at),
        }


class RequestLine(db.Model):
    """Priced basket line, embedded in its Request and never edited."""
    __tablename__ = "request_lines"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_request_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    request = db.relationship("Request", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class RequestSequence(db.Model):
    """
    Per-year request number counter.

    Only sequence_service touches last_issued, and only through a single
    UPDATE ... SET last_issued = last_issued + 1. Rows are never deleted.
    """
    __tablename__ = "request_sequences"
    __table_args__ = (
        db.UniqueConstraint("year", name="uq_request_sequences_year"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False)
    last_issued = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "last_issued": self.last_issued,
            "updated_at": to_utc_z(self.updated_at),
        }
