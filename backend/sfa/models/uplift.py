from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


SALE_STATUS_PENDING = "pending"
SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_VOIDED = "voided"


class UpliftSale(db.Model):
    """
    Uplift sale: stock a sales rep sells out of a client's on-hand stock.

    Status is an open set of business values; only "voided" has structural
    meaning (stock for every item has been restored, and it is terminal).
    """
    __tablename__ = "uplift_sales"
    __table_args__ = (
        db.Index("ix_uplift_sales_client_created", "client_id", "created_at"),
        db.Index("ix_uplift_sales_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("sales_reps.id"), nullable=False)

    status = db.Column(db.String(32), nullable=False, default=SALE_STATUS_PENDING, index=True)
    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("Client")
    user = db.relationship("SalesRep")
    items = db.relationship(
        "UpliftSaleItem",
        back_populates="sale",
        order_by="UpliftSaleItem.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_voided(self) -> bool:
        return self.status == SALE_STATUS_VOIDED

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "client_id": self.client_id,
            "user_id": self.user_id,
            "status": self.status,
            "total_amount": float(self.total_amount) if self.total_amount is not None else 0.0,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class UpliftSaleItem(db.Model):
    """Line item of an uplift sale. Immutable once created."""
    __tablename__ = "uplift_sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_uplift_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    uplift_sale_id = db.Column(db.Integer, db.ForeignKey("uplift_sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(14, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("UpliftSale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "uplift_sale_id": self.uplift_sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": float(self.unit_price),
            "total": float(self.total),
            "created_at": to_utc_z(self.created_at),
        }
