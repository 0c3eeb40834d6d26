from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ClientStock(db.Model):
    """
    On-hand stock of one product at one client (the ledger key).

    INVARIANTS:
    - Exactly one row per (client_id, product_id)
    - quantity >= 0 after every committed transaction
    - quantity is only written through stock_ledger_service.adjust / upsert_set
    """
    __tablename__ = "client_stock"
    __table_args__ = (
        db.UniqueConstraint("client_id", "product_id", name="uq_client_stock_client_product"),
        db.CheckConstraint("quantity >= 0", name="ck_client_stock_quantity_non_negative"),
        db.Index("ix_client_stock_quantity", "quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    client = db.relationship("Client", backref=db.backref("stock", lazy=True))
    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def key(self) -> tuple[int, int]:
        return (self.client_id, self.product_id)

    def __repr__(self) -> str:
        return f"<ClientStock client_id={self.client_id} product_id={self.product_id} quantity={self.quantity}>"

    def to_dict(self, include_product: bool = False) -> dict:
        data = {
            "id": self.id,
            "client_id": self.client_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_product and self.product is not None:
            data["product"] = self.product.to_dict()
        return data
