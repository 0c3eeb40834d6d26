from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Client(db.Model):
    """
    Client / outlet visited by sales reps.

    Only the fields the stock core reads are modelled here; outlet CRUD
    lives outside this service.
    """
    __tablename__ = "clients"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    region = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Client id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact": self.contact,
            "address": self.address,
            "region": self.region,
        }


class SalesRep(db.Model):
    """Sales representative recorded as the user on an uplift sale."""
    __tablename__ = "sales_reps"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
        }


class Product(db.Model):
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)
    description = db.Column(db.Text, nullable=True)

    # List price; uplift sales carry their own negotiated unit price per line
    unit_price = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "unit_price": float(self.unit_price) if self.unit_price is not None else None,
            "created_at": to_utc_z(self.created_at),
        }
