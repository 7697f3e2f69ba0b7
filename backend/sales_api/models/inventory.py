from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Something for sale.

    sold/revenue are NOT columns: they are summed from the product's sales
    at read time (see products_service) and passed into to_dict.
    """
    __tablename__ = "products"

    product_id = db.Column(db.String(36), primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Smallest currency unit
    cost = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    # Owner; nullable for rows seeded before ownership existed
    user_id = db.Column(db.String(36), db.ForeignKey("users.user_id"), nullable=True, index=True)

    date_created = db.Column(db.DateTime, nullable=False, default=utcnow)
    date_updated = db.Column(db.DateTime, nullable=False, default=utcnow)

    sales = db.relationship(
        "Sale",
        back_populates="product",
        lazy=True,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Product product_id={self.product_id} name={self.name!r} user_id={self.user_id}>"

    def to_dict(self, sold: int = 0, revenue: int = 0) -> dict:
        return {
            "id": self.product_id,
            "name": self.name,
            "cost": self.cost,
            "quantity": self.quantity,
            "sold": int(sold or 0),
            "revenue": int(revenue or 0),
            "user_id": self.user_id,
            "date_created": to_utc_z(self.date_created),
            "date_updated": to_utc_z(self.date_updated),
        }


class Sale(db.Model):
    """
    One transaction against a product. Immutable once written.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_product_created", "product_id", "date_created"),
    )

    sale_id = db.Column(db.String(36), primary_key=True)
    product_id = db.Column(
        db.String(36),
        db.ForeignKey("products.product_id", ondelete="CASCADE"),
        nullable=False,
    )
    quantity = db.Column(db.Integer, nullable=False)

    # Amount paid, smallest currency unit
    paid = db.Column(db.Integer, nullable=False)

    date_created = db.Column(db.DateTime, nullable=False, default=utcnow)

    product = db.relationship("Product", back_populates="sales")

    def __repr__(self) -> str:
        return f"<Sale sale_id={self.sale_id} product_id={self.product_id} quantity={self.quantity} paid={self.paid}>"

    def to_dict(self) -> dict:
        return {
            "id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "paid": self.paid,
            "date_created": to_utc_z(self.date_created),
        }
