from __future__ import annotations

from ..extensions import db


class Product(db.Model):
    """
    Product master data owned by a vendor.

    STOCK: stock_quantity is a denormalized cache of the inventory ledger.
    It always equals SUM(inventory_entries.quantity) for the bare product and
    is written only by InventoryLedger.post (see services/inventory_ledger.py).

    PRICING: all money is integer cents. sale_price_cents, when set, must be
    below price_cents and takes precedence at order time.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint(
            "sale_price_cents IS NULL OR sale_price_cents < price_cents",
            name="ck_products_sale_below_price",
        ),
        db.Index("ix_products_vendor_active", "vendor_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price_cents = db.Column(db.Integer, nullable=False)
    sale_price_cents = db.Column(db.Integer, nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)
    track_inventory = db.Column(db.Boolean, nullable=False, default=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    vendor = db.relationship("User", backref=db.backref("products", lazy=True))
    variants = db.relationship("ProductVariant", back_populates="product", lazy=True, order_by="ProductVariant.id")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock_quantity}>"

    def current_price_cents(self) -> int:
        return self.sale_price_cents if self.sale_price_cents is not None else self.price_cents

    def is_low_stock(self) -> bool:
        return bool(self.track_inventory) and self.stock_quantity <= self.low_stock_threshold


class ProductVariant(db.Model):
    """
    Purchasable variant of a product (size, colour, ...).

    Carries its own stock balance, with the same ledger invariant as Product
    but scoped to (product_id, variant_id). Price falls back to the parent.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.CheckConstraint(
            "sale_price_cents IS NULL OR price_cents IS NULL OR sale_price_cents < price_cents",
            name="ck_variants_sale_below_price",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)

    price_cents = db.Column(db.Integer, nullable=True)
    sale_price_cents = db.Column(db.Integer, nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", back_populates="variants")
    __mapper_args__ = {"version_id_col": version_id}

    def current_price_cents(self) -> int:
        if self.sale_price_cents is not None:
            return self.sale_price_cents
        if self.price_cents is not None:
            return self.price_cents
        return self.product.current_price_cents()

