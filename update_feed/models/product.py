"""Product catalog models backing the bundled SQL entitlement store."""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from update_feed.models.base import BaseModel, JSONType

SOFTWARE_TYPES = ("plugin", "theme")


class Product(BaseModel):
    """A downloadable product sold by the storefront."""

    __tablename__ = "products"

    sku: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    software_type: Mapped[str] = mapped_column(String(20), nullable=False, default="plugin")
    tags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    # Minimum/tested WordPress versions advertised to Composer
    requires_wp: Mapped[str | None] = mapped_column(String(20), nullable=True)
    tested_up_to: Mapped[str | None] = mapped_column(String(20), nullable=True)

    downloadable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    files: Mapped[list["ProductFile"]] = relationship(
        "ProductFile",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductFile.position",
    )

    def __repr__(self) -> str:
        return f"<Product {self.sku}>"


class ProductFile(BaseModel):
    """One release archive attached to a product."""

    __tablename__ = "product_files"

    __table_args__ = (
        UniqueConstraint("product_id", "file_key", name="uq_product_files_product_key"),
    )

    product_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Stable key used in download URLs
    file_key: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Local archive path or remote URL
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product: Mapped["Product"] = relationship("Product", back_populates="files")

    @property
    def is_remote(self) -> bool:
        return self.file_path.startswith(("http://", "https://"))

    def __repr__(self) -> str:
        return f"<ProductFile {self.name} (product_id={self.product_id})>"


class Entitlement(BaseModel):
    """Download permission granted to an owner by a completed order."""

    __tablename__ = "entitlements"

    __table_args__ = (
        UniqueConstraint("owner_id", "product_id", name="uq_entitlements_owner_product"),
    )

    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    product_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order_key: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Entitlement owner={self.owner_id} product={self.product_id}>"
