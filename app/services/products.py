"""Product service for CRUD operations."""

from sqlalchemy.orm import Session

from app.models.product import Product
from app.schemas.product import ProductCreate, ProductUpdate


class ProductService:
    """Handles product storage and retrieval."""

    def list_products(self, db: Session) -> list[Product]:
        """Get all products, newest first."""
        return db.query(Product).order_by(Product.created_at.desc()).all()

    def get_product(self, db: Session, product_id: str) -> Product | None:
        return db.get(Product, product_id)

    def create_product(self, db: Session, data: ProductCreate) -> Product:
        """Create a product record in the database."""
        product = Product(
            name=data.name,
            description=data.description,
            tags=_clean_tags(data.tags),
            price=data.price,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    def update_product(self, db: Session, product: Product, data: ProductUpdate) -> Product:
        """Apply the fields the client sent. Only ProductUpdate fields can change."""
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "tags" in changes:
            changes["tags"] = _clean_tags(changes["tags"])
        for key, value in changes.items():
            setattr(product, key, value)
        db.commit()
        db.refresh(product)
        return product

    def delete_product(self, db: Session, product: Product) -> None:
        db.delete(product)
        db.commit()


def _clean_tags(tags: list[str]) -> list[str]:
    cleaned = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


_product_service: ProductService | None = None


def get_product_service() -> ProductService:
    """Get singleton product service instance."""
    global _product_service
    if _product_service is None:
        _product_service = ProductService()
    return _product_service
