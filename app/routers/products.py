"""Product API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import CurrentUser, get_current_user
from app.errors import TagSuggestionError
from app.rate_limit import limiter
from app.schemas.product import (
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    TagSuggestionRequest,
    TagSuggestionResponse,
)
from app.services.products import get_product_service
from app.services.tag_suggestions import TagSuggestionService, get_tag_suggestion_service

router = APIRouter(prefix="/api/v1/products", tags=["Products"])


@router.get("/", response_model=list[ProductResponse])
def list_products(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ProductResponse]:
    """List all products."""
    service = get_product_service()
    return [ProductResponse.model_validate(p) for p in service.list_products(db)]


@router.post("/", response_model=ProductResponse, status_code=201)
def create_product(
    body: ProductCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProductResponse:
    """Create a new product."""
    service = get_product_service()
    return ProductResponse.model_validate(service.create_product(db, body))


@router.post("/suggest-tags", response_model=TagSuggestionResponse)
@limiter.limit("20/minute")
def suggest_tags(
    request: Request,
    body: TagSuggestionRequest,
    user: CurrentUser = Depends(get_current_user),
    tag_service: TagSuggestionService = Depends(get_tag_suggestion_service),
) -> TagSuggestionResponse:
    """Suggest tags for a product from its name and description."""
    if not body.name.strip() or not body.description.strip():
        raise HTTPException(status_code=400, detail="Both name and description are required")

    try:
        tags = tag_service.suggest(body.name, body.description)
    except TagSuggestionError:
        raise HTTPException(
            status_code=502,
            detail="Failed to generate tag suggestions. Please ensure the local LLM service is running.",
        ) from None

    return TagSuggestionResponse(suggested_tags=tags)


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProductResponse:
    """Get a single product by ID."""
    service = get_product_service()
    product = service.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductResponse.model_validate(product)


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: str,
    body: ProductUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProductResponse:
    """Update a product. Only name, description, tags and price can change."""
    service = get_product_service()
    product = service.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductResponse.model_validate(service.update_product(db, product, body))


@router.delete("/{product_id}", status_code=204)
def delete_product(
    product_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """Delete a product."""
    service = get_product_service()
    product = service.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    service.delete_product(db, product)
    return Response(status_code=204)
