"""Product Admin - product metadata management with user accounts."""

import logging
import time

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError as SchemaValidationError
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.config import get_settings
from app.database import get_db
from app.dependencies import (
    clear_auth_cookie,
    get_auth_service,
    get_current_user_from_cookie,
    require_web_auth,
    set_auth_cookie,
)
from app.errors import AuthError, ValidationError
from app.rate_limit import limiter
from app.routers import auth_router, products_router
from app.schemas.product import ProductCreate, ProductUpdate
from app.services.auth import AuthService
from app.services.products import get_product_service

# Logging
logger = logging.getLogger("product_admin")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

settings = get_settings()
for warning in settings.validate():
    logger.warning(warning)

app = FastAPI(title="Product Admin", version="0.1.0", docs_url="/api-docs")
app.state.limiter = limiter


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if not request.url.path.startswith("/api-docs"):
            response.headers["X-Frame-Options"] = "DENY"
            response.headers["Content-Security-Policy"] = (
                "default-src 'self'; "
                "script-src 'self' https://cdn.tailwindcss.com; "
                "style-src 'self' 'unsafe-inline'; "
                "img-src 'self' data:; "
                "connect-src 'self'; "
                "font-src 'self'"
            )
        return response


# --- Audit logging middleware ---
class AuditLogMiddleware(BaseHTTPMiddleware):
    AUDIT_PATHS = {"/api/v1/auth/", "/api/v1/products", "/login", "/register", "/forgot-password", "/reset-password"}

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        path = request.url.path
        method = request.method
        if method in ("POST", "PUT", "DELETE") and any(path.startswith(p) for p in self.AUDIT_PATHS):
            logger.info(
                "AUDIT %s %s -> %d (%.0fms) from %s",
                method,
                path,
                response.status_code,
                duration_ms,
                request.client.host if request.client else "unknown",
            )

        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(AuditLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=True,
)

# Static files
app.mount("/static", StaticFiles(directory="static"), name="static")

# Templates
templates = Jinja2Templates(directory="templates")

# API routers
app.include_router(auth_router)
app.include_router(products_router)


# --- Rate limit error handler ---
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Handle rate limit exceeded."""
    if request.url.path.startswith("/api/"):
        return JSONResponse(status_code=429, content={"detail": "Rate limit exceeded. Try again later."})
    return HTMLResponse(content="<h1>429</h1><p>Too many requests. Please try again later.</p>", status_code=429)


# --- Auth service errors -> {"kind", "message"} ---
@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> Response:
    """Render auth errors with their stable kind and message."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.__cause__ or exc)
    if request.url.path.startswith("/api/"):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
    if exc.status_code == 401:
        # Cookie points at an account that no longer exists
        response = RedirectResponse(url="/login", status_code=302)
        clear_auth_cookie(response)
        return response
    return HTMLResponse(content=f"<h1>{exc.status_code}</h1><p>{exc.message}</p>", status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> Response:
    """Report malformed request bodies as field-level validation errors."""
    if not request.url.path.startswith("/api/"):
        return HTMLResponse(content="<h1>400</h1><p>Invalid form submission.</p>", status_code=400)
    fields: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        fields.setdefault(".".join(loc) or "body", []).append(error.get("msg", "Invalid value"))
    return JSONResponse(status_code=400, content=ValidationError(fields).to_dict())


# --- Exception handler: 401 -> redirect to /login ---
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> Response:
    """Handle HTTP exceptions. Redirect 401 to login for web requests."""
    if request.url.path.startswith("/api/"):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)
    if exc.status_code == 401:
        return RedirectResponse(url="/login", status_code=302)
    return HTMLResponse(
        content=f"<h1>{exc.status_code}</h1><p>{exc.detail}</p>",
        status_code=exc.status_code,
    )


# --- Health check ---
@app.get("/api/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "app": "product-admin", "version": "0.1.0"}


# --- Web routes: authentication ---
@app.get("/login", response_class=HTMLResponse)
def login_page(request: Request, message: str | None = None) -> Response:
    """Render login page."""
    if get_current_user_from_cookie(request):
        return RedirectResponse(url="/", status_code=302)
    return templates.TemplateResponse(request, "login.html", {"message": message})


@app.post("/login", response_class=HTMLResponse)
@limiter.limit("10/minute")
def login_submit(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    auth_service: AuthService = Depends(get_auth_service),
) -> Response:
    """Handle login form submission."""
    try:
        result = auth_service.login(email, password)
    except AuthError as e:
        if e.status_code >= 500:
            raise
        return templates.TemplateResponse(request, "login.html", {"error": e.message, "email": email})

    response = RedirectResponse(url="/", status_code=302)
    set_auth_cookie(response, result.token)
    return response


@app.get("/register", response_class=HTMLResponse)
def register_page(request: Request) -> Response:
    """Render register page."""
    if get_current_user_from_cookie(request):
        return RedirectResponse(url="/", status_code=302)
    return templates.TemplateResponse(request, "register.html", {})


@app.post("/register", response_class=HTMLResponse)
@limiter.limit("5/minute")
def register_submit(
    request: Request,
    first_name: str = Form(""),
    last_name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    auth_service: AuthService = Depends(get_auth_service),
) -> Response:
    """Handle register form submission."""
    form = {"first_name": first_name, "last_name": last_name, "email": email}
    try:
        result = auth_service.register(first_name, last_name, email, password)
    except ValidationError as e:
        return templates.TemplateResponse(
            request, "register.html", {"error": e.message, "field_errors": e.fields, **form}
        )
    except AuthError as e:
        if e.status_code >= 500:
            raise
        return templates.TemplateResponse(request, "register.html", {"error": e.message, **form})

    response = RedirectResponse(url="/", status_code=302)
    set_auth_cookie(response, result.token)
    return response


@app.get("/logout")
def logout() -> RedirectResponse:
    """Clear auth cookie and redirect to login."""
    response = RedirectResponse(url="/login", status_code=302)
    clear_auth_cookie(response)
    return response


@app.get("/forgot-password", response_class=HTMLResponse)
def forgot_password_page(request: Request) -> Response:
    """Render forgot password page."""
    return templates.TemplateResponse(request, "forgot_password.html", {})


@app.post("/forgot-password", response_class=HTMLResponse)
@limiter.limit("3/minute")
def forgot_password_submit(
    request: Request,
    email: str = Form(""),
    auth_service: AuthService = Depends(get_auth_service),
) -> Response:
    """Handle forgot password form submission."""
    try:
        auth_service.forgot_password(email)
    except AuthError as e:
        return templates.TemplateResponse(
            request, "forgot_password.html", {"error": e.message, "email": email}, status_code=e.status_code
        )
    return templates.TemplateResponse(
        request, "forgot_password.html", {"success": "Password reset email sent. Check your inbox.", "email": email}
    )


@app.get("/reset-password/{token}", response_class=HTMLResponse)
def reset_password_page(request: Request, token: str) -> Response:
    """Render reset password page for the token in the emailed link."""
    return templates.TemplateResponse(request, "reset_password.html", {"token": token})


@app.post("/reset-password/{token}", response_class=HTMLResponse)
@limiter.limit("5/minute")
def reset_password_submit(
    request: Request,
    token: str,
    password: str = Form(""),
    confirm_password: str = Form(""),
    auth_service: AuthService = Depends(get_auth_service),
) -> Response:
    """Handle reset password form submission."""
    if password != confirm_password:
        return templates.TemplateResponse(
            request, "reset_password.html", {"token": token, "error": "Passwords do not match"}
        )
    try:
        auth_service.reset_password(token, password)
    except AuthError as e:
        if e.status_code >= 500:
            raise
        return templates.TemplateResponse(request, "reset_password.html", {"token": token, "error": e.message})

    return RedirectResponse(url="/login?message=Password+has+been+reset.+Please+sign+in.", status_code=302)


# --- Web routes: products ---
def _product_form_data(name: str, description: str, tags: str, price: str) -> dict:
    return {
        "name": name,
        "description": description,
        "tags": [t.strip() for t in tags.split(",") if t.strip()],
        "price": price,
    }


def _schema_errors(exc: SchemaValidationError) -> dict[str, list[str]]:
    fields: dict[str, list[str]] = {}
    for error in exc.errors():
        key = str(error["loc"][0]) if error.get("loc") else "form"
        fields.setdefault(key, []).append(error["msg"])
    return fields


@app.get("/", response_class=HTMLResponse)
def dashboard(
    request: Request,
    user=Depends(require_web_auth),
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
) -> Response:
    """Render dashboard with the product table."""
    profile = auth_service.profile(user)
    products = get_product_service().list_products(db)
    return templates.TemplateResponse(request, "home.html", {"user": profile, "products": products})


@app.get("/products/new", response_class=HTMLResponse)
def new_product_page(request: Request, user=Depends(require_web_auth)) -> Response:
    """Render empty product form."""
    return templates.TemplateResponse(request, "product_form.html", {"user": user, "product": None, "form": {}})


@app.post("/products/new", response_class=HTMLResponse)
def new_product_submit(
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
    tags: str = Form(""),
    price: str = Form(""),
    user=Depends(require_web_auth),
    db: Session = Depends(get_db),
) -> Response:
    """Create a product from the web form."""
    form = _product_form_data(name, description, tags, price)
    try:
        data = ProductCreate.model_validate(form)
    except SchemaValidationError as e:
        errors = _schema_errors(e)
        context = {"user": user, "product": None, "form": {**form, "tags": tags}, "field_errors": errors}
        return templates.TemplateResponse(request, "product_form.html", context)
    get_product_service().create_product(db, data)
    return RedirectResponse(url="/", status_code=302)


@app.get("/products/{product_id}/edit", response_class=HTMLResponse)
def edit_product_page(
    request: Request,
    product_id: str,
    user=Depends(require_web_auth),
    db: Session = Depends(get_db),
) -> Response:
    """Render product form filled with an existing product."""
    product = get_product_service().get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    form = {
        "name": product.name,
        "description": product.description,
        "tags": ", ".join(product.tags or []),
        "price": product.price,
    }
    return templates.TemplateResponse(request, "product_form.html", {"user": user, "product": product, "form": form})


@app.post("/products/{product_id}/edit", response_class=HTMLResponse)
def edit_product_submit(
    request: Request,
    product_id: str,
    name: str = Form(""),
    description: str = Form(""),
    tags: str = Form(""),
    price: str = Form(""),
    user=Depends(require_web_auth),
    db: Session = Depends(get_db),
) -> Response:
    """Update a product from the web form."""
    service = get_product_service()
    product = service.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    form = _product_form_data(name, description, tags, price)
    try:
        data = ProductUpdate.model_validate(form)
    except SchemaValidationError as e:
        errors = _schema_errors(e)
        context = {"user": user, "product": product, "form": {**form, "tags": tags}, "field_errors": errors}
        return templates.TemplateResponse(request, "product_form.html", context)
    service.update_product(db, product, data)
    return RedirectResponse(url="/", status_code=302)


@app.post("/products/{product_id}/delete")
def delete_product_submit(
    product_id: str,
    user=Depends(require_web_auth),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    """Delete a product from the web table."""
    service = get_product_service()
    product = service.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    service.delete_product(db, product)
    return RedirectResponse(url="/", status_code=302)
