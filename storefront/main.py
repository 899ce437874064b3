# storefront/main.py
import logging
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.staticfiles import StaticFiles

from . import analytics, auth, cart, orders, pages, payments, shop
from .config import LOG_LEVEL
from .database import create_tables

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("storefront")

app = FastAPI(
    title="Storefront",
    description="🛒 Catalog, cart, hosted checkout and admin API",
    version="1.0.0",
)

BASE_DIR = Path(__file__).resolve().parent.parent
STATIC_DIR = BASE_DIR / "static"
if STATIC_DIR.is_dir():
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

# ✅ CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# ✅ Cart cookie: every request gets its cart storage, every response carries the writes
app.middleware("http")(cart.cart_cookie_middleware)

# ✅ Routers
app.include_router(auth.router)
app.include_router(shop.router)
app.include_router(cart.router)
app.include_router(payments.router)
app.include_router(payments.demo_router)
app.include_router(orders.router)
app.include_router(analytics.router)
app.include_router(analytics.export_router)
app.include_router(pages.router)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.on_event("startup")
async def on_startup():
    # Dev convenience; production schemas are managed outside the app
    await create_tables()
    logger.info("Storefront started")


# ✅ OpenAPI with OAuth2 so /docs shows Authorize
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    schema.setdefault("components", {}).setdefault("securitySchemes", {})
    schema["components"]["securitySchemes"]["OAuth2PasswordBearer"] = {
        "type": "oauth2",
        "flows": {"password": {"tokenUrl": "/api/auth/login", "scopes": {}}}
    }
    schema["security"] = [{"OAuth2PasswordBearer": []}]
    app.openapi_schema = schema
    return app.openapi_schema


app.openapi = custom_openapi


if __name__ == "__main__":
    uvicorn.run("storefront.main:app", host="0.0.0.0", port=8000, reload=True)
