# storefront/config.py
import os

# Use DATABASE_URL env var when available (makes containerized runs configurable)
DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    "postgresql+asyncpg://postgres:postgres@db:5432/storefront_db",
)
SQL_ECHO = os.getenv("SQL_ECHO", "0") == "1"

SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
TOKEN_COOKIE = "sf_token"

# Cart cookie (the browser-side storage of the cart)
CART_STORAGE_KEY = "cart"
CART_COOKIE_MAX_AGE = int(os.getenv("CART_COOKIE_MAX_AGE", str(60 * 60 * 24 * 30)))

# Payments. Without a Stripe key the in-process demo gateway is used.
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
CURRENCY = os.getenv("CURRENCY", "usd")
# Where the checkout initiator posts the cart. Empty means "same origin as the page".
PAYMENTS_URL = os.getenv("PAYMENTS_URL", "")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
