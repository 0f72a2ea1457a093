import os
from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")  # optional service role
SECRET_KEY = os.getenv("SECRET_KEY", "changeme")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
APP_NAME = os.getenv("APP_NAME", "Royal Storefront Backend")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

CART_COOKIE_NAME = os.getenv("CART_COOKIE_NAME", "cart_session")
CART_SESSION_TTL_SECONDS = int(os.getenv("CART_SESSION_TTL_SECONDS", "86400"))

ORDER_ID_PREFIX = os.getenv("ORDER_ID_PREFIX", "RYL-")
ORDER_ID_LENGTH = int(os.getenv("ORDER_ID_LENGTH", "8"))

# used when neither the variant nor the product carries a stock figure
FALLBACK_QUANTITY_CEILING = int(os.getenv("FALLBACK_QUANTITY_CEILING", "99"))
LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", "5"))

COUPON_INCREMENT_RETRIES = int(os.getenv("COUPON_INCREMENT_RETRIES", "3"))
ORPHAN_ORDER_GRACE_SECONDS = int(os.getenv("ORPHAN_ORDER_GRACE_SECONDS", "300"))
