from supabase import create_client
from storefront.core.config import SUPABASE_URL, SUPABASE_ANON_KEY, SUPABASE_SERVICE_KEY

supabase = None
def get_client():
    global supabase
    if supabase is None:
        key = SUPABASE_SERVICE_KEY or SUPABASE_ANON_KEY
        if not SUPABASE_URL or not key:
            raise RuntimeError("Supabase URL/Key not configured. See .env")
        supabase = create_client(SUPABASE_URL, key)
    return supabase
