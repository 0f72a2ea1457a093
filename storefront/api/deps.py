from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from storefront.core.config import CART_COOKIE_NAME
from storefront.core.security import JWTError, decode_token
from storefront.db.rows import select_one
from storefront.db.supabase import get_client
from storefront.services.cart import ShopperSession, sessions

bearer = HTTPBearer()


def get_db():
    return get_client()


def get_session(request: Request) -> ShopperSession:
    # read-only paths get a throwaway session; nothing is registered until the first add
    return sessions.get(request.cookies.get(CART_COOKIE_NAME)) or ShopperSession(None)


def start_session(request: Request, response: Response) -> ShopperSession:
    token = request.cookies.get(CART_COOKIE_NAME)
    session = sessions.get_or_create(token)
    if session.token != token:
        response.set_cookie(CART_COOKIE_NAME, session.token, httponly=True, samesite="lax")
    return session


def get_admin_user(credentials: HTTPAuthorizationCredentials = Depends(bearer), client=Depends(get_db)):
    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    uid = payload.get("sub")
    if not uid or not select_one(client, "user_roles", "id", user_id=uid, role="admin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return {"id": uid}
