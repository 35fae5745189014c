"""
storefront/core/security.py - Firebase ID token authentication for FastAPI endpoints.

- `Authorization: Bearer <Firebase ID token>` is verified with the Firebase Admin SDK
  (check_revoked=True, so tokens are rejected after logout).
- The profile is read from `users/{uid}`; when missing, a default customer profile is created
  from the token claims.
- `get_current_admin` additionally requires `role == "admin"`.

Use with `Depends(get_current_user)` / `Depends(get_current_admin)`.
"""
import logging
from typing import Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth
from firebase_admin import firestore

from storefront.config import get_db, prefixed

logger = logging.getLogger("storefront.security")

# HTTPBearer is a FastAPI provided security scheme for "Authorization: Bearer <token>" header
oauth2_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme)
) -> Dict:
    """
    Verifies the Firebase ID token and returns the user profile (with `id`).
    Creates the Firestore profile on first sight.
    """
    if not credentials or not credentials.scheme or not credentials.credentials:
        raise _unauthorized("Authentication credentials were not provided")

    try:
        decoded = firebase_auth.verify_id_token(credentials.credentials, check_revoked=True)
    except firebase_auth.ExpiredIdTokenError:
        raise _unauthorized("Token expired")
    except firebase_auth.RevokedIdTokenError:
        raise _unauthorized("Session revoked")
    except Exception as exc:
        logger.debug("ID token rejected: %s", exc)
        raise _unauthorized("Invalid authentication token")

    uid = decoded.get("uid")
    if not uid:
        raise _unauthorized("Invalid token payload")

    user_ref = get_db().collection(prefixed("users")).document(uid)
    doc = user_ref.get()

    if not doc.exists:
        user_data = {
            "name": decoded.get("name", "") or "",
            "email": decoded.get("email", "") or "",
            "phone": decoded.get("phone_number", "") or "",
            "address": "",
            "role": "customer",
            "created_at": firestore.SERVER_TIMESTAMP,
        }
        user_ref.set(user_data)
        return {**user_data, "id": uid}

    user = doc.to_dict() or {}
    user["id"] = uid
    return user


def get_current_admin(current_user: dict = Depends(get_current_user)):
    """Dependency that only lets admin users through."""
    if current_user.get('role') != 'admin':
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user
