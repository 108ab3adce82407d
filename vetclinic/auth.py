from datetime import datetime, timedelta
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
import os
import secrets
from dotenv import load_dotenv

load_dotenv()

# JWT settings
SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-this-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "30"))

ADMIN_ROLE = "admin"
CLIENT_ROLE = "client"

security = HTTPBearer()

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """Create a signed JWT.

    Admin tokens carry ``role=admin``; client tokens, issued by the client
    directory, carry ``role=client`` and the client id in ``sub``.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt

def create_client_token(client_id: int) -> str:
    return create_access_token(data={"role": CLIENT_ROLE, "sub": str(client_id)})

def verify_password(plain_password: str) -> bool:
    """Check the admin password"""
    admin_password = os.getenv("ADMIN_PASSWORD", "admin123")
    return secrets.compare_digest(plain_password.encode(), admin_password.encode())

def verify_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    """Decode the bearer token into its claims"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        token = credentials.credentials
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        role: str = payload.get("role")

        if role not in (ADMIN_ROLE, CLIENT_ROLE):
            raise credentials_exception
        if role == CLIENT_ROLE and not str(payload.get("sub", "")).isdigit():
            raise credentials_exception

        return payload
    except JWTError:
        raise credentials_exception

def get_current_user(token_data: dict = Depends(verify_token)) -> dict:
    """Any authenticated caller, admin or client"""
    return token_data

def get_current_admin(token_data: dict = Depends(verify_token)) -> dict:
    """Current admin (for use in admin endpoints)"""
    if token_data.get("role") != ADMIN_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return token_data

def get_current_client(token_data: dict = Depends(verify_token)) -> dict:
    if token_data.get("role") != CLIENT_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Client access required"
        )
    return token_data

def client_id_of(token_data: dict) -> Optional[int]:
    """Client id for client tokens, None for admins"""
    if token_data.get("role") == CLIENT_ROLE:
        return int(token_data["sub"])
    return None

def actor_name(token_data: dict) -> str:
    """Who to record as having performed an action"""
    if token_data.get("role") == CLIENT_ROLE:
        return f"client:{token_data['sub']}"
    return token_data.get("sub") or ADMIN_ROLE
