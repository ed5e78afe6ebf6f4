# control-plane/api/v1/deps.py
"""
Authentication dependencies shared by the v1 routers
"""

from fastapi import Depends, HTTPException, Header, status
from sqlalchemy.orm import Session
from typing import Optional
import logging
import secrets

from database.session import get_db
from core.fleet_manager import fleet_manager
from config import settings

logger = logging.getLogger(__name__)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": "Invalid or missing credentials",
            "error_code": "UNAUTHORIZED"
        },
        headers={"WWW-Authenticate": "Bearer"}
    )


def _is_admin(token: Optional[str]) -> bool:
    return bool(token) and secrets.compare_digest(token, settings.ADMIN_SECRET)


async def verify_admin_token(x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token")):
    """
    Verify admin authentication token

    In production, replace with proper JWT/OAuth2 authentication
    """
    if not _is_admin(x_admin_token):
        logger.warning("Invalid admin token attempt")
        raise _unauthorized()
    return True


async def verify_agent_access(
    agent_id: str,
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    db: Session = Depends(get_db)
):
    """Admin token, or the agent's own API key"""
    if _is_admin(x_admin_token):
        return True
    if x_api_key:
        agent = fleet_manager.get_agent_by_api_key(db, x_api_key)
        if agent and agent.id == agent_id:
            return True
    logger.warning(f"Rejected access to agent {agent_id}")
    raise _unauthorized()


async def verify_gateway_access(
    gateway_id: str,
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    db: Session = Depends(get_db)
):
    """Admin token, or the gateway's own API key"""
    if _is_admin(x_admin_token):
        return True
    if x_api_key:
        gateway = fleet_manager.get_gateway_by_api_key(db, x_api_key)
        if gateway and gateway.id == gateway_id:
            return True
    logger.warning(f"Rejected access to gateway {gateway_id}")
    raise _unauthorized()
