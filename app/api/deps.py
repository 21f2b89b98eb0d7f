# app/api/deps.py
from fastapi import Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.data.models import UserModel
from app.domain.enums import UserRole
from app.domain.errors import GatewayUnavailable, PaymentLinkCreationFailed
from app.services.payment_gateway import PayOSClient
from app.services.user_service import UserService


def get_payment_gateway() -> PayOSClient:
    return PayOSClient()


def to_http_error(e: Exception) -> HTTPException:
    """Mapowanie wyjatkow domenowych na kody HTTP."""
    if isinstance(e, PermissionError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, LookupError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (PaymentLinkCreationFailed, GatewayUnavailable)):
        return HTTPException(status_code=502, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    raise e


def require_roles(*roles: UserRole):
    def dependency(
        user_id: int = Query(...),
        db: Session = Depends(get_db),
    ) -> UserModel:
        try:
            return UserService(db).require_role(user_id, *roles)
        except (PermissionError, LookupError) as e:
            raise HTTPException(status_code=403, detail=str(e))

    return dependency


require_admin = require_roles(UserRole.ADMINISTRATOR)
require_seller = require_roles(UserRole.SELLER, UserRole.ADMINISTRATOR)
