from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from datakit.core.config import settings
from datakit.core.security import decode_jwt
from datakit.dataviews.access import AccessController, ReadOnlyAccessController, RoleAccessController
from datakit.dataviews.service import DataViewQueryService
from datakit.dataviews.translation import MESSAGES, Translator

bearer = HTTPBearer(auto_error=False)


def get_access_controller(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> AccessController:
    if not creds:
        return ReadOnlyAccessController()
    try:
        claims = decode_jwt(creds.credentials, settings.JWT_SECRET)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if not claims.get("role"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return RoleAccessController(claims["role"], claims.get("sub"))


def get_service(request: Request) -> DataViewQueryService:
    return request.app.state.dataview_service


def get_translator(request: Request) -> Translator:
    raw = str(request.headers.get("Accept-Language") or "")
    for part in raw.split(","):
        locale = part.split(";", 1)[0].strip().lower()[:2]
        if locale in MESSAGES:
            return Translator(locale)
    return Translator(settings.DEFAULT_LOCALE)
