from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer

from sheetvault.core.security import verify_token

# Токены выдает внешний сервис идентификации
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    payload = verify_token(token)
    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token has no subject")

    return str(user_id)
