"""Caller identity for the HTTP routes.

Authentication happens upstream; the gateway forwards the signed-in user's
id in ``X-User-Id``. This module only resolves it to a directory record.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from punchclock.core.database import get_db
from punchclock.models.user import User, ALL_EMPLOYEE_TYPES

# Roles that may act for other employees: the same roles that see every employee
MANAGER_TYPES = ALL_EMPLOYEE_TYPES


def get_current_user(
    x_user_id: Optional[int] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user = db.query(User).filter(User.id == x_user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")
    return user
