"""
User management REST API.

Registration, login and admin endpoints. Identity is caller-supplied;
there are no session tokens.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from ..services.identity import GuestIdProvider
from ..storage.exceptions import ValidationError
from ..storage.repositories.user import UserRepository
from .dependencies import get_guest_ids, get_users

logger = logging.getLogger("speechai.api.users")

router = APIRouter(tags=["users"])


class Credentials(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    password: Optional[str] = None
    is_admin: Optional[bool] = Field(default=None, alias="admin")


class AdminToggle(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    requested_by: Optional[str] = Field(default=None, alias="requestedBy")


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: Credentials, users: UserRepository = Depends(get_users)):
    """Register a new user."""
    user = await users.register_user(body.email, body.password)
    return {"message": "User registered successfully.", "userId": user.id}


@router.post("/login")
async def login(body: Credentials, users: UserRepository = Depends(get_users)):
    user = await users.login_user(body.email, body.password)
    logger.info("User %s logged in", user.id)
    return user.to_dict()


@router.delete("/delete-user/{user_id}")
async def delete_user(user_id: str, users: UserRepository = Depends(get_users)):
    await users.delete_user(user_id)
    return {"message": "User deleted successfully."}


@router.put("/update-user/{user_id}")
async def update_user(user_id: str, body: UserUpdate, users: UserRepository = Depends(get_users)):
    """Update email, password or admin flag; omitted fields are unchanged."""
    user = await users.update_user(
        user_id,
        email=body.email,
        password=body.password,
        is_admin=body.is_admin,
    )
    return {"message": "User updated successfully.", "user": user.to_dict()}


@router.get("/get-user/{user_id}")
async def get_user(user_id: str, users: UserRepository = Depends(get_users)):
    user = await users.get_user_by_id(user_id)
    return user.to_dict()


@router.get("/get-user-id")
async def get_user_id(email: Optional[str] = None, users: UserRepository = Depends(get_users)):
    if not email:
        raise ValidationError("Email is required.")
    return {"userId": await users.get_user_id_by_email(email)}


@router.get("/get-all-users")
async def get_all_users(users: UserRepository = Depends(get_users)):
    return [user.to_dict() for user in await users.get_all_users()]


@router.put("/toggle-admin-status")
async def toggle_admin_status(body: AdminToggle, users: UserRepository = Depends(get_users)):
    """Flip a user's admin flag. requestedBy must be the id of an admin."""
    user = await users.toggle_admin_status_by_email(body.email, requested_by=body.requested_by)
    return {"message": "Admin status updated.", "userId": user.id, "Admin": user.is_admin}


@router.get("/get-guest-id")
async def get_guest_id(guest_ids: GuestIdProvider = Depends(get_guest_ids)):
    """This process's guest id (assigned on first request)."""
    return {"guestId": await guest_ids.get_guest_id()}
