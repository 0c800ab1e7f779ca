"""Onboarding routes for the installation's single user."""

import logging

from fastapi import APIRouter, status

from memoryvault.api.deps import CurrentUser, Store
from memoryvault.schemas.user import UserCreate, UserRead

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(data: UserCreate, store: Store) -> UserRead:
    """
    Create the user during onboarding.

    Only one user can ever exist; a second call returns 409.
    """
    user = await store.create_user(data.name, data.email)
    logger.info("Onboarded user %s", user.id)
    return user


@router.get("/me", response_model=UserRead)
async def get_me(current_user: CurrentUser) -> UserRead:
    return current_user
