import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from schemas import UserCreate, UserLogin, UserOut, UserResponse
from storage import DuplicateUserError, Storage, get_storage

logger = logging.getLogger("fintrack")

auth_router = APIRouter()


def _public(user) -> UserResponse:
    return UserResponse(user=UserOut(id=user.id, username=user.username))


@auth_router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, storage: Storage = Depends(get_storage)):
    if storage.get_user_by_username(user.username):
        raise HTTPException(status_code=400, detail="Username already registered")
    try:
        new_user = storage.create_user(user)
    except DuplicateUserError:
        raise HTTPException(status_code=400, detail="Username already registered")

    logger.info("Registered user %s", new_user.id)
    return _public(new_user)


@auth_router.post("/login", response_model=UserResponse)
async def login(user: UserLogin, storage: Storage = Depends(get_storage)):
    db_user = storage.get_user_by_username(user.username)
    # same answer for unknown user and wrong password
    if not db_user or db_user.password != user.password:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return _public(db_user)


@auth_router.get("/user", response_model=UserResponse)
async def get_user(
    user_id: int = Query(..., alias="userId"), storage: Storage = Depends(get_storage)
):
    db_user = storage.get_user(user_id)
    if db_user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return _public(db_user)
