from fastapi import APIRouter

from app.api.utility import router as utility_router

router = APIRouter()

router.include_router(utility_router)


@router.get("/", tags=["root"])
def read_root() -> dict[str, str]:
    return {"message": "Welcome to the Parley relay API"}
