from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/")
def welcome() -> dict:
    return {"message": "welcome to harvest server"}


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}
