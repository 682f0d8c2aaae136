from fastapi import APIRouter

from .endpoints import auth, response, survey

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(survey.router, prefix="/surveys", tags=["surveys"])
api_router.include_router(response.router, prefix="/responses", tags=["responses"])


@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
