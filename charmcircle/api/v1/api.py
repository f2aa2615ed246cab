from fastapi import APIRouter
from charmcircle.api.v1.endpoints import circles, state
from charmcircle.schemas.response import CircleErrorResponse

rejected = {400: {"model": CircleErrorResponse, "description": "Rejected Operation"}}

api_router = APIRouter()
api_router.include_router(circles.router, prefix="/circles", tags=["circles"], responses=rejected)
api_router.include_router(state.router, prefix="/state", tags=["state"], responses=rejected)
