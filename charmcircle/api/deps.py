from typing import Annotated
from fastapi import Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from charmcircle.db.session import get_db
from charmcircle.models.circle import Circle
from charmcircle.services.circle_service import CircleService
from charmcircle.utils.hexcodec import parse_circle_id

class PageParams:
    def __init__(
        self,
        page: Annotated[int, Query(ge=1, description="Page number")] = 1,
        limit: Annotated[int, Query(ge=1, le=100, description="Items per page")] = 50,
    ):
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

async def get_circle(
    session: Annotated[AsyncSession, Depends(get_db)],
    circle_id: Annotated[str, Path(description="Hex-encoded 32-byte circle identifier")],
) -> Circle:
    try:
        normalized = parse_circle_id(circle_id).hex()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return await CircleService.get(session, normalized)
