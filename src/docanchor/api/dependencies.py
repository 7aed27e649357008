"""FastAPI dependencies shared by the route modules.

Long-lived collaborators (UoW factory, pinning gateway) live on
``app.state`` and are created by the application factory; tests replace them there.
"""

from dataclasses import dataclass

from fastapi import Query, Request

from docanchor.services.ipfs.gateway import PinningGateway
from docanchor.uow import UnitOfWorkFactory

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10


def get_uow_factory(request: Request) -> UnitOfWorkFactory:
    """Get UnitOfWork factory from app state.

    Example:
        >>> @router.post("/endpoint")
        >>> async def endpoint(uow_factory=Depends(get_uow_factory)):
        ...     async with await uow_factory() as uow:
        ...         await uow.uploads.get_by_cid(cid)
    """
    return request.app.state.uow_factory


def get_pinning_gateway(request: Request) -> PinningGateway:
    """Get the pinning gateway from app state."""
    return request.app.state.pinning_gateway


@dataclass(frozen=True)
class PageParams:
    limit: int
    skip: int


def get_page_params(
    limit: int = Query(
        default=DEFAULT_PAGE_SIZE,
        ge=1,
        le=MAX_PAGE_SIZE,
        description="Maximum number of records to return (1-100)",
    ),
    skip: int = Query(default=0, ge=0, description="Number of records to skip"),
) -> PageParams:
    """Validated ``limit``/``skip`` query parameters."""
    return PageParams(limit=limit, skip=skip)
