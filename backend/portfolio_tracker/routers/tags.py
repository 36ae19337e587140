# backend/portfolio_tracker/routers/tags.py
"""
Tag endpoints.

- GET    /tags          - Registered tags (plus tags used on lots)
- POST   /tags          - Register a tag
- DELETE /tags/{name}   - Remove a tag from the registry and every lot
- PUT    /tags/{name}   - Rename a tag everywhere (merges into an existing tag)
"""

from fastapi import APIRouter, Depends, status

from portfolio_tracker.dependencies import get_portfolio_service
from portfolio_tracker.schemas.lots import TagCreate, TagRename, TagResponse
from portfolio_tracker.services.portfolio_service import PortfolioService
from portfolio_tracker.services.tags import TagRegistry

router = APIRouter(prefix="/tags", tags=["Tags"])


def _map_registry(registry: TagRegistry) -> list[TagResponse]:
    return [TagResponse.model_validate(tag) for tag in registry.tags]


@router.get("", response_model=list[TagResponse], summary="List tags")
def list_tags(
        service: PortfolioService = Depends(get_portfolio_service),
) -> list[TagResponse]:
    return _map_registry(service.tags())


@router.post(
    "",
    response_model=list[TagResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Add a tag",
)
def create_tag(
        payload: TagCreate,
        service: PortfolioService = Depends(get_portfolio_service),
) -> list[TagResponse]:
    """Adding an existing tag is a no-op. Color defaults to a stable palette color."""
    return _map_registry(service.add_tag(payload.name, payload.color))


@router.delete("/{name}", response_model=list[TagResponse], summary="Remove a tag")
def delete_tag(
        name: str,
        service: PortfolioService = Depends(get_portfolio_service),
) -> list[TagResponse]:
    return _map_registry(service.remove_tag(name))


@router.put("/{name}", response_model=list[TagResponse], summary="Rename a tag")
def rename_tag(
        name: str,
        payload: TagRename,
        service: PortfolioService = Depends(get_portfolio_service),
) -> list[TagResponse]:
    return _map_registry(service.rename_tag(name, payload.new_name))
