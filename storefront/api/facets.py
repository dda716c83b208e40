"""Facet API endpoints.

Public read access to the filter vocabulary (cities, colors, occasions...).
Term management lives under the admin router.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from storefront.api.dependencies import DbSession
from storefront.api.schemas import FacetCatalogResponse, FacetTermSchema
from storefront.catalog.facets import FacetService, get_facet_service
from storefront.domain import FacetKind, FacetTerm

router = APIRouter(prefix="/facets", tags=["Facets"])


def get_service(request: Request, session: DbSession) -> FacetService:
    """Get facet service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_facet_service(session, request_id=request_id)


def term_to_schema(term: FacetTerm) -> FacetTermSchema:
    """Convert a FacetTerm to its schema."""
    return FacetTermSchema(**term.to_dict())


@router.get("", response_model=FacetCatalogResponse, summary="List all facets")
async def list_facets(
    service: Annotated[FacetService, Depends(get_service)],
) -> FacetCatalogResponse:
    """Every facet kind with its terms, in display order."""
    return FacetCatalogResponse(
        facets={
            kind.value: [term_to_schema(t) for t in terms]
            for kind, terms in (await service.list_all()).items()
        }
    )


@router.get("/{kind}", response_model=list[FacetTermSchema], summary="List facet terms")
async def list_facet_terms(
    kind: FacetKind,
    service: Annotated[FacetService, Depends(get_service)],
) -> list[FacetTermSchema]:
    """Terms of one facet kind, in display order."""
    return [term_to_schema(t) for t in await service.list_terms(kind)]
