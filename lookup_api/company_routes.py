from fastapi import APIRouter, Depends, HTTPException, Query

from .deps import get_search_client
from .search import SearchClient, SearchError, company_name, company_website

router = APIRouter(prefix="/api/companies", tags=["companies"])


def _summarise(hit: dict) -> dict:
    return {**hit, "display_name": company_name(hit), "website_url": company_website(hit)}


@router.get("/search")
def search_companies(
    q: str = Query("", max_length=200),
    limit: int = Query(10, ge=1, le=50),
    client: SearchClient = Depends(get_search_client),
):
    try:
        hits = client.search(q, limit=limit)
    except SearchError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"hits": [_summarise(h) for h in hits]}


@router.get("/{cin}")
def get_company(cin: str, client: SearchClient = Depends(get_search_client)):
    try:
        hit = client.get_company(cin)
    except SearchError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if hit is None:
        raise HTTPException(status_code=404, detail="Company not found")
    return {"company": _summarise(hit)}
