from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from vodhub.api.deps import get_site_config
from vodhub.schema.site_config import SiteConfig

router = APIRouter()


@router.get("/custom_category")
async def custom_categories(site_config: SiteConfig = Depends(get_site_config)) -> JSONResponse:
    """Return configured custom categories; clients drop disabled entries."""
    payload = [category.model_dump() for category in site_config.custom_categories]
    return JSONResponse(
        payload,
        headers={"Cache-Control": f"public, max-age={site_config.cache_time}, s-maxage=0"},
    )
