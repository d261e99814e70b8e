from fastapi import APIRouter

from mywish.api.deps import DbSessionDep
from mywish.services.site_config import get_public_site_config


router = APIRouter(prefix="/config", tags=["config"])


@router.get("/site")
async def get_site_config(db: DbSessionDep) -> dict[str, str]:
    return await get_public_site_config(db)
