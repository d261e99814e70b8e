from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mywish.models.models import SiteConfig


DEFAULT_SITE_CONFIG: dict[str, str] = {
    "partnerOneName": "",
    "partnerTwoName": "",
    "eventName": "",
    "eventDate": "",
    "welcomeMessage": (
        "Que bom que você está aqui! Escolha com carinho um mimo para nos presentear "
        "nessa fase tão especial."
    ),
    "thankYouMessage": "Muito obrigado pelo carinho! ♥",
}


async def get_public_site_config(db: AsyncSession) -> dict[str, str]:
    """Stored values for the known keys, falling back to the defaults."""
    result = await db.execute(select(SiteConfig))
    stored = {row.key: row.value for row in result.scalars()}
    return {key: stored.get(key, default) for key, default in DEFAULT_SITE_CONFIG.items()}
