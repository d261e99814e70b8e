from fastapi import APIRouter, status

from mywish.api.deps import DbSessionDep, OptionalUserDep
from mywish.schemas.gift import GiftPublic, GiftUpdate
from mywish.services import gifts as gift_service


router = APIRouter(prefix="/gifts", tags=["gifts"])


@router.patch("/{gift_id}", response_model=GiftPublic)
async def update_gift(
    gift_id: int,
    payload: GiftUpdate,
    db: DbSessionDep,
    current_user: OptionalUserDep,
) -> GiftPublic:
    caller_id = current_user.id if current_user else None
    return await gift_service.update_gift(db, caller_id, gift_id, payload.patches())


@router.delete("/{gift_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_gift(gift_id: int, db: DbSessionDep, current_user: OptionalUserDep) -> None:
    await gift_service.delete_gift(db, current_user.id if current_user else None, gift_id)


@router.post("/{gift_id}/reserve", status_code=status.HTTP_204_NO_CONTENT)
async def reserve_gift(gift_id: int, db: DbSessionDep, current_user: OptionalUserDep) -> None:
    await gift_service.reserve_gift(db, gift_id, current_user.id if current_user else None)
