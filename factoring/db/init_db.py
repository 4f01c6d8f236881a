import asyncio
import logging
from uuid import UUID

from sqlalchemy import select

from factoring.core.settings import settings
from factoring.db.session import AsyncSessionLocal
from factoring.models.profile import Profile

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """
    Seed a back-office staff profile when SEED_STAFF_USER_ID is configured.
    """
    if not settings.seed_staff_user_id:
        return
    user_id = UUID(settings.seed_staff_user_id)
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Profile).where(Profile.user_id == user_id))
        profile = result.scalar_one_or_none()

        if profile is None:
            session.add(
                Profile(
                    user_id=user_id,
                    email=(settings.seed_staff_email or "").strip().lower() or None,
                    is_staff=True,
                )
            )
            await session.commit()
            logger.info("Seeded staff profile %s", user_id)
        elif not profile.is_staff:
            profile.is_staff = True
            await session.commit()
            logger.info("Promoted profile %s to staff", user_id)
        else:
            logger.info("Staff profile %s already exists", user_id)


if __name__ == "__main__":
    asyncio.run(init_db())
