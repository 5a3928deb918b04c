# booking_engine/provisioning.py

import logging
from typing import Optional

from sqlmodel import Session, select

from .data import DEFAULT_WEEKLY_HOURS
from .models import Provider, User, WeeklyAvailability

logger = logging.getLogger(__name__)


def get_provider_for(session: Session, email: str) -> Optional[Provider]:
    return session.exec(select(Provider).where(Provider.user_email == email)).first()


def provision_provider(
    session: Session,
    user: User,
    display_name: Optional[str] = None,
    is_developer: bool = False,
) -> Provider:
    """Create the provider profile and default weekly hours for a barber.

    Called once at onboarding. A second call returns the existing provider.
    """
    existing = get_provider_for(session, user.email)
    if existing is not None:
        return existing

    provider = Provider(
        user_email=user.email,
        display_name=display_name or user.email.split("@")[0],
        is_developer=is_developer,
    )
    session.add(provider)
    session.flush()

    for day, (start, end, enabled) in DEFAULT_WEEKLY_HOURS.items():
        session.add(
            WeeklyAvailability(
                provider_id=provider.id,
                day_of_week=day,
                start_time=start,
                end_time=end,
                enabled=enabled,
            )
        )

    session.commit()
    session.refresh(provider)
    logger.info("Provisioned provider %s for %s", provider.id, user.email)
    return provider
