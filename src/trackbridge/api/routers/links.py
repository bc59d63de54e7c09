"""Public smart link endpoints.

ENDPOINTS:
- GET /links/{slug}                  → presentation + links, bumps the click counter
- GET /links/{slug}/open/{platform}  → 307 to the OS-aware deep link

Hey future me - these are the HOT read paths (every visitor of a smart link page).
They only read the Link Store plus one atomic UPDATE for the counter. Dropped links
(confidence 0) are hidden from visitors but stay in the store for verification.
"""

import logging

from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from trackbridge.api.dependencies import get_db_session
from trackbridge.api.schemas import PlatformLinkResponse, parse_platform
from trackbridge.domain.entities import PlatformLink, SmartLink
from trackbridge.domain.exceptions import EntityNotFoundException
from trackbridge.domain.value_objects import ClientOS
from trackbridge.domain.value_objects.platform_urls import (
    build_deep_link,
    classify_user_agent,
)
from trackbridge.infrastructure.persistence.repositories import (
    PlatformLinkRepository,
    SmartLinkRepository,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class SmartLinkPlatformResponse(PlatformLinkResponse):
    """A platform link plus where this client should actually go."""

    deep_link: str


class SmartLinkResponse(BaseModel):
    """Smart link presentation and its live links."""

    slug: str
    title: str
    template: str | None
    cover_image_url: str | None
    track_id: str
    click_count: int
    client_os: ClientOS
    links: list[SmartLinkPlatformResponse]


async def _load(session: AsyncSession, slug: str) -> tuple[SmartLink, list[PlatformLink]]:
    smart_link = await SmartLinkRepository(session).get_active_by_slug(slug)
    if smart_link is None:
        raise EntityNotFoundException("SmartLink", slug)
    links = await PlatformLinkRepository(session).list_for_track(smart_link.track_id)
    visible = [link for link in links if link.confidence > 0.0]
    visible.sort(key=lambda link: -link.confidence)
    return smart_link, visible


@router.get("/{slug}", response_model=SmartLinkResponse)
async def get_smart_link(
    slug: str,
    user_agent: str | None = Header(default=None),
    session: AsyncSession = Depends(get_db_session),
) -> SmartLinkResponse:
    """Read a smart link and count the visit."""
    smart_link, links = await _load(session, slug)
    await SmartLinkRepository(session).increment_clicks(smart_link.id)

    client_os = classify_user_agent(user_agent)
    payload = []
    for link in links:
        assert link.url is not None
        base = PlatformLinkResponse.from_entity(link)
        payload.append(
            SmartLinkPlatformResponse(
                **base.model_dump(),
                deep_link=build_deep_link(link.platform, link.url, client_os).primary,
            )
        )

    return SmartLinkResponse(
        slug=smart_link.slug,
        title=smart_link.title,
        template=smart_link.template,
        cover_image_url=smart_link.cover_image_url,
        track_id=smart_link.track_id,
        # the UPDATE above isn't reflected in the loaded entity
        click_count=smart_link.click_count + 1,
        client_os=client_os,
        links=payload,
    )


@router.get("/{slug}/open/{platform}")
async def open_smart_link(
    slug: str,
    platform: str,
    user_agent: str | None = Header(default=None),
    session: AsyncSession = Depends(get_db_session),
) -> RedirectResponse:
    """Redirect a visitor to one platform, native app where it reliably works."""
    target_platform = parse_platform(platform)
    smart_link, links = await _load(session, slug)
    link = next((item for item in links if item.platform == target_platform), None)
    if link is None or link.url is None:
        raise EntityNotFoundException("PlatformLink", f"{slug}/{target_platform.value}")

    await SmartLinkRepository(session).increment_clicks(smart_link.id)
    deep_link = build_deep_link(link.platform, link.url, classify_user_agent(user_agent))
    return RedirectResponse(deep_link.primary, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
