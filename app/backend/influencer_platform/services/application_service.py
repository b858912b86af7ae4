"""
Application lifecycle business logic.
Creates applications with their content links, moves them through
pending -> approved | rejected | withdrawn and keeps link selection in step.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Union

from sqlalchemy import select, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

import structlog

from influencer_platform.core.config import settings
from influencer_platform.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotAnInfluencerError,
    ApplicationNotFoundError,
    CampaignNotFoundError,
    CampaignNotActiveError,
    DuplicateApplicationError,
    InvalidStateError,
    InvalidTransitionError,
    ConcurrentModificationError,
    ValidationError,
)
from influencer_platform.core.results import OperationResult, service_operation
from influencer_platform.models.application import CampaignApplication, ApplicationStatus
from influencer_platform.models.campaign import Campaign
from influencer_platform.models.content_link import ApplicationContentLink, Platform
from influencer_platform.models.user import UserProfile
from influencer_platform.services.content_link_registry import ContentLinkRegistry, ContentLinkInput
from influencer_platform.utils.link_validation import validate_social_media_link

logger = structlog.get_logger(__name__)


@dataclass
class ApplicationWithLinks:
    """Application together with its content links, oldest link first."""
    application: CampaignApplication
    content_links: List[ApplicationContentLink] = field(default_factory=list)


class ApplicationService:
    """Service for the campaign application lifecycle."""

    def __init__(self, db: AsyncSession, registry: Optional[ContentLinkRegistry] = None):
        self.db = db
        self.registry = registry or ContentLinkRegistry(db)
        self.logger = logger.bind(service="application_service")

    # Creation

    @service_operation("create_application")
    async def create_application(
        self,
        actor_id: Optional[str],
        campaign_id: str,
        message: str = "",
        proposed_rate: Optional[float] = None,
        deliverables: Optional[str] = None,
        content_links: Optional[Sequence[ContentLinkInput]] = None
    ) -> ApplicationWithLinks:
        """
        Submit an application with its content links.

        The application row and every link row are written in the same
        transaction: either all of them persist or none do.
        """
        if not actor_id:
            raise AuthenticationError()

        profile = await self.db.get(UserProfile, actor_id)
        if profile is None or not profile.is_influencer:
            raise NotAnInfluencerError(actor_id)

        campaign = await self._get_campaign(campaign_id)
        if not campaign.is_active:
            raise CampaignNotActiveError(campaign_id, campaign.status)

        if await self._find_open_application(campaign_id, actor_id) is not None:
            raise DuplicateApplicationError(campaign_id, actor_id)

        if proposed_rate is not None and proposed_rate < 0:
            raise ValidationError("Proposed rate cannot be negative", {"proposed_rate": proposed_rate})

        links = self._validate_links(content_links or [])

        application = CampaignApplication(
            campaign_id=campaign_id,
            influencer_id=actor_id,
            message=message or "",
            proposed_rate=proposed_rate,
            deliverables=deliverables,
            status=ApplicationStatus.PENDING,
        )
        self.db.add(application)

        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race with a concurrent submission for the same pair
            raise DuplicateApplicationError(campaign_id, actor_id)

        created_links = await self.registry.add_links(application.id, links)

        self.logger.info(
            "Application created",
            application_id=application.id,
            campaign_id=campaign_id,
            influencer_id=actor_id,
            links=len(created_links)
        )
        return ApplicationWithLinks(application, created_links)

    # Transitions

    @service_operation("transition_application")
    async def transition(
        self,
        application_id: str,
        actor_id: Optional[str],
        new_status: Union[ApplicationStatus, str],
        selected_link_ids: Optional[Sequence[str]] = None
    ) -> ApplicationWithLinks:
        """
        Move a pending application to approved, rejected or withdrawn.

        Args:
            application_id: Application to transition
            actor_id: Requesting user
            new_status: Target status
            selected_link_ids: Links chosen on approval; None selects every link

        Returns:
            Application with its links after the transition
        """
        if not actor_id:
            raise AuthenticationError()

        try:
            target = ApplicationStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown application status: {new_status}", {"status": str(new_status)})

        application = await self._get_application(application_id)
        campaign = await self._get_campaign(application.campaign_id)

        self._authorize_transition(application, campaign, actor_id, target)

        if target == ApplicationStatus.PENDING or application.is_terminal:
            raise InvalidTransitionError(application.status.value, target.value)

        now = datetime.now(timezone.utc)

        if target == ApplicationStatus.APPROVED:
            await self._apply_approval_selection(application, selected_link_ids, now)
            application.reviewed_at = now
        elif target == ApplicationStatus.REJECTED:
            await self.registry.clear_selection(application.id, now)
            application.reviewed_at = now
        else:
            await self.registry.clear_selection(application.id, now)
            application.withdrawn_at = now

        application.status = target
        await self._flush_application(application)

        self.logger.info(
            "Application transitioned",
            application_id=application.id,
            status=target.value,
            actor_id=actor_id
        )
        links = await self.registry.list_by_application(application.id)
        return ApplicationWithLinks(application, links)

    async def approve(
        self,
        application_id: str,
        actor_id: Optional[str],
        selected_link_ids: Optional[Sequence[str]] = None
    ) -> OperationResult:
        return await self.transition(application_id, actor_id, ApplicationStatus.APPROVED, selected_link_ids)

    async def reject(self, application_id: str, actor_id: Optional[str]) -> OperationResult:
        return await self.transition(application_id, actor_id, ApplicationStatus.REJECTED)

    async def withdraw(self, application_id: str, actor_id: Optional[str]) -> OperationResult:
        return await self.transition(application_id, actor_id, ApplicationStatus.WITHDRAWN)

    # Editing and reads

    @service_operation("update_application")
    async def update_application(
        self,
        application_id: str,
        actor_id: Optional[str],
        message: Optional[str] = None,
        proposed_rate: Optional[float] = None,
        deliverables: Optional[str] = None
    ) -> CampaignApplication:
        """Edit a pending application's text fields (owning creator only)."""
        if not actor_id:
            raise AuthenticationError()

        application = await self._get_application(application_id)
        if application.influencer_id != actor_id:
            raise AuthorizationError(
                "Only the applicant can edit this application",
                {"application_id": application_id}
            )
        if not application.is_pending:
            raise InvalidStateError(
                "Only pending applications can be edited",
                {"application_id": application_id, "status": application.status.value}
            )
        if proposed_rate is not None and proposed_rate < 0:
            raise ValidationError("Proposed rate cannot be negative", {"proposed_rate": proposed_rate})

        if message is not None:
            application.message = message
        if proposed_rate is not None:
            application.proposed_rate = proposed_rate
        if deliverables is not None:
            application.deliverables = deliverables

        await self._flush_application(application)
        return application

    @service_operation("get_application", commit=False)
    async def get_application_with_links(
        self,
        application_id: str,
        actor_id: Optional[str] = None
    ) -> ApplicationWithLinks:
        """
        Load an application and its links.

        When ``actor_id`` is given, only the applicant and the campaign's brand
        may read it.
        """
        application = await self._get_application(application_id)

        if actor_id is not None and actor_id != application.influencer_id:
            campaign = await self.db.get(Campaign, application.campaign_id)
            if campaign is None or campaign.brand_id != actor_id:
                raise AuthorizationError(
                    "Not allowed to view this application",
                    {"application_id": application_id}
                )

        links = await self.registry.list_by_application(application.id)
        return ApplicationWithLinks(application, links)

    @service_operation("list_applications", commit=False)
    async def list_applications(
        self,
        campaign_id: Optional[str] = None,
        influencer_id: Optional[str] = None,
        brand_id: Optional[str] = None,
        status: Optional[Union[ApplicationStatus, str]] = None,
        include_withdrawn: bool = False
    ) -> List[ApplicationWithLinks]:
        """List applications with their links, newest first."""
        query = select(CampaignApplication)

        if brand_id is not None:
            query = query.join(Campaign, Campaign.id == CampaignApplication.campaign_id).where(
                Campaign.brand_id == brand_id
            )
        if campaign_id is not None:
            query = query.where(CampaignApplication.campaign_id == campaign_id)
        if influencer_id is not None:
            query = query.where(CampaignApplication.influencer_id == influencer_id)

        if status is not None:
            try:
                status = ApplicationStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown application status: {status}", {"status": str(status)})
            query = query.where(CampaignApplication.status == status)
        elif not include_withdrawn:
            query = query.where(CampaignApplication.status != ApplicationStatus.WITHDRAWN)

        result = await self.db.execute(
            query.order_by(desc(CampaignApplication.created_at), CampaignApplication.id)
        )
        applications = list(result.scalars().all())

        grouped = await self.registry.list_by_applications(app.id for app in applications)
        return [ApplicationWithLinks(app, grouped.get(app.id, [])) for app in applications]

    # Helpers

    async def _get_application(self, application_id: str) -> CampaignApplication:
        application = await self.db.get(CampaignApplication, application_id)
        if application is None:
            raise ApplicationNotFoundError(application_id)
        return application

    async def _get_campaign(self, campaign_id: str) -> Campaign:
        campaign = await self.db.get(Campaign, campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(campaign_id)
        return campaign

    async def _find_open_application(
        self,
        campaign_id: str,
        influencer_id: str
    ) -> Optional[CampaignApplication]:
        result = await self.db.execute(
            select(CampaignApplication).where(
                CampaignApplication.campaign_id == campaign_id,
                CampaignApplication.influencer_id == influencer_id,
                CampaignApplication.status != ApplicationStatus.WITHDRAWN,
            )
        )
        return result.scalars().first()

    def _validate_links(self, content_links: Sequence[ContentLinkInput]) -> List[ContentLinkInput]:
        """Check every submitted link and normalise its platform."""
        limit = settings.max_content_links_per_application
        if len(content_links) > limit:
            raise ValidationError(
                f"At most {limit} content links are allowed per application",
                {"submitted": len(content_links), "limit": limit}
            )

        validated = []
        seen_urls = set()
        for index, link in enumerate(content_links):
            url = (link.content_url or "").strip()
            check = validate_social_media_link(url)
            if not check.is_valid:
                raise ValidationError(check.error, {"index": index, "content_url": url})

            try:
                declared = Platform(link.platform)
            except ValueError:
                raise ValidationError(
                    f"Unsupported platform: {link.platform}",
                    {"index": index, "platform": str(link.platform)}
                )

            if declared != check.platform:
                raise ValidationError(
                    f"URL does not belong to {declared.value}",
                    {"index": index, "content_url": url, "platform": declared.value}
                )

            if url in seen_urls:
                raise ValidationError("Duplicate content link", {"index": index, "content_url": url})
            seen_urls.add(url)

            validated.append(ContentLinkInput(platform=declared, content_url=url))
        return validated

    def _authorize_transition(
        self,
        application: CampaignApplication,
        campaign: Campaign,
        actor_id: str,
        target: ApplicationStatus
    ) -> None:
        if target == ApplicationStatus.WITHDRAWN:
            if actor_id != application.influencer_id:
                raise AuthorizationError(
                    "Only the applicant can withdraw an application",
                    {"application_id": application.id}
                )
        elif target in (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED):
            if actor_id != campaign.brand_id:
                raise AuthorizationError(
                    "Only the campaign's brand can review applications",
                    {"application_id": application.id, "campaign_id": campaign.id}
                )

    async def _apply_approval_selection(
        self,
        application: CampaignApplication,
        selected_link_ids: Optional[Sequence[str]],
        when: datetime
    ) -> None:
        links = await self.registry.clear_selection(application.id, when)
        own_ids = [link.id for link in links]

        if selected_link_ids is None:
            chosen = own_ids
        else:
            chosen = list(dict.fromkeys(selected_link_ids))
            foreign = [link_id for link_id in chosen if link_id not in own_ids]
            if foreign:
                raise ValidationError(
                    "Selected links do not belong to this application",
                    {"application_id": application.id, "link_ids": foreign}
                )
            if not chosen and own_ids:
                raise InvalidStateError(
                    "Select at least one content link to approve this application",
                    {"application_id": application.id},
                    code="EMPTY_SELECTION"
                )

        await self.registry.set_selection(chosen, True, when)

    async def _flush_application(self, application: CampaignApplication) -> None:
        try:
            await self.db.flush()
        except StaleDataError:
            raise ConcurrentModificationError(application.id)
