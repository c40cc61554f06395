"""Entity-level operations over the document store."""

import logging
import math
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from beartype import beartype

from careerdesk.config import Settings, get_settings
from careerdesk.models.entities import (
    Advertisement,
    Company,
    FormSubmission,
    Job,
    JobApplication,
    Resource,
    SavedJob,
    SavedJobListing,
    Testimonial,
    User,
    slugify,
)
from careerdesk.models.filters import (
    AdvertisementFilters,
    JobFilters,
    JobPage,
    JobSort,
    ResourceFilters,
    TestimonialFilters,
)
from careerdesk.storage.document_store import (
    DocumentStore,
    DuplicateDocumentError,
    matches,
    new_id,
)
from careerdesk.utils.dates import parse_iso, to_iso

logger = logging.getLogger(__name__)

USERS = "users"
COMPANIES = "companies"
JOBS = "jobs"
JOB_APPLICATIONS = "job_applications"
TESTIMONIALS = "testimonials"
FORM_SUBMISSIONS = "form_submissions"
RESOURCES = "resources"
ADVERTISEMENTS = "advertisements"
SAVED_JOBS = "saved_jobs"

_EPOCH = datetime.min.replace(tzinfo=UTC)

# JobFilters field -> document key for the exact-match job filters
_JOB_EXACT_FILTERS = {
    "country": "country",
    "industry": "industry",
    "category": "category",
    "experience_level": "experienceLevel",
    "remote_type": "remoteType",
    "visa_support": "visaSupport",
}


class JobAlreadySavedError(ValueError):
    """The user has already saved this job."""


@beartype
def _first_of(document: Mapping[str, Any], *keys: str) -> Any:
    """Value of the first key that holds a truthy value."""
    for key in keys:
        if document.get(key):
            return document[key]
    return None


@beartype
def _reference(document: Mapping[str, Any], *keys: str) -> str | None:
    """Id stored under the first of keys, if it is a non-empty string."""
    value = _first_of(document, *keys)
    return value if isinstance(value, str) else None


@beartype
def _posted_time(document: Mapping[str, Any]) -> datetime:
    try:
        return parse_iso(_first_of(document, "posted_at", "created_at"))
    except ValueError:
        return _EPOCH


@beartype
def _as_number(value: Any) -> float:
    """Sort weight of a stored value: numbers and numeric strings, else 0."""
    if isinstance(value, bool) or not isinstance(value, str | int | float):
        return 0.0
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


@beartype
def _salary_max(document: Mapping[str, Any]) -> float:
    return _as_number(document.get("salary_max"))


@beartype
def _priority(document: Mapping[str, Any]) -> float:
    return _as_number(document.get("priority"))


class StorageAdapter:
    """Domain operations for the job board.

    Applies defaults on create, resolves references between collections on
    read and implements the listing filters. Missing entities come back as
    None, False or an empty list; only save_job raises for a business rule.
    """

    @beartype
    def __init__(
        self,
        store: DocumentStore,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize storage adapter.

        Args:
            store: Document store to read and write through.
            settings: Application settings. Uses defaults if not provided.
            clock: Returns the current time. Defaults to ``datetime.now(UTC)``.
        """
        self._store = store
        self._settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def store(self) -> DocumentStore:
        """Underlying document store."""
        return self._store

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        return now

    def _now_iso(self) -> str:
        return to_iso(self._now())

    @beartype
    def clear_cache(self, collection: str | None = None) -> None:
        """Drop cached collection data so the next read goes to disk."""
        self._store.clear_cache(collection)

    # User operations

    @beartype
    async def get_user(self, user_id: str) -> User | None:
        doc = await self._store.find_by_id(USERS, user_id)
        return User.model_validate(doc) if doc else None

    @beartype
    async def get_user_by_username(self, username: str) -> User | None:
        users = await self._store.find(USERS, {"username": username})
        return User.model_validate(users[0]) if users else None

    @beartype
    async def get_user_by_email(self, email: str) -> User | None:
        users = await self._store.find(USERS, {"email": email})
        return User.model_validate(users[0]) if users else None

    @beartype
    async def create_user(self, user: Mapping[str, Any]) -> User:
        doc = await self._store.create(
            USERS,
            {
                **user,
                "id": user.get("id") or new_id(),
                "role": user.get("role") or "user",
            },
        )
        return User.model_validate(doc)

    @beartype
    async def upsert_user(self, user: Mapping[str, Any]) -> User:
        """Update the user with this id, or create it if it does not exist."""
        user_id = user.get("id")
        if user_id:
            doc = await self._store.update(USERS, user_id, user)
            if doc:
                return User.model_validate(doc)
        return await self.create_user(user)

    # Company operations

    @beartype
    async def get_companies(self, limit: int | None = None) -> list[Company]:
        companies = await self._store.find(COMPANIES)
        if limit:
            companies = companies[:limit]
        return [Company.model_validate(doc) for doc in companies]

    @beartype
    async def get_company(self, company_id: str) -> Company | None:
        doc = await self._store.find_by_id(COMPANIES, company_id)
        return Company.model_validate(doc) if doc else None

    @beartype
    async def create_company(self, company: Mapping[str, Any]) -> Company:
        doc = await self._store.create(
            COMPANIES, {**company, "id": company.get("id") or new_id()}
        )
        return Company.model_validate(doc)

    @beartype
    async def update_company(
        self, company_id: str, company: Mapping[str, Any]
    ) -> Company | None:
        doc = await self._store.update(COMPANIES, company_id, company)
        return Company.model_validate(doc) if doc else None

    @beartype
    async def delete_company(self, company_id: str) -> bool:
        return await self._store.delete(COMPANIES, company_id)

    # Job operations

    @beartype
    async def _attach_company(self, job: dict[str, Any]) -> dict[str, Any]:
        """Resolve the job's company reference in place."""
        company_id = _reference(job, "companyId", "company_id")
        if company_id:
            job["company"] = await self._store.find_by_id(COMPANIES, company_id)
        return job

    @beartype
    async def get_jobs(self, filters: JobFilters | None = None) -> JobPage:
        """List jobs matching filters.

        Text search is a case-insensitive substring match on title,
        description and location; the other filters are exact matches.
        ``total`` counts the filtered jobs before limit/offset are applied.

        Args:
            filters: Listing filters. Everything in insertion order if None.

        Returns:
            Page of jobs with their companies attached.
        """
        filters = filters or JobFilters()
        jobs = await self._store.find(JOBS)

        if filters.search:
            term = filters.search.lower()
            jobs = [
                job
                for job in jobs
                if any(
                    isinstance(job.get(field), str) and term in job[field].lower()
                    for field in ("title", "description", "location")
                )
            ]

        query = {
            key: getattr(filters, name)
            for name, key in _JOB_EXACT_FILTERS.items()
            if getattr(filters, name) not in (None, "")
        }
        if query:
            jobs = [job for job in jobs if matches(job, query)]

        for job in jobs:
            await self._attach_company(job)

        if filters.sort == JobSort.DATE:
            jobs.sort(key=_posted_time, reverse=True)
        elif filters.sort == JobSort.SALARY:
            jobs.sort(key=_salary_max, reverse=True)

        total = len(jobs)
        if filters.offset is not None or filters.limit is not None:
            offset = filters.offset or 0
            limit = (
                filters.limit
                if filters.limit is not None
                else self._settings.default_page_size
            )
            jobs = jobs[offset : offset + limit]

        return JobPage(jobs=[Job.model_validate(job) for job in jobs], total=total)

    @beartype
    async def get_job(self, job_id: str) -> Job | None:
        doc = await self._store.find_by_id(JOBS, job_id)
        if not doc:
            return None
        return Job.model_validate(await self._attach_company(doc))

    @beartype
    async def get_featured_jobs(self, limit: int | None = None) -> list[Job]:
        """Featured, published jobs in insertion order."""
        jobs = await self._store.find(JOBS, {"featured": True, "status": "published"})
        for job in jobs:
            await self._attach_company(job)
        if limit:
            jobs = jobs[:limit]
        return [Job.model_validate(job) for job in jobs]

    @beartype
    async def create_job(self, job: Mapping[str, Any]) -> Job:
        doc = await self._store.create(
            JOBS,
            {
                **job,
                "id": job.get("id") or new_id(),
                "status": job.get("status") or "published",
                "featured": job.get("featured") or False,
                "posted_at": job.get("posted_at") or self._now_iso(),
            },
        )
        return Job.model_validate(doc)

    @beartype
    async def update_job(self, job_id: str, job: Mapping[str, Any]) -> Job | None:
        doc = await self._store.update(JOBS, job_id, job)
        return Job.model_validate(doc) if doc else None

    @beartype
    async def delete_job(self, job_id: str) -> bool:
        return await self._store.delete(JOBS, job_id)

    # Job application operations

    @beartype
    async def _attach_job_and_user(self, application: dict[str, Any]) -> JobApplication:
        job_id = _reference(application, "job_id")
        if job_id:
            application["job"] = await self.get_job(job_id)
        user_id = _reference(application, "user_id")
        if user_id:
            application["user"] = await self._store.find_by_id(USERS, user_id)
        return JobApplication.model_validate(application)

    @beartype
    async def get_job_applications(
        self,
        job_id: str | None = None,
        user_id: str | None = None,
    ) -> list[JobApplication]:
        """Applications, optionally for one job and/or one user."""
        query: dict[str, Any] = {}
        if job_id:
            query["job_id"] = job_id
        if user_id:
            query["user_id"] = user_id

        applications = await self._store.find(JOB_APPLICATIONS, query)
        return [await self._attach_job_and_user(app) for app in applications]

    @beartype
    async def get_job_application(self, application_id: str) -> JobApplication | None:
        doc = await self._store.find_by_id(JOB_APPLICATIONS, application_id)
        return await self._attach_job_and_user(doc) if doc else None

    @beartype
    async def create_job_application(
        self, application: Mapping[str, Any]
    ) -> JobApplication:
        doc = await self._store.create(
            JOB_APPLICATIONS,
            {
                **application,
                "id": application.get("id") or new_id(),
                "status": application.get("status") or "pending",
                "applied_at": application.get("applied_at") or self._now_iso(),
            },
        )
        return JobApplication.model_validate(doc)

    @beartype
    async def update_job_application_status(
        self,
        application_id: str,
        status: str,
        notes: str | None = None,
    ) -> JobApplication | None:
        """Set an application's status. Any status may follow any other."""
        updates: dict[str, Any] = {"status": status}
        if notes:
            updates["notes"] = notes
        doc = await self._store.update(JOB_APPLICATIONS, application_id, updates)
        return JobApplication.model_validate(doc) if doc else None

    # Testimonial operations

    @beartype
    async def get_testimonials(
        self, filters: TestimonialFilters | None = None
    ) -> list[Testimonial]:
        """Testimonials matching filters; visible ones only unless asked."""
        filters = filters or TestimonialFilters()
        query: dict[str, Any] = {
            "is_visible": filters.is_visible if filters.is_visible is not None else True
        }
        if filters.service_type:
            query["service_type"] = filters.service_type

        testimonials = await self._store.find(TESTIMONIALS, query)
        if filters.limit:
            testimonials = testimonials[: filters.limit]
        return [Testimonial.model_validate(doc) for doc in testimonials]

    @beartype
    async def get_testimonial(self, testimonial_id: str) -> Testimonial | None:
        doc = await self._store.find_by_id(TESTIMONIALS, testimonial_id)
        return Testimonial.model_validate(doc) if doc else None

    @beartype
    async def create_testimonial(self, testimonial: Mapping[str, Any]) -> Testimonial:
        doc = await self._store.create(
            TESTIMONIALS,
            {
                **testimonial,
                "id": testimonial.get("id") or new_id(),
                "is_verified": testimonial.get("is_verified") or False,
                "is_visible": testimonial.get("is_visible") is not False,
            },
        )
        return Testimonial.model_validate(doc)

    @beartype
    async def update_testimonial(
        self, testimonial_id: str, testimonial: Mapping[str, Any]
    ) -> Testimonial | None:
        doc = await self._store.update(TESTIMONIALS, testimonial_id, testimonial)
        return Testimonial.model_validate(doc) if doc else None

    @beartype
    async def delete_testimonial(self, testimonial_id: str) -> bool:
        return await self._store.delete(TESTIMONIALS, testimonial_id)

    # Form submission operations

    @beartype
    async def get_form_submissions(
        self, form_type: str | None = None
    ) -> list[FormSubmission]:
        query = {"form_type": form_type} if form_type else {}
        submissions = await self._store.find(FORM_SUBMISSIONS, query)
        return [FormSubmission.model_validate(doc) for doc in submissions]

    @beartype
    async def get_form_submission(self, submission_id: str) -> FormSubmission | None:
        doc = await self._store.find_by_id(FORM_SUBMISSIONS, submission_id)
        return FormSubmission.model_validate(doc) if doc else None

    @beartype
    async def create_form_submission(
        self, submission: Mapping[str, Any]
    ) -> FormSubmission:
        doc = await self._store.create(
            FORM_SUBMISSIONS,
            {
                **submission,
                "id": submission.get("id") or new_id(),
                "status": submission.get("status") or "pending",
                "submitted_at": submission.get("submitted_at") or self._now_iso(),
            },
        )
        return FormSubmission.model_validate(doc)

    @beartype
    async def update_form_submission_status(
        self,
        submission_id: str,
        status: str,
        notes: str | None = None,
    ) -> FormSubmission | None:
        """Set a submission's status and, if given, its admin notes."""
        updates: dict[str, Any] = {"status": status}
        if notes:
            updates["notes"] = notes
        doc = await self._store.update(FORM_SUBMISSIONS, submission_id, updates)
        return FormSubmission.model_validate(doc) if doc else None

    # Resource operations

    @beartype
    async def get_resources(
        self, filters: ResourceFilters | None = None
    ) -> list[Resource]:
        """Resources matching filters; published ones only unless asked."""
        filters = filters or ResourceFilters()
        query: dict[str, Any] = {
            "is_published": (
                filters.is_published if filters.is_published is not None else True
            )
        }
        for name in ("type", "category", "country"):
            value = getattr(filters, name)
            if value:
                query[name] = value

        resources = await self._store.find(RESOURCES, query)
        if filters.limit:
            resources = resources[: filters.limit]
        return [Resource.model_validate(doc) for doc in resources]

    @beartype
    async def get_resource(self, resource_id: str) -> Resource | None:
        doc = await self._store.find_by_id(RESOURCES, resource_id)
        return Resource.model_validate(doc) if doc else None

    @beartype
    async def get_resource_by_slug(self, slug: str) -> Resource | None:
        """Published resource with this slug."""
        resources = await self._store.find(
            RESOURCES, {"slug": slug, "is_published": True}
        )
        return Resource.model_validate(resources[0]) if resources else None

    @beartype
    async def create_resource(self, resource: Mapping[str, Any]) -> Resource:
        slug = resource.get("slug")
        if not slug and isinstance(resource.get("title"), str):
            slug = slugify(resource["title"])
        doc = await self._store.create(
            RESOURCES,
            {
                **resource,
                "id": resource.get("id") or new_id(),
                "slug": slug,
                "is_published": resource.get("is_published") is not False,
                "is_featured": resource.get("is_featured") or False,
                "published_at": resource.get("published_at") or self._now_iso(),
            },
        )
        return Resource.model_validate(doc)

    @beartype
    async def update_resource(
        self, resource_id: str, resource: Mapping[str, Any]
    ) -> Resource | None:
        doc = await self._store.update(RESOURCES, resource_id, resource)
        return Resource.model_validate(doc) if doc else None

    @beartype
    async def delete_resource(self, resource_id: str) -> bool:
        return await self._store.delete(RESOURCES, resource_id)

    # Advertisement operations

    @beartype
    def _in_window(self, ad: Mapping[str, Any], now: datetime) -> bool:
        """Whether an ad's start/end window contains now.

        Ads missing either date are always in the window. Ads whose dates
        cannot be parsed are also treated as in the window.
        """
        start = _first_of(ad, "start_date", "startDate")
        end = _first_of(ad, "end_date", "endDate")
        if not start or not end:
            return True

        try:
            return parse_iso(start) <= now <= parse_iso(end)
        except ValueError:
            # TODO: reject malformed dates in create/update_advertisement once
            # the admin form validates them, then drop this fail-open branch.
            logger.warning(
                "Unparseable dates on advertisement %s, treating it as active",
                ad.get("id"),
            )
            return True

    @beartype
    async def get_advertisements(
        self, filters: AdvertisementFilters | None = None
    ) -> list[Advertisement]:
        """Advertisements matching filters, highest priority first.

        With ``is_active=True`` only ads whose date window contains the
        current time are returned.
        """
        filters = filters or AdvertisementFilters()
        query: dict[str, Any] = {}
        if filters.position:
            query["position"] = filters.position
        if filters.is_active is not None:
            query["is_active"] = filters.is_active

        ads = await self._store.find(ADVERTISEMENTS, query)

        if filters.is_active:
            now = self._now()
            ads = [ad for ad in ads if self._in_window(ad, now)]

        ads.sort(key=_priority, reverse=True)
        if filters.limit:
            ads = ads[: filters.limit]
        return [Advertisement.model_validate(doc) for doc in ads]

    @beartype
    async def count_active_ads_by_position(self, position: str) -> int:
        """Number of currently active ads in one position."""
        ads = await self.get_advertisements(
            AdvertisementFilters(position=position, is_active=True)
        )
        return len(ads)

    @beartype
    async def get_advertisement(self, ad_id: str) -> Advertisement | None:
        doc = await self._store.find_by_id(ADVERTISEMENTS, ad_id)
        return Advertisement.model_validate(doc) if doc else None

    @beartype
    async def create_advertisement(self, ad: Mapping[str, Any]) -> Advertisement:
        doc = await self._store.create(
            ADVERTISEMENTS,
            {
                **ad,
                "id": ad.get("id") or new_id(),
                "is_active": ad.get("is_active") is not False,
                "priority": ad.get("priority") or 0,
                "click_count": 0,
                "impression_count": 0,
            },
        )
        return Advertisement.model_validate(doc)

    @beartype
    async def update_advertisement(
        self, ad_id: str, ad: Mapping[str, Any]
    ) -> Advertisement | None:
        doc = await self._store.update(ADVERTISEMENTS, ad_id, ad)
        return Advertisement.model_validate(doc) if doc else None

    @beartype
    async def delete_advertisement(self, ad_id: str) -> bool:
        return await self._store.delete(ADVERTISEMENTS, ad_id)

    @beartype
    async def increment_ad_clicks(self, ad_id: str) -> Advertisement | None:
        doc = await self._store.increment(ADVERTISEMENTS, ad_id, "click_count")
        return Advertisement.model_validate(doc) if doc else None

    @beartype
    async def increment_ad_impressions(self, ad_id: str) -> Advertisement | None:
        doc = await self._store.increment(ADVERTISEMENTS, ad_id, "impression_count")
        return Advertisement.model_validate(doc) if doc else None

    @beartype
    async def delete_expired_advertisements(self) -> int:
        """Delete every ad whose end date has passed.

        Ads without an end date, or with one that cannot be parsed, are kept.

        Returns:
            Number of ads deleted.
        """
        now = self._now()
        deleted = 0

        for ad in await self._store.find(ADVERTISEMENTS):
            end = _first_of(ad, "end_date", "endDate")
            if not end:
                continue
            try:
                expired = parse_iso(end) < now
            except ValueError:
                logger.warning(
                    "Skipping advertisement %s with unparseable end date %r",
                    ad.get("id"),
                    end,
                )
                continue
            ad_id = ad.get("id")
            if (
                expired
                and isinstance(ad_id, str)
                and await self._store.delete(ADVERTISEMENTS, ad_id)
            ):
                logger.info("Deleted expired advertisement %s", ad_id)
                deleted += 1

        return deleted

    # Saved job operations

    @beartype
    async def save_job(self, user_id: str, job_id: str) -> SavedJob:
        """Bookmark a job for a user.

        Raises:
            JobAlreadySavedError: If the user has already saved this job.
        """
        try:
            doc = await self._store.create(
                SAVED_JOBS,
                {
                    "id": new_id(),
                    "user_id": user_id,
                    "job_id": job_id,
                    "saved_at": self._now_iso(),
                },
                unique_on=("user_id", "job_id"),
            )
        except DuplicateDocumentError as e:
            msg = "Job already saved"
            raise JobAlreadySavedError(msg) from e
        return SavedJob.model_validate(doc)

    @beartype
    async def unsave_job(self, user_id: str, job_id: str) -> int:
        """Remove every bookmark of this job by this user.

        Returns:
            Number of bookmarks removed.
        """
        saved = await self._store.find(SAVED_JOBS, {"user_id": user_id, "job_id": job_id})
        removed = 0
        for entry in saved:
            if await self._store.delete(SAVED_JOBS, entry["id"]):
                removed += 1
        return removed

    @beartype
    async def get_saved_jobs(self, user_id: str) -> list[SavedJobListing]:
        """The user's saved jobs that still exist, in the order they were saved."""
        listings = []
        for entry in await self._store.find(SAVED_JOBS, {"user_id": user_id}):
            job_id = _reference(entry, "job_id")
            job = await self._store.find_by_id(JOBS, job_id) if job_id else None
            if job:
                await self._attach_company(job)
                listings.append(
                    SavedJobListing.model_validate(
                        {**job, "saved_at": entry.get("saved_at")}
                    )
                )
        return listings

    @beartype
    async def is_job_saved(self, user_id: str, job_id: str) -> bool:
        saved = await self._store.find(SAVED_JOBS, {"user_id": user_id, "job_id": job_id})
        return len(saved) > 0
