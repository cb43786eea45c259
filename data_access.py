# data_access.py — repository layer over db_utils for the SpaceCat entities
"""
Thin repositories, one per entity, over parameterised SQL.

Controllers and Slack commands never touch SQL directly; they call
``get_data_access()`` and work with the dataclasses from ``models``.
Repository failures surface as ``DataAccessError``.
"""
from __future__ import annotations

import logging
import uuid as _uuid
from typing import Any, Dict, List, Optional, Tuple

from psycopg2 import DataError as PsycopgDataError, Error as PsycopgError
from psycopg2.extras import Json

import db_utils
from models import (
    AsyncJob, Audit, Configuration, KeyEvent, Organization, ScrapeJob,
    Site, SiteTopPage, TrialUser,
)

logger = logging.getLogger("data_access")


class DataAccessError(Exception):
    """Raised when a repository operation fails at the database level."""


class InvalidInputError(DataAccessError):
    """Raised when the database rejects a parameter, e.g. a malformed uuid or timestamp."""


def _new_id() -> str:
    return str(_uuid.uuid4())


def _order(ascending: bool) -> str:
    return "ASC" if ascending else "DESC"


class _Repository:
    table = ""

    def _call(self, action: str, fn, *args):
        try:
            return fn(*args)
        except PsycopgDataError as e:
            logger.warning("%s %s rejected input: %s", self.table, action, e)
            raise InvalidInputError(f"Invalid input for {self.table}") from e
        except PsycopgError as e:
            logger.error("%s %s failed: %s", self.table, action, e)
            raise DataAccessError(f"{self.table} {action} failed: {e}") from e

    def _fetch_one(self, query: str, params: Tuple[Any, ...] = ()) -> Optional[Dict[str, Any]]:
        return self._call("query", db_utils.fetch_one, query, params)

    def _fetch_all(self, query: str, params: Tuple[Any, ...] = ()) -> List[Dict[str, Any]]:
        return self._call("query", db_utils.fetch_all, query, params)

    def _returning(self, query: str, params: Tuple[Any, ...]) -> Dict[str, Any]:
        row = self._call("write", db_utils.execute_returning, query, params)
        if row is None:
            raise DataAccessError(f"{self.table} write returned no row")
        return row

    def _execute(self, query: str, params: Tuple[Any, ...]) -> int:
        return self._call("write", db_utils.execute, query, params)


class SiteRepository(_Repository):
    table = "sites"

    def find_by_id(self, site_id: str) -> Optional[Site]:
        row = self._fetch_one("SELECT * FROM sites WHERE id = %s", (site_id,))
        return Site.from_row(row) if row else None

    def find_by_base_url(self, base_url: str) -> Optional[Site]:
        row = self._fetch_one("SELECT * FROM sites WHERE base_url = %s", (base_url.rstrip("/"),))
        return Site.from_row(row) if row else None

    def all(self) -> List[Site]:
        return [Site.from_row(r) for r in self._fetch_all("SELECT * FROM sites ORDER BY base_url")]

    def all_by_delivery_type(self, delivery_type: str) -> List[Site]:
        rows = self._fetch_all(
            "SELECT * FROM sites WHERE delivery_type = %s ORDER BY base_url", (delivery_type,)
        )
        return [Site.from_row(r) for r in rows]

    def all_by_organization_id(self, organization_id: str) -> List[Site]:
        rows = self._fetch_all(
            "SELECT * FROM sites WHERE organization_id = %s ORDER BY base_url", (organization_id,)
        )
        return [Site.from_row(r) for r in rows]

    def all_with_latest_audit(self, audit_type: str, ascending: bool = True,
                              delivery_type: Optional[str] = None) -> List[Tuple[Site, Optional[Audit]]]:
        """Every site paired with its latest audit of `audit_type`, ordered by audit time."""
        params: List[Any] = [audit_type]
        where = ""
        if delivery_type and delivery_type != "all":
            where = "WHERE s.delivery_type = %s"
            params.append(delivery_type)
        rows = self._fetch_all(
            f"""
            SELECT s.*, a.id AS audit_id, a.audit_type, a.audited_at, a.audit_result,
                   a.full_audit_ref, a.is_live AS audit_is_live, a.is_error
            FROM sites s
            LEFT JOIN LATERAL (
                SELECT * FROM audits
                WHERE audits.site_id = s.id AND audits.audit_type = %s
                ORDER BY audited_at DESC LIMIT 1
            ) a ON TRUE
            {where}
            ORDER BY a.audited_at {_order(ascending)} NULLS LAST, s.base_url
            """,
            tuple(params),
        )
        result = []
        for r in rows:
            audit = None
            if r.get("audit_id"):
                audit = Audit.from_row({
                    "id": r["audit_id"], "site_id": r["id"], "audit_type": r["audit_type"],
                    "audited_at": r["audited_at"], "audit_result": r["audit_result"],
                    "full_audit_ref": r["full_audit_ref"], "is_live": r["audit_is_live"],
                    "is_error": r["is_error"],
                })
            result.append((Site.from_row(r), audit))
        return result

    def create(self, data: Dict[str, Any]) -> Site:
        row = self._returning(
            """
            INSERT INTO sites (id, base_url, delivery_type, authoring_type, github_url,
                               organization_id, is_live, config, delivery_config, hlx_config,
                               created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW(), NOW())
            RETURNING *
            """,
            (
                _new_id(),
                data["baseURL"].rstrip("/"),
                data.get("deliveryType") or "aem_edge",
                data.get("authoringType"),
                data.get("gitHubURL"),
                data.get("organizationId"),
                bool(data.get("isLive", False)),
                Json(data.get("config") or {"handlers": {}}),
                Json(data.get("deliveryConfig") or {}),
                Json(data.get("hlxConfig") or {}),
            ),
        )
        logger.info("Created site %s (%s)", row["id"], row["base_url"])
        return Site.from_row(row)

    def save(self, site: Site) -> Site:
        row = self._returning(
            """
            UPDATE sites SET delivery_type = %s, authoring_type = %s, github_url = %s,
                organization_id = %s, is_live = %s, is_live_toggled_at = %s, config = %s,
                delivery_config = %s, hlx_config = %s, updated_at = NOW()
            WHERE id = %s
            RETURNING *
            """,
            (
                site.delivery_type, site.authoring_type, site.github_url, site.organization_id,
                site.is_live, site.is_live_toggled_at, Json(site.config.to_dict()),
                Json(site.delivery_config), Json(site.hlx_config), site.id,
            ),
        )
        return Site.from_row(row)

    def remove(self, site_id: str) -> None:
        self._execute("DELETE FROM sites WHERE id = %s", (site_id,))
        logger.info("Removed site %s", site_id)


class AuditRepository(_Repository):
    table = "audits"

    def all_by_site_id(self, site_id: str, audit_type: Optional[str] = None,
                       ascending: bool = False) -> List[Audit]:
        if audit_type:
            rows = self._fetch_all(
                f"SELECT * FROM audits WHERE site_id = %s AND audit_type = %s "
                f"ORDER BY audited_at {_order(ascending)}",
                (site_id, audit_type),
            )
        else:
            rows = self._fetch_all(
                f"SELECT * FROM audits WHERE site_id = %s ORDER BY audited_at {_order(ascending)}",
                (site_id,),
            )
        return [Audit.from_row(r) for r in rows]

    def all_latest(self, audit_type: str, ascending: bool = False) -> List[Audit]:
        rows = self._fetch_all(
            f"""
            SELECT * FROM (
                SELECT DISTINCT ON (site_id) * FROM audits
                WHERE audit_type = %s
                ORDER BY site_id, audited_at DESC
            ) latest
            ORDER BY audited_at {_order(ascending)}
            """,
            (audit_type,),
        )
        return [Audit.from_row(r) for r in rows]

    def all_latest_for_site(self, site_id: str) -> List[Audit]:
        rows = self._fetch_all(
            """
            SELECT DISTINCT ON (audit_type) * FROM audits
            WHERE site_id = %s
            ORDER BY audit_type, audited_at DESC
            """,
            (site_id,),
        )
        return [Audit.from_row(r) for r in rows]

    def find_latest_for_site(self, site_id: str, audit_type: str) -> Optional[Audit]:
        row = self._fetch_one(
            "SELECT * FROM audits WHERE site_id = %s AND audit_type = %s "
            "ORDER BY audited_at DESC LIMIT 1",
            (site_id, audit_type),
        )
        return Audit.from_row(row) if row else None

    def find_by_site_id_audit_type_and_audited_at(self, site_id: str, audit_type: str,
                                                  audited_at: str) -> Optional[Audit]:
        row = self._fetch_one(
            "SELECT * FROM audits WHERE site_id = %s AND audit_type = %s AND audited_at = %s",
            (site_id, audit_type, audited_at),
        )
        return Audit.from_row(row) if row else None


class ConfigurationRepository(_Repository):
    table = "configurations"

    def find_latest(self) -> Configuration:
        row = self._fetch_one("SELECT * FROM configurations ORDER BY version DESC LIMIT 1")
        return Configuration.from_row(row) if row else Configuration()

    def save(self, configuration: Configuration) -> Configuration:
        row = self._returning(
            """
            INSERT INTO configurations (handlers, jobs, queues, created_at)
            VALUES (%s, %s, %s, NOW())
            RETURNING *
            """,
            (Json(configuration.handlers), Json(configuration.jobs), Json(configuration.queues)),
        )
        logger.info("Saved configuration version %s", row["version"])
        return Configuration.from_row(row)


class AsyncJobRepository(_Repository):
    table = "async_jobs"

    def create(self, data: Dict[str, Any]) -> AsyncJob:
        row = self._returning(
            """
            INSERT INTO async_jobs (id, type, status, data, metadata, started_at,
                                    record_expires_at, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, NOW(), NOW() + INTERVAL '30 days', NOW(), NOW())
            RETURNING *
            """,
            (
                _new_id(), data["type"], data.get("status", "IN_PROGRESS"),
                Json(data.get("data") or {}), Json(data.get("metadata") or {}),
            ),
        )
        return AsyncJob.from_row(row)

    def find_by_id(self, job_id: str) -> Optional[AsyncJob]:
        row = self._fetch_one("SELECT * FROM async_jobs WHERE id = %s", (job_id,))
        return AsyncJob.from_row(row) if row else None

    def save(self, job: AsyncJob) -> AsyncJob:
        row = self._returning(
            """
            UPDATE async_jobs SET status = %s, result = %s, error = %s, metadata = %s,
                ended_at = %s, updated_at = NOW()
            WHERE id = %s
            RETURNING *
            """,
            (job.status, Json(job.result), Json(job.error), Json(job.metadata), job.ended_at, job.id),
        )
        return AsyncJob.from_row(row)


class OrganizationRepository(_Repository):
    table = "organizations"

    def find_by_id(self, organization_id: str) -> Optional[Organization]:
        row = self._fetch_one("SELECT * FROM organizations WHERE id = %s", (organization_id,))
        return Organization.from_row(row) if row else None


class TrialUserRepository(_Repository):
    table = "trial_users"

    def all_by_organization_id(self, organization_id: str) -> List[TrialUser]:
        rows = self._fetch_all(
            "SELECT * FROM trial_users WHERE organization_id = %s ORDER BY created_at",
            (organization_id,),
        )
        return [TrialUser.from_row(r) for r in rows]

    def find_by_email_id(self, email_id: str) -> Optional[TrialUser]:
        row = self._fetch_one("SELECT * FROM trial_users WHERE lower(email_id) = lower(%s)", (email_id,))
        return TrialUser.from_row(row) if row else None

    def create(self, data: Dict[str, Any]) -> TrialUser:
        row = self._returning(
            """
            INSERT INTO trial_users (id, organization_id, email_id, status, metadata,
                                     created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, NOW(), NOW())
            RETURNING *
            """,
            (
                _new_id(), data["organizationId"], data["emailId"],
                data.get("status", "INVITED"), Json(data.get("metadata") or {}),
            ),
        )
        return TrialUser.from_row(row)


class KeyEventRepository(_Repository):
    table = "key_events"

    def create(self, site_id: str, name: str, event_type: str, time: Optional[str] = None) -> KeyEvent:
        row = self._returning(
            """
            INSERT INTO key_events (id, site_id, name, type, time, created_at)
            VALUES (%s, %s, %s, %s, COALESCE(%s::timestamptz, NOW()), NOW())
            RETURNING *
            """,
            (_new_id(), site_id, name, event_type, time),
        )
        return KeyEvent.from_row(row)

    def all_by_site_id(self, site_id: str) -> List[KeyEvent]:
        rows = self._fetch_all(
            "SELECT * FROM key_events WHERE site_id = %s ORDER BY time DESC", (site_id,)
        )
        return [KeyEvent.from_row(r) for r in rows]

    def remove(self, key_event_id: str) -> None:
        self._execute("DELETE FROM key_events WHERE id = %s", (key_event_id,))


class SiteTopPageRepository(_Repository):
    table = "site_top_pages"

    def all_by_site_id_source_and_geo(self, site_id: str, source: str = "ahrefs",
                                      geo: str = "global") -> List[SiteTopPage]:
        rows = self._fetch_all(
            "SELECT * FROM site_top_pages WHERE site_id = %s AND source = %s AND geo = %s "
            "ORDER BY traffic DESC",
            (site_id, source, geo),
        )
        return [SiteTopPage.from_row(r) for r in rows]


class ScrapeJobRepository(_Repository):
    table = "scrape_jobs"

    def create_with_urls(self, urls: List[str], processing_type: str,
                         options: Dict[str, Any]) -> ScrapeJob:
        """Job row plus one PENDING url row per URL, written in a single transaction."""
        def insert():
            with db_utils.transaction() as cur:
                cur.execute(
                    """
                    INSERT INTO scrape_jobs (id, base_url, processing_type, options, status, url_count,
                                             created_at, updated_at)
                    VALUES (%s, %s, %s, %s, 'RUNNING', %s, NOW(), NOW())
                    RETURNING *
                    """,
                    (_new_id(), urls[0], processing_type, Json(options), len(urls)),
                )
                job_row = dict(cur.fetchone())
                for url in urls:
                    cur.execute(
                        """
                        INSERT INTO scrape_urls (id, job_id, url, status, created_at, updated_at)
                        VALUES (%s, %s, %s, 'PENDING', NOW(), NOW())
                        """,
                        (_new_id(), job_row["id"], url),
                    )
            return job_row

        return ScrapeJob.from_row(self._call("write", insert))

    def mark_failed(self, job_id: str, reason: str) -> None:
        def update():
            with db_utils.transaction() as cur:
                cur.execute(
                    "UPDATE scrape_jobs SET status = 'FAILED', updated_at = NOW() WHERE id = %s",
                    (job_id,),
                )
                cur.execute(
                    """
                    UPDATE scrape_urls SET status = 'FAILED', reason = %s, updated_at = NOW()
                    WHERE job_id = %s AND status = 'PENDING'
                    """,
                    (reason, job_id),
                )

        self._call("write", update)

    def find_by_id(self, job_id: str) -> Optional[ScrapeJob]:
        row = self._fetch_one("SELECT * FROM scrape_jobs WHERE id = %s", (job_id,))
        return ScrapeJob.from_row(row) if row else None

    def all_urls_by_job_id(self, job_id: str) -> List[Dict[str, Any]]:
        return self._fetch_all(
            "SELECT * FROM scrape_urls WHERE job_id = %s ORDER BY created_at", (job_id,)
        )


class DataAccess:
    """Bundle of repositories handed to controllers and Slack commands."""

    def __init__(self):
        self.sites = SiteRepository()
        self.audits = AuditRepository()
        self.configurations = ConfigurationRepository()
        self.async_jobs = AsyncJobRepository()
        self.organizations = OrganizationRepository()
        self.trial_users = TrialUserRepository()
        self.key_events = KeyEventRepository()
        self.site_top_pages = SiteTopPageRepository()
        self.scrape_jobs = ScrapeJobRepository()


_data_access: Optional[DataAccess] = None


def get_data_access() -> DataAccess:
    global _data_access
    if _data_access is None:
        _data_access = DataAccess()
    return _data_access
