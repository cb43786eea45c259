# models.py — SpaceCat entities and their JSON (camelCase) representations
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

DELIVERY_TYPES = ("aem_edge", "aem_cs", "other")
AUTHORING_TYPES = ("documentauthoring", "cs", "cs/crosswalk", "ams")

ASYNC_JOB_STATUS = ("IN_PROGRESS", "COMPLETED", "FAILED", "CANCELLED")
TRIAL_USER_STATUS = ("INVITED", "REGISTERED", "BLOCKED", "DELETED")
SCRAPE_URL_STATUS = ("PENDING", "RUNNING", "COMPLETE", "FAILED")

KEY_EVENT_TYPES = (
    "PERFORMANCE", "SEO", "CONTENT", "CODE", "THIRD PARTY",
    "EXPERIMENTATION", "NETWORK", "STATUS CHANGE",
)


def iso_timestamp(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat().replace("+00:00", "Z")
    return str(value)


class SiteConfig:
    """Per-site configuration: handler overrides, imports, LLMO and Slack settings."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        data = copy.deepcopy(data or {})
        self.handlers: Dict[str, Dict[str, Any]] = data.get("handlers") or {}
        self.imports: List[Dict[str, Any]] = data.get("imports") or []
        self.llmo: Dict[str, Any] = data.get("llmo") or {}
        self.slack: Dict[str, Any] = data.get("slack") or {}

    # ---------- handlers ----------
    def get_handler_config(self, audit_type: str) -> Optional[Dict[str, Any]]:
        return self.handlers.get(audit_type)

    def _handler(self, audit_type: str) -> Dict[str, Any]:
        return self.handlers.setdefault(audit_type, {})

    def get_excluded_urls(self, audit_type: str) -> List[str]:
        return list((self.handlers.get(audit_type) or {}).get("excludedURLs") or [])

    def update_excluded_urls(self, audit_type: str, urls: List[str]) -> None:
        self._handler(audit_type)["excludedURLs"] = list(urls)

    def get_manual_overwrites(self, audit_type: str) -> List[Dict[str, str]]:
        return list((self.handlers.get(audit_type) or {}).get("manualOverwrites") or [])

    def update_manual_overwrites(self, audit_type: str, overwrites: List[Dict[str, str]]) -> None:
        self._handler(audit_type)["manualOverwrites"] = list(overwrites)

    def get_fixed_urls(self, audit_type: str) -> List[Dict[str, str]]:
        return list((self.handlers.get(audit_type) or {}).get("fixedURLs") or [])

    def update_fixed_urls(self, audit_type: str, fixed: List[Dict[str, str]]) -> None:
        self._handler(audit_type)["fixedURLs"] = list(fixed)

    # ---------- imports ----------
    def is_import_enabled(self, import_type: str) -> bool:
        return any(i.get("type") == import_type and i.get("enabled", True) for i in self.imports)

    def enable_import(self, import_type: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self.imports = [i for i in self.imports if i.get("type") != import_type]
        entry = {"type": import_type, "enabled": True}
        entry.update(extra or {})
        self.imports.append(entry)

    def disable_import(self, import_type: str) -> None:
        self.imports = [i for i in self.imports if i.get("type") != import_type]

    # ---------- llmo ----------
    def get_llmo_data_folder(self) -> Optional[str]:
        return self.llmo.get("dataFolder")

    def get_llmo_brand(self) -> Optional[str]:
        return self.llmo.get("brand")

    def update_llmo_data_folder(self, folder: str) -> None:
        self.llmo["dataFolder"] = folder

    def update_llmo_brand(self, brand: str) -> None:
        self.llmo["brand"] = brand

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"handlers": copy.deepcopy(self.handlers)}
        if self.imports:
            out["imports"] = copy.deepcopy(self.imports)
        if self.llmo:
            out["llmo"] = dict(self.llmo)
        if self.slack:
            out["slack"] = dict(self.slack)
        return out


@dataclass
class Site:
    id: str
    base_url: str
    delivery_type: str = "aem_edge"
    authoring_type: Optional[str] = None
    github_url: Optional[str] = None
    organization_id: Optional[str] = None
    is_live: bool = False
    is_live_toggled_at: Optional[datetime] = None
    config: SiteConfig = field(default_factory=SiteConfig)
    delivery_config: Dict[str, Any] = field(default_factory=dict)
    hlx_config: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Site":
        return cls(
            id=str(row["id"]),
            base_url=row["base_url"],
            delivery_type=row.get("delivery_type") or "aem_edge",
            authoring_type=row.get("authoring_type"),
            github_url=row.get("github_url"),
            organization_id=str(row["organization_id"]) if row.get("organization_id") else None,
            is_live=bool(row.get("is_live")),
            is_live_toggled_at=row.get("is_live_toggled_at"),
            config=SiteConfig(row.get("config")),
            delivery_config=row.get("delivery_config") or {},
            hlx_config=row.get("hlx_config") or {},
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def toggle_live(self) -> None:
        self.is_live = not self.is_live
        self.is_live_toggled_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "baseURL": self.base_url,
            "deliveryType": self.delivery_type,
            "authoringType": self.authoring_type,
            "gitHubURL": self.github_url,
            "organizationId": self.organization_id,
            "isLive": self.is_live,
            "isLiveToggledAt": iso_timestamp(self.is_live_toggled_at),
            "config": self.config.to_dict(),
            "deliveryConfig": self.delivery_config,
            "hlxConfig": self.hlx_config,
            "createdAt": iso_timestamp(self.created_at),
            "updatedAt": iso_timestamp(self.updated_at),
        }


@dataclass
class Audit:
    site_id: str
    audit_type: str
    audited_at: datetime
    audit_result: Dict[str, Any] = field(default_factory=dict)
    full_audit_ref: str = ""
    is_live: bool = False
    is_error: bool = False
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Audit":
        return cls(
            id=str(row["id"]) if row.get("id") else None,
            site_id=str(row["site_id"]),
            audit_type=row["audit_type"],
            audited_at=row["audited_at"],
            audit_result=row.get("audit_result") or {},
            full_audit_ref=row.get("full_audit_ref") or "",
            is_live=bool(row.get("is_live")),
            is_error=bool(row.get("is_error")),
        )

    @property
    def scores(self) -> Dict[str, Any]:
        return self.audit_result.get("scores") or {}

    @property
    def runtime_error(self) -> Optional[Dict[str, Any]]:
        return self.audit_result.get("runtimeError")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "siteId": self.site_id,
            "auditType": self.audit_type,
            "auditedAt": iso_timestamp(self.audited_at),
            "fullAuditRef": self.full_audit_ref,
            "isLive": self.is_live,
            "isError": self.is_error,
            "auditResult": self.audit_result,
        }

    def to_abbreviated_dict(self) -> Dict[str, Any]:
        """Listing shape: the audit result is cut down to its summary fields."""
        out = self.to_dict()
        out["auditResult"] = {
            k: self.audit_result[k]
            for k in ("finalUrl", "runtimeError", "scores", "totalBlockingTime")
            if k in self.audit_result
        }
        return out


def _handler_list(handler: Dict[str, Any], bucket: str, key: str) -> List[str]:
    return handler.setdefault(bucket, {}).setdefault(key, [])


class HandlerDependencyError(ValueError):
    """Raised when a handler is enabled before the handlers it depends on."""


def _bucket_ids(handler: Dict[str, Any], bucket: str, key: str) -> List[str]:
    return (handler.get(bucket) or {}).get(key) or []


@dataclass
class Configuration:
    """Global handler registry; every save produces a new version.

    A handler with an explicit ``enabled`` list is on only for the sites and
    orgs listed there. Otherwise a ``disabled`` list switches it off for the
    listed entities. A handler with neither falls back to ``enabledByDefault``.
    """
    version: int = 0
    handlers: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    jobs: List[Dict[str, Any]] = field(default_factory=list)
    queues: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Configuration":
        return cls(
            version=int(row.get("version") or 0),
            handlers=copy.deepcopy(row.get("handlers") or {}),
            jobs=copy.deepcopy(row.get("jobs") or []),
            queues=dict(row.get("queues") or {}),
        )

    def get_queues(self) -> Dict[str, str]:
        return self.queues

    def _require_handler(self, handler_type: str) -> Dict[str, Any]:
        handler = self.handlers.get(handler_type)
        if handler is None:
            raise ValueError(f"Handler {handler_type} not found")
        return handler

    def is_handler_enabled_for_org(self, handler_type: str, org_id: Optional[str]) -> bool:
        handler = self.handlers.get(handler_type)
        if handler is None:
            return False
        if handler.get("enabled") is not None:
            return org_id in _bucket_ids(handler, "enabled", "orgs")
        if handler.get("disabled") is not None:
            return org_id not in _bucket_ids(handler, "disabled", "orgs")
        return bool(handler.get("enabledByDefault"))

    def is_handler_enabled_for_site(self, handler_type: str, site: Site) -> bool:
        handler = self.handlers.get(handler_type)
        if handler is None:
            return False
        for bucket, listed_means in (("enabled", True), ("disabled", False)):
            if handler.get(bucket) is not None:
                listed = (site.id in _bucket_ids(handler, bucket, "sites")
                          or site.organization_id in _bucket_ids(handler, bucket, "orgs"))
                return listed if listed_means else not listed
        return bool(handler.get("enabledByDefault"))

    def _missing_dependencies(self, handler_type: str, is_enabled) -> List[str]:
        handler = self.handlers.get(handler_type) or {}
        return [dep["handler"] for dep in handler.get("dependencies") or []
                if not is_enabled(dep["handler"])]

    def is_handler_dependency_met_for_site(self, handler_type: str, site: Site) -> List[str]:
        """Dependencies of the handler still disabled for the site; empty when all are met."""
        return self._missing_dependencies(
            handler_type, lambda dep: self.is_handler_enabled_for_site(dep, site))

    def is_handler_dependency_met_for_org(self, handler_type: str, org_id: str) -> List[str]:
        return self._missing_dependencies(
            handler_type, lambda dep: self.is_handler_enabled_for_org(dep, org_id))

    def _update_handler(self, handler_type: str, entity_id: str, enabled: bool, key: str) -> None:
        # default-on handlers track opt-outs, default-off handlers track opt-ins
        handler = self._require_handler(handler_type)
        bucket = "disabled" if handler.get("enabledByDefault") else "enabled"
        ids = _handler_list(handler, bucket, key)
        add = enabled != (bucket == "disabled")
        if add and entity_id not in ids:
            ids.append(entity_id)
        elif not add and entity_id in ids:
            ids.remove(entity_id)

    def enable_handler_for_site(self, handler_type: str, site: Site) -> None:
        self._require_handler(handler_type)
        if self.is_handler_enabled_for_site(handler_type, site):
            return
        missing = self.is_handler_dependency_met_for_site(handler_type, site)
        if missing:
            raise HandlerDependencyError(
                f"Cannot enable handler {handler_type} for site {site.id} "
                f"because of missing dependencies: {','.join(missing)}")
        self._update_handler(handler_type, site.id, True, "sites")

    def enable_handler_for_org(self, handler_type: str, org_id: str) -> None:
        self._require_handler(handler_type)
        if self.is_handler_enabled_for_org(handler_type, org_id):
            return
        missing = self.is_handler_dependency_met_for_org(handler_type, org_id)
        if missing:
            raise HandlerDependencyError(
                f"Cannot enable handler {handler_type} for org {org_id} "
                f"because of missing dependencies: {','.join(missing)}")
        self._update_handler(handler_type, org_id, True, "orgs")

    def disable_handler_for_site(self, handler_type: str, site: Site) -> None:
        self._require_handler(handler_type)
        if self.is_handler_enabled_for_site(handler_type, site):
            self._update_handler(handler_type, site.id, False, "sites")

    def disable_handler_for_org(self, handler_type: str, org_id: str) -> None:
        self._require_handler(handler_type)
        if self.is_handler_enabled_for_org(handler_type, org_id):
            self._update_handler(handler_type, org_id, False, "orgs")

    def get_enabled_audits_for_site(self, site: Site) -> List[str]:
        return [t for t in self.handlers if self.is_handler_enabled_for_site(t, site)]

    def get_disabled_audits_for_site(self, site: Site) -> List[str]:
        return [t for t in self.handlers if not self.is_handler_enabled_for_site(t, site)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "handlers": self.handlers,
            "jobs": self.jobs,
            "queues": self.queues,
        }


@dataclass
class AsyncJob:
    id: str
    type: str
    status: str = "IN_PROGRESS"
    data: Dict[str, Any] = field(default_factory=dict)
    result: Any = None
    error: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    record_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AsyncJob":
        return cls(
            id=str(row["id"]),
            type=row["type"],
            status=row.get("status") or "IN_PROGRESS",
            data=row.get("data") or {},
            result=row.get("result"),
            error=row.get("error"),
            metadata=row.get("metadata") or {},
            started_at=row.get("started_at"),
            ended_at=row.get("ended_at"),
            record_expires_at=row.get("record_expires_at"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_status_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.id,
            "status": self.status,
            "createdAt": iso_timestamp(self.created_at),
            "updatedAt": iso_timestamp(self.updated_at),
            "startedAt": iso_timestamp(self.started_at),
            "endedAt": iso_timestamp(self.ended_at),
            "recordExpiresAt": iso_timestamp(self.record_expires_at),
            "result": self.result,
            "error": self.error,
        }


@dataclass
class Organization:
    id: str
    name: str
    ims_org_id: Optional[str] = None
    config: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Organization":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            ims_org_id=row.get("ims_org_id"),
            config=row.get("config") or {},
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "imsOrgId": self.ims_org_id,
            "config": self.config,
            "createdAt": iso_timestamp(self.created_at),
            "updatedAt": iso_timestamp(self.updated_at),
        }


@dataclass
class TrialUser:
    id: str
    organization_id: str
    email_id: str
    status: str = "INVITED"
    external_user_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    provider: Optional[str] = None
    last_seen_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TrialUser":
        return cls(
            id=str(row["id"]),
            organization_id=str(row["organization_id"]),
            email_id=row["email_id"],
            status=row.get("status") or "INVITED",
            external_user_id=row.get("external_user_id"),
            first_name=row.get("first_name"),
            last_name=row.get("last_name"),
            provider=row.get("provider"),
            last_seen_at=row.get("last_seen_at"),
            metadata=row.get("metadata") or {},
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "organizationId": self.organization_id,
            "externalUserId": self.external_user_id,
            "status": self.status,
            "provider": self.provider,
            "lastSeenAt": iso_timestamp(self.last_seen_at),
            "emailId": self.email_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "metadata": self.metadata,
            "createdAt": iso_timestamp(self.created_at),
            "updatedAt": iso_timestamp(self.updated_at),
        }


@dataclass
class KeyEvent:
    id: str
    site_id: str
    name: str
    type: str
    time: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "KeyEvent":
        return cls(
            id=str(row["id"]),
            site_id=str(row["site_id"]),
            name=row["name"],
            type=row["type"],
            time=row.get("time"),
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "siteId": self.site_id,
            "name": self.name,
            "type": self.type,
            "time": iso_timestamp(self.time),
            "createdAt": iso_timestamp(self.created_at),
        }


@dataclass
class SiteTopPage:
    site_id: str
    url: str
    traffic: int = 0
    source: str = "ahrefs"
    geo: str = "global"
    top_keyword: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "SiteTopPage":
        return cls(
            site_id=str(row["site_id"]),
            url=row["url"],
            traffic=int(row.get("traffic") or 0),
            source=row.get("source") or "ahrefs",
            geo=row.get("geo") or "global",
            top_keyword=row.get("top_keyword"),
        )


@dataclass
class ScrapeJob:
    id: str
    base_url: str
    processing_type: str
    options: Dict[str, Any] = field(default_factory=dict)
    status: str = "RUNNING"
    url_count: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ScrapeJob":
        return cls(
            id=str(row["id"]),
            base_url=row["base_url"],
            processing_type=row["processing_type"],
            options=row.get("options") or {},
            status=row.get("status") or "RUNNING",
            url_count=int(row.get("url_count") or 0),
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "baseURL": self.base_url,
            "processingType": self.processing_type,
            "options": self.options,
            "status": self.status,
            "urlCount": self.url_count,
            "createdAt": iso_timestamp(self.created_at),
        }
