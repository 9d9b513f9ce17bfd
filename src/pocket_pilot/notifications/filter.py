# src/pocket_pilot/notifications/filter.py

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.ports import DocumentStore

logger = logging.getLogger(__name__)

FILTER_DOC = "notification-filter"


class NotificationFilter:
    """Package whitelist; only whitelisted packages reach the triage queue."""

    def __init__(self, documents: DocumentStore) -> None:
        self._docs = documents
        self._whitelist: set[str] = self._load()

    def _load(self) -> set[str]:
        data = self._docs.read(FILTER_DOC, {})
        packages = data.get("packages") if isinstance(data, dict) else None
        if not isinstance(packages, list):
            return set()
        return {str(p).strip() for p in packages if str(p).strip()}

    def _commit(self, packages: set[str]) -> None:
        # Memory changes only after the document was written.
        self._docs.write(FILTER_DOC, {"packages": sorted(packages)})
        self._whitelist = packages

    def is_allowed(self, package_name: str) -> bool:
        return package_name in self._whitelist

    def get_whitelist(self) -> list[str]:
        return sorted(self._whitelist)

    def set_whitelist(self, packages: Iterable[str]) -> None:
        self._commit({p.strip() for p in packages if p and p.strip()})
        logger.info("Notification whitelist replaced (%d packages)", len(self._whitelist))

    def add_package(self, package_name: str) -> None:
        pkg = (package_name or "").strip()
        if not pkg:
            raise ValueError("package name is required")
        self._commit(self._whitelist | {pkg})
        logger.info("Whitelisted %s", pkg)

    def remove_package(self, package_name: str) -> bool:
        pkg = (package_name or "").strip()
        if pkg not in self._whitelist:
            return False
        self._commit(self._whitelist - {pkg})
        logger.info("Removed %s from whitelist", pkg)
        return True
