"""
Matching Settings Service (``stock_modules.matching.settings``).

Responsibility
--------------
Narrow read/update interface over the single persisted
``MatchingSettings`` record.

Invariants enforced
-------------------
* The record is created with default values on first access if absent.
  Two first accesses racing each other both end up reading the same row.
* Updates are compare-and-swap on ``version``: the caller names the version
  it read; if another writer got there first, ``OptimisticLockError``.
* Field values are validated before anything is written.

Readers may hold a slightly stale snapshot; settings change rarely and
in-flight evaluations are allowed to finish on the values they read.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.exceptions import InvalidSettingsError, OptimisticLockError
from stock_kernel.logging_config import get_logger
from stock_modules.matching.config import MatchingSettings
from stock_modules.matching.orm import SETTINGS_SINGLETON_KEY, MatchingSettingsModel

logger = get_logger("modules.matching.settings")

# Actor recorded on the row created by first access
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000000")


class MatchingSettingsService:
    """
    Reads and updates the matching settings singleton.

    ``get()`` may commit (when it creates the row); call it before starting
    other work in the same session.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        defaults: MatchingSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._defaults = defaults or MatchingSettings.with_defaults()

    def get(self) -> MatchingSettings:
        model = self._load()
        if model is not None:
            return model.to_dto()

        try:
            model = MatchingSettingsModel(
                singleton_key=SETTINGS_SINGLETON_KEY,
                created_by_id=SYSTEM_ACTOR_ID,
                version=1,
                **self._defaults.as_dict(),
            )
            self._session.add(model)
            self._session.flush()
            self._session.commit()
            logger.info("matching_settings_created", extra={"version": model.version})
            return model.to_dto()
        except IntegrityError:
            # Another first access created it
            self._session.rollback()
            logger.info("matching_settings_create_race_lost")
            model = self._load()
            if model is None:
                raise
            return model.to_dto()

    def update(
        self,
        changes: dict[str, Any],
        expected_version: int,
        actor_id: UUID,
    ) -> MatchingSettings:
        """
        Apply ``changes`` if the stored version is still ``expected_version``.

        Raises:
            InvalidSettingsError: unknown field or out-of-range value.
            OptimisticLockError: the record changed since it was read.
        """
        try:
            unknown = sorted(set(changes) - set(MatchingSettings.setting_names()))
            if unknown:
                raise InvalidSettingsError(unknown[0], "unknown setting")

            current = self.get()
            proposed = replace(current, **changes)

            logger.info(
                "matching_settings_update_started",
                extra={
                    "expected_version": expected_version,
                    "fields": sorted(changes),
                    "actor_id": str(actor_id),
                },
            )
            result = self._session.execute(
                update(MatchingSettingsModel)
                .where(
                    MatchingSettingsModel.singleton_key == SETTINGS_SINGLETON_KEY,
                    MatchingSettingsModel.version == expected_version,
                )
                .values(
                    **proposed.as_dict(),
                    version=MatchingSettingsModel.version + 1,
                    updated_by_id=actor_id,
                    updated_at=self._clock.now_utc(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning(
                    "matching_settings_update_conflict",
                    extra={"expected_version": expected_version},
                )
                raise OptimisticLockError(
                    "MatchingSettings", SETTINGS_SINGLETON_KEY, expected_version
                )
            self._session.commit()

            stored = self._load()
            logger.info(
                "matching_settings_updated",
                extra={"version": stored.version, "actor_id": str(actor_id)},
            )
            return stored.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def _load(self) -> MatchingSettingsModel | None:
        stmt = (
            select(MatchingSettingsModel)
            .where(MatchingSettingsModel.singleton_key == SETTINGS_SINGLETON_KEY)
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()
