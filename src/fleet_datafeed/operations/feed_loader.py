# fleet_datafeed/operations/feed_loader.py
"""
Incremental feed loading.

DataFeedLoader pulls one page of every record kind per cycle with GetFeed,
resolves the id references inside each raw record through an EntityCache and
returns the typed records as a ResultBundle.

Feed Versions:
--------------
Each record kind has its own version token. The first call for a kind either
resumes from the configured token or, when there is none, asks for records
from the current time onward. Every response carries the version to use on
the next call; it is stored only after the page was fully converted, so a
failed cycle re-reads the same page on the next attempt.
"""

import logging
from abc import abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, NamedTuple, Protocol, runtime_checkable

from pydantic import BaseModel, ValidationError

from fleet_datafeed.client import GeotabClient
from fleet_datafeed.config import FeedConfig
from fleet_datafeed.models import (
    FaultData,
    FeedPage,
    LogRecord,
    ResultBundle,
    StatusData,
    Trip,
)
from fleet_datafeed.operations.entity_cache import EntityCache
from fleet_datafeed.schema import RecordKind

__all__: list[str] = ['FEEDS', 'DataFeedLoader', 'FeedLoader', 'FeedSpec']

logger: logging.Logger = logging.getLogger(__name__)


# =============================================================================
# Protocol Definition
# =============================================================================


@runtime_checkable
class FeedLoader(Protocol):
    """
    Interface the acquisition worker needs from a record source.

    Example:
        loader: FeedLoader = DataFeedLoader(client, feed_config)
        bundle = loader.load()
    """

    @abstractmethod
    def load(self) -> ResultBundle:
        """Fetch the next batch of every record kind."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release transport resources."""
        ...


# =============================================================================
# Feed Table
# =============================================================================


class FeedSpec(NamedTuple):
    """Remote type name and model of one record kind."""

    type_name: str
    model: type[BaseModel]


FEEDS: dict[RecordKind, FeedSpec] = {
    RecordKind.GPS: FeedSpec('LogRecord', LogRecord),
    RecordKind.STATUS: FeedSpec('StatusData', StatusData),
    RecordKind.FAULT: FeedSpec('FaultData', FaultData),
    RecordKind.TRIP: FeedSpec('Trip', Trip),
}


def _initial_versions(feed_config: FeedConfig) -> dict[RecordKind, str | None]:
    return {
        RecordKind.GPS: feed_config.gps_token,
        RecordKind.STATUS: feed_config.status_token,
        RecordKind.FAULT: feed_config.fault_token,
        RecordKind.TRIP: feed_config.trip_token,
    }


def _utc_now() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Loader
# =============================================================================


class DataFeedLoader:
    """
    Loads one ResultBundle per call from the remote feeds.

    Attributes:
        versions: Current feed version per record kind (read-only copy).
    """

    def __init__(
        self,
        client: GeotabClient,
        feed_config: FeedConfig,
        cache: EntityCache | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize the loader.

        Args:
            client: Client used for GetFeed and reference lookups.
            feed_config: Starting versions and page size.
            cache: Entity cache; a new one bound to client by default.
            clock: Source of the start time for kinds without a version.
        """
        self._client: GeotabClient = client
        self._results_limit: int = feed_config.results_limit
        self._cache: EntityCache = cache or EntityCache(client)
        self._clock: Callable[[], datetime] = clock or _utc_now
        self._versions: dict[RecordKind, str | None] = _initial_versions(feed_config)

        # Start time shared by all kinds that begin without a version
        self._start_time: datetime | None = None

    @property
    def versions(self) -> dict[RecordKind, str | None]:
        """Current version per record kind."""
        return dict(self._versions)

    def load(self) -> ResultBundle:
        """
        Fetch and resolve the next page of every record kind.

        Returns:
            ResultBundle with this cycle's records (possibly empty).

        Raises:
            APIError: If a remote call fails after retries.
        """
        records: dict[RecordKind, list[Any]] = {}

        for record_kind, feed in FEEDS.items():
            page: FeedPage = self._client.get_feed(
                feed.type_name,
                from_version=self._versions[record_kind],
                results_limit=self._results_limit,
                search=self._search_for(record_kind),
            )
            records[record_kind] = self._convert(record_kind, page.data)
            if page.to_version is not None:
                self._versions[record_kind] = page.to_version

        bundle = ResultBundle(
            gps_records=records[RecordKind.GPS],
            status_data=records[RecordKind.STATUS],
            fault_data=records[RecordKind.FAULT],
            trips=records[RecordKind.TRIP],
        )

        logger.info(
            'Feed cycle loaded %d records (gps=%d, status=%d, fault=%d, trips=%d)',
            bundle.record_count,
            len(bundle.gps_records),
            len(bundle.status_data),
            len(bundle.fault_data),
            len(bundle.trips),
        )
        return bundle

    def close(self) -> None:
        """Close the underlying client."""
        self._client.close()

    def _search_for(self, record_kind: RecordKind) -> dict[str, Any] | None:
        if self._versions[record_kind] is not None:
            return None

        if self._start_time is None:
            self._start_time = self._clock()
        return {'fromDate': self._start_time.isoformat().replace('+00:00', 'Z')}

    def _convert(
        self,
        record_kind: RecordKind,
        raw_records: list[dict[str, Any]],
    ) -> list[Any]:
        converted: list[Any] = []
        skipped: int = 0

        for raw in raw_records:
            resolved: dict[str, Any] | None = self._resolve_references(record_kind, raw)
            if resolved is None:
                skipped += 1
                continue
            try:
                converted.append(FEEDS[record_kind].model.model_validate(resolved))
            except ValidationError as error:
                skipped += 1
                logger.warning(
                    'Skipping invalid %s record %r: %s',
                    FEEDS[record_kind].type_name,
                    raw.get('id'),
                    error,
                )

        if skipped:
            logger.warning(
                'Skipped %d of %d %s records',
                skipped,
                len(raw_records),
                FEEDS[record_kind].type_name,
            )
        return converted

    def _resolve_references(
        self,
        record_kind: RecordKind,
        raw: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Replace id references with entities; None if the device is missing."""
        device = self._cache.device(raw.get('device'))
        if device is None:
            logger.warning(
                '%s record %r has no device', FEEDS[record_kind].type_name, raw.get('id')
            )
            return None

        resolved: dict[str, Any] = raw | {'device': device}

        match record_kind:
            case RecordKind.GPS:
                pass
            case RecordKind.STATUS:
                resolved['diagnostic'] = self._cache.diagnostic(raw.get('diagnostic'))
            case RecordKind.FAULT:
                resolved['diagnostic'] = self._cache.diagnostic(raw.get('diagnostic'))
                resolved['failureMode'] = self._cache.failure_mode(raw.get('failureMode'))
                resolved['controller'] = self._cache.controller(raw.get('controller'))
                resolved['dismissUser'] = self._cache.user(raw.get('dismissUser'))
            case RecordKind.TRIP:
                resolved['driver'] = self._cache.user(raw.get('driver'))

        return resolved
