"""Per-provider call quota tracking."""

import logging
import sys
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from pydantic import TypeAdapter, ValidationError

from nutrition_aggregator.domain.nutrition import ProviderUsage
from nutrition_aggregator.domain.storage import QuotaRecord
from nutrition_aggregator.services.storage import KVStore

NO_PROVIDER = "none"

_QUOTA_PREFIX = "quota:"

_record_adapter = TypeAdapter(QuotaRecord)

_logger = logging.getLogger(__name__)


@dataclass
class QuotaTracker:
    """Advisory daily/monthly call counters for each provider.

    Counters roll over lazily: every public method first compares the stored
    ``last_reset_date`` with today and resets the daily (and, on a new month,
    the monthly) counter before answering. The tracker never blocks a call;
    callers consult ``can_make_call`` and report successful calls through
    ``track_call``.
    """

    store: KVStore
    quotas: Mapping[str, int | None]
    priorities: Mapping[str, int] = field(default_factory=dict)
    today: Callable[[], date] = date.today

    def __post_init__(self) -> None:
        self._lock = threading.RLock()
        self._records: dict[str, QuotaRecord] = {
            name: self._load(name, quota) for name, quota in self.quotas.items()
        }

    def track_call(self, provider: str) -> None:
        """Record one successful call against a provider."""
        with self._lock:
            record = self._current(provider)
            if record is None:
                _logger.warning("Tracking call for unknown provider %s", provider)
                return
            record.calls_today += 1
            record.calls_this_month += 1
            self._save(provider, record)

    def can_make_call(self, provider: str) -> bool:
        """Return True while the provider is under its daily quota."""
        with self._lock:
            record = self._current(provider)
            if record is None:
                return False
            return record.quota is None or record.calls_today < record.quota

    def remaining(self, provider: str) -> int | None:
        """Return calls left today, ``None`` when the quota is unlimited."""
        with self._lock:
            record = self._current(provider)
            if record is None:
                return 0
            if record.quota is None:
                return None
            return max(0, record.quota - record.calls_today)

    def reset_daily(self) -> None:
        """Zero every daily counter."""
        today = self.today().isoformat()
        with self._lock:
            for name in self._records:
                # Apply any pending month rollover before stamping today.
                record = self._current(name)
                if record is None:
                    continue
                record.calls_today = 0
                record.last_reset_date = today
                self._save(name, record)

    def reset_monthly(self) -> None:
        """Zero every monthly counter."""
        with self._lock:
            for name, record in self._records.items():
                record.calls_this_month = 0
                self._save(name, record)

    def usage_stats(self) -> dict[str, ProviderUsage]:
        """Return usage for every known provider."""
        with self._lock:
            usage: dict[str, ProviderUsage] = {}
            for name in self._records:
                record = self._current(name)
                if record is None:
                    continue
                usage[name] = ProviderUsage(
                    calls_today=record.calls_today,
                    calls_this_month=record.calls_this_month,
                    quota=record.quota,
                    remaining=self.remaining(name),
                )
            return usage

    def best_available_provider(self) -> str:
        """Return the admitted provider with the lowest priority number."""
        admitted = [name for name in self._records if self.can_make_call(name)]
        if not admitted:
            return NO_PROVIDER
        return min(admitted, key=lambda name: self.priorities.get(name, sys.maxsize))

    def has_available_provider(self) -> bool:
        """Return True if any provider is currently admitted."""
        return any(self.can_make_call(name) for name in self._records)

    def utilization(self, provider: str) -> float:
        """Return today's usage as a percentage of the quota."""
        with self._lock:
            record = self._current(provider)
            if record is None or record.quota is None or record.quota == 0:
                return 0.0
            return record.calls_today / record.quota * 100

    def next_reset_time(self) -> datetime:
        """Return the next local midnight, when daily counters roll over."""
        return datetime.combine(self.today() + timedelta(days=1), time.min)

    def clear(self) -> None:
        """Drop persisted records and start every provider from zero."""
        with self._lock:
            for name, quota in self.quotas.items():
                self.store.delete(_QUOTA_PREFIX + name)
                self._records[name] = QuotaRecord(quota=quota)

    def _current(self, provider: str) -> QuotaRecord | None:
        record = self._records.get(provider)
        if record is None:
            return None
        today = self.today()
        if record.last_reset_date != today.isoformat():
            if record.last_reset_date[:7] != today.isoformat()[:7]:
                record.calls_this_month = 0
            record.calls_today = 0
            record.last_reset_date = today.isoformat()
            self._save(provider, record)
        return record

    def _load(self, provider: str, quota: int | None) -> QuotaRecord:
        raw = self.store.get(_QUOTA_PREFIX + provider)
        if raw is None:
            return QuotaRecord(quota=quota)
        try:
            record = _record_adapter.validate_json(raw)
        except (ValidationError, ValueError) as exc:
            _logger.warning("Resetting corrupt quota record for %s: %s", provider, exc)
            self.store.delete(_QUOTA_PREFIX + provider)
            return QuotaRecord(quota=quota)
        # Configured quota wins over the persisted one.
        record.quota = quota
        return record

    def _save(self, provider: str, record: QuotaRecord) -> None:
        self.store.set(
            _QUOTA_PREFIX + provider, _record_adapter.dump_json(record).decode()
        )
