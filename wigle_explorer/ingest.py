"""
Chunked, cancellable ingestion of query-source rows into typed records.

Two passes run in order: networks (always complete) and observations
(decimated by the sampler). Each pass converts rows in bounded chunks,
reports progress and yields the worker between chunks. Cancellation is
checked at the same chunk boundaries; a cancelled pass returns an empty
list while an already completed pass keeps its records.
"""

import logging
import threading
import time
from typing import Callable, Optional, Dict, Any, Iterator, Tuple

import pandas as pd

from wigle_explorer.data_sources import QuerySource, NETWORK_COLUMNS, OBSERVATION_COLUMNS
from wigle_explorer.models import (
    HIDDEN_SSID, NO_TIMESTAMP, NetworkRecord, ObservationRecord, IngestResult
)
from wigle_explorer.sampler import plan_sample
from wigle_explorer.timeline import compute_range

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]

DEFAULT_CHUNK_SIZE = 2000
DEFAULT_MAX_OBSERVATIONS = 30000
DEFAULT_LEVEL = -100

# Progress windows per pass (percent)
NETWORK_PROGRESS = (20.0, 30.0)
OBSERVATION_PROGRESS = (50.0, 30.0)


class ProgressReporter:
    """Forwards progress to a callback, never letting the percentage go backwards"""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.percentage = 0.0
        self.message = ""

    def report(self, percentage: float, message: str):
        percentage = min(100.0, max(self.percentage, float(percentage)))
        self.percentage = percentage
        self.message = message
        if self.callback:
            self.callback(percentage, message)

    __call__ = report


def _int_or(value: Any, default: Optional[int]) -> Optional[int]:
    try:
        return int(value) if pd.notna(value) else default
    except (TypeError, ValueError):
        return default


def _float_or(value: Any, default: float) -> float:
    try:
        return float(value) if pd.notna(value) else default
    except (TypeError, ValueError):
        return default


def _text_or(value: Any, default: str) -> str:
    if value is None or not pd.notna(value):
        return default
    text = str(value)
    return text if text else default


def network_from_row(row: Dict[str, Any]) -> NetworkRecord:
    """Convert a network row, substituting defaults for missing fields"""
    return NetworkRecord(
        type=_text_or(row.get('type'), ''),
        lat=_float_or(row.get('lat'), 0.0),
        lon=_float_or(row.get('lon'), 0.0),
        level=_int_or(row.get('level'), DEFAULT_LEVEL),
        ssid=_text_or(row.get('ssid'), HIDDEN_SSID),
        bssid=_text_or(row.get('bssid'), ''),
        last_seen=_int_or(row.get('last_seen'), NO_TIMESTAMP),
        frequency=_int_or(row.get('frequency'), None),
        capabilities=_text_or(row.get('capabilities'), '')
    )


def observation_from_row(row: Dict[str, Any]) -> ObservationRecord:
    """Convert an observation row, substituting defaults for missing fields"""
    return ObservationRecord(
        lat=_float_or(row.get('lat'), 0.0),
        lon=_float_or(row.get('lon'), 0.0),
        level=_int_or(row.get('level'), DEFAULT_LEVEL),
        type=_text_or(row.get('type'), ''),
        time=_int_or(row.get('time'), NO_TIMESTAMP)
    )


def iter_chunks(df: pd.DataFrame, transform: Callable[[Dict[str, Any]], Any],
                chunk_size: int) -> Iterator[list]:
    """Yield transformed records in lists of at most `chunk_size`"""
    for start in range(0, len(df), chunk_size):
        chunk = df.iloc[start:start + chunk_size]
        yield [transform(row) for row in chunk.to_dict('records')]


class Ingestor:
    """
    Pulls both record streams from a query source.

    Args:
        chunk_size: rows converted between two suspension points
        max_observations: ceiling for the observation pass before sampling kicks in
        yield_interval: seconds the worker sleeps at each chunk boundary
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE,
                 max_observations: int = DEFAULT_MAX_OBSERVATIONS,
                 yield_interval: float = 0.0):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size
        self.max_observations = max_observations
        self.yield_interval = yield_interval

    def _pause(self):
        time.sleep(self.yield_interval)

    def _run_pass(self, df: pd.DataFrame, transform, label: str, window: Tuple[float, float],
                  cancel_event: threading.Event, progress: ProgressReporter) -> Tuple[list, bool]:
        """Convert one stream. Returns (records, cancelled)."""
        start_pct, span = window
        total = len(df)
        records: list = []

        if cancel_event.is_set():
            return [], True

        for chunk in iter_chunks(df, transform, self.chunk_size):
            records.extend(chunk)
            progress.report(start_pct + span * len(records) / total, f"Processing {len(records)} {label}...")
            self._pause()
            if cancel_event.is_set() and len(records) < total:
                logger.info(f"Cancelled {label} pass after {len(records)} of {total} rows")
                return [], True

        return records, False

    def run(self, source: QuerySource, cancel_event: Optional[threading.Event] = None,
            on_progress: Optional[ProgressCallback] = None) -> IngestResult:
        """
        Ingest networks and observations from `source`.

        Raises:
            SourceError: the source could not be opened or queried
        """
        cancel_event = cancel_event or threading.Event()
        progress = on_progress if isinstance(on_progress, ProgressReporter) else ProgressReporter(on_progress)
        result = IngestResult()

        try:
            if cancel_event.is_set():
                result.cancelled = True
                return result

            progress.report(NETWORK_PROGRESS[0], "Loading networks...")
            network_df = source.fetch_networks().reindex(columns=NETWORK_COLUMNS)
            networks, cancelled = self._run_pass(
                network_df, network_from_row, 'networks', NETWORK_PROGRESS, cancel_event, progress
            )
            result.networks = networks
            if cancelled or cancel_event.is_set():
                result.cancelled = True
                return result

            progress.report(OBSERVATION_PROGRESS[0], "Loading observations...")
            plan = plan_sample(source.count_observations(), self.max_observations)
            result.sample_plan = plan
            observation_df = source.fetch_observations(
                stride=plan.stride, limit=plan.limit if plan.is_sampled else None
            ).reindex(columns=OBSERVATION_COLUMNS)
            observations, cancelled = self._run_pass(
                observation_df, observation_from_row, 'observations', OBSERVATION_PROGRESS,
                cancel_event, progress
            )
            result.observations = observations
            if cancelled:
                result.cancelled = True
                return result

        except Exception as e:
            logger.error(f"Error ingesting from {source!r}: {e}")
            raise

        progress.report(OBSERVATION_PROGRESS[0] + OBSERVATION_PROGRESS[1], "Calculating time range...")
        result.time_range = compute_range(result.networks, result.observations)

        logger.info(
            f"Ingested {len(result.networks)} networks and {len(result.observations)} observations "
            f"from {source.source_name}"
        )
        return result


def ingest(source: QuerySource, cancel_event: Optional[threading.Event] = None,
           on_progress: Optional[ProgressCallback] = None,
           chunk_size: int = DEFAULT_CHUNK_SIZE,
           max_observations: int = DEFAULT_MAX_OBSERVATIONS) -> IngestResult:
    """Convenience wrapper around Ingestor.run"""
    return Ingestor(chunk_size, max_observations).run(source, cancel_event, on_progress)


class LoadJob:
    """
    Runs one ingestion on a background thread.

    Callbacks receive the job itself first so a caller can ignore results of
    a job it has already replaced.
    """

    def __init__(self, source: QuerySource, ingestor: Optional[Ingestor] = None,
                 on_progress: Optional[ProgressCallback] = None,
                 on_complete: Optional[Callable[['LoadJob', IngestResult], None]] = None,
                 on_error: Optional[Callable[['LoadJob', Exception], None]] = None,
                 close_source: bool = True):
        self.source = source
        self.ingestor = ingestor or Ingestor()
        self.progress = ProgressReporter(on_progress)
        self.on_complete = on_complete
        self.on_error = on_error
        self.close_source = close_source

        self.cancel_event = threading.Event()
        self.result: Optional[IngestResult] = None
        self.error: Optional[Exception] = None
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def start(self) -> 'LoadJob':
        logger.info(f"Starting load from {self.source.source_name}")
        self._thread = threading.Thread(target=self._run, name="wigle-load", daemon=True)
        self._thread.start()
        return self

    def cancel(self):
        """Request cancellation; honored at the next chunk boundary"""
        self.cancel_event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)

    def _run(self):
        try:
            try:
                result = self.ingestor.run(self.source, self.cancel_event, self.progress)
            except Exception as e:
                self.error = e
                if self.on_error:
                    self.on_error(self, e)
            else:
                self.result = result
                if self.on_complete:
                    self.on_complete(self, result)
        finally:
            if self.close_source:
                self.source.close()
            self._done.set()
