"""
Explorer session: owns the current record sets and the load in flight.

Every pipeline call goes through an explicit session object instead of
module-level state. Only one load runs at a time; starting another cancels
the first and its result is ignored.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Any

from wigle_explorer.analysis_engine import AnalysisEngine, AnalysisSummary
from wigle_explorer.config import ExplorerConfig
from wigle_explorer.data_sources import QuerySource
from wigle_explorer.filters import filter_networks
from wigle_explorer.ingest import Ingestor, LoadJob, ProgressCallback
from wigle_explorer.models import (
    FilterCriteria, FilteredView, IngestResult, NetworkRecord, NetworkType,
    ObservationRecord, TimeRange
)
from wigle_explorer.spatial import build_heat_points, find_density_center
from wigle_explorer.timeline import cutoff_at, snapshot, timeline_info

logger = logging.getLogger(__name__)

LOAD_FAILED_MESSAGE = "Error loading database file. Please ensure it's a valid SQLite file."


class LoadStatus(Enum):
    """Lifecycle of the most recent load"""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ExplorerSession:
    """Current dataset plus everything derived from it on demand"""

    def __init__(self, config: Optional[ExplorerConfig] = None):
        self.config = config or ExplorerConfig()
        self.engine = AnalysisEngine(self.config)

        self._lock = threading.Lock()
        self._networks: List[NetworkRecord] = []
        self._observations: List[ObservationRecord] = []
        self._time_range = TimeRange()
        self._source_name: Optional[str] = None
        self._analysis: Optional[AnalysisSummary] = None
        # Bumped on every commit; guards the analysis cache
        self._generation = 0

        self._job: Optional[LoadJob] = None
        self.status = LoadStatus.IDLE
        self.last_error: Optional[str] = None

    # ----- state -----

    @property
    def networks(self) -> List[NetworkRecord]:
        return self._networks

    @property
    def observations(self) -> List[ObservationRecord]:
        return self._observations

    @property
    def time_range(self) -> TimeRange:
        return self._time_range

    @property
    def has_data(self) -> bool:
        return bool(self._networks)

    @property
    def progress(self) -> Tuple[float, str]:
        job = self._job
        if job is None:
            return 0.0, ""
        return job.progress.percentage, job.progress.message

    # ----- loading -----

    def start_load(self, source: QuerySource, on_progress: Optional[ProgressCallback] = None,
                   on_finished: Optional[Callable[[LoadStatus], None]] = None) -> LoadJob:
        """Load `source` in the background, cancelling any load in flight"""
        ingestor = Ingestor(self.config.chunk_size, self.config.max_observation_samples)

        def _progress(percentage: float, message: str):
            # A replaced job keeps running until its next chunk boundary
            if on_progress and job is self._job:
                on_progress(percentage, message)

        def _complete(job: LoadJob, result: IngestResult):
            status = self._commit(job, result)
            if status is LoadStatus.READY:
                job.progress.report(100, "Complete!")
            if status is not None and on_finished:
                on_finished(status)

        def _failed(job: LoadJob, error: Exception):
            status = self._fail(job, error)
            if status is not None and on_finished:
                on_finished(status)

        job = LoadJob(source, ingestor, on_progress=_progress, on_complete=_complete, on_error=_failed)
        with self._lock:
            previous = self._job
            if previous is not None and not previous.done:
                logger.info("Cancelling load in progress to start a new one")
                previous.cancel()
            self._job = job
            self.status = LoadStatus.LOADING
            self.last_error = None
        return job.start()

    def load(self, source: QuerySource, on_progress: Optional[ProgressCallback] = None) -> IngestResult:
        """
        Load `source` and wait for it.

        Raises:
            SourceError: the source failed; the previous dataset is kept
        """
        job = self.start_load(source, on_progress)
        job.wait()
        if job.error is not None:
            raise job.error
        return job.result

    def cancel_load(self) -> bool:
        """Cancel the load in flight; returns False when nothing was running"""
        job = self._job
        if job is None or job.done:
            return False
        job.cancel()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        job = self._job
        return True if job is None else job.wait(timeout)

    def _commit(self, job: LoadJob, result: IngestResult) -> Optional[LoadStatus]:
        with self._lock:
            if job is not self._job:
                return None
            if result.cancelled:
                logger.info("Load cancelled - keeping previous dataset")
                self.status = LoadStatus.CANCELLED
                return self.status
            self._networks = result.networks
            self._observations = result.observations
            self._time_range = result.time_range
            self._source_name = job.source.source_name
            self._analysis = None
            self._generation += 1
            self.status = LoadStatus.READY
        logger.info(f"Loaded {len(result.networks)} networks, {len(result.observations)} observations")
        return LoadStatus.READY

    def _fail(self, job: LoadJob, error: Exception) -> Optional[LoadStatus]:
        with self._lock:
            if job is not self._job:
                return None
            self.status = LoadStatus.FAILED
            self.last_error = LOAD_FAILED_MESSAGE
        logger.error(f"Error loading database: {error}")
        return LoadStatus.FAILED

    # ----- views -----

    def filtered_view(self, criteria: Optional[FilterCriteria] = None) -> FilteredView:
        matched = filter_networks(self._networks, criteria or FilterCriteria())
        return FilteredView(networks=matched[:self.config.max_markers], total_matches=len(matched))

    def heat_points(self, active_types: Optional[Iterable[str]] = None, intensity: float = 1.0) -> List[List[float]]:
        types = NetworkType.codes() if active_types is None else active_types
        return build_heat_points(
            self._networks, self._observations, types, self.config.max_heatmap_points, intensity
        )

    def focus_point(self) -> Optional[Tuple[float, float]]:
        """Initial map center: the densest grid cell of the networks"""
        return find_density_center(self._networks, self.config.grid_size_deg)

    def focus_on_network(self, bssid: str) -> Optional[NetworkRecord]:
        for network in self._networks:
            if network.bssid == bssid:
                return network
        return None

    def analysis(self) -> AnalysisSummary:
        """Summary of the current dataset, computed once per load"""
        with self._lock:
            if self._analysis is not None:
                return self._analysis
            generation = self._generation
            networks, observations, time_range = self._networks, self._observations, self._time_range

        summary = self.engine.analyze(networks, observations, time_range)

        with self._lock:
            if generation == self._generation:
                self._analysis = summary
            else:
                logger.debug("Dataset replaced during analysis - not caching the summary")
        return summary

    def timeline_snapshot(self, percent: float = 100.0,
                          active_types: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """Records seen up to `percent` of the time range, as heat points"""
        if self._time_range.is_empty:
            return {'available': False, 'cutoff': None, 'networks': 0, 'observations': 0, 'points': []}

        cutoff = cutoff_at(self._time_range, percent)
        networks, observations = snapshot(self._networks, self._observations, cutoff)
        types = NetworkType.codes() if active_types is None else active_types
        return {
            'available': True,
            'cutoff': cutoff,
            'networks': len(networks),
            'observations': len(observations),
            'points': build_heat_points(networks, observations, types, self.config.max_heatmap_points)
        }

    def stats(self) -> Dict[str, Any]:
        counts: Dict[str, int] = {}
        for network in self._networks:
            counts[network.type] = counts.get(network.type, 0) + 1
        return {
            'status': self.status.value,
            'source': self._source_name,
            'networks': len(self._networks),
            'observations': len(self._observations),
            'types': counts,
            'time_range': self._time_range.to_dict(),
            'timeline': timeline_info(self._time_range, len(self._networks))
        }
