"""
Scan orchestration.

ScanOrchestrator runs one scan end to end:

    IDLE -> LOADING_TAXONOMY -> LOADING_CACHE -> WALKING -> AGGREGATING
         -> PERSISTING_CACHE -> DONE

with FAILED reachable when the taxonomy cannot be loaded (the only fatal
error) and CANCELLED when the scan's token is cancelled. Every other problem
is recorded as a warning on the response.

The directory walk runs on the calling thread and feeds batches of files to
a thread pool; each worker consults the cache and only runs the matcher on a
miss. The number of batches in flight is bounded so a huge library never
queues more than a few batches ahead of the workers.

ScanService wraps the orchestrator for callers that may start a new scan
before the previous one has finished: starting a scan cancels the one in
flight, whose future then fails with ScanCancelled.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, as_completed, wait
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from bird_atlas.cache import Cache, CacheKey, load_cache, save_cache
from bird_atlas.config import Config
from bird_atlas.exceptions import CachePersistError, ScanCancelled, TaxonomyLoadError
from bird_atlas.models.enums import ScanState
from bird_atlas.models.scan import (
    CancellationToken,
    DiscoveredFile,
    MatchResult,
    ScanRequest,
    ScanResponse,
    ScanWarnings,
)
from bird_atlas.scanner.matcher import SpeciesMatcher
from bird_atlas.scanner.walker import FileWalker
from bird_atlas.taxonomy.loader import load_taxonomy
from bird_atlas.taxonomy.table import TaxonomyTable
from bird_atlas.tree import TreeBuilder

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

# (file, result, served from cache)
_Resolved = Tuple[DiscoveredFile, MatchResult, bool]

# Batches allowed in flight per worker before the walk waits
_BATCHES_PER_WORKER = 2


class ScanOrchestrator:
    """
    Runs a single scan. Create a new instance per scan.

    Attributes:
        state: Current ScanState
        warnings: Non-fatal problems collected so far
        processed: Files resolved so far
        cache_hits: Files whose result was served from the cache
    """

    def __init__(
        self,
        request: ScanRequest,
        config: Optional[Config] = None,
        cancel_token: Optional[CancellationToken] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.request = request
        self.config = config or Config()
        self.cancel_token = cancel_token or CancellationToken()
        self.progress_callback = progress_callback

        self.state = ScanState.IDLE
        self.warnings = ScanWarnings()
        self.processed = 0
        self.cache_hits = 0

    def run(self) -> ScanResponse:
        """
        Execute the scan.

        Returns:
            ScanResponse with the tree, stats and warnings.

        Raises:
            ValueError: If the request names no roots.
            TaxonomyLoadError: If the taxonomy source cannot be used.
            ScanCancelled: If the scan was cancelled before completing.
        """
        if not self.request.roots:
            raise ValueError("A scan needs at least one root directory")
        if self.state is not ScanState.IDLE:
            raise RuntimeError("ScanOrchestrator instances run once; create a new one per scan")

        started = time.monotonic()
        try:
            self._check_cancelled()

            self._set_state(ScanState.LOADING_TAXONOMY)
            table = load_taxonomy(self.request.taxonomy_path, self.config.taxonomy)
            self.warnings.extend(table.warnings)
            self._check_cancelled()

            self._set_state(ScanState.LOADING_CACHE)
            cache = load_cache(self.request.cache_path, table.fingerprint, self.warnings)
            self._check_cancelled()

            self._set_state(ScanState.WALKING)
            resolved = self._walk_and_match(table, cache)
            self._check_cancelled()

            self._set_state(ScanState.AGGREGATING)
            builder = TreeBuilder(table, self.warnings)
            for file, result, _ in resolved:
                builder.add(file, result)
            tree, stats, unmatched = builder.build()
            self._check_cancelled()

            self._set_state(ScanState.PERSISTING_CACHE)
            self._persist(cache, {str(file.path) for file, _, _ in resolved})

        except ScanCancelled:
            self._set_state(ScanState.CANCELLED)
            logger.info("Scan cancelled after %d files", self.processed)
            raise
        except TaxonomyLoadError as e:
            self._set_state(ScanState.FAILED)
            logger.error("Scan failed: %s", e)
            raise
        except Exception:
            self._set_state(ScanState.FAILED)
            raise

        duration = time.monotonic() - started
        self._set_state(ScanState.DONE)

        logger.info(
            "Scan complete: %d files, %d matched, %d unmatched, %d of %d species, "
            "%d cache hits, %.2f seconds",
            stats.total_files, stats.matched_files, stats.unmatched_files,
            tree.species_count, table.size, self.cache_hits, duration,
        )

        return ScanResponse(
            tree=tree,
            stats=stats,
            total_species=table.size,
            warnings=self.warnings.messages,
            unmatched=unmatched,
            duration_seconds=duration,
        )

    def _set_state(self, state: ScanState) -> None:
        logger.debug("Scan state %s -> %s", self.state.name, state.name)
        self.state = state

    def _check_cancelled(self) -> None:
        if self.cancel_token.cancelled:
            raise ScanCancelled("Scan was cancelled")

    def _walk_and_match(self, table: TaxonomyTable, cache: Cache) -> List[_Resolved]:
        scanning = self.config.scanning
        walker = FileWalker(
            self.config.extensions,
            follow_symlinks=scanning.follow_symlinks,
            include_hidden=scanning.include_hidden,
            warnings=self.warnings,
            cancel_token=self.cancel_token,
        )
        matcher = SpeciesMatcher(
            table,
            noise_tokens=self.config.matching.noise_tokens,
            min_keyword_length=self.config.matching.min_keyword_length,
        )
        files = walker.walk(self.request.roots)

        if scanning.max_workers <= 1:
            resolved = []
            for file in files:
                self._check_cancelled()
                item = self._resolve(file, table, matcher, cache)
                resolved.append(item)
                self._advance([item])
        else:
            resolved = self._match_in_pool(files, table, matcher, cache)

        logger.info(
            "Walked %d directories (%d skipped), resolved %d files",
            walker.directories_visited, walker.directories_skipped, len(resolved),
        )
        return resolved

    def _match_in_pool(
        self,
        files: Iterable[DiscoveredFile],
        table: TaxonomyTable,
        matcher: SpeciesMatcher,
        cache: Cache,
    ) -> List[_Resolved]:
        scanning = self.config.scanning
        batch_size = max(1, scanning.batch_size)
        max_in_flight = scanning.max_workers * _BATCHES_PER_WORKER

        resolved: List[_Resolved] = []
        pending: Set[Future] = set()

        def collect(done: Iterable[Future]) -> None:
            for future in done:
                results = future.result()
                resolved.extend(results)
                self._advance(results)

        executor = ThreadPoolExecutor(
            max_workers=scanning.max_workers, thread_name_prefix="bird-atlas-match"
        )
        try:
            batch: List[DiscoveredFile] = []
            for file in files:
                batch.append(file)
                if len(batch) < batch_size:
                    continue
                pending.add(executor.submit(self._resolve_batch, batch, table, matcher, cache))
                batch = []
                if len(pending) >= max_in_flight:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    collect(done)

            if batch:
                pending.add(executor.submit(self._resolve_batch, batch, table, matcher, cache))

            collect(as_completed(pending))
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        return resolved

    def _resolve_batch(
        self,
        batch: Sequence[DiscoveredFile],
        table: TaxonomyTable,
        matcher: SpeciesMatcher,
        cache: Cache,
    ) -> List[_Resolved]:
        results = []
        for file in batch:
            self._check_cancelled()
            results.append(self._resolve(file, table, matcher, cache))
        return results

    def _resolve(
        self,
        file: DiscoveredFile,
        table: TaxonomyTable,
        matcher: SpeciesMatcher,
        cache: Cache,
    ) -> _Resolved:
        key = CacheKey.for_file(file)
        if key is None:
            # Unreadable files count as unmatched and are never cached
            return file, MatchResult.unmatched(), False

        cached = cache.lookup(key)
        if cached is not None and (not cached.is_matched or cached.latin_name in table):
            return file, cached, True

        result = matcher.match(file)
        cache.put(key, result)
        return file, result, False

    def _advance(self, items: Sequence[_Resolved]) -> None:
        self.processed += len(items)
        self.cache_hits += sum(1 for _, _, hit in items if hit)
        if self.progress_callback is not None:
            self.progress_callback(self.processed)

    def _persist(self, cache: Cache, seen_paths: Set[str]) -> None:
        if self.config.cache.prune_missing:
            cache.prune(seen_paths, self.request.roots)
        try:
            save_cache(cache, self.request.cache_path)
        except CachePersistError as e:
            message = f"Match cache not saved, the next scan will re-match every file: {e}"
            logger.warning(message)
            self.warnings.add(message)


class ScanService:
    """
    Serializes scans so at most one runs at a time.

    Starting a scan cancels the one in flight. The cancelled scan stops at
    the next file boundary, skips its cache write, and its future fails with
    ScanCancelled, so only the newest scan ever delivers a result.

    Example:
        >>> with ScanService(config) as service:
        ...     future = service.start(request)
        ...     response = future.result()
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bird-atlas-scan")
        self._lock = threading.Lock()
        self._current_token: Optional[CancellationToken] = None
        self._current_future: Optional[Future] = None

    def start(
        self,
        request: ScanRequest,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Future:
        """Queue a scan, cancelling any scan still in flight."""
        if not request.roots:
            raise ValueError("A scan needs at least one root directory")

        token = CancellationToken()
        with self._lock:
            self._cancel_locked()
            future = self._executor.submit(self._run, request, token, progress_callback)
            self._current_token = token
            self._current_future = future
        return future

    def scan(
        self,
        request: ScanRequest,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ScanResponse:
        """Run a scan and wait for its response."""
        return self.start(request, progress_callback).result()

    def cancel(self) -> bool:
        """Cancel the scan in flight. Returns True if there was one."""
        with self._lock:
            return self._cancel_locked()

    def shutdown(self) -> None:
        with self._lock:
            self._cancel_locked()
        self._executor.shutdown(wait=True)

    def _cancel_locked(self) -> bool:
        if self._current_future is None or self._current_future.done():
            return False
        logger.info("Cancelling in-flight scan")
        self._current_token.cancel()
        return True

    def _run(
        self,
        request: ScanRequest,
        token: CancellationToken,
        progress_callback: Optional[ProgressCallback],
    ) -> ScanResponse:
        orchestrator = ScanOrchestrator(request, self.config, token, progress_callback)
        response = orchestrator.run()
        # A scan cancelled after its last checkpoint still must not deliver
        if token.cancelled:
            raise ScanCancelled("Scan was superseded by a newer request")
        return response

    def __enter__(self) -> "ScanService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()


def run_scan(
    roots: Sequence[Path],
    taxonomy_path: Path,
    cache_path: Optional[Path] = None,
    config: Optional[Config] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> ScanResponse:
    """
    Run one scan synchronously.

    Args:
        roots: Directories to scan
        taxonomy_path: Taxonomy source document
        cache_path: Match cache location, defaults to config.cache.path
        config: Settings, defaults to built-in values
        progress_callback: Called with the running count of resolved files

    Returns:
        ScanResponse for the scan.
    """
    config = config or Config()
    request = ScanRequest(
        roots=roots,
        taxonomy_path=taxonomy_path,
        cache_path=cache_path or Path(config.cache.path).expanduser(),
    )
    return ScanOrchestrator(request, config, progress_callback=progress_callback).run()
