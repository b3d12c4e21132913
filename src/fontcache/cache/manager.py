"""Cache Manager
=============

High-level interface for caching font families: from the remote catalog or
from a local folder, plus lookup, deletion and CSS export.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path

from fontcache.catalog.downloader import VariantDownloader
from fontcache.catalog.fetcher import CatalogRequest, StylesheetFetcher
from fontcache.catalog.http import HttpClient
from fontcache.catalog.parser import StylesheetParser
from fontcache.core.config import FontCacheConfig
from fontcache.core.exceptions import (
    AllVariantsFailedError,
    FilesystemError,
    FontCacheError,
    FontNotCachedError,
    InFlightConflictError,
    NetworkError,
    NoFontFilesError,
    NoVariantsFoundError,
)
from fontcache.core.models import (
    FORMAT_PREFERENCE,
    DiscoveryResult,
    FileEntry,
    FontFormat,
    FontRecord,
    FontStyle,
    VariantDescriptor,
)
from fontcache.local.scanner import LocalFontScanner
from fontcache.storage.filesystem import FileStorage, LocalFileStorage
from fontcache.storage.folders import FolderOrganizer
from fontcache.storage.paths import PathResolver, sanitize_family_name

from .fontface import render_font_face
from .registry import Registry
from .results import (
    OutcomeStatus,
    ProgressCallback,
    VariantFailure,
    VariantWritten,
    WorkflowOutcome,
    WorkflowStage,
)

logger = logging.getLogger(__name__)

# (descriptor, source) -> file bytes
VariantLoader = Callable[[VariantDescriptor, str], bytes]


def _completed(outcome: WorkflowOutcome) -> "Future[WorkflowOutcome]":
    future: Future[WorkflowOutcome] = Future()
    future.set_result(outcome)
    return future


def _file_order(entry: FileEntry) -> tuple:
    return (entry.weight, entry.style.value, entry.format.preference)


class CacheManager:
    """High-level interface for the font cache.

    Features:
    - Catalog and local-folder caching with partial-success reporting
    - Parallel variant transfers with retry on transient network failures
    - Per-family in-flight guard against duplicate concurrent workflows
    - Lookup across the current and legacy on-disk layouts
    """

    def __init__(
        self,
        config: FontCacheConfig | None = None,
        storage: FileStorage | None = None,
        http: HttpClient | None = None,
        fetcher: StylesheetFetcher | None = None,
        parser: StylesheetParser | None = None,
        downloader: VariantDownloader | None = None,
        scanner: LocalFontScanner | None = None,
        registry: Registry | None = None,
    ):
        self.config = config or FontCacheConfig()
        self.storage = storage or LocalFileStorage()

        # Initialize components
        self.http = http or HttpClient(self.config)
        self.fetcher = fetcher or StylesheetFetcher(self.config, self.http)
        self.parser = parser or StylesheetParser()
        self.downloader = downloader or VariantDownloader(self.config, self.http)
        self.scanner = scanner or LocalFontScanner(self.storage)
        self.paths = PathResolver(self.config.cache_root, self.storage)
        self.folders = FolderOrganizer(self.storage)
        self.registry = registry or Registry(self.config.resolved_registry_path, self.storage)

        self._in_flight: set[str] = set()
        self._in_flight_lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

        self.registry.load()
        logger.info(f"CacheManager initialized with cache root: {self.config.cache_root}")

    # ------------------------------------------------------------------
    # Lifecycle

    def close(self) -> None:
        """Wait for submitted workflows and release the HTTP session."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
        self.http.close()

    def __enter__(self) -> "CacheManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.config.max_parallel_downloads,
                    thread_name_prefix="fontcache",
                )
            return self._executor

    # ------------------------------------------------------------------
    # In-flight guard

    @staticmethod
    def _marker(family: str) -> str:
        return sanitize_family_name(family)

    @staticmethod
    def _folder_marker(folder: Path) -> str:
        # absolute() does not touch the filesystem
        return f"folder:{Path(folder).absolute()}"

    def _take(self, marker: str) -> bool:
        with self._in_flight_lock:
            if marker in self._in_flight:
                return False
            self._in_flight.add(marker)
            return True

    def _drop(self, marker: str) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(marker)

    def _acquire(self, family: str) -> bool:
        return self._take(self._marker(family))

    def _release(self, family: str) -> None:
        self._drop(self._marker(family))

    def is_in_flight(self, family: str) -> bool:
        with self._in_flight_lock:
            return self._marker(family) in self._in_flight

    @staticmethod
    def _conflict(workflow: str, family: str, stage: WorkflowStage) -> WorkflowOutcome:
        logger.warning(f"Rejected {workflow} for {family}: already in progress")
        return WorkflowOutcome.failure(workflow, family, stage, InFlightConflictError(family))

    # ------------------------------------------------------------------
    # Retry

    def _with_retries(self, operation: Callable[[], bytes | str], description: str):
        """Run `operation`, retrying transient network failures with backoff."""
        for attempt in range(self.config.download_retries + 1):
            try:
                return operation()
            except NetworkError as e:
                if not e.is_transient or attempt == self.config.download_retries:
                    raise
                delay = self.config.retry_backoff_seconds * 2**attempt
                logger.warning(
                    f"{description} attempt {attempt + 1} failed: {e}; retrying in {delay:.1f}s"
                )
                time.sleep(delay)
        return None

    # ------------------------------------------------------------------
    # Catalog workflow

    def cache_from_catalog(
        self,
        reference: str,
        weights: Iterable[int] | None = None,
        styles: Iterable[FontStyle | str] | None = None,
        display_name: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> WorkflowOutcome:
        """Cache a family from the remote catalog.

        Args:
            reference: Family name, specimen URL or stylesheet URL
            weights: Weights to request (defaults to config.default_weights)
            styles: Styles to request (defaults to config.default_styles)
            display_name: User-facing name; kept from the existing record when omitted
            progress: Optional per-variant progress callback

        Returns:
            WorkflowOutcome describing what was cached
        """
        workflow = "cache_from_catalog"
        try:
            request = self.fetcher.resolve(reference, weights, styles)
        except (FontCacheError, ValueError) as e:
            logger.warning(f"Cannot resolve font reference {reference!r}: {e}")
            return self._finish(
                WorkflowOutcome.failure(workflow, reference, WorkflowStage.RESOLVING, e), progress
            )

        if not self._acquire(request.family):
            return self._finish(
                self._conflict(workflow, request.family, WorkflowStage.RESOLVING), progress
            )
        return self._run_catalog(request, display_name, progress)

    def submit_cache_from_catalog(
        self,
        reference: str,
        weights: Iterable[int] | None = None,
        styles: Iterable[FontStyle | str] | None = None,
        display_name: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> "Future[WorkflowOutcome]":
        """Schedule `cache_from_catalog`; duplicates are rejected before scheduling."""
        workflow = "cache_from_catalog"
        try:
            request = self.fetcher.resolve(reference, weights, styles)
        except (FontCacheError, ValueError) as e:
            return _completed(
                WorkflowOutcome.failure(workflow, reference, WorkflowStage.RESOLVING, e)
            )

        if not self._acquire(request.family):
            return _completed(self._conflict(workflow, request.family, WorkflowStage.RESOLVING))
        try:
            return self._get_executor().submit(
                self._run_catalog, request, display_name, progress
            )
        except RuntimeError:
            self._release(request.family)
            raise

    def _run_catalog(
        self,
        request: CatalogRequest,
        display_name: str | None,
        progress: ProgressCallback | None,
    ) -> WorkflowOutcome:
        """Catalog workflow body; the caller holds the in-flight marker."""
        workflow = "cache_from_catalog"
        family = request.family
        stage = WorkflowStage.FETCHING
        try:
            logger.info(f"Caching {family} from catalog")
            text = self._with_retries(
                lambda: self.fetcher.fetch(request), f"Fetching stylesheet for {family}"
            )

            stage = WorkflowStage.PARSING
            parsed = self.parser.parse(text, base_url=request.url)
            jobs: dict[tuple, tuple[VariantDescriptor, str]] = {}
            for descriptor, source in parsed:
                rehomed = VariantDescriptor(
                    family, descriptor.weight, descriptor.style, descriptor.format
                )
                jobs.setdefault(rehomed.key, (rehomed, source))
            if not jobs:
                raise NoVariantsFoundError(family)
            logger.info(f"Found {len(jobs)} variants for {family}")

            outcome = self._store_variants(
                workflow,
                family,
                list(jobs.values()),
                self._download_variant,
                WorkflowStage.DOWNLOADING,
                display_name=display_name,
                source_url=request.url,
                progress=progress,
            )
        except FontCacheError as e:
            logger.warning(f"Caching {family} failed while {stage.value}: {e}")
            outcome = WorkflowOutcome.failure(workflow, family, stage, e)
        except Exception:
            logger.exception(f"Unexpected error caching {family}")
            raise
        finally:
            self._release(family)

        return self._finish(outcome, progress)

    def _download_variant(self, descriptor: VariantDescriptor, source: str) -> bytes:
        return self._with_retries(
            lambda: self.downloader.download(source), f"Downloading {descriptor}"
        )

    # ------------------------------------------------------------------
    # Local workflow

    def cache_from_local_folder(
        self,
        folder: Path | str,
        family: str | None = None,
        display_name: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> WorkflowOutcome:
        """Cache the font files of a local folder.

        The folder itself is marked in flight before anything is read; the
        family marker follows once the name is known (inferred from the file
        names when `family` is omitted).
        """
        workflow = "cache_from_local_folder"
        folder = Path(folder)
        folder_marker = self._folder_marker(folder)

        if not self._take(folder_marker):
            return self._finish(
                self._conflict(workflow, family or folder.name, WorkflowStage.SCANNING),
                progress,
            )
        try:
            if family is None:
                try:
                    family = self.scanner.infer_family(folder)
                except FontCacheError as e:
                    logger.warning(f"Cannot scan {folder}: {e}")
                    return self._finish(
                        WorkflowOutcome.failure(
                            workflow, folder.name, WorkflowStage.SCANNING, e
                        ),
                        progress,
                    )

            if not self._acquire(family):
                return self._finish(
                    self._conflict(workflow, family, WorkflowStage.SCANNING), progress
                )
            return self._run_local(folder, family, display_name, progress)
        finally:
            self._drop(folder_marker)

    def _run_local(
        self,
        folder: Path,
        family: str,
        display_name: str | None,
        progress: ProgressCallback | None,
    ) -> WorkflowOutcome:
        """Local workflow body; the caller holds the family marker."""
        workflow = "cache_from_local_folder"
        stage = WorkflowStage.SCANNING
        try:
            logger.info(f"Caching {family} from {folder}")
            scan = self.scanner.scan(folder, family=family)
            if scan.is_empty:
                raise NoFontFilesError(str(folder))

            jobs = [(descriptor, str(path)) for descriptor, path in scan.variants]
            outcome = self._store_variants(
                workflow,
                family,
                jobs,
                lambda _descriptor, source: self.storage.read_file(Path(source)),
                WorkflowStage.COPYING,
                display_name=display_name,
                source_url=None,
                progress=progress,
            )
        except FontCacheError as e:
            logger.warning(f"Caching {family} from {folder} failed while {stage.value}: {e}")
            outcome = WorkflowOutcome.failure(workflow, family, stage, e)
        except Exception:
            logger.exception(f"Unexpected error caching {family} from {folder}")
            raise
        finally:
            self._release(family)

        return self._finish(outcome, progress)

    def submit_cache_from_local_folder(
        self,
        folder: Path | str,
        family: str | None = None,
        display_name: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> "Future[WorkflowOutcome]":
        """Schedule `cache_from_local_folder` on the manager's executor."""
        return self._get_executor().submit(
            self.cache_from_local_folder, folder, family, display_name, progress
        )

    # ------------------------------------------------------------------
    # Shared transfer + commit

    def _store_variants(
        self,
        workflow: str,
        family: str,
        jobs: list[tuple[VariantDescriptor, str]],
        load: VariantLoader,
        transfer_stage: WorkflowStage,
        display_name: str | None,
        source_url: str | None,
        progress: ProgressCallback | None,
    ) -> WorkflowOutcome:
        """Ensure the folder, transfer every variant, then commit what was written."""
        stage = WorkflowStage.ENSURING_FOLDER
        try:
            self.folders.ensure_folder(self.paths.family_folder(family))

            stage = transfer_stage
            results = self._transfer(family, jobs, load, progress)
            written = [r.entry for r in results if isinstance(r, VariantWritten)]
            failed = [r for r in results if isinstance(r, VariantFailure)]

            if not written:
                error = AllVariantsFailedError(family, failed)
                logger.warning(f"All {len(failed)} variants of {family} failed")
                return WorkflowOutcome(
                    workflow, family, OutcomeStatus.FAILED, stage, error=error, failed=failed
                )

            stage = WorkflowStage.PERSISTING
            record = self._commit(family, written, display_name, source_url)
        except FontCacheError as e:
            logger.warning(f"Caching {family} failed while {stage.value}: {e}")
            return WorkflowOutcome.failure(workflow, family, stage, e)

        status = OutcomeStatus.PARTIAL if failed else OutcomeStatus.SUCCEEDED
        logger.info(
            f"Cached {len(written)} of {len(jobs)} variants for {family} ({status.value})"
        )
        return WorkflowOutcome(
            workflow,
            family,
            status,
            WorkflowStage.DONE,
            record=record,
            written=written,
            failed=failed,
        )

    def _transfer(
        self,
        family: str,
        jobs: list[tuple[VariantDescriptor, str]],
        load: VariantLoader,
        progress: ProgressCallback | None,
    ) -> list[VariantWritten | VariantFailure]:
        """Run every job on a bounded pool; results come back in job order."""
        if progress:
            progress.on_start(family, len(jobs))

        results: list[VariantWritten | VariantFailure | None] = [None] * len(jobs)
        max_workers = max(1, min(self.config.max_parallel_downloads, len(jobs)))
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {
                executor.submit(self._store_variant, family, descriptor, source, load): index
                for index, (descriptor, source) in enumerate(jobs)
            }
            for future in as_completed(future_to_index):
                index = future_to_index[future]
                results[index] = future.result()
                if progress:
                    progress.on_variant_complete(
                        jobs[index][0], isinstance(results[index], VariantWritten)
                    )
        return results

    def _store_variant(
        self, family: str, descriptor: VariantDescriptor, source: str, load: VariantLoader
    ) -> VariantWritten | VariantFailure:
        try:
            data = load(descriptor, source)
            path = self.paths.canonical_path(family, descriptor)
            self.storage.write_file(path, data)
        except FontCacheError as e:
            logger.warning(f"Failed to cache {descriptor} from {source}: {e}")
            return VariantFailure(descriptor, source, e)

        entry = FileEntry(
            weight=descriptor.weight,
            style=descriptor.style,
            format=descriptor.format,
            local_path=self.paths.relative_path(path),
        )
        logger.debug(f"Stored {descriptor} at {entry.local_path}")
        return VariantWritten(descriptor, entry)

    def _commit(
        self,
        family: str,
        written: list[FileEntry],
        display_name: str | None,
        source_url: str | None,
    ) -> FontRecord:
        """Merge `written` into the family's record and persist it."""

        def merge(current: FontRecord | None) -> FontRecord:
            files = {entry.key: entry for entry in (current.files if current else [])}
            for entry in written:
                files[entry.key] = entry

            return FontRecord(
                name=current.name if current else family,
                display_name=display_name or (current.display_name if current else family),
                source_url=source_url or (current.source_url if current else None),
                files=sorted(files.values(), key=_file_order),
            )

        return self.registry.modify(family, merge)

    def _finish(
        self, outcome: WorkflowOutcome, progress: ProgressCallback | None
    ) -> WorkflowOutcome:
        if progress:
            progress.on_complete(outcome)
        return outcome

    # ------------------------------------------------------------------
    # Deletion

    def delete(self, family: str) -> WorkflowOutcome:
        """Remove a family from the registry, then its folder (best effort)."""
        if not self._acquire(family):
            return self._conflict("delete", family, WorkflowStage.DELETING)
        return self._run_delete(family)

    def submit_delete(self, family: str) -> "Future[WorkflowOutcome]":
        """Schedule `delete`; duplicates are rejected before scheduling."""
        if not self._acquire(family):
            return _completed(self._conflict("delete", family, WorkflowStage.DELETING))
        try:
            return self._get_executor().submit(self._run_delete, family)
        except RuntimeError:
            self._release(family)
            raise

    def _run_delete(self, family: str) -> WorkflowOutcome:
        """Delete workflow body; the caller holds the in-flight marker."""
        stage = WorkflowStage.PERSISTING
        try:
            record = self.registry.get(family)
            if record is None:
                raise FontNotCachedError(family)
            self.registry.remove(family)

            stage = WorkflowStage.DELETING
            folder = self.paths.family_folder(family)
            try:
                self.storage.delete_folder(folder)
            except FilesystemError as e:
                logger.warning(f"Could not remove folder {folder} for {family}: {e}")
        except FontCacheError as e:
            logger.warning(f"Deleting {family} failed while {stage.value}: {e}")
            return WorkflowOutcome.failure("delete", family, stage, e)
        except Exception:
            logger.exception(f"Unexpected error deleting {family}")
            raise
        finally:
            self._release(family)

        logger.info(f"Deleted {family}")
        return WorkflowOutcome(
            "delete", family, OutcomeStatus.SUCCEEDED, WorkflowStage.DONE, record=record
        )

    def clear_cache(self) -> list[str]:
        """Delete every cached family; returns the names removed."""
        removed = []
        for name in self.registry.names():
            outcome = self.delete(name)
            if outcome.ok:
                removed.append(name)
            else:
                logger.warning(f"Could not remove {name}: {outcome.message}")
        logger.info(f"Cleared {len(removed)} fonts from cache")
        return removed

    # ------------------------------------------------------------------
    # Queries

    def lookup(
        self, family: str, weight: int, style: FontStyle | str = FontStyle.NORMAL
    ) -> Path | None:
        """Path of a cached variant file, trying the current then the legacy layout."""
        style = FontStyle.parse(style)
        record = self.registry.get(family)
        formats: list[FontFormat] = []
        if record is not None:
            formats = [entry.format for entry in record.find_files(weight, style)]
        return self.paths.resolve_any(family, weight, style, formats or FORMAT_PREFERENCE)

    def list_fonts(self) -> list[FontRecord]:
        return self.registry.list()

    def get_font(self, family: str) -> FontRecord | None:
        return self.registry.get(family)

    def is_cached(self, family: str) -> bool:
        return family in self.registry

    def is_local_font_folder(self, path: Path | str) -> bool:
        """Whether `path` is a folder holding font files."""
        return self.scanner.has_font_files(Path(path))

    def discover(self, reference: str) -> DiscoveryResult:
        """Weights and styles the catalog offers for a family."""
        request = self.fetcher.discovery_request(reference)
        text = self._with_retries(
            lambda: self.fetcher.fetch(request), f"Discovering {request.family}"
        )
        blocks = self.parser.parse_blocks(text, base_url=request.url)

        weights = sorted({block.weight for block in blocks}) or [400]
        styles = sorted({block.style for block in blocks}, key=lambda s: s.value)
        result = DiscoveryResult(request.family, weights, styles or [FontStyle.NORMAL])
        logger.info(
            f"Discovered {result.family}: weights={result.weights}, "
            f"styles={[s.value for s in result.styles]}"
        )
        return result

    def update_display_name(self, family: str, display_name: str) -> FontRecord:
        """Change the user-facing name of a cached family."""

        def rename(current: FontRecord | None) -> FontRecord:
            if current is None:
                raise FontNotCachedError(family)
            return FontRecord(
                name=current.name,
                display_name=display_name,
                source_url=current.source_url,
                files=current.files,
                cached_at=current.cached_at,
            )

        record = self.registry.modify(family, rename)
        logger.info(f"Renamed {family} to {display_name!r}")
        return record

    def font_face_css(self, family: str, weights: Iterable[int] | None = None) -> str:
        """Self-contained ``@font-face`` rules for a cached family.

        Files are filtered to `weights`; when none match, every cached file
        is used.
        """
        record = self.registry.get(family)
        if record is None:
            raise FontNotCachedError(family)

        wanted = set(weights or [])
        variants = sorted(
            {(entry.weight, entry.style) for entry in record.files},
            key=lambda v: (v[0], v[1].value),
        )
        selected = [v for v in variants if v[0] in wanted] if wanted else variants
        if not selected:
            logger.warning(
                f"No cached files of {family} match weights {sorted(wanted)}, using all files"
            )
            selected = variants

        rules = []
        for weight, style in selected:
            path = self.lookup(family, weight, style)
            if path is None:
                logger.warning(f"Cached file for {family} {weight} {style.value} is missing")
                continue
            fmt = FontFormat.from_extension(path.suffix)
            rules.append(
                render_font_face(record.name, weight, style, fmt, self.storage.read_file(path))
            )

        logger.debug(f"Generated {len(rules)} @font-face rules for {family}")
        return "\n".join(rules)
