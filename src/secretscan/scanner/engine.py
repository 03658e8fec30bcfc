"""Batch scan engine: runs the detector over many files in a thread pool.

Exception safety: a failure while scanning one file becomes a structured
warning on that file's result. Error messages name the exception type only,
so matched secret values never leak into logs or reports.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar, Union

from secretscan.config.loader import validate_config
from secretscan.config.schema import SecretScanConfig
from secretscan.findings.aggregator import aggregate
from secretscan.findings.models import FileScanResult, Finding, ScanResult, ScanWarning
from secretscan.rules.registry import RuleRegistry, build_registry
from secretscan.scanner.context import ScanContext
from secretscan.scanner.detector import ContextAwareDetector, DetectionResult
from secretscan.scanner.patterns import PatternMatcher

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ScanError(Exception):
    """Wraps any failure while scanning one file.

    The message names the exception type and the path only, never the
    exception text, which may quote matched content. The original exception
    is kept as ``__cause__``.
    """


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class ScanEngine:
    """Validated config + rule registry + detector, ready to scan files.

    Construction fails fast with ConfigError; after that, no single file can
    make a batch raise.
    """

    def __init__(
        self,
        config: Optional[SecretScanConfig] = None,
        registry: Optional[RuleRegistry] = None,
        root: Optional[Path] = None,
    ) -> None:
        self.config = config or SecretScanConfig()
        validate_config(self.config)
        self.registry = registry or build_registry(self.config, root)
        self.matcher = PatternMatcher()
        self.detector = ContextAwareDetector(self.config, self.registry, self.matcher)

    # ---- single file ----

    def _detect(
        self, context: ScanContext, should_stop: Optional[Callable[[], bool]]
    ) -> Tuple[DetectionResult, List[Finding]]:
        """Run the detector and aggregator. Raises ScanError on any failure."""
        try:
            detection = self.detector.detect(context, should_stop)
            return detection, aggregate(detection.candidates)
        except Exception as exc:
            raise ScanError(
                f"internal error ({type(exc).__name__}) while scanning {context.file_path}"
            ) from exc

    def scan_context(self, context: ScanContext) -> FileScanResult:
        """Detect and aggregate one file. Never raises."""
        start = time.perf_counter()
        path = context.file_path
        budget = self.config.performance.file_timeout_seconds
        should_stop = None
        if budget > 0:
            deadline = start + budget

            def should_stop() -> bool:
                return time.perf_counter() > deadline

        try:
            detection, findings = self._detect(context, should_stop)
        except ScanError as err:
            logger.warning("%s", err)
            logger.debug("Scan failure detail", exc_info=True)
            return FileScanResult(
                file_path=path,
                warnings=[ScanWarning(path, "error", str(err))],
                duration_ms=_elapsed_ms(start),
            )

        if detection.timed_out:
            message = f"exceeded the {budget:g}s per-file budget"
            logger.warning("Timed out scanning %s: %s", path, message)
            return FileScanResult(
                file_path=path,
                warnings=detection.warnings + [ScanWarning(path, "timeout", message)],
                skipped=True,
                skip_reason="timeout",
                duration_ms=_elapsed_ms(start),
            )

        return FileScanResult(
            file_path=path,
            findings=findings,
            warnings=detection.warnings,
            suppressed=detection.suppressed,
            skipped=detection.skipped,
            skip_reason=detection.skip_reason,
            duration_ms=_elapsed_ms(start),
        )

    def scan_file(self, path: Union[str, Path]) -> FileScanResult:
        """Read *path* and scan it; unreadable files become an error warning."""
        try:
            context = ScanContext.from_path(path, self.config)
        except OSError as exc:
            message = f"cannot read file: {exc.strerror or type(exc).__name__}"
            logger.warning("%s: %s", path, message)
            return FileScanResult(
                file_path=str(path),
                warnings=[ScanWarning(str(path), "error", message)],
                skipped=True,
                skip_reason="unreadable",
            )
        return self.scan_context(context)

    # ---- batches ----

    def scan_paths(
        self,
        paths: Iterable[Union[str, Path]],
        cancel_event: Optional[threading.Event] = None,
    ) -> ScanResult:
        items = list(paths)
        return self._run(items, [str(p) for p in items], self.scan_file, cancel_event)

    def scan_contexts(
        self,
        contexts: Iterable[ScanContext],
        cancel_event: Optional[threading.Event] = None,
    ) -> ScanResult:
        items = list(contexts)
        return self._run(items, [c.file_path for c in items], self.scan_context, cancel_event)

    def _run(
        self,
        items: Sequence[T],
        names: List[str],
        scan_one: Callable[[T], FileScanResult],
        cancel_event: Optional[threading.Event],
    ) -> ScanResult:
        """Scan *items* in parallel; the result has exactly one entry per item, in input order.

        Cancellation is checked before each file starts. Files not yet started
        when *cancel_event* is set are reported as skipped ("cancelled").
        """
        start = time.perf_counter()
        results: List[Optional[FileScanResult]] = [None] * len(items)
        if not items:
            return ScanResult()

        def _scan_single(i: int) -> FileScanResult:
            if cancel_event is not None and cancel_event.is_set():
                return FileScanResult(file_path=names[i], skipped=True, skip_reason="cancelled")
            return scan_one(items[i])

        workers = max(1, min(self.config.performance.max_workers, len(items)))
        logger.info("Scanning %d file(s) with %d worker(s)", len(items), workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="secretscan") as pool:
            futures = {pool.submit(_scan_single, i): i for i in range(len(items))}
            for future in as_completed(futures):
                i = futures[future]
                try:
                    results[i] = future.result()
                except Exception as exc:
                    message = f"internal error ({type(exc).__name__})"
                    logger.warning("%s: %s", names[i], message)
                    results[i] = FileScanResult(
                        file_path=names[i],
                        warnings=[ScanWarning(names[i], "error", message)],
                    )

        cancelled = cancel_event is not None and cancel_event.is_set()
        if cancelled:
            logger.warning("Scan cancelled")
        return ScanResult(
            files=[r for r in results if r is not None],
            cancelled=cancelled,
            duration_ms=_elapsed_ms(start),
        )
