"""Per-file scan input."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Optional, Tuple, Union

from secretscan.config.schema import SecretScanConfig

TEST_DIR_MARKERS = frozenset(
    {"test", "tests", "spec", "specs", "__tests__", "fixtures", "fixture", "mocks", "mock", "testdata"}
)

# test_foo.py, foo_test.go, foo.spec.ts, FooTest.java, FooSpec.scala, conftest.py
_TEST_NAME_RE = re.compile(
    r"(?:^test_|_test$|_spec$|[._-](?:test|spec)$|^conftest$|(?<=[a-z0-9])(?:Tests?|Spec)$)"
)
_TEST_WORDS = ("mock", "fixture", "sample")

PathLike = Union[str, PurePath]


def is_test_path(path: PathLike) -> bool:
    """Heuristic: does *path* look like a test, fixture, mock or sample file?"""
    p = PurePath(path)
    if any(part.lower() in TEST_DIR_MARKERS for part in p.parts[:-1]):
        return True
    stem = p.name.split(".", 1)[0] if p.name.count(".") > 1 else p.stem
    if _TEST_NAME_RE.search(p.stem) or _TEST_NAME_RE.search(stem):
        return True
    lowered = p.name.lower()
    return any(word in lowered for word in _TEST_WORDS)


@dataclass(frozen=True)
class ScanContext:
    """Immutable description of one file handed to the detector.

    ``config`` records the configuration the context was loaded with; it
    sets the size cutoff in ``from_path``. Detection and scoring policy comes
    from the detector's own config, so one detector scores every context the
    same way.
    """

    file_path: str
    file_name: str
    extension: str
    is_test_file: bool
    size: int
    content: str
    lines: Tuple[str, ...]
    config: SecretScanConfig = field(default_factory=SecretScanConfig, compare=False)

    @classmethod
    def from_text(
        cls,
        path: PathLike,
        content: str,
        config: Optional[SecretScanConfig] = None,
        is_test_file: Optional[bool] = None,
        size: Optional[int] = None,
    ) -> "ScanContext":
        p = PurePath(path)
        return cls(
            file_path=str(path),
            file_name=p.name,
            extension=p.suffix.lstrip(".").lower(),
            is_test_file=is_test_path(p) if is_test_file is None else is_test_file,
            size=len(content.encode("utf-8", errors="replace")) if size is None else size,
            content=content,
            lines=tuple(content.splitlines()),
            config=config or SecretScanConfig(),
        )

    @classmethod
    def from_path(
        cls,
        path: PathLike,
        config: Optional[SecretScanConfig] = None,
        is_test_file: Optional[bool] = None,
    ) -> "ScanContext":
        """Read *path* from disk. Raises OSError when it cannot be read.

        Files larger than ``scan.max_file_size`` are not read: the context
        carries the on-disk size and empty content, and the detector skips it.
        """
        cfg = config or SecretScanConfig()
        fp = Path(path)
        size = fp.stat().st_size
        if size > cfg.scan.max_file_size:
            return cls.from_text(path, "", cfg, is_test_file=is_test_file, size=size)
        data = fp.read_bytes()
        return cls.from_text(
            path,
            data.decode("utf-8", errors="replace"),
            cfg,
            is_test_file=is_test_file,
            size=len(data),
        )
