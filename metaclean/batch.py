"""Sequential cleaning of a list of files, one failure never stops the rest."""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from metaclean.dispatcher import clean, output_path_for
from metaclean.errors import MetaCleanError

log = logging.getLogger(__name__)


@dataclass
class CleanResult:
    input_path: str
    output_path: Optional[str] = None
    error: Optional[MetaCleanError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def clean_many(paths: Iterable, output_folder,
               should_stop: Optional[Callable[[], bool]] = None) -> List[CleanResult]:
    results = []
    for path in paths:
        if should_stop is not None and should_stop():
            log.info("[batch] stopped before %s", path)
            break
        try:
            out = clean(path, output_folder)
        except MetaCleanError as e:
            log.error("[batch] %s: %s", path, e)
            if e.output_path is None:
                e.output_path = str(output_path_for(path, output_folder))
            results.append(CleanResult(str(path), e.output_path, e))
            continue
        results.append(CleanResult(str(path), str(out)))
    return results


def summarize(results: List[CleanResult]) -> str:
    done = [r for r in results if r.ok]
    failed = [r for r in results if not r.ok]
    lines = ["Metadata cleaning completed.", f"Cleaned: {len(done)}  Failed: {len(failed)}"]
    for r in done:
        lines.append(f"  OK    {os.path.basename(r.input_path)} -> {Path(r.output_path)}")
    for r in failed:
        lines.append(f"  ERROR {os.path.basename(r.input_path)}: {r.error}")
    return "\n".join(lines)
