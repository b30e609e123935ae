import concurrent.futures
import contextlib
import io
import math
import os
import sys
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

import pandas as pd

from .config import InvalidConfigError, JerseyConfig
from .export import export_png, export_sheet
from .scene import ViewRenderer
from .settings import OUTPUT_DIR, verbose_enabled

try:
    import easygui  # Optional prompts for the CSV path and worker count
except Exception:  # pragma: no cover - GUI module may be unavailable on headless runs
    easygui = None

# CSV header -> configuration field. Missing columns keep their defaults.
COLUMN_FIELDS = {
    "Team": "team_name",
    "Player Name": "player_name",
    "Number": "player_number",
    "Torso Color": "torso_color",
    "Torso Trim Color": "torso_trim_color",
    "Sleeve Color": "sleeve_color",
    "Sleeve Trim Color": "sleeve_trim_color",
    "Neck Color": "neck_color",
    "Secondary Color": "secondary_color",
    "Accent Color": "accent_color",
    "Font": "font_family",
    "Font Size": "font_size",
    "Shield": "shield_url",
    "Shield Size": "shield_size",
}
NUMERIC_FIELDS = {"font_size", "shield_size"}


@dataclass
class RowJob:
    index: int
    config: JerseyConfig

    @property
    def label(self) -> str:
        player = self.config.player_name or "?"
        return f"{self.config.team_name or '?'} / {player} #{self.config.player_number}"


@dataclass
class JobResult:
    job: RowJob
    success: bool
    message: str
    captured_log: str
    paths: List[str]


def read_csv_with_fallback(path: str) -> pd.DataFrame:
    for enc in ("utf-8-sig", "cp1252", "latin1"):
        try:
            df = pd.read_csv(path, encoding=enc, dtype=str)
            print(f"[INFO] Loaded CSV with encoding: {enc}")
            return df
        except UnicodeDecodeError:
            continue
    raise ValueError(f"Could not decode {path} with common encodings.")


def select_csv_path() -> Optional[str]:
    if easygui is None:
        print("[ERROR] No CSV path given and easygui is unavailable. Exiting.")
        return None
    path = easygui.fileopenbox(
        title="Select jersey batch CSV file",
        default="*.csv",
        filetypes=["*.csv", "*.*"],
    )
    if not path:
        print("[ERROR] No CSV file selected. Exiting.")
    return path


def _cell(row: pd.Series, column: str) -> Optional[str]:
    value = row.get(column)
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    value = str(value).strip()
    return value or None


def _to_number(column: str, value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise InvalidConfigError(f"{column} must be a number, got '{value}'") from None
    return int(number) if number.is_integer() else number


def row_changes(row: pd.Series, base_dir: Optional[str] = None) -> Dict:
    changes = {}
    for column, field_name in COLUMN_FIELDS.items():
        value = _cell(row, column)
        if value is None:
            continue
        if field_name in NUMERIC_FIELDS:
            value = _to_number(column, value)
        elif field_name == "player_number" and value.endswith(".0"):
            value = value[:-2]
        elif field_name == "shield_url" and base_dir and "://" not in value and not value.startswith("data:"):
            if not os.path.isabs(value):
                value = os.path.join(base_dir, value)
        changes[field_name] = value

    x_value, y_value = _cell(row, "Shield X"), _cell(row, "Shield Y")
    if x_value is not None or y_value is not None:
        default_x, default_y = JerseyConfig().shield_position
        changes["shield_position"] = (
            _to_number("Shield X", x_value) if x_value is not None else default_x,
            _to_number("Shield Y", y_value) if y_value is not None else default_y,
        )
    return changes


def build_job(index: int, row: pd.Series, base_dir: Optional[str] = None) -> Optional[RowJob]:
    try:
        config = JerseyConfig().merge(row_changes(row, base_dir))
    except InvalidConfigError as exc:
        print(f"[WARN] Skipping row {index}: {exc}")
        return None
    return RowJob(index=index, config=config)


def collect_jobs(df: pd.DataFrame, base_dir: Optional[str] = None) -> List[RowJob]:
    jobs: List[RowJob] = []
    for idx, row in df.dropna(how="all").iterrows():
        job = build_job(idx, row, base_dir)
        if job:
            jobs.append(job)
    return jobs


class ThreadLocalStdout:
    """Stand-in for sys.stdout that sends each worker thread's writes to its own buffer.

    Threads without a registered buffer write through to the wrapped stream, so
    result lines printed by the main thread are never captured.
    """

    def __init__(self, stream):
        self._stream = stream
        self._local = threading.local()

    def _target(self):
        buffer = getattr(self._local, "buffer", None)
        return self._stream if buffer is None else buffer

    def write(self, text):
        return self._target().write(text)

    def flush(self):
        self._target().flush()

    @contextlib.contextmanager
    def capture(self, buffer):
        previous = getattr(self._local, "buffer", None)
        self._local.buffer = buffer
        try:
            yield buffer
        finally:
            self._local.buffer = previous

    def __getattr__(self, name):
        return getattr(self._stream, name)


def _capture_output(buffer):
    stdout = sys.stdout
    if isinstance(stdout, ThreadLocalStdout):
        return stdout.capture(buffer)
    return contextlib.redirect_stdout(buffer)


def execute_job(job: RowJob, out_dir: str = OUTPUT_DIR) -> JobResult:
    log_buffer = io.StringIO()
    paths: List[str] = []
    front = ViewRenderer("front")
    back = ViewRenderer("back")
    with _capture_output(log_buffer):
        try:
            front.render_now(job.config)
            back.render_now(job.config)
            results = [
                export_png(front.surface, job.config, out_dir, suffix="-front"),
                export_png(back.surface, job.config, out_dir, suffix="-back"),
                export_sheet(front.surface, back.surface, job.config, out_dir),
            ]
            paths = [r.path for r in results if r.success]
            failed = [r for r in results if not r.success]
            if failed:
                message = "; ".join(f"{r.kind}: {r.message}" for r in failed)
                return JobResult(job, False, message, log_buffer.getvalue(), paths)
            return JobResult(job, True, f"Saved {len(paths)} file(s)", log_buffer.getvalue(), paths)
        except Exception as exc:
            return JobResult(job, False, str(exc), log_buffer.getvalue(), paths)
        finally:
            front.close()
            back.close()


def emit_result(result: JobResult, verbose: bool = False) -> None:
    status = "✓" if result.success else "✗"
    print(f"{status} Row {result.job.index} ({result.job.label}): {result.message}")
    if (verbose or not result.success) and result.captured_log.strip():
        print("    └─ Captured output:")
        for line in result.captured_log.strip().splitlines():
            print(f"       {line}")


def _env_worker_count() -> Optional[int]:
    raw = os.environ.get("JERSEY_WORKERS")
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value < 1:
        print(f"[WARN] Ignoring JERSEY_WORKERS='{raw}'; expected a positive integer.")
        return None
    return value


def resolve_worker_count(job_count: int, prompt: bool = True) -> int:
    job_count = max(1, job_count)
    fallback = min(max(1, os.cpu_count() or 1), job_count)

    requested = _env_worker_count()
    if requested is None and prompt and easygui and job_count > 1:
        requested = easygui.integerbox(
            f"Worker threads for {job_count} rows:",
            "Worker Count",
            default=fallback,
            lowerbound=1,
            upperbound=job_count,
        )
    return min(int(requested), job_count) if requested else fallback


def run_batch(csv_path: str, out_dir: str = OUTPUT_DIR, workers: Optional[int] = None) -> List[JobResult]:
    df = read_csv_with_fallback(csv_path)
    jobs = collect_jobs(df, os.path.dirname(os.path.abspath(csv_path)))
    if not jobs:
        print("[ERROR] No valid rows to process.")
        return []

    os.makedirs(out_dir, exist_ok=True)
    worker_count = workers or resolve_worker_count(len(jobs))
    verbose_logs = verbose_enabled()

    print(f"Processing {len(jobs)} jobs with {worker_count} thread(s)...")
    results: List[JobResult] = []
    # Swapped once from this thread; workers only register their own buffers.
    with contextlib.redirect_stdout(ThreadLocalStdout(sys.stdout)):
        with concurrent.futures.ThreadPoolExecutor(max_workers=worker_count) as executor:
            future_to_job = {executor.submit(execute_job, job, out_dir): job for job in jobs}
            for future in concurrent.futures.as_completed(future_to_job):
                result = future.result()
                results.append(result)
                emit_result(result, verbose=verbose_logs)

    results.sort(key=lambda r: r.job.index)
    successes = sum(1 for r in results if r.success)
    print("\nRun complete:")
    print(f"  Rows rendered:   {len(results)}")
    print(f"  Successful jobs: {successes}")
    print(f"  Failed jobs:     {len(results) - successes}")
    return results


def main(argv: Optional[List[str]] = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    csv_path = argv[0] if argv else select_csv_path()
    if not csv_path:
        return
    out_dir = argv[1] if len(argv) > 1 else OUTPUT_DIR
    run_batch(csv_path, out_dir)


if __name__ == "__main__":
    main()
