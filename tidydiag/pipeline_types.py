"""
Result records for the chapter runner.

``run_step()`` returns a StepResult for every step; the runner gates it,
logs it and collects it into a ChapterRunResult, which is written to
``chapter_run.json``.
"""

import subprocess
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class StepStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


def utc_now():
    return datetime.now(timezone.utc).isoformat()


def _git_sha():
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],
            stderr=subprocess.DEVNULL,
            text=True,
        ).strip()
    except (subprocess.SubprocessError, FileNotFoundError):
        return None


def _known_fields(cls, d):
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in d.items() if k in names}


@dataclass
class StepResult:
    """Outcome of one chapter step.

    ``warnings`` holds lenient schema-gate messages or the reason a step
    was skipped; ``nan_summary`` the non-zero NaN counts of the table the
    step produced.
    """

    step_name: str
    status: str = StepStatus.SUCCESS.value
    input_summary: dict = field(default_factory=dict)
    output_summary: dict = field(default_factory=dict)
    timing_seconds: float = 0.0
    warnings: list = field(default_factory=list)
    error: Optional[str] = None
    started_at: str = field(default_factory=utc_now)
    completed_at: Optional[str] = None
    nan_summary: Optional[dict] = None

    @property
    def ok(self):
        return self.status == StepStatus.SUCCESS.value

    @classmethod
    def skipped(cls, step_name, reason):
        return cls(step_name, StepStatus.SKIPPED.value, warnings=[reason],
                   completed_at=utc_now())

    @classmethod
    def failed(cls, step_name, error):
        return cls(step_name, StepStatus.ERROR.value, error=error,
                   completed_at=utc_now())

    def fail(self, error):
        self.status = StepStatus.ERROR.value
        self.error = error

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**_known_fields(cls, d))


@dataclass
class ChapterRunResult:
    """Every step of one runner invocation, plus its settings."""

    run_dir: str = ""
    seed: Optional[int] = None
    smooth_method: str = ""
    step_results: list = field(default_factory=list)
    total_time_seconds: float = 0.0
    output_files: list = field(default_factory=list)
    git_sha: Optional[str] = field(default_factory=_git_sha)
    started_at: str = field(default_factory=utc_now)

    @property
    def all_ok(self):
        return all(s.ok for s in self.step_results)

    @property
    def failed_steps(self):
        return [s for s in self.step_results if s.status == StepStatus.ERROR.value]

    @property
    def skipped_steps(self):
        return [s for s in self.step_results if s.status == StepStatus.SKIPPED.value]

    def to_dict(self):
        d = {f.name: getattr(self, f.name) for f in fields(self)
             if f.name != "step_results"}
        d["steps"] = [s.to_dict() for s in self.step_results]
        d["all_ok"] = self.all_ok
        return d

    @classmethod
    def from_dict(cls, d):
        result = cls(**_known_fields(cls, d))
        result.step_results = [StepResult.from_dict(s) for s in d.get("steps", [])]
        return result
