"""
Logging for the chapter runner.

Library modules only ask for a logger:

    from tidydiag.logging_config import get_run_logger
    log = get_run_logger(__name__)

Handlers are attached once, by ``setup_logging()`` at the runner entry
point: a console stream and, when a run directory is given, a JSON Lines
file ``{run_dir}/run.jsonl`` that sits next to ``chapter_run.json``.
Every record carries the run_id; step summaries also carry the step's
inputs, outputs, timing, schema-gate warnings and NaN counts.
"""

import json
import logging
import os
import uuid

_run_id = None

# Record attributes copied into JSON entries when a caller sets them
# through ``extra=``.
STEP_FIELDS = (
    "step", "status", "inputs", "outputs", "seconds", "warnings",
    "nan_counts", "group",
)

CONSOLE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def get_run_id():
    """Return the current run_id, generating one if needed."""
    global _run_id
    if _run_id is None:
        _run_id = uuid.uuid4().hex[:8]
    return _run_id


def set_run_id(run_id=None):
    """Set the run_id, or start a fresh one."""
    global _run_id
    _run_id = run_id or uuid.uuid4().hex[:8]
    return _run_id


class RunIdFilter(logging.Filter):
    """Stamp the current run_id on each record."""

    def filter(self, record):
        record.run_id = get_run_id()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record):
        entry = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "run_id": getattr(record, "run_id", None),
            "message": record.getMessage(),
        }
        for name in STEP_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


_handlers = []
_run_file = None


def setup_logging(run_dir=None, level=None):
    """Attach console and run-file handlers to the root logger.

    Parameters
    ----------
    run_dir : str, optional
        Directory receiving ``run.jsonl`` (DEBUG and above). Only the
        first run_dir given after a reset is used.
    level : int, optional
        Console level. Default: the LOG_LEVEL environment variable, or INFO.
    """
    global _run_file

    root = logging.getLogger()
    if not _handlers:
        if level is None:
            level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(),
                            logging.INFO)
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT, "%H:%M:%S"))
        console.addFilter(RunIdFilter())
        root.addHandler(console)
        _handlers.append(console)

        root.setLevel(logging.DEBUG)
        logging.getLogger("matplotlib").setLevel(logging.WARNING)

    if run_dir and _run_file is None:
        os.makedirs(run_dir, exist_ok=True)
        _run_file = logging.FileHandler(os.path.join(run_dir, "run.jsonl"))
        _run_file.setLevel(logging.DEBUG)
        _run_file.setFormatter(JsonFormatter())
        _run_file.addFilter(RunIdFilter())
        root.addHandler(_run_file)
        _handlers.append(_run_file)


def reset_logging():
    """Detach everything setup_logging() attached and forget the run_id."""
    global _run_file, _run_id

    root = logging.getLogger()
    for handler in _handlers:
        root.removeHandler(handler)
        handler.close()
    _handlers.clear()
    root.setLevel(logging.WARNING)
    _run_file = None
    _run_id = None


def get_run_logger(name):
    """Module logger; configuration is left to setup_logging()."""
    return logging.getLogger(name)


def log_step_summary(logger, result):
    """Log the one-line summary of a finished step.

    Parameters
    ----------
    logger : logging.Logger
    result : StepResult
        Errors log at ERROR; skipped steps and steps with gate warnings at
        WARNING; clean successes at INFO.
    """
    if result.status == "error":
        level = logging.ERROR
    elif result.status == "skipped" or result.warnings:
        level = logging.WARNING
    else:
        level = logging.INFO

    message = f"[{result.step_name}] {result.status} ({result.timing_seconds:.2f}s)"
    if result.input_summary:
        message += f" inputs={result.input_summary}"
    if result.output_summary:
        message += f" output={result.output_summary}"
    if result.warnings:
        message += f" warnings={len(result.warnings)}"

    logger.log(level, message, extra={
        "step": result.step_name,
        "status": result.status,
        "inputs": result.input_summary,
        "outputs": result.output_summary,
        "seconds": result.timing_seconds,
        "warnings": result.warnings,
        "nan_counts": result.nan_summary,
    })
