"""
CLI entry point for its-workflow. Wires the pipeline: events -> properties -> rules -> tracker actions
"""

import argparse
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Iterator, Optional

from its.config import ItsConfig, load_settings
from its.validation import CommitValidationError, CommitValidator
from normalize.util import normalize_event
from storage.cache import Cache
from storage.cache import configure_retry
from workflow.factory import Pipeline, build_facade

logger = logging.getLogger(__name__)


def _print_json(obj):
    print(json.dumps(obj, indent=2, default=str))


def _configure_logging(settings: Dict[str, Any], level_override: Optional[str] = None):
    config = settings.get('logging') or {}
    level_name = str(level_override or config.get('level', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    handlers = []
    if config.get('console', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)
    file_cfg = config.get('file') or {}
    if file_cfg.get('enabled', False):
        path = file_cfg.get('path', 'logs/its.log')
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = RotatingFileHandler(path, maxBytes=int(file_cfg.get('max_bytes', 1_000_000)), backupCount=int(file_cfg.get('backup_count', 3)), encoding='utf-8')
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        root.addHandler(handler)


def _print_cache_get(cache: Cache, key: str):
    entry = cache.get(key)
    if entry is None:
        print(f"Cache key not found: {key}")
    else:
        _print_json(entry)


def _confirmed(question: str, force: bool) -> bool:
    if force:
        return True
    return input(f"{question} [y/N]: ").strip().lower() in ("y", "yes")


def _remove_cache_key(cache: Cache, key: str, force: bool):
    if not _confirmed(f"Are you sure you want to remove cache key '{key}' from {cache.path}?", force):
        print("Aborted cache key removal.")
        return
    removed = cache.delete_key(key)
    if removed:
        print(f"Removed {removed} row(s) for key: {key}")
    else:
        print(f"Cache key not found: {key}")


def _clear_cache(cache: Cache, force: bool):
    if not _confirmed(f"Are you sure you want to clear the cache at {cache.path}? This cannot be undone.", force):
        print("Aborted cache clear.")
        return
    cache.clear()
    print(f"Cleared cache at {cache.path}")


def _cache_action_requested(args) -> bool:
    return bool(args.cache_info or args.cache_clear or args.cache_list or args.cache_get or args.cache_remove)


def _handle_cache_actions(args, settings: Dict[str, Any]) -> Optional[Cache]:
    """Process cache inspection/management flags and return a Cache or None.
    If an inspection/management action is performed, this function prints output and returns None to signal exit.
    """
    cache_cfg = settings.get('cache') or {}
    cache_path = args.cache or cache_cfg.get('path') or ''
    if not _cache_action_requested(args):
        return Cache(cache_path, ttl_seconds=cache_cfg.get('ttl_seconds')) if cache_path else None

    cache = Cache(cache_path or "its_cache.db")
    try:
        flag_actions = [
            (args.cache_info, lambda: _print_json(cache.stats())),
            (args.cache_clear, lambda: _clear_cache(cache, args.force)),
            (args.cache_list, lambda: _print_json(cache.list_keys(limit=1000))),
            (bool(args.cache_get), lambda: _print_cache_get(cache, args.cache_get)),
            (bool(args.cache_remove), lambda: _remove_cache_key(cache, args.cache_remove, args.force)),
        ]
        for enabled, handler in flag_actions:
            if enabled:
                handler()
                return None
        return None
    finally:
        cache.close()


def _read_text(path: str) -> str:
    if path == '-':
        return sys.stdin.read()
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def iter_events(lines) -> Iterator[Dict[str, Any]]:
    """Yield decoded events from JSON lines, skipping blank or undecodable lines."""
    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            raw = json.loads(line)
        except ValueError:
            logger.error("Line %d is not valid JSON, skipped", lineno)
            continue
        if isinstance(raw, dict):
            yield raw


def replay_events(pipeline: Pipeline, path: str) -> int:
    """Feed every event of a stream-events JSON lines file through the pipeline. Returns the number handled."""
    handled = 0
    text = _read_text(path)
    for raw in iter_events(text.splitlines()):
        event = normalize_event(raw)
        if event is None:
            continue
        pipeline.handle(event)
        handled += 1
    logger.info("Processed %d event(s) from %s", handled, path)
    return handled


def print_matching_actions(pipeline: Pipeline, path: str):
    """Print the action requests the rules produce for a JSON object of properties."""
    properties = json.loads(_read_text(path))
    if not isinstance(properties, dict):
        raise ValueError(f"{path} does not hold a JSON object")
    properties = {str(k): str(v) for k, v in properties.items()}
    for request in pipeline.rule_base.action_requests_for(properties):
        print(request)


def validate_commit(pipeline: Pipeline, path: str, project: str, ref_name: Optional[str]) -> int:
    validator = CommitValidator(pipeline.config, pipeline.its, pipeline.issue_extractor)
    try:
        messages = validator.validate(project, _read_text(path), revision=os.path.basename(path), ref_name=ref_name)
    except CommitValidationError as ex:
        print(f"REJECTED: {ex.synopsis}")
        for message in ex.messages:
            print(message)
        return 1
    for message in messages:
        print(f"WARNING: {message}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Issue tracker workflow for repository change events")
    parser.add_argument("--config", type=str, default="", help="Path to settings YAML (default: config/its.yaml)")
    parser.add_argument("--events", type=str, default="", help="Replay stream-events JSON lines from this file ('-' for stdin)")
    parser.add_argument("--match", type=str, default="", help="Print the actions matching a JSON object of properties")
    parser.add_argument("--validate", type=str, default="", help="Validate the commit message in this file against the association policy")
    parser.add_argument("--project", type=str, default="", help="Project of the commit for --validate")
    parser.add_argument("--ref", type=str, default=None, help="Target ref of the commit for --validate (enables branch checks)")
    parser.add_argument("--dry-run", action="store_true", help="Log tracker operations instead of performing them")
    parser.add_argument("--health-check", action="store_true", help="Check the connection to the tracker and exit")
    parser.add_argument("--log-level", type=str, default=None, help="Override the configured log level")
    parser.add_argument("--cache", type=str, default="", help="Path to SQLite cache file (optional)")
    # retry/backoff knobs: optional CLI overrides. Environment variables ITS_MAX_RETRIES, ITS_BACKOFF_BASE,
    # ITS_BACKOFF_JITTER, ITS_MAX_BACKOFF may also be used to set defaults.
    parser.add_argument("--max-retries", type=int, default=None, help="Maximum retry attempts for HTTP requests (overrides ITS_MAX_RETRIES env)")
    parser.add_argument("--backoff-base", type=float, default=None, help="Base backoff seconds (overrides ITS_BACKOFF_BASE env)")
    parser.add_argument("--backoff-jitter", type=float, default=None, help="Jitter seconds added to backoff (overrides ITS_BACKOFF_JITTER env)")
    parser.add_argument("--max-backoff", type=float, default=None, help="Maximum backoff cap in seconds (overrides ITS_MAX_BACKOFF env)")
    parser.add_argument("--cache-info", action="store_true", help="Show cache statistics (requires --cache or uses default its_cache.db)")
    parser.add_argument("--cache-clear", action="store_true", help="Clear the persistent cache (requires --cache or uses default its_cache.db)")
    parser.add_argument("--cache-list", action="store_true", help="List cache keys (requires --cache or uses default its_cache.db)")
    parser.add_argument("--cache-get", type=str, default="", help="Get a specific cache key value (requires --cache or uses default its_cache.db)")
    parser.add_argument("--cache-remove", type=str, default="", help="Remove a specific cache key (requires --cache or uses default its_cache.db)")
    parser.add_argument("--force", action="store_true", help="Force actions without confirmation (use with --cache-clear or --cache-remove)")
    return parser


def run(args) -> int:
    settings = load_settings(args.config or None)
    _configure_logging(settings, args.log_level)
    configure_retry(max_retries=args.max_retries, backoff_base=args.backoff_base, backoff_jitter=args.backoff_jitter, max_backoff=args.max_backoff)

    cache = _handle_cache_actions(args, settings)
    if cache is None and _cache_action_requested(args):
        return 0

    try:
        config = ItsConfig(settings)
        its = build_facade(config, cache=cache, dry_run=args.dry_run)
        if args.health_check:
            print(its.health_check())
            return 0
        pipeline = Pipeline(config, its)
        if args.match:
            print_matching_actions(pipeline, args.match)
        if args.validate:
            return validate_commit(pipeline, args.validate, args.project, args.ref)
        if args.events:
            replay_events(pipeline, args.events)
        return 0
    finally:
        if cache:
            cache.close()


def main():
    parser = build_parser()
    args = parser.parse_args()
    if not (args.events or args.match or args.validate or args.health_check or _cache_action_requested(args)):
        parser.error("Nothing to do: give --events, --match, --validate, --health-check or a cache flag")
    sys.exit(run(args))


if __name__ == "__main__":
    main()
