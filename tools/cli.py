#!/usr/bin/env python3
# =============================================================================
# Local Invoke CLI
# =============================================================================
# Runs a processing function through the handler lifecycle locally, several
# times in one execution environment, to check cold start handling and
# profiling strategies before deploying.
#
# Usage:
#   python tools/cli.py myservice.handlers:process --json '{"id": 1}'
#   python tools/cli.py myservice.handlers:process --file event.json --repeat 5
#   python tools/cli.py myservice.handlers:process --strategy PERCENTAGE \
#       --percentage 20 --repeat 10 --profile-dir profiles/
# =============================================================================

import argparse
import importlib
import json
import logging
import marshal
import os
import sys
from typing import Any, Callable, Dict, List, Optional

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lambda_patterns.app.handler import Handler
from lambda_patterns.app.options import HandlerOptions, ProfileStrategy
from lambda_patterns.exceptions import ConfigurationError
from lambda_patterns.runtime.context import LocalContext
from lambda_patterns.runtime.environment import ExecutionEnvironment
from lambda_patterns.runtime.profiling import decode_profile

logger = logging.getLogger("lambda_patterns.cli")


def load_processor(target: str) -> Callable[[Handler], Any]:
    """Import a processor given as 'package.module:function'."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Processor must look like 'module:function', got {target!r}")
    module = importlib.import_module(module_name)
    processor = module
    for part in attr.split("."):
        processor = getattr(processor, part)
    if not callable(processor):
        raise ConfigurationError(f"{target} is not callable")
    return processor


def write_profile(payload: str, path: str) -> None:
    """Write an encoded profile as a .prof file readable by pstats."""
    with open(path, "wb") as f:
        marshal.dump(decode_profile(payload), f)


def invoke_locally(
    processor: Callable[[Handler], Any],
    event: Any,
    options: HandlerOptions,
    repeat: int = 1,
    environment: Optional[ExecutionEnvironment] = None,
    profile_dir: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Invoke a processor repeatedly in one execution environment.

    Returns:
        One summary dict per invocation
    """
    env = ExecutionEnvironment() if environment is None else environment
    summaries = []

    for _ in range(repeat):
        context = LocalContext()
        handler = Handler(processor, options, event, context, environment=env)
        handler.invoke()
        error, result = handler.callback.calls[-1]

        summary = {
            "requestId": handler.request_id,
            "coldStart": handler.is_cold_start,
            "profiled": handler.profile is not None,
            "stage": handler.stage.value,
        }
        if error is not None:
            summary["error"] = f"{type(error).__name__}: {error}"
        else:
            summary["result"] = result

        if handler.profile is not None and profile_dir:
            os.makedirs(profile_dir, exist_ok=True)
            path = os.path.join(profile_dir, f"{handler.request_id}.prof")
            write_profile(handler.profile, path)
            summary["profilePath"] = path

        summaries.append(summary)

    return summaries


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Invoke a lambda processor locally through the handler lifecycle",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s myservice.handlers:process
  %(prog)s myservice.handlers:process --json '{"id": 1}' --pretty
  %(prog)s myservice.handlers:process --file event.json --repeat 3 --strategy ONE_COLD_ONE_WARM
  %(prog)s myservice.handlers:process --repeat 10 --strategy PERCENTAGE --percentage 20 --profile-dir profiles/
        """
    )

    parser.add_argument("processor", help="Processor to invoke, as module:function")
    parser.add_argument("--json", "-j", help="JSON event payload")
    parser.add_argument("--file", "-f", help="JSON file to load the event from")
    parser.add_argument("--repeat", "-n", type=int, default=1, help="Number of invocations")
    parser.add_argument("--strategy", "-s", choices=[s.value for s in ProfileStrategy], help="Profile strategy")
    parser.add_argument("--percentage", type=int, help="Target profiled percentage for PERCENTAGE")
    parser.add_argument("--profile-dir", help="Directory to write collected .prof files to")
    parser.add_argument("--pretty", "-p", action="store_true", help="Pretty print output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log lifecycle events")

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    if args.repeat < 1:
        parser.error("--repeat must be at least 1")

    event: Any = {}
    if args.file:
        with open(args.file, "r") as f:
            event = json.load(f)
    elif args.json:
        event = json.loads(args.json)

    overrides: Dict[str, Any] = {}
    if args.strategy:
        overrides["profile_strategy"] = args.strategy
    if args.percentage is not None:
        overrides["profile_percentage"] = args.percentage

    try:
        processor = load_processor(args.processor)
        options = HandlerOptions.resolve(overrides, default_should_profile=Handler.should_profile)
    except (ConfigurationError, ImportError, AttributeError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    summaries = invoke_locally(
        processor,
        event,
        options,
        repeat=args.repeat,
        profile_dir=args.profile_dir,
    )

    # Output
    for summary in summaries:
        if args.pretty:
            print(json.dumps(summary, indent=2, ensure_ascii=False, default=str))
        else:
            print(json.dumps(summary, ensure_ascii=False, default=str))

    # Exit with appropriate code
    return 1 if any("error" in s for s in summaries) else 0


if __name__ == "__main__":
    sys.exit(main())
