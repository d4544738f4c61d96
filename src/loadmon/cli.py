from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Sequence

from loadmon.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_DURATION_SEC,
    ClientConfig,
    MonitorConfig,
    RpsMode,
    TestConfig,
)
from loadmon.errors import LoadTestError
from loadmon.loadgen.runner import RunController
from loadmon.log import LogProfile, configure_logging
from loadmon.metrics import LiveMetricsSnapshot, TestResult


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="HTTP load test with live resource monitoring")
    parser.add_argument("--url", required=True, help="Target URL")
    parser.add_argument("--concurrency", "-c", type=int, default=DEFAULT_CONCURRENCY)
    parser.add_argument("--duration", "-d", type=int, default=DEFAULT_DURATION_SEC, help="Seconds")
    parser.add_argument("--monitor", action="store_true", help="Print live metrics as JSON lines")
    parser.add_argument("--sample-period", type=float, default=0.5)
    parser.add_argument("--rps-mode", choices=[m.value for m in RpsMode], default=RpsMode.TRAILING.value)
    parser.add_argument("--rps-window", type=float, default=1.0)
    parser.add_argument("--method", default="GET")
    parser.add_argument("--timeout", type=float, default=5.0, help="Per-request timeout (sec)")
    parser.add_argument("--connect-timeout", type=float, default=10.0)
    parser.add_argument(
        "--cap-timeout",
        action="store_true",
        help="Never let a request run past the test deadline",
    )
    parser.add_argument(
        "--log-type",
        choices=[p.value for p in LogProfile],
        default=LogProfile.AUTO.value,
    )
    parser.add_argument("--output", "-o", choices=["text", "json"], default="text")
    return parser


def format_result(result: TestResult) -> str:
    errors = result.error_stats
    pct = result.latency_percentiles
    lines = [
        f"Total requests:      {result.total_requests}",
        f"Successful:          {result.successful_requests}",
        f"Failed:              {result.failed_requests}",
        f"Requests/sec:        {result.requests_per_second:.2f}",
        f"Average latency:     {result.average_latency} ms",
        f"Latency p50/p90/p95/p99: {pct.p50}/{pct.p90}/{pct.p95}/{pct.p99} ms",
        f"Elapsed:             {result.elapsed_sec:.2f} s",
        "Errors:",
        f"  connection: {errors.connection_errors}",
        f"  timeout:    {errors.timeout_errors}",
        f"  http:       {errors.http_errors}",
        f"  other:      {errors.other_errors}",
    ]
    return "\n".join(lines)


def _print_snapshot(snapshot: LiveMetricsSnapshot) -> None:
    print(json.dumps(snapshot.to_dict()), flush=True)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_type)

    try:
        config = TestConfig(
            url=args.url,
            concurrency=args.concurrency,
            duration=args.duration,
            enable_monitoring=args.monitor,
        )
        controller = RunController(
            client_config=ClientConfig(
                method=args.method.upper(),
                timeout_sec=args.timeout,
                connect_timeout_sec=args.connect_timeout,
                cap_timeout_to_deadline=args.cap_timeout,
            ),
            monitor_config=MonitorConfig(
                sample_period_sec=args.sample_period,
                rps_mode=RpsMode(args.rps_mode),
                rps_window_sec=args.rps_window,
            ),
        )
        result = asyncio.run(controller.run(config, sink=_print_snapshot))
    except LoadTestError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return 130

    if args.output == "json":
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(format_result(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
