#!/usr/bin/env python3
"""
k8s-doctor - Kubernetes workload diagnostics
Explains why a pod or cluster is unhealthy, with root causes and fixes.
"""

import argparse
import json
import logging
import sys
from typing import Any, Callable, Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

#
# NOTE: Keep doctor imports lazy (inside functions) so `--help` works without the
# kubernetes client installed or configured.
#


def _emit(result: Any, render: Callable[[], str], dump_json: bool) -> None:
    """Print JSON (only JSON, so `> file.json` stays valid) or the markdown report."""
    if dump_json:
        if isinstance(result, list):
            payload = [r.model_dump(mode="json") for r in result]
        else:
            payload = result.model_dump(mode="json")
        print(json.dumps(payload, indent=2, sort_keys=False, ensure_ascii=False))
        return
    print(render())


def cmd_pod(namespace: str, pod: str, *, dump_json: bool) -> None:
    from doctor.pipeline.pipeline import diagnose_pod
    from doctor.report import render_pod_diagnostics

    diagnostics = diagnose_pod(namespace, pod)
    _emit(diagnostics, lambda: render_pod_diagnostics(diagnostics), dump_json)


def cmd_crashloop(namespace: str, pod: str, container: Optional[str], *, dump_json: bool) -> None:
    from doctor.pipeline.pipeline import diagnose_crash_loop
    from doctor.report import render_crash_loop

    issues = diagnose_crash_loop(namespace, pod, container)
    _emit(issues, lambda: render_crash_loop(pod, issues), dump_json)


def cmd_logs(
    namespace: str, pod: str, container: Optional[str], tail_lines: Optional[int], *, dump_json: bool
) -> None:
    from doctor.pipeline.pipeline import analyze_logs
    from doctor.report import render_log_analysis

    analysis = analyze_logs(namespace, pod, container, tail_lines)
    _emit(analysis, lambda: render_log_analysis(analysis), dump_json)


def cmd_cluster(namespace: Optional[str], *, dump_json: bool) -> None:
    from doctor.pipeline.pipeline import diagnose_cluster_health
    from doctor.report import render_cluster_health

    health = diagnose_cluster_health(namespace)
    _emit(health, lambda: render_cluster_health(health), dump_json)


def cmd_resources(namespace: str, pod: Optional[str], *, dump_json: bool) -> None:
    from doctor.pipeline.pipeline import check_resources
    from doctor.report import render_resources

    reports = check_resources(namespace, pod)
    _emit(reports, lambda: render_resources(reports), dump_json)


def cmd_events(namespace: str, resource: Optional[str], show_normal: bool, *, dump_json: bool) -> None:
    from doctor.pipeline.pipeline import check_events
    from doctor.report import render_events

    report = check_events(namespace, resource, show_normal)
    _emit(report, lambda: render_events(report), dump_json)


def cmd_namespaces(*, dump_json: bool) -> None:
    from doctor.pipeline.pipeline import list_namespaces
    from doctor.report import render_namespaces

    namespaces = list_namespaces()
    _emit(namespaces, lambda: render_namespaces(namespaces), dump_json)


def cmd_pods(namespace: str, show_all: bool, *, dump_json: bool) -> None:
    from doctor.pipeline.pipeline import list_pods
    from doctor.report import render_pod_list

    entries = list_pods(namespace, show_all)
    _emit(entries, lambda: render_pod_list(namespace, entries), dump_json)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Diagnose unhealthy Kubernetes workloads (read-only)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full pod diagnosis
  python main.py pod -n default my-app-7d9f8b-x2k4p

  # Why is this container restarting?
  python main.py crashloop -n default my-app-7d9f8b-x2k4p -c app

  # Cluster-wide health as JSON
  python main.py --dump-json cluster
        """,
    )
    parser.add_argument(
        "--dump-json",
        action="store_true",
        help="Print result JSON to stdout instead of the markdown report",
    )
    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("pod", help="Comprehensive pod diagnostics (state, events, resources)")
    p.add_argument("pod", help="Pod name")
    p.add_argument("--namespace", "-n", default="default", help="Namespace (default: default)")

    p = sub.add_parser("crashloop", help="CrashLoopBackOff root cause from exit codes and previous logs")
    p.add_argument("pod", help="Pod name")
    p.add_argument("--namespace", "-n", default="default", help="Namespace (default: default)")
    p.add_argument("--container", "-c", help="Only this container")

    p = sub.add_parser("logs", help="Detect known error patterns and repeated errors in container logs")
    p.add_argument("pod", help="Pod name")
    p.add_argument("--namespace", "-n", default="default", help="Namespace (default: default)")
    p.add_argument("--container", "-c", help="Container name (optional)")
    p.add_argument(
        "--tail-lines", type=int, help="Number of recent lines to analyze (default: DOCTOR_LOG_TAIL_LINES or 500)"
    )

    p = sub.add_parser("cluster", help="Cluster-wide node and pod health")
    p.add_argument("--namespace", "-n", help="Only this namespace (default: all)")

    p = sub.add_parser("resources", help="Compare CPU/memory usage against requests and limits")
    p.add_argument("--namespace", "-n", default="default", help="Namespace (default: default)")
    p.add_argument("--pod", help="Specific pod (default: every pod in the namespace)")

    p = sub.add_parser("events", help="Warning events for a namespace or resource")
    p.add_argument("--namespace", "-n", default="default", help="Namespace (default: default)")
    p.add_argument("--resource", help="Involved object name (optional)")
    p.add_argument("--show-normal", action="store_true", help="Show Normal events too")

    sub.add_parser("namespaces", help="List namespaces")

    p = sub.add_parser("pods", help="List problematic pods in a namespace")
    p.add_argument("--namespace", "-n", default="default", help="Namespace (default: default)")
    p.add_argument("--all", dest="show_all", action="store_true", help="Show healthy pods too")

    return parser


def main(argv: Optional[list] = None) -> None:
    """CLI entry point."""
    from doctor.config import load_doctor_config

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.getLogger().setLevel(getattr(logging, load_doctor_config().log_level, logging.INFO))

    try:
        if args.command == "pod":
            cmd_pod(args.namespace, args.pod, dump_json=args.dump_json)
        elif args.command == "crashloop":
            cmd_crashloop(args.namespace, args.pod, args.container, dump_json=args.dump_json)
        elif args.command == "logs":
            cmd_logs(args.namespace, args.pod, args.container, args.tail_lines, dump_json=args.dump_json)
        elif args.command == "cluster":
            cmd_cluster(args.namespace, dump_json=args.dump_json)
        elif args.command == "resources":
            cmd_resources(args.namespace, args.pod, dump_json=args.dump_json)
        elif args.command == "events":
            cmd_events(args.namespace, args.resource, args.show_normal, dump_json=args.dump_json)
        elif args.command == "namespaces":
            cmd_namespaces(dump_json=args.dump_json)
        elif args.command == "pods":
            cmd_pods(args.namespace, args.show_all, dump_json=args.dump_json)
        else:
            parser.print_help()
            print("\n💡 Tip: Use `pods -n <namespace>` to find problematic pods")

    except Exception as e:
        print(f"❌ Diagnosis failed: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
