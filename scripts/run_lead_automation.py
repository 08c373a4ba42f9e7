#!/usr/bin/env python3
"""
Lead Automation Runner

Entry point for the external scheduler (cron). Re-scores and re-classifies
active leads, or runs the overdue follow-up or idle-lead sweep.

Usage:
    python run_lead_automation.py batch
    python run_lead_automation.py batch --tenant org_2abc
    python run_lead_automation.py overdue
    python run_lead_automation.py idle

Suggested crontab:
    0 * * * *  python scripts/run_lead_automation.py batch
    0 5 * * *  python scripts/run_lead_automation.py overdue
    0 5 * * *  python scripts/run_lead_automation.py idle
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from services.automation_service import BatchRunResult


def print_summary(job: str, result: BatchRunResult) -> None:
    print()
    print("=" * 60)
    print(f"LEAD AUTOMATION SUMMARY ({job})")
    print("=" * 60)
    print(f"Scope:            {result.scope}")
    if result.skipped:
        print("Skipped:          another run holds the lease")
        print("=" * 60)
        return
    print(f"Processed:        {result.processed_count}")
    print(f"Status changes:   {result.status_changes}")
    if result.lease_lost:
        print("Stopped early:    lease taken over by another run")
    print(f"Failures:         {len(result.failures)}")
    for failure in result.failures[:20]:
        print(f"  lead {failure.lead_id}: {failure.error_type}: {failure.message}")
    if len(result.failures) > 20:
        print(f"  ... and {len(result.failures) - 20} more")
    print("=" * 60)


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Run periodic lead automation jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Hourly re-scoring of every organization
  python run_lead_automation.py batch

  # One organization only
  python run_lead_automation.py batch --tenant org_2abc

  # Daily overdue follow-up check
  python run_lead_automation.py overdue

  # Daily reminder for leads not contacted in two days
  python run_lead_automation.py idle
        """
    )

    parser.add_argument(
        "job",
        choices=["batch", "overdue", "idle"],
        help="Which job to run"
    )

    parser.add_argument(
        "--tenant",
        "-t",
        help="Restrict the run to one organization (default: all)"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        from services.wiring import get_automation_service

        service = get_automation_service()
        if args.job == "batch":
            result = service.run_batch(tenant_id=args.tenant)
        elif args.job == "overdue":
            result = service.run_overdue_follow_up_sweep(tenant_id=args.tenant)
        else:
            result = service.run_idle_lead_sweep(tenant_id=args.tenant)

        print_summary(args.job, result)
        return 0

    except KeyboardInterrupt:
        print("\n\nRun interrupted by user")
        return 130

    except Exception as e:
        logging.getLogger(__name__).exception("Lead automation %s run failed", args.job)
        print(f"\nERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
