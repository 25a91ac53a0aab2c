"""CLI entry point: keygate serve | create-account | issue-key | sweep"""

import argparse
import sys
from datetime import timedelta

from keygate.api_errors.exceptions import KeygateAPIError
from keygate.logging_config.config import LoggingConfig
from keygate.logging_config.setup import configure_logging
from keygate.plans.config import PlanStatus, PlanTier
from keygate.plans.models import PlanState
from keygate.services import build_services
from keygate.settings import get_settings


def _serve(args) -> int:
    import uvicorn

    uvicorn.run(
        "keygate.api.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level="info",
    )
    return 0


def _persistent_services():
    """Services over the configured store, or None when that store lives only in this process."""
    if get_settings().store_backend == "memory":
        print(
            "Error: the memory store does not outlive this command; "
            "set KEYGATE_STORE_BACKEND=sql and KEYGATE_DATABASE_URL",
            file=sys.stderr,
        )
        return None
    return build_services(executor=None)


def _create_account(args) -> int:
    services = _persistent_services()
    if services is None:
        return 1
    now = services.clock.now()
    plan = PlanState.for_tier(
        args.account_id,
        PlanTier(args.tier),
        status=PlanStatus(args.status),
        cycle_start=now,
        cycle_end=now + timedelta(days=args.cycle_days),
    )
    services.store.save_plan(plan)
    print(f"Account {plan.account_id}: {plan.tier.value} ({plan.status.value}), "
          f"cycle ends {plan.cycle_end.isoformat()}")
    return 0


def _issue_key(args) -> int:
    services = _persistent_services()
    if services is None:
        return 1
    expires_at = None
    if args.expires_in_days:
        expires_at = services.clock.now() + timedelta(days=args.expires_in_days)
    try:
        issued = services.keys.issue_key(args.account_id, args.name, expires_at)
    except KeygateAPIError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    print(f"Key id: {issued.record.key_id}")
    print(f"Key:    {issued.key}")
    print("Store the key now; it cannot be shown again.")
    return 0


def _sweep(args) -> int:
    services = _persistent_services()
    if services is None:
        return 1
    removed = services.rate_limiter.sweep()
    print(f"Removed {removed} expired rate window records")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Keygate - API access gateway"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=_serve)

    account = sub.add_parser("create-account", help="Create or reset an account plan")
    account.add_argument("account_id")
    account.add_argument("--tier", choices=[t.value for t in PlanTier], default=PlanTier.FREE.value)
    account.add_argument("--status", choices=[s.value for s in PlanStatus], default=PlanStatus.ACTIVE.value)
    account.add_argument("--cycle-days", type=int, default=30)
    account.set_defaults(func=_create_account)

    key = sub.add_parser("issue-key", help="Issue an API key for an account")
    key.add_argument("account_id")
    key.add_argument("name")
    key.add_argument("--expires-in-days", type=int, default=None)
    key.set_defaults(func=_issue_key)

    sweep = sub.add_parser("sweep", help="Purge expired rate window records")
    sweep.set_defaults(func=_sweep)

    args = parser.parse_args(argv)
    configure_logging(LoggingConfig.from_settings(get_settings()))
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
