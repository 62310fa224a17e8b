import logging
import sys
from argparse import Namespace
from typing import List, Optional

from fixreconcile.args import ArgumentParser, get_arg_parser
from fixreconcile.config import load_config, override_config
from fixreconcile.context import ReconcileContext
from fixreconcile.errors import ReconcileError, OperationTimeoutError
from fixreconcile.logger import setup_logger, add_args as logging_add_args
from fixreconcile.reconciler import Reconciler, ChangeAction, load_desired
from fixreconcile.state import StateStore

log = logging.getLogger("fix.reconcile")


def add_args(arg_parser: ArgumentParser) -> None:
    arg_parser.add_argument("--config", dest="config", default=None, help="Path of the yaml configuration file")
    arg_parser.add_argument("--state", dest="state", default="fixreconcile.state.json", help="Path of the state file")
    arg_parser.add_argument("--desired", dest="desired", default=None, help="Path of the desired resources (yaml)")
    arg_parser.add_argument("--project", dest="project", default=None, help="Default GCP project")
    arg_parser.add_argument("--region", dest="region", default=None, help="Default GCP region")
    arg_parser.add_argument("--zone", dest="zone", default=None, help="Default GCP zone")
    subparsers = arg_parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("plan", help="Show the changes required to reach the desired state")
    subparsers.add_parser("apply", help="Create, replace and delete resources to reach the desired state")
    subparsers.add_parser("destroy", help="Delete all resources of the state")
    subparsers.add_parser("refresh", help="Read all resources of the state and drop deleted ones")
    import_parser = subparsers.add_parser("import", help="Import an existing resource into the state")
    import_parser.add_argument("address", help="Address of the resource: <kind>.<name>, e.g. gcp_address.web")
    import_parser.add_argument("import_id", help="Id of the remote resource, e.g. projects/p/regions/r/addresses/a")


def run(args: Namespace) -> int:
    config = override_config(
        load_config(args.config), {"project": args.project, "region": args.region, "zone": args.zone}
    )
    context = ReconcileContext.from_config(config.gcp)
    store = StateStore(args.state)
    state = store.load()
    reconciler = Reconciler(context, store)

    if args.command in ("plan", "apply"):
        if not args.desired:
            raise ReconcileError(f"{args.command} requires --desired")
        desired = load_desired(args.desired)
        reconciler.refresh(state)
        changes = reconciler.plan(desired, state)
        pending = [c for c in changes if c.action != ChangeAction.noop]
        for change in pending:
            print(change)
        if not pending:
            print("No changes.")
        if args.command == "apply":
            reconciler.apply(changes, state)
    elif args.command == "destroy":
        reconciler.destroy(state)
    elif args.command == "refresh":
        for address in reconciler.refresh(state):
            print(f"removed {address}")
    elif args.command == "import":
        record = reconciler.import_resource(args.address, args.import_id, state)
        print(f"imported {record.address} as {record.id}")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    arg_parser = get_arg_parser(description="Reconcile GCP addresses and routes")
    add_args(arg_parser)
    logging_add_args(arg_parser)
    args = arg_parser.parse_args(argv)
    config = load_config(args.config)
    setup_logger(
        "fixreconcile",
        verbose=args.verbose or bool(config.logging.verbose),
        trace=args.trace,
        quiet=args.quiet or bool(config.logging.quiet),
        json_format=bool(config.logging.json_format),
    )
    try:
        sys.exit(run(args))
    except OperationTimeoutError as e:
        log.error(f"{e} Refresh the state before you retry.")
        sys.exit(2)
    except ReconcileError as e:
        log.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
