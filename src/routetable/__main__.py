"""Command-line entry point: inspect a rule table or match a request against it.

    python -m routetable --routes routes.yaml --list
    python -m routetable --routes routes.yaml GET /blog/hello-world --host example.com
"""

import argparse
import logging
import sys

from routetable.core.config import load_config
from routetable.core.errors import RoutingError
from routetable.core.loader import load_table
from routetable.core.logging import RoutingLogger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="routetable", description=__doc__.splitlines()[0])
    parser.add_argument("--config", help="Configuration file (default: config/routetable.yaml)")
    parser.add_argument("--routes", help="Rule file or module:attribute, overrides routes.file")
    parser.add_argument("--list", action="store_true", help="Print the flattened rule table")
    parser.add_argument("--host", help="Hostname of the request")
    parser.add_argument("--ajax", action="store_true", help="Flag the request as AJAX")
    parser.add_argument("method", nargs="?", help="HTTP method")
    parser.add_argument("path", nargs="?", help="Decoded request path")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        0 on a match or a listing, 1 when nothing matched, 2 on errors
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.list and not (args.method and args.path is not None):
        parser.error("give METHOD and PATH, or --list")

    try:
        config = load_config(args.config)
        if args.routes:
            config.routes.file = args.routes
        structured_logger = RoutingLogger(config.logging)
        table = load_table(config)
    except (RoutingError, ValueError) as e:
        logging.getLogger(__name__).error(f"Cannot build rule table: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 2

    structured_logger.log_table_built(len(table), len(table.properties), config.routes.file)

    if args.list:
        for rule in table:
            methods = ",".join(sorted(rule.methods)) or "ANY"
            suffix = f" ({rule.name})" if rule.name else ""
            print(f"{methods} '{rule.path}' -> {rule.target_type.value.upper()} {rule.target}{suffix}")
        for name, value in table.properties.items():
            print(f"property {name} = {value!r}")
        return 0

    matched = table.match(args.method, args.host, args.ajax, args.path)
    if matched is None:
        print("no match")
        return 1

    print(matched)
    for key, value in matched.args.items():
        print(f"  {key} = {value!r}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
