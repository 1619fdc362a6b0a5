"""
Entry point for the WordPress to Drupal migration tool.

Sub-commands::

    python main.py test-connection
    python main.py preview [--limit 5]
    python main.py migrate [--types users posts] [--batch-size 50] [--offset 0]
    python main.py batch --request request.json      # or "-" for stdin
    python main.py configure --host db --name wp --username wp --save
    python main.py report [--output reports/migration/ledger.csv]
"""

import argparse
import json
import os
import sys

from wordpress_migrate.config import DEFAULT_CONFIG_FILE, load_config, save_config, update_settings, validate_batch_size
from wordpress_migrate.migration_tool import WordPressMigrationTool, summarize
from wordpress_migrate.migrators.ledger import MigrationLedger
from wordpress_migrate.migrators.memory_store import InMemoryEntityStore
from wordpress_migrate.models.results import RUN_ORDER
from wordpress_migrate.utils.errors import ConfigError, PreFlightCheckError
from wordpress_migrate.utils.logger import MigrationLogger
from wordpress_migrate.utils.pre_flight_checks import run_drupal_pre_flight_checks


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Migrate WordPress content into Drupal.")
    parser.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="Path to the JSON settings file.")
    parser.add_argument("--dry-run", action="store_true", help="Keep created entities in memory only.")
    parser.add_argument("--verbose", action="store_true", help="Print DEBUG messages.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("test-connection", help="Check the WordPress database connection.")

    preview = sub.add_parser("preview", help="List a few records of every category.")
    preview.add_argument("--limit", type=int, default=5)

    migrate = sub.add_parser("migrate", help="Migrate one batch of the selected categories.")
    migrate.add_argument("--types", nargs="+", default=[c.value for c in RUN_ORDER],
                         help="Categories to migrate: " + ", ".join(c.value for c in RUN_ORDER))
    migrate.add_argument("--batch-size", type=int, default=None)
    migrate.add_argument("--offset", type=int, default=0)
    migrate.add_argument("--skip-checks", action="store_true", help="Skip the Drupal pre-flight checks.")

    batch = sub.add_parser("batch", help="Process a JSON batch request.")
    batch.add_argument("--request", required=True, help="Request file, or '-' to read stdin.")

    configure = sub.add_parser("configure", help="Show or update the settings.")
    configure.add_argument("--host")
    configure.add_argument("--port", type=int)
    configure.add_argument("--name")
    configure.add_argument("--username")
    configure.add_argument("--password")
    configure.add_argument("--prefix")
    configure.add_argument("--base-url", help="WordPress site URL used for media downloads.")
    configure.add_argument("--batch-size", type=int)
    configure.add_argument("--drupal-url")
    configure.add_argument("--drupal-username")
    configure.add_argument("--drupal-password")
    configure.add_argument("--save", action="store_true", help="Write the settings file.")

    report = sub.add_parser("report", help="Summarize or export the migration ledger.")
    report.add_argument("--output", help="CSV file receiving the full ledger.")
    return parser


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _masked(config):
    masked = json.loads(json.dumps(config))
    for section in ("database", "drupal"):
        if masked.get(section, {}).get("password"):
            masked[section]["password"] = "********"
    return masked


def configure(args, config) -> int:
    if args.batch_size is not None:
        validate_batch_size(args.batch_size)
    update_settings(config, "database", {
        "host": args.host,
        "port": args.port,
        "name": args.name,
        "username": args.username,
        "password": args.password,
        "prefix": args.prefix,
    })
    update_settings(config, "wordpress", {"base_url": args.base_url})
    update_settings(config, "migration", {"batch_size": args.batch_size})
    update_settings(config, "drupal", {
        "base_url": args.drupal_url,
        "username": args.drupal_username,
        "password": args.drupal_password or None,
    })
    if args.save:
        path = save_config(config, args.config)
        print(f"Settings saved to {path}")
    _print_json(_masked(config))
    return 0


def report(args, config) -> int:
    path = config["ledger"]["path"]
    if not os.path.exists(path):
        print(f"Ledger not found: {path}", file=sys.stderr)
        return 1
    logger = MigrationLogger(config["reports"]["dir"], echo=False)
    with MigrationLedger(InMemoryEntityStore(), logger, path) as ledger:
        _print_json(ledger.summary())
        if args.output:
            os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
            ledger.to_dataframe().to_csv(args.output, index=False)
            print(f"Ledger exported to {args.output}")
    return 0


def main(argv=None) -> int:
    """
    Main function to run the WordPress to Drupal migration tool.
    """
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config)
        if args.dry_run:
            config["migration"]["dry_run"] = True

        if args.command == "configure":
            return configure(args, config)
        if args.command == "report":
            return report(args, config)

        logger = MigrationLogger(config["reports"]["dir"], min_level="DEBUG" if args.verbose else "INFO")
        with WordPressMigrationTool(config, logger=logger) as tool:
            if args.command == "test-connection":
                result = tool.test_connection()
                _print_json(result)
                return 0 if result["status"] == "ok" else 1

            if args.command == "preview":
                result = tool.preview(args.limit)
                _print_json(result)
                return 0 if result["status"] != "error" else 1

            if args.command == "migrate":
                if not (args.skip_checks or tool.dry_run or not config["drupal"].get("base_url")):
                    run_drupal_pre_flight_checks(config, logger)
                tool.log_message("Starting WordPress to Drupal migration.")
                results = tool.run(args.types, args.batch_size, args.offset)
                _print_json({
                    "results": {c.value: r.to_dict() for c, r in results.items()},
                    "totals": summarize(results),
                })
                return 0

            if args.command == "batch":
                if args.request == "-":
                    payload = json.load(sys.stdin)
                else:
                    with open(args.request, "r", encoding="utf-8") as f:
                        payload = json.load(f)
                result = tool.process_batch_request(payload)
                _print_json(result)
                return 1 if "error" in result else 0
    except (ConfigError, PreFlightCheckError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
