"""
Exporta o ledger da migração para CSV e imprime um resumo por tipo e
status.  Com ``--failed`` apenas as tentativas que falharam são
exportadas, útil para revisar as mensagens de erro.
"""

import argparse
import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from wordpress_migrate.config import DEFAULT_CONFIG_FILE, load_config  # noqa: E402
from wordpress_migrate.migrators.ledger import MigrationLedger  # noqa: E402
from wordpress_migrate.migrators.memory_store import InMemoryEntityStore  # noqa: E402
from wordpress_migrate.utils.logger import MigrationLogger  # noqa: E402


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Exporta o ledger da migração para CSV")
    p.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="Arquivo de configuração JSON")
    p.add_argument("--db", default=None, help="Arquivo DuckDB (padrão: ledger.path do config)")
    p.add_argument("--output", default="reports/migration/migration_log.csv", help="Arquivo CSV de saída")
    p.add_argument("--type", dest="migration_type", default=None, help="Filtra por tipo (users, terms, media, posts)")
    p.add_argument("--failed", action="store_true", help="Exporta apenas entradas com status 'failed'")
    return p.parse_args(argv)


def export_migration_log(db_path: str, output: str, migration_type=None, failed_only=False) -> int:
    """Grava o CSV e retorna o número de linhas exportadas."""
    logger = MigrationLogger(None, echo=False)
    with MigrationLedger(InMemoryEntityStore(), logger, db_path) as ledger:
        df = ledger.to_dataframe()
        summary = ledger.summary()

    if migration_type:
        df = df[df["migration_type"] == migration_type]
    if failed_only:
        df = df[df["status"] == "failed"]

    os.makedirs(os.path.dirname(output) or ".", exist_ok=True)
    df.to_csv(output, index=False)

    for kind, counts in summary.items():
        parts = ", ".join(f"{status}={total}" for status, total in sorted(counts.items()))
        print(f"{kind}: {parts}")
    print(f"{len(df)} linhas exportadas para {output}")
    return len(df)


def main(argv=None) -> None:
    args = parse_args(argv)
    db_path = args.db or load_config(args.config)["ledger"]["path"]
    if not os.path.exists(db_path):
        print(f"Ledger não encontrado: {db_path}")
        sys.exit(1)
    export_migration_log(db_path, args.output, args.migration_type, args.failed)


if __name__ == "__main__":
    main()
