"""
Inicializa o ledger da migração (tabela ``wordpress_migrate_log``) em um
arquivo DuckDB.  Rodar mais de uma vez não altera uma tabela existente.
"""

import argparse
import os
import sys

import duckdb

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from wordpress_migrate.config import DEFAULT_CONFIG_FILE, load_config  # noqa: E402
from wordpress_migrate.migrators.ledger import TABLE_NAME, initialize_schema  # noqa: E402


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Cria a tabela do ledger da migração")
    p.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="Arquivo de configuração JSON")
    p.add_argument("--db", default=None, help="Arquivo DuckDB (padrão: ledger.path do config)")
    return p.parse_args(argv)


def initialize_ledger(db_path: str) -> bool:
    """
    Cria o arquivo e a tabela do ledger.

    Retorna ``True`` se a tabela foi criada agora, ``False`` se já existia.
    """
    # Garante que o diretório de dados exista
    os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)

    con = duckdb.connect(database=db_path, read_only=False)
    try:
        existing_tables = con.execute("SHOW TABLES;").fetchall()
        if (TABLE_NAME,) in existing_tables:
            print(f"A tabela '{TABLE_NAME}' já existe. Nenhuma ação foi tomada.")
            return False

        initialize_schema(con)
        print(f"Tabela '{TABLE_NAME}' criada em {db_path}.")
        return True
    finally:
        con.close()


def main(argv=None) -> None:
    args = parse_args(argv)
    db_path = args.db or load_config(args.config)["ledger"]["path"]
    initialize_ledger(db_path)


if __name__ == "__main__":
    main()
