"""
Top-level package for the WordPress → Drupal migration utility.

This package bundles all components required to read content straight
from a WordPress database, turn it into Drupal users, taxonomy terms,
media and nodes, and keep a ledger of what has already been migrated so
that batches can be re-run safely.  Modules are split into subpackages:

* :mod:`wordpress_migrate.extractors` – legacy database connection and queries
* :mod:`wordpress_migrate.models` – typed legacy records and run results
* :mod:`wordpress_migrate.migrators` – ledger, media/content processors and
  the target entity stores
* :mod:`wordpress_migrate.utils` – logging, error reporting and helpers

Each layer receives its collaborators through its constructor; wiring is
done once in :mod:`wordpress_migrate.migration_tool`.
"""

__version__ = "0.2.0"
