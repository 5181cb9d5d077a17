#!/usr/bin/env python3
import argparse
import logging

from aerolms.database import session_scope
from aerolms.apps.personnel.columns import discover_training_columns
from aerolms.apps.training.catalog import synchronize_catalog


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Create/retire training catalog rows from the personnel table's columns."
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List detected column sets without touching the catalog.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s")

    with session_scope() as session:
        if args.dry_run:
            column_sets = discover_training_columns(session)
            if not column_sets:
                print("No training columns detected.")
                return
            for entry in column_sets:
                state = "complete" if entry.is_complete else "incomplete (missing: " + ", ".join(entry.missing_fields()) + ")"
                print(f"- {entry.code}: {state}")
            return

        result = synchronize_catalog(session)
        print(f"Created:    {', '.join(result.created) or '-'}")
        print(f"Restored:   {', '.join(result.updated) or '-'}")
        print(f"Incomplete: {', '.join(result.marked_incomplete) or '-'}")
        print(f"Retired:    {', '.join(result.retired) or '-'}")


if __name__ == "__main__":
    main()
