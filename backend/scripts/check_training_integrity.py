#!/usr/bin/env python3
"""
Report training data that breaks engine invariants:

- trainings with more than one active test
- (user, test) pairs with more than one in-progress attempt
- per-test scoring sets: active vs soft-deleted question points

Exit code 1 when faults are found.
"""
import sys

from aerolms.database import session_scope
from aerolms.apps.training.integrity import find_integrity_faults, scoring_set_summaries


def main() -> int:
    with session_scope() as session:
        report = find_integrity_faults(session)

        print("Scoring sets (active tests):")
        for summary in scoring_set_summaries(session):
            print(
                f"- {summary.test_id} {summary.title!r}: "
                f"{summary.auto_scored_points} auto-scored / {summary.active_points} active points, "
                f"{summary.deleted_questions} deleted question(s) carrying {summary.deleted_points} point(s)"
            )

        for item in report.multiple_active_tests:
            print(f"MULTIPLE ACTIVE TESTS: training {item.code} ({item.training_id}) -> {', '.join(item.test_ids)}")
        for item in report.duplicate_open_attempts:
            print(
                f"DUPLICATE OPEN ATTEMPTS: user {item.user_id} test {item.test_id} -> {', '.join(item.attempt_ids)}"
            )
        for item in report.unscorable_tests:
            print(f"UNSCORABLE TEST: {item.test_id} {item.title!r} has no auto-scored points")

        if report.is_clean:
            print("No integrity faults found.")
            return 0
        return 1


if __name__ == "__main__":
    sys.exit(main())
