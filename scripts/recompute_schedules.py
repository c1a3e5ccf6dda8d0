"""
Schedule Recompute Script
Replays every card's review history through the SM-2 scheduler and reports
cards whose stored schedule no longer matches.

Usage:
    python scripts/recompute_schedules.py [--apply] [--user USER_ID]
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from services.flashcard_service import recompute_schedules


def main(argv):
    apply = '--apply' in argv
    user_id = None
    if '--user' in argv:
        user_id = int(argv[argv.index('--user') + 1])

    app = create_app()

    with app.app_context():
        print("=" * 60)
        print("SCHEDULE RECOMPUTE" + (" (APPLY)" if apply else " (DRY RUN)"))
        print("=" * 60)

        drifted = recompute_schedules(user_id=user_id, apply=apply)

        for item in drifted:
            stored = item['stored']
            replayed = item['replayed']
            print(
                f"Flashcard {item['flashcard_id']}: "
                f"ease {stored['ease_factor']} -> {replayed['ease_factor']}, "
                f"interval {stored['interval']} -> {replayed['interval']}, "
                f"repetitions {stored['repetitions']} -> {replayed['repetitions']}"
            )

        print(f"\n{len(drifted)} card(s) drifted" + (", updated" if apply and drifted else ""))
        print("=" * 60)


if __name__ == '__main__':
    main(sys.argv[1:])
