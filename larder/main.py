"""Command-line entry point: `larder <command>` on the local state store."""
import argparse
import json
import logging
import sys
from pathlib import Path

from larder.app.controller import AppController
from larder.events.Event_Bus import GLOBAL_EVENT_BUS
from larder.infra.Key_Value_Store import JsonFileStore
from larder.infra.State_Repository import StateRepository
from larder.infra.paths import EXPORT_DIR, STORE_DIR
from larder.utilities.config import LOG_LEVEL, QUARANTINE_LIMIT, STRICT_LOGS
from larder.utilities.export_import import export_to_file
from larder.utilities.quantities import format_euro
from larder.utilities.statistics import RANGE_30_DAYS, RANGE_MODES

logger = logging.getLogger(__name__)


def build_controller(store_dir: Path = STORE_DIR) -> AppController:
    repository = StateRepository(JsonFileStore(store_dir), bus=GLOBAL_EVENT_BUS,
                                 quarantine_limit=QUARANTINE_LIMIT, strict_logs=STRICT_LOGS)
    controller = AppController(repository, bus=GLOBAL_EVENT_BUS)
    controller.load()
    return controller


def _print_json(data):
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def cmd_status(ctl: AppController, args) -> int:
    _print_json(ctl.diagnostics())
    print(ctl.state)
    return 0


def cmd_export(ctl: AppController, args) -> int:
    if args.file == '-':
        print(ctl.export_text())
        return 0
    path = export_to_file(ctl.state, Path(args.file) if args.file else None, ctl.clock(), EXPORT_DIR)
    print(f"✓ Exported to: {path}")
    return 0


def cmd_import(ctl: AppController, args) -> int:
    text = Path(args.file).read_text(encoding='utf-8')
    try:
        report = ctl.import_text(text)
    except ValueError as e:
        print(f"✗ Import failed: {e}")
        return 1
    print(f"✓ Imported from: {args.file} (restore point written)")
    for warning in report.warnings:
        print(f"  ! {warning}")
    return 0


def cmd_restore(ctl: AppController, args) -> int:
    if not ctl.restore():
        print("✗ No restore point available")
        return 1
    print("✓ Restore point loaded")
    return 0


def cmd_repair(ctl: AppController, args) -> int:
    report = ctl.repair_now()
    _print_json(report.to_dict() if report else {})
    return 0


def cmd_demo(ctl: AppController, args) -> int:
    ctl.load_demo()
    print(f"✓ Demo data loaded: {ctl.state}")
    return 0


def cmd_plan(ctl: AppController, args) -> int:
    summary = ctl.plan_summary()
    if not summary:
        print("Meal plan is empty.")
        return 0
    for row in summary.values():
        print(f"{row['name']:<30} need {row['need']:g} {row['unit']}, have {row['have']:g}, "
              f"missing {row['missing']:g} -> {row['required_packs']} pack(s)")
    return 0


def cmd_reconcile(ctl: AppController, args) -> int:
    if args.exact:
        if not args.yes:
            print("✗ Exact mode can reduce the shopping list; repeat with --yes to confirm")
            return 1
        required = ctl.reconcile_exact(confirm=True)
    else:
        required = ctl.reconcile_raise()
    for entry in ctl.state.shopping:
        ing = ctl.state.ingredient(entry.ingredient_id)
        plan = f" (plan {entry.plan_min})" if entry.plan_min is not None else ""
        print(f"{entry.packs} x {ing.name if ing else entry.ingredient_id}{plan}")
    print(f"{len(required)} ingredient(s) required by the plan")
    return 0


def cmd_pantry(ctl: AppController, args) -> int:
    for group in ctl.pantry_groups():
        days = "-" if group['days_left'] is None else f"{group['days_left']}d"
        print(f"{group['name']:<30} {group['total_amount']:g} {group['unit']:<4} "
              f"{format_euro(group['total_cost']):>10}  {group['bucket']:<4} {days}")
    return 0


def cmd_stats(ctl: AppController, args) -> int:
    report = ctl.statistics(args.range)
    if args.json:
        _print_json(report)
        return 0
    totals = report['totals']
    print(f"Range {report['range']['key']} ({report['range']['days']} days)")
    print(f"  Spent:  {format_euro(totals['spent'])} ({format_euro(totals['spent_per_day'])}/day)")
    print(f"  Wasted: {format_euro(totals['wasted'])}")
    print(f"  Cooked: {totals['cook_count']} time(s), {totals['cook_seconds'] // 60} min")
    for i, row in enumerate(report['top_recipes'], 1):
        print(f"  {i}. {row['name']}: {row['count']}x, {row['seconds'] // 60} min")
    for row in report['spend_by_ingredient']:
        print(f"  {row['name']:<30} {format_euro(row['total']):>10}")
    for row in report['waste_by_ingredient']:
        print(f"  wasted {row['name']:<23} {format_euro(row['total']):>10}")
    return 0


def cmd_quarantine(ctl: AppController, args) -> int:
    keys = ctl.repository.list_quarantines()
    if not keys:
        print("No quarantined payloads.")
    for key in keys:
        print(key)
    return 0


def cmd_reset(ctl: AppController, args) -> int:
    if not args.yes:
        print("✗ This deletes all local data; repeat with --yes to confirm")
        return 1
    ctl.repository.delete_all_local_data()
    print("✓ All local data deleted")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='larder', description='Local pantry, meal plan and shopping list')
    parser.add_argument('--data-dir', type=Path, default=STORE_DIR, help='State store directory')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('status', help='Storage status, audit report and diagnostics').set_defaults(func=cmd_status)
    p = sub.add_parser('export', help='Export the state as JSON')
    p.add_argument('--file', help="Output file ('-' for stdout)")
    p.set_defaults(func=cmd_export)
    p = sub.add_parser('import', help='Import an export (writes a restore point first)')
    p.add_argument('--file', required=True, help='Input file')
    p.set_defaults(func=cmd_import)
    sub.add_parser('restore', help='Load the restore point').set_defaults(func=cmd_restore)
    sub.add_parser('repair', help='Re-run reference repair and save').set_defaults(func=cmd_repair)
    sub.add_parser('demo', help='Load demo data (writes a restore point first)').set_defaults(func=cmd_demo)
    sub.add_parser('plan', help='Show the meal plan summary').set_defaults(func=cmd_plan)
    p = sub.add_parser('reconcile', help='Sync the shopping list with the meal plan')
    p.add_argument('--exact', action='store_true', help='Recompute plan entries exactly (may reduce)')
    p.add_argument('--yes', action='store_true', help='Confirm exact mode')
    p.set_defaults(func=cmd_reconcile)
    sub.add_parser('pantry', help='Show the grouped pantry').set_defaults(func=cmd_pantry)
    p = sub.add_parser('stats', help='Spending, waste and cooking statistics')
    p.add_argument('--range', choices=RANGE_MODES, default=RANGE_30_DAYS, help='Date range')
    p.add_argument('--json', action='store_true', help='Print the full report as JSON')
    p.set_defaults(func=cmd_stats)
    sub.add_parser('quarantine', help='List quarantined payloads').set_defaults(func=cmd_quarantine)
    p = sub.add_parser('reset', help='Delete all local data')
    p.add_argument('--yes', action='store_true', help='Confirm deletion')
    p.set_defaults(func=cmd_reset)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    controller = build_controller(args.data_dir)
    return args.func(controller, args)


if __name__ == "__main__":
    sys.exit(main())
