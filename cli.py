import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

from catalog import TEMPLATES, find_exercise
from cli_tools import ClipboardTools
from config import APP_VERSION, YamlConfig
from db import Store
from errors import WorkoutLogError
from report_service import ReportService
from session_service import SessionService

logger = logging.getLogger(__name__)


def parse_set(value: str) -> tuple[float, int]:
    """Parse ``WEIGHTxREPS`` (``40x10``, ``42.5×8``) into a tuple."""
    text = value.lower().replace("×", "x")
    try:
        weight, reps = text.split("x", 1)
        return float(weight), int(reps)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WEIGHTxREPS, got {value!r}")


def output_report(text: str, copy: bool = False) -> None:
    """Print ``text``, or copy it when asked and print it if copying fails."""
    if copy:
        try:
            ClipboardTools.copy(text)
            print("Report copied to clipboard.")
            return
        except RuntimeError as e:
            logger.warning("clipboard copy failed: %s", e)
            print("Copy failed; copy the report below manually.", file=sys.stderr)
    print(text)


def list_templates() -> None:
    for template in TEMPLATES.values():
        print(f"{template.id}: {template.name}")
        for exercise_id in template.exercises:
            exercise = find_exercise(exercise_id)
            print(f"  {exercise_id} - {exercise.name} ({exercise.group})")


async def start_workout(service: SessionService, template_id: str) -> str:
    session = await service.start_workout(template_id)
    print(session.workout.id)
    return session.workout.id


async def save_cardio(
    service: SessionService, workout_id: str, cardio_type: str, minutes: int, notes: str
) -> None:
    session = await service.resume_workout(workout_id)
    cardio = await service.save_cardio(session, cardio_type, minutes, notes)
    if cardio is None:
        print("No cardio saved.")
    else:
        print(f"Saved: {cardio.type}, {cardio.minutes} min")


async def log_exercise(
    service: SessionService,
    workout_id: str,
    exercise_id: str,
    sets: list[tuple[float, int]],
    notes: str = "",
) -> None:
    session = await service.resume_workout(workout_id)
    view = await service.open_exercise(session, exercise_id)
    draft = view.draft
    draft.resize(len(sets))
    for i, (weight, reps) in enumerate(sets, start=1):
        draft.update_set(i, weight, reps)
    draft.notes = notes
    log = await service.save_exercise_log(session)
    stats = await service.stats.compute_stats(exercise_id)
    print(f"Saved {len(log.sets)} sets of {exercise_id}.")
    print(f"Last: {ReportService.format_top(stats.last.top if stats.last else None)}")
    if (await service.load_settings()).show_best:
        print(f"Best: {ReportService.format_top(stats.best.top if stats.best else None)}")


async def suggest(service: SessionService, workout_id: str, exercise_id: str) -> str:
    session = await service.resume_workout(workout_id)
    text = await service.request_suggestion(session, exercise_id)
    print(f"Suggestion: {text}")
    return text


async def save_action(service: SessionService, exercise_id: str, text: str) -> None:
    if find_exercise(exercise_id) is None:
        raise ValueError(f"unknown exercise: {exercise_id}")
    await service.save_action(exercise_id, text)
    print("Action saved.")


async def finish_workout(service: SessionService, workout_id: str, copy: bool) -> None:
    session = await service.resume_workout(workout_id)
    output_report(await service.finish_workout(session), copy)


async def show_report(service: SessionService, workout_id: str, copy: bool) -> None:
    output_report(await service.build_report(workout_id), copy)


async def show_history(service: SessionService) -> None:
    workouts = await service.list_history()
    if not workouts:
        print("No workouts yet.")
        return
    fmt = service.reports.format_date
    for w in workouts:
        finished = fmt(w.finished_at) if w.is_finished else "in progress"
        cardio = f"{w.cardio.type} {w.cardio.minutes} min" if w.cardio and w.cardio.type else "—"
        print(f"{w.id}  {w.template_name}  {fmt(w.started_at)}  ({finished})  cardio: {cardio}")


async def delete_workout(service: SessionService, workout_id: str) -> None:
    await service.delete_workout(workout_id)
    print("Deleted.")


async def backup(service: SessionService, out: Optional[str]) -> str:
    snapshot = await service.export_snapshot()
    path = out or ReportService.backup_filename(snapshot.exported_at)
    if os.path.isdir(path):
        path = os.path.join(path, ReportService.backup_filename(snapshot.exported_at))
    with open(path, "w", encoding="utf-8") as f:
        f.write(ReportService.dump_snapshot(snapshot))
    print(f"Backup written to {path}")
    return path


async def restore(service: SessionService, src: str) -> None:
    with open(src, "rb") as f:
        data = f.read()
    snapshot = await service.import_snapshot(data)
    print(
        f"Restored {len(snapshot.workouts)} workouts, "
        f"{len(snapshot.exercise_logs)} exercise logs, {len(snapshot.actions)} actions."
    )


async def clear_all(service: SessionService, yes: bool) -> None:
    if not yes:
        raise ValueError("refusing to delete all data without --yes")
    await service.clear_all()
    print("Cleared.")


async def update_settings(
    service: SessionService,
    max_weight: Optional[float],
    show_best: Optional[bool],
) -> None:
    changes = {}
    if max_weight is not None:
        changes["max_weight_kg"] = max_weight
    if show_best is not None:
        changes["show_best"] = show_best
    settings = await service.save_settings(**changes) if changes else await service.load_settings()
    for key, value in settings.to_dict().items():
        print(f"{key}: {value}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Offline workout log")
    parser.add_argument("--db", help="SQLite database file")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("templates")

    st = sub.add_parser("start")
    st.add_argument("template", help="template id or 'cardio'")

    cdo = sub.add_parser("cardio")
    cdo.add_argument("workout")
    cdo.add_argument("type", help="cardio type; empty string removes cardio")
    cdo.add_argument("minutes", type=int, nargs="?", default=0)
    cdo.add_argument("--notes", default="")

    lg = sub.add_parser("log")
    lg.add_argument("workout")
    lg.add_argument("exercise")
    lg.add_argument("sets", nargs="+", type=parse_set, metavar="WEIGHTxREPS")
    lg.add_argument("--notes", default="")

    sg = sub.add_parser("suggest")
    sg.add_argument("workout")
    sg.add_argument("exercise")

    act = sub.add_parser("action")
    act.add_argument("exercise")
    act.add_argument("text")

    fin = sub.add_parser("finish")
    fin.add_argument("workout")
    fin.add_argument("--copy", action="store_true")

    rep = sub.add_parser("report")
    rep.add_argument("workout")
    rep.add_argument("--copy", action="store_true")

    sub.add_parser("history")

    dl = sub.add_parser("delete")
    dl.add_argument("workout")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", required=True)

    clr = sub.add_parser("clear")
    clr.add_argument("--yes", action="store_true")

    sts = sub.add_parser("settings")
    sts.add_argument("--max-weight", type=float)
    best = sts.add_mutually_exclusive_group()
    best.add_argument("--show-best", dest="show_best", action="store_true", default=None)
    best.add_argument("--hide-best", dest="show_best", action="store_false")
    return parser


async def run(args: argparse.Namespace, cfg: dict) -> None:
    if args.cmd == "templates":
        list_templates()
        return
    store = await asyncio.to_thread(Store, args.db or cfg["db_path"])
    service = SessionService(
        store,
        timezone=cfg["timezone"],
        settings_overrides=cfg.get("settings") or {},
    )
    if args.cmd == "start":
        await start_workout(service, args.template)
    elif args.cmd == "cardio":
        await save_cardio(service, args.workout, args.type, args.minutes, args.notes)
    elif args.cmd == "log":
        await log_exercise(service, args.workout, args.exercise, args.sets, args.notes)
    elif args.cmd == "suggest":
        await suggest(service, args.workout, args.exercise)
    elif args.cmd == "action":
        await save_action(service, args.exercise, args.text)
    elif args.cmd == "finish":
        await finish_workout(service, args.workout, args.copy)
    elif args.cmd == "report":
        await show_report(service, args.workout, args.copy)
    elif args.cmd == "history":
        await show_history(service)
    elif args.cmd == "delete":
        await delete_workout(service, args.workout)
    elif args.cmd == "backup":
        await backup(service, args.out)
    elif args.cmd == "restore":
        await restore(service, args.src)
    elif args.cmd == "clear":
        await clear_all(service, args.yes)
    elif args.cmd == "settings":
        await update_settings(service, args.max_weight, args.show_best)


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = YamlConfig(args.config).load()
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    level = logging.DEBUG if args.verbose > 1 else logging.INFO if args.verbose else cfg["log_level"]
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    try:
        asyncio.run(run(args, cfg))
    except (WorkoutLogError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
