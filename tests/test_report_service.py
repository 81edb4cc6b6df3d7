import os
import sys
import json
import datetime
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import Store
from errors import InvalidBackupFormat
from models import Action, Cardio, ExerciseLog, SetEntry, TopSet, Workout
from report_service import COACHING_REQUEST, ReportService
from settings_schema import SettingsSchema
from stats_service import StatisticsService

UTC = datetime.timezone.utc
T0 = datetime.datetime(2024, 1, 1, 10, 0, tzinfo=UTC)


def at(minutes):
    return T0 + datetime.timedelta(minutes=minutes)


def make_log(wid, exercise_id, pairs, when, notes=""):
    return ExerciseLog(
        workout_id=wid,
        exercise_id=exercise_id,
        finished_at=when,
        notes=notes,
        sets=[
            SetEntry(set_index=i + 1, weight_kg=w, reps=r)
            for i, (w, r) in enumerate(pairs)
        ],
    )


@pytest.fixture
def store(tmp_path):
    return Store(str(tmp_path / "report.db"))


@pytest.fixture
def service(store):
    return ReportService(store, StatisticsService(store.exercise_logs))


async def seed(store):
    earlier = datetime.datetime(2023, 12, 25, 10, 0, tzinfo=UTC)
    await store.put(
        "workouts",
        Workout(
            id="w_0",
            template_id="w1",
            template_name="Chest, Arms & Stomach",
            started_at=earlier,
            finished_at=earlier + datetime.timedelta(minutes=40),
        ),
    )
    await store.put(
        "exerciseLogs",
        make_log(
            "w_0",
            "bench_press",
            [(40, 10)] * 4,
            earlier + datetime.timedelta(minutes=30),
        ),
    )
    await store.put(
        "workouts",
        Workout(
            id="w_1",
            template_id="w1",
            template_name="Chest, Arms & Stomach",
            started_at=T0,
            finished_at=at(45),
            cardio=Cardio(type="Bike", minutes=20, notes="easy"),
        ),
    )
    # saved out of template order on purpose
    await store.put("exerciseLogs", make_log("w_1", "dips", [(0, 12), (0, 10)], at(40)))
    await store.put(
        "exerciseLogs",
        make_log(
            "w_1",
            "bench_press",
            [(40, 10), (40, 10), (42.5, 8), (42.5, 8)],
            at(20),
            notes="felt good",
        ),
    )
    await store.put(
        "actions", Action(exercise_id="bench_press", text="add 2.5", updated_at=at(21))
    )


@pytest.mark.asyncio
async def test_report_text(store, service):
    await seed(store)
    report = await service.build_report("w_1")
    expected = "\n".join(
        [
            "WORKOUT REPORT",
            "Template: Chest, Arms & Stomach",
            "Started: Mon, Jan 01, 2024, 10:00",
            "Finished: Mon, Jan 01, 2024, 10:45",
            "Duration: 45 min",
            "",
            "CARDIO",
            "- Bike: 20 min — easy",
            "",
            "EXERCISES",
            "- Bench press (Chest)",
            "  Today: top 42.5kg×8 | Sets: 4 | Volume: 1480kg",
            "  Last: 40kg×10 (Mon, Dec 25, 2023, 10:30)",
            "  Best: 42.5kg×8",
            "  Sets logged: 40×10  |  40×10  |  42.5×8  |  42.5×8",
            "  Notes: felt good",
            "  Action next time: add 2.5",
            "",
            "- Dips (Arms)",
            "  Today: top 0kg×12 | Sets: 2 | Volume: 0kg",
            "  Last: —",
            "  Best: 0kg×12",
            "  Sets logged: 0×12  |  0×10",
            "",
            "COACHING REQUEST",
            COACHING_REQUEST,
        ]
    )
    assert report == expected


@pytest.mark.asyncio
async def test_report_of_unfinished_workout(store, service):
    await store.put(
        "workouts",
        Workout(id="w_9", template_id="w3", template_name="Legs & Core", started_at=T0),
    )
    await store.put("exerciseLogs", make_log("w_9", "leg_curl", [], at(5)))
    lines = (await service.build_report("w_9")).splitlines()
    assert lines[3] == "Finished: —"
    assert lines[4] == "Duration: 0 min"
    assert "CARDIO" not in lines
    assert "  Today: top — | Sets: 0 | Volume: 0kg" in lines
    assert "  Sets logged: —" in lines


@pytest.mark.asyncio
async def test_report_uses_configured_timezone(store):
    await seed(store)
    service = ReportService(store, StatisticsService(store.exercise_logs), "Europe/Berlin")
    lines = (await service.build_report("w_1")).splitlines()
    assert lines[2] == "Started: Mon, Jan 01, 2024, 11:00"


@pytest.mark.asyncio
async def test_report_missing_workout(service):
    with pytest.raises(ValueError):
        await service.build_report("w_missing")


@pytest.mark.asyncio
async def test_snapshot_round_trip(tmp_path, store, service):
    await seed(store)
    await store.put("settings", SettingsSchema(maxWeightKg=150, showBest=False))
    snapshot = await service.build_snapshot(at(60))
    assert len(snapshot.workouts) == 2
    assert len(snapshot.exercise_logs) == 3
    assert len(snapshot.actions) == 1

    text = ReportService.dump_snapshot(snapshot)
    doc = json.loads(text)
    assert set(doc) == {"exportedAt", "workouts", "exerciseLogs", "actions", "settings"}
    assert doc["settings"]["maxWeightKg"] == 150.0

    other = Store(str(tmp_path / "other.db"))
    other_service = ReportService(other, StatisticsService(other.exercise_logs))
    await other.put("actions", Action(exercise_id="dips", text="stale", updated_at=T0))
    await other_service.restore_snapshot(text)

    restored = await other_service.build_snapshot(at(60))
    assert restored == snapshot
    assert await other.get("actions", "dips") is None
    assert (await other_service.build_report("w_1")) == (await service.build_report("w_1"))


@pytest.mark.asyncio
async def test_restore_invalid_json_keeps_store(store, service):
    await seed(store)
    with pytest.raises(InvalidBackupFormat):
        await service.restore_snapshot("{not json")
    with pytest.raises(InvalidBackupFormat):
        await service.restore_snapshot(json.dumps({"workouts": []}))
    with pytest.raises(InvalidBackupFormat):
        await service.restore_snapshot("[1, 2]")
    assert len(await store.get_all("workouts")) == 2
    assert len(await store.get_all("exerciseLogs")) == 3


@pytest.mark.asyncio
async def test_restore_rejects_unknown_top_level_key(store, service):
    doc = {
        "exportedAt": T0.isoformat(),
        "workouts": [],
        "exerciseLogs": [],
        "actions": [],
        "settings": {},
        "plans": [],
    }
    with pytest.raises(InvalidBackupFormat):
        await service.restore_snapshot(doc)


@pytest.mark.asyncio
async def test_restore_accepts_legacy_keys(store, service):
    doc = {
        "exportedAt": "2024-01-02T08:00:00Z",
        "workouts": [
            {
                "id": "w_1",
                "templateId": "w3",
                "templateName": "Legs & Core",
                "startedAt": "2024-01-01T10:00:00Z",
                "finishedAt": "2024-01-01T11:00:00Z",
                "cardio": {"type": "Run", "mins": 15},
            }
        ],
        "exerciseLogs": [
            {
                "workoutId": "w_1",
                "exerciseId": "leg_curl",
                "finishedAt": "2024-01-01T10:30:00Z",
                "sets": [{"set": 1, "weightKg": 30, "reps": 10}],
            }
        ],
        "actions": [],
        "settings": {"sets": 3, "reps": 12},
    }
    snapshot = await service.restore_snapshot(json.dumps(doc).encode("utf-8"))
    assert snapshot.workouts[0].cardio.minutes == 15
    settings = await store.get("settings")
    assert settings.sets_default == 3
    assert settings.reps_default == 12
    log = await store.get("exerciseLogs", ("w_1", "leg_curl"))
    assert log.sets[0].weight_kg == 30.0


@pytest.mark.asyncio
async def test_restore_clears_cached_stats(tmp_path, store, service):
    await seed(store)
    before = await service.stats.compute_stats("bench_press")
    assert before.best is not None
    empty = await ReportService(
        Store(str(tmp_path / "empty.db")), service.stats
    ).build_snapshot(T0)
    await service.restore_snapshot(empty)
    assert not service.stats.is_cached("bench_press")
    assert (await service.stats.compute_stats("bench_press")).best is None


def test_backup_filename():
    when = datetime.datetime(2024, 3, 7, 23, 59, tzinfo=UTC)
    assert ReportService.backup_filename(when) == "workout-backup-2024-03-07.json"


def test_format_top_keeps_every_digit():
    assert ReportService.format_top(TopSet(12345.75, 5)) == "12345.75kg×5"
    assert ReportService.format_top(TopSet(40.0, 10)) == "40kg×10"
