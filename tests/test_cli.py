import argparse
import asyncio
import datetime
import io
import os
import sys
import json
import shutil
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import patch

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from cli import main, parse_set
from cli_tools import ClipboardTools
from db import Store
from models import Cardio, Workout


class CLITest(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.tmpdir, "cli.db")
        self.yaml_path = os.path.join(self.tmpdir, "cli.yaml")

    def tearDown(self) -> None:
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def run_cli(self, *args: str) -> tuple[int, str, str]:
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = main(["--db", self.db_path, "--config", self.yaml_path, *args])
        return code, out.getvalue(), err.getvalue()

    def start(self, template: str = "w1") -> str:
        code, out, _ = self.run_cli("start", template)
        self.assertEqual(code, 0)
        return out.strip()

    def test_parse_set(self) -> None:
        self.assertEqual(parse_set("40x10"), (40.0, 10))
        self.assertEqual(parse_set("42.5×8"), (42.5, 8))
        self.assertEqual(parse_set("0X15"), (0.0, 15))
        with self.assertRaises(argparse.ArgumentTypeError):
            parse_set("40-10")

    def test_templates(self) -> None:
        code, out, _ = self.run_cli("templates")
        self.assertEqual(code, 0)
        self.assertIn("w1: Chest, Arms & Stomach", out)
        self.assertIn("  leg_curl - Leg curl (Legs)", out)
        self.assertIn("cardio: Cardio Only", out)

    def test_workout_flow(self) -> None:
        workout_id = self.start()
        self.assertTrue(workout_id.startswith("w_"))

        code, out, _ = self.run_cli(
            "log", workout_id, "bench_press", "40x10", "42.5x8", "--notes", "ok"
        )
        self.assertEqual(code, 0)
        self.assertIn("Saved 2 sets of bench_press.", out)
        self.assertIn("Best: 42.5kg×8", out)

        code, out, _ = self.run_cli("suggest", workout_id, "bench_press")
        self.assertEqual(
            out.strip(),
            "Suggestion: keep the same weight, add +1 rep on set 1, then match across sets.",
        )

        self.assertEqual(self.run_cli("action", "bench_press", "add a rep")[0], 0)
        self.assertEqual(self.run_cli("cardio", workout_id, "Bike", "15")[0], 0)

        code, out, _ = self.run_cli("finish", workout_id)
        self.assertEqual(code, 0)
        self.assertTrue(out.startswith("WORKOUT REPORT\n"))
        self.assertIn("- Bike: 15 min", out)
        self.assertIn("  Sets logged: 40×10  |  42.5×8", out)
        self.assertIn("  Notes: ok", out)
        self.assertIn("  Action next time: add a rep", out)

        code, out, _ = self.run_cli("history")
        self.assertIn(workout_id, out)
        self.assertIn("Chest, Arms & Stomach", out)

    def test_copy_falls_back_to_printing(self) -> None:
        workout_id = self.start("w3")
        with patch.object(ClipboardTools, "copy", side_effect=RuntimeError("no tool")):
            code, out, err = self.run_cli("report", workout_id, "--copy")
        self.assertEqual(code, 0)
        self.assertIn("WORKOUT REPORT", out)
        self.assertIn("Copy failed", err)

        with patch.object(ClipboardTools, "copy") as copy:
            code, out, _ = self.run_cli("report", workout_id, "--copy")
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), "Report copied to clipboard.")
        self.assertTrue(copy.call_args[0][0].startswith("WORKOUT REPORT"))

    def test_backup_clear_restore(self) -> None:
        workout_id = self.start()
        self.run_cli("log", workout_id, "dips", "0x12")
        backup_path = os.path.join(self.tmpdir, "backup.json")

        code, out, _ = self.run_cli("backup", "--out", backup_path)
        self.assertEqual(code, 0)
        with open(backup_path, encoding="utf-8") as f:
            doc = json.load(f)
        self.assertEqual(len(doc["workouts"]), 1)
        self.assertEqual(len(doc["exerciseLogs"]), 1)

        code, _, err = self.run_cli("clear")
        self.assertEqual(code, 1)
        self.assertIn("--yes", err)
        self.assertEqual(self.run_cli("clear", "--yes")[0], 0)
        self.assertEqual(self.run_cli("history")[1].strip(), "No workouts yet.")

        code, out, _ = self.run_cli("restore", "--in", backup_path)
        self.assertEqual(code, 0)
        self.assertIn("Restored 1 workouts, 1 exercise logs, 0 actions.", out)
        self.assertIn(workout_id, self.run_cli("history")[1])

    def test_backup_default_name_in_directory(self) -> None:
        self.start()
        code, out, _ = self.run_cli("backup", "--out", self.tmpdir)
        self.assertEqual(code, 0)
        names = [n for n in os.listdir(self.tmpdir) if n.startswith("workout-backup-")]
        self.assertEqual(len(names), 1)
        self.assertTrue(names[0].endswith(".json"))

    def test_invalid_restore_reports_error(self) -> None:
        workout_id = self.start()
        bad = os.path.join(self.tmpdir, "bad.json")
        with open(bad, "w", encoding="utf-8") as f:
            f.write("{broken")
        code, _, err = self.run_cli("restore", "--in", bad)
        self.assertEqual(code, 1)
        self.assertIn("not valid JSON", err)
        self.assertIn(workout_id, self.run_cli("history")[1])

    def test_delete_and_missing_report(self) -> None:
        workout_id = self.start()
        self.assertEqual(self.run_cli("delete", workout_id)[0], 0)
        code, _, err = self.run_cli("report", workout_id)
        self.assertEqual(code, 1)
        self.assertIn("workout not found", err)

    def test_unknown_template(self) -> None:
        code, _, err = self.run_cli("start", "w9")
        self.assertEqual(code, 1)
        self.assertIn("unknown template", err)

    def test_settings_command(self) -> None:
        code, out, _ = self.run_cli("settings", "--max-weight", "120", "--hide-best")
        self.assertEqual(code, 0)
        self.assertIn("maxWeightKg: 120.0", out)
        self.assertIn("showBest: False", out)
        code, out, _ = self.run_cli("settings")
        self.assertIn("maxWeightKg: 120.0", out)

    def test_weight_limit_and_hidden_best(self) -> None:
        self.assertEqual(self.run_cli("settings", "--hide-best", "--max-weight", "50")[0], 0)
        workout_id = self.start()

        code, out, err = self.run_cli("log", workout_id, "bench_press", "300x10")
        self.assertEqual(code, 1)
        self.assertIn("limit", err)
        self.assertNotIn("Saved", out)

        code, out, _ = self.run_cli("log", workout_id, "bench_press", "45x10")
        self.assertEqual(code, 0)
        self.assertIn("Last: 45kg×10", out)
        self.assertNotIn("Best:", out)

        self.run_cli("settings", "--show-best")
        code, out, _ = self.run_cli("log", workout_id, "bench_press", "47.5x8")
        self.assertIn("Best: 47.5kg×8", out)

    def test_history_skips_cardio_without_type(self) -> None:
        workout = Workout(
            id="w_1",
            template_id="cardio",
            template_name="Cardio Only",
            started_at=datetime.datetime(2024, 1, 1, 10, 0, tzinfo=datetime.timezone.utc),
            cardio=Cardio(type="", minutes=0),
        )
        asyncio.run(Store(self.db_path).put("workouts", workout))
        code, out, _ = self.run_cli("history")
        self.assertEqual(code, 0)
        self.assertIn("cardio: —", out)
        self.assertNotIn(" 0 min", out)

    def test_config_settings_override_drafts(self) -> None:
        with open(self.yaml_path, "w", encoding="utf-8") as f:
            f.write("settings:\n  repTarget: 8\n")
        workout_id = self.start()
        self.run_cli("log", workout_id, "leg_curl", "30x8")
        code, out, _ = self.run_cli("suggest", workout_id, "leg_curl")
        self.assertEqual(
            out.strip(),
            "Suggestion: +2.5 kg if sets 1–2 can still hit 8 reps.",
        )

    def test_bad_config_file(self) -> None:
        with open(self.yaml_path, "w", encoding="utf-8") as f:
            f.write("- just\n- a list\n")
        code, _, err = self.run_cli("history")
        self.assertEqual(code, 1)
        self.assertIn("expected a mapping", err)


if __name__ == "__main__":
    unittest.main()
