import argparse
import csv
import json
import shutil
import time

import requests

from config import load_settings
from db import Database, ExerciseRepository, PlanRepository, SessionRepository
from logging_config import configure_logging
from schemas import dump


def export_sessions(db_path: str, fmt: str, out_path: str) -> int:
    """Write every logged session to ``out_path`` and return the count."""
    sessions = SessionRepository(db_path).fetch_all_sessions()
    with open(out_path, "w", encoding="utf-8", newline="") as f:
        if fmt == "json":
            json.dump([dump(s) for s in sessions], f, indent=2)
        else:
            writer = csv.writer(f)
            writer.writerow(
                ["Session", "Date", "Plan", "Exercise", "Set", "Weight", "Reps", "Notes"]
            )
            for s in sessions:
                for e in s.entries:
                    writer.writerow(
                        [
                            s.id,
                            s.date.isoformat(),
                            s.plan_id or "",
                            e.exercise_id,
                            e.set_index,
                            e.weight,
                            e.reps,
                            e.notes or "",
                        ]
                    )
    return len(sessions)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def init_db(db_path: str) -> None:
    Database(db_path).init_schema()
    print(f"Database initialized at {db_path}")


def demo_data(db_path: str) -> None:
    """Populate the database with a demo exercise library and plan if empty."""
    Database(db_path).init_schema()
    exercises = ExerciseRepository(db_path)
    if exercises.fetch_all_exercises():
        print("Database already contains exercises")
        return
    bench = exercises.add("Bench Press", "Strength", "Chest")
    press = exercises.add("Overhead Press", "Strength", "Shoulders")
    dips = exercises.add("Triceps Dip", "Bodyweight", "Triceps")
    PlanRepository(db_path).add("Push Day", [bench.id, press.id, dips.id])
    print("Demo data inserted")


def benchmark(url: str, runs: int = 10) -> None:
    times: list[float] = []
    for _ in range(runs):
        t0 = time.time()
        requests.get(f"{url}/health", timeout=5)
        times.append(time.time() - t0)
    avg = sum(times) / len(times)
    print(f"Average /health response time over {runs} runs: {avg:.4f}s")


def serve(db_path: str, host: str, port: int) -> None:
    import uvicorn

    from rest_api import TrainingAPI

    uvicorn.run(TrainingAPI(db_path=db_path).app, host=host, port=port)


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)

    parser = argparse.ArgumentParser(description="Utility commands")
    sub = parser.add_subparsers(dest="cmd", required=True)

    srv = sub.add_parser("serve")
    srv.add_argument("--db", default=settings.db_path)
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    init = sub.add_parser("init")
    init.add_argument("--db", default=settings.db_path)

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default=settings.db_path)

    exp = sub.add_parser("export")
    exp.add_argument("--db", default=settings.db_path)
    exp.add_argument("--fmt", choices=["csv", "json"], default="csv")
    exp.add_argument("--out", default="sessions.csv")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default=settings.db_path)
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default=settings.db_path)

    bench = sub.add_parser("benchmark")
    bench.add_argument("--url", default=settings.api_url)
    bench.add_argument("--runs", type=int, default=10)

    args = parser.parse_args()

    if args.cmd == "serve":
        serve(args.db, args.host, args.port)
    elif args.cmd == "init":
        init_db(args.db)
    elif args.cmd == "demo":
        demo_data(args.db)
    elif args.cmd == "export":
        count = export_sessions(args.db, args.fmt, args.out)
        print(f"Exported {count} sessions to {args.out}")
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "benchmark":
        benchmark(args.url, args.runs)


if __name__ == "__main__":
    main()
