import argparse
import json
import logging
import os
import shutil
import time

import requests

from config import DEFAULT_DB_PATH, DEFAULT_YAML_PATH
from db import ExerciseRepository, SetRepository, SettingsRepository, WorkoutRepository
from seed_sample_data import seed
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


def export_workouts(db_path: str, fmt: str, output_dir: str = ".") -> list[str]:
    workouts = WorkoutRepository(db_path)
    sets = SetRepository(db_path)
    written: list[str] = []
    for wid, _date, _notes in workouts.fetch_all_workouts():
        if fmt == "csv":
            data = sets.export_workout_csv(wid)
        else:
            data = sets.export_workout_json(wid)
        out_path = os.path.join(output_dir, f"workout_{wid}.{fmt}")
        with open(out_path, "w", encoding="utf-8") as f:
            f.write(data)
        written.append(out_path)
    logger.info("exported %d workouts to %s", len(written), output_dir)
    return written


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def show_stats(db_path: str, yaml_path: str) -> dict:
    """Print dashboard statistics as JSON and return them."""
    stats = StatisticsService(
        WorkoutRepository(db_path),
        ExerciseRepository(db_path),
        SetRepository(db_path),
        SettingsRepository(db_path, yaml_path),
    )
    data = stats.dashboard()
    print(json.dumps(data, indent=2))
    return data


def benchmark(url: str, runs: int = 10) -> None:
    times: list[float] = []
    for _ in range(runs):
        t0 = time.time()
        requests.get(f"{url}/stats/dashboard", timeout=5)
        times.append(time.time() - t0)
    avg = sum(times) / len(times)
    print(f"Average /stats/dashboard response time over {runs} runs: {avg:.4f}s")


def serve(db_path: str, yaml_path: str, host: str, port: int) -> None:
    import uvicorn
    from rest_api import TrackerAPI

    uvicorn.run(TrackerAPI(db_path, yaml_path).app, host=host, port=port)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Workout tracker utilities")
    parser.add_argument("--db", default=DEFAULT_DB_PATH)
    parser.add_argument("--yaml", default=DEFAULT_YAML_PATH)
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("stats")

    exp = sub.add_parser("export")
    exp.add_argument("--fmt", choices=["csv", "json"], default="csv")
    exp.add_argument("--out", default=".")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")

    sub.add_parser("demo")

    bench = sub.add_parser("benchmark")
    bench.add_argument("--url", default="http://localhost:8000")
    bench.add_argument("--runs", type=int, default=10)

    srv = sub.add_parser("serve")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "stats":
        show_stats(args.db, args.yaml)
    elif args.cmd == "export":
        export_workouts(args.db, args.fmt, args.out)
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "demo":
        if seed(args.db):
            print("Demo data inserted")
        else:
            print("Database already contains workouts")
    elif args.cmd == "benchmark":
        benchmark(args.url, args.runs)
    elif args.cmd == "serve":
        serve(args.db, args.yaml, args.host, args.port)


if __name__ == "__main__":
    main()
