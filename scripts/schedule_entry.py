from __future__ import annotations

import argparse
import plistlib
import shlex
import sys
from pathlib import Path

LAUNCHD_LABEL = "com.screenlog.observer"
REPO_ROOT = Path(__file__).resolve().parents[1]


def observer_command(python: str = sys.executable) -> list[str]:
    return [python, str(REPO_ROOT / "observer.py")]


def cron_line(expression: str, python: str = sys.executable) -> str:
    if len(expression.split()) != 5:
        raise ValueError(f"Cron expression must have 5 fields: '{expression}'")
    command = " ".join(shlex.quote(part) for part in observer_command(python))
    log_path = shlex.quote(str(REPO_ROOT / "logs" / "cron.log"))
    return f"{expression} cd {shlex.quote(str(REPO_ROOT))} && {command} >> {log_path} 2>&1"


def launchd_plist(interval_seconds: int, python: str = sys.executable) -> bytes:
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive")
    logs = REPO_ROOT / "logs"
    payload = {
        "Label": LAUNCHD_LABEL,
        "ProgramArguments": observer_command(python),
        "WorkingDirectory": str(REPO_ROOT),
        "StartInterval": interval_seconds,
        "RunAtLoad": True,
        "StandardOutPath": str(logs / "launchd.out.log"),
        "StandardErrorPath": str(logs / "launchd.err.log"),
    }
    return plistlib.dumps(payload)


def main() -> None:
    parser = argparse.ArgumentParser(description="Print a cron line or launchd plist that runs observer.py periodically")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--cron", default="*/15 * * * *", help="Cron expression (default: every 15 minutes)")
    group.add_argument("--launchd", action="store_true", help="Print a launchd plist instead of a cron line")
    parser.add_argument("--interval-seconds", type=int, default=900, help="launchd StartInterval")
    args = parser.parse_args()

    if args.launchd:
        sys.stdout.write(launchd_plist(args.interval_seconds).decode("utf-8"))
        print(f"# Save as ~/Library/LaunchAgents/{LAUNCHD_LABEL}.plist and run: launchctl load <path>", file=sys.stderr)
    else:
        print(cron_line(args.cron))


if __name__ == "__main__":
    main()
