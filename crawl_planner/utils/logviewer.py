import argparse
import json
from typing import Iterable, Iterator, List, Optional

from colorama import Fore, Style, init

COLORS = {
    "DEBUG": Fore.BLUE,
    "INFO": Fore.GREEN,
    "WARNING": Fore.YELLOW,
    "ERROR": Fore.RED,
    "CRITICAL": Fore.RED + Style.BRIGHT
}

LEVEL_PRIORITIES = {
    "DEBUG": 0,
    "INFO": 1,
    "WARNING": 2,
    "ERROR": 3,
    "CRITICAL": 4
}

CONTEXT_FIELDS = ["operation", "session_id", "search_id", "search_term", "unique_key", "status"]


def format_log_entry(entry):
    try:
        data = json.loads(entry)
    except json.JSONDecodeError:
        return entry  # Return the original line if not valid JSON

    level = data.get("level", "INFO")
    color = COLORS.get(level, "")
    reset = Style.RESET_ALL

    timestamp = data.get("timestamp", "")
    message = data.get("message", "")

    extra = {k: v for k, v in data.items() if k not in ["timestamp", "level", "logger", "message"]}

    # Extract key context fields
    context = [f"{field}={extra[field]}" for field in CONTEXT_FIELDS if field in extra]

    # Format important metrics if present
    if "metrics" in extra:
        metrics = extra["metrics"]
        context.append(f"enqueued={metrics.get('requests_enqueued', 0)}")
        context.append(f"accepted={metrics.get('places_accepted', 0)}")
        context.append(f"rejected={metrics.get('places_rejected', 0)}")

    context_str = " | ".join(context)

    return f"{timestamp} {color}{level.ljust(8)}{reset} {message} [{context_str}]"


def filter_log_lines(
        lines: Iterable[str],
        level: Optional[str] = None,
        text: Optional[str] = None,
        operation: Optional[str] = None
        ) -> Iterator[str]:
    """Yield formatted lines passing the level, text and operation filters."""
    min_priority = LEVEL_PRIORITIES.get(level, 0)

    for line in lines:
        line = line.strip()
        if not line:
            continue

        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            yield line
            continue

        if level and LEVEL_PRIORITIES.get(data.get("level", ""), 0) < min_priority:
            continue
        if text and text.lower() not in line.lower():
            continue
        if operation and data.get("operation", "") != operation:
            continue

        yield format_log_entry(line)


def main(argv: Optional[List[str]] = None):
    init()  # Initialize colorama

    parser = argparse.ArgumentParser(description="Pretty print crawl planner JSON log files")
    parser.add_argument("logfile", help="Path to the JSON log file")
    parser.add_argument("-l", "--level", choices=list(LEVEL_PRIORITIES),
                        help="Minimum log level to display")
    parser.add_argument("-f", "--filter", help="Only show logs containing this text")
    parser.add_argument("-o", "--operation", help="Filter by operation type")
    args = parser.parse_args(argv)

    with open(args.logfile, 'r', encoding='utf-8') as f:
        for formatted in filter_log_lines(f, args.level, args.filter, args.operation):
            print(formatted)


if __name__ == "__main__":
    main()
