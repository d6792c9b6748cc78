import re
from collections import defaultdict
from threading import Lock

_metrics_lock = Lock()
_counters: dict[str, dict[tuple[tuple[str, str], ...], int]] = defaultdict(dict)

METRIC_DESCRIPTIONS: dict[str, str] = {
    "http_requests_total": "HTTP requests served.",
    "http_errors_total": "HTTP responses with a 4xx/5xx status.",
    "auth_login_total": "Login attempts by result.",
    "staff_admin_total": "Staff management actions.",
    "verification_total": "Verification session actions by result.",
    "roblox_lookup_total": "Roblox API lookups by outcome.",
    "cleanup_removed_total": "Rows removed by the maintenance sweep.",
}


def _normalize_labels(labels: dict[str, str] | None) -> tuple[tuple[str, str], ...]:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def increment_counter(name: str, value: int = 1, **labels: str) -> None:
    key = _normalize_labels(labels)
    with _metrics_lock:
        _counters[name][key] = _counters[name].get(key, 0) + int(value)


def counter_value(name: str, **labels: str) -> int:
    with _metrics_lock:
        return _counters.get(name, {}).get(_normalize_labels(labels), 0)


def reset_metrics() -> None:
    with _metrics_lock:
        _counters.clear()


def _sanitize_metric_name(name: str) -> str:
    clean = re.sub(r"[^a-zA-Z0-9_:]", "_", name)
    if not re.match(r"^[a-zA-Z_:]", clean):
        clean = f"metric_{clean}"
    return clean


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def prometheus_text() -> str:
    lines: list[str] = []
    with _metrics_lock:
        for raw_name, items in sorted(_counters.items(), key=lambda x: x[0]):
            name = _sanitize_metric_name(raw_name)
            if raw_name in METRIC_DESCRIPTIONS:
                lines.append(f"# HELP {name} {METRIC_DESCRIPTIONS[raw_name]}")
            lines.append(f"# TYPE {name} counter")
            for label_key, value in items.items():
                if label_key:
                    labels = ",".join(f'{k}="{_escape_label_value(v)}"' for k, v in label_key)
                    lines.append(f"{name}{{{labels}}} {int(value)}")
                else:
                    lines.append(f"{name} {int(value)}")
    return "\n".join(lines) + "\n"
