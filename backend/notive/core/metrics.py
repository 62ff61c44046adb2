from collections import defaultdict
from threading import Lock

_metrics_lock = Lock()
_counters: dict[str, dict[tuple[tuple[str, str], ...], int]] = defaultdict(dict)


def _label_key(labels: dict[str, str] | None) -> tuple[tuple[str, str], ...]:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def increment_counter(name: str, value: int = 1, **labels: str) -> None:
    key = _label_key(labels)
    with _metrics_lock:
        _counters[name][key] = _counters[name].get(key, 0) + int(value)


def counter_value(name: str, **labels: str) -> int:
    key = _label_key(labels)
    with _metrics_lock:
        return _counters.get(name, {}).get(key, 0)


def snapshot_metrics() -> dict[str, list[dict]]:
    with _metrics_lock:
        return {
            metric_name: [
                {"labels": dict(label_key), "value": value}
                for label_key, value in items.items()
            ]
            for metric_name, items in _counters.items()
        }


def reset_metrics() -> None:
    with _metrics_lock:
        _counters.clear()
