"""In-process metrics collector with Prometheus text exposition."""

from __future__ import annotations

from collections import defaultdict
from threading import Lock
import time
from typing import Dict, Tuple


_lock = Lock()
_started_at = time.time()

_http_requests_total: Dict[Tuple[str, str, str], int] = defaultdict(int)
_http_request_duration_sum: Dict[Tuple[str, str], float] = defaultdict(float)
_http_request_duration_count: Dict[Tuple[str, str], int] = defaultdict(int)
_provider_attempts_total: Dict[Tuple[str, str], int] = defaultdict(int)
_provider_attempt_duration_sum: Dict[str, float] = defaultdict(float)
_provider_cost_usd_total: Dict[str, float] = defaultdict(float)
_provider_health_checks_total: Dict[Tuple[str, str], int] = defaultdict(int)
_prompt_cache_lookups_total: Dict[str, int] = defaultdict(int)


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _normalize_label(value: str, *, fallback: str = "unknown") -> str:
    normalized = (value or "").strip()
    return normalized or fallback


def record_http_request(*, method: str, path: str, status_code: int, duration_seconds: float) -> None:
    status = str(status_code)
    method_label = method.upper()
    path_label = path or "unknown"
    duration = max(duration_seconds, 0.0)

    with _lock:
        _http_requests_total[(method_label, path_label, status)] += 1
        _http_request_duration_sum[(method_label, path_label)] += duration
        _http_request_duration_count[(method_label, path_label)] += 1


def record_provider_attempt(
    *,
    provider: str,
    success: bool,
    duration_seconds: float,
    cost_usd: float | None = None,
) -> None:
    provider_label = _normalize_label(provider)
    outcome = "success" if success else "failure"
    with _lock:
        _provider_attempts_total[(provider_label, outcome)] += 1
        _provider_attempt_duration_sum[provider_label] += max(duration_seconds, 0.0)
        if success and cost_usd:
            _provider_cost_usd_total[provider_label] += max(cost_usd, 0.0)


def record_health_check(*, provider: str, healthy: bool) -> None:
    key = (_normalize_label(provider), "healthy" if healthy else "unhealthy")
    with _lock:
        _provider_health_checks_total[key] += 1


def record_prompt_cache_lookup(*, hit: bool) -> None:
    with _lock:
        _prompt_cache_lookups_total["hit" if hit else "miss"] += 1


def provider_attempt_count(*, provider: str, success: bool) -> int:
    with _lock:
        return _provider_attempts_total.get((provider, "success" if success else "failure"), 0)


def render_prometheus_metrics(*, app_name: str, app_version: str, env: str) -> str:
    uptime = max(time.time() - _started_at, 0.0)

    with _lock:
        http_total = dict(_http_requests_total)
        duration_sum = dict(_http_request_duration_sum)
        duration_count = dict(_http_request_duration_count)
        attempts_total = dict(_provider_attempts_total)
        attempt_duration = dict(_provider_attempt_duration_sum)
        cost_total = dict(_provider_cost_usd_total)
        health_total = dict(_provider_health_checks_total)
        cache_total = dict(_prompt_cache_lookups_total)

    lines = [
        "# HELP promptlens_build_info Build metadata.",
        "# TYPE promptlens_build_info gauge",
        (
            f'promptlens_build_info{{app_name="{_escape_label(app_name)}",'
            f'version="{_escape_label(app_version)}",env="{_escape_label(env)}"}} 1'
        ),
        "# HELP promptlens_process_uptime_seconds Process uptime in seconds.",
        "# TYPE promptlens_process_uptime_seconds gauge",
        f"promptlens_process_uptime_seconds {uptime:.6f}",
        "# HELP promptlens_http_requests_total Total HTTP requests.",
        "# TYPE promptlens_http_requests_total counter",
    ]

    for (method, path, status), value in sorted(http_total.items()):
        lines.append(
            (
                f'promptlens_http_requests_total{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}",status="{_escape_label(status)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP promptlens_http_request_duration_seconds Request duration summary.",
            "# TYPE promptlens_http_request_duration_seconds summary",
        ]
    )
    for (method, path), value in sorted(duration_sum.items()):
        lines.append(
            (
                f'promptlens_http_request_duration_seconds_sum{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value:.6f}'
            )
        )
    for (method, path), value in sorted(duration_count.items()):
        lines.append(
            (
                f'promptlens_http_request_duration_seconds_count{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP promptlens_provider_attempts_total Image provider attempts by outcome.",
            "# TYPE promptlens_provider_attempts_total counter",
        ]
    )
    for (provider, outcome), value in sorted(attempts_total.items()):
        lines.append(
            (
                f'promptlens_provider_attempts_total{{provider="{_escape_label(provider)}",'
                f'outcome="{_escape_label(outcome)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP promptlens_provider_attempt_duration_seconds_sum Time spent in provider attempts.",
            "# TYPE promptlens_provider_attempt_duration_seconds_sum counter",
        ]
    )
    for provider, value in sorted(attempt_duration.items()):
        lines.append(
            f'promptlens_provider_attempt_duration_seconds_sum{{provider="{_escape_label(provider)}"}} {value:.6f}'
        )

    lines.extend(
        [
            "# HELP promptlens_provider_cost_usd_total Estimated spend on successful generations.",
            "# TYPE promptlens_provider_cost_usd_total counter",
        ]
    )
    for provider, value in sorted(cost_total.items()):
        lines.append(f'promptlens_provider_cost_usd_total{{provider="{_escape_label(provider)}"}} {value:.6f}')

    lines.extend(
        [
            "# HELP promptlens_provider_health_checks_total Provider health check results.",
            "# TYPE promptlens_provider_health_checks_total counter",
        ]
    )
    for (provider, result), value in sorted(health_total.items()):
        lines.append(
            (
                f'promptlens_provider_health_checks_total{{provider="{_escape_label(provider)}",'
                f'result="{_escape_label(result)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP promptlens_prompt_cache_lookups_total Prompt enhancement cache lookups.",
            "# TYPE promptlens_prompt_cache_lookups_total counter",
        ]
    )
    for result, value in sorted(cache_total.items()):
        lines.append(f'promptlens_prompt_cache_lookups_total{{result="{_escape_label(result)}"}} {value}')

    lines.append("")
    return "\n".join(lines)


def reset_metrics_for_tests() -> None:
    global _started_at
    with _lock:
        _http_requests_total.clear()
        _http_request_duration_sum.clear()
        _http_request_duration_count.clear()
        _provider_attempts_total.clear()
        _provider_attempt_duration_sum.clear()
        _provider_cost_usd_total.clear()
        _provider_health_checks_total.clear()
        _prompt_cache_lookups_total.clear()
    _started_at = time.time()
