"""
GZCLP Tracker — Hevy API Client

Default workout source for sync. Any callable returning workouts in the
same shape can replace it.
"""
import time
import requests
from gzclp.config import HEVY_API_KEY, HEVY_BASE_URL, HEVY_TIMEOUT_SECONDS

HEADERS = {"accept": "application/json", "api-key": HEVY_API_KEY}

# Hevy doesn't publish its limits; these keep a full-history sync under them
RATE_LIMIT_DELAY = 0.35  # seconds between requests
MAX_RETRIES = 3
RETRY_BACKOFF = 2  # exponential backoff multiplier
PAGE_SIZE = 10  # Hevy's maximum for /workouts


def _retryable(status: int) -> bool:
    return status == 429 or status >= 500


def _retry_wait(attempt: int, why: str) -> None:
    wait = RETRY_BACKOFF ** attempt
    print(f"  ⏳ Hevy {why}, retrying in {wait}s (attempt {attempt}/{MAX_RETRIES})")
    time.sleep(wait)


def _get(endpoint: str, params: dict = None) -> dict:
    """
    GET a Hevy endpoint and return the JSON body.

    Timeouts, 429s and 5xx are retried with backoff; the last attempt's
    error propagates. Other HTTP errors raise straight away.
    """
    time.sleep(RATE_LIMIT_DELAY)
    url = f"{HEVY_BASE_URL}{endpoint}"
    for attempt in range(1, MAX_RETRIES + 1):
        last = attempt == MAX_RETRIES
        try:
            r = requests.get(url, headers=HEADERS, params=params or {}, timeout=HEVY_TIMEOUT_SECONDS)
        except requests.exceptions.Timeout:
            if last:
                raise
            _retry_wait(attempt, f"timeout after {HEVY_TIMEOUT_SECONDS:g}s")
            continue

        if _retryable(r.status_code) and not last:
            _retry_wait(attempt, "rate limit" if r.status_code == 429 else str(r.status_code))
            continue
        r.raise_for_status()
        return r.json()
    raise requests.exceptions.RetryError(f"Hevy API failed after {MAX_RETRIES} attempts")


def normalize_workout(w: dict) -> dict:
    """
    Reduce a Hevy workout to the fields progression uses:
    {id, routine_id, start_time, exercises: [{exercise_template_id, title,
    sets: [{weight_kg, reps, type}]}]}
    """
    return {
        "id": w["id"],
        "routine_id": w.get("routine_id"),
        "title": w.get("title", ""),
        "start_time": w["start_time"],
        "exercises": [
            {
                "exercise_template_id": ex.get("exercise_template_id", ""),
                "title": ex.get("title", ""),
                "sets": [
                    {
                        "weight_kg": s.get("weight_kg"),
                        "reps": s.get("reps"),
                        "type": s.get("type", "normal"),
                    }
                    for s in ex.get("sets", [])
                ],
            }
            for ex in w.get("exercises", [])
        ],
    }


def fetch_all_workouts() -> list[dict]:
    """Fetch all workouts from Hevy, paginated."""
    all_workouts = []
    page = 1
    while True:
        data = _get("/workouts", {"page": page, "pageSize": PAGE_SIZE})
        wks = data.get("workouts", [])
        if not wks:
            break
        all_workouts.extend(normalize_workout(w) for w in wks)
        if page >= data.get("page_count", 1):
            break
        page += 1
    return all_workouts


def fetch_workout_count() -> int:
    return int(_get("/workouts/count").get("workout_count", 0))
