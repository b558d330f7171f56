"""HTTP clients for TrainingPeaks, Intervals.icu and PlanMyPeak with retry and rate limiting."""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Dict, List, Optional, Tuple

import requests

from tp_export.core.constants import INTERVALS_API_BASE, PLANMYPEAK_API_BASE, TP_API_BASE
from tp_export.utils.text import name_key

logger = logging.getLogger(__name__)

RETRY_STATUS_CODES = (429, 500, 502, 503, 504)
_ATHLETE_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class APIError(RuntimeError):
    """Raised for API failures after retries."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"HTTP {response.status_code}"


class JSONAPIClient:
    """Shared JSON-over-HTTP client.

    Connection errors and 429/5xx responses are retried with exponential
    backoff capped at 8 seconds. Other 4xx responses raise immediately.
    """

    service_name = "API"

    def __init__(
        self,
        base_url: str,
        rate_limit_delay: float = 1.0,
        max_retries: int = 3,
        timeout_seconds: int = 30,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.rate_limit_delay = rate_limit_delay
        self.max_retries = max(1, max_retries)
        self.timeout_seconds = timeout_seconds
        self._has_sent_request = False

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "Content-Type": "application/json"}

    @property
    def _auth(self) -> Optional[Tuple[str, str]]:
        return None

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Any] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        last_error: Optional[Exception] = None
        last_status: Optional[int] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                if self.rate_limit_delay > 0 and self._has_sent_request:
                    time.sleep(self.rate_limit_delay)

                self._has_sent_request = True
                logger.debug("%s %s (attempt %d)", method, url, attempt)
                response = requests.request(
                    method=method,
                    url=url,
                    headers=self._headers,
                    auth=self._auth,
                    params=params,
                    json=json_data,
                    timeout=self.timeout_seconds,
                )
                last_status = response.status_code
                if response.status_code in RETRY_STATUS_CODES:
                    raise requests.HTTPError(response.text, response=response)
                if 400 <= response.status_code < 500:
                    raise APIError(
                        f"{self.service_name} request failed for {method} {path}: "
                        f"HTTP {response.status_code} {_error_detail(response)}",
                        status_code=response.status_code,
                    )
                response.raise_for_status()

                if not response.text:
                    return {}
                return response.json()
            except (requests.RequestException, ValueError) as exc:
                last_error = exc
                if attempt >= self.max_retries:
                    break
                delay = min(2**attempt, 8)
                logger.debug("Retrying %s %s in %ss after %s", method, path, delay, exc)
                time.sleep(delay)

        raise APIError(
            f"{self.service_name} request failed for {method} {path}: {last_error}",
            status_code=last_status,
        )

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, payload: Any) -> Any:
        return self._request("POST", path, json_data=payload)

    def put(self, path: str, payload: Any) -> Any:
        return self._request("PUT", path, json_data=payload)

    def delete(self, path: str) -> Any:
        return self._request("DELETE", path)


class TrainingPeaksAPI(JSONAPIClient):
    """Thin wrapper around the TrainingPeaks REST API."""

    service_name = "TrainingPeaks"

    def __init__(self, token: str, base_url: str = TP_API_BASE, **kwargs: Any) -> None:
        super().__init__(base_url, **kwargs)
        self.token = token

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    def get_user(self) -> Dict[str, Any]:
        return self.get("/users/v3/user")

    def get_libraries(self) -> List[Dict[str, Any]]:
        return self.get("/exerciselibrary/v2/libraries") or []

    def get_library_items(self, library_id: Any) -> List[Dict[str, Any]]:
        return self.get(f"/exerciselibrary/v2/libraries/{library_id}/items") or []

    def get_training_plans(self) -> List[Dict[str, Any]]:
        return self.get("/trainingplans/v2/plansWithAccess") or []

    def get_plan_workouts(self, plan_id: Any, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        return self.get(f"/trainingplans/v2/plans/{plan_id}/workouts/{start_date}/{end_date}") or []

    def get_plan_notes(self, plan_id: Any, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        return self.get(f"/trainingplans/v2/plans/{plan_id}/calendarnotes/{start_date}/{end_date}") or []

    def get_plan_events(self, plan_id: Any, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        return self.get(f"/trainingplans/v2/plans/{plan_id}/events/{start_date}/{end_date}") or []


def extract_athlete_id(payload: Any) -> Optional[str]:
    """Pull a usable athlete id (``12345`` or ``i12345``) out of a profile payload."""

    def parse(value: Any) -> Optional[str]:
        if isinstance(value, bool):
            return None
        if isinstance(value, int) and value > 0:
            return str(value)
        if isinstance(value, str):
            trimmed = value.strip()
            if trimmed and trimmed != "0" and _ATHLETE_ID_RE.match(trimmed):
                return trimmed
        return None

    if not isinstance(payload, dict):
        return None
    for key in ("id", "athlete_id", "athleteId"):
        parsed = parse(payload.get(key))
        if parsed:
            return parsed
    athlete = payload.get("athlete")
    if isinstance(athlete, dict):
        return parse(athlete.get("id"))
    return None


class IntervalsAPI(JSONAPIClient):
    """Intervals.icu client authenticated with HTTP basic ``API_KEY:<key>``."""

    service_name = "Intervals.icu"

    def __init__(
        self,
        api_key: str,
        athlete_id: str = "0",
        base_url: str = INTERVALS_API_BASE,
        **kwargs: Any,
    ) -> None:
        super().__init__(base_url, **kwargs)
        self.api_key = api_key
        self.athlete_id = str(athlete_id or "0")

    @property
    def _auth(self) -> Optional[Tuple[str, str]]:
        return ("API_KEY", self.api_key)

    def get_athlete(self) -> Dict[str, Any]:
        return self.get(f"/athlete/{self.athlete_id}")

    def resolve_athlete_id(self) -> str:
        """Replace the ``0`` placeholder with the concrete athlete id."""
        if self.athlete_id != "0":
            return self.athlete_id
        resolved = extract_athlete_id(self.get_athlete())
        if not resolved:
            raise APIError("Intervals.icu athlete response missing a valid athlete ID", code="API_ERROR")
        self.athlete_id = resolved
        return resolved

    def list_folders(self) -> List[Dict[str, Any]]:
        athlete_id = self.resolve_athlete_id()
        return self.get(f"/athlete/{athlete_id}/folders") or []

    def find_folder_by_name(self, name: str, folder_type: Optional[str] = None) -> Optional[Dict[str, Any]]:
        target = name_key(name)
        for folder in self.list_folders():
            if name_key(folder.get("name")) != target:
                continue
            if folder_type and str(folder.get("type", "FOLDER")).upper() != folder_type.upper():
                continue
            return folder
        return None

    def create_folder(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        athlete_id = self.resolve_athlete_id()
        folder = self.post(f"/athlete/{athlete_id}/folders", payload)
        logger.info("Created Intervals.icu folder id=%s name=%s", folder.get("id"), payload.get("name"))
        return folder

    def delete_folder(self, folder_id: Any) -> Any:
        athlete_id = self.resolve_athlete_id()
        logger.info("Deleting Intervals.icu folder id=%s", folder_id)
        return self.delete(f"/athlete/{athlete_id}/folders/{folder_id}")

    def create_workout(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        athlete_id = self.resolve_athlete_id()
        return self.post(f"/athlete/{athlete_id}/workouts", payload)

    def list_folder_workouts(self, folder_id: Any) -> List[Dict[str, Any]]:
        athlete_id = self.resolve_athlete_id()
        workouts = self.get(f"/athlete/{athlete_id}/workouts") or []
        return [workout for workout in workouts if str(workout.get("folder_id")) == str(folder_id)]


def is_duplicate_training_plan_error(message: str) -> bool:
    lowered = message.strip().lower()
    return "source_id" in lowered and "already exists" in lowered and "training plan" in lowered


class PlanMyPeakAPI(JSONAPIClient):
    """PlanMyPeak workout library and training plan client (bearer token)."""

    service_name = "PlanMyPeak"

    def __init__(self, token: str, base_url: str = PLANMYPEAK_API_BASE, **kwargs: Any) -> None:
        super().__init__(base_url, **kwargs)
        self.token = token

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    def _require_token(self) -> None:
        if not self.token:
            raise APIError("PlanMyPeak authentication required", code="NO_TOKEN")

    def list_libraries(self) -> List[Dict[str, Any]]:
        self._require_token()
        payload = self.get("/v1/workouts/libraries")
        if isinstance(payload, dict):
            return list(payload.get("libraries") or [])
        return list(payload or [])

    def create_library(self, name: str, source_id: Optional[str] = None) -> Dict[str, Any]:
        self._require_token()
        trimmed = name.strip()
        if not trimmed:
            raise APIError("Library name is required", code="VALIDATION_ERROR")
        library = self.post("/v1/workouts/libraries", {"name": trimmed, "source_id": source_id})
        logger.info("Created PlanMyPeak library id=%s name=%s", library.get("id"), trimmed)
        return library

    def delete_library(self, library_id: str) -> Any:
        self._require_token()
        logger.info("Deleting PlanMyPeak library id=%s", library_id)
        return self.delete(f"/v1/workouts/libraries/{library_id}")

    def upload_workout(self, workout: Dict[str, Any], library_id: str) -> Dict[str, Any]:
        self._require_token()
        body = dict(workout)
        body["library_id"] = library_id
        return self.post("/v1/workouts/library", body)


    def list_workouts(self, library_id: Optional[str] = None, source_id: Optional[str] = None) -> List[Dict[str, Any]]:
        self._require_token()
        params = {key: value for key, value in (("library_id", library_id), ("source_id", source_id)) if value}
        payload = self.get("/v1/workouts/library", params=params or None)
        if isinstance(payload, dict):
            for key in ("workouts", "data", "items"):
                if isinstance(payload.get(key), list):
                    return list(payload[key])
            return []
        return list(payload or [])

    def find_workout_by_source_id(self, source_id: str, library_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Exact ``source_id`` match, optionally scoped to one library."""
        wanted = source_id.strip()
        if not wanted:
            raise APIError("source_id is required", code="VALIDATION_ERROR")
        for workout in self.list_workouts(library_id=library_id, source_id=wanted):
            if workout.get("source_id") == wanted:
                return workout
        return None

    def list_training_plans(self) -> List[Dict[str, Any]]:
        self._require_token()
        payload = self.get("/training-plans")
        if isinstance(payload, dict):
            return list(payload.get("plans") or [])
        return list(payload or [])

    def find_training_plan_by_source_id(self, source_id: str) -> Optional[Dict[str, Any]]:
        wanted = source_id.strip()
        if not wanted:
            return None
        for plan in self.list_training_plans():
            if (plan.get("source_id") or plan.get("sourceId")) == wanted:
                return plan
        return None

    def save_training_plan(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a training plan, updating the existing one when its ``source_id`` is taken.

        Returns the save response (``planId`` and ``savedAt``).
        """
        self._require_token()
        try:
            return self.post("/training-plans", payload)
        except APIError as exc:
            source_id = str((payload.get("metadata") or {}).get("source_id") or "").strip()
            if not source_id or not is_duplicate_training_plan_error(str(exc)):
                raise
            logger.warning("Training plan source_id %s already exists; updating it instead", source_id)
            existing = self.find_training_plan_by_source_id(source_id)
            if existing is None:
                raise
            plan_id = str(existing["id"])
            response = dict(self.put(f"/training-plans/{plan_id}", payload) or {})
            response.setdefault("planId", plan_id)
            logger.info("Updated PlanMyPeak training plan %s for source_id %s", plan_id, source_id)
            return response

    def create_training_plan_note(self, plan_id: str, note: Dict[str, Any]) -> Dict[str, Any]:
        self._require_token()
        if not str(plan_id).strip():
            raise APIError("Plan id is required", code="VALIDATION_ERROR")
        response = self.post(f"/training-plans/{plan_id}/notes", note)
        if isinstance(response, dict) and isinstance(response.get("note"), dict):
            return response["note"]
        return response
