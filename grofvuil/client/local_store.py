"""
JSON files standing in for browser local storage.

The report file is used for local sessions and as the fallback target when
the API cannot be reached. It is never merged back into the server.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ValidationError

from api.models.report_models import Report
from api.models.user_models import UserResponse

logger = logging.getLogger(__name__)


class ClientSession(BaseModel):
    """Signed-in user together with the token used for the API."""

    access_token: str
    user: UserResponse


def _write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
    tmp.replace(path)


class LocalReportStore:
    """Reports kept in a single JSON list on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> List[Report]:
        if not self.path.exists():
            return []
        try:
            documents = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable local store {self.path}: {e}")
            return []

        reports = []
        for doc in documents:
            try:
                reports.append(Report.model_validate(doc))
            except ValidationError:
                logger.warning(f"Skipping malformed local report {doc.get('id', '?')}")
        return reports

    def save(self, reports: List[Report]) -> None:
        _write_json(self.path, [r.to_document() for r in reports])

    def add(self, report: Report) -> None:
        self.save([report] + self.load())

    def replace(self, report: Report) -> bool:
        """Replace the stored report with the same id; False if absent."""
        reports = self.load()
        for index, existing in enumerate(reports):
            if existing.id == report.id:
                reports[index] = report
                self.save(reports)
                return True
        return False

    def remove(self, report_id: str) -> bool:
        reports = self.load()
        kept = [r for r in reports if r.id != report_id]
        if len(kept) == len(reports):
            return False
        self.save(kept)
        return True


class SessionStore:
    """Persists the current session between CLI invocations."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[ClientSession]:
        if not self.path.exists():
            return None
        try:
            return ClientSession.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValidationError:
            logger.warning(f"Discarding invalid session file {self.path}")
            return None

    def save(self, session: ClientSession) -> None:
        _write_json(self.path, session.model_dump(mode="json"))

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
