"""Subject (tracked celebrity) store."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Iterable, List, Union

from pydantic import ValidationError as PydanticValidationError

from core import Subject
from utils.exceptions import ConfigurationError


class SubjectStore(ABC):
    @abstractmethod
    def list_active_subjects(self) -> List[Subject]:
        pass


class InMemorySubjectStore(SubjectStore):
    """Subjects held in memory, returned by priority (desc) then name."""

    def __init__(self, subjects: Iterable[Subject] = ()) -> None:
        self._subjects: List[Subject] = []
        self._lock = Lock()
        for subject in subjects:
            self.add(subject)

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "InMemorySubjectStore":
        return cls(Subject(name=name) for name in names if str(name or "").strip())

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "InMemorySubjectStore":
        """
        Load subjects from JSON: a list of names or of subject objects
        (``{"name": ..., "priority": ..., "aliases": [...]}``).
        """
        file_path = Path(path)
        try:
            payload = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read subjects file: {e}", {"path": str(file_path)})

        if not isinstance(payload, list):
            raise ConfigurationError("Subjects file must contain a JSON list", {"path": str(file_path)})

        subjects: List[Subject] = []
        try:
            for item in payload:
                if isinstance(item, str):
                    subjects.append(Subject(name=item))
                else:
                    subjects.append(Subject.model_validate(item))
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid subject entry: {e}", {"path": str(file_path)})
        return cls(subjects)

    def add(self, subject: Subject) -> None:
        with self._lock:
            self._subjects = [s for s in self._subjects if s.name != subject.name]
            self._subjects.append(subject)

    def list_active_subjects(self) -> List[Subject]:
        with self._lock:
            active = [s.model_copy(deep=True) for s in self._subjects if s.active]
        return sorted(active, key=lambda s: (-s.priority, s.name))
