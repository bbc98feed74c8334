"""
Project registry persistence.
"""

from __future__ import annotations

import json
from pathlib import Path  # noqa: TC003

import pydantic

from kanuka.common.exceptions import ValidationError
from kanuka.common.interfaces import FileSystem  # noqa: TC001
from kanuka.common.models import ProjectConfig


class ProjectStore:
    """Handles loading and saving the project registry document."""

    @staticmethod
    def serialize(project: ProjectConfig) -> bytes:
        data = project.model_dump(mode="json")
        return (json.dumps(data, indent=2, sort_keys=True) + "\n").encode()

    @staticmethod
    def load_project(fs: FileSystem, file_path: Path) -> ProjectConfig:
        """Load the project registry from file."""
        raw = fs.read_bytes(file_path)
        try:
            return ProjectConfig.model_validate(json.loads(raw))
        except (json.JSONDecodeError, UnicodeDecodeError, pydantic.ValidationError) as err:
            msg = f"project file {file_path} is not a valid project registry"
            raise ValidationError(msg) from err

    @staticmethod
    def save_project(
        fs: FileSystem, file_path: Path, project: ProjectConfig, mode: int
    ) -> None:
        """Save the project registry to file."""
        fs.write_bytes(file_path, ProjectStore.serialize(project), mode)
