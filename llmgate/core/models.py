"""Model table: caller-facing aliases mapped to backend models."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from .exceptions import ModelNotSupportedError

logger = logging.getLogger("llmgate")


@dataclass(frozen=True)
class Model:
    """A backend model exposed under a caller-facing alias.

    Attributes:
        id: Model identifier sent to the backend.
        name: Alias callers put in the ``model`` field.
        endpoint: Path suffix appended to the gateway host for this model.
    """

    id: str
    name: str
    endpoint: str


class ModelRegistry:
    """Immutable lookup table of configured models.

    Built once at startup and only read afterwards, so it is safe to share
    between concurrent requests.
    """

    def __init__(self, models: Iterable[Model]) -> None:
        ordered: list[Model] = []
        by_name: dict[str, Model] = {}
        for model in models:
            if model.name in by_name:
                logger.warning(
                    "Duplicate model name '%s' in config; keeping the first entry",
                    model.name,
                )
                continue
            by_name[model.name] = model
            ordered.append(model)
        self._models = tuple(ordered)
        self._by_name: Mapping[str, Model] = by_name

    @property
    def models(self) -> tuple[Model, ...]:
        """Configured models in configuration order."""
        return self._models

    def resolve(self, name: str) -> Model:
        """Return the model registered under ``name``.

        Matching is exact and case-sensitive.

        Raises:
            ModelNotSupportedError: If no model has that name.
        """
        model = self._by_name.get(name) if isinstance(name, str) else None
        if model is None:
            raise ModelNotSupportedError(str(name))
        return model

    def names(self) -> list[str]:
        return [model.name for model in self._models]

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name
