"""
Transform registry and factory for creating transform instances.

This module provides a centralized registry of all available transforms, a
factory to create them from configuration, and the inverse of
``FeatureTransform.get_state`` for restoring fitted transforms.
"""

from typing import Any, Dict, List, Optional, Type
import logging

from ..config.parallel import ParallelConfig
from ..config.settings import TransformSpec
from .base import FeatureTransform, FeatureTransformError
from .transforms import (
    ColumnNormTransform,
    ColumnSelectorTransform,
    MinMaxTransform,
    OutlierClipTransform,
    PowerTransform,
    RowNormTransform,
    StandardizeTransform,
)

logger = logging.getLogger(__name__)


class TransformRegistry:
    """Registry for transform classes.

    Maps registry names to implementation classes, enabling transforms to be
    built from configuration and restored from persisted state.
    """

    def __init__(self):
        """Initialize empty registry."""
        self._transforms: Dict[str, Type[FeatureTransform]] = {}

    def register(self, transform_class: Type[FeatureTransform], name: Optional[str] = None) -> None:
        """Register a transform class under ``name`` (defaults to its ``name``)."""
        name = name or transform_class.name
        self._transforms[name] = transform_class
        logger.debug(f"Registered transform: {name}")

    def get(self, name: str) -> Type[FeatureTransform]:
        """Get a transform class by name.

        Raises:
            FeatureTransformError: If no transform is registered under ``name``.
        """
        if name not in self._transforms:
            raise FeatureTransformError(
                f"Unknown transform {name!r}; registered: {self.list_transforms()}"
            )
        return self._transforms[name]

    def create(
        self,
        name: str,
        params: Optional[Dict[str, Any]] = None,
        parallel: Optional[ParallelConfig] = None,
    ) -> FeatureTransform:
        """Create an unfitted transform by name.

        Args:
            name: Transform name
            params: Hyperparameters passed to the constructor
            parallel: Parallel configuration for the transform
        """
        transform_class = self.get(name)
        try:
            return transform_class(parallel=parallel, **(params or {}))
        except TypeError as e:
            raise FeatureTransformError(f"Invalid parameters for {name!r}: {e}") from e

    def create_from_spec(self, spec: TransformSpec, parallel: Optional[ParallelConfig] = None) -> FeatureTransform:
        return self.create(spec.type.value, spec.params, parallel)

    def from_state(self, state: Dict[str, Any], parallel: Optional[ParallelConfig] = None) -> FeatureTransform:
        """Restore a fitted transform from ``FeatureTransform.get_state`` output."""
        if "type" not in state:
            raise FeatureTransformError("Transform state has no 'type'")
        return self.get(state["type"]).from_state(state, parallel=parallel)

    def list_transforms(self) -> List[str]:
        return sorted(self._transforms)

    def __contains__(self, name: str) -> bool:
        return name in self._transforms

    def __len__(self) -> int:
        return len(self._transforms)


# Global registry instance
TRANSFORM_REGISTRY = TransformRegistry()

for _transform_class in (
    ColumnNormTransform,
    ColumnSelectorTransform,
    MinMaxTransform,
    PowerTransform,
    OutlierClipTransform,
    RowNormTransform,
    StandardizeTransform,
):
    TRANSFORM_REGISTRY.register(_transform_class)


def create_transform(name: str, parallel: Optional[ParallelConfig] = None, **params) -> FeatureTransform:
    """Create a transform from the global registry."""
    return TRANSFORM_REGISTRY.create(name, params, parallel)


def transform_from_state(state: Dict[str, Any], parallel: Optional[ParallelConfig] = None) -> FeatureTransform:
    """Restore a fitted transform using the global registry."""
    return TRANSFORM_REGISTRY.from_state(state, parallel)
