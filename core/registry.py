"""Detector registry.

DetectorRegistry is the pipeline's roster of detectors. It keeps them in
registration order (the order the pipeline runs them and concatenates their
output) and provides lookup by name.

The registry enforces one invariant: detector names must be unique. The name
becomes Signal.source and feeds the deterministic signal id, so two detectors
sharing a name could overwrite each other's signals in the store.
"""

from detectors.base import BaseDetector


class DetectorRegistry:
    """Tracks registered detectors and provides lookup by name.

    Backed by a dict keyed on detector name; dicts preserve insertion order,
    which gives the pipeline its deterministic run order for free.
    """

    def __init__(self) -> None:
        self._detectors: dict[str, BaseDetector] = {}

    def register(self, detector: BaseDetector) -> None:
        """Register a detector.

        Raises:
            ValueError: If a detector with the same name is already registered.
                This is always a programming error, not a recoverable condition.
        """
        if detector.name in self._detectors:
            raise ValueError(
                f"Detector '{detector.name}' is already registered. "
                "Each detector must have a unique name."
            )
        self._detectors[detector.name] = detector

    def get_all(self) -> list[BaseDetector]:
        """Return all registered detectors in registration order.

        Returns a copy so callers cannot mutate the registry's state.
        """
        return list(self._detectors.values())

    def get_by_name(self, name: str) -> BaseDetector | None:
        """Look up a detector by name. Returns None rather than raising."""
        return self._detectors.get(name)

    def names(self) -> list[str]:
        return list(self._detectors)

    def __len__(self) -> int:
        return len(self._detectors)
