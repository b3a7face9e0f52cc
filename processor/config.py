"""Pipeline configuration with validation at construction time."""
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from processor.models import DEFAULT_SOURCE_PRIORITY, Source

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when pipeline configuration is invalid."""


@dataclass(frozen=True)
class PipelineConfig:
    """Settings consumed by the reconciliation pipeline."""
    ongoing_threshold_days: int = 30
    theater_event_type: str = 'spektakle teatralne'
    source_priority: Tuple[Source, ...] = DEFAULT_SOURCE_PRIORITY
    other_type_label: str = 'Other'
    max_new_events_display: int = 5

    def __post_init__(self):
        if isinstance(self.ongoing_threshold_days, bool) or not isinstance(
            self.ongoing_threshold_days, int
        ):
            raise ConfigError(
                f"ongoing_threshold_days must be an integer, got "
                f"{self.ongoing_threshold_days!r}"
            )
        if self.ongoing_threshold_days < 0:
            raise ConfigError(
                f"ongoing_threshold_days must be >= 0, got "
                f"{self.ongoing_threshold_days}"
            )
        if isinstance(self.max_new_events_display, bool) or not isinstance(
            self.max_new_events_display, int
        ):
            raise ConfigError(
                f"max_new_events_display must be an integer, got "
                f"{self.max_new_events_display!r}"
            )
        if self.max_new_events_display < 0:
            raise ConfigError(
                f"max_new_events_display must be >= 0, got "
                f"{self.max_new_events_display}"
            )
        if not self.theater_event_type or not self.theater_event_type.strip():
            raise ConfigError("theater_event_type must be a non-empty string")
        if len(set(self.source_priority)) != len(self.source_priority):
            raise ConfigError(
                f"source_priority contains duplicates: "
                f"{[s.value for s in self.source_priority]}"
            )
        missing = set(Source) - set(self.source_priority)
        if missing:
            raise ConfigError(
                f"source_priority must rank every source, missing: "
                f"{sorted(s.value for s in missing)}"
            )

    def rank(self, source: Source) -> int:
        """Return the priority rank of a source (0 is the most trusted)."""
        return self.source_priority.index(source)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'PipelineConfig':
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Validated PipelineConfig

        Raises:
            ConfigError: If a value cannot be parsed or fails validation
        """
        if environ is None:
            environ = os.environ

        threshold_raw = environ.get('ONGOING_THRESHOLD_DAYS', '30')
        try:
            threshold = int(threshold_raw)
        except ValueError:
            raise ConfigError(
                f"ONGOING_THRESHOLD_DAYS must be an integer, got {threshold_raw!r}"
            )

        display_raw = environ.get('MAX_NEW_EVENTS_DISPLAY', '5')
        try:
            max_new_display = int(display_raw)
        except ValueError:
            raise ConfigError(
                f"MAX_NEW_EVENTS_DISPLAY must be an integer, got {display_raw!r}"
            )

        priority = DEFAULT_SOURCE_PRIORITY
        priority_raw = environ.get('SOURCE_PRIORITY')
        if priority_raw:
            try:
                priority = tuple(
                    Source(name.strip().lower())
                    for name in priority_raw.split(',')
                    if name.strip()
                )
            except ValueError as e:
                raise ConfigError(f"Invalid SOURCE_PRIORITY {priority_raw!r}: {e}")

        config = cls(
            ongoing_threshold_days=threshold,
            theater_event_type=environ.get(
                'THEATER_EVENT_TYPE', cls.theater_event_type
            ),
            source_priority=priority,
            other_type_label=environ.get('OTHER_TYPE_LABEL', cls.other_type_label),
            max_new_events_display=max_new_display
        )
        logger.debug(f"Loaded pipeline configuration: {config}")
        return config
