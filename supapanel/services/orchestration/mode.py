"""
Panel mode: where the panel keeps its on-disk state.

production keeps Traefik dynamic files and project directories under
/etc/supapanel; development keeps them relative to the working directory.
"""

from enum import Enum


class PanelMode(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "PanelMode":
        """Parse SUPAPANEL_MODE, ignoring case and surrounding whitespace."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = " or ".join(repr(m.value) for m in cls)
            raise ValueError(f"Invalid panel mode {value!r}, expected {choices}") from None

    @property
    def is_production(self) -> bool:
        return self is PanelMode.PRODUCTION

    def __str__(self) -> str:
        return self.value
