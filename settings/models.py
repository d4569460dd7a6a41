"""
Config record shared with the GUI
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Mapping


class ConfigFormatError(ValueError):
    """Raised when a config payload has the wrong shape"""
    pass


# camelCase spellings the front-end may send
FIELD_ALIASES = {
    "serverUrl": "server_url",
    "apiKey": "api_key",
}


@dataclass
class Config:
    """The single persisted settings record"""
    server_url: str = ""
    api_key: str = ""
    preferences: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "server_url": self.server_url,
            "api_key": self.api_key,
            "preferences": dict(self.preferences),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Config":
        """
        Build a Config from a JSON object.

        Missing fields take their defaults. Unknown top-level keys are kept
        in preferences.

        Raises:
            ConfigFormatError: If data is not an object or a field has the wrong type
        """
        if not isinstance(data, Mapping):
            raise ConfigFormatError(
                f"expected a JSON object, got {type(data).__name__}"
            )

        values: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            name = FIELD_ALIASES.get(key, key)
            if name in ("server_url", "api_key", "preferences"):
                values[name] = value
            else:
                extra[key] = value

        for name in ("server_url", "api_key"):
            value = values.get(name, "")
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ConfigFormatError(
                    f"field '{name}' must be a string, got {type(value).__name__}"
                )
            values[name] = value

        preferences = values.get("preferences")
        if preferences is None:
            preferences = {}
        if not isinstance(preferences, Mapping):
            raise ConfigFormatError(
                f"field 'preferences' must be an object, got {type(preferences).__name__}"
            )

        merged = dict(extra)
        merged.update(preferences)

        return cls(
            server_url=values["server_url"],
            api_key=values["api_key"],
            preferences=merged,
        )
