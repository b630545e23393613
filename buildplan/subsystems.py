"""Selection of the sub-projects to configure from the option toggles."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping

from .options import OptionSet


@dataclass(frozen=True, slots=True)
class SubsystemDefinition:
    name: str
    directory: str
    option: str | None
    install_component: str | None


# Declaration order is configuration order; `common` has no toggle and comes first.
SUBSYSTEMS: tuple[SubsystemDefinition, ...] = (
    SubsystemDefinition("common", "common", None, None),
    SubsystemDefinition("server", "servatrice", "WITH_SERVER", "Servatrice"),
    SubsystemDefinition("client", "cockatrice", "WITH_CLIENT", "Cockatrice"),
    SubsystemDefinition("oracle", "oracle", "WITH_ORACLE", "Oracle"),
    SubsystemDefinition("dbconverter", "dbconverter", "WITH_DBCONVERTER", "Dbconverter"),
    SubsystemDefinition("tests", "tests", "TEST", None),
)


@dataclass(frozen=True, slots=True)
class SubsystemEntry:
    name: str
    directory: str
    enabled: bool
    install_target_entry: str | None

    def to_mapping(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "directory": self.directory,
            "enabled": self.enabled,
            "install_target_entry": self.install_target_entry,
        }


@dataclass(frozen=True, slots=True)
class SubsystemPlan:
    entries: tuple[SubsystemEntry, ...]
    test_integration: Mapping[str, str] | None = None

    @property
    def names(self) -> List[str]:
        return [entry.name for entry in self.entries]

    def contains(self, name: str) -> bool:
        return any(entry.name == name for entry in self.entries)

    def install_projects(self) -> List[str]:
        """Install project entries in packaging order.

        Every enabled product is prepended, so the result runs opposite to
        the configuration order.
        """

        projects: List[str] = []
        for entry in self.entries:
            if entry.install_target_entry:
                projects.insert(0, entry.install_target_entry)
        return projects

    def to_mapping(self) -> List[Dict[str, object]]:
        return [entry.to_mapping() for entry in self.entries]


def install_target_entry(component: str) -> str:
    return f"{component};{component};ALL;/"


class SubsystemSelector:
    def __init__(self, definitions: tuple[SubsystemDefinition, ...] = SUBSYSTEMS) -> None:
        if not definitions or definitions[0].option is not None:
            raise ValueError("The first subsystem must be the untoggled base subsystem")
        self._definitions = definitions

    def select(self, options: OptionSet) -> SubsystemPlan:
        entries: List[SubsystemEntry] = []
        test_integration: Dict[str, str] | None = None
        for definition in self._definitions:
            if definition.option is not None and not options[definition.option]:
                continue
            if definition.option == "TEST":
                test_integration = {"framework": "ctest", "directory": definition.directory}
            entry = SubsystemEntry(
                name=definition.name,
                directory=definition.directory,
                enabled=True,
                install_target_entry=(
                    install_target_entry(definition.install_component) if definition.install_component else None
                ),
            )
            entries.append(entry)
        return SubsystemPlan(entries=tuple(entries), test_integration=test_integration)


__all__ = [
    "SUBSYSTEMS",
    "SubsystemDefinition",
    "SubsystemEntry",
    "SubsystemPlan",
    "SubsystemSelector",
    "install_target_entry",
]
