"""
Step 4: Signal Catalog
Read-only registry mapping a signal name to its alternative pose definitions.

Many signals can be performed with either arm, so one name owns an ordered
tuple of definitions. The catalog is built once and never mutated, which
makes it safe to share with the polling thread without locking.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple

import yaml

from .step2_pose_estimation import PoseFrame
from .step3_arm_classifier import ArmPosition, are_both_arms_raised, are_hands_touching

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Perform the signal as shown"


class CatalogError(ValueError):
    """Malformed catalog data."""


@dataclass(frozen=True)
class SignalDefinition:
    """One concrete arm configuration that counts as performing a signal."""
    signal_id: str
    signal_name: str
    left_arm: Optional[ArmPosition] = None
    right_arm: Optional[ArmPosition] = None
    hands_touching: bool = False
    additional_check: Optional[Callable[[PoseFrame], bool]] = None
    description: str = ""

    def __post_init__(self):
        # Accept plain strings for arm positions
        for attr in ('left_arm', 'right_arm'):
            value = getattr(self, attr)
            if value is not None and not isinstance(value, ArmPosition):
                object.__setattr__(self, attr, ArmPosition(value))

        if self.criteria_count == 0:
            raise ValueError(f"Signal definition '{self.signal_id}' declares no criteria")

    @property
    def criteria_count(self) -> int:
        """Number of declared criteria (the matcher averages over these)."""
        return sum((
            self.left_arm is not None,
            self.right_arm is not None,
            bool(self.hands_touching),
            self.additional_check is not None,
        ))


def both_arms_raised_with_hands_touching(frame: PoseFrame) -> bool:
    return are_both_arms_raised(frame) and are_hands_touching(frame)


# Named additional checks, referenced from YAML catalogs
ADDITIONAL_CHECKS: Mapping[str, Callable[[PoseFrame], bool]] = MappingProxyType({
    'both_arms_raised_with_hands_touching': both_arms_raised_with_hands_touching,
})


class SignalCatalog:
    """
    Immutable index of signal definitions by signal name.

    Definitions keep their registration order, both across names and within
    the alternatives of one name.
    """

    def __init__(
        self,
        definitions: Iterable[SignalDefinition],
        descriptions: Optional[Mapping[str, str]] = None
    ):
        """
        Args:
            definitions: All definitions, in priority order
            descriptions: Optional per-name descriptions overriding the
                          ones carried by the definitions

        Raises:
            CatalogError: A description names a signal with no definitions
        """
        grouped: Dict[str, list] = {}
        for definition in definitions:
            grouped.setdefault(definition.signal_name, []).append(definition)

        self._definitions: Mapping[str, Tuple[SignalDefinition, ...]] = MappingProxyType({
            name: tuple(defs) for name, defs in grouped.items()
        })

        unknown = sorted(set(descriptions or {}) - set(self._definitions))
        if unknown:
            raise CatalogError(f"Descriptions given for unknown signals: {', '.join(unknown)}")

        merged: Dict[str, str] = {}
        for name, defs in self._definitions.items():
            for definition in defs:
                if definition.description:
                    merged[name] = definition.description
                    break
        merged.update(descriptions or {})
        self._descriptions: Mapping[str, str] = MappingProxyType(merged)

        self._check_index()

    def _check_index(self) -> None:
        for name, defs in self._definitions.items():
            for definition in defs:
                if definition.signal_name != name:
                    raise CatalogError(
                        f"Definition '{definition.signal_id}' indexed under '{name}' "
                        f"but named '{definition.signal_name}'"
                    )

    def definitions_for(self, signal_name: str) -> Tuple[SignalDefinition, ...]:
        """All alternative definitions of a signal (empty if unknown)."""
        return self._definitions.get(signal_name, ())

    def is_detectable(self, signal_name: str) -> bool:
        return len(self.definitions_for(signal_name)) > 0

    @property
    def signal_names(self) -> Tuple[str, ...]:
        return tuple(self._definitions)

    def description_for(self, signal_name: str, hint: Optional[str] = None) -> str:
        """How to perform a signal: explicit hint, catalog text, or a generic line."""
        if hint:
            return hint
        return self._descriptions.get(signal_name, DEFAULT_DESCRIPTION)

    def __contains__(self, signal_name: object) -> bool:
        return signal_name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self):
        return iter(self._definitions)

    def __repr__(self) -> str:
        return f"SignalCatalog(signals={list(self._definitions)})"

    @classmethod
    def from_yaml(cls, path) -> 'SignalCatalog':
        """
        Load a catalog from a YAML file.

        Expected layout::

            signals:
              - signal_id: remain-stationary
                signal_name: Remain Stationary
                left_arm: extended_horizontal
                right_arm: extended_horizontal
                description: Extend both arms out to your sides horizontally
            descriptions:           # optional, per signal name
              Remain Stationary: ...

        Additional checks are referenced by name from ADDITIONAL_CHECKS.
        """
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict) or not isinstance(data.get('signals'), list):
            raise CatalogError(f"{path}: expected a mapping with a 'signals' list")

        definitions = [
            cls._definition_from_dict(entry, index, path)
            for index, entry in enumerate(data['signals'])
        ]
        descriptions = data.get('descriptions') or {}
        if not isinstance(descriptions, dict):
            raise CatalogError(f"{path}: 'descriptions' must be a mapping")

        catalog = cls(definitions, descriptions=descriptions)
        logger.info("Loaded %d signals (%d definitions) from %s", len(catalog), len(definitions), path)
        return catalog

    @staticmethod
    def _definition_from_dict(entry, index: int, path: Path) -> SignalDefinition:
        if not isinstance(entry, dict):
            raise CatalogError(f"{path}: signal #{index} is not a mapping")

        try:
            signal_name = str(entry['signal_name'])
        except KeyError:
            raise CatalogError(f"{path}: signal #{index} has no signal_name") from None
        signal_id = str(entry.get('signal_id') or f"{signal_name.lower().replace(' ', '-')}-{index}")

        check = None
        check_name = entry.get('additional_check')
        if check_name is not None:
            if check_name not in ADDITIONAL_CHECKS:
                raise CatalogError(f"{path}: unknown additional_check '{check_name}' in '{signal_id}'")
            check = ADDITIONAL_CHECKS[check_name]

        try:
            return SignalDefinition(
                signal_id=signal_id,
                signal_name=signal_name,
                left_arm=entry.get('left_arm'),
                right_arm=entry.get('right_arm'),
                hands_touching=bool(entry.get('hands_touching', False)),
                additional_check=check,
                description=str(entry.get('description') or ''),
            )
        except ValueError as exc:
            raise CatalogError(f"{path}: invalid signal '{signal_id}': {exc}") from exc


# =============================================================================
# Built-in lifesaving signals
# =============================================================================
DETECTABLE_SIGNALS: Tuple[SignalDefinition, ...] = (
    SignalDefinition(
        signal_id="remain-stationary",
        signal_name="Remain Stationary",
        left_arm=ArmPosition.EXTENDED_HORIZONTAL,
        right_arm=ArmPosition.EXTENDED_HORIZONTAL,
        description="Extend both arms out to your sides horizontally",
    ),
    # Either arm may be raised
    SignalDefinition(
        signal_id="return-to-shore",
        signal_name="Return to Shore",
        left_arm=ArmPosition.AT_SIDE,
        right_arm=ArmPosition.RAISED_ABOVE_HEAD,
        description="Raise one arm straight up above your head",
    ),
    SignalDefinition(
        signal_id="return-to-shore-alt",
        signal_name="Return to Shore",
        left_arm=ArmPosition.RAISED_ABOVE_HEAD,
        right_arm=ArmPosition.AT_SIDE,
    ),
    SignalDefinition(
        signal_id="go-right",
        signal_name="Go to the Right or Left",
        left_arm=ArmPosition.AT_SIDE,
        right_arm=ArmPosition.EXTENDED_HORIZONTAL,
        description="Extend one arm horizontally to the side, keep the other at your side",
    ),
    SignalDefinition(
        signal_id="go-left",
        signal_name="Go to the Right or Left",
        left_arm=ArmPosition.EXTENDED_HORIZONTAL,
        right_arm=ArmPosition.AT_SIDE,
    ),
    SignalDefinition(
        signal_id="emergency-evacuation-alarm",
        signal_name="Emergency Evacuation Alarm",
        left_arm=ArmPosition.RAISED_ABOVE_HEAD,
        right_arm=ArmPosition.RAISED_ABOVE_HEAD,
        description="Raise both arms straight above your head",
    ),
    SignalDefinition(
        signal_id="submerged-victim-missing",
        signal_name="Submerged Victim Missing",
        left_arm=ArmPosition.RAISED_ABOVE_HEAD,
        right_arm=ArmPosition.RAISED_ABOVE_HEAD,
        hands_touching=True,
        additional_check=both_arms_raised_with_hands_touching,
        description="Raise both arms above your head with hands touching",
    ),
)

DEFAULT_CATALOG = SignalCatalog(DETECTABLE_SIGNALS)

DETECTABLE_SIGNAL_NAMES: Tuple[str, ...] = DEFAULT_CATALOG.signal_names


def load_catalog(path: Optional[str] = None) -> SignalCatalog:
    """The YAML catalog at path, or the built-in one when path is None."""
    if path is None:
        return DEFAULT_CATALOG
    return SignalCatalog.from_yaml(path)
