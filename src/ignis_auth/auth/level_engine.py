"""Maps supplied identity factors to an authentication level.

Levels are climbed one step at a time. Each step is a transition from the
current level that either advances, stays put because its factor was not
supplied (which ends the walk), or fails on a wrong factor (which also ends
the walk and caps the result at the level already reached).
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ignis_auth.auth.factors import (
    validate_birth_date,
    validate_city,
    validate_postal_code,
    validate_street_name,
)
from ignis_auth.auth.levels import ELEVATION_HINTS, AuthLevel, Factor
from ignis_auth.healthcare.patient_record import PatientRecord

Validator = Callable[[PatientRecord, Optional[str]], bool]

VALIDATORS: Dict[Factor, Validator] = {
    Factor.BIRTH_DATE: validate_birth_date,
    Factor.POSTAL_CODE: validate_postal_code,
    Factor.CITY: validate_city,
    Factor.STREET_NAME: validate_street_name,
}


@dataclass(frozen=True)
class FactorBag:
    """Knowledge factors supplied by a caller. Blank values count as absent."""

    birth_date: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    street_name: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FactorBag":
        def pick(factor: Factor) -> Optional[str]:
            value = data.get(factor.value)
            return value if isinstance(value, str) else None

        return cls(
            birth_date=pick(Factor.BIRTH_DATE),
            postal_code=pick(Factor.POSTAL_CODE),
            city=pick(Factor.CITY),
            street_name=pick(Factor.STREET_NAME),
        )

    def get(self, factor: Factor) -> Optional[str]:
        value = {
            Factor.BIRTH_DATE: self.birth_date,
            Factor.POSTAL_CODE: self.postal_code,
            Factor.CITY: self.city,
            Factor.STREET_NAME: self.street_name,
        }.get(factor)
        return value if value and value.strip() else None

    def supplied(self, factors: Tuple[Factor, ...]) -> List[Factor]:
        return [f for f in factors if self.get(f) is not None]

    def is_empty(self) -> bool:
        return not self.supplied(tuple(VALIDATORS))


@dataclass(frozen=True)
class LevelOutcome:
    level: AuthLevel
    failed_factor: Optional[Factor] = None

    @property
    def failed(self) -> bool:
        return self.failed_factor is not None


@dataclass(frozen=True)
class Transition:
    """One step up: from ``source`` to ``target`` using any of ``factors``.

    Factors are tried in order and the first match wins; if every supplied
    factor is wrong, the first supplied one is reported as failed.
    """

    source: AuthLevel
    target: AuthLevel
    factors: Tuple[Factor, ...]

    def apply(self, patient: PatientRecord, bag: FactorBag) -> LevelOutcome:
        supplied = bag.supplied(self.factors)
        if not supplied:
            return LevelOutcome(self.source)
        for factor in supplied:
            if VALIDATORS[factor](patient, bag.get(factor)):
                return LevelOutcome(self.target)
        return LevelOutcome(self.source, supplied[0])


VOICE_TRANSITIONS: Tuple[Transition, ...] = (
    Transition(AuthLevel.NONE, AuthLevel.BIRTH_DATE, (Factor.BIRTH_DATE,)),
    Transition(AuthLevel.BIRTH_DATE, AuthLevel.POSSESSION, (Factor.POSTAL_CODE, Factor.CITY)),
    Transition(AuthLevel.POSSESSION, AuthLevel.ADDRESS, (Factor.STREET_NAME,)),
)


def _walk(
    patient: PatientRecord, bag: FactorBag, start: AuthLevel, transitions: Tuple[Transition, ...]
) -> LevelOutcome:
    level = start
    for transition in transitions:
        if transition.source != level:
            continue
        outcome = transition.apply(patient, bag)
        if outcome.failed or outcome.level == level:
            return outcome
        level = outcome.level
    return LevelOutcome(level)


def evaluate_voice(patient: PatientRecord, bag: FactorBag) -> LevelOutcome:
    """Level reached by a voice caller presenting only knowledge factors."""
    return _walk(patient, bag, AuthLevel.NONE, VOICE_TRANSITIONS)


def evaluate_web_verification(patient: PatientRecord, birth_date: Optional[str]) -> LevelOutcome:
    """Possession token plus a matching birth date is worth exactly Level 2."""
    if validate_birth_date(patient, birth_date):
        return LevelOutcome(AuthLevel.POSSESSION)
    return LevelOutcome(AuthLevel.NONE, Factor.BIRTH_DATE)


def web_elevation_transitions() -> Tuple[Transition, ...]:
    """Knowledge-factor steps of the web channel, taken from the elevation hints."""
    return tuple(
        Transition(AuthLevel(target - 1), target, hint.factors)
        for target, hint in sorted(ELEVATION_HINTS.items())
        if not hint.requires_otp
    )


def evaluate_web_elevation(
    patient: PatientRecord, current: AuthLevel, bag: FactorBag
) -> LevelOutcome:
    """Level a web session can be raised to from ``current`` with the given factors."""
    return _walk(patient, bag, current, web_elevation_transitions())
