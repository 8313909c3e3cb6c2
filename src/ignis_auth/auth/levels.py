"""Authentication levels, factors and the tables that relate them."""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Dict, List, Optional, Tuple


class AuthLevel(IntEnum):
    """Ordered assurance tiers."""

    NONE = 0
    BIRTH_DATE = 1
    POSSESSION = 2
    ADDRESS = 3
    ACTION = 4


class AuthMethod(str, Enum):
    """How the holder of a credential first proved their identity."""

    MAGIC_LINK = "magic_link"
    SMS_OTP = "sms_otp"
    APPOINTMENT_LINK = "appointment_link"
    QR_CHECKIN = "qr_checkin"
    VOICE = "voice"


class Factor(str, Enum):
    """Knowledge and possession factors, named as they appear on the wire."""

    PATIENT_ID = "patientId"
    BIRTH_DATE = "birthDate"
    POSTAL_CODE = "postalCode"
    CITY = "city"
    STREET_NAME = "streetName"
    OTP = "otp"


@dataclass(frozen=True)
class ElevationHint:
    """What a client must supply to reach a level."""

    factors: Tuple[Factor, ...]
    message_en: str
    message_de: str
    requires_otp: bool = False

    def to_dict(self) -> Dict[str, object]:
        body: Dict[str, object] = {
            "factors": [f.value for f in self.factors],
            "prompt": self.message_en,
            "promptDe": self.message_de,
        }
        if self.requires_otp:
            body["requiresOtp"] = True
        return body


ELEVATION_HINTS: Dict[AuthLevel, ElevationHint] = {
    AuthLevel.BIRTH_DATE: ElevationHint(
        factors=(Factor.BIRTH_DATE,),
        message_en="Please enter your date of birth to continue",
        message_de="Bitte geben Sie Ihr Geburtsdatum ein",
    ),
    AuthLevel.POSSESSION: ElevationHint(
        factors=(Factor.BIRTH_DATE,),
        message_en="Please confirm your date of birth",
        message_de="Bitte bestätigen Sie Ihr Geburtsdatum",
    ),
    AuthLevel.ADDRESS: ElevationHint(
        factors=(Factor.POSTAL_CODE, Factor.CITY),
        message_en="Please enter your postal code to continue",
        message_de="Bitte geben Sie Ihre Postleitzahl ein",
    ),
    AuthLevel.ACTION: ElevationHint(
        factors=(Factor.OTP,),
        message_en="We will send a verification code to your phone",
        message_de="Wir senden einen Bestätigungscode an Ihr Telefon",
        requires_otp=True,
    ),
}

# Factors the voice agent has to collect to reach each level
VOICE_LEVEL_FACTORS: Dict[AuthLevel, Tuple[Factor, ...]] = {
    AuthLevel.BIRTH_DATE: (Factor.BIRTH_DATE,),
    AuthLevel.POSSESSION: (Factor.POSTAL_CODE, Factor.CITY),
    AuthLevel.ADDRESS: (Factor.STREET_NAME,),
}


class ProtectedAction(str, Enum):
    """Actions a patient can request, each gated by a minimum level."""

    GREETING = "greeting"
    PRACTICE_INFO = "practice_info"
    VIEW_APPOINTMENT = "view_appointment"
    CONFIRM_REMINDER = "confirm_reminder"
    CANCEL_APPOINTMENT = "cancel_appointment"
    RESCHEDULE_APPOINTMENT = "reschedule_appointment"
    BOOK_APPOINTMENT = "book_appointment"
    CHANGE_PHONE = "change_phone"
    CHANGE_ADDRESS = "change_address"
    REQUEST_PRESCRIPTION = "request_prescription"
    REQUEST_REFERRAL = "request_referral"
    SICK_NOTE = "sick_note"
    QUERY_TEST_RESULTS = "query_test_results"
    VIEW_TEST_RESULTS = "view_test_results"
    CHANGE_EMAIL = "change_email"


ACTION_LEVELS: Dict[ProtectedAction, AuthLevel] = {
    ProtectedAction.GREETING: AuthLevel.NONE,
    ProtectedAction.PRACTICE_INFO: AuthLevel.NONE,
    ProtectedAction.VIEW_APPOINTMENT: AuthLevel.BIRTH_DATE,
    ProtectedAction.CONFIRM_REMINDER: AuthLevel.BIRTH_DATE,
    ProtectedAction.CANCEL_APPOINTMENT: AuthLevel.POSSESSION,
    ProtectedAction.RESCHEDULE_APPOINTMENT: AuthLevel.POSSESSION,
    ProtectedAction.BOOK_APPOINTMENT: AuthLevel.POSSESSION,
    ProtectedAction.CHANGE_PHONE: AuthLevel.POSSESSION,
    ProtectedAction.CHANGE_ADDRESS: AuthLevel.POSSESSION,
    ProtectedAction.REQUEST_PRESCRIPTION: AuthLevel.ADDRESS,
    ProtectedAction.REQUEST_REFERRAL: AuthLevel.ADDRESS,
    ProtectedAction.SICK_NOTE: AuthLevel.ADDRESS,
    ProtectedAction.QUERY_TEST_RESULTS: AuthLevel.ADDRESS,
    ProtectedAction.VIEW_TEST_RESULTS: AuthLevel.ACTION,
    ProtectedAction.CHANGE_EMAIL: AuthLevel.ACTION,
}

_unmapped = set(ProtectedAction) - set(ACTION_LEVELS)
if _unmapped:
    raise RuntimeError(
        "Actions without a required level: " + ", ".join(sorted(a.value for a in _unmapped))
    )


def required_level(action: ProtectedAction) -> AuthLevel:
    """Minimum level needed to perform an action."""
    return ACTION_LEVELS[action]


def action_token_actions() -> List[ProtectedAction]:
    """Actions that need a single-use, action-scoped Level-4 credential."""
    return [a for a, level in ACTION_LEVELS.items() if level == AuthLevel.ACTION]


def parse_action(name: str) -> Optional[ProtectedAction]:
    try:
        return ProtectedAction(name)
    except ValueError:
        return None


def missing_voice_factors(current: int, target: int) -> List[Factor]:
    """Factors the voice agent still has to collect to go from current to target."""
    missing: List[Factor] = []
    for level in range(max(current, 0) + 1, min(target, AuthLevel.ADDRESS) + 1):
        missing.extend(VOICE_LEVEL_FACTORS[AuthLevel(level)])
    return missing
