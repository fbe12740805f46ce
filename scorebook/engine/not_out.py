"""
Not-out detection.

Decides whether a batter's innings ended "not out" from whatever signals a
batting record carries, in a fixed order of authority:

1. an explicit not_out / dismissed flag
2. a recorded dismissal kind (retired hurt is not out, anything else is out)
3. the innings ended (target reached, overs exhausted, all out, abandoned)
   with no dismissal recorded for this batter
4. otherwise not out

Any object with not_out / dismissed / wicket_kind / status attributes can be
passed as the record (BatterStat, BattingSummary, ...).
"""
from dataclasses import dataclass
from typing import Any, Optional

from scorebook.engine.events import WicketKind


@dataclass(frozen=True)
class InningsEnd:
    """How (and whether) the innings a batter played in finished"""
    innings_complete: bool = False
    target_reached: bool = False
    overs_complete: bool = False
    all_out: bool = False
    abandoned: bool = False

    @property
    def ended(self) -> bool:
        return (
            self.innings_complete
            or self.target_reached
            or self.overs_complete
            or self.all_out
            or self.abandoned
        )

    def to_dict(self) -> dict:
        return {
            "innings_complete": self.innings_complete,
            "target_reached": self.target_reached,
            "overs_complete": self.overs_complete,
            "all_out": self.all_out,
            "abandoned": self.abandoned,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["InningsEnd"]:
        if not data:
            return None
        return cls(**{k: bool(data.get(k, False)) for k in cls.__dataclass_fields__})


_NOT_OUT_STATUSES = {"not out", "not-out", "notout", "not_out"}
_OUT_STATUSES = {"out", "dismissed"}


def _kind_value(kind: Any) -> Optional[str]:
    if kind is None or kind == "":
        return None
    if isinstance(kind, WicketKind):
        return kind.value
    return str(kind).strip().lower().replace("_", "-").replace(" ", "-")


def _explicit_flag(record: Any) -> Optional[bool]:
    not_out = getattr(record, "not_out", None)
    if not_out is True:
        return True
    if not_out is False or getattr(record, "dismissed", None) is True:
        return False
    return None


def _from_dismissal(record: Any) -> Optional[bool]:
    kind = _kind_value(getattr(record, "wicket_kind", None))
    if kind is None:
        return None
    return kind == WicketKind.RETIRED_HURT.value


def is_not_out(record: Any, end: Optional[InningsEnd] = None) -> bool:
    """Classify a batter's final status. True means not out."""
    explicit = _explicit_flag(record)
    if explicit is not None:
        return explicit

    from_dismissal = _from_dismissal(record)
    if from_dismissal is not None:
        return from_dismissal

    if end is not None and end.ended:
        return True

    # No dismissal on record: presumed not out
    return True


def not_out_from_summary(record: Any) -> bool:
    """Same procedure without innings context; honours a free-text status"""
    explicit = _explicit_flag(record)
    if explicit is not None:
        return explicit

    from_dismissal = _from_dismissal(record)
    if from_dismissal is not None:
        return from_dismissal

    status = str(getattr(record, "status", "") or "").strip().lower()
    if status in _NOT_OUT_STATUSES:
        return True
    if status in _OUT_STATUSES:
        return False
    return True
