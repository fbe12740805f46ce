from datetime import datetime
from typing import Any, Optional

from scorebook.engine.events import BallEvent, Extras, Wicket, WicketKind


_STRIKER_KEYS = ("striker_id", "strikerId", "batsmanId", "batsman_id", "batter_id", "batterId")
_NON_STRIKER_KEYS = ("non_striker_id", "nonStrikerId", "non_striker")
_BOWLER_KEYS = ("bowler_id", "bowlerId")
_BAT_RUNS_KEYS = ("runs_off_bat", "runsOffBat", "batRuns", "bat_runs")
_LEGAL_KEYS = ("is_legal", "isLegal", "countsBall", "counts_ball")

_EXTRA_KEYS = {
    "wides": ("wides", "wide", "wd"),
    "no_balls": ("no_balls", "noBalls", "noBall", "no_ball", "nb"),
    "byes": ("byes", "bye", "b"),
    "leg_byes": ("leg_byes", "legByes", "legBye", "legbye", "leg_bye", "lb"),
    "penalty": ("penalty", "penalties"),
}

_WICKET_KIND_ALIASES = {
    "runout": WicketKind.RUN_OUT,
    "run-out": WicketKind.RUN_OUT,
    "c&b": WicketKind.CAUGHT_AND_BOWLED,
    "c-&-b": WicketKind.CAUGHT_AND_BOWLED,
    "caught-&-bowled": WicketKind.CAUGHT_AND_BOWLED,
    "caught-behind": WicketKind.CAUGHT,
    "hitwicket": WicketKind.HIT_WICKET,
    "obstructing-the-field": WicketKind.OBSTRUCTING,
    "obstructing-field": WicketKind.OBSTRUCTING,
    "handled-the-ball": WicketKind.HANDLED_BALL,
    "hit-the-ball-twice": WicketKind.HIT_BALL_TWICE,
    "retired": WicketKind.RETIRED_HURT,
}


def _first(data: dict, keys: tuple, default: Any = None) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


def _to_int(value: Any, name: str, errors: list[str]) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        errors.append(f"{name} must be a number, got {value!r}")
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        errors.append(f"{name} must be a number, got {value!r}")
        return 0


def _to_player_id(value: Any, name: str, errors: list[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        errors.append(f"{name} must be a player id, got {value!r}")
        return None


def parse_wicket_kind(value: str) -> Optional[WicketKind]:
    """Map the many scorer spellings of a dismissal onto a WicketKind"""
    key = str(value).strip().lower().replace("_", "-").replace(" ", "-")
    if key in _WICKET_KIND_ALIASES:
        return _WICKET_KIND_ALIASES[key]
    try:
        return WicketKind(key)
    except ValueError:
        return None


def _extra_type(raw: dict) -> str:
    value = raw.get("extraType") or raw.get("extra_type") or ""
    key = str(value).strip().lower().replace("_", "-").replace(" ", "-")
    if key in ("noball", "no-ball", "nb"):
        return "no-ball"
    if key in ("wide", "wd"):
        return "wide"
    return key


class BallEventValidator:
    @staticmethod
    def normalize(raw: dict, errors: list[str]) -> Optional[BallEvent]:
        """
        Build the canonical BallEvent from scorer input, accepting the legacy
        field spellings. Problems are appended to errors.
        """
        striker_id = _to_player_id(_first(raw, _STRIKER_KEYS), "striker_id", errors)
        non_striker_id = _to_player_id(_first(raw, _NON_STRIKER_KEYS), "non_striker_id", errors)
        bowler_id = _to_player_id(_first(raw, _BOWLER_KEYS), "bowler_id", errors)

        raw_extras = raw.get("extras") or {}
        if not isinstance(raw_extras, dict):
            errors.append("extras must be an object")
            raw_extras = {}
        counts = {
            name: _to_int(_first(raw_extras, keys), name, errors)
            for name, keys in _EXTRA_KEYS.items()
        }

        bat_value = _first(raw, _BAT_RUNS_KEYS)
        runs_off_bat = _to_int(bat_value, "runs_off_bat", errors)
        total_value = raw.get("runs")

        extra_type = _extra_type(raw)
        flagged_wide = extra_type == "wide" or raw.get("isWide") is True or raw.get("is_wide") is True
        flagged_no_ball = extra_type == "no-ball" or raw.get("isNoBall") is True or raw.get("is_no_ball") is True
        # Legacy byes send the total in "runs" with batRuns absent or 0
        bat_unset = bat_value is None or not runs_off_bat
        if extra_type == "bye" and counts["byes"] == 0 and total_value is not None and bat_unset:
            counts["byes"] = _to_int(total_value, "runs", errors)
            total_value = None
        elif extra_type in ("leg-bye", "legbye") and counts["leg_byes"] == 0 and total_value is not None and bat_unset:
            counts["leg_byes"] = _to_int(total_value, "runs", errors)
            total_value = None

        if total_value is not None:
            total = _to_int(total_value, "runs", errors)
            other_extras = counts["byes"] + counts["leg_byes"] + counts["penalty"]
            if flagged_wide and counts["wides"] == 0:
                counts["wides"] = total - runs_off_bat - other_extras - counts["no_balls"]
            elif flagged_no_ball and counts["no_balls"] == 0:
                counts["no_balls"] = total - runs_off_bat - other_extras - counts["wides"]
            elif bat_value is None and not any(counts.values()):
                runs_off_bat = total
            elif total != runs_off_bat + sum(counts.values()):
                errors.append(
                    f"runs total {total} does not match runs off bat plus extras "
                    f"({runs_off_bat + sum(counts.values())})"
                )
        else:
            # Flag without a count: the mandatory one-run penalty
            if flagged_wide and counts["wides"] == 0:
                counts["wides"] = 1
            if flagged_no_ball and counts["no_balls"] == 0:
                counts["no_balls"] = 1

        extras = Extras(
            wides=counts["wides"],
            no_balls=counts["no_balls"],
            byes=counts["byes"],
            leg_byes=counts["leg_byes"],
            penalty=counts["penalty"],
        )

        wicket = BallEventValidator._normalize_wicket(raw, striker_id, errors)

        timestamp = raw.get("timestamp")
        if isinstance(timestamp, str):
            try:
                timestamp = datetime.fromisoformat(timestamp)
            except ValueError:
                errors.append(f"timestamp is not ISO-8601: {timestamp!r}")
                timestamp = None
        elif timestamp is not None and not isinstance(timestamp, datetime):
            errors.append(f"timestamp is not ISO-8601: {timestamp!r}")
            timestamp = None

        if striker_id is None:
            errors.append("striker_id is required")
        if bowler_id is None:
            errors.append("bowler_id is required")
        if striker_id is None or bowler_id is None:
            return None

        return BallEvent(
            sequence=_to_int(raw.get("sequence"), "sequence", errors),
            striker_id=striker_id,
            non_striker_id=non_striker_id,
            bowler_id=bowler_id,
            runs_off_bat=runs_off_bat,
            extras=extras,
            wicket=wicket,
            free_hit=bool(raw.get("free_hit") or raw.get("freeHit")),
            timestamp=timestamp,
        )

    @staticmethod
    def _normalize_wicket(raw: dict, striker_id: Optional[int], errors: list[str]) -> Optional[Wicket]:
        nested = raw.get("wicket")
        if nested is not None and not isinstance(nested, dict):
            errors.append("wicket must be an object")
            nested = None
        nested = nested or {}

        kind_value = _first(nested, ("kind", "type", "wicket_type", "wicketType"))
        if kind_value is None:
            kind_value = _first(raw, ("wicket_type", "wicketType", "dismissal"))
        is_wicket = bool(nested) or kind_value is not None or raw.get("isWicket") is True or raw.get("is_wicket") is True
        if not is_wicket:
            return None
        if kind_value is None:
            errors.append("wicket kind is required when a wicket is recorded")
            return None

        kind = parse_wicket_kind(kind_value)
        if kind is None:
            errors.append(f"Unknown wicket kind: {kind_value!r}")
            return None

        dismissed_id = _to_player_id(
            _first(nested, ("dismissed_player_id", "dismissedPlayerId"))
            or _first(raw, ("dismissedBatsmanId", "dismissed_player_id", "dismissedPlayerId")),
            "dismissed_player_id",
            errors,
        )
        if dismissed_id is None:
            dismissed_id = striker_id
        credited = _first(nested, ("credited_to_bowler", "creditedToBowler"))
        if credited is None:
            credited = kind.credited_to_bowler
        fielder_id = _to_player_id(_first(nested, ("fielder_id", "fielderId")), "fielder_id", errors)

        if dismissed_id is None:
            return None
        return Wicket(
            kind=kind,
            dismissed_player_id=dismissed_id,
            credited_to_bowler=bool(credited),
            fielder_id=fielder_id,
        )

    @staticmethod
    def validate(raw: dict) -> dict:
        """
        Normalize and validate one raw delivery.

        Rules:
        1. Striker and bowler are required
        2. Runs off bat and extras are non-negative
        3. A delivery is exactly one of legal / wide / no-ball
        4. Wides and no-balls never count toward the legal-ball tally
        5. Wides and no-balls carry at least 1 run, and no wicket except run-out
        6. No runs off the bat on a wide; byes and leg-byes are exclusive
        7. The dismissed batter is at the crease; run-outs are never the bowler's
        8. Only non-bowler dismissals on a free hit

        Pure: never consults earlier deliveries.
        """
        errors: list[str] = []
        if not isinstance(raw, dict):
            return {"ok": False, "normalized": None, "errors": ["Ball event must be an object"]}

        event = BallEventValidator.normalize(raw, errors)
        if event is None:
            return {"ok": False, "normalized": None, "errors": errors}

        extras = event.extras
        if event.runs_off_bat < 0:
            errors.append("Runs off bat cannot be negative")
        for name in ("wides", "no_balls", "byes", "leg_byes", "penalty"):
            if getattr(extras, name) < 0:
                errors.append(f"Extras {name} cannot be negative")

        if event.is_wide and event.is_no_ball:
            errors.append("Delivery cannot be both a wide and a no-ball")

        counts_ball = _first(raw, _LEGAL_KEYS)
        if counts_ball is True and event.is_wide:
            errors.append("Wide should not count as a legal ball")
        if counts_ball is True and event.is_no_ball:
            errors.append("No-ball should not count as a legal ball")

        flagged_wide = _extra_type(raw) == "wide" or raw.get("isWide") is True or raw.get("is_wide") is True
        flagged_no_ball = _extra_type(raw) == "no-ball" or raw.get("isNoBall") is True or raw.get("is_no_ball") is True
        if (flagged_wide or event.is_wide) and event.total_runs < 1:
            errors.append("Wide must have at least 1 run")
        if (flagged_no_ball or event.is_no_ball) and event.total_runs < 1:
            errors.append("No-ball must have at least 1 run")
        if (flagged_wide or event.is_wide) and event.runs_off_bat > 0:
            errors.append("Wide cannot have runs off the bat")
        if extras.byes > 0 and extras.leg_byes > 0:
            errors.append("Delivery cannot have both byes and leg-byes")

        wicket = event.wicket
        if wicket is not None:
            if (flagged_wide or event.is_wide) and wicket.kind is not WicketKind.RUN_OUT:
                errors.append("Wide cannot be a wicket (except run-out)")
            if (flagged_no_ball or event.is_no_ball) and wicket.kind is not WicketKind.RUN_OUT:
                errors.append("No-ball cannot be a wicket (except run-out)")
            if wicket.kind is WicketKind.RUN_OUT and wicket.credited_to_bowler:
                errors.append("Run-out cannot be credited to the bowler")
            if event.free_hit and wicket.kind.credited_to_bowler:
                errors.append(f"Batter cannot be out {wicket.kind.value} on a free hit")
            at_crease = {event.striker_id, event.non_striker_id}
            if wicket.kind is not WicketKind.TIMED_OUT and wicket.dismissed_player_id not in at_crease:
                errors.append("Dismissed player must be the striker or the non-striker")

        if event.non_striker_id is not None and event.non_striker_id == event.striker_id:
            errors.append("Striker and non-striker must be different players")

        if errors:
            return {"ok": False, "normalized": None, "errors": errors}
        return {"ok": True, "normalized": event, "errors": []}
