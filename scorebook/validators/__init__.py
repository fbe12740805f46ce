from scorebook.validators.ball_event_validator import BallEventValidator, parse_wicket_kind

__all__ = ["BallEventValidator", "parse_wicket_kind"]
