#!/usr/bin/env python3
"""
CLI for operating the Scorebook cricket scoring service
"""
import json
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.panel import Panel
from scorebook.database import init_db, get_session
from scorebook.engine import rules
from scorebook.engine.ball_service import BallService
from scorebook.engine.career import CareerAggregator, SeasonAggregator
from scorebook.engine.errors import ScorebookError
from scorebook.engine.innings import InningsSnapshot, MatchContext, recompute
from scorebook.logging_config import configure_logging
from scorebook.models import Player, Team, PlayerMatchSummaryRecord
from scorebook.validators import BallEventValidator

console = Console()


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, WARNING...)")
def cli(log_level):
    """Scorebook - Live Cricket Scoring"""
    configure_logging(log_level, handler=RichHandler(console=console, show_path=False))


@cli.command()
def init():
    """Initialize the database"""
    console.print("[yellow]Initializing database...[/yellow]")
    init_db()
    console.print("[green]Database initialized successfully![/green]")


@cli.command()
@click.argument("name")
@click.argument("short_name")
def add_team(name: str, short_name: str):
    """Register a team"""
    init_db()
    session = get_session()
    team = Team(name=name, short_name=short_name)
    session.add(team)
    session.commit()
    console.print(f"[green]Team #{team.id} {team.name} ({team.short_name}) added[/green]")
    session.close()


@cli.command()
@click.argument("name")
@click.option("--team", "team_id", type=int, default=None, help="Team id the player belongs to")
def add_player(name: str, team_id):
    """Register a player"""
    init_db()
    session = get_session()
    if team_id is not None and not session.get(Team, team_id):
        console.print(f"[red]Team {team_id} not found[/red]")
        session.close()
        sys.exit(1)
    player = Player(name=name, team_id=team_id)
    session.add(player)
    session.commit()
    console.print(f"[green]Player #{player.id} {player.name} added[/green]")
    session.close()


@cli.command()
def list_players():
    """List all players in the database"""
    session = get_session()
    players = session.query(Player).order_by(Player.name).all()

    if not players:
        console.print("[red]No players found. Run 'add-player' first.[/red]")
        session.close()
        return

    table = Table(title=f"All Players ({len(players)} total)")
    table.add_column("ID")
    table.add_column("Name", style="cyan")
    table.add_column("Team")

    for player in players:
        table.add_row(
            str(player.id),
            player.name,
            player.team.short_name if player.team else "-",
        )

    console.print(table)
    session.close()


def _load_replay_file(path: str) -> tuple[list, MatchContext, dict]:
    """
    A replay file is either a JSON list of deliveries or an object with
    "balls", an optional "context" and an optional "players" id -> name map.
    """
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, list):
        return data, MatchContext(), {}
    context = MatchContext(**data.get("context", {}))
    players = {int(k): v for k, v in (data.get("players") or {}).items()}
    return data.get("balls", []), context, players


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print the snapshot as JSON instead of tables")
def replay(file: str, as_json: bool):
    """Replay a JSON file of deliveries and print the scorecard"""
    raw_balls, context, players = _load_replay_file(file)

    events = []
    rejected = 0
    for i, raw in enumerate(raw_balls, start=1):
        result = BallEventValidator.validate(raw)
        if not result["ok"]:
            rejected += 1
            console.print(f"[red]Delivery {i} rejected:[/red] {'; '.join(result['errors'])}")
            continue
        events.append(result["normalized"].with_sequence(len(events) + 1))

    snapshot = recompute(events, context, players)
    if as_json:
        click.echo(json.dumps(snapshot.to_dict(), indent=2))
    else:
        _print_scorecard(snapshot)
    if rejected:
        console.print(f"[yellow]{rejected} delivery(ies) rejected[/yellow]")
        sys.exit(1)


@cli.command("recompute")
@click.argument("match_id", type=int)
@click.argument("innings_number", type=int)
def recompute_innings(match_id: int, innings_number: int):
    """Rebuild an innings snapshot from its stored deliveries"""
    session = get_session()
    try:
        snapshot = BallService(session).recompute(match_id, innings_number)
    except ScorebookError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    finally:
        session.close()
    _print_scorecard(snapshot)


def _print_scorecard(snapshot: InningsSnapshot):
    """Print innings scorecard"""
    header = f"[bold]Innings {snapshot.innings_number}: {snapshot.score} ({snapshot.overs} ov)[/bold]"
    header += f"  RR {snapshot.current_run_rate:.2f}"
    if snapshot.target is not None:
        header += f"  Target {snapshot.target}"
        if snapshot.required_run_rate is not None:
            header += f"  RRR {snapshot.required_run_rate:.2f}"
    if snapshot.end_reason:
        header += f"  [magenta]({snapshot.end_reason.replace('_', ' ')})[/magenta]"
    console.print(Panel(header))

    # Batting
    bat_table = Table(title="Batting")
    bat_table.add_column("Batter", style="cyan")
    bat_table.add_column("Dismissal")
    bat_table.add_column("R", justify="right")
    bat_table.add_column("B", justify="right")
    bat_table.add_column("4s", justify="right")
    bat_table.add_column("6s", justify="right")
    bat_table.add_column("SR", justify="right")

    for batter in snapshot.batters:
        dismissal = batter.dismissal if batter.dismissal else ("not out" if batter.not_out else "")
        bat_table.add_row(
            batter.name,
            dismissal,
            str(batter.runs),
            str(batter.balls),
            str(batter.fours),
            str(batter.sixes),
            f"{batter.strike_rate:.1f}",
        )

    console.print(bat_table)
    extras = snapshot.extras
    console.print(
        f"Extras: {sum(extras.values())} (wd {extras['wides']}, nb {extras['no_balls']}, "
        f"b {extras['byes']}, lb {extras['leg_byes']}, pen {extras['penalty']})"
    )

    # Bowling
    bowl_table = Table(title="Bowling")
    bowl_table.add_column("Bowler", style="magenta")
    bowl_table.add_column("O", justify="right")
    bowl_table.add_column("M", justify="right")
    bowl_table.add_column("R", justify="right")
    bowl_table.add_column("W", justify="right")
    bowl_table.add_column("Econ", justify="right")

    for bowler in snapshot.bowlers:
        bowl_table.add_row(
            bowler.name,
            bowler.overs,
            str(bowler.maidens),
            str(bowler.runs_conceded),
            str(bowler.wickets),
            f"{bowler.economy:.1f}",
        )

    console.print(bowl_table)

    if snapshot.fall_of_wickets:
        fow = ", ".join(f"{f.wicket}-{f.score} ({f.name}, {f.over} ov)" for f in snapshot.fall_of_wickets)
        console.print(f"[bold]Fall of wickets:[/bold] {fow}")


def _player_or_exit(session, player_id: int) -> Player:
    player = session.get(Player, player_id)
    if not player:
        console.print(f"[red]Player {player_id} not found[/red]")
        session.close()
        sys.exit(1)
    return player


@cli.command()
@click.argument("player_id", type=int)
def career(player_id: int):
    """Show a player's career statistics"""
    session = get_session()
    player = _player_or_exit(session, player_id)
    stats = CareerAggregator.aggregate(PlayerMatchSummaryRecord.summaries_for_player(session, player_id), player_id)

    console.print(Panel(f"[bold cyan]{player.name}[/bold cyan] - {stats.matches} matches, "
                        f"W {stats.wins} / L {stats.losses} / T {stats.ties} ({stats.win_percentage:.1f}%)"))

    bat = stats.batting
    console.print(
        f"[cyan]Batting:[/cyan] {bat.runs} runs in {bat.innings} inns, {bat.not_outs} NO, "
        f"HS {rules.format_highest_score(bat.highest, bat.highest_not_out)}, "
        f"Avg {rules.format_average(bat.average)}, SR {bat.strike_rate:.2f}, "
        f"50s {bat.fifties}, 100s {bat.hundreds}"
    )
    bowl = stats.bowling
    console.print(
        f"[magenta]Bowling:[/magenta] {bowl.wickets} wkts in {bowl.overs} ov, "
        f"BB {rules.format_best_bowling(bowl.best)}, Avg {rules.format_average(bowl.average)}, "
        f"Econ {bowl.economy:.2f}, 5w {bowl.five_wickets}"
    )
    session.close()


@cli.command()
@click.argument("player_id", type=int)
def seasons(player_id: int):
    """Show a player's statistics season by season"""
    session = get_session()
    player = _player_or_exit(session, player_id)
    rows = SeasonAggregator.aggregate(PlayerMatchSummaryRecord.summaries_for_player(session, player_id), player_id)

    table = Table(title=f"{player.name} - Seasons")
    table.add_column("Year")
    table.add_column("M", justify="right")
    table.add_column("Runs", justify="right")
    table.add_column("HS", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("SR", justify="right")
    table.add_column("Wkts", justify="right")
    table.add_column("BB", justify="right")
    table.add_column("Econ", justify="right")

    for season in rows:
        table.add_row(
            str(season.year) if season.year is not None else "-",
            str(season.matches),
            str(season.batting.runs),
            rules.format_highest_score(season.batting.highest, season.batting.highest_not_out),
            rules.format_average(season.batting.average),
            f"{season.batting.strike_rate:.1f}",
            str(season.bowling.wickets),
            rules.format_best_bowling(season.bowling.best),
            f"{season.bowling.economy:.2f}",
        )

    console.print(table)
    session.close()


if __name__ == "__main__":
    cli()
