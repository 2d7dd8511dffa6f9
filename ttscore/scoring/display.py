"""Human-readable descriptions of scoring rules and results."""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ttscore.scoring.models import ScoringConfiguration, ScoringResult

# Shared console instance
console = Console()

SCORING_NOT_ENABLED = "Advanced scoring is not enabled for this tournament."

_TABLE_TENNIS_NOTES = (
    "",
    "🎯 Table tennis specifics:",
    "• There is no third-place match: both losing semifinalists finish third",
    "• Points account for the rounds reached and the number of participants",
    "",
    "💡 Tips:",
    "• Lower ranking numbers are better positions (#1 is above #100)",
    "• Upset = beating someone ranked better than you",
    "• Match points for the winner are never below 0",
)


def explain_scoring_system(config: ScoringConfiguration | dict[str, Any] | None) -> list[str]:
    """Describe the active rules of a scoring configuration.

    Args:
        config: Configuration model or the raw JSON blob from the tournament

    Returns:
        Ordered lines suitable for an admin screen
    """
    if config is None:
        return [SCORING_NOT_ENABLED]
    if not isinstance(config, ScoringConfiguration):
        config = ScoringConfiguration.from_blob(config)
    if not config.enabled:
        return [SCORING_NOT_ENABLED]

    lines = [
        "🏆 Advanced scoring system:",
        f"• Base points per win: {config.base_points}",
    ]

    if config.use_ranking_multiplier:
        lines += [
            f"• Ranking multiplier: {config.ranking_formula}",
            "  - Beating a better-ranked opponent = more points",
            "  - Beating a worse-ranked opponent = fewer points",
        ]

    if config.bonus_for_upset > 0:
        lines.append(f"• Upset bonus: +{config.bonus_for_upset} points")

    if config.lose_penalty_enabled:
        lines.append(f"• Loss penalty: -{config.lose_penalty_points} points")
        if config.use_lose_penalty_multiplier:
            lines.append("  - The ranking multiplier is also applied to losses")

    if config.penalty_for_loss > 0:
        lines.append(f"• Extra loss penalty when the favourite wins: -{config.penalty_for_loss} points")

    if config.placement_points_enabled:
        lines += [
            "• Final placement points:",
            f"  - Champion: {config.champion_points} base points",
            f"  - Runner-up: {config.runner_up_points} base points",
            f"  - Semifinalists: {config.semifinalist_points} base points",
            f"  - Quarterfinalists: {config.quarterfinalist_points} base points",
            f"  - {config.placement_points_formula} formula",
        ]

    if config.has_custom_formula:
        lines.append("• Custom formula active")

    lines.extend(_TABLE_TENNIS_NOTES)
    return lines


def render_scoring_rules(config: ScoringConfiguration | dict[str, Any] | None) -> Panel:
    """Wrap the rule description in a Rich panel."""
    lines = explain_scoring_system(config)
    enabled = len(lines) > 1

    return Panel(
        Text("\n".join(lines)),
        title="[bold]Scoring Rules[/bold]",
        border_style="cyan" if enabled else "dim",
        box=box.ROUNDED,
    )


def create_result_table(result: ScoringResult, title: str = "Match Points") -> Table:
    """Create a Rich table summarizing a match's point deltas."""
    table = Table(
        title=f"[bold cyan]{title}[/bold cyan]",
        box=box.ROUNDED,
        show_lines=False,
        header_style="bold magenta",
        title_justify="left",
    )

    table.add_column("Winner", style="green", width=8, justify="right")
    table.add_column("Bonus", style="yellow", width=7, justify="right")
    table.add_column("Loser", width=8, justify="right")
    table.add_column("Penalty", style="red", width=8, justify="right")

    if result.loser_points < 0:
        loser_str = f"[red]{result.loser_points}[/red]"
    elif result.loser_points > 0:
        loser_str = f"[green]+{result.loser_points}[/green]"
    else:
        loser_str = "0"

    table.add_row(
        f"+{result.winner_points}",
        f"+{result.bonus_points}" if result.bonus_points else "-",
        loser_str,
        str(result.penalty_points) if result.penalty_points else "-",
    )

    return table


def print_scoring_result(result: ScoringResult) -> None:
    """Print a match result table followed by its explanation."""
    console.print(create_result_table(result))
    for line in result.explanation:
        console.print(line, markup=False)
