"""CLI dashboard — prints a heat-map pass to the console."""

from typing import Optional

from fxlevels.strategy.models import InstrumentAnalysis


def _fmt_ratio(record: InstrumentAnalysis) -> str:
    if record.risk_reward is None or not record.risk_reward.defined:
        return "N/A"
    return f"{record.risk_reward.ratio:.2f}"


def print_heatmap(records: list[InstrumentAnalysis], pass_id: Optional[int] = None) -> str:
    """Format and print one row per instrument.

    Returns:
        The formatted string (also printed to stdout).
    """
    title = "fxlevels Heat Map" + (f" (pass {pass_id})" if pass_id is not None else "")
    lines = [
        f"──────────────── {title} ────────────────",
        f"  {'Pair':<10}{'Price':>12}{'Chg%':>8}  {'Signal':<8}{'R:R':>6}  {'Channel':<9} Closest",
    ]
    for r in records:
        change = f"{r.change_percent:+.2f}" if r.change_percent is not None else "N/A"
        channel = r.channel.direction.value if r.channel else "N/A"
        closest = r.closest_level.label if r.closest_level else "N/A"
        flag = "" if r.confident else " *"
        lines.append(
            f"  {r.display_name:<10}{r.formatted_price:>12}{change:>8}  "
            f"{r.signal.value:<8}{_fmt_ratio(r):>6}  {channel:<9} {closest}{flag}"
        )
    lines.append("  * incomplete or degenerate data")
    lines.append("─" * 56)
    output = "\n".join(lines)
    print(output)
    return output
