"""
Terminal rendering of the turn order.
"""

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .state.schema import HealthMode, ParticipantRecord, SceneState
from .systems.damage import health_info

# Shared console instance
console = Console()

THEME = {
    "primary": "steel_blue",
    "secondary": "grey70",
    "warning": "dark_goldenrod",
    "danger": "dark_red",
    "accent": "cyan",
    "dim": "dim",
}


def _health_cell(record: ParticipantRecord, state: SceneState, gm: bool) -> Text:
    info = health_info(record, state.settings)
    numbers = f"{record.current_hp}/{record.max_hp}"
    if record.temp_hp:
        numbers += f" (+{record.temp_hp})"

    if info.is_dead:
        style = THEME["danger"]
    elif info.is_bloodied:
        style = THEME["warning"]
    else:
        style = THEME["secondary"]

    if gm or info.mode == HealthMode.NUMBERS:
        return Text(numbers, style=style)
    if info.mode == HealthMode.STATUS:
        return Text(info.status_text, style=style)
    return Text("")


def build_turn_table(
    records: list[ParticipantRecord],
    state: SceneState,
    gm: bool = True,
) -> Table:
    """
    Turn-order table.

    The GM view lists every record with group and visibility columns; the
    player view expects records already filtered by visible_rows().
    """
    groups = {g.id: g for g in state.groups}
    title = f"Round {state.round}" if state.started else "Not started"

    table = Table(
        title=f"[bold {THEME['primary']}]{title}[/bold {THEME['primary']}]",
        box=None,
    )
    table.add_column("", width=1)
    table.add_column("Init", justify="right", style=THEME["accent"])
    table.add_column("Name")
    if state.settings.show_armor:
        table.add_column("AC", justify="right")
    if gm or state.settings.show_hp:
        table.add_column("HP", justify="right")
    if gm:
        table.add_column("Group", style=THEME["dim"])
        table.add_column("Visible", style=THEME["dim"])

    for record in records:
        cells: list = [
            Text(">", style=THEME["warning"]) if record.active else "",
            f"{record.initiative:g}",
            Text(record.name, style="bold" if record.active else ""),
        ]
        if state.settings.show_armor:
            cells.append(str(record.ac))
        if gm or state.settings.show_hp:
            cells.append(_health_cell(record, state, gm))
        if gm:
            group = groups.get(record.group_id) if record.group_id else None
            label = ""
            if group is not None:
                label = f"{group.name} (staged)" if group.staged else group.name
            cells.append(label)
            cells.append("yes" if record.visible else "no")
        table.add_row(*cells)

    return table


def render_turn_order(
    records: list[ParticipantRecord],
    state: SceneState,
    gm: bool = True,
) -> None:
    console.print(build_turn_table(records, state, gm))
