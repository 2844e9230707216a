from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from cimis_irrigation.core.enums import ZoneActuationState
from cimis_irrigation.core.zone import Zone
from cimis_irrigation.weather.weather_snapshot import WeatherSnapshot


STATE_STYLES = {
    ZoneActuationState.PENDING: "dim",
    ZoneActuationState.COMMAND_SENT: "yellow",
    ZoneActuationState.CONFIRMED: "green",
    ZoneActuationState.TIMED_OUT: "red",
}


def render_weather_panel(snapshot: WeatherSnapshot) -> Panel:
    text = Text()
    text.append(f"{snapshot.start_date.isoformat()} .. {snapshot.end_date.isoformat()} ({snapshot.day_count} days)\n")
    text.append(f"ETo: {snapshot.eto_inches:.2f} in   ", style="bold")
    text.append(f"Precipitation: {snapshot.precipitation_inches:.2f} in", style="bold cyan")
    return Panel(text, title="CIMIS", expand=False)


def render_demand_table(zones: list[Zone] | tuple[Zone, ...]) -> Table:
    """One row per zone: parameters, credits, demand in gallons, hardware and actuation state."""
    table = Table(title="Gallons of H2O needed to meet demand", expand=False)
    table.add_column("Section")
    table.add_column("PF", justify="right")
    table.add_column("LA (sq ft)", justify="right")
    table.add_column("Days since", justify="right")
    table.add_column("Irr. credit (gal)", justify="right")
    table.add_column("Demand (gal)", justify="right")
    table.add_column("Relay", justify="right")
    table.add_column("Controller", justify="right")
    table.add_column("State")

    for zone in zones:
        days = "-" if zone.days_since_last_irrigation is None else str(zone.days_since_last_irrigation)
        relay = str(zone.relay_id) if zone.relay_id > 0 else Text("offline", style="dim")
        controller = str(zone.controller_id) if zone.controller_id > 0 else Text("offline", style="dim")
        demand_style = "bold" if zone.computed_demand > 0 else "dim"
        table.add_row(
            zone.name,
            f"{zone.plant_factor:.2f}",
            f"{zone.landscape_area:.0f}",
            days,
            f"{zone.effective_irrigation:.3f}",
            Text(f"{zone.computed_demand:.3f}", style=demand_style),
            relay,
            controller,
            Text(zone.actuation_state.value, style=STATE_STYLES[zone.actuation_state]),
        )
    return table


def print_demand_report(console: Console, snapshot: WeatherSnapshot, zones: list[Zone] | tuple[Zone, ...]) -> None:
    console.print(render_weather_panel(snapshot))
    console.print(render_demand_table(zones))
