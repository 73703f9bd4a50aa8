"""
End-to-end walkthrough of a monitoring session.

This script shows:
1. Configuration loading
2. Deterministic evaluation of hand-picked scenarios
3. A simulated 24-hour day with its timeline
4. Optional message enrichment (when LLM_ENABLED and LLM_API_KEY are set)

Run with: uv run python run_session_demo.py
"""

import asyncio
import random

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from aura.config import get_config
from aura.domain.models import CurrentState, UrgencyBand
from aura.observability import configure_logging
from aura.services.risk_scoring import urgency_band
from aura.services.session import CycleResult, MonitoringSession

console = Console()

BAND_STYLES = {
    UrgencyBand.LOW: "green",
    UrgencyBand.MEDIUM: "yellow",
    UrgencyBand.HIGH: "red",
}

SCENARIOS: list[tuple[str, CurrentState]] = [
    ("Quiet afternoon", CurrentState()),
    ("Late evening", CurrentState(time_of_day=23)),
    ("Withdrawn afternoon", CurrentState(social_isolation=80)),
    ("Unsteady and restless", CurrentState(mobility=10, restlessness=60)),
    ("Busy shift, speech changes", CurrentState(speech_drift=70, social_isolation=80, staff_load=80)),
    (
        "Night distress with low oxygen",
        CurrentState(
            time_of_day=2,
            mobility=10,
            restlessness=90,
            speech_drift=90,
            social_isolation=90,
            use_wearables=True,
            heart_rate=130,
            sp_o2=85,
        ),
    ),
]


def print_cycle(title: str, cycle: CycleResult) -> None:
    risks = cycle.evaluation.risks
    output = cycle.output

    table = Table(title=title)
    table.add_column("Signal", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Fall risk", f"{risks.fall:.1f}")
    table.add_row("Cognitive concern", f"{risks.cognitive:.1f}")
    table.add_row("Loneliness risk", f"{risks.loneliness:.1f}")
    band = cycle.evaluation.overall_band
    table.add_row("Overall", f"[{BAND_STYLES[band]}]{risks.overall:.1f} ({band.value})[/]")
    table.add_row("Intervention", f"Level {int(output.level)} - {output.level_label}")
    table.add_row("Environment", output.environmental_cue)
    if output.resident_message:
        table.add_row("Resident", output.resident_message)
    if output.staff_message:
        table.add_row("Staff", output.staff_message)
    table.add_row(
        "Top factors",
        ", ".join(f"{f.factor} ({f.weight:.2f})" for f in cycle.evaluation.explanation.top_factors),
    )
    table.add_row("Why", cycle.narrative)
    table.add_row("Text source", output.source.value)

    console.print(table)


async def demo_scenarios(session: MonitoringSession) -> None:
    console.print(Panel("🧭 Deterministic Scenarios", style="blue"))

    for title, state in SCENARIOS:
        session.state = state
        session.recent_high_count = 0
        print_cycle(title, session.update())


async def demo_simulated_day(session: MonitoringSession) -> None:
    console.print(Panel("🌗 Simulated Day", style="blue"))

    session.reset()
    snapshots = await session.run_simulation(step_delay_seconds=0, rng=random.Random(42))

    table = Table(title="Hourly Overview")
    table.add_column("Hour", style="cyan")
    table.add_column("Overall", style="white")
    table.add_column("Level", style="white")
    for snapshot in snapshots:
        band = urgency_band(snapshot.risks.overall)
        table.add_row(
            f"{snapshot.hour:02d}:00",
            f"[{BAND_STYLES[band]}]{snapshot.risks.overall:.1f}[/]",
            snapshot.intervention.level_label,
        )
    console.print(table)

    if session.timeline_events:
        events = Table(title="Timeline")
        events.add_column("Time", style="cyan")
        events.add_column("Event", style="white")
        events.add_column("Detail", style="white")
        for event in session.timeline_events:
            events.add_row(
                f"{event.time:02d}:00",
                f"[{BAND_STYLES[event.urgency]}]{event.label}[/]",
                event.detail,
            )
        console.print(events)
    else:
        console.print("No notable events today", style="green")

    console.print(f"Recent high-risk count at end of day: {session.recent_high_count}")


async def demo_enrichment(session: MonitoringSession) -> None:
    console.print(Panel("✨ Message Enrichment", style="blue"))

    if not session.enrichment_config.is_available:
        console.print(
            "Enrichment disabled. Set LLM_ENABLED=true and LLM_API_KEY to try it.",
            style="yellow",
        )
        return

    status = await session.check_connectivity()
    if not status.reachable:
        console.print(f"❌ Endpoint unreachable: {status.detail}", style="red")
        return
    console.print(f"✅ Endpoint reachable (HTTP {status.status_code})", style="green")

    session.reset()
    session.state = CurrentState(mobility=10, restlessness=60)
    session.update()
    session.force_refresh()
    await session.controller.join()

    if session.last_error:
        console.print(f"⚠️  Enrichment failed, templates kept: {session.last_error[:80]}", style="yellow")

    output = session.current_output()
    if output is not None:
        console.print(f"Resident: {output.resident_message}")
        console.print(f"Staff: {output.staff_message}")
        console.print(f"Why: {output.llm_explanation}")
        console.print(f"Source: {output.source.value}")


async def main() -> None:
    config = get_config()
    configure_logging(config.logging)

    console.print(Panel("🏡 AURA Ambient Care - Session Demo", style="bold blue"))

    session = MonitoringSession(config)
    try:
        await demo_scenarios(session)
        await demo_simulated_day(session)
        await demo_enrichment(session)
    finally:
        session.stop_enrichment()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.print("\n⏹️  Demo interrupted by user", style="yellow")
