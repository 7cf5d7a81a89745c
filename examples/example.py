"""Example usage of SubwayPlanner."""

import logging
import sys
from pathlib import Path

# Add src to path so we can import subwayplanner
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from subwayplanner.exceptions import NoDataAvailable, StationNotFound
from subwayplanner.planner import SubwayPlanner

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def print_routes(planner: SubwayPlanner, from_station: str, to_station: str):
    """
    Plan and display routes between two stations.

    Args:
        planner: Planner to use.
        from_station: Origin station name or id (e.g., "Carroll St" or "F20")
        to_station: Destination station name or id
    """
    print(f"\n{'='*70}")
    print(f"Routes from {from_station} to {to_station}")
    print(f"{'='*70}\n")

    result = planner.plan(from_station, to_station)

    for number, route in enumerate(result.routes, start=1):
        source = "real-time" if route.is_real_time_data else "estimated"
        print(f"{number}. {route.total_minutes} min via {' → '.join(route.lines)} "
              f"[{source}, confidence {route.confidence_level}]")
        for step in route.steps:
            wait = f" (wait {step.wait_minutes} min)" if step.wait_minutes is not None else ""
            print(f"     {step.instructions}{wait}")
        print()

    print("FEEDS:")
    print("-" * 70)
    print(f"  Working: {', '.join(result.working_feeds) or 'none'}")
    print(f"  Failed:  {', '.join(result.failed_feeds) or 'none'}")

    if result.alerts:
        print("\nSERVICE ALERTS:")
        for alert in result.alerts:
            print(f"  {alert.route_id}: {alert.message}")
    print()


def print_board(planner: SubwayPlanner, station: str, direction: str):
    """Display upcoming departures per line at a station platform."""
    board = planner.departure_board(station, direction)
    print(f"{board.station.name} ({direction}) at {board.last_updated.strftime('%H:%M:%S')}")
    for line, departures in sorted(board.departures.items()):
        suffix = " (estimated)" if line in board.estimated_lines else ""
        times = ", ".join(d.relative_time for d in departures) or "no trains"
        print(f"  {line}: {times}{suffix}")
    print()


if __name__ == "__main__":
    planner = SubwayPlanner()
    try:
        if len(sys.argv) >= 3:
            print_routes(planner, sys.argv[1], sys.argv[2])
        else:
            print_routes(planner, "Carroll St", "23rd St-8th Ave")
            print_board(planner, "Carroll St", "north")
    except StationNotFound as e:
        print(f"Error: {e}")
        sys.exit(1)
    except NoDataAvailable as e:
        print(f"No subway data available right now: {e}")
        sys.exit(2)
    finally:
        planner.cleanup()
