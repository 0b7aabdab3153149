"""CLI commands for NutriSync meal analysis."""

import argparse
import asyncio
import json
import logging
import sys
from datetime import date, datetime, time
from pathlib import Path

from nutrisync.config import settings
from nutrisync.models.analysis import (
    AnalysisRequest,
    NutritionGoal,
    UserNutritionContext,
)
from nutrisync.models.meal_window import MealWindow
from nutrisync.services.meal_analysis_agent import (
    EmptyResultError,
    FatalInferenceError,
    MealAnalysisAgent,
)
from nutrisync.services.retrospective_parser import RetrospectiveMealParser


def parse_when(value: str) -> datetime:
    """Accept an ISO datetime or a bare HH:MM meaning today."""
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.combine(date.today(), time.fromisoformat(value))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid time: {value}")


def analyze(args) -> int:
    image_bytes = None
    if args.image:
        path = Path(args.image)
        if not path.exists():
            print(f"Error: Image file '{args.image}' not found.")
            return 1
        image_bytes = path.read_bytes()

    request = AnalysisRequest(
        image=image_bytes,
        transcript=args.transcript,
        user_context=UserNutritionContext(
            primary_goal=NutritionGoal(args.goal),
            daily_calorie_target=args.calories,
            daily_protein_target=args.protein,
            daily_carb_target=args.carbs,
            daily_fat_target=args.fat,
        ),
    )

    try:
        result = asyncio.run(MealAnalysisAgent().analyze(request))
    except EmptyResultError:
        print("Error: Provide an image, a --transcript, or both.")
        return 1
    except FatalInferenceError as e:
        print(f"Error: {e}")
        return 1

    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0


def parse_meals(args) -> int:
    windows = [
        MealWindow(
            name=f"Window {index}",
            start_time=start,
            end_time=end,
            target_calories=args.target_calories,
        )
        for index, (start, end) in enumerate(args.window, start=1)
    ]

    records = asyncio.run(
        RetrospectiveMealParser().parse_meals(args.description, windows)
    )
    print(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="NutriSync meal analysis CLI")
    parser.add_argument(
        "--log-level", default=settings.log_level, help="Logging level (default from settings)"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Analyze a meal photo")
    analyze_parser.add_argument("image", nargs="?", help="Path to the meal photo")
    analyze_parser.add_argument("--transcript", help="Spoken or typed meal description")
    analyze_parser.add_argument(
        "--goal",
        default=NutritionGoal.MAINTAIN_WEIGHT.value,
        choices=[g.value for g in NutritionGoal],
        help="Primary nutrition goal",
    )
    analyze_parser.add_argument("--calories", type=int, default=2000, help="Daily calorie target")
    analyze_parser.add_argument("--protein", type=int, default=150, help="Daily protein target (g)")
    analyze_parser.add_argument("--carbs", type=int, default=200, help="Daily carb target (g)")
    analyze_parser.add_argument("--fat", type=int, default=65, help="Daily fat target (g)")

    # parse-meals command
    parse_meals_parser = subparsers.add_parser(
        "parse-meals", help="Split a description of earlier meals into windows"
    )
    parse_meals_parser.add_argument("description", help='e.g. "eggs and toast, then a salad"')
    parse_meals_parser.add_argument(
        "--window",
        nargs=2,
        action="append",
        required=True,
        type=parse_when,
        metavar=("START", "END"),
        help="Meal window as START END (ISO datetime or HH:MM); repeat per window",
    )
    parse_meals_parser.add_argument(
        "--target-calories", type=int, default=500, help="Calorie target per window"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "analyze":
        sys.exit(analyze(args))
    elif args.command == "parse-meals":
        sys.exit(parse_meals(args))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
