"""
Unit tests for CLI commands.

Tests the analyze and parse-meals commands with the services patched out.
"""

import argparse
import json
from datetime import date, datetime, time, timedelta

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from nutrisync.cli import main, parse_when
from nutrisync.models.analysis import (
    AnalysisMetadata,
    AnalysisResult,
    ComplexityRating,
)
from nutrisync.models.meal_window import MealRecord
from nutrisync.services.inference_client import NetworkError
from nutrisync.services.meal_analysis_agent import EmptyResultError, FatalInferenceError
from tests.factories import make_estimate


def _result():
    estimate = make_estimate()
    return AnalysisResult(
        estimate=estimate,
        metadata=AnalysisMetadata(
            tools_used=[],
            complexity=ComplexityRating.SIMPLE,
            elapsed_time=timedelta(seconds=1.2),
            final_confidence=estimate.confidence,
            ingredient_count=estimate.ingredient_count,
        ),
    )


# =============================================================================
# parse_when Tests
# =============================================================================


class TestParseWhen:
    def test_iso_datetime(self):
        assert parse_when("2026-03-01T08:30") == datetime(2026, 3, 1, 8, 30)

    def test_bare_time_means_today(self):
        assert parse_when("12:15") == datetime.combine(date.today(), time(12, 15))

    def test_invalid(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_when("lunchtime")


# =============================================================================
# analyze Tests
# =============================================================================


class TestAnalyze:
    """Tests for the analyze command."""

    def test_analyze_transcript(self, capsys):
        with patch("nutrisync.cli.MealAnalysisAgent") as agent_cls, \
             pytest.raises(SystemExit) as exc_info:
            agent_cls.return_value.analyze = AsyncMock(return_value=_result())

            main(["analyze", "--transcript", "grilled chicken salad", "--goal", "weight_loss"])

        assert exc_info.value.code == 0
        request = agent_cls.return_value.analyze.call_args.args[0]
        assert request.transcript == "grilled chicken salad"
        assert request.image is None
        assert request.user_context.primary_goal.value == "weight_loss"

        output = json.loads(capsys.readouterr().out)
        assert output["estimate"]["meal_name"] == "Grilled Chicken Salad"
        assert output["metadata"]["complexity"] == "simple"

    def test_analyze_reads_image(self, tmp_path):
        photo = tmp_path / "lunch.jpg"
        photo.write_bytes(b"\xff\xd8photo")

        with patch("nutrisync.cli.MealAnalysisAgent") as agent_cls, \
             patch("builtins.print"), \
             pytest.raises(SystemExit) as exc_info:
            agent_cls.return_value.analyze = AsyncMock(return_value=_result())

            main(["analyze", str(photo)])

        assert exc_info.value.code == 0
        assert agent_cls.return_value.analyze.call_args.args[0].image == b"\xff\xd8photo"

    def test_analyze_missing_file(self):
        with patch("builtins.print") as mock_print, \
             pytest.raises(SystemExit) as exc_info:
            main(["analyze", "/nonexistent/meal.jpg"])

        assert exc_info.value.code == 1
        assert "not found" in str(mock_print.call_args)

    def test_analyze_nothing_to_analyze(self):
        with patch("nutrisync.cli.MealAnalysisAgent") as agent_cls, \
             patch("builtins.print") as mock_print, \
             pytest.raises(SystemExit) as exc_info:
            agent_cls.return_value.analyze = AsyncMock(side_effect=EmptyResultError("empty"))

            main(["analyze"])

        assert exc_info.value.code == 1
        assert "--transcript" in str(mock_print.call_args)

    def test_analyze_inference_failure(self):
        error = FatalInferenceError("Initial analysis failed: offline")
        error.__cause__ = NetworkError("offline")

        with patch("nutrisync.cli.MealAnalysisAgent") as agent_cls, \
             patch("builtins.print") as mock_print, \
             pytest.raises(SystemExit) as exc_info:
            agent_cls.return_value.analyze = AsyncMock(side_effect=error)

            main(["analyze", "--transcript", "toast"])

        assert exc_info.value.code == 1
        assert "Initial analysis failed" in str(mock_print.call_args)


# =============================================================================
# parse-meals Tests
# =============================================================================


class TestParseMeals:
    def test_parse_meals_builds_windows(self, capsys):
        record = MealRecord(
            name="Eggs & Toast",
            calories=350,
            protein_g=20,
            carbs_g=30,
            fat_g=15,
            timestamp=datetime(2026, 3, 1, 8, 30),
            window_id="w1",
            source="keyword",
        )

        with patch("nutrisync.cli.RetrospectiveMealParser") as parser_cls, \
             pytest.raises(SystemExit) as exc_info:
            parser_cls.return_value.parse_meals = AsyncMock(return_value=[record])

            main([
                "parse-meals", "eggs and toast",
                "--window", "2026-03-01T08:00", "2026-03-01T10:00",
                "--window", "2026-03-01T12:00", "2026-03-01T14:00",
                "--target-calories", "600",
            ])

        assert exc_info.value.code == 0
        description, windows = parser_cls.return_value.parse_meals.call_args.args
        assert description == "eggs and toast"
        assert [w.start_time.hour for w in windows] == [8, 12]
        assert all(w.target_calories == 600 for w in windows)

        output = json.loads(capsys.readouterr().out)
        assert output[0]["name"] == "Eggs & Toast"

    def test_parse_meals_requires_window(self):
        with patch("sys.stderr", new=MagicMock()), pytest.raises(SystemExit) as exc_info:
            main(["parse-meals", "eggs"])

        assert exc_info.value.code == 2


class TestMain:
    def test_no_command_prints_help(self):
        with patch("argparse.ArgumentParser.print_help") as mock_help, \
             pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 1
        mock_help.assert_called_once()
