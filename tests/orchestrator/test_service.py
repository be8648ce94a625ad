"""Tests for the Orchestrator facade."""

import json
from unittest.mock import MagicMock

import pytest

from protoforge.config import EditSettings
from protoforge.edits.classifier import EditKind
from protoforge.orchestrator.planner import plan_from_payload
from protoforge.orchestrator.service import Orchestrator
from protoforge.utils.logger import StructuredLogger

HERO = ['<section id="hero"><h1 id="headline">Fresh bread</h1></section>']
CONTACT = ['<form id="contact"></form>']


def _events(run_logger: StructuredLogger) -> list[dict]:
    lines = run_logger.log_path.read_text(encoding="utf-8").strip().split("\n")
    return [json.loads(line) for line in lines]


class TestRun:
    @pytest.mark.asyncio
    async def test_run_returns_documented_sections(
        self, fake_gateway_cls, generation_settings, preferences, plan_response, tmp_path
    ) -> None:
        gateway = fake_gateway_cls(
            completions=[plan_response, "Hero docs", "Contact docs"],
            streams=[HERO, CONTACT],
        )
        run_logger = StructuredLogger.for_run("run-1", tmp_path)
        orchestrator = Orchestrator(gateway, generation_settings, run_logger=run_logger)

        result = await orchestrator.run("bakery landing page", preferences)

        assert result.plan.id == "plan-landing"
        assert result.degraded is False
        assert [s.documentation for s in result.sections] == ["Hero docs", "Contact docs"]
        assert "Fresh bread" in result.document
        assert result.completed_steps[-1] == "documentation"

        event_types = [e["event_type"] for e in _events(run_logger)]
        assert event_types[0] == "session_created"
        assert event_types[-1] == "session_completed"
        assert "plan_generated" in event_types
        assert event_types.count("section_generated") == 2

    @pytest.mark.asyncio
    async def test_degraded_run_still_completes(
        self, fake_gateway_cls, generation_settings, preferences, tmp_path
    ) -> None:
        run_logger = StructuredLogger.for_run("run-2", tmp_path)
        orchestrator = Orchestrator(fake_gateway_cls(), generation_settings, run_logger=run_logger)

        result = await orchestrator.run("anything", preferences)

        assert result.plan_degraded is True
        assert result.degraded is True
        assert result.degraded_sections == ["Header Navigation", "Main Content"]
        assert result.document.startswith("<!DOCTYPE html>")

        errors = [e for e in _events(run_logger) if e["event_type"] == "error"]
        assert len(errors) == 1
        assert errors[0]["error_type"] == "plan_fallback"
        assert errors[0]["message"] == "no scripted completion"
        assert errors[0]["plan_id"] == result.plan.id

    @pytest.mark.asyncio
    async def test_sinks_are_forwarded(
        self, fake_gateway_cls, generation_settings, preferences, plan_response
    ) -> None:
        gateway = fake_gateway_cls(completions=[plan_response], streams=[HERO, CONTACT])
        progress, markup = MagicMock(), MagicMock()
        orchestrator = Orchestrator(
            gateway, generation_settings, progress_sink=progress, markup_sink=markup
        )

        await orchestrator.run("bakery", preferences)

        assert progress.update.called
        markup.publish.assert_called_once()


class TestPlanApproval:
    @pytest.mark.asyncio
    async def test_unapproved_plan_rejected(
        self, fake_gateway_cls, generation_settings, preferences, plan_payload
    ) -> None:
        orchestrator = Orchestrator(fake_gateway_cls(), generation_settings)

        with pytest.raises(ValueError, match="must be approved"):
            await orchestrator.run_plan(plan_from_payload(plan_payload), preferences)

    @pytest.mark.asyncio
    async def test_modified_and_approved_plan_generates(
        self, fake_gateway_cls, generation_settings, preferences, plan_response
    ) -> None:
        gateway = fake_gateway_cls(completions=[plan_response], streams=[HERO])
        orchestrator = Orchestrator(gateway, generation_settings)

        outcome = await orchestrator.plan("bakery", preferences)
        plan = Orchestrator.modify_plan(
            outcome.value, components=outcome.value.components[:1]
        ).approve()
        result = await orchestrator.run_plan(plan, preferences)

        assert [s.name for s in result.sections] == ["Hero Banner"]
        assert len(gateway.stream_calls) == 1


class TestEdit:
    DOCUMENT = '<main>\n<h1 id="headline">Fresh bread</h1>\n</main>'

    @pytest.mark.asyncio
    async def test_surgical_edit(self, fake_gateway_cls, generation_settings, preferences) -> None:
        gateway = fake_gateway_cls(completions=['<h1 id="headline">Warm bread</h1>'])
        orchestrator = Orchestrator(gateway, generation_settings, EditSettings())

        outcome = await orchestrator.edit(
            self.DOCUMENT, "change text to Warm bread", preferences, element_id="headline"
        )

        assert outcome.kind is EditKind.SURGICAL
        assert outcome.regenerated_fully is False
        assert outcome.document == self.DOCUMENT.replace("Fresh", "Warm")
        assert outcome.surgical.patch.affected_lines == [1]

    @pytest.mark.asyncio
    async def test_complex_edit_regenerates(
        self, fake_gateway_cls, generation_settings, preferences, plan_response
    ) -> None:
        gateway = fake_gateway_cls(completions=[plan_response], streams=[HERO, CONTACT])
        orchestrator = Orchestrator(gateway, generation_settings)

        outcome = await orchestrator.edit(
            self.DOCUMENT, "add a new testimonials section", preferences, prompt="bakery"
        )

        assert outcome.kind is EditKind.REGENERATE
        assert outcome.regenerated_fully is True
        assert outcome.document == outcome.regenerated.document
        plan_prompt = gateway.complete_calls[0]["messages"][1]["content"]
        assert "Additional changes: add a new testimonials section" in plan_prompt


@pytest.mark.asyncio
async def test_health_check_delegates(fake_gateway_cls, generation_settings) -> None:
    status = await Orchestrator(fake_gateway_cls(), generation_settings).health_check()
    assert status["status"] == "healthy"
