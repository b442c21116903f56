"""
Tests for how the apply actions fold their parameters into the run settings.
"""
import inspect
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import jobapply.apply_actions.apply as apply_module
from jobapply.utils.models import Candidate

CANDIDATES = [Candidate(url="https://boards.greenhouse.io/acme/jobs/123", company="Acme")]


@pytest.fixture
def runner_cls(monkeypatch):
    monkeypatch.setenv("JOBAPPLY_ALLOW_SUBMIT", "true")
    monkeypatch.setenv("MAX_PER_RUN", "3")
    with patch.object(apply_module, "log"), \
         patch.object(apply_module, "log_warning"), \
         patch.object(apply_module, "log_metric"), \
         patch.object(apply_module, "embed_html_table"), \
         patch.object(apply_module, "load_credentials", return_value=None), \
         patch.object(apply_module, "open_ledger"), \
         patch.object(apply_module, "BrowserSession"), \
         patch.object(apply_module, "DiagnosticsSink"), \
         patch.object(apply_module, "AnswerBook"), \
         patch.object(apply_module, "ApplyRunner") as runner:
        runner.return_value.run.return_value = {"processed": 0, "counts": {}, "results": []}
        yield runner


def test_environment_settings_apply_when_parameters_are_omitted(runner_cls):
    apply_module._run_candidates(CANDIDATES, "run-1")

    settings = runner_cls.call_args.kwargs["settings"]
    assert settings.allow_submit is True
    assert settings.max_per_run == 3


def test_explicit_parameters_override_environment(runner_cls):
    apply_module._run_candidates(CANDIDATES, "run-2", max_per_run=1, allow_submit=False)

    settings = runner_cls.call_args.kwargs["settings"]
    assert settings.allow_submit is False
    assert settings.max_per_run == 1


@pytest.mark.parametrize("action, names", [
    (apply_module.run_auto_apply, ("max_per_run", "allow_submit")),
    (apply_module.apply_to_single_url, ("allow_submit",)),
])
def test_action_parameters_default_to_environment(action, names):
    parameters = inspect.signature(action).parameters

    for name in names:
        assert parameters[name].default is None
