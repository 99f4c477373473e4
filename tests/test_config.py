import pytest
from pydantic import ValidationError

from workflow_simulator.config import SimulatorSettings, load_settings
from workflow_simulator.executor import DEFAULT_MAX_STEPS
from workflow_simulator.models import StepType


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in list(SimulatorSettings.model_fields) + ["config"]:
        monkeypatch.delenv(f"WORKFLOW_SIM_{name.upper()}", raising=False)


def test_defaults_without_config_file():
    settings = load_settings()

    assert settings.max_steps == DEFAULT_MAX_STEPS
    assert settings.random_step_type == StepType.EMAIL
    assert settings.failure_probability == 0.5
    assert settings.api_port == 8000


def test_loads_yaml_file(tmp_path):
    (tmp_path / "config.yaml").write_text(
        "max_steps: 25\nrandom_step_type: sms\nlog_level: DEBUG\n", encoding="utf-8"
    )

    settings = load_settings()

    assert settings.max_steps == 25
    assert settings.random_step_type == StepType.SMS
    assert settings.log_level == "DEBUG"


def test_explicit_path_and_env_override(tmp_path, monkeypatch):
    path = tmp_path / "sim.yaml"
    path.write_text("max_steps: 25\napi_port: 9000\n", encoding="utf-8")
    monkeypatch.setenv("WORKFLOW_SIM_MAX_STEPS", "40")
    monkeypatch.setenv("WORKFLOW_SIM_FAILURE_PROBABILITY", "0.1")

    settings = load_settings(str(path))

    assert settings.max_steps == 40
    assert settings.failure_probability == 0.1
    assert settings.api_port == 9000


def test_config_path_from_env(tmp_path, monkeypatch):
    path = tmp_path / "other.yaml"
    path.write_text("api_host: 127.0.0.1\n", encoding="utf-8")
    monkeypatch.setenv("WORKFLOW_SIM_CONFIG", str(path))

    assert load_settings().api_host == "127.0.0.1"


@pytest.mark.parametrize("name,value", [("MAX_STEPS", "0"), ("FAILURE_PROBABILITY", "1.5")])
def test_rejects_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(f"WORKFLOW_SIM_{name}", value)

    with pytest.raises(ValidationError):
        load_settings()
