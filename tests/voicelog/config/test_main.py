from unittest.mock import AsyncMock

import pytest

from voicelog import main as cli
from voicelog.config import set_config
from voicelog.config.models import ApplicationConfig, BootstrapConfig
from voicelog.realtime.config_provider import (
    HttpSessionConfigProvider,
    StaticSessionConfigProvider,
)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    for name in ("VOICE_BOOTSTRAP_URL", "GOOGLE_SHEET_ID", "LEDGER_USER_NAME", "USE_FUNCTION_CALLING"):
        monkeypatch.delenv(name, raising=False)
    yield
    set_config(None)


def test_parser_defaults():
    args = cli.build_parser().parse_args([])
    assert args.bootstrap_url is None
    assert args.muted is False
    assert args.no_functions is False


def test_apply_args_overlays_config():
    args = cli.build_parser().parse_args(
        ["--sheet-id", "sheet-9", "--user", "Asha", "--muted", "--no-functions"]
    )
    config = cli.apply_args(ApplicationConfig(), args)

    assert config.ledger.sheet_id == "sheet-9"
    assert config.ledger.user_name == "Asha"
    assert config.audio.start_muted is True
    assert config.realtime.use_function_calling is False


def test_apply_args_keeps_unset_values():
    config = ApplicationConfig()
    config.ledger.sheet_id = "from-env"

    cli.apply_args(config, cli.build_parser().parse_args([]))

    assert config.ledger.sheet_id == "from-env"
    assert config.realtime.use_function_calling is True


def test_provider_selection():
    assert isinstance(cli.build_provider(ApplicationConfig()), StaticSessionConfigProvider)

    config = ApplicationConfig(bootstrap=BootstrapConfig(url="https://ledger.test/voice"))
    provider = cli.build_provider(config)
    assert isinstance(provider, HttpSessionConfigProvider)
    assert provider.fallback_session.tool_choice == "auto"


def test_main_runs_session_with_overlaid_config(monkeypatch):
    run = AsyncMock(return_value=0)
    monkeypatch.setattr(cli, "run", run)

    assert cli.main(["--sheet-id", "sheet-3", "--no-functions"]) == 0

    config = run.await_args.args[0]
    assert config.ledger.sheet_id == "sheet-3"
    assert config.realtime.use_function_calling is False


def test_main_reports_failure(monkeypatch):
    monkeypatch.setattr(cli, "run", AsyncMock(side_effect=RuntimeError("no audio device")))
    assert cli.main([]) == 1
