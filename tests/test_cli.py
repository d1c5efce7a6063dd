import pytest

from tgbridge.telegram import MissingTokenError
from tgbridge.telegram import cli as cli_module


def test_parse_cli_args_defaults() -> None:
    args = cli_module._parse_cli_args([])

    assert args.name == "tgbridge"
    assert args.alias is None
    assert args.token is None
    assert args.webhook is None
    assert args.interval is None
    assert args.roster_path is None


def test_parse_cli_args_overrides() -> None:
    args = cli_module._parse_cli_args(
        [
            "--name",
            "HelperBot",
            "--webhook",
            "https://hook.example",
            "--interval",
            "250",
            "--roster-path",
            "/tmp/groups.json",
        ]
    )

    assert args.name == "HelperBot"
    assert args.webhook == "https://hook.example"
    assert args.interval == 250
    assert args.roster_path == "/tmp/groups.json"


@pytest.mark.anyio
async def test_run_without_token_fails_before_network(monkeypatch, tmp_path) -> None:
    configured: list[dict] = []
    monkeypatch.setattr(
        cli_module.logfire, "configure", lambda **kwargs: configured.append(kwargs)
    )
    monkeypatch.setattr(cli_module.logging, "basicConfig", lambda **kwargs: None)
    monkeypatch.setattr(cli_module, "print", lambda *args, **kwargs: None)

    with pytest.raises(MissingTokenError):
        await cli_module.run(token="", roster_path=str(tmp_path / "groups.data"))

    assert configured == [{"send_to_logfire": "if-token-present"}]
