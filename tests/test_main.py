from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest
import structlog

from chatcount import main as main_module


@pytest.fixture
def settings() -> MagicMock:
    settings = MagicMock()
    settings.log_level = "INFO"
    settings.command_prefix = "!"
    settings.display_limit = 5
    settings.corpus_url = None
    return settings


@pytest.fixture(autouse=True)
def clear_context():
    yield
    structlog.contextvars.clear_contextvars()


class TestMain:
    def test_binds_app_name(self, settings: MagicMock) -> None:
        with (
            patch.object(main_module, "get_settings", return_value=settings),
            patch.object(main_module, "configure_logging") as configure,
            patch.object(main_module, "run_bot", new=AsyncMock()) as run_bot,
        ):
            main_module.main()

        configure.assert_called_once_with("INFO")
        run_bot.assert_awaited_once_with(settings)
        assert structlog.contextvars.get_contextvars()["app"] == main_module.APP_NAME

    def test_login_failure_exits_with_error(self, settings: MagicMock) -> None:
        with (
            patch.object(main_module, "get_settings", return_value=settings),
            patch.object(main_module, "configure_logging"),
            patch.object(
                main_module,
                "run_bot",
                new=AsyncMock(side_effect=discord.LoginFailure("Improper token")),
            ),
            pytest.raises(SystemExit) as exc_info,
        ):
            main_module.main()

        assert exc_info.value.code == 1
