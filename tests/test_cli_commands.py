from typing import Any

from typer.testing import CliRunner

from emul_agent import __version__
from emul_agent.agent.loop import ChatbotResponse, ToolInvocation
from emul_agent.cli.commands import app
from emul_agent.errors import ConfigError, RoundLimitExceededError

runner = CliRunner()


def _isolate(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("EMUL_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("EMUL_CONFIG", raising=False)


class FakeChatbot:
    instances: list["FakeChatbot"] = []
    response = ChatbotResponse(final_text="pong")
    error: Exception | None = None

    def __init__(self, config: Any):
        self.config = config
        self.calls: list[tuple] = []
        FakeChatbot.instances.append(self)

    async def respond(self, channel, speaker, text, history, was_addressed) -> ChatbotResponse:
        self.calls.append((channel, speaker, text, history, was_addressed))
        if FakeChatbot.error is not None:
            raise FakeChatbot.error
        return FakeChatbot.response


def _install_fake_chatbot(monkeypatch, *, response=None, error=None) -> None:
    FakeChatbot.instances = []
    FakeChatbot.response = response or ChatbotResponse(final_text="pong")
    FakeChatbot.error = error
    monkeypatch.setattr("emul_agent.agent.api.Chatbot", FakeChatbot)


def test_top_level_without_args_shows_help():
    result = runner.invoke(app, [])
    assert result.exit_code in {0, 2}
    assert "Usage: emul" in result.stdout


def test_version_command():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_roll_command_is_reproducible_with_seed():
    first = runner.invoke(app, ["roll", "2d6+1", "--seed", "3"])
    second = runner.invoke(app, ["roll", "2d6+1", "--seed", "3"])

    assert first.exit_code == 0
    assert "Rolled 2d6+1: [" in first.stdout
    assert first.stdout == second.stdout


def test_roll_command_rejects_bad_notation():
    result = runner.invoke(app, ["roll", "lots"])
    assert result.exit_code == 1
    assert "Invalid dice notation format" in result.stdout


def test_simulate_prints_gap_table():
    result = runner.invoke(app, ["simulate", "--chance", "0.1", "--events", "2000", "--seed", "5"])

    assert result.exit_code == 0
    assert "Interjection Gaps" in result.stdout
    assert "Mean gap" in result.stdout
    assert "5..20" in result.stdout


def test_simulate_rejects_bad_chance():
    result = runner.invoke(app, ["simulate", "--chance", "1.5"])
    assert result.exit_code == 1
    assert "Interjection chance" in result.stdout


def test_ask_prints_reply_and_tools(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    _install_fake_chatbot(
        monkeypatch,
        response=ChatbotResponse(
            final_text="You rolled 11.\nGood luck!",
            invoked_tools=[ToolInvocation(name="roll_dice", args={"dice_notation": "2d6"})],
        ),
    )

    result = runner.invoke(app, ["ask", "Emul: roll 2d6", "--speaker", "carol"])

    assert result.exit_code == 0
    assert "You rolled 11." in result.stdout
    assert "Good luck!" in result.stdout
    assert "roll_dice" in result.stdout
    channel, speaker, text, history, addressed = FakeChatbot.instances[0].calls[0]
    assert (channel, speaker, text, history, addressed) == ("#cli", "carol", "Emul: roll 2d6", [], True)


def test_ask_reads_history_file(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    _install_fake_chatbot(monkeypatch)
    history = tmp_path / "log.txt"
    history.write_text("alice: hi\n\nbob: yo\nnot a line\n", encoding="utf-8")

    result = runner.invoke(app, ["ask", "hey", "--history", str(history), "-c", "#den"])

    assert result.exit_code == 0
    entries = FakeChatbot.instances[0].calls[0][3]
    assert [(e.channel, e.speaker, e.text) for e in entries] == [
        ("#den", "alice", "hi"),
        ("#den", "bob", "yo"),
    ]


def test_ask_reports_conversation_failure(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    _install_fake_chatbot(monkeypatch, error=RoundLimitExceededError("no text"))

    result = runner.invoke(app, ["ask", "hey"])

    assert result.exit_code == 1
    assert "Conversation failed" in result.stdout


def test_ask_without_api_key(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)

    def _raise(config: Any):
        raise ConfigError("No Gemini API key configured.")

    monkeypatch.setattr("emul_agent.agent.api.Chatbot", _raise)
    result = runner.invoke(app, ["ask", "hey"])

    assert result.exit_code == 1
    assert "No Gemini API key configured." in result.stdout
    assert "GEMINI_API_KEY" in result.stdout


def test_onboard_creates_config_and_prompt(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)

    result = runner.invoke(app, ["onboard"])

    assert result.exit_code == 0
    assert (tmp_path / "data" / "config.json").exists()
    prompt = (tmp_path / "data" / "prompt.txt").read_text(encoding="utf-8")
    assert prompt.startswith("You are Emul")

    again = runner.invoke(app, ["onboard"])
    assert "already exists" in again.stdout
