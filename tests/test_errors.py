"""Tests for the error taxonomy and CLI formatting."""

from phpkeeper.core.errors import (
    ConfigurationMissingError,
    OperationError,
    OperationTimeoutError,
    PhpKeeperError,
    SystemError,
    TransientError,
    BrewCommandError,
    format_error_message,
)


def test_context_propagation():
    error = PhpKeeperError("failed", context={"formula": "php@8.2"}).with_context(step="install")
    assert str(error) == "failed [formula=php@8.2, step=install]"


def test_operation_error_owns_a_copy_of_the_log():
    lines = ["==> Installing php@8.2"]
    error = OperationError(log=lines, command="brew install php@8.2", returncode=1)
    lines.append("later")

    assert error.log == ["==> Installing php@8.2"]
    assert error.message == "The command failed to run correctly."
    assert isinstance(error, SystemError)
    assert not isinstance(error, TransientError)


def test_operation_timeout_is_an_operation_error():
    error = OperationTimeoutError(timeout=900, log=["a"], command="brew upgrade php")
    assert isinstance(error, OperationError)
    assert error.context["timeout"] == 900


def test_format_operation_error():
    message = format_error_message(OperationError(command="brew upgrade php", returncode=1))
    assert "brew upgrade php" in message
    assert "Exit Code: 1" in message


def test_format_falls_back_when_context_is_missing():
    assert format_error_message(OperationError()) == "❌ The command failed to run correctly."


def test_format_configuration_missing():
    message = format_error_message(ConfigurationMissingError("memory_limit", version="8.2"))
    assert "memory_limit" in message
    assert "PHP 8.2" in message


def test_brew_command_error_default_message():
    assert BrewCommandError(returncode=2).message == "Brew command failed with exit code 2"
