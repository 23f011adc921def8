"""Tests for crossbox.cli.parse."""

import pytest

from crossbox.cli.parse import parse
from crossbox.errors import ConfigError
from crossbox.invocation import Subcommand


class TestSubcommand:
    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("build", Subcommand.BUILD),
            ("b", Subcommand.BUILD),
            ("check", Subcommand.CHECK),
            ("test", Subcommand.TEST),
            ("t", Subcommand.TEST),
            ("run", Subcommand.RUN),
            ("rustc", Subcommand.COMPILE),
            ("doc", Subcommand.DOC),
            ("clippy", Subcommand.OTHER),
        ],
    )
    def test_first_positional_is_subcommand(self, token: str, expected: Subcommand) -> None:
        inv = parse([token])
        assert inv.subcommand is expected
        assert inv.command == token

    def test_missing_subcommand_raises(self) -> None:
        with pytest.raises(ConfigError):
            parse([])
        with pytest.raises(ConfigError):
            parse(["--release"])

    def test_toolchain_channel(self) -> None:
        inv = parse(["+nightly", "build"])
        assert inv.channel == "nightly"
        assert inv.subcommand is Subcommand.BUILD

    def test_empty_toolchain_raises(self) -> None:
        with pytest.raises(ConfigError):
            parse(["+", "build"])


class TestTarget:
    def test_separate_value(self) -> None:
        inv = parse(["build", "--target", "aarch64-unknown-linux-gnu"])
        assert inv.target == "aarch64-unknown-linux-gnu"
        assert inv.args == ()

    def test_equals_value(self) -> None:
        inv = parse(["build", "--target=mips-unknown-linux-gnu", "-v"])
        assert inv.target == "mips-unknown-linux-gnu"
        assert inv.args == ("-v",)

    def test_absent_target_is_none(self) -> None:
        assert parse(["build"]).target is None

    @pytest.mark.parametrize(
        "argv",
        [
            ["build", "--target"],
            ["build", "--target="],
            ["build", "--target", "--release"],
        ],
    )
    def test_missing_value_raises(self, argv: list[str]) -> None:
        with pytest.raises(ConfigError) as exc_info:
            parse(argv)
        assert exc_info.value.exit_code == 121

    def test_repeated_target_raises(self) -> None:
        with pytest.raises(ConfigError):
            parse(["build", "--target", "a", "--target", "b"])

    def test_target_after_double_dash_is_not_examined(self) -> None:
        inv = parse(["run", "--", "--target", "x"])
        assert inv.target is None
        assert inv.args == ("--", "--target", "x")


class TestForwardedArgs:
    def test_unknown_flags_pass_through_in_order(self) -> None:
        argv = [
            "test",
            "--features",
            "c",
            "--target",
            "armv7-unknown-linux-gnueabihf",
            "--no-default-features",
            "-j",
            "4",
            "--",
            "--nocapture",
        ]
        inv = parse(argv)
        assert inv.args == (
            "--features",
            "c",
            "--no-default-features",
            "-j",
            "4",
            "--",
            "--nocapture",
        )

    def test_flags_before_subcommand_are_forwarded(self) -> None:
        inv = parse(["-v", "build", "--release"])
        assert inv.command == "build"
        assert inv.args == ("-v", "--release")
        assert inv.release

    def test_second_positional_is_forwarded(self) -> None:
        inv = parse(["test", "my_test_name"])
        assert inv.args == ("my_test_name",)
