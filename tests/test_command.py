import io
import os
import sys

import pytest

from xargskit.command import (
    ArgumentTooLargeError,
    CannotRunError,
    CommandBuilder,
    CommandBuilderOptions,
    CommandNotFoundError,
    CommandResult,
    KilledError,
    UrgentlyFailedError,
    XargsError,
    process_input,
)
from xargskit.limiters import (
    Argument,
    ArgumentKind,
    CommandSpaceExhausted,
    LimiterChain,
    MaxArgsLimiter,
    MaxCharsLimiter,
    MaxLinesLimiter,
)
from xargskit.readers import DelimitedArgumentReader, WhitespaceArgumentReader

PRINT_ARGS = "import sys; print(' '.join(sys.argv[1:]))"


def whitespace_args(data):
    return WhitespaceArgumentReader(io.BytesIO(data))


def echo_options(*limiters, replace=None):
    output = io.StringIO()
    options = CommandBuilderOptions(
        None, {}, LimiterChain(limiters), replace, False, False, output
    )
    return options, output


def python_options(code, *extra, limiters=(), replace=None, close_stdin=False, env=None):
    output = io.StringIO()
    options = CommandBuilderOptions(
        [sys.executable, "-c", code, *extra],
        dict(os.environ) if env is None else env,
        LimiterChain(limiters),
        replace,
        False,
        close_stdin,
        output,
    )
    return options, output


@pytest.mark.parametrize(
    "first, second, expected",
    [
        (CommandResult.SUCCESS, CommandResult.SUCCESS, CommandResult.SUCCESS),
        (CommandResult.SUCCESS, CommandResult.FAILURE, CommandResult.FAILURE),
        (CommandResult.FAILURE, CommandResult.SUCCESS, CommandResult.FAILURE),
        (CommandResult.FAILURE, CommandResult.FAILURE, CommandResult.FAILURE),
    ],
)
def test_combine(first, second, expected):
    assert first.combine(second) is expected


def test_initial_command_too_large():
    with pytest.raises(XargsError, match="too large"):
        CommandBuilderOptions(
            ["a-long-command"], {}, LimiterChain([MaxCharsLimiter(3)])
        )


def test_options_do_not_change_callers_limiters():
    limiter = MaxCharsLimiter(20)
    CommandBuilderOptions(None, {}, LimiterChain([limiter]))
    assert limiter.current_size == 0


def test_builder_echoes_arguments():
    options, output = echo_options()
    builder = CommandBuilder(options)
    builder.add_arg(Argument("a", ArgumentKind.SOFT_TERMINATED))
    builder.add_arg(Argument("b", ArgumentKind.HARD_TERMINATED))
    assert builder.execute() is CommandResult.SUCCESS
    assert output.getvalue() == "a b\n"


def test_builder_rejects_when_full():
    options, _ = echo_options(MaxArgsLimiter(1))
    builder = CommandBuilder(options)
    builder.add_arg(Argument("a", ArgumentKind.SOFT_TERMINATED))
    with pytest.raises(CommandSpaceExhausted) as info:
        builder.add_arg(Argument("b", ArgumentKind.SOFT_TERMINATED))
    assert info.value.arg.arg == "b"
    assert builder.extra_args == ["a"]


def test_basics():
    options, output = echo_options()
    result = process_input(options, whitespace_args(b"abc\ndef g\\hi  'i  j \"k'"))
    assert result is CommandResult.SUCCESS
    assert output.getvalue() == "abc def ghi i  j \"k\n"


def test_null_delimited_one_per_line():
    options, output = echo_options(MaxArgsLimiter(1))
    args = DelimitedArgumentReader(io.BytesIO(b"ab c\0d\tef\0"), 0)
    process_input(options, args, max_args=1)
    assert output.getvalue() == "ab c\nd\tef\n"


def test_empty_input_still_runs():
    options, output = echo_options()
    process_input(options, whitespace_args(b""))
    assert output.getvalue() == "\n"


def test_empty_input_no_run_if_empty():
    options, output = echo_options()
    process_input(options, whitespace_args(b""), no_run_if_empty=True)
    assert output.getvalue() == ""


def test_max_args():
    options, output = echo_options(MaxArgsLimiter(2))
    process_input(options, whitespace_args(b"ab cd ef\ngh i"), max_args=2)
    assert output.getvalue() == "ab cd\nef gh\ni\n"


def test_max_lines():
    options, output = echo_options(MaxLinesLimiter(2))
    process_input(options, whitespace_args(b"ab cd\nef\ngh i\n\njkl\n"), max_lines=2)
    assert output.getvalue() == "ab cd ef\ngh i jkl\n"


def test_max_chars():
    options, output = echo_options(MaxCharsLimiter(11))
    process_input(options, whitespace_args(b"ab cd efg"))
    assert output.getvalue() == "ab cd\nefg\n"


def test_max_chars_with_exit_flag_but_no_counts():
    options, output = echo_options(MaxCharsLimiter(11))
    process_input(options, whitespace_args(b"ab cd efg"), exit_if_pass_char_limit=True)
    assert output.getvalue() == "ab cd\nefg\n"


def test_argument_too_large():
    options, output = echo_options(MaxCharsLimiter(10))
    with pytest.raises(ArgumentTooLargeError, match="Argument too large"):
        process_input(options, whitespace_args(b"abcdefghijkl ab"))
    assert output.getvalue() == ""


def test_exit_on_large_fits():
    options, output = echo_options(MaxArgsLimiter(2), MaxCharsLimiter(11))
    process_input(
        options,
        whitespace_args(b"ab cd efg h i"),
        exit_if_pass_char_limit=True,
        max_args=2,
    )
    assert output.getvalue() == "ab cd\nefg h\ni\n"


def test_exit_on_large_fails():
    options, output = echo_options(MaxArgsLimiter(2), MaxCharsLimiter(11))
    with pytest.raises(ArgumentTooLargeError):
        process_input(
            options,
            whitespace_args(b"abcdefg hijklmn"),
            exit_if_pass_char_limit=True,
            max_args=2,
        )
    assert output.getvalue() == ""


def test_runs_command_with_arguments():
    options, output = python_options(PRINT_ARGS, "x", limiters=[MaxArgsLimiter(2)])
    result = process_input(options, whitespace_args(b"a b c\nd"), max_args=2)
    assert result is CommandResult.SUCCESS
    assert output.getvalue() == "x a b\nx c d\n"


def test_command_failure_is_reported():
    options, _ = python_options("import sys; sys.exit(3)", limiters=[MaxArgsLimiter(1)])
    result = process_input(options, whitespace_args(b"a b"), max_args=1)
    assert result is CommandResult.FAILURE


def test_urgent_failure_stops():
    code = "import sys; print(sys.argv[1]); sys.exit(255)"
    options, output = python_options(code, limiters=[MaxArgsLimiter(1)])
    with pytest.raises(UrgentlyFailedError) as info:
        process_input(options, whitespace_args(b"a b"), max_args=1)
    assert info.value.exit_code == 124
    assert str(info.value) == "Command exited with code 255"
    assert output.getvalue() == "a\n"


def test_command_not_found():
    options = CommandBuilderOptions(
        ["this-file-does-not-exist-xargskit"],
        dict(os.environ),
        LimiterChain(),
        output=io.StringIO(),
    )
    with pytest.raises(CommandNotFoundError) as info:
        CommandBuilder(options).execute()
    assert info.value.exit_code == 127
    assert str(info.value) == "Command not found"


def test_command_cannot_run(tmp_path):
    options = CommandBuilderOptions(
        [str(tmp_path)], dict(os.environ), LimiterChain(), output=io.StringIO()
    )
    with pytest.raises(CannotRunError) as info:
        CommandBuilder(options).execute()
    assert info.value.exit_code == 126


def test_killed_error_message():
    error = KilledError(2)
    assert str(error) == "Command was killed with signal 2"
    assert error.exit_code == 125


def test_replace_in_initial_arguments():
    options, output = python_options(
        PRINT_ARGS, "{} bar {}", limiters=[MaxArgsLimiter(1)], replace="{}"
    )
    args = DelimitedArgumentReader(io.BytesIO(b"foo\nab  c"), ord("\n"))
    process_input(options, args, max_args=1)
    assert output.getvalue() == "foo bar foo\nab  c bar ab  c\n"


def test_environment_is_passed():
    env = dict(os.environ, XARGSKIT_VALUE="value")
    code = "import os; print(os.environ.get('XARGSKIT_VALUE'))"
    options, output = python_options(code, env=env)
    CommandBuilder(options).execute()
    assert output.getvalue() == "value\n"


def test_closed_stdin_reads_nothing():
    code = "import sys; print(repr(sys.stdin.read()))"
    options, output = python_options(code, close_stdin=True)
    CommandBuilder(options).execute()
    assert output.getvalue() == "''\n"


def test_verbose_prints_command(capsys):
    output = io.StringIO()
    options = CommandBuilderOptions(None, {}, LimiterChain(), verbose=True, output=output)
    builder = CommandBuilder(options)
    builder.add_arg(Argument("hello", ArgumentKind.SOFT_TERMINATED))
    builder.execute()
    err = capsys.readouterr().err
    assert '"echo" "hello"' in err
    assert output.getvalue() == "hello\n"