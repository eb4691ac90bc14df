#!/usr/bin/env python
import sys
import os
import io
import subprocess
import json
import codecs
import contextlib

from typing import (
    Callable,
    ContextManager,
    Dict,
    Final,
    Iterable,
    Iterator,
    List,
    Literal,
    Optional,
    TextIO,
    Tuple,
    Type,
)

try:
    import termios
    import tty
except ImportError:
    # Not available on Windows, raw mode becomes a no-op there
    termios = None
    tty = None

FileMode = Literal["w", "a"]
TRUNCATE: Final = "w"
APPEND: Final = "a"

RedirectionTarget = Tuple[str, FileMode]


class CommandError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"CommandError({self.message!r})"


class ShellSession:
    def __init__(
        self,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ):
        self.cwd = os.path.abspath(cwd if cwd is not None else os.getcwd())
        self.last_dir: Optional[str] = None
        self.env: Dict[str, str] = dict(os.environ if env is None else env)
        self.stdout: TextIO = stdout if stdout is not None else sys.stdout
        self.stderr: TextIO = stderr if stderr is not None else sys.stderr
        self.history: List[str] = []
        # Number of history entries already written by `history -a`
        self.history_appended = 0

    def resolve_path(self, path: str) -> str:
        return os.path.normpath(os.path.join(self.cwd, path))

    def __repr__(self) -> str:
        return f"ShellSession(cwd={self.cwd})"


class StructuredCommand:
    def __init__(
        self,
        argv: List[str],
        stdout_target: Optional[RedirectionTarget] = None,
        stderr_target: Optional[RedirectionTarget] = None,
    ):
        self.argv = argv
        self.stdout_target = stdout_target
        self.stderr_target = stderr_target

    def __repr__(self) -> str:
        return (
            f"StructuredCommand(argv={self.argv}, "
            f"stdout_target={self.stdout_target}, stderr_target={self.stderr_target})"
        )

    def __eq__(self, value: object) -> bool:
        return (
            isinstance(value, StructuredCommand)
            and self.argv == value.argv
            and self.stdout_target == value.stdout_target
            and self.stderr_target == value.stderr_target
        )


class Tokenizer:
    # Characters a backslash can escape inside double quotes
    DOUBLE_QUOTE_ESCAPABLE: Final = ("\\", "$", '"', "\n")

    def __init__(self, line: str):
        self.states: Final = {
            "default": self._default_state_handler,
            "escape": self._escape_state_handler,
            "single_quote": self._single_quote_state_handler,
            "double_quote": self._double_quote_state_handler,
            "double_quote_escape": self._double_quote_escape_state_handler,
        }

        self.line = line
        self.state = "default"
        self.current_token = ""
        self.tokens: List[str] = []

    def tokenize(self) -> List[str]:
        for c in self.line:
            self.states[self.state](c)

        # Unterminated quotes simply run to the end of the line. A dangling
        # backslash inside double quotes has nothing to escape, so it is literal
        if self.state == "double_quote_escape":
            self.current_token += "\\"

        self._save_current_token()
        return self.tokens

    def _go_to_state(self, state_name: str):
        if state_name not in self.states:
            raise ValueError(f"Unknown state: {state_name}")

        self.state = state_name

    def _save_current_token(self):
        # Tokens that accumulated nothing (e.g. '' or "") are dropped
        if self.current_token:
            self.tokens.append(self.current_token)
            self.current_token = ""

    def _default_state_handler(self, c: str):
        if c.isspace():
            self._save_current_token()
            return

        if c == "\\":
            self._go_to_state("escape")
            return

        if c == "'":
            self._go_to_state("single_quote")
            return

        if c == '"':
            self._go_to_state("double_quote")
            return

        self.current_token += c

    def _escape_state_handler(self, c: str):
        self.current_token += c
        self._go_to_state("default")

    def _single_quote_state_handler(self, c: str):
        if c == "'":
            self._go_to_state("default")
            return

        self.current_token += c

    def _double_quote_state_handler(self, c: str):
        if c == "\\":
            self._go_to_state("double_quote_escape")
            return

        if c == '"':
            self._go_to_state("default")
            return

        self.current_token += c

    def _double_quote_escape_state_handler(self, c: str):
        # Double quotes preserve the backslash unless it is followed by \, $, " or newline
        if c not in self.DOUBLE_QUOTE_ESCAPABLE:
            self.current_token += "\\"

        self.current_token += c
        self._go_to_state("double_quote")


def tokenize(line: str) -> List[str]:
    return Tokenizer(line).tokenize()


class CommandBuilder:
    STDOUT_OPERATORS: Final[Dict[str, FileMode]] = {
        ">": TRUNCATE,
        "1>": TRUNCATE,
        ">>": APPEND,
        "1>>": APPEND,
    }
    STDERR_OPERATORS: Final[Dict[str, FileMode]] = {
        "2>": TRUNCATE,
        "2>>": APPEND,
    }

    def __init__(self, tokens: List[str]):
        self.tokens = tokens

    def build(self) -> StructuredCommand:
        command = StructuredCommand([])

        position = 0
        while position < len(self.tokens):
            token = self.tokens[position]

            if token in self.STDOUT_OPERATORS or token in self.STDERR_OPERATORS:
                # An operator without an operand is dropped altogether
                if position + 1 < len(self.tokens):
                    self._set_target(command, token, self.tokens[position + 1])
                position += 2
                continue

            command.argv.append(token)
            position += 1

        return command

    def _set_target(self, command: StructuredCommand, operator: str, filename: str):
        # Later redirections of the same stream win
        if operator in self.STDOUT_OPERATORS:
            command.stdout_target = (filename, self.STDOUT_OPERATORS[operator])
        else:
            command.stderr_target = (filename, self.STDERR_OPERATORS[operator])


def build(tokens: List[str]) -> StructuredCommand:
    return CommandBuilder(tokens).build()


class PathResolver:
    def __init__(self, session: ShellSession):
        self.session = session

    def _search_path(self) -> List[str]:
        path_env = self.session.env.get("PATH", "")
        return [
            self.session.resolve_path(entry)
            for entry in path_env.split(os.pathsep)
            if entry
        ]

    @staticmethod
    def _is_executable(path: str) -> bool:
        return os.path.isfile(path) and os.access(path, os.X_OK)

    def resolve(self, name: str) -> Optional[str]:
        if not name:
            return None

        # Names with a slash are paths, they skip the search path
        if "/" in name:
            command_path = self.session.resolve_path(name)
            return command_path if self._is_executable(command_path) else None

        for directory in self._search_path():
            command_path = os.path.join(directory, name)
            if self._is_executable(command_path):
                return command_path

        return None

    def list_executables(self) -> set:
        executables = set()
        for directory in self._search_path():
            try:
                entries = os.listdir(directory)
            except OSError:
                # Missing or unreadable directories don't contribute anything
                continue

            for entry in entries:
                if self._is_executable(os.path.join(directory, entry)):
                    executables.add(entry)

        return executables


class ProcessSpawner:
    @staticmethod
    def _destination(stream: TextIO) -> int:
        # In-memory sinks have no descriptor, the child writes to a pipe instead
        try:
            return stream.fileno()
        except (AttributeError, io.UnsupportedOperation):
            return subprocess.PIPE

    def spawn_and_wait(
        self,
        command_path: str,
        argv: List[str],
        out_stream: TextIO,
        err_stream: TextIO,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> int:
        # Anything we printed so far must land before the child's output
        out_stream.flush()
        err_stream.flush()

        stdout = self._destination(out_stream)
        stderr = self._destination(err_stream)
        try:
            result = subprocess.run(
                argv,
                executable=command_path,
                stdout=stdout,
                stderr=stderr,
                cwd=cwd,
                env=env,
                text=True,
            )
        except OSError as e:
            raise CommandError(e.strerror or str(e))

        if stdout == subprocess.PIPE and result.stdout:
            out_stream.write(result.stdout)
        if stderr == subprocess.PIPE and result.stderr:
            err_stream.write(result.stderr)

        return result.returncode


class Command:
    def __init__(self, name: str):
        self.name = name
        self.out_stream: TextIO = sys.stdout
        self.err_stream: TextIO = sys.stderr

    def execute(self, args: List[str]):
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"


class CommandNotFound(Command):
    def __init__(self, name: str):
        super().__init__(name)

    def execute(self, args: List[str]):
        print(f"{self.name}: command not found", file=self.err_stream)


class ExecutableCommand(Command):
    def __init__(
        self,
        command_path: str,
        name: str,
        spawner: ProcessSpawner,
        session: ShellSession,
    ):
        super().__init__(name)
        self.command_path = command_path
        self.spawner = spawner
        self.session = session

    def execute(self, args: List[str]):
        argv = [self.name]
        argv.extend(args)
        self.spawner.spawn_and_wait(
            self.command_path,
            argv,
            self.out_stream,
            self.err_stream,
            cwd=self.session.cwd,
            env=self.session.env,
        )


class BuiltinCommand(Command):
    def __init__(self, name: str):
        super().__init__(name)


class EchoCommand(BuiltinCommand):
    NAME = "echo"

    def __init__(self):
        super().__init__(EchoCommand.NAME)

    def execute(self, args: List[str]):
        print(" ".join(args), file=self.out_stream)


class ExitCommand(BuiltinCommand):
    NAME = "exit"

    def __init__(self):
        super().__init__(ExitCommand.NAME)
        self.status: Optional[int] = None

    def execute(self, args: List[str]):
        if len(args) > 1:
            raise CommandError("too many arguments")

        status = 0
        if args:
            try:
                status = int(args[0])
            except ValueError:
                raise CommandError(f"{args[0]}: numeric argument required")

        self.status = status


class TypeCommand(BuiltinCommand):
    NAME = "type"

    def __init__(self, dispatcher: "Dispatcher"):
        super().__init__(TypeCommand.NAME)
        self.dispatcher = dispatcher

    def execute(self, args: List[str]):
        for arg in args:
            command_factory = self.dispatcher.find_command(arg)
            if issubclass(command_factory.command_type, BuiltinCommand):
                print(f"{arg} is a shell builtin", file=self.out_stream)
            elif issubclass(command_factory.command_type, ExecutableCommand):
                # For executable commands, the first argument of the factory is the command path
                print(f"{arg} is {command_factory.args[0]}", file=self.out_stream)
            else:
                print(f"{arg}: not found", file=self.err_stream)


class PwdCommand(BuiltinCommand):
    NAME = "pwd"

    def __init__(self, session: ShellSession):
        super().__init__(PwdCommand.NAME)
        self.session = session

    def execute(self, args: List[str]):
        print(self.session.cwd, file=self.out_stream)


class CdCommand(BuiltinCommand):
    NAME = "cd"

    def __init__(self, session: ShellSession):
        super().__init__(CdCommand.NAME)
        self.session = session

    def _expand_home(self, target: str) -> str:
        if target != "~" and not target.startswith("~/"):
            return target

        home = self.session.env.get("HOME")
        if not home:
            raise CommandError("HOME not set")

        return home + target[1:]

    def execute(self, args: List[str]):
        if len(args) > 1:
            raise CommandError("too many arguments")

        target = args[0] if args else "~"
        if target == "-":
            if not self.session.last_dir:
                raise CommandError("OLDPWD not set")
            target_dir = self.session.last_dir
        else:
            target_dir = self.session.resolve_path(self._expand_home(target))

        if not os.path.exists(target_dir):
            raise CommandError(f"{target}: No such file or directory")
        if not os.path.isdir(target_dir):
            raise CommandError(f"{target}: Not a directory")

        self.session.last_dir = self.session.cwd
        self.session.cwd = target_dir


def read_history_file(path: str) -> List[str]:
    # Undecodable bytes are replaced
    with open(path, "r", errors="replace") as f:
        return [line.rstrip("\n") for line in f if line.strip()]


def write_history_file(path: str, lines: Iterable[str], mode: FileMode = TRUNCATE):
    with open(path, mode) as f:
        for line in lines:
            f.write(f"{line}\n")


class HistoryCommand(BuiltinCommand):
    NAME = "history"
    FILE_FLAGS: Final = ("-r", "-w", "-a")

    def __init__(self, session: ShellSession):
        super().__init__(HistoryCommand.NAME)
        self.session = session

    def _run_file_flag(self, flag: str, filename: str):
        history = self.session.history
        path = self.session.resolve_path(filename)
        try:
            if flag == "-r":
                history.extend(read_history_file(path))
            elif flag == "-w":
                write_history_file(path, history)
                self.session.history_appended = len(history)
            else:
                write_history_file(
                    path, history[self.session.history_appended :], APPEND
                )
                self.session.history_appended = len(history)
        except OSError as e:
            raise CommandError(f"{filename}: {e.strerror}")

    def execute(self, args: List[str]):
        history = self.session.history
        history_start = 0

        if args:
            if args[0] in self.FILE_FLAGS:
                if len(args) == 1:
                    raise CommandError(f"{args[0]}: file name required")

                if len(args) > 2:
                    raise CommandError("too many arguments")

                self._run_file_flag(args[0], args[1])
                return
            elif args[0].startswith("-"):
                raise CommandError(f"{args[0]}: unknown argument")

            if len(args) > 1:
                raise CommandError("too many arguments")

            try:
                history_start = max(0, len(history) - int(args[0]))
            except ValueError:
                raise CommandError(f"{args[0]}: numeric argument required")

        for i in range(history_start, len(history)):
            print(f"{i + 1:>5}  {history[i]}", file=self.out_stream)


class CommandFactory:
    def __init__(self, command_type: Type[Command], *args, **kwargs):
        self.command_type = command_type
        self.args = args
        self.kwargs = kwargs

    def make(
        self,
        out_stream: Optional[TextIO] = None,
        err_stream: Optional[TextIO] = None,
    ) -> Command:
        cmd = self.command_type(*self.args, **self.kwargs)
        if out_stream is not None:
            cmd.out_stream = out_stream

        if err_stream is not None:
            cmd.err_stream = err_stream

        return cmd


class StreamRedirectionScope:
    def __init__(
        self,
        session: ShellSession,
        stdout_target: Optional[RedirectionTarget] = None,
        stderr_target: Optional[RedirectionTarget] = None,
    ):
        self.session = session
        self.stdout_target = stdout_target
        self.stderr_target = stderr_target
        self.saved_stdout = session.stdout
        self.saved_stderr = session.stderr
        self.opened_files: List[TextIO] = []

    def _open(self, target: RedirectionTarget) -> TextIO:
        filename, mode = target
        try:
            opened = open(self.session.resolve_path(filename), mode)
        except OSError as e:
            raise CommandError(f"{filename}: {e.strerror}")

        self.opened_files.append(opened)
        return opened

    def __enter__(self) -> "StreamRedirectionScope":
        self.saved_stdout = self.session.stdout
        self.saved_stderr = self.session.stderr
        try:
            if self.stdout_target:
                self.session.stdout = self._open(self.stdout_target)
            if self.stderr_target:
                self.session.stderr = self._open(self.stderr_target)
        except CommandError:
            self.restore()
            raise

        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        self.restore()
        return False

    def restore(self):
        self.session.stdout = self.saved_stdout
        self.session.stderr = self.saved_stderr

        # Every file gets closed, even when flushing an earlier one fails
        close_error: Optional[OSError] = None
        while self.opened_files:
            try:
                self.opened_files.pop().close()
            except OSError as e:
                close_error = close_error or e

        if close_error:
            raise CommandError(f"write error: {close_error.strerror}")


class Dispatcher:
    def __init__(
        self,
        session: ShellSession,
        path_resolver: Optional[PathResolver] = None,
        spawner: Optional[ProcessSpawner] = None,
    ):
        self.session = session
        self.path_resolver = path_resolver or PathResolver(session)
        self.spawner = spawner or ProcessSpawner()
        self.builtin_commands_factory: Dict[str, CommandFactory] = {
            EchoCommand.NAME: CommandFactory(EchoCommand),
            ExitCommand.NAME: CommandFactory(ExitCommand),
            TypeCommand.NAME: CommandFactory(TypeCommand, self),
            PwdCommand.NAME: CommandFactory(PwdCommand, session),
            CdCommand.NAME: CommandFactory(CdCommand, session),
            HistoryCommand.NAME: CommandFactory(HistoryCommand, session),
        }

    def is_builtin(self, name: str) -> bool:
        return name in self.builtin_commands_factory

    def builtin_names(self) -> List[str]:
        return list(self.builtin_commands_factory.keys())

    def find_command(self, command_name: str) -> CommandFactory:
        # First check if the command is a built-in command
        if self.is_builtin(command_name):
            return self.builtin_commands_factory[command_name]

        # Then check if the command is an external command
        command_path = self.path_resolver.resolve(command_name)
        if command_path:
            return CommandFactory(
                ExecutableCommand,
                command_path,
                command_name,
                self.spawner,
                self.session,
            )

        # If the command is not found, return a CommandNotFound factory
        return CommandFactory(CommandNotFound, command_name)

    def _exit_status(self, args: List[str]) -> Optional[int]:
        command = self.find_command(ExitCommand.NAME).make(
            out_stream=self.session.stdout, err_stream=self.session.stderr
        )
        try:
            command.execute(args)
        except CommandError as e:
            print(f"{command.name}: {e}", file=command.err_stream)
            return None

        return command.status

    def dispatch(self, command: StructuredCommand) -> Optional[int]:
        if not command.argv:
            return None

        name, args = command.argv[0], command.argv[1:]
        if name == ExitCommand.NAME:
            return self._exit_status(args)

        try:
            with StreamRedirectionScope(
                self.session, command.stdout_target, command.stderr_target
            ):
                cmd = self.find_command(name).make(
                    out_stream=self.session.stdout, err_stream=self.session.stderr
                )
                try:
                    cmd.execute(args)
                except CommandError as e:
                    print(f"{cmd.name}: {e}", file=cmd.err_stream)
        except CommandError as e:
            # Opening or closing a redirection target failed, the original stderr is back in place
            print(f"{name}: {e}", file=self.session.stderr)
        except OSError as e:
            # Output that could not be written to a redirection target
            print(f"{name}: write error: {e.strerror}", file=self.session.stderr)

        return None


class CompletionEngine:
    def __init__(self, builtin_names: Iterable[str], path_resolver: PathResolver):
        self.builtin_names = list(builtin_names)
        self.path_resolver = path_resolver

    def complete(self, prefix: str) -> List[str]:
        # Never cached, the search path directories may change between requests
        candidates = {name for name in self.builtin_names if name.startswith(prefix)}
        candidates.update(
            name
            for name in self.path_resolver.list_executables()
            if name.startswith(prefix)
        )
        return sorted(candidates)


class InputSession:
    IDLE: Final = "idle"
    PENDING_AMBIGUOUS: Final = "pending_ambiguous"

    def __init__(self, history_length: int = 0):
        self.buffer = ""
        self.completion_state = InputSession.IDLE
        self.candidates: List[str] = []
        self.history_index = history_length

    def reset_completion(self):
        self.completion_state = InputSession.IDLE
        self.candidates = []

    def __repr__(self) -> str:
        return (
            f"InputSession(buffer={self.buffer!r}, "
            f"completion_state={self.completion_state})"
        )


class TerminalInput:
    def __init__(self, stream: TextIO):
        self.fd = stream.fileno()
        encoding = getattr(stream, "encoding", None) or "utf-8"
        self.decoder = codecs.getincrementaldecoder(encoding)(errors="replace")

    def read(self, size: int = 1) -> str:
        # One byte at a time, so nothing past the current line is consumed
        text = ""
        while len(text) < size:
            data = os.read(self.fd, 1)
            if not data:
                break
            text += self.decoder.decode(data)

        return text


@contextlib.contextmanager
def raw_mode(stream: TextIO) -> Iterator[None]:
    if termios is None or not stream.isatty():
        yield
        return

    fd = stream.fileno()
    previous_mode = termios.tcgetattr(fd)
    try:
        tty.setcbreak(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, previous_mode)


class RawInputReader:
    ALERT: Final = "\x07"
    END_OF_TRANSMISSION: Final = "\x04"
    NEWLINES: Final = ("\n", "\r")

    def __init__(
        self,
        completion_engine: CompletionEngine,
        input_stream,
        output_stream: TextIO,
        terminal_mode: Callable[[], ContextManager],
        history: Optional[List[str]] = None,
        prompt: str = "$ ",
        bell: bool = True,
    ):
        self.key_handlers: Final = {
            "\t": self._complete,
            "\x7f": self._backspace,
            "\b": self._backspace,
            "\x1b": self._escape_sequence,
        }

        self.completion_engine = completion_engine
        self.input_stream = input_stream
        self.output_stream = output_stream
        self.terminal_mode = terminal_mode
        self.history = history if history is not None else []
        self.prompt = prompt
        self.bell = bell

    def _write(self, text: str):
        self.output_stream.write(text)
        self.output_stream.flush()

    def _alert(self):
        if self.bell:
            self._write(self.ALERT)

    def _redraw(self, session: InputSession, buffer: str):
        session.buffer = buffer
        self._write(f"\r\x1b[K{self.prompt}{buffer}")

    def read_line(self) -> Optional[str]:
        self._write(self.prompt)
        session = InputSession(len(self.history))

        with self.terminal_mode():
            while True:
                c = self.input_stream.read(1)
                if not c:
                    return None

                if c in self.NEWLINES:
                    self._write("\n")
                    return session.buffer

                if c == self.END_OF_TRANSMISSION:
                    if not session.buffer:
                        self._write("\n")
                        return None
                    continue

                if c in self.key_handlers:
                    self.key_handlers[c](session)
                elif c.isprintable():
                    session.reset_completion()
                    session.buffer += c
                    self._write(c)

    def _backspace(self, session: InputSession):
        session.reset_completion()
        if session.buffer:
            session.buffer = session.buffer[:-1]
            self._write("\b \b")

    def _escape_sequence(self, session: InputSession):
        session.reset_completion()
        if self.input_stream.read(1) != "[":
            return

        key = self.input_stream.read(1)
        # Sequences like "ESC [ 3 ~" carry parameters before the final byte
        while key.isdigit() or key == ";":
            key = self.input_stream.read(1)

        if key == "A":
            self._recall(session, session.history_index - 1)
        elif key == "B":
            self._recall(session, session.history_index + 1)

    def _recall(self, session: InputSession, index: int):
        if index < 0 or index > len(self.history):
            return

        session.history_index = index
        line = self.history[index] if index < len(self.history) else ""
        self._redraw(session, line)

    def _complete(self, session: InputSession):
        # Only the command name is completed, never its arguments
        if any(c.isspace() for c in session.buffer):
            return

        # A second request with no edit in between lists what the first one found
        if session.completion_state == InputSession.PENDING_AMBIGUOUS:
            candidates = session.candidates
            session.reset_completion()
            self._write(f"\n{'  '.join(candidates)}\n{self.prompt}{session.buffer}")
            return

        candidates = self.completion_engine.complete(session.buffer)
        if not candidates:
            session.reset_completion()
            self._alert()
            return

        if len(candidates) == 1:
            session.reset_completion()
            self._redraw(session, candidates[0] + " ")
            return

        session.completion_state = InputSession.PENDING_AMBIGUOUS
        session.candidates = candidates
        self._alert()


class LineShell:
    LINESHELL_CONFIG_FILE = ".lineShell"

    def __init__(
        self,
        session: Optional[ShellSession] = None,
        input_stream=None,
        output_stream: Optional[TextIO] = None,
        terminal_mode: Optional[Callable[[], ContextManager]] = None,
    ):
        self.prompt = "$ "
        self.session = session or ShellSession()
        self.output_stream = output_stream or sys.stdout
        self.config: Dict = {}
        self.history_file: Optional[str] = None
        self.history_session_start = 0
        self._on_load()

        self.dispatcher = Dispatcher(self.session)
        self.completion_engine = CompletionEngine(
            self.dispatcher.builtin_names(), self.dispatcher.path_resolver
        )
        self.reader = RawInputReader(
            self.completion_engine,
            input_stream if input_stream is not None else TerminalInput(sys.stdin),
            self.output_stream,
            terminal_mode or (lambda: raw_mode(sys.stdin)),
            history=self.session.history,
            prompt=self.prompt,
            bell=bool(self.config.get("bell", True)),
        )

    # This is intended to show (print) messages to the shell always (and not redirect to any stream)
    def show_internal_message(self, message: str):
        print(f"\033[90m > {message} \033[0m", file=self.output_stream)

    def _get_config_path(self) -> Optional[str]:
        home = self.session.env.get("HOME")
        if not home:
            return None
        return os.path.join(home, self.LINESHELL_CONFIG_FILE)

    def _load_config(self):
        config_file_path = self._get_config_path()
        if not config_file_path or not os.path.exists(config_file_path):
            return

        try:
            with open(config_file_path, "r") as f:
                config = json.load(f)
        except (OSError, ValueError) as e:
            self.show_internal_message(f"Ignoring {config_file_path}: {e}")
            return

        if not isinstance(config, dict):
            self.show_internal_message(
                f"Ignoring {config_file_path}: expected a JSON object"
            )
            return

        self.config = config

    def _on_load(self):
        self._load_config()

        self.history_file = self.session.env.get("HISTFILE") or self.config.get(
            "history_file"
        )
        if self.history_file and os.path.exists(self.history_file):
            try:
                self.session.history.extend(read_history_file(self.history_file))
            except OSError as e:
                self.show_internal_message(f"Could not read history: {e}")

        self.history_session_start = len(self.session.history)
        self.session.history_appended = self.history_session_start

    def _on_unload(self):
        if not self.history_file:
            return

        try:
            write_history_file(
                self.history_file,
                self.session.history[self.history_session_start :],
                APPEND,
            )
        except OSError as e:
            self.show_internal_message(f"Could not save history: {e}")

    # This is the "Read-Eval-Print Loop" (REPL) method
    def repl(self) -> int:
        exit_code = 0
        while True:
            input_line = self.reader.read_line()
            if input_line is None:
                break

            if not input_line.strip():
                continue

            self.session.history.append(input_line)
            status = self.dispatcher.dispatch(self._eval(input_line))
            if status is not None:
                exit_code = status
                break

        self._on_unload()
        return exit_code

    def _eval(self, user_input: str) -> StructuredCommand:
        return build(tokenize(user_input))


def main():
    shell = LineShell()
    sys.exit(shell.repl())


if __name__ == "__main__":
    main()
