import sys
import traceback

import colorama

from ast_nodes import dump
from compiler import Compiler, slot_for
from errors import ExprError, ParseError, CompileError, ExprRuntimeError
from lexer import Lexer, IDENT_START, IDENT_CHARS
from parser import Parser
from vm import VM

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_PARSE = 2
EXIT_COMPILE = 3
EXIT_RUNTIME = 4

USAGE = """Usage:
  python cli.py parse [file.expr|-]
  python cli.py build [file.expr|-]
  python cli.py run [file.expr|-] [-- name=value ...]
  python cli.py repl
  (optional) --debug to show Python traceback
  (optional) --trace to trace tokens and VM steps on stderr"""

_colorama_inited = False


def _ensure_colorama():
    global _colorama_inited
    if _colorama_inited:
        return
    _colorama_inited = True
    colorama.just_fix_windows_console()


def exit_code_for(err):
    if isinstance(err, ParseError):
        return EXIT_PARSE
    if isinstance(err, CompileError):
        return EXIT_COMPILE
    if isinstance(err, ExprRuntimeError):
        return EXIT_RUNTIME
    return EXIT_USAGE


def report(err, debug=False):
    if debug:
        traceback.print_exc()
        return
    text = str(err)
    if sys.stderr.isatty():
        _ensure_colorama()
        prefix, sep, rest = text.partition(":")
        text = f"{colorama.Fore.RED}{prefix}{sep}{colorama.Style.RESET_ALL}{rest}"
    print(text, file=sys.stderr)


def read_source(path):
    if path is None or path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def parse_assignment(text):
    # name=value -> (slot, int)
    name, sep, value = text.partition("=")
    name = name.strip()
    if not sep or not name or name[0] not in IDENT_START or any(ch not in IDENT_CHARS for ch in name):
        raise ValueError(f"expected name=value, got {text!r}")
    try:
        number = int(value.strip())
    except ValueError:
        raise ValueError(f"value for {name} must be an integer, got {value.strip()!r}")
    return slot_for(name), number


def build(code, trace=False):
    lexer = Lexer(code, trace=trace)
    parser = Parser(lexer)
    root = parser.parse()

    compiler = Compiler()
    bc = compiler.compile(root)
    return root, bc


def cmd_parse(path, debug=False, trace=False):
    try:
        code = read_source(path)
        root = Parser(Lexer(code, trace=trace)).parse()
    except ExprError as e:
        report(e, debug)
        return exit_code_for(e)

    print(dump(root))
    return EXIT_OK


def cmd_build(path, debug=False, trace=False):
    try:
        code = read_source(path)
        root, bc = build(code, trace=trace)
    except ExprError as e:
        report(e, debug)
        return exit_code_for(e)

    print(dump(root))
    print(f"\nCODE ({len(bc)} of {bc.capacity} cells):")
    for line in bc.disassemble():
        print(f"  {line}")
    return EXIT_OK


def cmd_run(path, debug=False, trace=False, assignments=None):
    try:
        code = read_source(path)
        root, bc = build(code, trace=trace)
        # the tree is no longer needed once bytecode exists
        text = dump(root)
        del root

        vm = VM(bc, presets=dict(assignments or []), trace=trace)
        result = vm.run()
    except ExprError as e:
        report(e, debug)
        return exit_code_for(e)

    print(text)
    print(result)
    return EXIT_OK


def cmd_repl(debug=False, trace=False):
    print("exprvm REPL. Type :q to quit, :set name=value to preset a variable.")

    slots = {}
    while True:
        try:
            line = input("expr> ")
        except (EOFError, KeyboardInterrupt):
            print()
            break
        except UnicodeDecodeError as e:
            print(f"cannot decode input line: invalid UTF-8 at byte {e.start}", file=sys.stderr)
            continue

        stripped = line.strip()
        if stripped in (":q", ":quit", "quit", "exit"):
            break
        if not stripped:
            continue

        if stripped.startswith(":set"):
            try:
                slot, value = parse_assignment(stripped[len(":set"):])
            except ValueError as e:
                print(str(e), file=sys.stderr)
                continue
            slots[slot] = value
            continue

        try:
            _, bc = build(line, trace=trace)
            result = VM(bc, presets=slots, trace=trace).run()
        except ExprError as e:
            report(e, debug)
            continue
        print(result)

    return EXIT_OK


def main(argv=None):
    args = list(sys.argv[1:] if argv is None else argv)

    debug = False
    if "--debug" in args:
        debug = True
        args.remove("--debug")

    trace = False
    if "--trace" in args:
        trace = True
        args.remove("--trace")

    if not args:
        print(USAGE, file=sys.stderr)
        return EXIT_USAGE

    cmd = args[0]
    rest = args[1:]

    script_args = []
    if "--" in rest:
        i = rest.index("--")
        script_args = rest[i + 1 :]
        rest = rest[:i]

    if cmd == "repl":
        if rest or script_args:
            print("Usage:\n  python cli.py repl", file=sys.stderr)
            return EXIT_USAGE
        return cmd_repl(debug=debug, trace=trace)

    if len(rest) > 1:
        print(USAGE, file=sys.stderr)
        return EXIT_USAGE
    path = rest[0] if rest else None

    try:
        if cmd == "parse":
            if script_args:
                print("Parse does not accept extra arguments.", file=sys.stderr)
                return EXIT_USAGE
            return cmd_parse(path, debug=debug, trace=trace)
        if cmd == "build":
            if script_args:
                print("Build does not accept extra arguments.", file=sys.stderr)
                return EXIT_USAGE
            return cmd_build(path, debug=debug, trace=trace)
        if cmd == "run":
            try:
                assignments = [parse_assignment(a) for a in script_args]
            except ValueError as e:
                print(str(e), file=sys.stderr)
                return EXIT_USAGE
            return cmd_run(path, debug=debug, trace=trace, assignments=assignments)
    except OSError as e:
        print(f"cannot read {path or 'stdin'}: {e.strerror or e}", file=sys.stderr)
        return EXIT_USAGE
    except UnicodeDecodeError as e:
        print(f"cannot decode {path or 'stdin'}: invalid UTF-8 at byte {e.start}", file=sys.stderr)
        return EXIT_USAGE

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
