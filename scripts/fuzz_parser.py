#!/usr/bin/env python3
"""
Parser fuzzer for debug-formatted values.

Generates random and mutated inputs to find parser bugs like:
- Crashes (exceptions other than parse/conversion errors)
- Hangs (runaway backtracking)
- Deep nesting that escapes the depth limit

Usage:
    python scripts/fuzz_parser.py [--duration MINUTES] [--iterations N] [--seed SEED]

Findings are saved to scripts/fuzz_findings/
"""

import argparse
import hashlib
import random
import re
import signal
import string
import sys
import time
import traceback
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

# Add scripts directory to path
sys.path.insert(0, str(Path(__file__).parent))

from dbg_converter import ConversionError, convert
from dbg_parser import ParseError

# Expected rejections - these are normal
EXPECTED_ERRORS = (
    ParseError,
    ConversionError,  # e.g. 1e999 has no JSON spelling
)

# Directory for saving findings
FINDINGS_DIR = Path(__file__).parent / "fuzz_findings"


class FuzzTimeout(Exception):
    pass


@contextmanager
def timeout(seconds):
    """Context manager for timeout on Unix systems."""
    def handler(signum, frame):
        raise FuzzTimeout(f"Timed out after {seconds} seconds")

    if hasattr(signal, 'SIGALRM'):
        old_handler = signal.signal(signal.SIGALRM, handler)
        signal.alarm(seconds)
        try:
            yield
        finally:
            signal.alarm(0)
            signal.signal(signal.SIGALRM, old_handler)
    else:
        # Windows fallback - no timeout
        yield


class Fuzzer:
    """Debug-format parser fuzzer."""

    TYPE_NAMES = [
        "PaymentsRequest", "Address", "AddressDetails", "PhoneDetails", "Card",
        "Url", "Metadata", "Boat", "Bob", "Value", "Domain", "Encryptable",
    ]
    FIELD_NAMES = [
        "payment_id", "amount", "currency", "name", "email", "city", "line1",
        "zip", "country_code", "created", "items", "inner", "_private", "x2",
    ]
    UNIT_VARIANTS = ["USD", "Automatic", "ThreeDs", "Visa", "Succeeded", "Unit", "AT"]
    MASKS = [
        "*** alloc::string::String ***",
        "*** Encrypted 41 of bytes ***",
        "*** hidden ***",
        "424242**********",
        "****@test.com",
    ]

    OPERATORS = [",", ":", "(", ")", "[", "]", "{", "}", "\"", "*** ", " ***", "-", " "]
    LITERALS = ["None", "true", "false", "Some(", "1e999", "-0", ".5", "1e", "2023-06-06 "]

    # Seed corpus - known valid inputs
    SEED_CORPUS = [
        'None',
        'true',
        '-123.456',
        '"Bob said, \\"Hello!\\""',
        '2023-06-06 12:30:30.351996',
        '[ "12", 2.3]',
        '("12",23)',
        '{ "inner": "data", "outer": 123 }',
        'Yager { inner: "data", outer: 123 }',
        'Data(("12",23))',
        'PaymentsRequest { payment_methods: [] }',
        'PaymentsResponse { created: Some(2023-06-06 12:30:30.351996)}',
        'Card { card_number: CardNumber(424242**********), card_cvc: *** alloc::string::String *** }',
        'Some(Array [String("credit"), String("debit")])',
        'Object {"color_depth": Number(30), "java_enabled": Bool(true)}',
        'Encryptable { inner: ****@test.com, encrypted: *** Encrypted 41 of bytes *** }',
    ]

    def __init__(self, seed=None, findings_dir=None):
        self.rng = random.Random(seed)
        self.findings_dir = Path(findings_dir) if findings_dir is not None else FINDINGS_DIR
        self.stats = {
            "iterations": 0,
            "parse_ok": 0,
            "parse_error": 0,
            "crashes": 0,
            "timeouts": 0,
            "unique_crashes": set(),
        }
        self.start_time = None

    def random_identifier(self) -> str:
        """Generate a type or variant name."""
        if self.rng.random() < 0.7:
            return self.rng.choice(self.TYPE_NAMES)
        length = self.rng.randint(1, 15)
        first = self.rng.choice(string.ascii_uppercase)
        rest = "".join(self.rng.choices(string.ascii_letters + string.digits + "_", k=length))
        return first + rest

    def random_field(self) -> str:
        if self.rng.random() < 0.8:
            return self.rng.choice(self.FIELD_NAMES)
        length = self.rng.randint(1, 12)
        return "".join(self.rng.choices(string.ascii_lowercase + string.digits + "_", k=length))

    def random_number(self) -> str:
        """Generate a random number."""
        if self.rng.random() < 0.4:
            return str(self.rng.randint(-1000, 1000))
        elif self.rng.random() < 0.6:
            return f"{self.rng.uniform(-100, 100):.2f}"
        else:
            # Edge cases
            return self.rng.choice(["0", "-0", "0.0", "999999999999", "-1", "0.001", "1e3", "2.5E-3"])

    def random_string(self) -> str:
        """Generate a quoted string literal, escapes included."""
        if self.rng.random() < 0.1:
            return self.rng.choice(['""', '"test"', '" "', '"a, b) c"', '"123"', '"\\\\"'])
        pieces = []
        plain = string.printable.replace('"', '').replace('\\', '')
        for _ in range(self.rng.randint(0, 10)):
            if self.rng.random() < 0.15:
                pieces.append(self.rng.choice(['\\"', '\\n', '\\\\']))
            else:
                pieces.append("".join(self.rng.choices(plain, k=self.rng.randint(1, 6))))
        return '"' + "".join(pieces) + '"'

    def random_datetime(self) -> str:
        return (f"{self.rng.randint(1970, 2099)}-{self.rng.randint(1, 12):02d}-{self.rng.randint(1, 28):02d} "
                f"{self.rng.randint(0, 23)}:{self.rng.randint(0, 59):02d}:{self.rng.randint(0, 59):02d}"
                f".{self.rng.randint(0, 999999):06d}")

    def random_scalar(self) -> str:
        choice = self.rng.randint(0, 7)
        if choice == 0:
            return "None"
        elif choice == 1:
            return self.rng.choice(["true", "false"])
        elif choice == 2:
            return self.random_number()
        elif choice == 3:
            return self.random_string()
        elif choice == 4:
            return self.random_datetime()
        elif choice == 5:
            return self.rng.choice(self.MASKS)
        else:
            return self.rng.choice(self.UNIT_VARIANTS)

    def random_value(self, depth=0) -> str:
        """Generate a well-formed debug-formatted value."""
        if depth > 4 or self.rng.random() < 0.35:
            return self.random_scalar()

        choice = self.rng.randint(0, 7)
        if choice == 0:
            # Named struct
            fields = ", ".join(f"{self.random_field()}: {self.random_value(depth + 1)}"
                               for _ in range(self.rng.randint(1, 4)))
            return f"{self.random_identifier()} {{ {fields} }}"
        elif choice == 1:
            # Option / newtype wrapper
            name = "Some" if self.rng.random() < 0.5 else self.random_identifier()
            return f"{name}({self.random_value(depth + 1)})"
        elif choice == 2:
            # Tuple (one-element tuples print with a trailing comma, which is not accepted)
            items = ", ".join(self.random_value(depth + 1) for _ in range(self.rng.randint(2, 4)))
            return f"({items})"
        elif choice == 3:
            items = ", ".join(self.random_value(depth + 1) for _ in range(self.rng.randint(0, 4)))
            return f"[{items}]"
        elif choice == 4:
            # Quoted-key map
            entries = ", ".join(f"{self.random_string()}: {self.random_value(depth + 1)}"
                                for _ in range(self.rng.randint(0, 3)))
            return f"{{{entries}}}"
        elif choice == 5:
            # Named array
            items = ", ".join(self.random_value(depth + 1) for _ in range(self.rng.randint(0, 3)))
            return f"{self.random_identifier()} [{items}]"
        elif choice == 6:
            # Struct with quoted keys, as printed for JSON objects
            entries = ", ".join(f"{self.random_string()}: {self.random_value(depth + 1)}"
                                for _ in range(self.rng.randint(1, 3)))
            return f"Object {{{entries}}}"
        else:
            return f"Some({self.random_identifier()}({self.random_value(depth + 1)}))"

    def generate_random(self) -> str:
        """Generate a complete top-level input."""
        fields = ", ".join(f"{self.random_field()}: {self.random_value(1)}"
                           for _ in range(self.rng.randint(1, 6)))
        return f"{self.random_identifier()} {{ {fields} }}"

    def mutate(self, input_str: str) -> str:
        """Apply one grammar-aware mutation."""
        mutations = [
            self._mutate_insert_token,
            self._mutate_drop_closer,
            self._mutate_extra_opener,
            self._mutate_trailing_comma,
            self._mutate_strip_name,
            self._mutate_split_mask,
            self._mutate_break_escape,
            self._mutate_truncate,
            self._mutate_nest,
            self._mutate_insert_special,
            self._mutate_boundary_numbers,
        ]

        mutation = self.rng.choice(mutations)
        return mutation(input_str)

    def _positions(self, s: str, chars: str) -> list:
        return [i for i, c in enumerate(s) if c in chars]

    def _mutate_insert_token(self, s: str) -> str:
        """Insert a literal, delimiter, name or whole value."""
        pos = self.rng.randint(0, len(s))
        token = self.rng.choice([
            self.rng.choice(self.LITERALS),
            self.rng.choice(self.OPERATORS),
            self.random_identifier(),
            self.random_number(),
            self.random_value(3),
            " " * self.rng.randint(1, 5),
            "\n",
            "\t",
        ])
        return s[:pos] + token + s[pos:]

    def _mutate_drop_closer(self, s: str) -> str:
        """Remove one closing delimiter or quote."""
        positions = self._positions(s, ")]}\"")
        if not positions:
            return s
        pos = self.rng.choice(positions)
        return s[:pos] + s[pos + 1:]

    def _mutate_extra_opener(self, s: str) -> str:
        """Double an opening delimiter so it is never closed."""
        positions = self._positions(s, "([{")
        if not positions:
            return self.rng.choice("([{") + s
        pos = self.rng.choice(positions)
        return s[:pos] + s[pos] + s[pos:]

    def _mutate_trailing_comma(self, s: str) -> str:
        """Put a separator right before a closer."""
        positions = self._positions(s, ")]}")
        if not positions:
            return s + ","
        pos = self.rng.choice(positions)
        return s[:pos] + "," + s[pos:]

    def _mutate_strip_name(self, s: str) -> str:
        """Drop the type name in front of a struct, variant or named array."""
        names = list(re.finditer(r"[A-Za-z_]\w*(?=\s*[({\[])", s))
        if not names:
            return s
        m = self.rng.choice(names)
        return s[:m.start()] + s[m.end():]

    def _mutate_split_mask(self, s: str) -> str:
        """Put a space inside a masked placeholder or cut off its end marker."""
        masks = list(re.finditer(r"\*\*\* (\S+) \*\*\*", s))
        if not masks:
            return s + " *** half"
        m = self.rng.choice(masks)
        if self.rng.random() < 0.5:
            body = m.group(1)
            cut = self.rng.randint(0, len(body))
            return s[:m.start(1)] + body[:cut] + " " + body[cut:] + s[m.end(1):]
        return s[:m.end() - 3] + s[m.end():]

    def _mutate_break_escape(self, s: str) -> str:
        """Turn a valid escape into an invalid one, or end input on a backslash."""
        escapes = [m.start() for m in re.finditer(r'\\["n\\]', s)]
        if escapes and self.rng.random() < 0.7:
            pos = self.rng.choice(escapes)
            return s[:pos + 1] + self.rng.choice("qt0u") + s[pos + 2:]
        return s + "\\"

    def _mutate_truncate(self, s: str) -> str:
        """Cut the input short, usually inside an open construct."""
        if len(s) < 2:
            return s
        return s[:self.rng.randint(1, len(s) - 1)]

    def _mutate_nest(self, s: str) -> str:
        """Wrap the input in many layers of one composite."""
        opener, closer = self.rng.choice([("[", "]"), ("(", ")"), ("Some(", ")"), ("W { x: ", " }")])
        depth = self.rng.choice([2, 50, 127, 128, 129, 300])
        return opener * depth + s + closer * depth

    def _mutate_insert_special(self, s: str) -> str:
        """Insert special/edge case characters."""
        pos = self.rng.randint(0, len(s))
        special = self.rng.choice([
            "\x00",  # Null
            "\xff",  # High byte
            "\r\n",  # CRLF
            "\t\t\t",  # Tabs
            "🎉",  # Emoji
            "α",  # Unicode
            "٣",  # Non-ASCII digit
            "\\n",  # Escaped newline literal
            "\\",  # Backslash
            '"',  # Quote
            "*" * 10,  # Mask-like run
            "[" * 200,  # Past the depth limit
        ])
        return s[:pos] + special + s[pos:]

    def _mutate_boundary_numbers(self, s: str) -> str:
        """Replace numbers with boundary values."""
        def replace(m):
            if self.rng.random() < 0.5:
                return self.rng.choice([
                    "0", "-1", "1",
                    "9007199254740993",  # Beyond exact float range
                    "1e308", "1e999",  # Largest finite / overflow
                    "0.0000000001",
                    "-0",
                ])
            return m.group(0)
        return re.sub(r'-?\d+(\.\d+)?', replace, s)

    def save_finding(self, input_str: str, error: Exception, category: str):
        """Write a crash or timeout report, once per distinct input."""
        digest = hashlib.sha1(input_str.encode('utf-8', errors='replace')).hexdigest()[:10]
        if digest in self.stats["unique_crashes"]:
            return
        self.stats["unique_crashes"].add(digest)

        self.findings_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = self.findings_dir / f"{category}_{stamp}_{digest}.txt"

        report = [
            f"category: {category}",
            f"error: {type(error).__name__}: {error}",
            f"seen: {stamp}",
            f"length: {len(input_str)}",
            "",
            "input:",
            input_str,
            "",
            "traceback:",
            traceback.format_exc(),
        ]
        path.write_text("\n".join(report), encoding='utf-8', errors='replace')
        print(f"\n[!] {category}: {path}")

    def test_input(self, input_str: str) -> bool:
        """Test a single input. Returns True if interesting (crash/timeout)."""
        self.stats["iterations"] += 1
        try:
            with timeout(5):
                convert(input_str)
            self.stats["parse_ok"] += 1
            return False
        except EXPECTED_ERRORS:
            # Normal parse rejection
            self.stats["parse_error"] += 1
            return False
        except FuzzTimeout as e:
            self.stats["timeouts"] += 1
            self.save_finding(input_str, e, "timeout")
            return True
        except Exception as e:
            # Unexpected crash!
            self.stats["crashes"] += 1
            self.save_finding(input_str, e, "crash")
            return True

    def run(self, duration_minutes: float = None, iterations: int = None):
        """Run the fuzzer until the time or iteration budget is spent."""
        self.start_time = time.time()
        end_time = self.start_time + (duration_minutes * 60) if duration_minutes else None

        print(f"Starting fuzzer (seed corpus: {len(self.SEED_CORPUS)} inputs)")
        print(f"Duration: {'unlimited' if not duration_minutes else f'{duration_minutes} minutes'}")
        print(f"Findings directory: {self.findings_dir}")
        print("-" * 60)

        corpus = list(self.SEED_CORPUS)

        try:
            while True:
                if end_time and time.time() > end_time:
                    break
                if iterations is not None and self.stats["iterations"] >= iterations:
                    break

                strategy = self.rng.random()

                if strategy < 0.3:
                    input_str = self.generate_random()
                elif strategy < 0.7:
                    base = self.rng.choice(corpus)
                    input_str = self.mutate(base)
                    for _ in range(self.rng.randint(0, 3)):
                        input_str = self.mutate(input_str)
                else:
                    input_str = self.rng.choice(corpus)

                interesting = self.test_input(input_str)

                # Parse errors are worth mutating further too, now and then
                if interesting or (self.rng.random() < 0.01 and len(input_str) < 1000):
                    corpus.append(input_str)
                    if len(corpus) > 1000:
                        corpus.pop(self.rng.randint(len(self.SEED_CORPUS), len(corpus) - 1))

                if self.stats["iterations"] % 1000 == 0:
                    self.print_stats()

        except KeyboardInterrupt:
            print("\n\nInterrupted by user")

        print("\n" + "=" * 60)
        print("Final Statistics:")
        self.print_stats()

    def print_stats(self):
        """One status line: throughput, then outcome counts."""
        elapsed = time.time() - self.start_time
        stats = self.stats
        rate = stats["iterations"] / elapsed if elapsed > 0 else 0
        accepted = stats["parse_ok"] / stats["iterations"] if stats["iterations"] else 0

        print(f"{elapsed:8.1f}s {stats['iterations']:>9} inputs {rate:>7.0f}/s  "
              f"accepted {accepted:6.1%}  rejected {stats['parse_error']}  "
              f"crashes {stats['crashes']}  timeouts {stats['timeouts']}  "
              f"distinct findings {len(stats['unique_crashes'])}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Fuzz the debug-format parser")
    parser.add_argument("--duration", type=float, default=None,
                        help="Duration in minutes (default: run forever)")
    parser.add_argument("--iterations", type=int, default=None,
                        help="Stop after N inputs")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for reproducibility")
    parser.add_argument("--findings-dir", default=None,
                        help=f"Where to save findings (default: {FINDINGS_DIR})")
    args = parser.parse_args(argv)

    seed = args.seed if args.seed is not None else int(time.time())
    print(f"Random seed: {seed}")

    fuzzer = Fuzzer(seed=seed, findings_dir=args.findings_dir)
    fuzzer.run(duration_minutes=args.duration, iterations=args.iterations)
    return 1 if fuzzer.stats["crashes"] or fuzzer.stats["timeouts"] else 0


if __name__ == "__main__":
    sys.exit(main())
