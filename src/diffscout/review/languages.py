"""
Language Rules

Per-language policy table used by the classifier and the heuristic
structural analyzer. Each language picks a normalization variant and lists
the patterns that mark definitions and imports. Support for a new language
is added by extending LANGUAGE_RULES.
"""

import re
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class Normalization(str, Enum):
    """How changed lines are reduced to tokens before comparison."""

    WHITESPACE = "whitespace"  # Code tokens, whitespace ignored
    SEPARATORS = "separators"  # Also drops statement terminators and trailing commas
    MARKUP = "markup"  # Whitespace-separated words (prose, data files)
    INDENTATION = "indentation"  # Code tokens plus each line's indent depth


class ConstructKind(str, Enum):
    """Syntactic constructs reported by structural analysis."""

    MODULE = "module"
    CLASS = "class"
    FUNCTION = "function"
    METHOD = "method"
    BRANCH = "branch"
    IMPORT = "import"
    DECLARATION = "declaration"


CALLABLE_KINDS = frozenset({ConstructKind.FUNCTION, ConstructKind.METHOD})

# Strings are kept whole so whitespace inside literals still counts
TOKEN_PATTERN = re.compile(
    r'"(?:[^"\\\n]|\\.)*"|\'(?:[^\'\\\n]|\\.)*\'|`(?:[^`\\\n]|\\.)*`|\w+|[^\w\s]'
)
CLOSERS = frozenset({")", "]", "}"})
TAB_WIDTH = 4


@dataclass(frozen=True)
class DefinitionPattern:
    """Regex with a ``name`` group marking a definition of ``kind``.

    When ``nested_kind`` is set, an indented match is reported with that kind
    instead (a ``def`` inside a class body is a method).
    """

    kind: ConstructKind
    pattern: re.Pattern
    nested_kind: ConstructKind | None = None


@dataclass(frozen=True)
class LanguageRule:
    language: str
    extensions: tuple[str, ...]
    normalization: Normalization
    definitions: tuple[DefinitionPattern, ...] = ()
    imports: tuple[re.Pattern, ...] = ()

    def match_definition(self, line: str) -> tuple[ConstructKind, str] | None:
        """Return (kind, name) when the line opens a definition."""
        for definition in self.definitions:
            match = definition.pattern.match(line)
            if not match:
                continue
            kind = definition.kind
            if definition.nested_kind and line[:1] in (" ", "\t"):
                kind = definition.nested_kind
            return kind, match.group("name")
        return None

    def is_import(self, line: str) -> bool:
        return any(p.match(line) for p in self.imports)


def _d(kind: ConstructKind, pattern: str, nested: ConstructKind | None = None) -> DefinitionPattern:
    return DefinitionPattern(kind=kind, pattern=re.compile(pattern), nested_kind=nested)


_C_LIKE_KEYWORDS = r"(?!(?:if|for|while|switch|catch|return|else|do|new|typeof)\b)"

LANGUAGE_RULES: dict[str, LanguageRule] = {
    "python": LanguageRule(
        language="python",
        extensions=(".py", ".pyi"),
        normalization=Normalization.INDENTATION,
        definitions=(
            _d(
                ConstructKind.FUNCTION,
                r"^\s*(?:async\s+)?def\s+(?P<name>\w+)",
                ConstructKind.METHOD,
            ),
            _d(ConstructKind.CLASS, r"^\s*class\s+(?P<name>\w+)"),
        ),
        imports=(re.compile(r"^\s*(?:from\s+\S+\s+)?import\s+"),),
    ),
    "javascript": LanguageRule(
        language="javascript",
        extensions=(".js", ".jsx", ".mjs", ".cjs"),
        normalization=Normalization.SEPARATORS,
        definitions=(
            _d(
                ConstructKind.FUNCTION,
                r"^\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\*?\s+(?P<name>\w+)",
            ),
            _d(ConstructKind.CLASS, r"^\s*(?:export\s+)?(?:default\s+)?class\s+(?P<name>\w+)"),
            _d(
                ConstructKind.FUNCTION,
                r"^\s*(?:export\s+)?(?:const|let|var)\s+(?P<name>\w+)\s*=\s*(?:async\s+)?(?:function|\([^)]*\)\s*=>|\w+\s*=>)",
            ),
            _d(
                ConstructKind.METHOD,
                rf"^\s+{_C_LIKE_KEYWORDS}(?:static\s+)?(?:async\s+)?(?P<name>\w+)\s*\([^)]*\)\s*\{{",
            ),
        ),
        imports=(
            re.compile(r"^\s*import\s"),
            re.compile(r"^\s*(?:const|let|var)\s+.+=\s*require\("),
        ),
    ),
    "typescript": LanguageRule(
        language="typescript",
        extensions=(".ts", ".tsx", ".mts", ".cts"),
        normalization=Normalization.SEPARATORS,
        definitions=(
            _d(
                ConstructKind.FUNCTION,
                r"^\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\*?\s+(?P<name>\w+)",
            ),
            _d(
                ConstructKind.CLASS,
                r"^\s*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+(?P<name>\w+)",
            ),
            _d(
                ConstructKind.DECLARATION,
                r"^\s*(?:export\s+)?(?:interface|type|enum)\s+(?P<name>\w+)",
            ),
            _d(
                ConstructKind.FUNCTION,
                r"^\s*(?:export\s+)?(?:const|let|var)\s+(?P<name>\w+)(?:\s*:[^=]+)?\s*=\s*(?:async\s+)?(?:function|\([^)]*\)\s*(?::[^=]+)?=>|\w+\s*=>)",
            ),
            _d(
                ConstructKind.METHOD,
                rf"^\s+{_C_LIKE_KEYWORDS}(?:(?:public|private|protected|static|readonly|async)\s+)*(?P<name>\w+)\s*\([^)]*\)\s*(?::\s*[^{{]+)?\{{",
            ),
        ),
        imports=(re.compile(r"^\s*import\s"),),
    ),
    "go": LanguageRule(
        language="go",
        extensions=(".go",),
        normalization=Normalization.WHITESPACE,
        definitions=(
            _d(ConstructKind.METHOD, r"^\s*func\s+\([^)]*\)\s*(?P<name>\w+)"),
            _d(ConstructKind.FUNCTION, r"^\s*func\s+(?P<name>\w+)"),
            _d(ConstructKind.CLASS, r"^\s*type\s+(?P<name>\w+)\s+(?:struct|interface)"),
        ),
        imports=(re.compile(r"^\s*import\s"),),
    ),
    "rust": LanguageRule(
        language="rust",
        extensions=(".rs",),
        normalization=Normalization.SEPARATORS,
        definitions=(
            _d(
                ConstructKind.FUNCTION,
                r"^\s*(?:pub(?:\([^)]*\))?\s+)?(?:const\s+)?(?:async\s+)?(?:unsafe\s+)?fn\s+(?P<name>\w+)",
                ConstructKind.METHOD,
            ),
            _d(ConstructKind.CLASS, r"^\s*(?:pub(?:\([^)]*\))?\s+)?(?:struct|enum|trait)\s+(?P<name>\w+)"),
            _d(ConstructKind.DECLARATION, r"^\s*impl(?:<[^>]*>)?\s+(?P<name>[\w:]+)"),
        ),
        imports=(re.compile(r"^\s*(?:pub\s+)?use\s"),),
    ),
    "java": LanguageRule(
        language="java",
        extensions=(".java", ".kt"),
        normalization=Normalization.SEPARATORS,
        definitions=(
            _d(
                ConstructKind.CLASS,
                r"^\s*(?:(?:public|private|protected|abstract|final|static)\s+)*(?:class|interface|enum|record)\s+(?P<name>\w+)",
            ),
            _d(
                ConstructKind.METHOD,
                rf"^\s*(?!\s){_C_LIKE_KEYWORDS}(?:(?:public|private|protected|static|final|synchronized|abstract)\s+)*[\w<>\[\],\s]+?\s+(?P<name>\w+)\s*\([^)]*\)\s*(?:throws\s+[\w.,\s]+)?\{{?\s*$",
            ),
        ),
        imports=(re.compile(r"^\s*import\s"),),
    ),
    "markup": LanguageRule(
        language="markup",
        extensions=(".md", ".rst", ".txt", ".json", ".toml", ".ini", ".cfg"),
        normalization=Normalization.MARKUP,
    ),
    "yaml": LanguageRule(
        language="yaml",
        extensions=(".yaml", ".yml"),
        normalization=Normalization.INDENTATION,
    ),
}

DEFAULT_RULE = LanguageRule(
    language="unknown",
    extensions=(),
    normalization=Normalization.WHITESPACE,
)


def rule_for_path(path: str) -> LanguageRule:
    """Pick the language rule for a file path by extension."""
    lowered = path.lower()
    for rule in LANGUAGE_RULES.values():
        if any(lowered.endswith(ext) for ext in rule.extensions):
            return rule
    return DEFAULT_RULE


def tokenize(line: str, normalization: Normalization) -> list[str]:
    """Split a source line into comparison tokens."""
    if normalization == Normalization.MARKUP:
        return line.split()
    tokens = TOKEN_PATTERN.findall(line)
    if normalization == Normalization.INDENTATION and tokens:
        # Block structure lives in the indent, so a dedent is a real change
        expanded = line.expandtabs(TAB_WIDTH)
        tokens.insert(0, f"<indent:{len(expanded) - len(expanded.lstrip(' '))}>")
    return tokens


def normalized_tokens(lines: Iterable[str], normalization: Normalization) -> Counter:
    """Token multiset for a run of lines under a normalization rule."""
    tokens: list[str] = []
    for line in lines:
        tokens.extend(tokenize(line, normalization))

    if normalization == Normalization.SEPARATORS:
        kept: list[str] = []
        for i, token in enumerate(tokens):
            if token == ";":
                continue
            if token == "," and (i + 1 == len(tokens) or tokens[i + 1] in CLOSERS):
                continue
            kept.append(token)
        tokens = kept

    return Counter(tokens)
