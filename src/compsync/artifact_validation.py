"""Structural checks for generated artifacts.

These checks read files as they are on disk and never regenerate anything.
They catch damage from hand edits (an unbalanced Twig tag, a missing default
export) rather than style problems.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from compsync.errors import ManifestParseError
from compsync.manifest_schema import MANIFEST_SUFFIX
from compsync.manifest_store import load_manifest

TWIG_TAG_PATTERN = re.compile(r"{%-?\s*(\w+)")

# Opening tag -> closing tag
TWIG_PAIRS = {"if": "endif", "for": "endfor", "block": "endblock"}

BRACE_PAIRS = {"}": "{", ")": "(", "]": "["}

EXPORT_DEFAULT_PATTERN = re.compile(r"^\s*export\s+default\b|export\s*{\s*default\b", re.MULTILINE)

COMMENT_PATTERN = re.compile(r"/\*.*?\*/", re.DOTALL)


@dataclass
class ValidationResult:
    """Structural check outcome for one artifact.

    Attributes:
        is_valid: True if every check passed.
        errors: Problems found, in file order.
        path: The checked file.
    """

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    path: Path | None = None

    @classmethod
    def from_errors(cls, errors: list[str], path: Path | None = None) -> "ValidationResult":
        """Build a result that is valid exactly when ``errors`` is empty."""
        return cls(is_valid=not errors, errors=errors, path=path)


def check_twig_tags(text: str) -> list[str]:
    """Check that if/for/block tags are balanced and properly nested."""
    errors: list[str] = []
    closers = {end: start for start, end in TWIG_PAIRS.items()}
    stack: list[str] = []
    for match in TWIG_TAG_PATTERN.finditer(text):
        tag = match.group(1)
        line = text.count("\n", 0, match.start()) + 1
        if tag in TWIG_PAIRS:
            stack.append(tag)
        elif tag in closers:
            expected = closers[tag]
            if not stack or stack[-1] != expected:
                errors.append(f"line {line}: unexpected '{{% {tag} %}}'")
                continue
            stack.pop()
    for tag in stack:
        errors.append(f"unclosed '{{% {tag} %}}'")
    return errors


def check_braces(text: str) -> list[str]:
    """Check that braces, brackets and parentheses balance.

    Block comments and quoted strings are ignored.
    """
    text = COMMENT_PATTERN.sub("", text)
    stack: list[str] = []
    quote: str | None = None
    escaped = False
    for char in text:
        if quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue
        if char in "'\"`":
            quote = char
        elif char in "{([":
            stack.append(char)
        elif char in BRACE_PAIRS:
            if not stack or stack[-1] != BRACE_PAIRS[char]:
                return [f"unbalanced '{char}'"]
            stack.pop()
    if stack:
        return [f"unclosed '{stack[-1]}'"]
    return []


def check_component(text: str) -> list[str]:
    """Check that a component module has a default export and balanced braces."""
    errors = check_braces(text)
    if not EXPORT_DEFAULT_PATTERN.search(text):
        errors.append("missing 'export default'")
    return errors


def check_yaml(text: str) -> list[str]:
    """Check that text parses as a YAML mapping."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        return [f"invalid YAML: {e}"]
    if not isinstance(data, dict):
        return ["expected a mapping at the top level"]
    return []


def validate_artifact(path: Path) -> ValidationResult:
    """Run the structural check that matches ``path``'s file type.

    Args:
        path: A generated file.

    Returns:
        ValidationResult for the file; a missing file is invalid.
    """
    if not path.is_file():
        return ValidationResult.from_errors(["file is missing"], path)

    if path.name.endswith(MANIFEST_SUFFIX):
        try:
            load_manifest(path)
        except ManifestParseError as e:
            return ValidationResult.from_errors([e.reason], path)
        return ValidationResult.from_errors([], path)

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return ValidationResult.from_errors([f"cannot read file: {e}"], path)

    name = path.name
    if name.endswith(".twig"):
        errors = check_twig_tags(text)
    elif name.endswith((".yml", ".yaml")):
        errors = check_yaml(text)
    elif name.endswith((".css", ".scss")):
        errors = check_braces(text)
    elif re.search(r"\.(stories|test)\.[jt]sx?$", name) or name.startswith("index."):
        errors = check_braces(text)
    elif name.endswith((".js", ".jsx", ".ts", ".tsx")):
        errors = check_component(text)
    else:
        errors = []
    return ValidationResult.from_errors(errors, path)
