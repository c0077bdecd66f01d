"""
TeX checker service.

Validates TeX math against a whitelist of control sequences and
environments and produces a canonical rendition (braced script and command
arguments, normalized spacing). The parse tree doubles as the compact
report served by the ``graph`` output format.
"""

import re
from typing import Any

from loguru import logger

GREEK = {
    "alpha", "beta", "gamma", "delta", "epsilon", "varepsilon", "zeta", "eta",
    "theta", "vartheta", "iota", "kappa", "lambda", "mu", "nu", "xi", "pi",
    "varpi", "rho", "varrho", "sigma", "varsigma", "tau", "upsilon", "phi",
    "varphi", "chi", "psi", "omega", "Gamma", "Delta", "Theta", "Lambda", "Xi",
    "Pi", "Sigma", "Upsilon", "Phi", "Psi", "Omega",
}

SYMBOLS = {
    # operators and relations
    "pm", "mp", "times", "div", "cdot", "ast", "star", "circ", "bullet",
    "oplus", "ominus", "otimes", "odot", "cup", "cap", "setminus", "wedge",
    "vee", "land", "lor", "neg", "lnot", "leq", "le", "geq", "ge", "neq", "ne",
    "approx", "equiv", "sim", "simeq", "cong", "propto", "ll", "gg", "in",
    "notin", "ni", "subset", "subseteq", "supset", "supseteq", "mid", "parallel",
    "perp", "forall", "exists", "nexists",
    # arrows
    "to", "gets", "rightarrow", "leftarrow", "leftrightarrow", "Rightarrow",
    "Leftarrow", "Leftrightarrow", "longrightarrow", "longleftarrow",
    "Longrightarrow", "mapsto", "implies", "iff", "uparrow", "downarrow",
    "updownarrow",
    # large operators and functions
    "sum", "prod", "coprod", "int", "iint", "iiint", "oint", "bigcup", "bigcap",
    "lim", "limsup", "liminf", "max", "min", "sup", "inf", "sin", "cos", "tan",
    "cot", "sec", "csc", "arcsin", "arccos", "arctan", "sinh", "cosh", "tanh",
    "log", "ln", "lg", "exp", "det", "deg", "dim", "ker", "gcd", "arg", "Pr",
    "bmod", "pmod",
    # misc
    "infty", "partial", "nabla", "prime", "emptyset", "varnothing", "hbar",
    "ell", "Re", "Im", "aleph", "angle", "triangle", "ldots", "cdots", "vdots",
    "ddots", "dots", "langle", "rangle", "lfloor", "rfloor", "lceil", "rceil",
    "lvert", "rvert", "lVert", "rVert", "vert", "Vert", "backslash",
    "displaystyle", "textstyle", "scriptstyle", "limits", "nolimits",
    "quad", "qquad",
}

# Single character control symbols
CONTROL_SYMBOLS = {"\\,", "\\;", "\\:", "\\!", "\\ ", "\\{", "\\}", "\\|", "\\%", "\\$", "\\#", "\\&", "\\_", "\\\\"}

ARITY = {
    "frac": 2, "dfrac": 2, "tfrac": 2, "binom": 2, "stackrel": 2,
    "overset": 2, "underset": 2, "sqrt": 1, "mathrm": 1, "mathbf": 1,
    "mathit": 1, "mathbb": 1, "mathcal": 1, "mathfrak": 1, "mathsf": 1,
    "mathtt": 1, "boldsymbol": 1, "hat": 1, "widehat": 1, "bar": 1, "vec": 1,
    "dot": 1, "ddot": 1, "tilde": 1, "widetilde": 1, "overline": 1,
    "underline": 1, "overbrace": 1, "underbrace": 1, "cancel": 1,
}

# Commands whose argument is kept verbatim
RAW_ARGUMENT = {"text", "textrm", "textbf", "textit", "mbox", "operatorname", "color"}
MHCHEM = {"ce", "pu"}

ENVIRONMENTS = {
    "matrix", "pmatrix", "bmatrix", "Bmatrix", "vmatrix", "Vmatrix",
    "smallmatrix", "cases", "aligned", "gathered", "split", "array",
}

DELIMITERS = {
    "(", ")", "[", "]", "|", ".", "/", "<", ">", "\\{", "\\}", "\\|",
    "\\langle", "\\rangle", "\\lvert", "\\rvert", "\\lVert", "\\rVert",
    "\\lfloor", "\\rfloor", "\\lceil", "\\rceil", "\\vert", "\\Vert",
    "\\uparrow", "\\downarrow", "\\updownarrow", "\\backslash",
}

PACKAGES = {
    "ams": {
        "mathbb", "mathfrak", "boldsymbol", "dfrac", "tfrac", "binom", "text",
        "operatorname", "iint", "iiint", "overset", "underset", "implies", "iff",
        "varnothing", "nexists",
    },
    "color": {"color"},
    "cancel": {"cancel"},
    "mhchem": MHCHEM,
}

# Characters that are not valid math input
ILLEGAL_CHARACTERS = {"$", "%", "#"}

# Deepest accepted nesting of groups, arguments and environments
MAX_NESTING = 100

_COMMAND_END_RE = re.compile(r"\\[A-Za-z]+$")


class TexSyntaxError(Exception):
    """Raised while parsing invalid TeX."""

    def __init__(self, message: str, found: str | None, offset: int):
        super().__init__(message)
        self.found = found
        self.offset = offset

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": "SyntaxError",
            "message": str(self),
            "found": self.found,
            "expected": [],
            "location": {
                "start": {"offset": self.offset},
                "end": {"offset": self.offset + len(self.found or "")},
            },
        }


class _Parser:
    """Recursive descent parser for a single formula."""

    def __init__(self, text: str, usemhchem: bool):
        self.text = text
        self.pos = 0
        self.usemhchem = usemhchem
        self.packages: set[str] = set()
        self.identifiers: list[str] = []
        self.depth = 0

    def parse(self) -> dict[str, Any]:
        return {"type": "group", "children": self._sequence(None)}

    # -- reading helpers --

    def _error(self, message: str, found: str | None, offset: int | None = None) -> TexSyntaxError:
        return TexSyntaxError(message, found, self.pos if offset is None else offset)

    def _skip_space(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _at_end(self) -> bool:
        return self.pos >= len(self.text)

    def _peek_command(self) -> str | None:
        if self._at_end() or self.text[self.pos] != "\\":
            return None
        match = re.match(r"\\([A-Za-z]+|.)", self.text[self.pos:], re.DOTALL)
        return match.group(0) if match else "\\"

    def _read_command(self) -> str:
        name = self._peek_command()
        if name is None or name == "\\":
            raise self._error("Unexpected end of input after \"\\\"", "\\")
        self.pos += len(name)
        return name

    def _read_raw_group(self, owner: str) -> str:
        self._skip_space()
        if self._at_end() or self.text[self.pos] != "{":
            raise self._error(f"Missing argument for {owner}", self.text[self.pos:self.pos + 1] or None)
        start = self.pos
        depth = 0
        while not self._at_end():
            ch = self.text[self.pos]
            if ch == "\\":
                self.pos += 2
                continue
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    self.pos += 1
                    return self.text[start + 1:self.pos - 1]
            self.pos += 1
        raise self._error('Expected "}" but end of input found.', None, start)

    def _read_delimiter(self, owner: str) -> str:
        self._skip_space()
        if self._at_end():
            raise self._error(f"Missing delimiter after {owner}", None)
        start = self.pos
        if self.text[self.pos] == "\\":
            delimiter = self._read_command()
        else:
            delimiter = self.text[self.pos]
            self.pos += 1
        if delimiter not in DELIMITERS:
            raise self._error("Invalid delimiter", delimiter, start)
        return delimiter

    # -- grammar --

    def _sequence(self, stop: str | None) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        while True:
            self._skip_space()
            if self._at_end():
                if stop == "}":
                    raise self._error('Expected "}" but end of input found.', None)
                if stop is not None:
                    raise self._error(f'Expected "{stop}" but end of input found.', None)
                return items
            ch = self.text[self.pos]
            if ch == "}":
                if stop == "}":
                    return items
                raise self._error('Unexpected "}"', "}")
            if ch == "]" and stop == "]":
                return items
            command = self._peek_command()
            if command in ("\\right", "\\end"):
                if stop == command:
                    return items
                raise self._error(f'Unexpected "{command}"', command)
            if ch in "^_":
                self.pos += 1
                self._attach_script(items, "sup" if ch == "^" else "sub")
                continue
            items.append(self._atom())

    def _attach_script(self, items: list[dict[str, Any]], slot: str) -> None:
        offset = self.pos - 1
        script = self._argument("^" if slot == "sup" else "_")
        if items and items[-1]["type"] == "script" and items[-1][slot] is None:
            items[-1][slot] = script
            return
        if items and items[-1]["type"] == "script":
            label = "superscript" if slot == "sup" else "subscript"
            raise self._error(f"Double {label}", self.text[offset], offset)
        base = items.pop() if items else None
        node = {"type": "script", "base": base, "sub": None, "sup": None}
        node[slot] = script
        items.append(node)

    def _argument(self, owner: str) -> dict[str, Any]:
        self._skip_space()
        if self._at_end():
            raise self._error(f"Missing argument for {owner}", None)
        if self.text[self.pos] in "}^_":
            raise self._error(f"Missing argument for {owner}", self.text[self.pos])
        return self._atom()

    def _atom(self) -> dict[str, Any]:
        # every nested construct is entered through here
        if self.depth >= MAX_NESTING:
            raise self._error("Nesting too deep", self.text[self.pos])
        self.depth += 1
        try:
            return self._nested_atom()
        finally:
            self.depth -= 1

    def _nested_atom(self) -> dict[str, Any]:
        ch = self.text[self.pos]
        if ch == "{":
            self.pos += 1
            children = self._sequence("}")
            self.pos += 1
            return {"type": "group", "children": children}
        if ch == "\\":
            return self._command()
        if ch in ILLEGAL_CHARACTERS:
            raise self._error("Illegal character", ch)
        self.pos += 1
        if ch.isalpha() and ch not in self.identifiers:
            self.identifiers.append(ch)
        return {"type": "literal", "value": ch}

    def _command(self) -> dict[str, Any]:
        start = self.pos
        name = self._read_command()
        bare = name[1:]

        if name in CONTROL_SYMBOLS:
            return {"type": "literal", "value": name}
        if name == "\\left":
            left = self._read_delimiter(name)
            children = self._sequence("\\right")
            self.pos += len("\\right")
            right = self._read_delimiter("\\right")
            return {"type": "delimited", "left": left, "right": right, "children": children}
        if name == "\\begin":
            return self._environment(start)

        self._note_packages(bare)
        if bare in GREEK:
            if name not in self.identifiers:
                self.identifiers.append(name)
            return {"type": "command", "name": name, "args": []}
        if bare in SYMBOLS:
            return {"type": "command", "name": name, "args": []}
        if bare in MHCHEM and not self.usemhchem:
            raise self._error("Illegal TeX function", name, start)
        if bare in RAW_ARGUMENT or bare in MHCHEM:
            raw = self._read_raw_group(name)
            return {"type": "command", "name": name, "args": [{"type": "text", "value": raw}]}
        if bare in ARITY:
            node: dict[str, Any] = {"type": "command", "name": name, "args": []}
            if bare == "sqrt":
                self._skip_space()
                if not self._at_end() and self.text[self.pos] == "[":
                    self.pos += 1
                    node["optional"] = {"type": "group", "children": self._sequence("]")}
                    self.pos += 1
            for _ in range(ARITY[bare]):
                node["args"].append(self._argument(name))
            return node
        raise self._error("Illegal TeX function", name, start)

    def _environment(self, start: int) -> dict[str, Any]:
        env = self._read_raw_group("\\begin").strip()
        if env not in ENVIRONMENTS:
            raise self._error("Illegal TeX environment", env, start)
        self.packages.add("ams")
        node: dict[str, Any] = {"type": "environment", "name": env, "children": []}
        if env == "array":
            node["columns"] = self._read_raw_group("\\begin{array}")
        node["children"] = self._sequence("\\end")
        end_offset = self.pos
        self.pos += len("\\end")
        closing = self._read_raw_group("\\end").strip()
        if closing != env:
            raise self._error(f'Expected "\\end{{{env}}}"', closing, end_offset)
        return node

    def _note_packages(self, bare: str) -> None:
        for package, commands in PACKAGES.items():
            if bare in commands:
                self.packages.add(package)


def _join(pieces: list[str]) -> str:
    out = ""
    for piece in pieces:
        if not piece:
            continue
        if out and _COMMAND_END_RE.search(out) and piece[0].isalpha():
            out += " "
        out += piece
    return out


def _braced(node: dict[str, Any] | None) -> str:
    if node is None:
        return "{}"
    if node["type"] == "group":
        return serialize(node, nested=True)
    return "{" + serialize(node) + "}"


def serialize(node: dict[str, Any], nested: bool = False) -> str:
    """Serialize a parse tree node to canonical TeX."""
    kind = node["type"]
    if kind == "group":
        body = _join([serialize(child) for child in node["children"]])
        return "{" + body + "}" if nested else body
    if kind in ("literal", "text"):
        return node["value"]
    if kind == "command":
        pieces = [node["name"]]
        if "optional" in node:
            pieces.append("[" + serialize(node["optional"]) + "]")
        for arg in node["args"]:
            pieces.append("{" + arg["value"] + "}" if arg["type"] == "text" else _braced(arg))
        return "".join(pieces)
    if kind == "script":
        out = serialize(node["base"]) if node["base"] is not None else ""
        if node["sub"] is not None:
            out += "_" + _braced(node["sub"])
        if node["sup"] is not None:
            out += "^" + _braced(node["sup"])
        return out
    if kind == "delimited":
        return _join(["\\left" + node["left"], *[serialize(c) for c in node["children"]], "\\right" + node["right"]])
    if kind == "environment":
        head = "\\begin{" + node["name"] + "}"
        if "columns" in node:
            head += "{" + node["columns"] + "}"
        return _join([head, *[serialize(c) for c in node["children"]], "\\end{" + node["name"] + "}"])
    raise ValueError(f"Unknown node type: {kind}")


class TexChecker:
    """Checks and canonicalizes TeX math input."""

    def parse(self, markup: str, usemhchem: bool = False) -> tuple[dict[str, Any], _Parser]:
        parser = _Parser(markup, usemhchem)
        return parser.parse(), parser

    def feedback(self, markup: str, usemhchem: bool = False) -> dict[str, Any]:
        """
        Validate markup and describe it.

        Args:
            markup: TeX math input
            usemhchem: Accept mhchem commands (``\\ce``, ``\\pu``)

        Returns:
            Dict with ``success`` and either ``checked`` (canonical TeX),
            ``requiredPackages``, ``identifiers`` and ``endsWithDot``, or
            an ``error`` description
        """
        try:
            tree, parser = self.parse(markup, usemhchem)
        except TexSyntaxError as exc:
            logger.debug(f"TeX check failed: {exc} ({exc.found!r} at {exc.offset})")
            return {"success": False, "input": markup, "error": exc.to_dict()}

        return {
            "success": True,
            "input": markup,
            "checked": serialize(tree),
            "requiredPackages": sorted(parser.packages),
            "identifiers": parser.identifiers,
            "endsWithDot": markup.rstrip().endswith("."),
            "warnings": [],
        }

    def graph(self, markup: str, usemhchem: bool = False) -> dict[str, Any]:
        """
        Return the parse tree of already checked markup.

        Raises:
            TexSyntaxError: If the markup does not parse
        """
        tree, _ = self.parse(markup, usemhchem)
        return tree
