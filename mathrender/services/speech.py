"""
Speech and semantic tree generation for MathML.

``SpeechEngine`` carries its configuration on the instance; create one per
request instead of configuring a shared engine, so concurrent requests with
different settings never observe each other's configuration.
"""

import re
from itertools import count
from typing import Any, Iterator

from bs4 import BeautifulSoup, NavigableString, Tag
from loguru import logger

from mathrender.config import SpeechConfig

SUPPORTED_LOCALES = {"en"}
SUPPORTED_DOMAINS = {"mathspeak", "clearspeak"}

GREEK_NAMES = {
    "α": "alpha", "β": "beta", "γ": "gamma", "δ": "delta", "ε": "epsilon",
    "ϵ": "epsilon", "ζ": "zeta", "η": "eta", "θ": "theta", "ι": "iota",
    "κ": "kappa", "λ": "lambda", "μ": "mu", "ν": "nu", "ξ": "xi", "π": "pi",
    "ρ": "rho", "σ": "sigma", "τ": "tau", "υ": "upsilon", "φ": "phi",
    "ϕ": "phi", "χ": "chi", "ψ": "psi", "ω": "omega", "Γ": "Gamma",
    "Δ": "Delta", "Θ": "Theta", "Λ": "Lambda", "Ξ": "Xi", "Π": "Pi",
    "Σ": "Sigma", "Φ": "Phi", "Ψ": "Psi", "Ω": "Omega",
}

FUNCTION_NAMES = {
    "sin": "sine", "cos": "cosine", "tan": "tangent", "cot": "cotangent",
    "sec": "secant", "csc": "cosecant", "log": "log", "ln": "natural log",
    "exp": "exponential", "lim": "limit", "max": "maximum", "min": "minimum",
    "det": "determinant",
}

OPERATOR_NAMES = {
    "+": "plus", "-": "minus", "−": "minus", "±": "plus or minus",
    "∓": "minus or plus", "=": "equals", "≠": "not equals", "<": "less than",
    ">": "greater than", "≤": "less than or equals", "≥": "greater than or equals",
    "≈": "almost equals", "≡": "equivalent to", "∼": "tilde", "∝": "proportional to",
    "×": "times", "⋅": "dot", "·": "dot", "*": "times", "∗": "times",
    "/": "slash", "÷": "divided by", "∑": "sum", "∏": "product",
    "∫": "integral", "∬": "double integral", "∮": "contour integral",
    "∞": "infinity", "∂": "partial", "∇": "nabla", "∈": "element of",
    "∉": "not an element of", "⊂": "subset of", "⊆": "subset of or equal to",
    "∪": "union", "∩": "intersection", "∀": "for all", "∃": "there exists",
    "→": "right arrow", "←": "left arrow", "↔": "left right arrow",
    "⇒": "implies", "⇔": "if and only if", "↦": "maps to", "(": "left parenthesis",
    ")": "right parenthesis", "[": "left bracket", "]": "right bracket",
    "{": "left brace", "}": "right brace", "|": "vertical bar", "‖": "double vertical bar",
    "⟨": "left angle bracket", "⟩": "right angle bracket", ",": "comma",
    ";": "semicolon", "!": "factorial", "′": "prime", "…": "ellipsis",
    "⋯": "midline ellipsis", "∘": "composed with", "⊕": "circle plus",
    "⊗": "circle times",
}

ACCENT_NAMES = {"¯": "bar", "‾": "bar", "^": "hat", "ˆ": "hat", "~": "tilde", "˜": "tilde",
                "˙": "dot", "¨": "double dot", "→": "vector", "⃗": "vector"}

# Invisible function application, times, separator and plus
INVISIBLE_OPERATORS = {"⁡", "⁢", "⁣", "⁤"}

OPERATOR_ROLES = [
    ("+-−±∓", "addition"),
    ("×⋅·*∗/÷∘⊕⊗", "multiplication"),
    ("=", "equality"),
    ("≠<>≤≥≈≡∼∝∈∉⊂⊆", "inequality"),
    ("([{}])|‖⟨⟩", "fence"),
    ("∑∏∫∬∮∪∩", "largeop"),
    ("→←↔⇒⇔↦", "arrow"),
    (",;", "separator"),
]

ELEMENT_TYPES = {
    "mi": "identifier", "mn": "number", "mo": "operator", "mtext": "text",
    "mfrac": "fraction", "msqrt": "sqrt", "mroot": "root",
    "msup": "superscript", "msub": "subscript", "msubsup": "subsup",
    "munder": "underscore", "mover": "overscore", "munderover": "limboth",
    "mtable": "matrix", "mtr": "row", "mtd": "cell", "mfenced": "fenced",
    "mrow": "infixop", "math": "infixop",
}

SKIPPED = {"annotation", "annotation-xml", "mspace", "mphantom", "none", "mprescripts"}

ORDINALS = {1: "1st", 2: "2nd", 3: "3rd"}


def _ordinal(number: int) -> str:
    return ORDINALS.get(number, f"{number}th")


def _text(tag: Tag) -> str:
    return tag.get_text().strip()


def _elements(tag: Tag) -> list[Tag]:
    return [child for child in tag.children if isinstance(child, Tag) and child.name not in SKIPPED]


def _operator_role(symbol: str) -> str:
    for symbols, role in OPERATOR_ROLES:
        if symbol in symbols:
            return role
    return "unknown"


class SpeechEngine:
    """Rule based MathML speech generator."""

    def __init__(self, config: SpeechConfig):
        self.config = config
        self.domain = config.domain if config.domain in SUPPORTED_DOMAINS else "mathspeak"
        if config.domain not in SUPPORTED_DOMAINS:
            logger.warning(f"Unsupported speech domain {config.domain!r}, using mathspeak")
        if config.locale not in SUPPORTED_LOCALES:
            logger.warning(f"Unsupported speech locale {config.locale!r}, using en")
        self.brief = config.style in ("brief", "sbrief")

    # -- public API --

    def to_speech(self, mml: str) -> str:
        """Return spoken English text for MathML markup."""
        spoken = self._speak(self._root(mml))
        return re.sub(r"\s+", " ", spoken).strip()

    def to_json(self, mml: str) -> dict[str, Any]:
        """Return the semantic tree of MathML markup as a JSON-compatible dict."""
        tree, _ = self._analyse(self._root(mml))
        return tree

    def to_semantic(self, mml: str) -> str:
        """Return the semantic tree serialized as compact XML."""
        soup = BeautifulSoup("", "xml")
        stree = soup.new_tag("stree")
        stree.append(self._tree_to_xml(soup, self.to_json(mml)))
        return str(stree)

    @staticmethod
    def pprint_xml(xml: str) -> str:
        """Pretty print an XML document fragment."""
        soup = BeautifulSoup(xml, "xml")
        root = soup.find(True)
        return root.prettify()

    def to_enriched(self, mml: str) -> str:
        """Return MathML annotated with ``data-semantic-*`` attributes."""
        root = self._root(mml)
        _, nodes = self._analyse(root)
        for node_id, (tag, info, parent_id) in nodes.items():
            tag["data-semantic-id"] = str(node_id)
            tag["data-semantic-type"] = info["type"]
            tag["data-semantic-role"] = info["role"]
            if parent_id is not None:
                tag["data-semantic-parent"] = str(parent_id)
            if info.get("children"):
                tag["data-semantic-children"] = ",".join(str(child["id"]) for child in info["children"])
        return str(root)

    # -- parsing --

    @staticmethod
    def _root(mml: str) -> Tag:
        soup = BeautifulSoup(mml, "xml")
        root = soup.find("math")
        if root is None:
            raise ValueError("MathML markup has no <math> element")
        return root

    # -- speech rules --

    def _speak(self, tag: Tag) -> str:
        name = tag.name
        parts = _elements(tag)

        if name == "mi":
            return self._identifier(_text(tag))
        if name == "mn":
            return _text(tag)
        if name == "mo":
            symbol = _text(tag)
            if symbol in INVISIBLE_OPERATORS:
                return ""
            return OPERATOR_NAMES.get(symbol, symbol)
        if name == "mtext":
            return _text(tag)
        if name == "semantics":
            return self._speak(parts[0]) if parts else ""
        if name == "mfrac" and len(parts) == 2:
            return self._fraction(self._speak(parts[0]), self._speak(parts[1]))
        if name == "msqrt":
            return self._sqrt(self._join(parts))
        if name == "mroot" and len(parts) == 2:
            return self._root_index(self._speak(parts[0]), self._speak(parts[1]))
        if name == "msup" and len(parts) == 2:
            return self._superscript(parts[0], parts[1])
        if name == "msub" and len(parts) == 2:
            return self._subscript(self._speak(parts[0]), self._speak(parts[1]))
        if name == "msubsup" and len(parts) == 3:
            base = self._subscript(self._speak(parts[0]), self._speak(parts[1]), close=False)
            return self._power(base, self._speak(parts[2]))
        if name in ("munder", "mover", "munderover") and len(parts) >= 2:
            return self._under_over(name, parts)
        if name == "mfenced":
            open_fence = tag.get("open", "(")
            close_fence = tag.get("close", ")")
            inner = ", ".join(self._speak(part) for part in parts)
            return f"{OPERATOR_NAMES.get(open_fence, open_fence)} {inner} {OPERATOR_NAMES.get(close_fence, close_fence)}"
        if name == "mtable":
            return self._table(parts)
        return self._join(parts)

    def _join(self, parts: list[Tag]) -> str:
        return " ".join(spoken for spoken in (self._speak(part) for part in parts) if spoken)

    def _identifier(self, text: str) -> str:
        if text in GREEK_NAMES:
            return GREEK_NAMES[text]
        return FUNCTION_NAMES.get(text, text)

    def _fraction(self, numerator: str, denominator: str) -> str:
        if self.domain == "clearspeak":
            return f"the fraction with numerator {numerator} and denominator {denominator}"
        if self.brief:
            return f"StartFrac {numerator} Over {denominator} EndFrac"
        return f"StartFraction {numerator} Over {denominator} EndFraction"

    def _sqrt(self, body: str) -> str:
        if self.domain == "clearspeak":
            return f"the square root of {body}"
        return f"StartRoot {body} EndRoot"

    def _root_index(self, body: str, index: str) -> str:
        if self.domain == "clearspeak":
            return f"the root of index {index} of {body}"
        return f"RootIndex {index} StartRoot {body} EndRoot"

    def _superscript(self, base: Tag, exponent: Tag) -> str:
        spoken_base = self._speak(base)
        if exponent.name == "mn" and _text(exponent) == "2":
            return f"{spoken_base} squared"
        if exponent.name == "mn" and _text(exponent) == "3":
            return f"{spoken_base} cubed"
        if exponent.name == "mo" and _text(exponent) in ("′", "'"):
            return f"{spoken_base} prime"
        return self._power(spoken_base, self._speak(exponent))

    def _power(self, base: str, exponent: str) -> str:
        if self.domain == "clearspeak":
            return f"{base} raised to the {exponent} power"
        return f"{base} Superscript {exponent} Baseline"

    def _subscript(self, base: str, script: str, close: bool = True) -> str:
        if self.domain == "clearspeak":
            return f"{base} sub {script}"
        return f"{base} Subscript {script}" + (" Baseline" if close else "")

    def _under_over(self, name: str, parts: list[Tag]) -> str:
        base = self._speak(parts[0])
        if name == "mover" and parts[1].name == "mo" and _text(parts[1]) in ACCENT_NAMES:
            return f"{base} {ACCENT_NAMES[_text(parts[1])]}"
        if name == "munder":
            return f"{base} from {self._speak(parts[1])}"
        if name == "mover":
            return f"{base} to {self._speak(parts[1])}"
        return f"{base} from {self._speak(parts[1])} to {self._speak(parts[2])}"

    def _table(self, rows: list[Tag]) -> str:
        spoken_rows = []
        for number, row in enumerate(rows, start=1):
            cells = [self._speak(cell) for cell in _elements(row)]
            spoken_rows.append(f"{_ordinal(number)} Row {' '.join(cells)}")
        return "StartLayout " + " ".join(spoken_rows) + " EndLayout"

    # -- semantic tree --

    def _analyse(self, root: Tag) -> tuple[dict[str, Any], dict[int, tuple[Tag, dict[str, Any], int | None]]]:
        nodes: dict[int, tuple[Tag, dict[str, Any], int | None]] = {}
        ids = count()
        tree = self._analyse_node(root, ids, nodes, None)
        return tree, nodes

    def _analyse_node(
        self,
        tag: Tag,
        ids: Iterator[int],
        nodes: dict[int, tuple[Tag, dict[str, Any], int | None]],
        parent_id: int | None,
    ) -> dict[str, Any]:
        parts = _elements(tag)
        # single-child wrappers carry no structure
        if tag.name in ("math", "mrow", "semantics", "mstyle", "mpadded") and len(parts) == 1:
            return self._analyse_node(parts[0], ids, nodes, parent_id)

        node_id = next(ids)
        info: dict[str, Any] = {"id": node_id, "type": ELEMENT_TYPES.get(tag.name, "unknown")}
        if tag.name in ("mi", "mn", "mo", "mtext"):
            text = _text(tag)
            info["role"] = self._leaf_role(tag.name, text)
            info["text"] = text
        else:
            info["role"] = self._composite_role(tag.name, parts)
            info["children"] = [self._analyse_node(part, ids, nodes, node_id) for part in parts]
        nodes[node_id] = (tag, info, parent_id)
        return info

    @staticmethod
    def _leaf_role(name: str, text: str) -> str:
        if name == "mi":
            if text in GREEK_NAMES:
                return "greekletter"
            if text in FUNCTION_NAMES:
                return "prefix function"
            return "latinletter" if len(text) == 1 else "unknown"
        if name == "mn":
            return "integer" if text.isdigit() else "float"
        if name == "mo":
            return _operator_role(text)
        return "text"

    @staticmethod
    def _composite_role(name: str, parts: list[Tag]) -> str:
        if name == "mfrac":
            return "division"
        if name in ("msqrt", "mroot"):
            return "root"
        if name in ("msup", "msubsup"):
            return "power"
        if name == "msub":
            return "subscript"
        if name in ("munder", "mover", "munderover"):
            return "limit"
        if name == "mtable":
            return "matrix"
        operators = [_text(part) for part in parts if part.name == "mo"]
        for operator in operators:
            role = _operator_role(operator)
            if role in ("equality", "inequality"):
                return role
        if operators:
            return _operator_role(operators[0])
        return "implicit"

    def _tree_to_xml(self, soup: BeautifulSoup, info: dict[str, Any]) -> Tag:
        element = soup.new_tag(info["type"], attrs={"role": info["role"], "id": str(info["id"])})
        if "text" in info:
            element.append(NavigableString(info["text"]))
        for child in info.get("children", []):
            element.append(self._tree_to_xml(soup, child))
        return element
