"""
Text console for interactive sessions.

A PhasePlaneSession holds the current inputs of a phase-portrait view, a
Console edits it through short commands, and a LogBook collects the lines
shown to the user without repeating itself.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .config import config
from .domain import Domain
from .engine import ComputeRequest, ComputeResult, LogEntry, STATUS_OK
from .expression import compile_system

HELP_TEXT = "commands: set <param> <value> | grid <N> | bounds xMin xMax yMin yMax | clear"


class LogBook:
    """
    Bounded list of console lines.

    Consecutive identical lines are kept once, and a result's report is
    appended only when its signature differs from the last one ingested.
    """
    def __init__(self, history: Optional[int] = None):
        self._history = history if history is not None else config.LOG_HISTORY
        self._entries: List[LogEntry] = []
        self._last_signature: Optional[str] = None

    @property
    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def push(self, type: str, text: str):
        entry = LogEntry(type, text)
        if self._entries and self._entries[-1] == entry:
            return
        self._entries.append(entry)
        del self._entries[:-self._history]

    def line(self, text: str):
        self.push("text", text)

    def latex(self, text: str):
        self.push("latex", text)

    def error(self, text: str):
        self.push("text", f"Error: {text}")

    def ingest(self, result: ComputeResult):
        """Append the lines a compute result warrants."""
        if result.status == STATUS_OK:
            if result.report_signature == self._last_signature:
                return
            self._last_signature = result.report_signature
            for entry in result.logs:
                self.push(entry.type, entry.text)
        elif result.missing_params:
            self.line(f"Missing parameters: {', '.join(result.missing_params)}")
        elif result.message:
            self.error(result.message)

    def clear(self):
        self._entries.clear()
        self._last_signature = None

    def __len__(self):
        return len(self._entries)


@dataclass
class PhasePlaneSession:
    """
    Current inputs of an interactive phase-portrait view.

    Parameters are kept in sync with the expressions: newly required
    parameters start at 1.0 and parameters no longer referenced are dropped.
    """
    expr_x: str = "mu*x - x^2 - y"
    expr_y: str = "x + mu*y - y^3"
    params: Dict[str, float] = field(default_factory=dict)
    domain: Domain = field(default_factory=lambda: Domain(-3.0, 3.0, -3.0, 3.0))
    grid_n: int = 40
    seeds: List[Tuple[float, float]] = field(default_factory=list)

    def __post_init__(self):
        self.sync_params()

    def set_expressions(self, expr_x: str, expr_y: str):
        """
        Replace the expressions and resynchronize parameters.

        Raises
        ------
        ParseError
            If either expression is invalid; the session is left unchanged
        """
        compiled = compile_system(expr_x, expr_y)
        self.expr_x, self.expr_y = expr_x, expr_y
        self._sync(compiled.required_params)

    def sync_params(self):
        self._sync(compile_system(self.expr_x, self.expr_y).required_params)

    def _sync(self, required: List[str]):
        for name in required:
            value = self.params.get(name)
            if value is None or not math.isfinite(value):
                self.params[name] = 1.0
        for name in list(self.params):
            if name not in required:
                del self.params[name]

    def add_seed(self, x: float, y: float):
        self.seeds.append((float(x), float(y)))

    def to_request(self, request_id: Optional[int] = None) -> ComputeRequest:
        return ComputeRequest(
            expr_x=self.expr_x,
            expr_y=self.expr_y,
            params=dict(self.params),
            domain=self.domain,
            grid_n=self.grid_n,
            seeds=list(self.seeds),
            request_id=request_id,
        )


def _number(text: str) -> Optional[float]:
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


class Console:
    """
    Command interpreter bound to a session.

    Commands
    --------
    help                              list commands
    set <param> <value>               change a parameter
    grid <N>                          vector-field resolution, integer 8..200
    bounds <xMin> <xMax> <yMin> <yMax>  change the domain
    clear                             empty the log
    """
    def __init__(self, session: PhasePlaneSession, logbook: Optional[LogBook] = None):
        self.session = session
        self.logbook = logbook if logbook is not None else LogBook()

    def execute(self, line: str) -> bool:
        """
        Run one command line.

        Returns
        -------
        bool
            True if the session changed and the portrait needs recomputing
        """
        words = line.strip().split()
        if not words:
            return False
        command, args = words[0], words[1:]

        if command == "help":
            self.logbook.line(HELP_TEXT)
            return False
        if command == "clear":
            self.logbook.clear()
            return False
        if command == "set" and len(args) == 2:
            return self._set(*args)
        if command == "grid" and len(args) == 1:
            return self._grid(args[0])
        if command == "bounds" and len(args) == 4:
            return self._bounds(args)
        self.logbook.line("unknown command (help)")
        return False

    def _set(self, name: str, text: str) -> bool:
        if name not in self.session.params:
            self.logbook.line(f'unknown param "{name}"')
            return False
        value = _number(text)
        if value is None:
            self.logbook.line("value must be a number")
            return False
        self.session.params[name] = value
        return True

    def _grid(self, text: str) -> bool:
        value = _number(text)
        if (value is None or not value.is_integer()
                or not config.GRID_MIN <= value <= config.GRID_MAX):
            self.logbook.line(f"grid must be {config.GRID_MIN}..{config.GRID_MAX}")
            return False
        self.session.grid_n = int(value)
        return True

    def _bounds(self, args: List[str]) -> bool:
        values = [_number(a) for a in args]
        if any(v is None for v in values):
            self.logbook.line("bad bounds")
            return False
        x_min, x_max, y_min, y_max = values
        if x_min >= x_max or y_min >= y_max:
            self.logbook.line("bad bounds")
            return False
        self.session.domain = Domain(x_min, x_max, y_min, y_max)
        return True
