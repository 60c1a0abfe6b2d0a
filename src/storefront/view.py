"""View lifetimes: stale continuations must not touch a view that is gone.

Each view (a page, a drawer) owns a ViewContext. Work started for the view
captures a token; once the view is left or reloaded the generation moves on and
every earlier token reports itself stale. Results are checked against the
token immediately before they are applied.
"""

from dataclasses import dataclass


class ViewContext:
    def __init__(self) -> None:
        self.generation = 0
        self.closed = False

    def token(self) -> "ViewToken":
        return ViewToken(self, self.generation)

    def invalidate(self) -> None:
        """Reload: results of earlier work no longer apply."""
        self.generation += 1

    def close(self) -> None:
        self.closed = True
        self.generation += 1


@dataclass(frozen=True)
class ViewToken:
    context: ViewContext
    generation: int

    @property
    def live(self) -> bool:
        return not self.context.closed and self.context.generation == self.generation
