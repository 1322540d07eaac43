## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from .types import Word, ControlCode, Action, Conditional, CountedLoop, IndefiniteLoop, Main
from .errors import UnbalancedControlStructure


_CLOSERS = {
    'then': Conditional,
    'loop': CountedLoop,
    '+loop': CountedLoop,
    'until': IndefiniteLoop,
}


def compile_actions(actions: list[Word], name: str | None = None) -> Main:
    """Turn a flat list of words interleaved with control codes into a nested `Main` structure.

    For example `-1 if 10 0 do i . loop then 1` becomes:

        Main [ Action(-1),
               Conditional consequent=[ Action(10), Action(0),
                                        CountedLoop [ Action(i), Action(.) ] ]
                           alternative=[],
               Action(1) ]
    """
    main = Main()
    structure, body = main, main.body
    # Parents are kept as a linked stack: (rest, (structure, body)).
    parents = tuple()

    def _unbalanced(msg):
        where = f" in `{name}`" if name else ""
        return UnbalancedControlStructure(f"Unbalanced control structure{where}: {msg}", token=name)

    for action in actions:
        if not isinstance(action, ControlCode):
            body.append(Action(action))
            continue

        match action.code:
            case 'if':
                node = Conditional()
                body.append(node)
                parents = (parents, (structure, body))
                structure, body = node, node.consequent
            case 'do':
                node = CountedLoop()
                body.append(node)
                parents = (parents, (structure, body))
                structure, body = node, node.body
            case 'begin':
                node = IndefiniteLoop()
                body.append(node)
                parents = (parents, (structure, body))
                structure, body = node, node.body
            case 'else':
                if not isinstance(structure, Conditional) or body is not structure.consequent:
                    raise _unbalanced("`else` without matching `if`.")
                body = structure.alternative
            case 'then' | 'loop' | '+loop' | 'until' as code:
                if not isinstance(structure, _CLOSERS[code]):
                    raise _unbalanced(f"`{code}` does not close the open structure.")
                if code == '+loop':
                    structure.step_from_stack = True
                (parents, (structure, body)) = parents
            case _:
                # Other control codes only make sense at the top level; running them raises.
                body.append(Action(action))

    if structure is not main:
        raise _unbalanced(f"`{type(structure).__name__}` is never closed.")
    return main
