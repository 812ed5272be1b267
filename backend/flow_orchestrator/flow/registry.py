# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Function Registry

Name -> callable lookup for `function` nodes. Passed explicitly into the
engine so tests can register fakes.
"""

from typing import Any, Callable, Dict, Optional, Set


NodeFunction = Callable[[Any], Any]


class FunctionRegistry:
    """Registered pure functions callable from function nodes"""

    def __init__(self, functions: Optional[Dict[str, NodeFunction]] = None):
        self._functions: Dict[str, NodeFunction] = dict(functions or {})

    def register(self, name: str, func: Optional[NodeFunction] = None):
        """
        Register a function, directly or as a decorator.

            registry.register("score", score_fn)

            @registry.register("normalize")
            def normalize(payload): ...
        """
        if func is not None:
            self._functions[name] = func
            return func

        def decorator(f: NodeFunction) -> NodeFunction:
            self._functions[name] = f
            return f
        return decorator

    def get(self, name: str) -> Optional[NodeFunction]:
        return self._functions.get(name)

    def names(self) -> Set[str]:
        return set(self._functions)

    def __contains__(self, name: str) -> bool:
        return name in self._functions
