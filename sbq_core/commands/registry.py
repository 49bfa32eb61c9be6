# sbq_core/commands/registry.py
from typing import Dict, List, Optional, Type


class ActionRegistry:
    def __init__(self) -> None:
        self._models: Dict[str, Type] = {}

    def register(self, action: str, model: Type) -> None:
        self._models[action.lower()] = model

    def model_for(self, action: str) -> Optional[Type]:
        return self._models.get(action.lower())

    def known(self) -> List[str]:
        return list(self._models.keys())


REGISTRY = ActionRegistry()
