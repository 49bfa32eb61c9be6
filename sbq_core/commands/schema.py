# sbq_core/commands/schema.py
"""
Command variants for batch files, one pydantic model per ``action``.

Each variant carries only its own fields; the parser picks the model from the
``action`` tag and validates the raw mapping against it.
"""
import re
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, field_validator
from pydantic.alias_generators import to_camel

from .registry import REGISTRY

SUPPORTED_VERSIONS = ("1.0",)
BATCH_MODES = ("execute", "dry-run", "validate-only")

SCENE_TYPES = ("Empty", "DefaultGameObjects", "2D", "3D", "URP", "HDRP")
RENDER_MODES = ("ScreenSpaceOverlay", "ScreenSpaceCamera", "WorldSpace")
SCALE_MODES = ("ConstantPixelSize", "ScaleWithScreenSize", "ConstantPhysicalSize")

ANCHOR_PRESETS = (
    "top-left", "top-center", "top-right",
    "middle-left", "middle-center", "middle-right",
    "bottom-left", "bottom-center", "bottom-right",
    "stretch-top", "stretch-middle", "stretch-bottom",
    "stretch-left", "stretch-center", "stretch-right",
    "stretch-stretch",
)

NAMED_COLORS = {
    "white": "#FFFFFF", "black": "#000000", "red": "#FF0000", "green": "#00FF00",
    "blue": "#0000FF", "yellow": "#FFFF00", "cyan": "#00FFFF", "magenta": "#FF00FF",
    "gray": "#808080", "grey": "#808080", "clear": "#00000000",
}

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_INVALID_NAME_CHARS = set('<>:"/\\|?*') | {chr(c) for c in range(32)}

# JSON numbers and booleans only; "200" or true is not a size
Size = Annotated[StrictInt, Field(gt=0)]


def _canonical(value: Any, choices: Tuple[str, ...]) -> Any:
    # case-insensitive match onto the canonical spelling; leave anything else
    # for the Literal check to reject with the list of valid values
    if isinstance(value, str):
        for c in choices:
            if c.lower() == value.strip().lower():
                return c
    return value


def normalize_color(value: str) -> str:
    v = value.strip()
    if v.lower() in NAMED_COLORS:
        return NAMED_COLORS[v.lower()]
    if not _HEX_COLOR.match(v):
        raise ValueError(f"invalid color token {value!r} (expected #RGB, #RRGGBB, #RRGGBBAA or a named color)")
    if len(v) == 4:
        v = "#" + "".join(ch * 2 for ch in v[1:])
    return v.upper()


def parse_resolution(value: Any) -> Any:
    """Accept "1920x1080" as well as [1920, 1080]."""
    if isinstance(value, str):
        m = re.fullmatch(r"\s*(\d+)\s*[xX×]\s*(\d+)\s*", value)
        if not m:
            raise ValueError(f"resolution must look like WIDTHxHEIGHT, got {value!r}")
        return (int(m.group(1)), int(m.group(2)))
    return value


class CommandBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    action: str
    name: Optional[str] = None
    use_session: StrictBool = False
    update_session: StrictBool = False

    @property
    def label(self) -> str:
        return f"{self.action} {self.name}" if self.name else self.action


class CreateScene(CommandBase):
    action: Literal["create-scene"]
    name: str = Field(min_length=1)
    path: str = Field(min_length=1)
    type: Literal["Empty", "DefaultGameObjects", "2D", "3D", "URP", "HDRP"] = "Empty"
    add_to_build: StrictBool = False

    @field_validator("name")
    @classmethod
    def _name_chars(cls, v: str) -> str:
        bad = sorted(set(v) & _INVALID_NAME_CHARS)
        if bad:
            raise ValueError(f"scene name contains invalid characters: {''.join(bad)!r}")
        return v

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v):
        return _canonical(v, SCENE_TYPES)


class AddCanvas(CommandBase):
    action: Literal["add-canvas"]
    name: str = Field(min_length=1)
    scene: Optional[str] = None
    parent: Optional[str] = None
    render_mode: Literal["ScreenSpaceOverlay", "ScreenSpaceCamera", "WorldSpace"] = "ScreenSpaceOverlay"
    reference_width: Optional[Size] = None
    reference_height: Optional[Size] = None
    scale_mode: Literal["ConstantPixelSize", "ScaleWithScreenSize", "ConstantPhysicalSize"] = "ScaleWithScreenSize"
    sorting_order: StrictInt = 0
    world_position: Optional[Tuple[StrictFloat, StrictFloat, StrictFloat]] = None

    @field_validator("render_mode", mode="before")
    @classmethod
    def _render_mode(cls, v):
        return _canonical(v, RENDER_MODES)

    @field_validator("scale_mode", mode="before")
    @classmethod
    def _scale_mode(cls, v):
        return _canonical(v, SCALE_MODES)


class _UiNode(CommandBase):
    name: str = Field(min_length=1)
    scene: Optional[str] = None
    parent: Optional[str] = None
    anchor: str = "middle-center"
    position: Tuple[StrictFloat, StrictFloat] = (0.0, 0.0)
    color: Optional[str] = None

    @field_validator("anchor")
    @classmethod
    def _anchor(cls, v: str) -> str:
        key = v.strip().lower().replace("_", "-").replace(" ", "-")
        if key not in ANCHOR_PRESETS:
            raise ValueError(f"unknown anchor {v!r}; expected one of: {', '.join(ANCHOR_PRESETS)}")
        return key

    @field_validator("color")
    @classmethod
    def _color(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else normalize_color(v)


class AddPanel(_UiNode):
    action: Literal["add-panel"]
    width: Size
    height: Size


class AddButton(_UiNode):
    action: Literal["add-button"]
    text: str
    width: Size = 160
    height: Size = 30
    font_size: Size = 14


class AddText(_UiNode):
    action: Literal["add-text"]
    text: str
    width: Size = 160
    height: Size = 30
    font_size: Size = 14


class SaveScene(CommandBase):
    action: Literal["save-scene"]
    scene: Optional[str] = None


class StartSession(CommandBase):
    action: Literal["start-session"]
    scene: Optional[str] = None
    parent: Optional[str] = None
    resolution: Optional[Tuple[Size, Size]] = None

    @field_validator("resolution", mode="before")
    @classmethod
    def _resolution(cls, v):
        return parse_resolution(v)


class SetParent(CommandBase):
    action: Literal["set-parent"]
    name: str = Field(min_length=1)


class EndSession(CommandBase):
    action: Literal["end-session"]


Command = Annotated[
    Union[CreateScene, AddCanvas, AddPanel, AddButton, AddText,
          SaveScene, StartSession, SetParent, EndSession],
    Field(discriminator="action"),
]

# actions whose hierarchy parent must be known (explicitly or from the session)
PARENTED_ACTIONS = ("add-panel", "add-button", "add-text")

ACTION_MODELS = {
    "create-scene": CreateScene,
    "add-canvas": AddCanvas,
    "add-panel": AddPanel,
    "add-button": AddButton,
    "add-text": AddText,
    "save-scene": SaveScene,
    "start-session": StartSession,
    "set-parent": SetParent,
    "end-session": EndSession,
}
for _action, _model in ACTION_MODELS.items():
    REGISTRY.register(_action, _model)


@dataclass(frozen=True)
class BatchFile:
    version: str
    commands: Tuple[CommandBase, ...]
    description: Optional[str] = None
    mode: str = "execute"
