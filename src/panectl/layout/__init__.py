"""Layout 模块 - 布局计划与幂等创建"""

from .engine import LayoutEngine
from .plan import (
    EnvScope,
    LayoutPlan,
    LayoutStep,
    NewSession,
    NewWindow,
    PaneRef,
    PaneTarget,
    SelectPane,
    SendKeys,
    SetEnv,
    SplitPane,
)

__all__ = [
    "LayoutEngine",
    "LayoutPlan",
    "LayoutStep",
    "PaneTarget",
    "PaneRef",
    "EnvScope",
    "NewSession",
    "NewWindow",
    "SplitPane",
    "SetEnv",
    "SendKeys",
    "SelectPane",
]
