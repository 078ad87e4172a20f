"""Registration model — the canonical assembly → handler → step → image tree.

Both extractors build this tree, the registry adapter loads it back from the
remote store, and the reconciler diffs two instances of it.
"""

from pluginsync.model.entities import (
    NIL_ID,
    Assembly,
    Handler,
    HandlerKind,
    Image,
    ImageKind,
    InvocationSource,
    Isolatable,
    IsolationMode,
    SourceType,
    Step,
    StepDeployment,
    StepMode,
    StepStage,
)

__all__ = [
    "NIL_ID",
    "Assembly",
    "Handler",
    "HandlerKind",
    "Image",
    "ImageKind",
    "InvocationSource",
    "Isolatable",
    "IsolationMode",
    "SourceType",
    "Step",
    "StepDeployment",
    "StepMode",
    "StepStage",
]
